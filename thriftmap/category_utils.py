from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from thriftmap.models import Store


@dataclass(frozen=True, slots=True)
class CategoryStyle:
    color: str
    icon: str
    name: str


@dataclass(frozen=True, slots=True)
class MarkerSize:
    container: int
    pin: int
    icon: int


GENERAL_CATEGORY: Final[str] = "general"

CATEGORY_STYLES: Final[dict[str, CategoryStyle]] = {
    "vintage": CategoryStyle(color="#8B4A7B", icon="👗", name="Vintage"),
    "consignment": CategoryStyle(color="#6B73FF", icon="💎", name="Consignment"),
    "thrift": CategoryStyle(color="#E67E22", icon="🛍️", name="Thrift"),
    "antique": CategoryStyle(color="#8B4513", icon="🏺", name="Antique"),
    "furniture": CategoryStyle(color="#2E8B57", icon="🪑", name="Furniture"),
    "books": CategoryStyle(color="#4169E1", icon="📚", name="Books"),
    "designer": CategoryStyle(color="#FF1493", icon="✨", name="Designer"),
    GENERAL_CATEGORY: CategoryStyle(color="#6d8c76", icon="🏪", name="General"),
}

# First match wins.
_KEYWORD_RULES: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("vintage", ("vintage", "retro")),
    ("consignment", ("consignment", "consign")),
    ("antique", ("antique", "antiquary")),
    ("furniture", ("furniture", "chair", "table")),
    ("books", ("book", "library")),
    ("designer", ("designer", "luxury", "couture")),
    ("thrift", ("thrift", "goodwill", "salvation army")),
)

MARKER_SIZES: Final[dict[str, MarkerSize]] = {
    "sm": MarkerSize(container=24, pin=20, icon=10),
    "md": MarkerSize(container=30, pin=26, icon=12),
    "lg": MarkerSize(container=36, pin=32, icon=14),
}


def classify_text(name: str, description: str | None = None) -> str:
    text = f"{name} {description or ''}".lower()
    for key, keywords in _KEYWORD_RULES:
        if any(keyword in text for keyword in keywords):
            return key
    return GENERAL_CATEGORY


def classify_store(store: Store) -> str:
    """Infer the display category key from the store's name and card text.

    This is independent of the authored CMS categories on the record.
    """
    return classify_text(store.name, store.card_description)


def category_style(key: str) -> CategoryStyle:
    return CATEGORY_STYLES.get(key, CATEGORY_STYLES[GENERAL_CATEGORY])
