from __future__ import annotations

from typing import Iterable, Mapping

from thriftmap.category_utils import CATEGORY_STYLES, CategoryStyle
from thriftmap.models import AutocompleteOption, Category, Neighborhood, OptionKind, Region, Store

MAX_SUGGESTIONS = 8

OPTION_PREFIXES: dict[OptionKind, str] = {
    OptionKind.STORE: "store",
    OptionKind.NEIGHBORHOOD: "neighborhood",
    OptionKind.REGION: "region",
    OptionKind.CATEGORY: "category",
    OptionKind.STORE_TYPE: "category-type",
}


def build_index(
    stores: Iterable[Store],
    neighborhoods: Iterable[Neighborhood],
    regions: Iterable[Region],
    categories: Iterable[Category],
    category_types: Mapping[str, CategoryStyle] = CATEGORY_STYLES,
) -> list[AutocompleteOption]:
    """Flatten the loaded collections into one searchable option list.

    Order is stores, neighborhoods, regions, categories, then store types.
    Entries are not de-duplicated across kinds.
    """
    options: list[AutocompleteOption] = []
    options.extend(_option(OptionKind.STORE, store.id, store.name, store.name) for store in stores)
    options.extend(
        _option(OptionKind.NEIGHBORHOOD, neighborhood.id, neighborhood.name, neighborhood.name)
        for neighborhood in neighborhoods
    )
    options.extend(_option(OptionKind.REGION, region.id, region.name, region.name) for region in regions)
    options.extend(
        _option(OptionKind.CATEGORY, category.id, category.name, category.name) for category in categories
    )
    options.extend(
        _option(OptionKind.STORE_TYPE, key, style.name, key.lower()) for key, style in category_types.items()
    )
    return options


def match_options(
    options: Iterable[AutocompleteOption],
    query: str,
    limit: int = MAX_SUGGESTIONS,
) -> list[AutocompleteOption]:
    needle = query.strip().casefold()
    if not needle:
        return []

    matches: list[AutocompleteOption] = []
    for option in options:
        if needle in option.label.casefold() or needle in option.value.casefold():
            matches.append(option)
            if len(matches) >= limit:
                break
    return matches


def option_source_id(option: AutocompleteOption) -> str:
    prefix = f"{OPTION_PREFIXES[option.kind]}-"
    return option.id[len(prefix) :] if option.id.startswith(prefix) else option.id


def _option(kind: OptionKind, source_id: str, label: str, value: str) -> AutocompleteOption:
    return AutocompleteOption(id=f"{OPTION_PREFIXES[kind]}-{source_id}", label=label, kind=kind, value=value)
