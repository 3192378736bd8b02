from thriftmap.autocomplete import MAX_SUGGESTIONS, build_index, match_options, option_source_id
from thriftmap.category_utils import CATEGORY_STYLES
from thriftmap.models import OptionKind
from tests.conftest import make_category, make_neighborhood, make_region, make_store


def _index():
    stores = [
        make_store("s1", "Vintage Thrift Co"),
        make_store("s2", "Brooklyn Flea Finds"),
    ]
    neighborhoods = [make_neighborhood("Williamsburg", "Brooklyn"), make_neighborhood("SoHo")]
    regions = [make_region("Brooklyn"), make_region("Manhattan")]
    categories = [make_category("vintage"), make_category("thrift")]
    return build_index(stores, neighborhoods, regions, categories)


def test_index_orders_kinds_and_prefixes_ids() -> None:
    options = _index()

    kinds = [option.kind for option in options]
    assert kinds[:2] == [OptionKind.STORE, OptionKind.STORE]
    assert kinds[2:4] == [OptionKind.NEIGHBORHOOD, OptionKind.NEIGHBORHOOD]
    assert kinds[4:6] == [OptionKind.REGION, OptionKind.REGION]
    assert kinds[6:8] == [OptionKind.CATEGORY, OptionKind.CATEGORY]
    assert kinds[8:] == [OptionKind.STORE_TYPE] * len(CATEGORY_STYLES)

    assert options[0].id == "store-s1"
    assert options[2].id == "neighborhood-nbhd-williamsburg"
    assert options[4].id == "region-region-brooklyn"
    assert options[6].id == "category-cat-vintage"
    assert options[8].id == "category-type-vintage"


def test_store_type_options_use_display_name_and_lowercase_key() -> None:
    store_types = [option for option in _index() if option.kind == OptionKind.STORE_TYPE]

    assert store_types[0].label == "Vintage"
    assert store_types[0].value == "vintage"
    assert {option.value for option in store_types} == set(CATEGORY_STYLES)


def test_match_is_case_insensitive_substring_in_index_order() -> None:
    matches = match_options(_index(), "VINT")

    assert [(option.kind, option.label) for option in matches] == [
        (OptionKind.STORE, "Vintage Thrift Co"),
        (OptionKind.CATEGORY, "Vintage"),
        (OptionKind.STORE_TYPE, "Vintage"),
    ]


def test_same_name_across_kinds_is_not_deduplicated() -> None:
    labels = [(option.kind, option.label) for option in match_options(_index(), "brooklyn")]

    assert labels == [
        (OptionKind.STORE, "Brooklyn Flea Finds"),
        (OptionKind.REGION, "Brooklyn"),
    ]


def test_results_are_capped_at_eight_keeping_first_matches() -> None:
    stores = [make_store(f"s{index}", f"Thrift Spot {index:02d}") for index in range(10)]
    options = build_index(
        stores,
        [make_neighborhood("Thrift Row")],
        [make_region("Thrift Borough")],
        [make_category("thrift")],
    )
    assert len(match_options(options, "thrift", limit=100)) > MAX_SUGGESTIONS

    matches = match_options(options, "thrift")

    assert len(matches) == MAX_SUGGESTIONS == 8
    assert [option.id for option in matches] == [f"store-s{index}" for index in range(8)]
    assert {option.kind for option in matches} == {OptionKind.STORE}


def test_blank_query_returns_nothing() -> None:
    options = _index()

    assert match_options(options, "") == []
    assert match_options(options, "   ") == []


def test_option_source_id_strips_kind_prefix() -> None:
    options = _index()

    assert option_source_id(options[0]) == "s1"
    assert option_source_id(options[8]) == "vintage"


def test_option_to_dict_uses_display_kind() -> None:
    option = _index()[-1]

    assert option.to_dict() == {
        "id": "category-type-general",
        "label": "General",
        "kind": "Store Type",
        "value": "general",
    }
