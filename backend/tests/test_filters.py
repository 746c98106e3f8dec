import random

import pytest
from fastapi import HTTPException

from storefront.api.dependencies.filters import MAX_ID, parse_flag, parse_id_list
from storefront.client.filters import FilterSet, FilterStateManager

PARENTS = {11: 1, 12: 1, 13: 1, 21: 2, 22: 2, 31: 3}


def _assert_contained(state: FilterSet, parents=PARENTS):
    for sub_id in state.subcategories:
        assert parents.get(sub_id) in state.categories


def test_parse_id_list_trims_and_skips_empty_pieces():
    assert parse_id_list(" 1, 2,,3 ", "category") == {1, 2, 3}
    assert parse_id_list(None, "category") == frozenset()
    assert parse_id_list(str(MAX_ID), "category") == {MAX_ID}


@pytest.mark.parametrize("raw", ["1,a", "1.5", "+2", "١", str(MAX_ID + 1)])
def test_parse_id_list_rejects(raw):
    with pytest.raises(HTTPException) as exc_info:
        parse_id_list(raw, "brand")
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize(
    "raw,expected",
    [(None, False), ("", False), ("false", False), ("0", False), ("true", True), ("TRUE", True), ("1", True)],
)
def test_parse_flag(raw, expected):
    assert parse_flag(raw, "pmp") is expected


def test_parse_flag_rejects_other_values():
    with pytest.raises(HTTPException):
        parse_flag("yes", "pmp")


def test_deselecting_category_drops_its_subcategories():
    manager = FilterStateManager(PARENTS)
    manager.open()
    manager.toggle_category(1)
    manager.toggle_category(2)
    manager.toggle_subcategory(12)
    manager.toggle_subcategory(13)
    manager.toggle_subcategory(21)

    state = manager.toggle_category(1)

    assert state.categories == {2}
    assert state.subcategories == {21}


def test_subcategories_never_outlive_their_category():
    rng = random.Random(1234)
    manager = FilterStateManager(PARENTS)
    manager.open()
    subcategory_ids = [*PARENTS, 99]
    for _ in range(1000):
        if rng.random() < 0.4:
            manager.toggle_category(rng.choice([1, 2, 3]))
        else:
            manager.toggle_subcategory(rng.choice(subcategory_ids))
        _assert_contained(manager.draft)


def test_subcategory_under_unselected_category_is_ignored():
    manager = FilterStateManager(PARENTS)
    manager.open()
    assert manager.toggle_subcategory(13).subcategories == frozenset()
    assert manager.toggle_subcategory(99).subcategories == frozenset()

    manager.toggle_category(2)
    assert manager.toggle_subcategory(13).subcategories == frozenset()
    assert manager.toggle_subcategory(21).subcategories == {21}


def test_selected_subcategory_can_always_be_removed():
    manager = FilterStateManager(PARENTS)
    manager.open()
    manager.toggle_category(1)
    manager.toggle_subcategory(11)
    # parent lookup refreshed without category 1
    manager.load_subcategories([{"id": 11, "category_id": 3}])
    assert manager.toggle_subcategory(11).subcategories == frozenset()


def test_draft_is_not_applied_until_apply():
    manager = FilterStateManager(PARENTS)
    manager.open()
    manager.toggle_brand(5)
    manager.toggle_pmp()
    assert manager.applied == FilterSet()

    applied = manager.apply()

    assert applied.brands == {5}
    assert applied.pmp is True
    assert manager.is_open is False


def test_reopening_discards_abandoned_draft():
    manager = FilterStateManager(PARENTS)
    manager.open()
    manager.toggle_promotion()
    manager.apply()

    manager.open()
    manager.toggle_clearance()
    manager.close()

    draft = manager.open()
    assert draft.promotion is True
    assert draft.clearance is False


def test_clear_resets_draft_only():
    manager = FilterStateManager(PARENTS)
    manager.open()
    manager.toggle_category(1)
    manager.apply()
    manager.open()
    assert manager.clear() == FilterSet()
    assert manager.applied.categories == {1}


def test_load_subcategories_builds_parent_lookup():
    manager = FilterStateManager()
    manager.load_subcategories([{"id": 7, "category_id": 3, "name": "Tea"}])
    assert manager.parent_of(7) == 3
    manager.open()
    manager.toggle_category(3)
    assert manager.available_subcategories() == [7]


def test_query_params_encoding():
    state = FilterSet(
        categories=frozenset({3, 1}), brands=frozenset({9}), promotion=True
    )
    assert state.to_query_params() == {
        "categories": "1,3",
        "brands": "9",
        "promotion": "true",
    }
    assert FilterSet().to_query_params() == {}
    assert state.active_count == 4
