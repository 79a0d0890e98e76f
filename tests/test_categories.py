"""Tests for category hierarchy resolution and division classification."""

import pytest

from daily_ops.categories import (
    CategoryNode,
    CategorySnapshot,
    classify_division,
    resolve_main_category,
)
from tests.test_utils import CATEGORY_ROWS


def _index(*nodes: CategoryNode) -> tuple[dict, dict]:
    by_name = {n.name: n for n in nodes if n.name}
    by_id = {n.id: n for n in nodes if n.id}
    return by_name, by_id


def test_unmapped_leaf_is_its_own_main_category() -> None:
    res = resolve_main_category("Specials", {}, {})
    assert (res.main_category, res.category, res.source) == ("Specials", "Specials", "unmapped")


def test_parentless_leaf_is_root_unless_level_says_otherwise() -> None:
    by_name, by_id = _index(
        CategoryNode("1", "Keuken", level=1),
        CategoryNode("2", "Losse", level=2),
        CategoryNode("3", "Nolevel"),
    )
    assert resolve_main_category("Keuken", by_name, by_id).main_category == "Keuken"
    assert resolve_main_category("Nolevel", by_name, by_id).source == "root"
    orphan = resolve_main_category("Losse", by_name, by_id)
    assert orphan.main_category is None
    assert orphan.source == "no_main"


def test_three_level_chain_reaches_root() -> None:
    by_name, by_id = _index(
        CategoryNode("1", "Bar", level=1),
        CategoryNode("2", "Bier", parent_name="Bar", level=2),
        CategoryNode("3", "Speciaalbier", parent_id="2", level=3),
    )
    res = resolve_main_category("Speciaalbier", by_name, by_id)
    assert res.main_category == "Bar"
    assert res.category == "Speciaalbier"
    assert res.source == "chain"


def test_name_lookup_preferred_over_id() -> None:
    """When name and id point at different nodes, the name wins."""
    by_name, by_id = _index(
        CategoryNode("1", "Bar", level=1),
        CategoryNode("2", "Keuken", level=1),
        CategoryNode("3", "Wijn", parent_name="Bar", parent_id="2"),
    )
    assert resolve_main_category("Wijn", by_name, by_id).main_category == "Bar"


def test_missing_parent_returns_immediate_parent_name() -> None:
    by_name, by_id = _index(CategoryNode("3", "Wijn", parent_name="Dranken"))
    res = resolve_main_category("Wijn", by_name, by_id)
    assert res.main_category == "Dranken"
    assert res.source == "missing_parent"


def test_missing_grandparent_returns_last_resolved_ancestor() -> None:
    by_name, by_id = _index(
        CategoryNode("2", "Bier", parent_name="Gone"),
        CategoryNode("3", "Pils", parent_name="Bier"),
    )
    res = resolve_main_category("Pils", by_name, by_id)
    assert res.main_category == "Bier"
    assert res.source == "missing_parent"


def test_cycle_terminates_deterministically() -> None:
    """A -> B -> A resolves within the depth bound and always to the same answer."""
    by_name, by_id = _index(
        CategoryNode("a", "A", parent_name="B"),
        CategoryNode("b", "B", parent_name="A"),
    )
    first = resolve_main_category("A", by_name, by_id)
    assert first.source == "depth_limit"
    assert first.main_category in {"A", "B"}
    assert resolve_main_category("A", by_name, by_id) == first


def test_self_loop_terminates() -> None:
    by_name, by_id = _index(CategoryNode("a", "A", parent_id="a"))
    res = resolve_main_category("A", by_name, by_id, max_depth=3)
    assert res.source == "depth_limit"
    assert res.main_category == "A"


def test_deep_chain_stops_at_depth_bound() -> None:
    nodes = [CategoryNode(str(i), f"C{i}", parent_name=f"C{i + 1}") for i in range(20)]
    nodes.append(CategoryNode("20", "C20"))
    by_name, by_id = _index(*nodes)
    assert resolve_main_category("C0", by_name, by_id, max_depth=30).main_category == "C20"
    shallow = resolve_main_category("C0", by_name, by_id, max_depth=5)
    assert shallow.source == "depth_limit"
    assert shallow.main_category == "C5"


def test_snapshot_from_rows_and_version() -> None:
    """Rows are normalized, memoized lookups work and equal tables share a version."""
    snap = CategorySnapshot.from_rows(CATEGORY_ROWS)
    again = CategorySnapshot.from_rows(list(reversed(CATEGORY_ROWS)))
    assert len(snap) == 5
    assert snap.version == again.version
    assert snap.resolve("Bar Bier").main_category == "Bar"
    assert snap.resolve("Keuken Hoofdgerecht").main_category == "Keuken"
    assert snap.resolve("Bar Bier") is snap.resolve("Bar Bier")

    changed = CategorySnapshot.from_rows(CATEGORY_ROWS[:-1])
    assert changed.version != snap.version


def test_snapshot_ignores_rows_of_other_locations() -> None:
    rows = [
        {"groupName": "Bar", "groupLevel": 1, "locationId": "L"},
        {"groupName": "Keuken", "groupLevel": 1, "locationId": "OTHER"},
        {"group_name": "Terras", "group_level": 1},
    ]
    snap = CategorySnapshot.from_rows(rows, location_id="L")
    assert set(snap.by_name) == {"Bar", "Terras"}


def test_classify_division() -> None:
    assert classify_division("Keuken", "Hoofdgerecht") == "Food"
    assert classify_division("Bar", "Bier") == "Beverage"
    assert classify_division(None, "Wijn & Bubbels") == "Beverage"
    assert classify_division("Kitchen Specials") == "Food"
    assert classify_division("Merchandise", "Cadeaubon") is None
    # main category decides before the leaf
    assert classify_division("Bar", "Bar snacks eten") == "Beverage"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Barbecue", None),
        ("Rhubarb taart", None),
        ("Zeebaars", None),
        ("Dranken", "Beverage"),
        ("Wijnen", "Beverage"),
        ("Speciaalbier", "Beverage"),
        ("Wijnkaart", "Beverage"),
        ("Koffiebar", "Beverage"),
    ],
)
def test_classify_division_matches_words_not_substrings(name, expected) -> None:
    """Keywords must stand for a whole word, a plural or the end of a compound."""
    assert classify_division(name) == expected
