"""Tests for table sorting."""

from dashboard.client import ProductMetrics
from dashboard.ranking import SortState, sort_rows


def product(pid, clicks, views, name="Item"):
    return ProductMetrics.model_validate({"_id": pid, "productName": name, "clicks": clicks, "views": views})


class TestSortState:
    def test_new_column_defaults_descending(self):
        state = SortState("clicks", descending=False)
        state.toggle("views")
        assert state.column == "views"
        assert state.descending is True

    def test_same_column_flips(self):
        state = SortState("clicks")
        state.toggle("clicks")
        assert state.order == "asc"
        state.toggle("clicks")
        assert state.order == "desc"


class TestSortRows:
    def test_click_then_views_header_twice(self):
        rows = [product("a", 100, 40), product("b", 50, 10), product("c", 75, 90)]
        state = SortState("clicks")
        assert [r.id for r in sort_rows(rows, state)] == ["a", "c", "b"]

        state.toggle("views")
        assert [r.id for r in sort_rows(rows, state)] == ["c", "a", "b"]

        state.toggle("views")
        assert [r.id for r in sort_rows(rows, state)] == ["b", "a", "c"]

    def test_camel_case_column_names(self):
        rows = [product("a", 1, 1, name="Zebra"), product("b", 1, 1, name="apple")]
        ordered = sort_rows(rows, SortState("productName", descending=False))
        assert [r.product_name for r in ordered] == ["apple", "Zebra"]

    def test_string_sort_descending(self):
        rows = [{"name": "banana"}, {"name": "Apple"}, {"name": "cherry"}]
        ordered = sort_rows(rows, SortState("name"))
        assert [r["name"] for r in ordered] == ["cherry", "banana", "Apple"]

    def test_missing_values_keep_order(self):
        rows = [{"id": 1, "v": None}, {"id": 2, "v": None}]
        assert [r["id"] for r in sort_rows(rows, SortState("v"))] == [1, 2]

    def test_does_not_mutate_input(self):
        rows = [{"v": 1}, {"v": 2}]
        sort_rows(rows, SortState("v"))
        assert rows == [{"v": 1}, {"v": 2}]
