"""Sortable dashboard tables: column/order state and the row comparator."""

import functools
import locale
from dataclasses import dataclass
from numbers import Real
from typing import Any, Sequence

from dashboard.metrics import field_value


@dataclass
class SortState:
    """
    Current sort of a table. Selecting the active column flips the order;
    selecting a new column sorts it descending.
    """

    column: str
    descending: bool = True

    def toggle(self, column: str) -> "SortState":
        if column == self.column:
            self.descending = not self.descending
        else:
            self.column = column
            self.descending = True
        return self

    @property
    def order(self) -> str:
        return "desc" if self.descending else "asc"


def _collation_key(value: str) -> tuple[str, str]:
    # Case-insensitive first, then case as tie-breaker.
    return locale.strxfrm(value.casefold()), locale.strxfrm(value)


def _compare(a: Any, b: Any) -> int:
    if isinstance(a, Real) and isinstance(b, Real):
        diff = a - b
        return (diff > 0) - (diff < 0)
    if isinstance(a, str) and isinstance(b, str):
        ka, kb = _collation_key(a), _collation_key(b)
        return (ka > kb) - (ka < kb)
    # Mixed or missing values keep their relative order.
    return 0


def sort_rows(rows: Sequence[Any], state: SortState) -> list[Any]:
    """Return a sorted copy. Numbers compare numerically, strings by locale collation."""

    def cmp(left, right):
        result = _compare(field_value(left, state.column), field_value(right, state.column))
        return -result if state.descending else result

    return sorted(rows, key=functools.cmp_to_key(cmp))
