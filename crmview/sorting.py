"""Sort comparators for CRM records.

``sort_records`` relies on Python's stable sort, so records with equal
keys keep their input order and re-sorting sorted output is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Callable, Iterable

from .models import Record

Comparator = Callable[[Record, Record], int]


class SortKey(Enum):
    COMPANY = "company"
    NAME = "name"
    PRIORITY = "priority"
    STATUS = "status"
    VALUE = "value"
    LAST_CONTACT = "lastContact"

    @classmethod
    def parse(cls, raw: str | SortKey) -> SortKey:
        if isinstance(raw, SortKey):
            return raw
        for key in cls:
            if key.value.lower() == raw.strip().lower().replace("_", ""):
                return key
        raise ValueError(f"Unknown sort key: {raw}")


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    key: SortKey = SortKey.COMPANY
    order: SortOrder = SortOrder.ASC

    def toggled(self) -> SortState:
        """Same key, opposite direction."""
        flipped = SortOrder.DESC if self.order is SortOrder.ASC else SortOrder.ASC
        return SortState(self.key, flipped)


def _sign(n: float) -> int:
    return (n > 0) - (n < 0)


def compare_text(a: str, b: str) -> int:
    """Case-folded comparison, raw string as tiebreak."""
    fa, fb = a.casefold(), b.casefold()
    if fa != fb:
        return -1 if fa < fb else 1
    if a != b:
        return -1 if a < b else 1
    return 0


def _priority_rank(record: Record) -> int:
    return record.priority.rank if record.priority else 0


def _ascending(key: SortKey) -> Comparator:
    if key in (SortKey.COMPANY, SortKey.NAME):
        return lambda a, b: compare_text(a.label or "", b.label or "")
    if key is SortKey.PRIORITY:
        return lambda a, b: _sign(_priority_rank(a) - _priority_rank(b))
    if key is SortKey.STATUS:
        return lambda a, b: compare_text(a.status or "", b.status or "")
    if key is SortKey.VALUE:
        return lambda a, b: _sign(a.value - b.value)
    if key is SortKey.LAST_CONTACT:
        return lambda a, b: _sign(a.last_contact - b.last_contact)
    return lambda a, b: 0


def compare_by(key: SortKey | str, order: SortOrder | str = SortOrder.ASC) -> Comparator:
    """Return a three-way comparator for *key*; ``desc`` negates it."""
    key = SortKey.parse(key)
    order = SortOrder(order)
    ascending = _ascending(key)
    if order is SortOrder.DESC:
        return lambda a, b: -ascending(a, b)
    return ascending


def sort_records(records: Iterable[Record], state: SortState) -> list[Record]:
    """Return a new, stably sorted list; the input is left untouched."""
    comparator = compare_by(state.key, state.order)
    return sorted(records, key=cmp_to_key(comparator))
