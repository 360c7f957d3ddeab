"""One-call derivation of a list view from a record snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .filters import FilterState, filter_records, today_string
from .grouping import Analytics, compute_analytics, group_by_status
from .models import TASK_STATUSES, CrmItem, Record
from .sorting import SortState, sort_records


@dataclass
class DerivedView:
    records: list[Record]
    groups: dict[str, list[Record]]
    analytics: Analytics
    original_count: int

    @property
    def total_count(self) -> int:
        return len(self.records)


def derive_view(
    records: Sequence[Record],
    filter_state: FilterState | None = None,
    sort_state: SortState | None = None,
    *,
    today: str | None = None,
    accounts: Sequence[CrmItem] | None = None,
    statuses: Sequence[str] = TASK_STATUSES,
) -> DerivedView:
    """Filter, sort, bucket, and summarise *records*.

    Pure: the same arguments always give the same view, and *records*
    is never modified.
    """
    day = today or today_string()
    filtered = filter_records(
        records, filter_state or FilterState(), today=day, accounts=list(accounts or []),
    )
    ordered = sort_records(filtered, sort_state) if sort_state else filtered
    return DerivedView(
        records=ordered,
        groups=group_by_status(ordered, statuses),
        analytics=compute_analytics(ordered, today=day),
        original_count=len(records),
    )
