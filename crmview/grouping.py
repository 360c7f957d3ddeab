"""Kanban bucketing and summary analytics over a filtered record set."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from .filters import is_overdue, today_string
from .models import TASK_STATUSES, CrmItem, Priority, Record


def group_by_status(
    records: Iterable[Record],
    statuses: Sequence[str] = TASK_STATUSES,
) -> dict[str, list[Record]]:
    """Bucket *records* into the fixed *statuses* columns, keeping input order.

    Every bucket is present even when empty.  Records whose status is not
    one of *statuses* are left out of the board.
    """
    buckets: dict[str, list[Record]] = {s: [] for s in statuses}
    for record in records:
        bucket = buckets.get(record.status)
        if bucket is not None:
            bucket.append(record)
    return buckets


def status_counts(
    records: Iterable[Record],
    statuses: Sequence[str] = TASK_STATUSES,
) -> dict[str, int]:
    """Per-status totals plus ``total``; meant for the unfiltered set."""
    records = list(records)
    counts = {"total": len(records)}
    for status in statuses:
        counts[status] = sum(1 for r in records if r.status == status)
    return counts


@dataclass
class Analytics:
    """Summary figures for the currently visible records."""

    total: int
    high_priority_count: int
    overdue_count: int
    total_value: float
    with_contacts_count: int
    avg_contacts_per_record: float


def _round_1(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _record_value(record: Record) -> float:
    if isinstance(record, CrmItem):
        return (record.check_size or 0) + (record.deal_value or 0)
    return 0


def compute_analytics(records: Iterable[Record], *, today: str | None = None) -> Analytics:
    """Compute counts and totals over *records* (normally the filtered view)."""
    records = list(records)
    day = today or today_string()
    total = len(records)
    contact_total = sum(r.contact_count for r in records)
    return Analytics(
        total=total,
        high_priority_count=sum(1 for r in records if r.priority is Priority.HIGH),
        overdue_count=sum(1 for r in records if is_overdue(r, day)),
        total_value=sum(_record_value(r) for r in records),
        with_contacts_count=sum(1 for r in records if r.contact_count > 0),
        avg_contacts_per_record=_round_1(contact_total / total) if total else 0.0,
    )
