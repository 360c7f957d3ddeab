"""Filter predicates for CRM records.

Every clause is independent and AND-combined.  A clause whose selector
set is empty (or whose string is blank) is skipped entirely, so an empty
``FilterState`` matches every record.  Filtering never reorders or
mutates its input; sorting is a separate step (see ``crmview.sorting``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from . import config
from .contacts import is_contact_linked
from .models import Contact, CrmItem, Priority, Record, Task

log = logging.getLogger(__name__)

Predicate = Callable[[Record], bool]


class CountFilter(Enum):
    ANY = "any"
    NONE = "none"
    HAS = "has"

    def matches(self, count: int) -> bool:
        if self is CountFilter.NONE:
            return count == 0
        if self is CountFilter.HAS:
            return count > 0
        return True


class LinkStatus(Enum):
    ALL = "all"
    LINKED = "linked"
    UNLINKED = "unlinked"


@dataclass
class FilterState:
    """Declarative filter selections for one list view."""

    search: str = ""
    selected_categories: set[str] = field(default_factory=set)
    selected_statuses: set[str] = field(default_factory=set)
    selected_priorities: set[Priority] = field(default_factory=set)
    selected_tags: set[str] = field(default_factory=set)
    only_mine: bool = False
    current_user_id: str | None = None
    high_priority_only: bool = False
    overdue_only: bool = False
    contact_count: CountFilter = CountFilter.ANY
    note_count: CountFilter = CountFilter.ANY
    meeting_count: CountFilter = CountFilter.ANY
    link_status: LinkStatus = LinkStatus.ALL
    title: str = ""


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def today_string(tz_name: str | None = None) -> str:
    """Return today's date as ``YYYY-MM-DD`` in the configured timezone."""
    tz = ZoneInfo(tz_name or config.CRM_TIMEZONE)
    return datetime.now(tz).date().isoformat()


def is_overdue(record: Record, today: str) -> bool:
    """A record is overdue when its action date is set and before *today*.

    Dates are ``YYYY-MM-DD`` strings, so lexical order is date order.
    """
    action_date = record.action_date
    return bool(action_date) and action_date < today


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

def search_fields(record: Record) -> list[str]:
    """Return the text fields a free-text search looks at for *record*."""
    if isinstance(record, CrmItem):
        fields = [record.company, record.status, record.next_action or ""]
        for contact in record.contacts:
            fields.append(contact.name)
            fields.append(contact.email)
        return fields
    if isinstance(record, Contact):
        return [record.name, record.email, record.phone or "", record.title or ""]
    if isinstance(record, Task):
        return [record.text, record.description]
    return [record.label]


def matches_search(record: Record, query: str) -> bool:
    """Case-insensitive substring match; a blank query matches everything."""
    q = query.strip().lower()
    if not q:
        return True
    return any(q in value.lower() for value in search_fields(record) if value)


# ---------------------------------------------------------------------------
# Predicate construction
# ---------------------------------------------------------------------------

def _meeting_count(record: Record) -> int:
    return len(record.meetings) if isinstance(record, Contact) else 0


def build_predicate(
    state: FilterState,
    *,
    today: str | None = None,
    accounts: list[CrmItem] | None = None,
) -> Predicate:
    """Combine the active clauses of *state* into a single predicate.

    *accounts* is the snapshot used to resolve the derived contact link
    for the ``link_status`` clause.  *today* defaults to the current date
    in ``config.CRM_TIMEZONE``.
    """
    clauses: list[Predicate] = []

    if state.selected_categories:
        categories = state.selected_categories
        clauses.append(lambda r: r.category in categories)

    if state.selected_statuses:
        statuses = state.selected_statuses
        clauses.append(lambda r: r.status in statuses)

    if state.selected_priorities:
        priorities = {Priority.parse(p) for p in state.selected_priorities}
        clauses.append(lambda r: r.priority in priorities)

    if state.selected_tags:
        tags = state.selected_tags
        clauses.append(lambda r: any(t in tags for t in r.tags))

    if state.search.strip():
        query = state.search
        clauses.append(lambda r: matches_search(r, query))

    if state.only_mine:
        user_id = state.current_user_id
        clauses.append(lambda r: user_id is not None and r.assigned_to == user_id)

    if state.high_priority_only:
        clauses.append(lambda r: r.priority is Priority.HIGH)

    if state.overdue_only:
        day = today or today_string()
        clauses.append(lambda r: is_overdue(r, day))

    if state.contact_count is not CountFilter.ANY:
        wanted = state.contact_count
        clauses.append(lambda r: wanted.matches(r.contact_count))

    if state.note_count is not CountFilter.ANY:
        wanted_notes = state.note_count
        clauses.append(lambda r: wanted_notes.matches(len(r.notes)))

    if state.meeting_count is not CountFilter.ANY:
        wanted_meetings = state.meeting_count
        clauses.append(lambda r: wanted_meetings.matches(_meeting_count(r)))

    if state.link_status is not LinkStatus.ALL:
        snapshot = accounts or []
        want_linked = state.link_status is LinkStatus.LINKED
        clauses.append(
            lambda r: isinstance(r, Contact)
            and is_contact_linked(r, snapshot) == want_linked
        )

    if state.title.strip():
        title_query = state.title.strip().lower()
        clauses.append(
            lambda r: isinstance(r, Contact)
            and bool(r.title)
            and title_query in r.title.lower()
        )

    def predicate(record: Record) -> bool:
        return all(clause(record) for clause in clauses)

    return predicate


def filter_records(
    records: Iterable[Record],
    state: FilterState,
    *,
    today: str | None = None,
    accounts: list[CrmItem] | None = None,
) -> list[Record]:
    """Return the records passing every active clause, in input order."""
    records = list(records)
    predicate = build_predicate(state, today=today, accounts=accounts)
    result = [r for r in records if predicate(r)]
    log.debug("Filtered %d records down to %d", len(records), len(result))
    return result


def has_active_filters(state: FilterState) -> bool:
    """Return True if any clause in *state* would constrain the result."""
    return bool(
        state.search.strip()
        or state.selected_categories
        or state.selected_statuses
        or state.selected_priorities
        or state.selected_tags
        or state.only_mine
        or state.high_priority_only
        or state.overdue_only
        or state.contact_count is not CountFilter.ANY
        or state.note_count is not CountFilter.ANY
        or state.meeting_count is not CountFilter.ANY
        or state.link_status is not LinkStatus.ALL
        or state.title.strip()
    )


# ---------------------------------------------------------------------------
# Facets
# ---------------------------------------------------------------------------

def all_tags(records: Iterable[Record]) -> list[str]:
    """Sorted unique tags across *records*."""
    return sorted({tag for r in records for tag in r.tags})


def all_statuses(records: Iterable[Record]) -> list[str]:
    """Sorted unique non-empty statuses across *records*."""
    return sorted({r.status for r in records if r.status})
