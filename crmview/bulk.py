"""Bulk operations over the current selection.

Items are processed one at a time with a short pause between backend
calls.  A failing item is recorded and the loop moves on; the batch is
only summarised once every item has been attempted (or the batch was
cancelled between items).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Sequence, TypeVar

from . import config
from .actions import ActionResult, CrmActions
from .contacts import get_linked_account
from .csv_io import export_records
from .models import Contact, CrmItem, Record
from .selection import SelectionState
from .throttle import Pacer

log = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class BulkOp(Enum):
    DELETE = "delete"
    EXPORT = "export"
    TAG = "tag"


@dataclass
class BulkError:
    record_id: str
    label: str
    error: str


@dataclass
class BulkReport:
    """Outcome of a bulk run."""

    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[BulkError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def attempted(self) -> int:
        return self.success + self.failed + self.skipped


def run_sequential(
    items: Sequence[R],
    operation: Callable[[R], ActionResult | None],
    *,
    delay: float | None = None,
    cancel: threading.Event | None = None,
) -> BulkReport:
    """Apply *operation* to each item in order, isolating failures.

    *operation* returns an ``ActionResult``, or None when the item needs
    no change (counted as skipped).  A result with ``success=False`` or a
    raised exception counts as failed.  When *cancel* is set, no further
    items are started.
    """
    pacer = Pacer.from_millis(config.BULK_OP_DELAY_MS) if delay is None else Pacer(delay)
    report = BulkReport()

    for item in items:
        if cancel is not None and cancel.is_set():
            report.cancelled = True
            log.info("Bulk run cancelled after %d of %d items", report.attempted, len(items))
            break
        pacer.wait()
        try:
            result = operation(item)
        except Exception as exc:
            report.failed += 1
            report.errors.append(BulkError(item.id, item.label, str(exc)))
            log.warning("Bulk item %s raised: %s", item.id, exc)
            continue

        if result is None:
            report.skipped += 1
        elif result.success:
            report.success += 1
        else:
            message = result.message or "Unknown error"
            report.failed += 1
            report.errors.append(BulkError(item.id, item.label, message))
            log.warning("Bulk item %s failed: %s", item.id, message)

    log.info(
        "Bulk run finished: %d succeeded, %d failed, %d skipped",
        report.success, report.failed, report.skipped,
    )
    return report


# ---------------------------------------------------------------------------
# Concrete bulk actions
# ---------------------------------------------------------------------------

def bulk_delete_items(
    actions: CrmActions,
    collection: str,
    records: Sequence[Record],
    **kwargs,
) -> BulkReport:
    """Delete accounts or tasks one by one."""
    return run_sequential(
        records,
        lambda r: actions.delete_item(collection, r.id),
        **kwargs,
    )


def bulk_delete_contacts(
    actions: CrmActions,
    collection: str,
    contacts: Sequence[Contact],
    accounts: Sequence[CrmItem],
    **kwargs,
) -> BulkReport:
    """Delete contacts through their linked accounts.

    A contact with no linked account is counted as failed.
    """
    def delete(contact: Contact) -> ActionResult:
        account = get_linked_account(contact, accounts)
        if account is None:
            return ActionResult.fail("No linked account found")
        return actions.delete_contact(collection, account.id, contact.id)

    return run_sequential(contacts, delete, **kwargs)


def normalize_tag(raw: str) -> str:
    return raw.strip().lower()


def bulk_tag_contacts(
    actions: CrmActions,
    collection: str,
    contacts: Sequence[Contact],
    accounts: Sequence[CrmItem],
    tag: str,
    **kwargs,
) -> BulkReport:
    """Add *tag* to each contact; contacts that already have it are skipped."""
    tag = normalize_tag(tag)
    if not tag:
        raise ValueError("Please enter a tag")

    def add(contact: Contact) -> ActionResult | None:
        if tag in contact.tags:
            return None
        account = get_linked_account(contact, accounts)
        if account is None:
            return ActionResult.fail("No linked account found")
        return actions.update_contact(
            collection, account.id, contact.id, {"tags": [*contact.tags, tag]},
        )

    return run_sequential(contacts, add, **kwargs)


def bulk_export(
    records: Sequence[Record],
    *,
    accounts: Sequence[CrmItem] = (),
    include_bom: bool | None = None,
) -> str:
    """Return the CSV text for *records*; writing it out is the caller's job."""
    return export_records(records, accounts=accounts, include_bom=include_bom)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

BulkHandler = Callable[[list[Record]], object]


class BulkCoordinator:
    """Resolve the selection and hand it to the handler for a bulk op.

    Bulk mode is switched off after every dispatch, so a finished batch
    never leaves ids behind for the next one.
    """

    def __init__(
        self,
        selection: SelectionState,
        handlers: dict[BulkOp, BulkHandler] | None = None,
    ) -> None:
        self.selection = selection
        self.handlers: dict[BulkOp, BulkHandler] = dict(handlers or {})

    def register(self, kind: BulkOp, handler: BulkHandler) -> None:
        self.handlers[kind] = handler

    def dispatch(self, kind: BulkOp | str, records: Iterable[Record]) -> object:
        """Run the *kind* handler on the selected subset of *records*."""
        kind = BulkOp(kind)
        handler = self.handlers.get(kind)
        if handler is None:
            raise ValueError(f"No handler registered for bulk {kind.value}")
        selected = self.selection.selected_records(records)
        log.info("Dispatching bulk %s over %d records", kind.value, len(selected))
        try:
            return handler(selected)
        finally:
            self.selection.disable_selection_mode()
