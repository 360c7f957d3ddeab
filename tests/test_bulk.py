"""Tests for sequential bulk operations and the bulk coordinator."""

from __future__ import annotations

import threading

import pytest

from crmview.actions import ActionResult
from crmview.bulk import (
    BulkCoordinator,
    BulkOp,
    BulkReport,
    bulk_delete_contacts,
    bulk_delete_items,
    bulk_export,
    bulk_tag_contacts,
    run_sequential,
)
from crmview.models import Contact, CrmItem, RecordKind, Task
from crmview.selection import SelectionState


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

class _RecordingActions:
    """Backend stand-in that records calls and fails on chosen ids."""

    def __init__(self, fail_ids=(), raise_ids=()):
        self.calls: list[tuple] = []
        self.fail_ids = set(fail_ids)
        self.raise_ids = set(raise_ids)

    def _result(self, record_id):
        if record_id in self.raise_ids:
            raise RuntimeError(f"backend exploded on {record_id}")
        if record_id in self.fail_ids:
            return ActionResult.fail(f"rejected {record_id}")
        return ActionResult.ok(record_id)

    def delete_item(self, collection, item_id):
        self.calls.append(("delete_item", collection, item_id))
        return self._result(item_id)

    def delete_contact(self, collection, account_id, contact_id):
        self.calls.append(("delete_contact", collection, account_id, contact_id))
        return self._result(contact_id)

    def update_contact(self, collection, account_id, contact_id, patch):
        self.calls.append(("update_contact", collection, account_id, contact_id, patch))
        return self._result(contact_id)


@pytest.fixture(autouse=True)
def no_delay(monkeypatch):
    monkeypatch.setattr("crmview.config.BULK_OP_DELAY_MS", 0)


def _tasks(*ids):
    return [Task(id=i, text=f"Task {i}") for i in ids]


@pytest.fixture()
def people():
    jane = Contact(id="c1", name="Jane", email="jane@acme.com", tags=["vip"])
    bob = Contact(id="c2", name="Bob", email="bob@acme.com")
    loose = Contact(id="c3", name="Loose", email="loose@x.com")
    account = CrmItem(id="a1", company="Acme", kind=RecordKind.INVESTOR, contacts=[jane, bob])
    return [jane, bob, loose], [account]


# ===========================================================================
# run_sequential
# ===========================================================================

class TestRunSequential:

    def test_failure_does_not_stop_batch(self):
        actions = _RecordingActions(fail_ids={"t2"})
        report = bulk_delete_items(actions, "tasks", _tasks("t1", "t2", "t3"))
        assert (report.success, report.failed) == (2, 1)
        assert [c[2] for c in actions.calls] == ["t1", "t2", "t3"]
        assert report.errors[0].record_id == "t2"
        assert report.errors[0].error == "rejected t2"

    def test_exception_is_isolated(self):
        actions = _RecordingActions(raise_ids={"t1"})
        report = bulk_delete_items(actions, "tasks", _tasks("t1", "t2"))
        assert (report.success, report.failed) == (1, 1)
        assert "exploded" in report.errors[0].error

    def test_none_counts_as_skipped(self):
        report = run_sequential(_tasks("t1", "t2"), lambda t: None, delay=0)
        assert report == BulkReport(skipped=2)

    def test_failure_without_message(self):
        report = run_sequential(_tasks("t1"), lambda t: ActionResult(False), delay=0)
        assert report.errors[0].error == "Unknown error"

    def test_cancel_between_items(self):
        cancel = threading.Event()
        seen = []

        def op(task):
            seen.append(task.id)
            cancel.set()
            return ActionResult.ok()

        report = run_sequential(_tasks("t1", "t2", "t3"), op, delay=0, cancel=cancel)
        assert seen == ["t1"]
        assert report.cancelled
        assert report.attempted == 1

    def test_empty_batch(self):
        report = run_sequential([], lambda t: ActionResult.ok(), delay=0)
        assert report.attempted == 0
        assert not report.cancelled

    def test_configured_delay_paces_calls(self, monkeypatch):
        monkeypatch.setattr("crmview.config.BULK_OP_DELAY_MS", 250)
        sleeps = []
        monkeypatch.setattr("crmview.throttle.time.monotonic", lambda: 0.0)
        monkeypatch.setattr("crmview.throttle.time.sleep", sleeps.append)
        run_sequential(_tasks("t1", "t2", "t3"), lambda t: ActionResult.ok())
        assert sleeps == [pytest.approx(0.25), pytest.approx(0.25)]


# ===========================================================================
# Concrete bulk actions
# ===========================================================================

class TestBulkContacts:

    def test_delete_goes_through_linked_account(self, people):
        contacts, accounts = people
        actions = _RecordingActions()
        report = bulk_delete_contacts(actions, "investors", contacts, accounts)
        assert report.success == 2
        assert report.failed == 1
        assert report.errors[0].error == "No linked account found"
        assert actions.calls[0] == ("delete_contact", "investors", "a1", "c1")

    def test_tag_skips_existing(self, people):
        contacts, accounts = people
        actions = _RecordingActions()
        report = bulk_tag_contacts(actions, "investors", contacts[:2], accounts, "  VIP ")
        assert (report.success, report.skipped) == (1, 1)
        assert actions.calls == [
            ("update_contact", "investors", "a1", "c2", {"tags": ["vip"]}),
        ]

    def test_tag_appends(self, people):
        contacts, accounts = people
        actions = _RecordingActions()
        bulk_tag_contacts(actions, "investors", [contacts[0]], accounts, "board")
        assert actions.calls[0][4] == {"tags": ["vip", "board"]}
        assert contacts[0].tags == ["vip"]

    def test_blank_tag_rejected(self, people):
        contacts, accounts = people
        with pytest.raises(ValueError):
            bulk_tag_contacts(_RecordingActions(), "investors", contacts, accounts, "  ")

    def test_export_uses_linked_company(self, people):
        contacts, accounts = people
        text = bulk_export(contacts[:1], accounts=accounts, include_bom=False)
        lines = text.split("\n")
        assert lines[0] == "Name,Email,Phone,Title,Company,LinkedIn,Tags"
        assert lines[1] == "Jane,jane@acme.com,,,Acme,,vip"


# ===========================================================================
# Coordinator
# ===========================================================================

class TestBulkCoordinator:

    def test_dispatch_materialises_current_records(self):
        selection = SelectionState(selection_mode=True, selected_ids={"t1", "t3", "gone"})
        received = []
        coordinator = BulkCoordinator(selection, {BulkOp.EXPORT: received.extend})
        coordinator.dispatch("export", _tasks("t1", "t2", "t3"))
        assert [r.id for r in received] == ["t1", "t3"]

    def test_dispatch_leaves_bulk_mode(self):
        selection = SelectionState(selection_mode=True, selected_ids={"t1"})
        coordinator = BulkCoordinator(selection, {BulkOp.DELETE: lambda recs: len(recs)})
        assert coordinator.dispatch(BulkOp.DELETE, _tasks("t1")) == 1
        assert not selection.selection_mode
        assert selection.selected_ids == set()

    def test_handler_error_still_leaves_bulk_mode(self):
        selection = SelectionState(selection_mode=True, selected_ids={"t1"})

        def boom(records):
            raise RuntimeError("nope")

        coordinator = BulkCoordinator(selection, {BulkOp.TAG: boom})
        with pytest.raises(RuntimeError):
            coordinator.dispatch(BulkOp.TAG, _tasks("t1"))
        assert not selection.selection_mode

    def test_unregistered_op(self):
        coordinator = BulkCoordinator(SelectionState())
        with pytest.raises(ValueError):
            coordinator.dispatch(BulkOp.DELETE, [])

    def test_delete_scenario_end_to_end(self):
        tasks = _tasks("t1", "t2", "t3")
        selection = SelectionState()
        selection.enable_selection_mode()
        selection.select_all(tasks)
        actions = _RecordingActions(fail_ids={"t2"})
        coordinator = BulkCoordinator(selection)
        coordinator.register(BulkOp.DELETE, lambda recs: bulk_delete_items(actions, "tasks", recs))

        report = coordinator.dispatch(BulkOp.DELETE, tasks)
        assert (report.success, report.failed) == (2, 1)
        assert [c[2] for c in actions.calls] == ["t1", "t2", "t3"]
