"""Tests for the JSON snapshot store."""

from __future__ import annotations

import json

import pytest

from crmview.models import RecordKind
from crmview.store import JsonSnapshotStore


@pytest.fixture()
def snapshot(tmp_path):
    path = tmp_path / "crm.json"
    path.write_text(json.dumps({
        "investors": [{
            "id": "i1", "company": "Fund", "check_size": 100, "priority": "High",
            "contacts": [{"id": "c1", "name": "Jane", "email": "jane@fund.com"}],
        }],
        "partners": [{"id": "p1", "company": "Acme", "kind": "partner"}],
        "tasks": [{"id": "t1", "text": "Call", "status": "in progress"}],
    }))
    return path


class TestLoad:

    def test_typed_views(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        accounts = store.accounts()
        assert [a.id for a in accounts] == ["i1", "p1"]
        assert accounts[0].kind is RecordKind.INVESTOR
        assert [c.id for c in store.contacts()] == ["c1"]
        assert store.tasks()[0].status == "InProgress"

    def test_single_collection(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        assert [a.id for a in store.accounts("partners")] == ["p1"]
        with pytest.raises(ValueError):
            store.accounts("tasks")

    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonSnapshotStore(tmp_path / "nope.json")
        assert store.accounts() == []
        assert store.tasks() == []

    def test_unknown_collection_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"widgets": []}))
        with pytest.raises(ValueError):
            JsonSnapshotStore(path)


class TestMutations:

    def test_create_item_persists(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        result = store.create_item("customers", {"company": "Initech"})
        assert result.success
        reloaded = JsonSnapshotStore(snapshot)
        created = reloaded.accounts("customers")[0]
        assert created.id == result.id
        assert created.kind is RecordKind.CUSTOMER

    def test_unknown_collection(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        with pytest.raises(KeyError):
            store.create_item("widgets", {})

    def test_update_and_delete_item(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        assert store.update_item("partners", "p1", {"status": "Active", "id": "x"}).success
        assert store.accounts("partners")[0].status == "Active"
        assert store.delete_item("partners", "p1").success
        assert not store.delete_item("partners", "p1").success

    def test_contact_lifecycle(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        created = store.create_contact("investors", "i1", {"name": "Bob", "email": "b@x.com"})
        assert created.success
        assert store.update_contact("investors", "i1", created.id, {"tags": ["vip"]}).success
        bob = [c for c in store.contacts() if c.id == created.id][0]
        assert bob.tags == ["vip"]
        assert bob.crm_item_id == "i1"
        assert store.delete_contact("investors", "i1", created.id).success
        assert [c.id for c in store.contacts()] == ["c1"]

    def test_contact_errors(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        assert not store.create_contact("investors", "missing", {}).success
        result = store.update_contact("investors", "i1", "missing", {})
        assert result.message == "Contact not found: missing"

    def test_notes(self, snapshot):
        store = JsonSnapshotStore(snapshot)
        store.add_note("tasks", "t1", "first")
        store.add_note("tasks", "t1", "second")
        notes = store.tasks()[0].notes
        assert notes[0].timestamp < notes[1].timestamp

        assert store.update_note("tasks", "t1", notes[0].timestamp, "edited").success
        assert store.delete_note("tasks", "t1", notes[1].timestamp).success
        assert [n.text for n in store.tasks()[0].notes] == ["edited"]
        assert not store.delete_note("tasks", "t1", 1).success
        assert not store.update_note("tasks", "missing", 1, "x").success
