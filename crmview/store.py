"""JSON snapshot file that implements the ``CrmActions`` interface.

The snapshot maps collection names to lists of record dicts::

    {"investors": [...], "customers": [...], "partners": [...], "tasks": [...]}

Contacts live inside their account's ``contacts`` list.  Every
successful mutation rewrites the file.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from . import config
from .actions import ActionResult
from .contacts import flatten_contacts
from .models import ACCOUNT_COLLECTIONS, Contact, CrmItem, RecordKind, Task

log = logging.getLogger(__name__)

COLLECTIONS = (*ACCOUNT_COLLECTIONS, "tasks")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class JsonSnapshotStore:
    """Load, query, and mutate a snapshot file."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else config.SNAPSHOT_PATH
        self.data: dict[str, list[dict]] = {c: [] for c in COLLECTIONS}
        self._last_ts = 0
        if self.path.exists():
            self.load()

    # -- persistence --------------------------------------------------------

    def load(self) -> None:
        with open(self.path, encoding="utf-8") as f:
            raw = json.load(f)
        unknown = set(raw) - set(COLLECTIONS)
        if unknown:
            raise ValueError(f"Unknown snapshot collections: {', '.join(sorted(unknown))}")
        self.data = {c: list(raw.get(c) or []) for c in COLLECTIONS}
        log.debug("Loaded snapshot from %s", self.path)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2)

    def _timestamp(self) -> int:
        """Strictly increasing millisecond timestamp (notes are keyed by it)."""
        ts = max(_now_ms(), self._last_ts + 1)
        self._last_ts = ts
        return ts

    # -- typed views --------------------------------------------------------

    def accounts(self, collection: str | None = None) -> list[CrmItem]:
        names = [collection] if collection else list(ACCOUNT_COLLECTIONS)
        result: list[CrmItem] = []
        for name in names:
            kind = RecordKind.from_collection(name)
            if not kind.is_account:
                raise ValueError(f"{name} is not an account collection")
            result.extend(CrmItem.from_dict(d, kind) for d in self.data[name])
        return result

    def contacts(self, collection: str | None = None) -> list[Contact]:
        return flatten_contacts(self.accounts(collection))

    def tasks(self) -> list[Task]:
        return [Task.from_dict(d) for d in self.data["tasks"]]

    # -- lookup helpers -----------------------------------------------------

    def _collection(self, name: str) -> list[dict]:
        if name not in self.data:
            raise KeyError(f"Unknown collection: {name}")
        return self.data[name]

    def _find(self, collection: str, item_id: str) -> dict | None:
        for item in self._collection(collection):
            if item.get("id") == item_id:
                return item
        return None

    def _find_contact(self, account: dict, contact_id: str) -> dict | None:
        for contact in account.get("contacts") or []:
            if contact.get("id") == contact_id:
                return contact
        return None

    # -- CrmActions ---------------------------------------------------------

    def create_item(self, collection: str, data: dict) -> ActionResult:
        items = self._collection(collection)
        item = dict(data)
        item["id"] = _uuid()
        item.setdefault("created_at", self._timestamp())
        item.setdefault("notes", [])
        item.setdefault("tags", [])
        if collection in ACCOUNT_COLLECTIONS:
            item["kind"] = RecordKind.from_collection(collection).value
            item.setdefault("contacts", [])
        items.append(item)
        self.save()
        return ActionResult.ok(item["id"])

    def update_item(self, collection: str, item_id: str, patch: dict) -> ActionResult:
        item = self._find(collection, item_id)
        if item is None:
            return ActionResult.fail(f"{collection} item not found: {item_id}")
        item.update({k: v for k, v in patch.items() if k != "id"})
        self.save()
        return ActionResult.ok(item_id)

    def delete_item(self, collection: str, item_id: str) -> ActionResult:
        items = self._collection(collection)
        item = self._find(collection, item_id)
        if item is None:
            return ActionResult.fail(f"{collection} item not found: {item_id}")
        items.remove(item)
        self.save()
        return ActionResult.ok(item_id)

    def create_contact(self, collection: str, account_id: str, data: dict) -> ActionResult:
        account = self._find(collection, account_id)
        if account is None:
            return ActionResult.fail(f"Account not found: {account_id}")
        contact = dict(data)
        contact["id"] = _uuid()
        contact["crm_item_id"] = account_id
        contact.setdefault("created_at", self._timestamp())
        contact.setdefault("notes", [])
        contact.setdefault("tags", [])
        account.setdefault("contacts", []).append(contact)
        self.save()
        return ActionResult.ok(contact["id"])

    def update_contact(
        self, collection: str, account_id: str, contact_id: str, patch: dict,
    ) -> ActionResult:
        account = self._find(collection, account_id)
        contact = self._find_contact(account, contact_id) if account else None
        if contact is None:
            return ActionResult.fail(f"Contact not found: {contact_id}")
        contact.update({k: v for k, v in patch.items() if k != "id"})
        self.save()
        return ActionResult.ok(contact_id)

    def delete_contact(self, collection: str, account_id: str, contact_id: str) -> ActionResult:
        account = self._find(collection, account_id)
        contact = self._find_contact(account, contact_id) if account else None
        if contact is None:
            return ActionResult.fail(f"Contact not found: {contact_id}")
        account["contacts"].remove(contact)
        self.save()
        return ActionResult.ok(contact_id)

    def add_note(self, collection: str, item_id: str, text: str) -> ActionResult:
        item = self._find(collection, item_id)
        if item is None:
            return ActionResult.fail(f"{collection} item not found: {item_id}")
        note = {"text": text, "timestamp": self._timestamp()}
        item.setdefault("notes", []).append(note)
        self.save()
        return ActionResult.ok(item_id)

    def update_note(
        self, collection: str, item_id: str, timestamp: int, text: str,
    ) -> ActionResult:
        item = self._find(collection, item_id)
        for note in (item or {}).get("notes") or []:
            if note.get("timestamp") == timestamp:
                note["text"] = text
                self.save()
                return ActionResult.ok(item_id)
        return ActionResult.fail(f"Note not found: {timestamp}")

    def delete_note(self, collection: str, item_id: str, timestamp: int) -> ActionResult:
        item = self._find(collection, item_id)
        notes = (item or {}).get("notes") or []
        kept = [n for n in notes if n.get("timestamp") != timestamp]
        if len(kept) == len(notes):
            return ActionResult.fail(f"Note not found: {timestamp}")
        item["notes"] = kept
        self.save()
        return ActionResult.ok(item_id)
