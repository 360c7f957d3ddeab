"""Collaborator interface for persisting CRM changes.

The view engine never writes records itself.  Every mutation goes
through an object implementing ``CrmActions``; each call reports its own
outcome in an ``ActionResult`` instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class ActionResult:
    success: bool
    id: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, id: str | None = None, message: str | None = None) -> ActionResult:
        return cls(True, id, message)

    @classmethod
    def fail(cls, message: str) -> ActionResult:
        return cls(False, None, message)


class CrmActions(Protocol):
    """Backend operations, addressed by collection name and record id."""

    def create_item(self, collection: str, data: dict) -> ActionResult: ...

    def update_item(self, collection: str, item_id: str, patch: dict) -> ActionResult: ...

    def delete_item(self, collection: str, item_id: str) -> ActionResult: ...

    def create_contact(self, collection: str, account_id: str, data: dict) -> ActionResult: ...

    def update_contact(
        self, collection: str, account_id: str, contact_id: str, patch: dict,
    ) -> ActionResult: ...

    def delete_contact(
        self, collection: str, account_id: str, contact_id: str,
    ) -> ActionResult: ...

    def add_note(self, collection: str, item_id: str, text: str) -> ActionResult: ...

    def update_note(
        self, collection: str, item_id: str, timestamp: int, text: str,
    ) -> ActionResult: ...

    def delete_note(self, collection: str, item_id: str, timestamp: int) -> ActionResult: ...
