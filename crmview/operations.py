"""Single-record create/update/delete with up-front validation.

Validation problems raise ``ValidationError`` before any backend call is
made.  Backend outcomes are returned as ``ActionResult`` unchanged.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .actions import ActionResult, CrmActions
from .bulk import normalize_tag
from .contacts import get_linked_account
from .models import Contact, CrmItem, Priority, RecordKind

log = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Input rejected before reaching the backend."""


class LinkedAccountNotFound(ValidationError):
    """A contact operation needs the contact's account and none holds it."""

    def __init__(self, contact: Contact, action: str) -> None:
        self.contact = contact
        super().__init__(f"Cannot {action}: No linked account found.")


def _clean(value) -> str:
    return str(value or "").strip()


def _linked_account(contact: Contact, accounts: Sequence[CrmItem], action: str) -> CrmItem:
    account = get_linked_account(contact, accounts)
    if account is None:
        raise LinkedAccountNotFound(contact, action)
    return account


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

_ACCOUNT_COMMON = (
    "status", "next_action", "next_action_date", "next_action_time",
    "website", "industry", "description",
)

_ACCOUNT_SPECIFIC = {
    RecordKind.INVESTOR: ("check_size", "stage"),
    RecordKind.CUSTOMER: ("deal_value", "deal_stage"),
    RecordKind.PARTNER: ("opportunity", "partner_type"),
}


def account_payload(collection: str, form: dict) -> dict:
    """Build the create/update payload for an account form.

    Raises ValidationError when the company name is blank.
    """
    company = _clean(form.get("company"))
    if not company:
        raise ValidationError("Company name is required")
    kind = RecordKind.from_collection(collection)
    if not kind.is_account:
        raise ValidationError(f"{collection} is not an account collection")

    payload: dict = {
        "company": company,
        "priority": Priority.parse(form.get("priority")).value,
    }
    for key in _ACCOUNT_COMMON + _ACCOUNT_SPECIFIC[kind]:
        value = form.get(key)
        if value not in (None, ""):
            payload[key] = value
    return payload


def add_account(actions: CrmActions, collection: str, form: dict) -> ActionResult:
    return actions.create_item(collection, account_payload(collection, form))


def edit_account(
    actions: CrmActions, collection: str, account_id: str, form: dict,
) -> ActionResult:
    return actions.update_item(collection, account_id, account_payload(collection, form))


def delete_account(actions: CrmActions, collection: str, account_id: str) -> ActionResult:
    return actions.delete_item(collection, account_id)


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------

_CONTACT_FIELDS = ("name", "email", "phone", "title", "linkedin")


def contact_payload(form: dict) -> dict:
    """Trimmed contact fields; name and email are required."""
    payload = {key: _clean(form.get(key)) for key in _CONTACT_FIELDS}
    if not payload["name"] or not payload["email"]:
        raise ValidationError("Name and email are required")
    return payload


def add_contact(
    actions: CrmActions,
    collection: str,
    form: dict,
    *,
    account_id: str | None = None,
    new_account_name: str | None = None,
) -> ActionResult:
    """Create a contact under *account_id*, or under a new account.

    When no account id is given, an account named *new_account_name* is
    created first.  Without either, the contact cannot be filed.
    """
    payload = contact_payload(form)
    if not account_id and _clean(new_account_name):
        created = actions.create_item(collection, {"company": _clean(new_account_name)})
        if created.success and created.id:
            account_id = created.id
        else:
            log.warning("Could not create account %r: %s", new_account_name, created.message)
    if not account_id:
        raise ValidationError("Please select or create a CRM account to add this contact to.")
    return actions.create_contact(collection, account_id, payload)


def edit_contact(
    actions: CrmActions,
    collection: str,
    contact: Contact,
    accounts: Sequence[CrmItem],
    form: dict,
) -> ActionResult:
    payload = contact_payload(form)
    account = _linked_account(contact, accounts, "update contact")
    return actions.update_contact(collection, account.id, contact.id, payload)


def delete_contact(
    actions: CrmActions,
    collection: str,
    contact: Contact,
    accounts: Sequence[CrmItem],
) -> ActionResult:
    account = _linked_account(contact, accounts, "delete contact")
    return actions.delete_contact(collection, account.id, contact.id)


def add_contact_tag(
    actions: CrmActions,
    collection: str,
    contact: Contact,
    accounts: Sequence[CrmItem],
    tag: str,
) -> ActionResult:
    """Append a lower-cased tag; a tag already present is rejected."""
    tag = normalize_tag(tag)
    if not tag:
        raise ValidationError("Please enter a tag")
    account = _linked_account(contact, accounts, "add tag")
    if tag in contact.tags:
        raise ValidationError("Tag already exists on this contact")
    return actions.update_contact(
        collection, account.id, contact.id, {"tags": [*contact.tags, tag]},
    )


def remove_contact_tag(
    actions: CrmActions,
    collection: str,
    contact: Contact,
    accounts: Sequence[CrmItem],
    tag: str,
) -> ActionResult:
    account = _linked_account(contact, accounts, "remove tag")
    remaining = [t for t in contact.tags if t != tag]
    return actions.update_contact(collection, account.id, contact.id, {"tags": remaining})


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

def _note_text(text: str | None) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Note text is required")
    return text


def add_note(actions: CrmActions, collection: str, item_id: str, text: str) -> ActionResult:
    return actions.add_note(collection, item_id, _note_text(text))


def update_note(
    actions: CrmActions, collection: str, item_id: str, timestamp: int, text: str,
) -> ActionResult:
    return actions.update_note(collection, item_id, timestamp, _note_text(text))


def delete_note(
    actions: CrmActions, collection: str, item_id: str, timestamp: int,
) -> ActionResult:
    return actions.delete_note(collection, item_id, timestamp)
