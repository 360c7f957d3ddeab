"""Derived contact-to-account relation.

A contact is linked to the account whose ``contacts`` list includes it.
The link is never stored on the contact itself; the accounts snapshot is
the only source of truth.
"""

from __future__ import annotations

from typing import Iterable

from .models import Contact, CrmItem


def get_linked_account(contact: Contact, accounts: Iterable[CrmItem]) -> CrmItem | None:
    """Return the first account whose contacts include *contact*, or None."""
    for account in accounts:
        if any(c.id == contact.id for c in account.contacts):
            return account
    return None


def is_contact_linked(contact: Contact, accounts: Iterable[CrmItem]) -> bool:
    return get_linked_account(contact, accounts) is not None


def flatten_contacts(accounts: Iterable[CrmItem]) -> list[Contact]:
    """Collect every embedded contact, first occurrence of each id wins."""
    seen: set[str] = set()
    result: list[Contact] = []
    for account in accounts:
        for contact in account.contacts:
            if contact.id in seen:
                continue
            seen.add(contact.id)
            result.append(contact)
    return result
