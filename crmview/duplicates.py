"""Near-duplicate detection for accounts, contacts, and tasks.

The default sweep is single-pass: each unprocessed record becomes a seed,
every later unprocessed record matching the seed joins its group, and
those matches are never used as seeds themselves.  So if A~B and B~C but
not A~C, the result is {A, B} and C is considered on its own.  Passing
``transitive=True`` switches to connected components (union-find).
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Sequence

import phonenumbers

from . import config
from .models import Contact, CrmItem, Record

log = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"[^\w\s]")
_NON_DIGIT_RE = re.compile(r"\D")

Matcher = Callable[[Record, Record], bool]


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def normalize_company(raw: str | None) -> str:
    """Lowercase and trim."""
    return (raw or "").strip().lower()


def normalize_name(raw: str | None) -> str:
    """Lowercase, trim, and drop punctuation."""
    return _NON_WORD_RE.sub("", (raw or "").lower()).strip()


def normalize_email(raw: str | None) -> str:
    return normalize_name(raw)


def normalize_phone_digits(raw: str | None) -> str:
    """Keep only the digits of *raw*."""
    return _NON_DIGIT_RE.sub("", raw or "")


def phone_e164(raw: str | None, country_code: str | None = None) -> str | None:
    """Parse *raw* to E.164, or None when it is not a possible number."""
    if not raw:
        return None
    try:
        parsed = phonenumbers.parse(raw, country_code or config.DEFAULT_PHONE_COUNTRY)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


# ---------------------------------------------------------------------------
# Pair rules
# ---------------------------------------------------------------------------

def _names_overlap(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return a == b or a in b or b in a


def phones_match(a: str | None, b: str | None, *, e164: bool = False) -> bool:
    """Equal digit strings match; with *e164*, equal E.164 forms match too."""
    digits_a = normalize_phone_digits(a)
    digits_b = normalize_phone_digits(b)
    if not digits_a or not digits_b:
        return False
    if digits_a == digits_b:
        return True
    if not e164:
        return False
    e164_a = phone_e164(a)
    return e164_a is not None and e164_a == phone_e164(b)


def contacts_match(a: Contact, b: Contact, *, e164: bool = False) -> bool:
    email_a = normalize_email(a.email)
    if email_a and email_a == normalize_email(b.email):
        return True
    if phones_match(a.phone, b.phone, e164=e164):
        return True
    return _names_overlap(normalize_name(a.name), normalize_name(b.name))


def is_duplicate(a: Record, b: Record, *, e164: bool = False) -> bool:
    """Return True if *b* looks like the same entity as *a*."""
    if a.kind is not b.kind:
        return False
    if isinstance(a, Contact) and isinstance(b, Contact):
        return contacts_match(a, b, e164=e164)
    if isinstance(a, CrmItem):
        return _names_overlap(normalize_company(a.company), normalize_company(b.label))
    return _names_overlap(normalize_company(a.label), normalize_company(b.label))


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------

def _single_pass(records: Sequence[Record], match: Matcher) -> list[list[Record]]:
    groups: list[list[Record]] = []
    processed: set[str] = set()
    for index, seed in enumerate(records):
        if seed.id in processed:
            continue
        processed.add(seed.id)
        group = [seed]
        for other in records[index + 1:]:
            if other.id in processed:
                continue
            if match(seed, other):
                group.append(other)
                processed.add(other.id)
        if len(group) > 1:
            groups.append(group)
    return groups


def _transitive(records: Sequence[Record], match: Matcher) -> list[list[Record]]:
    # Index-based union-find; duplicate ids keep only their first record.
    unique: list[Record] = []
    seen: set[str] = set()
    for record in records:
        if record.id not in seen:
            seen.add(record.id)
            unique.append(record)

    parent = list(range(len(unique)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(len(unique)):
        for j in range(i + 1, len(unique)):
            if match(unique[i], unique[j]):
                ri, rj = find(i), find(j)
                if ri != rj:
                    parent[max(ri, rj)] = min(ri, rj)

    components: dict[int, list[Record]] = {}
    for i, record in enumerate(unique):
        components.setdefault(find(i), []).append(record)
    return [g for _, g in sorted(components.items()) if len(g) > 1]


def detect_duplicates(
    records: Sequence[Record],
    *,
    transitive: bool = False,
    e164: bool = False,
) -> list[list[Record]]:
    """Group likely duplicates; only groups of two or more are returned.

    Members keep input order and groups are ordered by their first member.
    Phones match on equal digit strings unless *e164* is set, in which case
    numbers that parse to the same E.164 form also match.
    """
    records = list(records)

    def match(a: Record, b: Record) -> bool:
        return is_duplicate(a, b, e164=e164)

    groups = _transitive(records, match) if transitive else _single_pass(records, match)
    log.debug(
        "Duplicate scan over %d records found %d groups (transitive=%s)",
        len(records), len(groups), transitive,
    )
    return groups
