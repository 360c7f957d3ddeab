"""Data models for CRM records: accounts, contacts, and tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RecordKind(Enum):
    INVESTOR = "investor"
    CUSTOMER = "customer"
    PARTNER = "partner"
    CONTACT = "contact"
    TASK = "task"

    @property
    def collection(self) -> str:
        return _KIND_COLLECTIONS[self]

    @property
    def is_account(self) -> bool:
        return self in ACCOUNT_KINDS

    @classmethod
    def from_collection(cls, name: str) -> RecordKind:
        """Resolve a collection name (``investors``, ``tasks`` ...) to a kind."""
        for kind, coll in _KIND_COLLECTIONS.items():
            if coll == name.lower():
                return kind
        raise ValueError(f"Unknown collection: {name}")

    @classmethod
    def from_fields(cls, data: dict) -> RecordKind:
        """Infer the account kind of an untagged dict from its type-specific field."""
        if "check_size" in data:
            return cls.INVESTOR
        if "deal_value" in data:
            return cls.CUSTOMER
        return cls.PARTNER


_KIND_COLLECTIONS = {
    RecordKind.INVESTOR: "investors",
    RecordKind.CUSTOMER: "customers",
    RecordKind.PARTNER: "partners",
    RecordKind.CONTACT: "contacts",
    RecordKind.TASK: "tasks",
}

ACCOUNT_KINDS = frozenset({RecordKind.INVESTOR, RecordKind.CUSTOMER, RecordKind.PARTNER})
ACCOUNT_COLLECTIONS = ("investors", "customers", "partners")


class Priority(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, raw: str | Priority | None, default: Priority | None = None) -> Priority:
        """Lenient parse: case-insensitive, unknown values fall back to Medium."""
        if isinstance(raw, Priority):
            return raw
        fallback = default or cls.MEDIUM
        if not raw:
            return fallback
        return cls.lookup(raw) or fallback

    @classmethod
    def lookup(cls, raw: str | Priority | None) -> Priority | None:
        """Strict parse for stored records: unknown or blank values give None."""
        if isinstance(raw, Priority):
            return raw
        if not raw:
            return None
        try:
            return cls(raw.strip().capitalize())
        except ValueError:
            return None


_PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class TaskStatus(Enum):
    TODO = "Todo"
    IN_PROGRESS = "InProgress"
    DONE = "Done"

    @classmethod
    def parse(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        key = raw.strip().replace(" ", "").lower()
        for status in cls:
            if status.value.lower() == key:
                return status
        return cls.TODO

    @classmethod
    def normalize(cls, raw: str | None) -> str:
        """Canonical spelling for known statuses; anything else is kept as is."""
        if not raw or not raw.strip():
            return cls.TODO.value
        key = raw.strip().replace(" ", "").lower()
        for status in cls:
            if status.value.lower() == key:
                return status.value
        return raw.strip()


# Kanban column order
TASK_STATUSES: tuple[str, ...] = tuple(s.value for s in TaskStatus)

TASK_CATEGORIES: tuple[str, ...] = (
    "platformTasks",
    "investorTasks",
    "customerTasks",
    "partnerTasks",
    "marketingTasks",
    "financialTasks",
)


@dataclass
class Note:
    """A timestamped note; the timestamp doubles as its identity."""

    text: str
    timestamp: int
    user_id: str | None = None
    user_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "user_name": self.user_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Note:
        return cls(
            text=data.get("text") or "",
            timestamp=int(data.get("timestamp") or 0),
            user_id=data.get("user_id"),
            user_name=data.get("user_name"),
        )


@dataclass
class Record:
    """Fields shared by every CRM record."""

    id: str
    priority: Priority | None = Priority.MEDIUM
    status: str = ""
    tags: list[str] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    assigned_to: str | None = None
    created_at: int = 0

    kind = RecordKind.TASK

    @property
    def label(self) -> str:
        return ""

    @property
    def category(self) -> str:
        return self.kind.collection

    @property
    def action_date(self) -> str | None:
        return None

    @property
    def value(self) -> float:
        return 0

    @property
    def contact_count(self) -> int:
        return 0

    @property
    def last_contact(self) -> int:
        """Most recent note timestamp, 0 when there are no notes."""
        return max((n.timestamp for n in self.notes), default=0)

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "priority": self.priority.value if self.priority else None,
            "status": self.status,
            "tags": list(self.tags),
            "notes": [n.to_dict() for n in self.notes],
            "assigned_to": self.assigned_to,
            "created_at": self.created_at,
        }

    @staticmethod
    def _base_kwargs(data: dict) -> dict:
        return {
            "id": data["id"],
            "priority": Priority.lookup(data.get("priority")),
            "status": data.get("status") or "",
            "tags": list(data.get("tags") or []),
            "notes": [Note.from_dict(n) for n in data.get("notes") or []],
            "assigned_to": data.get("assigned_to"),
            "created_at": int(data.get("created_at") or 0),
        }


@dataclass
class Contact(Record):
    """A person; linked to at most one account through that account's contacts."""

    name: str = ""
    email: str = ""
    phone: str | None = None
    title: str | None = None
    linkedin: str = ""
    meetings: list[dict] = field(default_factory=list)
    crm_item_id: str | None = None

    kind = RecordKind.CONTACT

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self) -> dict:
        d = self._base_dict()
        d.update({
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "title": self.title,
            "linkedin": self.linkedin,
            "meetings": list(self.meetings),
            "crm_item_id": self.crm_item_id,
        })
        return d

    @classmethod
    def from_dict(cls, data: dict) -> Contact:
        return cls(
            **cls._base_kwargs(data),
            name=data.get("name") or "",
            email=data.get("email") or "",
            phone=data.get("phone"),
            title=data.get("title"),
            linkedin=data.get("linkedin") or "",
            meetings=list(data.get("meetings") or []),
            crm_item_id=data.get("crm_item_id"),
        )


@dataclass
class CrmItem(Record):
    """An investor, customer, or partner account."""

    company: str = ""
    kind: RecordKind = RecordKind.PARTNER
    contacts: list[Contact] = field(default_factory=list)
    next_action: str | None = None
    next_action_date: str | None = None
    next_action_time: str | None = None
    website: str | None = None
    industry: str | None = None
    description: str | None = None
    check_size: float | None = None
    stage: str | None = None
    deal_value: float | None = None
    deal_stage: str | None = None
    opportunity: str | None = None
    partner_type: str | None = None

    def __post_init__(self) -> None:
        if not self.kind.is_account:
            raise ValueError(f"CrmItem kind must be an account kind, got {self.kind.value}")

    @property
    def label(self) -> str:
        return self.company

    @property
    def action_date(self) -> str | None:
        return self.next_action_date or None

    @property
    def value(self) -> float:
        if self.kind is RecordKind.INVESTOR:
            return self.check_size or 0
        if self.kind is RecordKind.CUSTOMER:
            return self.deal_value or 0
        return 0

    @property
    def contact_count(self) -> int:
        return len(self.contacts)

    def to_dict(self) -> dict:
        d = self._base_dict()
        d.update({
            "company": self.company,
            "kind": self.kind.value,
            "contacts": [c.to_dict() for c in self.contacts],
            "next_action": self.next_action,
            "next_action_date": self.next_action_date,
            "next_action_time": self.next_action_time,
            "website": self.website,
            "industry": self.industry,
            "description": self.description,
        })
        for key in _KIND_FIELDS[self.kind]:
            d[key] = getattr(self, key)
        return d

    @classmethod
    def from_dict(cls, data: dict, kind: RecordKind | None = None) -> CrmItem:
        if kind is None:
            kind = RecordKind(data["kind"]) if data.get("kind") else RecordKind.from_fields(data)
        kwargs = cls._base_kwargs(data)
        kwargs.update({
            "company": data.get("company") or "",
            "kind": kind,
            "contacts": [Contact.from_dict(c) for c in data.get("contacts") or []],
            "next_action": data.get("next_action"),
            "next_action_date": data.get("next_action_date"),
            "next_action_time": data.get("next_action_time"),
            "website": data.get("website"),
            "industry": data.get("industry"),
            "description": data.get("description"),
        })
        for key in _KIND_FIELDS[kind]:
            kwargs[key] = data.get(key)
        return cls(**kwargs)


_KIND_FIELDS = {
    RecordKind.INVESTOR: ("check_size", "stage"),
    RecordKind.CUSTOMER: ("deal_value", "deal_stage"),
    RecordKind.PARTNER: ("opportunity", "partner_type"),
}


@dataclass
class Task(Record):
    """A to-do item filed under one of the task categories."""

    text: str = ""
    description: str = ""
    task_category: str = "platformTasks"
    due_date: str | None = None
    due_time: str | None = None
    crm_item_id: str | None = None
    contact_id: str | None = None
    assigned_to_name: str | None = None
    completed_at: int | None = None

    kind = RecordKind.TASK

    @property
    def label(self) -> str:
        return self.text

    @property
    def category(self) -> str:
        return self.task_category

    @property
    def action_date(self) -> str | None:
        return self.due_date or None

    def to_dict(self) -> dict:
        d = self._base_dict()
        d.update({
            "text": self.text,
            "description": self.description,
            "category": self.task_category,
            "due_date": self.due_date,
            "due_time": self.due_time,
            "crm_item_id": self.crm_item_id,
            "contact_id": self.contact_id,
            "assigned_to_name": self.assigned_to_name,
            "completed_at": self.completed_at,
        })
        return d

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        kwargs = cls._base_kwargs(data)
        kwargs["status"] = TaskStatus.normalize(data.get("status"))
        return cls(
            **kwargs,
            text=data.get("text") or "",
            description=data.get("description") or "",
            task_category=data.get("category") or "platformTasks",
            due_date=data.get("due_date"),
            due_time=data.get("due_time"),
            crm_item_id=data.get("crm_item_id"),
            contact_id=data.get("contact_id"),
            assigned_to_name=data.get("assigned_to_name"),
            completed_at=data.get("completed_at"),
        )
