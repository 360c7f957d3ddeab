"""CSV schemas, export formatting, and row-by-row import.

Only text is produced and consumed here; reading files and offering
downloads is left to the caller.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Sequence

from . import config
from .actions import ActionResult, CrmActions
from .contacts import get_linked_account
from .models import Contact, CrmItem, Priority, Record, RecordKind, TaskStatus

log = logging.getLogger(__name__)

_BOM = "\ufeff"
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_PHONE_JUNK_RE = re.compile(r"[^\d+\-\s()]")
_TAG_SPLIT_RE = re.compile(r"[;,]")


# ---------------------------------------------------------------------------
# Field parsers and formatters
# ---------------------------------------------------------------------------

def _parse_tags(value: str) -> list[str]:
    return [t.strip().lower() for t in _TAG_SPLIT_RE.split(value) if t.strip()]


def _format_tags(value: Any, item: Record) -> str:
    return "; ".join(value) if isinstance(value, list) else ""


def _parse_priority(value: str) -> str:
    return Priority.parse(value).value


def _parse_task_status(value: str) -> str:
    return TaskStatus.parse(value).value


_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d", "%d %b %Y", "%b %d, %Y")


def _parse_date(value: str) -> str | None:
    """Normalise a date to ``YYYY-MM-DD``; unparseable input yields None."""
    value = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date().isoformat()
    except ValueError:
        return None


def _parse_amount(value: str) -> int:
    digits = _NON_DIGIT_RE.sub("", value)
    return int(digits) if digits else 0


def _format_amount(value: Any, item: Record) -> str:
    if not value:
        return ""
    return f"${value:,.0f}" if float(value).is_integer() else f"${value:,}"


def _format_contact_names(value: Any, item: Record) -> str:
    contacts = getattr(item, "contacts", None) or []
    return "; ".join(c.name for c in contacts)


def format_value(value: Any) -> str:
    """Default export formatting for a single value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (date, datetime)):
        return value.date().isoformat() if isinstance(value, datetime) else value.isoformat()
    if isinstance(value, (list, tuple)):
        return "; ".join(str(v) for v in value)
    return str(value)


def _write_rows(rows: Iterable[Sequence[str]], delimiter: str = ",") -> str:
    """Render *rows* with csv.writer, without a trailing newline."""
    out = io.StringIO()
    writer = csv.writer(out, delimiter=delimiter, lineterminator="\n")
    writer.writerows(rows)
    return out.getvalue().removesuffix("\n")


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CsvField:
    field: str
    header: str
    required: bool = False
    example: str = ""
    parse: Callable[[str], Any] | None = None
    format: Callable[[Any, Record], str] | None = None


@dataclass(frozen=True)
class CsvSchema:
    entity_type: str
    fields: tuple[CsvField, ...]
    validate: Callable[[dict], str | None] | None = None

    @property
    def required_fields(self) -> list[str]:
        return [f.field for f in self.fields if f.required]

    @property
    def headers(self) -> list[str]:
        return [f.header for f in self.fields]

    @property
    def field_names(self) -> list[str]:
        return [f.field for f in self.fields]


def _validate_contact(row: dict) -> str | None:
    if not (row.get("name") or "").strip():
        return "Name is required"
    email = (row.get("email") or "").strip()
    if not email:
        return "Email is required"
    if "@" not in email:
        return "Invalid email format"
    return None


def _validate_account(row: dict) -> str | None:
    if not (row.get("company") or "").strip():
        return "Company name is required"
    return None


def _validate_task(row: dict) -> str | None:
    if not (row.get("text") or "").strip():
        return "Task description is required"
    return None


CONTACT_SCHEMA = CsvSchema(
    entity_type="contacts",
    fields=(
        CsvField("name", "Name", required=True, example="John Doe"),
        CsvField("email", "Email", required=True, example="john@example.com",
                 parse=lambda v: v.strip().lower()),
        CsvField("phone", "Phone", example="555-1234",
                 parse=lambda v: _PHONE_JUNK_RE.sub("", v).strip()),
        CsvField("title", "Title", example="CEO"),
        CsvField("company", "Company", example="Acme Corp"),
        CsvField("linkedin", "LinkedIn", example="https://linkedin.com/in/johndoe"),
        CsvField("tags", "Tags", example="vip; tech", parse=_parse_tags, format=_format_tags),
    ),
    validate=_validate_contact,
)

_ACCOUNT_FIELDS = (
    CsvField("company", "Company", required=True, example="Acme Corp"),
    CsvField("status", "Status", example="Active"),
    CsvField("priority", "Priority", example="High", parse=_parse_priority),
    CsvField("contacts", "Contacts", format=_format_contact_names),
    CsvField("next_action", "Next Action", example="Schedule follow-up call"),
    CsvField("next_action_date", "Next Action Date", example="2024-01-15", parse=_parse_date),
    CsvField("website", "Website", example="https://example.com"),
    CsvField("industry", "Industry", example="Technology"),
    CsvField("description", "Description", example="Enterprise software company"),
    CsvField("tags", "Tags", example="enterprise; tech", parse=_parse_tags, format=_format_tags),
)

ACCOUNT_SCHEMA = CsvSchema("accounts", _ACCOUNT_FIELDS, _validate_account)

# Kind-specific columns, in the order they appear in a mixed accounts export
_KIND_FIELDS: dict[RecordKind, tuple[CsvField, ...]] = {
    RecordKind.INVESTOR: (
        CsvField("check_size", "Check Size", example="500000",
                 parse=_parse_amount, format=_format_amount),
        CsvField("stage", "Stage", example="Series A"),
    ),
    RecordKind.CUSTOMER: (
        CsvField("deal_value", "Deal Value", example="100000",
                 parse=_parse_amount, format=_format_amount),
        CsvField("deal_stage", "Deal Stage", example="Proposal"),
    ),
    RecordKind.PARTNER: (
        CsvField("opportunity", "Opportunity", example="Joint marketing campaign"),
        CsvField("partner_type", "Partner Type", example="Technology"),
    ),
}

INVESTOR_SCHEMA = CsvSchema(
    "investors", _ACCOUNT_FIELDS + _KIND_FIELDS[RecordKind.INVESTOR], _validate_account,
)

CUSTOMER_SCHEMA = CsvSchema(
    "customers", _ACCOUNT_FIELDS + _KIND_FIELDS[RecordKind.CUSTOMER], _validate_account,
)

PARTNER_SCHEMA = CsvSchema(
    "partners", _ACCOUNT_FIELDS + _KIND_FIELDS[RecordKind.PARTNER], _validate_account,
)

TASK_SCHEMA = CsvSchema(
    entity_type="tasks",
    fields=(
        CsvField("text", "Task", required=True, example="Follow up with client"),
        CsvField("status", "Status", example="Todo", parse=_parse_task_status),
        CsvField("priority", "Priority", example="High", parse=_parse_priority),
        CsvField("due_date", "Due Date", example="2024-01-15", parse=_parse_date),
        CsvField("due_time", "Due Time", example="14:00"),
        CsvField("category", "Category", example="customerTasks"),
        CsvField("assigned_to_name", "Assigned To"),
    ),
    validate=_validate_task,
)

_SCHEMAS = {
    s.entity_type: s
    for s in (CONTACT_SCHEMA, ACCOUNT_SCHEMA, INVESTOR_SCHEMA,
              CUSTOMER_SCHEMA, PARTNER_SCHEMA, TASK_SCHEMA)
}


def get_schema(entity_type: str) -> CsvSchema:
    """Look up a schema by entity type (``contacts``, ``investors`` ...)."""
    schema = _SCHEMAS.get(entity_type.strip().lower())
    if schema is None:
        raise ValueError(f"Unknown CSV entity type: {entity_type}")
    return schema


def schema_for_kind(kind: RecordKind) -> CsvSchema:
    return get_schema(kind.collection)


def schema_for_records(records: Sequence[Record]) -> CsvSchema:
    """Pick the export schema for *records*.

    A single kind uses its own schema.  Accounts of several kinds share the
    common account columns followed by the columns of every kind present,
    so the header does not depend on record order.  Other mixtures are
    rejected.
    """
    kinds = {r.kind for r in records}
    if len(kinds) == 1:
        return schema_for_kind(next(iter(kinds)))
    if not all(k.is_account for k in kinds):
        names = ", ".join(sorted(k.value for k in kinds))
        raise ValueError(f"Cannot export different record kinds together: {names}")
    extra = tuple(f for kind, fs in _KIND_FIELDS.items() if kind in kinds for f in fs)
    return CsvSchema("accounts", _ACCOUNT_FIELDS + extra, _validate_account)


def generate_template(schema: CsvSchema) -> str:
    """Header row plus one example row."""
    return _write_rows([schema.headers, [f.example for f in schema.fields]])


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def to_csv(
    rows: Sequence[dict],
    fields: Sequence[str],
    header_names: dict[str, str] | None = None,
    *,
    delimiter: str = ",",
    include_bom: bool | None = None,
) -> str:
    """Render *rows* as CSV text; empty input gives an empty string."""
    if not rows:
        return ""
    if include_bom is None:
        include_bom = config.CSV_INCLUDE_BOM
    header_names = header_names or {}

    lines = [[header_names.get(f, f) for f in fields]]
    lines.extend([format_value(row.get(f)) for f in fields] for row in rows)
    text = _write_rows(lines, delimiter)
    return _BOM + text if include_bom else text


def record_to_row(
    record: Record,
    schema: CsvSchema,
    accounts: Sequence[CrmItem] = (),
) -> dict[str, str]:
    """Format *record* into a field -> string mapping following *schema*."""
    data = record.to_dict()
    if isinstance(record, Contact):
        linked = get_linked_account(record, accounts)
        data["company"] = linked.company if linked else ""
    row: dict[str, str] = {}
    for f in schema.fields:
        value = data.get(f.field)
        row[f.field] = f.format(value, record) if f.format else format_value(value)
    return row


def export_records(
    records: Sequence[Record],
    *,
    accounts: Sequence[CrmItem] = (),
    include_bom: bool | None = None,
) -> str:
    """Export *records* with the schema from ``schema_for_records``."""
    if not records:
        return ""
    schema = schema_for_records(records)
    rows = [record_to_row(r, schema, accounts) for r in records]
    headers = {f.field: f.header for f in schema.fields}
    return to_csv(rows, schema.field_names, headers, include_bom=include_bom)


def export_filename(base_name: str, today: str | None = None) -> str:
    return f"{base_name}_export_{today or date.today().isoformat()}.csv"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def parse_csv(text: str, *, delimiter: str = ",") -> list[dict[str, str]]:
    """Parse CSV text into dicts keyed by lower-cased, trimmed headers."""
    if text.startswith(_BOM):
        text = text[len(_BOM):]
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    try:
        headers = [h.strip().lower() for h in next(reader)]
    except StopIteration:
        return []

    rows: list[dict[str, str]] = []
    for values in reader:
        if not any(v.strip() for v in values):
            continue
        rows.append({
            h: (values[i].strip() if i < len(values) else "")
            for i, h in enumerate(headers)
        })
    return rows


def parse_row_with_schema(raw: dict[str, str], schema: CsvSchema) -> dict[str, Any]:
    """Map a raw row onto schema fields; blank values are omitted."""
    parsed: dict[str, Any] = {}
    for f in schema.fields:
        value = None
        for key in (f.header.lower(), f.field.lower(), f.header, f.field):
            if key in raw:
                value = raw[key]
                break
        if value is None or value == "":
            continue
        parsed[f.field] = f.parse(value) if f.parse else value.strip()
    return parsed


def missing_required(row: dict, required_fields: Iterable[str]) -> list[str]:
    return [f for f in required_fields if not str(row.get(f) or "").strip()]


@dataclass
class ImportRowError:
    row: int
    error: str
    data: dict


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    errors: list[ImportRowError] = field(default_factory=list)


RowProcessor = Callable[[dict], ActionResult]


def import_rows(
    rows: Sequence[dict[str, str]],
    schema: CsvSchema,
    processor: RowProcessor,
) -> ImportResult:
    """Validate and process each raw row, isolating per-row failures.

    Row numbers in errors count the header as row 1, so the first data
    row is row 2.
    """
    result = ImportResult()
    if not rows:
        result.errors.append(ImportRowError(0, "No valid data found in CSV file", {}))
        return result

    for index, raw in enumerate(rows):
        row_number = index + 2
        parsed = parse_row_with_schema(raw, schema)
        error = schema.validate(parsed) if schema.validate else None
        if error is None:
            missing = missing_required(parsed, schema.required_fields)
            if missing:
                error = f"Missing required fields ({', '.join(missing)})"
        if error is not None:
            result.failed += 1
            result.errors.append(ImportRowError(row_number, error, raw))
            continue

        try:
            outcome = processor(parsed)
        except Exception as exc:
            result.failed += 1
            result.errors.append(ImportRowError(row_number, str(exc) or "Processing error", raw))
            log.warning("Import row %d raised: %s", row_number, exc)
            continue

        if outcome.success:
            result.success += 1
        else:
            result.failed += 1
            result.errors.append(
                ImportRowError(row_number, outcome.message or "Unknown error", raw)
            )

    log.info(
        "Imported %s: %d succeeded, %d failed",
        schema.entity_type, result.success, result.failed,
    )
    return result


def contact_import_processor(
    actions: CrmActions,
    accounts: Sequence[CrmItem],
    collection: str,
) -> RowProcessor:
    """Build a processor that files each contact under its company's account.

    The account is matched by case-insensitive company name and created
    when missing; accounts created during the run are reused by later rows.
    """
    known = {a.company.strip().lower(): a.id for a in accounts if a.company}

    def process(row: dict) -> ActionResult:
        company = (row.get("company") or "").strip()
        account_id = known.get(company.lower()) if company else None
        if company and account_id is None:
            created = actions.create_item(collection, {"company": company})
            if created.success and created.id:
                account_id = created.id
                known[company.lower()] = account_id
        if not account_id:
            return ActionResult.fail("No company specified or failed to create account")

        return actions.create_contact(collection, account_id, {
            "name": row["name"].strip(),
            "email": row["email"].strip(),
            "phone": row.get("phone") or "",
            "title": row.get("title") or "",
            "linkedin": row.get("linkedin") or "",
            "tags": row.get("tags") or [],
        })

    return process


def account_import_processor(actions: CrmActions, collection: str) -> RowProcessor:
    """Build a processor that creates one account per row."""
    def process(row: dict) -> ActionResult:
        data = {k: v for k, v in row.items() if k != "contacts"}
        data["company"] = data["company"].strip()
        return actions.create_item(collection, data)

    return process


def task_import_processor(actions: CrmActions) -> RowProcessor:
    """Build a processor that creates one task per row."""
    def process(row: dict) -> ActionResult:
        data = dict(row)
        data["text"] = data["text"].strip()
        data.setdefault("status", TaskStatus.TODO.value)
        data.setdefault("category", "platformTasks")
        return actions.create_item(RecordKind.TASK.collection, data)

    return process


def processor_for(
    schema: CsvSchema,
    actions: CrmActions,
    accounts: Sequence[CrmItem] = (),
    collection: str = "partners",
) -> RowProcessor:
    """Pick the row processor matching *schema*."""
    if schema is CONTACT_SCHEMA:
        return contact_import_processor(actions, accounts, collection)
    if schema is TASK_SCHEMA:
        return task_import_processor(actions)
    target = collection if schema is ACCOUNT_SCHEMA else schema.entity_type
    return account_import_processor(actions, target)
