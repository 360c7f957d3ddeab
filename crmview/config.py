"""Configuration loading from environment variables and defaults."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


# JSON snapshot used by the CLI
SNAPSHOT_PATH = Path(
    _env("CRM_SNAPSHOT_PATH", "") or str(_PROJECT_ROOT / "data" / "crm_snapshot.json")
)

# Timezone used to decide "today" for overdue checks
_tz_name = _env("CRM_TIMEZONE", "UTC")
try:
    ZoneInfo(_tz_name)
    CRM_TIMEZONE = _tz_name
except (KeyError, Exception):
    logging.getLogger(__name__).warning(
        "Invalid CRM_TIMEZONE %r, falling back to UTC", _tz_name,
    )
    CRM_TIMEZONE = "UTC"

# Pause between sequential bulk calls (milliseconds)
BULK_OP_DELAY_MS = int(_env("CRM_BULK_OP_DELAY_MS", "50"))

# Prefix exported CSV with a UTF-8 BOM (Excel compatibility)
CSV_INCLUDE_BOM = _env("CRM_CSV_INCLUDE_BOM", "true").lower() in ("true", "1", "yes")

# Region used when parsing phone numbers without a country prefix
DEFAULT_PHONE_COUNTRY = _env("CRM_DEFAULT_PHONE_COUNTRY", "US")

# CLI log level
LOG_LEVEL = _env("CRM_LOG_LEVEL", "INFO").upper()
