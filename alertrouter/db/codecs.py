"""Value conversion between the repositories and the store.

Timestamps are bound as aware datetimes through ``UtcDateTime`` so asyncpg
receives real ``timestamptz`` values and SQLite stores one sortable UTC text
format. JSON columns are bound as text and decoded with ``load_json``.

Usage:
    from alertrouter.db.codecs import parse_timestamp, timestamp_params

    sql = text("UPDATE alerts SET updated_at = :now WHERE id = :id").bindparams(
        *timestamp_params("now")
    )
"""

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, bindparam
from sqlalchemy.sql.elements import BindParameter
from sqlalchemy.types import TypeDecorator


class UtcDateTime(TypeDecorator):
    """Timezone-aware timestamp, normalized to UTC before binding."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def timestamp_params(*names: str) -> list[BindParameter]:
    """Typed bind parameters for the named timestamp placeholders of a text() query."""
    return [bindparam(name, type_=UtcDateTime()) for name in names]


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime.

    SQLite hands back text, PostgreSQL hands back datetimes.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def load_json(value: Any, default: Any) -> Any:
    """Decode a JSON column; drivers return text or already-decoded values."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value
