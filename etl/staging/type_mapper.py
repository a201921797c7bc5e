"""Source to BigQuery column type mapping and per-value coercion."""

import json
import re
import unicodedata
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from connections.data_contract import ColumnDescriptor, DestColumnSpec, DestType, SourceType

_ZERO_DATE = re.compile(r"^0{4}-0{2}-0{2}([ T]0{2}:0{2}:0{2}(\.0+)?)?$")
_TRUE_STRINGS = {"1", "true", "t", "yes", "y", "on"}
_CANDIDATE_ENCODINGS = ("utf-8", "cp1252")

_TYPE_MAP = {
    SourceType.DATE: DestType.DATE,
    SourceType.DATETIME: DestType.DATETIME,
    SourceType.TIMESTAMP: DestType.DATETIME,
    SourceType.BIGINT: DestType.INTEGER,
    SourceType.INTEGER: DestType.INTEGER,
    SourceType.SMALLINT: DestType.INTEGER,
    SourceType.BOOLEAN: DestType.BOOLEAN,
    SourceType.DECIMAL: DestType.FLOAT,
    SourceType.FLOAT: DestType.FLOAT,
    SourceType.TIME: DestType.TIME,
}


def map_column_type(source_type: SourceType) -> DestType:
    return _TYPE_MAP.get(source_type, DestType.STRING)


def map_column(column: ColumnDescriptor) -> DestColumnSpec:
    return DestColumnSpec(name=column.key, dest_type=map_column_type(column.source_type))


def normalize_text(value: Any) -> Any:
    """Return text as clean UTF-8-safe ``str``; non-text values pass through.

    Bytes are decoded with the first candidate encoding that fits, falling
    back to Latin-1, which accepts any byte sequence.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        for encoding in _CANDIDATE_ENCODINGS:
            try:
                return unicodedata.normalize("NFC", raw.decode(encoding))
            except UnicodeDecodeError:
                continue
        return unicodedata.normalize("NFC", raw.decode("latin-1"))

    if isinstance(value, str):
        cleaned = value.encode("utf-8", errors="surrogatepass").decode("utf-8", errors="replace")
        return unicodedata.normalize("NFC", cleaned)

    return value


def is_zero_date(value: Any) -> bool:
    return isinstance(value, str) and bool(_ZERO_DATE.match(value.strip()))


def format_timedelta(value: timedelta) -> str:
    total_microseconds = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    sign = "-" if total_microseconds < 0 else ""
    seconds, microseconds = divmod(abs(total_microseconds), 1_000_000)
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if microseconds:
        text += f".{microseconds:06d}"
    return text


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if is_zero_date(value):
        return None
    return normalize_text(value)


def _coerce_datetime(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return datetime.combine(value, time()).isoformat()
    if is_zero_date(value):
        return None
    if isinstance(value, str):
        return normalize_text(value.strip().replace(" ", "T", 1))
    return normalize_text(value)


def _coerce_time(value: Any) -> Any:
    if isinstance(value, timedelta):
        return format_timedelta(value)
    if isinstance(value, time):
        return value.isoformat()
    return normalize_text(value)


def _coerce_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return bool(value)
    if isinstance(value, (bytes, bytearray)):
        # BIT(1) columns come back as a single byte
        return any(value)
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _coerce_text(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return normalize_text(value)
    return str(value)


def coerce_value(source_type: SourceType, value: Any) -> Any:
    """Convert one raw driver value into a JSON scalar BigQuery accepts for the mapped type."""
    if value is None:
        return None

    if source_type in (SourceType.STRING, SourceType.TEXT):
        return normalize_text(value)

    if source_type == SourceType.DATE:
        return _coerce_date(value)

    if source_type in (SourceType.DATETIME, SourceType.TIMESTAMP):
        return _coerce_datetime(value)

    if source_type == SourceType.TIME:
        return _coerce_time(value)

    if source_type in (SourceType.INTEGER, SourceType.SMALLINT, SourceType.BIGINT):
        return int(value)

    if source_type == SourceType.BOOLEAN:
        return _coerce_boolean(value)

    if source_type in (SourceType.DECIMAL, SourceType.FLOAT):
        return float(value)

    return _coerce_text(value)
