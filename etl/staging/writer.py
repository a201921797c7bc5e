"""Newline-delimited JSON payloads for BigQuery load jobs."""

import json
from collections.abc import Iterable
from typing import BinaryIO

from connections._logging import get_logger
from connections.data_contract import BatchRecord

logger = get_logger("staging.writer")


def _encode_record(record: BatchRecord) -> bytes:
    # One object per line: the load API rejects pretty-printed or array payloads
    return json.dumps(record, ensure_ascii=False, separators=(",", ":")).encode("utf-8") + b"\n"


def encode_batch(records: Iterable[BatchRecord]) -> bytes:
    return b"".join(_encode_record(record) for record in records)


def write_batch(records: Iterable[BatchRecord], target: BinaryIO) -> int:
    """Stream records into ``target`` one line each, rewind it, and return the line count."""
    lines = 0
    size = 0
    for record in records:
        size += target.write(_encode_record(record))
        lines += 1

    target.flush()
    target.seek(0)
    logger.debug("Batch payload written lines=%s bytes=%s", lines, size)
    return lines
