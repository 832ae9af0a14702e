"""Helpers for recovering rows and reporting header problems in CSV input."""

import logging
from collections import Counter
from typing import Dict, List

from pydantic import ValidationError

logger = logging.getLogger(__name__)


def normalize_headers(raw_headers: List[str]) -> List[str]:
    """Trim surrounding whitespace from header names.

    Args:
        raw_headers: Header cells as read from the first CSV record

    Returns:
        Trimmed header names, or an empty list if every cell is blank
    """
    headers = [header.strip() for header in raw_headers]
    if not any(headers):
        return []
    return headers


def find_duplicate_headers(headers: List[str]) -> List[str]:
    """Return header names that occur more than once, in first-seen order.

    Args:
        headers: Normalized header names

    Returns:
        List of duplicated names (each listed once)
    """
    counts = Counter(header for header in headers if header)
    seen = []
    for header in headers:
        if counts[header] > 1 and header not in seen:
            seen.append(header)
    return seen


def find_missing_columns(headers: List[str], required: List[str]) -> List[str]:
    """Return required column names absent from the header, in required order."""
    return [column for column in required if column not in headers]


def align_row(
    headers: List[str], values: List[str], file_name: str, line_number: int
) -> Dict[str, str]:
    """Map one CSV record onto the header row.

    Short records keep only the columns present in their line. Surplus
    fields beyond the header width and values under blank header cells
    are dropped.

    Args:
        headers: Normalized header names
        values: Field values of one record
        file_name: Source file (for log messages)
        line_number: Line number of the record (for log messages)

    Returns:
        Dictionary of header -> raw string value
    """
    if len(values) > len(headers):
        logger.warning(
            f"{file_name}:{line_number}: {len(values)} fields for {len(headers)} columns, "
            f"dropping {len(values) - len(headers)} extra field(s)"
        )
    elif len(values) < len(headers):
        logger.debug(
            f"{file_name}:{line_number}: {len(values)} fields for {len(headers)} columns"
        )

    return {header: value for header, value in zip(headers, values) if header}


def format_column_list(columns: List[str]) -> str:
    """Join column names the way they are shown in error details."""
    return ", ".join(columns)


def validation_error_messages(error: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into plain messages.

    Messages raised by our own validators are returned as written; other
    errors are prefixed with the offending field.

    Args:
        error: Validation error raised by a model

    Returns:
        One message per failed check, in pydantic's order
    """
    messages = []
    for item in error.errors():
        original = (item.get("ctx") or {}).get("error")
        if isinstance(original, ValueError):
            messages.append(str(original))
        else:
            field = ".".join(str(part) for part in item.get("loc", ()))
            messages.append(f"{field}: {item['msg']}" if field else item["msg"])
    return messages
