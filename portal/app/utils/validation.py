"""
Validation utilities for input validation and error handling.
"""
import re
from datetime import datetime, timezone
from typing import Any
from fastapi import HTTPException

from zoneinfo import ZoneInfo

from ..services.workflow import JobStatus, ProgramStatus


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
    pattern: str | None = None,
) -> str | None:
    """Validate a string field with common rules."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} must be a string")

    value = value.strip()

    if required and not value:
        raise HTTPException(status_code=400, detail=f"{field_name} cannot be empty")

    if not value:
        return None

    if len(value) < min_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_length} characters"
        )

    if len(value) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_length} characters"
        )

    if pattern and not re.match(pattern, value):
        raise HTTPException(status_code=400, detail=f"{field_name} format is invalid")

    return value


def validate_integer_field(
    value: Any,
    field_name: str,
    min_value: int | None = None,
    max_value: int | None = None,
    required: bool = True,
) -> int | None:
    """Validate an integer field."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, int):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise HTTPException(status_code=400, detail=f"{field_name} must be a valid integer")

    if min_value is not None and value < min_value:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_value}"
        )

    if max_value is not None and value > max_value:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_value}"
        )

    return value


def validate_job_status(status: str | None) -> str:
    """Validate job status."""
    if not status:
        return JobStatus.ACTIVE.value

    status = status.strip().lower()
    valid_statuses = [s.value for s in JobStatus]

    if status not in valid_statuses:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(valid_statuses)}"
        )

    return status


def validate_program_status(status: str | None) -> str:
    """Validate training program status."""
    if not status:
        return ProgramStatus.UPCOMING.value

    status = status.strip().lower()
    valid_statuses = [s.value for s in ProgramStatus]

    if status not in valid_statuses:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(valid_statuses)}"
        )

    return status


def parse_datetime(raw: Any, tz: str | None = None) -> datetime:
    """
    Parse an ISO 8601 value into an aware UTC datetime.
    Naive values are read in `tz` when given (IANA name), else UTC. Raises ValueError.
    """
    if isinstance(raw, datetime):
        dt = raw
    else:
        text = str(raw or "").strip()
        if not text:
            raise ValueError("date is required")
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        if tz:
            try:
                dt = dt.replace(tzinfo=ZoneInfo(tz))
            except (KeyError, ValueError):
                raise ValueError(f"unknown timezone: {tz}")
        else:
            dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
