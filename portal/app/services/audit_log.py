"""
Status audit trail.

The ordered `status_history` rows of an application are the source of truth
for its status: replaying every entry's `to` value must land on
`Application.status`. Entries are appended here and never edited.
"""
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from ..models.application import Application
from ..models.status_history import StatusHistoryEntry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_value(status) -> str | None:
    if status is None:
        return None
    return getattr(status, "value", status)


def append_entry(
    db: Session,
    *,
    application: Application,
    from_status,
    to_status,
    changed_by: int | None = None,
    reason: str | None = None,
    changed_at: datetime | None = None,
) -> StatusHistoryEntry:
    """Stage a new entry on the session. The caller owns the commit."""
    entry = StatusHistoryEntry(
        from_status=_as_value(from_status),
        to_status=_as_value(to_status),
        changed_at=changed_at or utcnow(),
        changed_by=changed_by,
        reason=(reason or None),
    )
    application.history.append(entry)
    db.add(entry)
    return entry


def history_for(db: Session, application_id: int) -> list[StatusHistoryEntry]:
    return (
        db.query(StatusHistoryEntry)
        .filter(StatusHistoryEntry.application_id == int(application_id))
        .order_by(StatusHistoryEntry.changed_at.asc(), StatusHistoryEntry.id.asc())
        .all()
    )


def replay_status(entries: Iterable[StatusHistoryEntry], initial: str | None = None) -> str | None:
    status = initial
    for entry in entries:
        status = entry.to_status
    return status


def entry_to_public(entry: StatusHistoryEntry) -> dict:
    payload = {
        "from": entry.from_status,
        "to": entry.to_status,
        "changed_at": entry.changed_at.isoformat() if isinstance(entry.changed_at, datetime) else entry.changed_at,
        "changed_by": entry.changed_by,
    }
    if entry.reason:
        payload["reason"] = entry.reason
    return payload
