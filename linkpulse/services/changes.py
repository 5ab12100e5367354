from __future__ import annotations

from datetime import datetime

from linkpulse.extensions import db
from linkpulse.models import Bookmark, ChangeEvent


CHANGE_INSERT = "insert"
CHANGE_UPDATE = "update"
CHANGE_DELETE = "delete"

ALL_CHANGE_ACTIONS = (CHANGE_INSERT, CHANGE_UPDATE, CHANGE_DELETE)

BOOKMARKS_TABLE = "bookmarks"


def serialize_bookmark_for_change(bookmark: Bookmark) -> dict:
    return {
        "id": bookmark.id,
        "title": bookmark.title,
        "url": bookmark.url,
        "user_id": bookmark.user_id,
    }


def log_change_event(
    user_id: int, table_name: str, record_id: int | None, action: str, payload: dict
) -> ChangeEvent:
    event = ChangeEvent(
        user_id=user_id,
        table_name=table_name,
        record_id=record_id,
        action=action,
        payload=payload,
    )
    db.session.add(event)
    return event


def parse_actions(raw: str | None) -> tuple[str, ...]:
    if not raw or raw.strip() == "*":
        return ALL_CHANGE_ACTIONS
    requested = {part.strip().lower() for part in raw.split(",") if part.strip()}
    return tuple(action for action in ALL_CHANGE_ACTIONS if action in requested)


def latest_cursor(user_id: int, table_name: str) -> int:
    return (
        db.session.query(db.func.max(ChangeEvent.id))
        .filter_by(user_id=user_id, table_name=table_name)
        .scalar()
        or 0
    )


def list_changes(
    user_id: int,
    table_name: str,
    since: int,
    actions: tuple[str, ...],
    limit: int,
) -> list[ChangeEvent]:
    if not actions:
        return []
    return (
        ChangeEvent.query.filter_by(user_id=user_id, table_name=table_name)
        .filter(ChangeEvent.id > since)
        .filter(ChangeEvent.action.in_(actions))
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )


def prune_change_events(older_than: datetime) -> int:
    deleted = ChangeEvent.query.filter(ChangeEvent.created_at < older_than).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted
