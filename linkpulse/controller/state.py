from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime

from dateutil import parser as dt_parser


class Panel(str, enum.Enum):
    ADD = "add"
    LIST = "list"


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str = ""

    @classmethod
    def from_dict(cls, payload: dict | None) -> Identity | None:
        if not payload:
            return None
        return cls(user_id=int(payload["id"]), username=payload.get("username") or "")


def same_identity(left: Identity | None, right: Identity | None) -> bool:
    if left is None or right is None:
        return left is right
    return left.user_id == right.user_id


def _parse_time(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return dt_parser.isoparse(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class BookmarkRecord:
    id: int
    title: str
    url: str
    owner: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, payload: dict) -> BookmarkRecord:
        return cls(
            id=int(payload["id"]),
            title=payload.get("title") or "",
            url=payload.get("url") or "",
            owner=payload.get("user_id"),
            created_at=_parse_time(payload.get("created_at")),
        )


@dataclass(frozen=True)
class FormDraft:
    title: str = ""
    url: str = ""
    error: str = ""
    editing: BookmarkRecord | None = None
    saving: bool = False


@dataclass(frozen=True)
class ViewState:
    """Everything the bookmark view shows, as one immutable value.

    ``epoch`` is bumped whenever the signed-in identity changes. Remote work is
    tagged with the epoch it was issued under, and results carrying an older
    epoch are dropped.
    """

    identity: Identity | None = None
    epoch: int = 0
    session_checked: bool = False
    bookmarks: tuple[BookmarkRecord, ...] = ()
    draft: FormDraft = field(default_factory=FormDraft)
    panel: Panel = Panel.ADD
    notice: str | None = None
    refetch_pending: bool = False

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    def evolve(self, **changes) -> ViewState:
        return replace(self, **changes)
