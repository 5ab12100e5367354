"""Inputs to the view reducer.

User actions carry no epoch. Anything that completes a remote call, or arrives
from a subscription, carries the epoch it was issued under.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from linkpulse.controller.state import BookmarkRecord, Identity, Panel
from linkpulse.errors import RemoteError


@dataclass(frozen=True)
class SessionResolved:
    identity: Identity | None


@dataclass(frozen=True)
class SessionLookupFailed:
    error: RemoteError


@dataclass(frozen=True)
class SessionChanged:
    identity: Identity | None


@dataclass(frozen=True)
class SignInRequested:
    provider: str
    credentials: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SignOutRequested:
    pass


@dataclass(frozen=True)
class AuthFailed:
    action: str
    error: RemoteError


@dataclass(frozen=True)
class RefetchRequested:
    pass


@dataclass(frozen=True)
class ChangeNotified:
    epoch: int
    action: str | None = None


@dataclass(frozen=True)
class RefetchDue:
    epoch: int


@dataclass(frozen=True)
class ChannelFailed:
    epoch: int
    error: RemoteError


@dataclass(frozen=True)
class BookmarksFetched:
    epoch: int
    records: tuple[BookmarkRecord, ...]


@dataclass(frozen=True)
class FetchFailed:
    epoch: int
    error: RemoteError


@dataclass(frozen=True)
class TitleEdited:
    value: str


@dataclass(frozen=True)
class UrlEdited:
    value: str


@dataclass(frozen=True)
class SaveRequested:
    pass


@dataclass(frozen=True)
class BookmarkInserted:
    epoch: int
    record: BookmarkRecord


@dataclass(frozen=True)
class InsertFailed:
    epoch: int
    error: RemoteError


@dataclass(frozen=True)
class BookmarkUpdated:
    epoch: int
    bookmark_id: int
    title: str
    url: str


@dataclass(frozen=True)
class UpdateFailed:
    epoch: int
    error: RemoteError


@dataclass(frozen=True)
class DeleteRequested:
    bookmark_id: int


@dataclass(frozen=True)
class DeleteFailed:
    epoch: int
    bookmark_id: int
    error: RemoteError


@dataclass(frozen=True)
class EditBegun:
    record: BookmarkRecord


@dataclass(frozen=True)
class PanelSwitched:
    panel: Panel


@dataclass(frozen=True)
class NoticeDismissed:
    pass
