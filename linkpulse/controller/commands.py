"""Side effects requested by the view reducer and carried out by the runtime."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FetchBookmarks:
    epoch: int
    owner: int


@dataclass(frozen=True)
class OpenChannel:
    epoch: int
    owner: int


@dataclass(frozen=True)
class CloseChannel:
    pass


@dataclass(frozen=True)
class ScheduleRefetch:
    epoch: int


@dataclass(frozen=True)
class InsertBookmark:
    epoch: int
    owner: int
    title: str
    url: str


@dataclass(frozen=True)
class UpdateBookmark:
    epoch: int
    bookmark_id: int
    title: str
    url: str


@dataclass(frozen=True)
class DeleteBookmark:
    epoch: int
    bookmark_id: int


@dataclass(frozen=True)
class ShowAlert:
    message: str


@dataclass(frozen=True)
class SignIn:
    provider: str
    credentials: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SignOut:
    pass
