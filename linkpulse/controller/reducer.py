"""Pure transitions of the bookmark view.

``transition(state, event)`` returns the next state and the commands the
runtime must carry out. Nothing in here touches a collaborator.
"""

from __future__ import annotations

from dataclasses import replace

from linkpulse.controller import commands as cmd
from linkpulse.controller import events as ev
from linkpulse.controller.state import (
    FormDraft,
    Identity,
    Panel,
    ViewState,
    same_identity,
)
from linkpulse.errors import ValidationError

MISSING_FIELDS_ERROR = "Please fill all fields"
SIGNED_OUT_ERROR = "Sign in to save bookmarks"
SAVE_FAILED_ERROR = "Failed to save bookmark"
UPDATE_FAILED_ERROR = "Failed to update bookmark"
DELETE_FAILED_ALERT = "Delete failed"
REFRESH_FAILED_NOTICE = "Could not refresh bookmarks"
LIVE_UPDATES_NOTICE = "Live updates are unavailable"
SESSION_LOOKUP_NOTICE = "Could not restore your session"

AUTH_FAILURE_NOTICES = {
    "sign_in": "Sign-in failed",
    "sign_out": "Sign-out failed",
}


def validate_draft(draft: FormDraft) -> tuple[str, str]:
    if not draft.title.strip() or not draft.url.strip():
        raise ValidationError(MISSING_FIELDS_ERROR)
    return draft.title, draft.url


def _apply_identity(state: ViewState, identity: Identity | None):
    if same_identity(state.identity, identity):
        return state.evolve(identity=identity, session_checked=True), []

    commands: list = []
    if state.identity is not None:
        commands.append(cmd.CloseChannel())

    epoch = state.epoch + 1
    state = state.evolve(
        identity=identity,
        epoch=epoch,
        session_checked=True,
        bookmarks=(),
        draft=FormDraft(),
        refetch_pending=False,
        notice=None,
    )
    if identity is not None:
        commands.append(cmd.FetchBookmarks(epoch=epoch, owner=identity.user_id))
        commands.append(cmd.OpenChannel(epoch=epoch, owner=identity.user_id))
    return state, commands


def _is_current(state: ViewState, epoch: int) -> bool:
    return state.identity is not None and epoch == state.epoch


def _fetch(state: ViewState) -> list:
    return [cmd.FetchBookmarks(epoch=state.epoch, owner=state.identity.user_id)]


def _save(state: ViewState):
    draft = state.draft
    if state.identity is None:
        return state.evolve(draft=_with_draft(draft, error=SIGNED_OUT_ERROR)), []
    try:
        title, url = validate_draft(draft)
    except ValidationError as exc:
        return state.evolve(draft=_with_draft(draft, error=str(exc))), []
    if draft.saving:
        return state, []

    state = state.evolve(draft=_with_draft(draft, error="", saving=True))
    if draft.editing is not None:
        command = cmd.UpdateBookmark(
            epoch=state.epoch, bookmark_id=draft.editing.id, title=title, url=url
        )
    else:
        command = cmd.InsertBookmark(
            epoch=state.epoch, owner=state.identity.user_id, title=title, url=url
        )
    return state, [command]


def _with_draft(draft: FormDraft, **changes) -> FormDraft:
    return replace(draft, **changes)


def _saved(state: ViewState, bookmarks) -> ViewState:
    # An edit begun while the save was in flight keeps its target.
    editing = None if state.draft.saving else state.draft.editing
    return state.evolve(
        bookmarks=tuple(bookmarks), draft=FormDraft(editing=editing), panel=Panel.LIST
    )


def transition(state: ViewState, event):
    # Session lifecycle
    if isinstance(event, ev.SessionResolved):
        if state.session_checked:
            return state, []
        return _apply_identity(state, event.identity)

    if isinstance(event, ev.SessionChanged):
        return _apply_identity(state, event.identity)

    if isinstance(event, ev.SessionLookupFailed):
        return state.evolve(session_checked=True, notice=SESSION_LOOKUP_NOTICE), []

    if isinstance(event, ev.SignInRequested):
        return state, [cmd.SignIn(provider=event.provider, credentials=event.credentials)]

    if isinstance(event, ev.SignOutRequested):
        return state, [cmd.SignOut()]

    if isinstance(event, ev.AuthFailed):
        notice = AUTH_FAILURE_NOTICES.get(event.action, "Authentication failed")
        return state.evolve(notice=notice), []

    # Collection sync
    if isinstance(event, ev.RefetchRequested):
        if state.identity is None:
            return state, []
        return state, _fetch(state)

    if isinstance(event, ev.ChangeNotified):
        if not _is_current(state, event.epoch) or state.refetch_pending:
            return state, []
        return state.evolve(refetch_pending=True), [cmd.ScheduleRefetch(epoch=state.epoch)]

    if isinstance(event, ev.RefetchDue):
        if not _is_current(state, event.epoch):
            return state, []
        return state.evolve(refetch_pending=False), _fetch(state)

    if isinstance(event, ev.ChannelFailed):
        if not _is_current(state, event.epoch):
            return state, []
        return state.evolve(notice=LIVE_UPDATES_NOTICE), []

    if isinstance(event, ev.BookmarksFetched):
        if not _is_current(state, event.epoch):
            return state, []
        return state.evolve(bookmarks=tuple(event.records)), []

    if isinstance(event, ev.FetchFailed):
        if not _is_current(state, event.epoch):
            return state, []
        return state.evolve(notice=REFRESH_FAILED_NOTICE), []

    # Form
    if isinstance(event, ev.TitleEdited):
        return state.evolve(draft=_with_draft(state.draft, title=event.value)), []

    if isinstance(event, ev.UrlEdited):
        return state.evolve(draft=_with_draft(state.draft, url=event.value)), []

    if isinstance(event, ev.SaveRequested):
        return _save(state)

    if isinstance(event, ev.BookmarkInserted):
        if not _is_current(state, event.epoch):
            return state, []
        if any(b.id == event.record.id for b in state.bookmarks):
            # A refetch already delivered it; keep its position.
            bookmarks = [
                event.record if b.id == event.record.id else b for b in state.bookmarks
            ]
        else:
            bookmarks = [event.record, *state.bookmarks]
        return _saved(state, bookmarks), []

    if isinstance(event, ev.InsertFailed):
        if not _is_current(state, event.epoch):
            return state, []
        draft = _with_draft(state.draft, error=SAVE_FAILED_ERROR, saving=False)
        return state.evolve(draft=draft), []

    if isinstance(event, ev.BookmarkUpdated):
        if not _is_current(state, event.epoch):
            return state, []
        bookmarks = [
            replace(b, title=event.title, url=event.url)
            if b.id == event.bookmark_id
            else b
            for b in state.bookmarks
        ]
        return _saved(state, bookmarks), []

    if isinstance(event, ev.UpdateFailed):
        if not _is_current(state, event.epoch):
            return state, []
        draft = _with_draft(state.draft, error=UPDATE_FAILED_ERROR, saving=False)
        return state.evolve(draft=draft), []

    if isinstance(event, ev.DeleteRequested):
        if state.identity is None:
            return state, []
        bookmarks = tuple(b for b in state.bookmarks if b.id != event.bookmark_id)
        return state.evolve(bookmarks=bookmarks), [
            cmd.DeleteBookmark(epoch=state.epoch, bookmark_id=event.bookmark_id)
        ]

    if isinstance(event, ev.DeleteFailed):
        if not _is_current(state, event.epoch):
            return state, []
        return state, [cmd.ShowAlert(DELETE_FAILED_ALERT), *_fetch(state)]

    if isinstance(event, ev.EditBegun):
        draft = FormDraft(
            title=event.record.title, url=event.record.url, editing=event.record
        )
        return state.evolve(draft=draft, panel=Panel.ADD), []

    if isinstance(event, ev.PanelSwitched):
        return state.evolve(panel=Panel(event.panel), draft=FormDraft()), []

    if isinstance(event, ev.NoticeDismissed):
        return state.evolve(notice=None), []

    raise TypeError(f"unknown view event: {event!r}")
