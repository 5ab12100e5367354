from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from linkpulse.config import ClientConfig
from linkpulse.controller import commands as cmd
from linkpulse.controller import events as ev
from linkpulse.controller.contracts import AuthProvider, ChangeFeed, DataStore
from linkpulse.controller.reducer import transition
from linkpulse.controller.state import BookmarkRecord, Panel, ViewState
from linkpulse.errors import RemoteError

logger = logging.getLogger(__name__)

BOOKMARKS_TABLE = "bookmarks"
ALL_CHANGE_EVENTS = ("insert", "update", "delete")
NEWEST_FIRST = "-created_at"


def _log_alert(message: str) -> None:
    logger.warning("Alert: %s", message)


class ViewStateController:
    """Keeps a local bookmark view in step with the remote store.

    Events are applied one at a time through :func:`transition`. Commands it
    returns run here; remote calls run inline unless ``remote_workers`` is set,
    in which case they run on a thread pool and their results are fed back in
    through :meth:`dispatch`. The session listener and the change channel are
    held as handles and released in :meth:`close`.
    """

    def __init__(
        self,
        auth: AuthProvider,
        store: DataStore,
        changes: ChangeFeed,
        *,
        remote_workers: int = 0,
        refetch_debounce: float = 0.0,
        scheduler=None,
        on_alert=None,
        on_state_change=None,
    ):
        self.auth = auth
        self.store = store
        self.changes = changes
        self._executor = (
            ThreadPoolExecutor(
                max_workers=remote_workers, thread_name_prefix="linkpulse-remote"
            )
            if remote_workers > 0
            else None
        )
        self._scheduler = scheduler
        self._owns_scheduler = False
        self._refetch_debounce = refetch_debounce
        self._on_alert = on_alert or _log_alert
        self._on_state_change = on_state_change

        self._state = ViewState()
        self._lock = threading.RLock()
        self._queue: deque = deque()
        self._draining = False
        self._started = False
        self._closed = False
        self._auth_handle = None
        self._channel = None
        self._refetch_job = None

        self._handlers = {
            cmd.FetchBookmarks: self._fetch_bookmarks,
            cmd.OpenChannel: self._subscribe_to_changes,
            cmd.CloseChannel: self._close_channel,
            cmd.ScheduleRefetch: self._schedule_refetch,
            cmd.InsertBookmark: self._insert_bookmark,
            cmd.UpdateBookmark: self._update_bookmark,
            cmd.DeleteBookmark: self._delete_bookmark,
            cmd.ShowAlert: self._show_alert,
            cmd.SignIn: self._sign_in,
            cmd.SignOut: self._sign_out,
        }

    @classmethod
    def from_config(cls, auth, store, changes, config=ClientConfig, **kwargs):
        kwargs.setdefault("remote_workers", config.REMOTE_WORKERS)
        kwargs.setdefault("refetch_debounce", config.REFETCH_DEBOUNCE_SECONDS)
        return cls(auth, store, changes, **kwargs)

    @property
    def state(self) -> ViewState:
        with self._lock:
            return self._state

    def __enter__(self):
        self.initialize_session()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Operations

    def initialize_session(self) -> None:
        with self._lock:
            if self._started or self._closed:
                return
            self._started = True
            self._call_remote(
                "session lookup",
                self.auth.get_current_session,
                ev.SessionResolved,
                ev.SessionLookupFailed,
            )
            self._auth_handle = self.auth.on_session_change(self._session_changed)

    def refetch_bookmarks(self) -> None:
        self.dispatch(ev.RefetchRequested())

    def set_title(self, value: str) -> None:
        self.dispatch(ev.TitleEdited(value))

    def set_url(self, value: str) -> None:
        self.dispatch(ev.UrlEdited(value))

    def save(self, title: str | None = None, url: str | None = None) -> None:
        with self._lock:
            if title is not None:
                self.dispatch(ev.TitleEdited(title))
            if url is not None:
                self.dispatch(ev.UrlEdited(url))
            self.dispatch(ev.SaveRequested())

    def delete(self, bookmark_id: int) -> None:
        self.dispatch(ev.DeleteRequested(bookmark_id))

    def begin_edit(self, record: BookmarkRecord) -> None:
        self.dispatch(ev.EditBegun(record))

    def switch_panel(self, panel) -> None:
        self.dispatch(ev.PanelSwitched(Panel(panel)))

    def sign_in(self, provider: str = "password", **credentials) -> None:
        self.dispatch(ev.SignInRequested(provider, credentials))

    def sign_out(self) -> None:
        self.dispatch(ev.SignOutRequested())

    def dismiss_notice(self) -> None:
        self.dispatch(ev.NoticeDismissed())

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.clear()
            auth_handle, self._auth_handle = self._auth_handle, None
            self._close_channel()

        if auth_handle is not None:
            try:
                self.auth.unsubscribe(auth_handle)
            except RemoteError as exc:
                logger.warning("Could not release session listener: %s", exc)
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        if self._owns_scheduler:
            self._scheduler.shutdown(wait=False)

    # Event loop

    def dispatch(self, event) -> None:
        if event is None:
            return
        with self._lock:
            if self._closed:
                logger.debug("Dropping %s after close", type(event).__name__)
                return
            self._queue.append(event)
            if self._draining:
                return
            self._draining = True
            try:
                while self._queue:
                    self._apply(self._queue.popleft())
            finally:
                self._draining = False

    def _apply(self, event) -> None:
        previous = self._state
        self._state, commands = transition(previous, event)
        logger.debug(
            "%s -> %s", type(event).__name__, [type(c).__name__ for c in commands]
        )
        for command in commands:
            self._handlers[type(command)](command)
        if self._on_state_change is not None and self._state is not previous:
            self._on_state_change(self._state)

    def _session_changed(self, identity) -> None:
        logger.info(
            "Session changed: %s", identity.username if identity else "signed out"
        )
        self.dispatch(ev.SessionChanged(identity))

    def _settle(self, label, func, on_success, on_failure):
        try:
            result = func()
        except RemoteError as exc:
            logger.warning("%s failed: %s", label, exc)
            return on_failure(exc)
        except Exception as exc:
            logger.exception("%s failed unexpectedly", label)
            return on_failure(RemoteError(str(exc)))
        return on_success(result)

    def _call_remote(self, label, func, on_success, on_failure) -> None:
        if self._executor is None:
            self.dispatch(self._settle(label, func, on_success, on_failure))
            return
        future = self._executor.submit(self._settle, label, func, on_success, on_failure)
        future.add_done_callback(lambda done: self.dispatch(done.result()))

    # Command handlers

    def _fetch_bookmarks(self, command: cmd.FetchBookmarks) -> None:
        def run():
            rows = self.store.query(
                BOOKMARKS_TABLE, {"user_id": command.owner}, NEWEST_FIRST
            )
            return tuple(BookmarkRecord.from_dict(row) for row in rows)

        self._call_remote(
            "bookmark refetch",
            run,
            lambda records: ev.BookmarksFetched(command.epoch, records),
            lambda exc: ev.FetchFailed(command.epoch, exc),
        )

    def _subscribe_to_changes(self, command: cmd.OpenChannel) -> None:
        self._close_channel()

        def notify(change=None):
            self.dispatch(
                ev.ChangeNotified(command.epoch, getattr(change, "action", None))
            )

        try:
            self._channel = self.changes.subscribe(
                BOOKMARKS_TABLE, {"user_id": command.owner}, ALL_CHANGE_EVENTS, notify
            )
        except RemoteError as exc:
            logger.warning("Could not open change channel: %s", exc)
            self.dispatch(ev.ChannelFailed(command.epoch, exc))

    def _close_channel(self, command: cmd.CloseChannel | None = None) -> None:
        self._cancel_refetch()
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            self.changes.unsubscribe(channel)
        except RemoteError as exc:
            logger.warning("Could not close change channel: %s", exc)

    def _schedule_refetch(self, command: cmd.ScheduleRefetch) -> None:
        due = ev.RefetchDue(command.epoch)
        if self._refetch_debounce <= 0:
            self.dispatch(due)
            return
        run_date = datetime.now(timezone.utc) + timedelta(
            seconds=self._refetch_debounce
        )
        self._refetch_job = self._ensure_scheduler().add_job(
            self.dispatch, "date", run_date=run_date, args=[due]
        )

    def _cancel_refetch(self) -> None:
        job, self._refetch_job = self._refetch_job, None
        if job is None:
            return
        try:
            job.remove()
        except JobLookupError:
            pass  # already fired

    def _ensure_scheduler(self):
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler()
            self._scheduler.start()
            self._owns_scheduler = True
        return self._scheduler

    def _insert_bookmark(self, command: cmd.InsertBookmark) -> None:
        record = {"title": command.title, "url": command.url, "user_id": command.owner}
        self._call_remote(
            "bookmark insert",
            lambda: BookmarkRecord.from_dict(self.store.insert(BOOKMARKS_TABLE, record)),
            lambda created: ev.BookmarkInserted(command.epoch, created),
            lambda exc: ev.InsertFailed(command.epoch, exc),
        )

    def _update_bookmark(self, command: cmd.UpdateBookmark) -> None:
        fields = {"title": command.title, "url": command.url}
        self._call_remote(
            "bookmark update",
            lambda: self.store.update(BOOKMARKS_TABLE, command.bookmark_id, fields),
            lambda _: ev.BookmarkUpdated(
                command.epoch, command.bookmark_id, command.title, command.url
            ),
            lambda exc: ev.UpdateFailed(command.epoch, exc),
        )

    def _delete_bookmark(self, command: cmd.DeleteBookmark) -> None:
        self._call_remote(
            "bookmark delete",
            lambda: self.store.delete(BOOKMARKS_TABLE, command.bookmark_id),
            lambda _: None,
            lambda exc: ev.DeleteFailed(command.epoch, command.bookmark_id, exc),
        )

    def _show_alert(self, command: cmd.ShowAlert) -> None:
        self._on_alert(command.message)

    def _sign_in(self, command: cmd.SignIn) -> None:
        self._call_remote(
            "sign-in",
            lambda: self.auth.sign_in(command.provider, **command.credentials),
            lambda _: None,
            lambda exc: ev.AuthFailed("sign_in", exc),
        )

    def _sign_out(self, command: cmd.SignOut) -> None:
        self._call_remote(
            "sign-out",
            self.auth.sign_out,
            lambda _: None,
            lambda exc: ev.AuthFailed("sign_out", exc),
        )
