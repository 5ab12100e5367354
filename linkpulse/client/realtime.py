from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

import httpx
from apscheduler.schedulers.background import BackgroundScheduler

from linkpulse.client.auth import AuthClient
from linkpulse.client.http import send
from linkpulse.client.store import API_PREFIX
from linkpulse.errors import RemoteError, RemoteReadError

logger = logging.getLogger(__name__)

POLL_JOB_ID = "change_feed_poll"


@dataclass(frozen=True)
class ChangeEvent:
    cursor: int
    table: str
    action: str
    record_id: int | None = None
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, item: dict) -> ChangeEvent:
        return cls(
            cursor=int(item["cursor"]),
            table=item.get("table") or "",
            action=item.get("action") or "",
            record_id=item.get("record_id"),
            payload=item.get("payload") or {},
        )


class Channel:
    def __init__(self, table: str, filters: dict, events: tuple, callback, cursor: int):
        self.table = table
        self.filters = filters
        self.events = events
        self.callback = callback
        self.cursor = cursor
        self.closed = False

    def __repr__(self):
        return f"<Channel {self.table} {self.filters} cursor={self.cursor}>"


class ChangeFeedClient:
    """Change notifications delivered by polling ``/changes`` from a cursor.

    A channel starts at the newest cursor when it is opened, so only changes
    made after :meth:`subscribe` reach its callback.
    """

    def __init__(
        self,
        http: httpx.Client,
        auth: AuthClient,
        *,
        poll_interval: float = 2.0,
        auto_poll: bool = True,
        scheduler=None,
    ):
        self._http = http
        self._auth = auth
        self._poll_interval = poll_interval
        self._auto_poll = auto_poll
        self._scheduler = scheduler
        self._owns_scheduler = False
        self._lock = threading.Lock()
        self._channels: list[Channel] = []

    @property
    def channels(self) -> list[Channel]:
        with self._lock:
            return list(self._channels)

    def _fetch(self, params: dict) -> dict:
        return send(
            self._http,
            "GET",
            f"{API_PREFIX}/changes",
            error_cls=RemoteReadError,
            on_unauthorized=self._auth.expire,
            headers=self._auth.headers(),
            params=params,
        )

    def subscribe(self, table: str, filters: dict, events, callback) -> Channel:
        payload = self._fetch({"table": table, **filters})
        channel = Channel(
            table, dict(filters), tuple(events), callback, int(payload.get("cursor", 0))
        )
        with self._lock:
            self._channels.append(channel)
        if self._auto_poll:
            self._ensure_polling()
        return channel

    def unsubscribe(self, channel: Channel) -> None:
        channel.closed = True
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def poll_once(self) -> int:
        delivered = 0
        for channel in self.channels:
            delivered += self._poll_channel(channel)
        return delivered

    def _poll_channel(self, channel: Channel) -> int:
        delivered = 0
        while not channel.closed:
            params = {
                "table": channel.table,
                **channel.filters,
                "since": channel.cursor,
                "events": ",".join(channel.events),
            }
            try:
                payload = self._fetch(params)
            except RemoteError as exc:
                logger.warning("Change poll failed for %r: %s", channel, exc)
                break

            for item in payload.get("events", []):
                if channel.closed:
                    return delivered
                change = ChangeEvent.from_dict(item)
                channel.cursor = change.cursor
                channel.callback(change)
                delivered += 1
            channel.cursor = max(channel.cursor, int(payload.get("cursor", 0)))
            if not payload.get("has_more"):
                break
        return delivered

    def _ensure_polling(self) -> None:
        with self._lock:
            if self._scheduler is None:
                self._scheduler = BackgroundScheduler()
                self._owns_scheduler = True
            scheduler = self._scheduler
        if scheduler.get_job(POLL_JOB_ID) is None:
            scheduler.add_job(
                self.poll_once,
                "interval",
                seconds=self._poll_interval,
                id=POLL_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        if not scheduler.running:
            scheduler.start()

    def close(self) -> None:
        with self._lock:
            for channel in self._channels:
                channel.closed = True
            self._channels.clear()
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
