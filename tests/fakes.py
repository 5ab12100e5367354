import time
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError

from linkpulse.controller.state import Identity
from linkpulse.errors import AuthError, RemoteReadError, RemoteWriteError


class FakeAuth:
    def __init__(self, identity=None):
        self.identity = identity
        self.listeners = {}
        self.lookups = 0
        self.unsubscribed = []
        self.fail_sign_in = False
        self._next = 0

    def get_current_session(self):
        self.lookups += 1
        return self.identity

    def sign_in(self, provider, **credentials):
        if self.fail_sign_in:
            raise AuthError("invalid credentials", status_code=401)
        self.emit(Identity(user_id=credentials["user_id"], username=credentials.get("username", "")))
        return self.identity

    def sign_out(self):
        self.emit(None)

    def emit(self, identity):
        self.identity = identity
        for callback in list(self.listeners.values()):
            callback(identity)

    def on_session_change(self, callback):
        self._next += 1
        self.listeners[self._next] = callback
        return self._next

    def unsubscribe(self, handle):
        self.unsubscribed.append(handle)
        self.listeners.pop(handle, None)


class FakeStore:
    def __init__(self):
        self.rows = []
        self.calls = []
        self.fail = set()
        self._next_id = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def add(self, owner, title, url):
        self._next_id += 1
        self._clock += timedelta(seconds=1)
        row = {
            "id": self._next_id,
            "title": title,
            "url": url,
            "user_id": owner,
            "created_at": self._clock.isoformat(),
        }
        self.rows.append(row)
        return dict(row)

    def query(self, table, filters, order_by):
        self.calls.append(("query", table, dict(filters), order_by))
        if "query" in self.fail:
            raise RemoteReadError("store unavailable", status_code=503)
        rows = [r for r in self.rows if r["user_id"] == filters["user_id"]]
        rows.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return [dict(r) for r in rows]

    def insert(self, table, record):
        self.calls.append(("insert", table, dict(record)))
        if "insert" in self.fail:
            raise RemoteWriteError("insert rejected", status_code=500)
        return self.add(record["user_id"], record["title"], record["url"])

    def update(self, table, record_id, fields):
        self.calls.append(("update", table, record_id, dict(fields)))
        if "update" in self.fail:
            raise RemoteWriteError("update rejected", status_code=500)
        for row in self.rows:
            if row["id"] == record_id:
                row.update(fields)
                return dict(row)
        raise RemoteWriteError("bookmark not found", status_code=404)

    def delete(self, table, record_id):
        self.calls.append(("delete", table, record_id))
        if "delete" in self.fail:
            raise RemoteWriteError("delete rejected", status_code=500)
        self.rows = [r for r in self.rows if r["id"] != record_id]

    def count(self, kind):
        return sum(1 for call in self.calls if call[0] == kind)


class FakeChannel:
    def __init__(self, filters, events, callback):
        self.filters = filters
        self.events = events
        self.callback = callback
        self.open = True


class FakeFeed:
    def __init__(self):
        self.channels = []
        self.fail_subscribe = False

    def subscribe(self, table, filters, events, callback):
        if self.fail_subscribe:
            raise RemoteReadError("feed unavailable", status_code=503)
        channel = FakeChannel(dict(filters), tuple(events), callback)
        self.channels.append(channel)
        return channel

    def unsubscribe(self, channel):
        channel.open = False

    @property
    def open_channels(self):
        return [c for c in self.channels if c.open]

    def push(self, action="insert"):
        for channel in self.open_channels:
            channel.callback(action)


class FakeJob:
    def __init__(self, scheduler, func, args):
        self.scheduler = scheduler
        self.func = func
        self.args = args

    def remove(self):
        if self not in self.scheduler.jobs:
            raise JobLookupError(id(self))
        self.scheduler.jobs.remove(self)


class FakeScheduler:
    def __init__(self):
        self.jobs = []

    def add_job(self, func, trigger, run_date=None, args=None, **kwargs):
        job = FakeJob(self, func, args or [])
        self.jobs.append(job)
        return job

    def run_pending(self):
        jobs, self.jobs = self.jobs, []
        for job in jobs:
            job.func(*job.args)

    def shutdown(self, wait=True):
        self.jobs = []


def wait_for(predicate, timeout=5.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
