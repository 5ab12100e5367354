from __future__ import annotations

import itertools
import logging
import threading

import httpx

from linkpulse.client.http import send
from linkpulse.controller.state import Identity
from linkpulse.errors import AuthError

logger = logging.getLogger(__name__)


class AuthClient:
    """Bearer-token session against the ``/auth`` routes.

    Listeners registered with :meth:`on_session_change` are called with the new
    :class:`Identity` (or ``None``) after sign-in, sign-out and session expiry.
    """

    def __init__(self, http: httpx.Client):
        self._http = http
        self._lock = threading.Lock()
        self._token: str | None = None
        self._identity: Identity | None = None
        self._listeners: dict[int, object] = {}
        self._handles = itertools.count(1)

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def headers(self) -> dict:
        token = self._token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    def register(self, username: str, password: str) -> Identity:
        payload = send(
            self._http,
            "POST",
            "/auth/register",
            error_cls=AuthError,
            json={"username": username, "password": password},
        )
        return Identity.from_dict(payload.get("user"))

    def get_current_session(self) -> Identity | None:
        if not self._token:
            return None
        payload = send(
            self._http,
            "GET",
            "/auth/session",
            error_cls=AuthError,
            headers=self.headers(),
        )
        identity = Identity.from_dict(payload.get("user"))
        if identity is None:
            self.expire()
        return identity

    def sign_in(self, provider: str = "password", **credentials) -> Identity:
        payload = send(
            self._http,
            "POST",
            "/auth/session",
            error_cls=AuthError,
            json={"provider": provider, **credentials},
        )
        identity = Identity.from_dict(payload.get("user"))
        self._set_session(payload.get("token"), identity)
        return identity

    def sign_out(self) -> None:
        if not self._token:
            return
        send(
            self._http,
            "DELETE",
            "/auth/session",
            error_cls=AuthError,
            headers=self.headers(),
        )
        self._set_session(None, None)

    def expire(self) -> None:
        if self._token is None:
            return
        logger.info("Session expired")
        self._set_session(None, None)

    def on_session_change(self, callback) -> int:
        with self._lock:
            handle = next(self._handles)
            self._listeners[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> None:
        with self._lock:
            self._listeners.pop(handle, None)

    def _set_session(self, token: str | None, identity: Identity | None) -> None:
        with self._lock:
            self._token = token
            self._identity = identity
            listeners = list(self._listeners.values())
        for callback in listeners:
            callback(identity)
