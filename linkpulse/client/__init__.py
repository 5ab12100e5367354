from __future__ import annotations

import httpx

from linkpulse.client.auth import AuthClient
from linkpulse.client.realtime import ChangeEvent, ChangeFeedClient
from linkpulse.client.store import DataStoreClient
from linkpulse.config import ClientConfig
from linkpulse.controller.runtime import ViewStateController


class BackendClient:
    """One HTTP connection to a LinkPulse server and the three services on it."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        auto_poll: bool = True,
        scheduler=None,
    ):
        self.http = httpx.Client(
            base_url=base_url or ClientConfig.API_BASE_URL,
            timeout=timeout if timeout is not None else ClientConfig.HTTP_TIMEOUT,
            transport=transport,
        )
        self.auth = AuthClient(self.http)
        self.store = DataStoreClient(self.http, self.auth)
        self.changes = ChangeFeedClient(
            self.http,
            self.auth,
            poll_interval=poll_interval or ClientConfig.CHANGE_POLL_INTERVAL_SECONDS,
            auto_poll=auto_poll,
            scheduler=scheduler,
        )

    def controller(self, **kwargs) -> ViewStateController:
        return ViewStateController.from_config(
            self.auth, self.store, self.changes, **kwargs
        )

    def close(self) -> None:
        self.changes.close()
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = [
    "AuthClient",
    "BackendClient",
    "ChangeEvent",
    "ChangeFeedClient",
    "DataStoreClient",
]
