from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol

from linkpulse.controller.state import Identity


class AuthProvider(Protocol):
    def get_current_session(self) -> Identity | None: ...

    def sign_in(self, provider: str, **credentials) -> Identity: ...

    def sign_out(self) -> None: ...

    def on_session_change(
        self, callback: Callable[[Identity | None], None]
    ) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...


class DataStore(Protocol):
    def query(self, table: str, filters: dict, order_by: str) -> list[dict]: ...

    def insert(self, table: str, record: dict) -> dict: ...

    def update(self, table: str, record_id: int, fields: dict) -> dict: ...

    def delete(self, table: str, record_id: int) -> None: ...


class ChangeFeed(Protocol):
    def subscribe(
        self,
        table: str,
        filters: dict,
        events: Iterable[str],
        callback: Callable[[Any], None],
    ) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...
