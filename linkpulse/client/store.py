from __future__ import annotations

import httpx

from linkpulse.client.auth import AuthClient
from linkpulse.client.http import send
from linkpulse.errors import RemoteReadError, RemoteWriteError

API_PREFIX = "/api/v1"


def order_param(order_by: str) -> str:
    """``"-created_at"`` -> ``"created_at.desc"``; a bare field sorts ascending."""
    if order_by.startswith("-"):
        return f"{order_by[1:]}.desc"
    return f"{order_by}.asc"


class DataStoreClient:
    def __init__(self, http: httpx.Client, auth: AuthClient):
        self._http = http
        self._auth = auth

    def _send(self, method: str, path: str, error_cls, **kwargs) -> dict:
        return send(
            self._http,
            method,
            f"{API_PREFIX}{path}",
            error_cls=error_cls,
            on_unauthorized=self._auth.expire,
            headers=self._auth.headers(),
            **kwargs,
        )

    def query(self, table: str, filters: dict, order_by: str = "-created_at") -> list[dict]:
        params = {**filters, "order": order_param(order_by)}
        payload = self._send("GET", f"/{table}", RemoteReadError, params=params)
        return payload.get("items", [])

    def insert(self, table: str, record: dict) -> dict:
        return self._send("POST", f"/{table}", RemoteWriteError, json=record)

    def update(self, table: str, record_id: int, fields: dict) -> dict:
        return self._send(
            "PATCH", f"/{table}/{record_id}", RemoteWriteError, json=fields
        )

    def delete(self, table: str, record_id: int) -> None:
        self._send("DELETE", f"/{table}/{record_id}", RemoteWriteError)
