from __future__ import annotations

import httpx

from linkpulse.errors import RemoteError


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.text.strip() or response.reason_phrase or "request failed"


def send(
    http: httpx.Client,
    method: str,
    path: str,
    *,
    error_cls: type[RemoteError] = RemoteError,
    on_unauthorized=None,
    **kwargs,
) -> dict:
    """Issue one request and return its JSON body, raising ``error_cls`` on failure."""
    try:
        response = http.request(method, path, **kwargs)
    except httpx.HTTPError as exc:
        raise error_cls(f"{method} {path} failed: {exc}") from exc

    if response.status_code == 401 and on_unauthorized is not None:
        on_unauthorized()
    if response.is_error:
        raise error_cls(_error_message(response), status_code=response.status_code)
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        raise error_cls(
            f"{method} {path} returned invalid JSON", status_code=response.status_code
        ) from exc
