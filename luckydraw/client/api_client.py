"""HTTP client for the lucky draw API."""

from __future__ import annotations

from typing import Any

import httpx

from luckydraw.backend.errors import (
    AuthorizationError,
    BackingStoreError,
    ConflictError,
    LuckyDrawError,
    ValidationError,
)

DEFAULT_SERVER = "http://127.0.0.1:8000"

_ERRORS_BY_STATUS: dict[int, type[LuckyDrawError]] = {
    400: ValidationError,
    403: AuthorizationError,
    409: ConflictError,
    422: ValidationError,
}


def _error_from_response(response: httpx.Response) -> LuckyDrawError:
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    error_class = _ERRORS_BY_STATUS.get(response.status_code, BackingStoreError)
    message = payload.get("error")
    if not isinstance(message, str):
        if error_class is BackingStoreError:
            message = "The lucky draw server is unavailable. Please try again."
        else:
            message = "Invalid request."
    reason = payload.get("reason") if isinstance(payload.get("reason"), str) else None
    return error_class(message, reason=reason)


class LuckyDrawClient:
    """Thin wrapper over the REST endpoints that raises the backend error classes."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER,
        http: httpx.Client | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise BackingStoreError("Could not reach the lucky draw server. Please try again.") from exc
        if response.is_success:
            return response
        raise _error_from_response(response)

    def get_state(self) -> dict[str, Any]:
        return self._request("GET", "/api/state").json()["state"]

    def login(self, member: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/api/login", json={"member": member, "password": password}).json()

    def draw(self, member: str, box_id: int) -> dict[str, Any]:
        return self._request("POST", "/api/draw", json={"member": member, "boxId": box_id}).json()

    def stats(self, admin_password: str) -> dict[str, Any]:
        return self._request("GET", "/api/admin/stats", params={"password": admin_password}).json()

    def export_csv(self, admin_password: str) -> str:
        return self._request("GET", "/api/admin/export", params={"password": admin_password}).text

    def reset(self, admin_password: str, pin: str, confirmation: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/api/admin/reset",
            params={"password": admin_password},
            json={"pin": pin, "confirmation": confirmation},
        ).json()["state"]

    def close(self) -> None:
        self._http.close()
