"""
HTTP transport for the remote formation resource.

Thin wrapper around a requests session: ``GET`` and ``PUT`` on
``/api/formations/{team_id}``. Every failure surfaces as ``TransportError``
with the HTTP status, or 503/504 when the server cannot be reached.
"""

from __future__ import annotations

from typing import Any

import requests

from pitchboard.core.config import EngineConfig
from pitchboard.core.errors import TransportError
from pitchboard.core.logs import get_logger

_log = get_logger("http")


def _handle(resp: requests.Response) -> dict[str, Any]:
    if resp.status_code >= 400:
        try:
            body = resp.json()
            detail = (body.get("detail") or body.get("message")) if isinstance(body, dict) else None
            detail = detail or resp.text
        except ValueError:
            detail = resp.text
        raise TransportError(resp.status_code, str(detail))
    if not resp.content:
        return {}
    payload = resp.json()
    if not isinstance(payload, dict):
        raise TransportError(resp.status_code, f"expected a JSON object, got {type(payload).__name__}")
    return payload


class HttpFormationTransport:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, config: EngineConfig) -> HttpFormationTransport:
        return cls(config.api_url, token=config.api_token, timeout=config.request_timeout)

    def _path(self, team_id: str) -> str:
        return f"{self.base_url}/api/formations/{team_id}"

    def _request(self, method: str, team_id: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        url = self._path(team_id)
        try:
            resp = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.exceptions.ConnectionError:
            raise TransportError(503, f"Cannot reach API at {self.base_url}")
        except requests.exceptions.Timeout:
            raise TransportError(504, f"API request timed out: {method} {url}")
        except requests.exceptions.RequestException as exc:
            raise TransportError(503, f"API request failed: {method} {url}: {exc}")
        _log.debug("%s %s -> %d", method, url, resp.status_code)
        return _handle(resp)

    def fetch(self, team_id: str) -> dict[str, Any]:
        return self._request("GET", team_id)

    def request_default(self, team_id: str) -> dict[str, Any]:
        # The server creates and returns its default formation on a follow-up read.
        return self._request("GET", team_id)

    def put(self, team_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", team_id, json=body)

    def close(self) -> None:
        self.session.close()
