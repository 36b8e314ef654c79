"""
Common HTTP access to the remote service with error translation.
"""

from __future__ import annotations

import logging
from logging import Logger
from typing import Any

import requests

from ..core.exceptions import (
    ConstraintError,
    NetworkError,
    RemoteError,
    SchemaError,
    SyncError,
)

__all__ = [
    "HttpClient",
]

# postgres / PostgREST codes for missing relations and columns
_SCHEMA_CODES = {"42P01", "42703", "PGRST200", "PGRST204", "PGRST205"}

# postgres codes for rejected writes
_CONSTRAINT_CODES = {"23502", "23503", "23505", "23514"}


class HttpClient:
    """
    Authenticated access to the remote service's HTTP API.
    """

    url: str
    """Base URL of the service, without trailing slash"""

    session: requests.Session
    """Underlying HTTP session"""

    timeout: float
    """Timeout in seconds per request"""

    _headers: dict[str, str]
    _logger: Logger

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        logger: Logger | None = None,
    ):
        self.url = url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
        }
        self._logger = logger or logging.getLogger()

    def request(
        self,
        method: str,
        path: str,
        *,
        table: str | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send request, translating failures to {obj}`SyncError` subclasses.
        """
        url = f"{self.url}{path}"

        try:
            response = self.session.request(
                method,
                url,
                headers={**self._headers, **(headers or {})},
                timeout=self.timeout,
                **kwargs,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"{method} {path}: {e}", table=table) from e

        self._logger.debug(f"{method} {path} -> {response.status_code}")

        if not response.ok:
            raise _translate_error(response, table)

        return response


def _translate_error(
    response: requests.Response, table: str | None
) -> SyncError:
    """
    Map error response to exception.
    """
    code: str | None = None
    message = response.text or response.reason or ""

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        code = str(body["code"]) if body.get("code") is not None else None
        message = str(body.get("message") or body.get("error") or message)

    lowered = message.lower()

    if (
        code in _SCHEMA_CODES
        or "does not exist" in lowered
        or "could not find" in lowered
    ):
        return SchemaError(message, table=table)

    if code in _CONSTRAINT_CODES or response.status_code == 409:
        return ConstraintError(message, table=table)

    return RemoteError(f"HTTP {response.status_code}: {message}", table=table)
