# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit REST client with typed error classification.

This module provides a thin, stateless wrapper around Gerrit's REST API:
- HTTP Basic authentication and the ``/a/`` authenticated path prefix
- Request timeouts
- XSSI guard stripping for Gerrit JSON responses
- Classification of failures into auth, not-found, network, parse and
  generic REST errors

There is no automatic retry; every failure surfaces to the caller.

Usage:
    from ger.gerrit.client import build_client

    client = build_client("https://gerrit.example.org", username="u", password="p")
    changes = client.get("/changes/?q=status:open&n=10")
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Final
from urllib.parse import urljoin, urlparse

import requests
import urllib3.exceptions

log = logging.getLogger("ger.gerrit.client")

XSSI_GUARD: Final[str] = ")]}'"

_AUTH_HINT: Final[str] = "Check your credentials with 'ger setup'."


class GerritRestError(RuntimeError):
    """Raised for non-2xx responses and other REST failures."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GerritAuthError(GerritRestError):
    """Raised for authentication failures (401/403)."""


class GerritNotFoundError(GerritRestError):
    """Raised when a resource is not found (404)."""


class GerritNetworkError(GerritRestError):
    """Raised when the server could not be reached."""


class GerritParseError(GerritRestError):
    """Raised when a response does not match the expected schema."""

    def __init__(self, endpoint: str, detail: str) -> None:
        super().__init__(f"Invalid response from {endpoint}: {detail}")
        self.endpoint = endpoint
        self.detail = detail


@dataclass(frozen=True)
class _Auth:
    """Authentication credentials."""

    user: str
    password: str


def _mask_secret(s: str) -> str:
    """Mask a secret for logging, preserving first/last 2 chars."""
    if not s:
        return s
    if len(s) <= 4:
        return "****"
    return s[:2] + "*" * (len(s) - 4) + s[-2:]


def _strip_xssi_guard(text: str) -> str:
    """
    Strip Gerrit's XSSI guard from JSON responses.

    Gerrit prepends ")]}'" to JSON responses to prevent JSON hijacking.
    This function removes that prefix if present.
    """
    if text.startswith(XSSI_GUARD):
        # Common patterns: ")]}'\n" or ")]}'\r\n"
        if text[4:6] == "\r\n":
            return text[6:]
        if text[4:5] == "\n":
            return text[5:]
        return text[4:]
    return text


def _json_loads(text: str, endpoint: str) -> Any:
    """Parse JSON, reporting the endpoint on failure."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise GerritParseError(endpoint, f"invalid JSON ({exc})") from exc


class GerritRestClient:
    """
    REST client for Gerrit.

    Each call is an independent request; the client holds only immutable
    settings, so one instance can be shared by concurrent threads.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth: tuple[str, str] | None = None,
        timeout: float = 30.0,
        http: Any = None,
    ) -> None:
        """
        Initialize the Gerrit REST client.

        Args:
            base_url: The base URL of the Gerrit server (e.g.,
                     "https://gerrit.example.org/").
            auth: Optional tuple of (username, password) for HTTP Basic auth.
            timeout: Request timeout in seconds.
            http: Object with a requests-compatible ``request()`` method.
                  Defaults to the ``requests`` module.
        """
        # Normalize base URL to end with '/'
        self._base_url: str = base_url.rstrip("/") + "/"
        self._timeout: float = float(timeout)
        self._auth: _Auth | None = None
        self._http: Any = http if http is not None else requests

        if auth and auth[0] and auth[1]:
            self._auth = _Auth(auth[0], auth[1])

        scheme = urlparse(self._base_url).scheme
        if scheme not in ("http", "https"):
            raise GerritRestError(f"Unsupported URL scheme: {scheme}")

        log.debug(
            "GerritRestClient initialized: base_url=%s, timeout=%.1fs, auth_user=%s",
            self._base_url,
            self._timeout,
            self._auth.user if self._auth else "(none)",
        )

    @property
    def base_url(self) -> str:
        """Get the base URL of the Gerrit server."""
        return self._base_url

    @property
    def is_authenticated(self) -> bool:
        """Check if the client has authentication credentials."""
        return self._auth is not None

    def get(self, path: str) -> Any:
        """
        Perform an HTTP GET request and decode the JSON body.

        Raises:
            GerritAuthError: On authentication failures.
            GerritNotFoundError: When the resource is not found.
            GerritNetworkError: When the server cannot be reached.
            GerritParseError: When the body is not valid JSON.
            GerritRestError: On any other non-2xx response.
        """
        return self._decode(self._request("GET", path), path)

    def get_text(self, path: str) -> str:
        """Perform an HTTP GET request and return the raw body."""
        return self._request("GET", path)

    def post(self, path: str, data: Any | None = None) -> Any:
        """Perform an HTTP POST request with an optional JSON body."""
        return self._decode(self._request("POST", path, data), path)

    def put(self, path: str, data: Any | None = None) -> Any:
        """Perform an HTTP PUT request with an optional JSON body."""
        return self._decode(self._request("PUT", path, data), path)

    def delete(self, path: str) -> Any:
        """Perform an HTTP DELETE request."""
        return self._decode(self._request("DELETE", path), path)

    def url_for(self, path: str) -> str:
        """Build the absolute URL for an API path."""
        if not path:
            raise ValueError("path is required")
        rel_path = path[1:] if path.startswith("/") else path
        # Authenticated REST calls go through /a/
        if self._auth is not None and not rel_path.startswith("a/"):
            rel_path = f"a/{rel_path}"
        return urljoin(self._base_url, rel_path)

    def _headers(self, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        if self._auth is not None:
            token = base64.b64encode(
                f"{self._auth.user}:{self._auth.password}".encode()
            ).decode("ascii")
            headers["Authorization"] = f"Basic {token}"
        return headers

    def _request(self, method: str, path: str, data: Any | None = None) -> str:
        """Perform a single HTTP request and return the response text."""
        url = self.url_for(path)
        body = json.dumps(data) if data is not None else None

        log.debug(
            "Gerrit REST %s %s (auth=%s)",
            method,
            url,
            "yes" if self._auth else "no",
        )

        try:
            response = self._http.request(
                method,
                url,
                data=body.encode("utf-8") if body is not None else None,
                headers=self._headers(body is not None),
                timeout=self._timeout,
            )
        except (
            requests.exceptions.RequestException,
            urllib3.exceptions.NameResolutionError,
            urllib3.exceptions.MaxRetryError,
        ) as exc:
            raise GerritNetworkError(
                f"Gerrit REST {method} {path} failed: {exc}"
            ) from exc

        status = response.status_code
        text = response.text or ""
        if 200 <= status < 300:
            return text

        detail = text.strip()
        if status in (401, 403):
            label = "Authentication failed" if status == 401 else "Access forbidden"
            message = f"{label} for {path}"
            if detail:
                message += f": {detail}"
            raise GerritAuthError(
                f"{message}. {_AUTH_HINT}",
                status_code=status,
                response_body=text,
            )
        if status == 404:
            raise GerritNotFoundError(
                detail or f"Resource not found: {path}",
                status_code=status,
                response_body=text,
            )
        raise GerritRestError(
            detail or f"Gerrit REST {method} {path} failed with HTTP {status}",
            status_code=status,
            response_body=text,
        )

    @staticmethod
    def _decode(text: str, path: str) -> Any:
        text = _strip_xssi_guard(text)
        if not text.strip():
            return {}
        return _json_loads(text, path)

    def __repr__(self) -> str:
        """String representation for debugging."""
        masked = ""
        if self._auth is not None:
            masked = f"{self._auth.user}:{_mask_secret(self._auth.password)}@"
        return f"GerritRestClient(base_url='{masked}{self._base_url}')"


def build_client(
    host: str,
    *,
    timeout: float = 30.0,
    username: str | None = None,
    password: str | None = None,
    http: Any = None,
) -> GerritRestClient:
    """
    Build a GerritRestClient for a normalized host URL.

    Args:
        host: Server URL including scheme and optional base path
              (e.g., "https://gerrit.example.org/infra").
        timeout: Request timeout in seconds.
        username: HTTP username.
        password: HTTP password.
        http: Optional requests-compatible transport.

    Returns:
        A configured GerritRestClient instance.
    """
    user = (username or "").strip()
    passwd = (password or "").strip()

    auth: tuple[str, str] | None = None
    if user and passwd:
        auth = (user, passwd)

    return GerritRestClient(base_url=host, auth=auth, timeout=timeout, http=http)


__all__ = [
    "GerritAuthError",
    "GerritNetworkError",
    "GerritNotFoundError",
    "GerritParseError",
    "GerritRestClient",
    "GerritRestError",
    "XSSI_GUARD",
    "build_client",
]
