# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Configuration and credentials for the Gerrit client.

Credentials are resolved in this order:

1. The persisted store, ``~/.ger/config.json`` (written by ``ger setup``).
2. Environment variables: ``GERRIT_HOST`` plus ``GERRIT_USERNAME`` (or
   ``GERRIT_HTTP_USER``) and ``GERRIT_PASSWORD`` (or
   ``GERRIT_HTTP_PASSWORD``).
3. For a known host with missing username/password, a ``.netrc`` entry
   for the host name (disable with ``--no-netrc``, or point elsewhere
   with ``--netrc-file``).

The resolved credentials are immutable and shared read-only by every
other component.
"""

from __future__ import annotations

import json
import logging
import netrc
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ger.url_parser import normalize_gerrit_host

log = logging.getLogger("ger.config")

CONFIG_DIR_NAME: Final[str] = ".ger"
CONFIG_FILE_NAME: Final[str] = "config.json"

_MSG_NOT_FOUND: Final[str] = (
    "Configuration not found. Run 'ger setup' to configure your Gerrit credentials."
)


class ConfigError(RuntimeError):
    """Raised when configuration is missing or malformed."""


def default_config_path() -> Path:
    """Location of the persisted configuration file."""
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


class GerConfig(BaseModel):
    """Persisted configuration file schema."""

    model_config = ConfigDict(populate_by_name=True)

    host: str = Field(..., min_length=1, description="Gerrit server URL")
    username: str = Field(..., min_length=1, description="HTTP username")
    password: str = Field(..., min_length=1, description="HTTP password")
    ai_tool: str | None = Field(None, alias="aiTool", description="Preferred AI tool")
    ai_auto_detect: bool = Field(
        True, alias="aiAutoDetect", description="Fall back to AI tool discovery"
    )

    @field_validator("host")
    @classmethod
    def _normalize_host(cls, value: str) -> str:
        normalized = normalize_gerrit_host(value)
        parsed = urlparse(normalized)
        hostname = parsed.hostname or ""
        if not hostname or ("." not in hostname and hostname != "localhost"):
            raise ValueError(f"Invalid Gerrit host URL: {value}")
        return normalized


@dataclass(frozen=True)
class Credentials:
    """
    Resolved connection settings.

    Attributes:
        host: Normalized server URL (scheme, no trailing slash).
        username: HTTP username.
        password: HTTP password (never logged).
        ai_tool: Preferred AI tool name, if configured.
        ai_auto_detect: Whether AI tool discovery may be used.
    """

    host: str
    username: str
    password: str = field(repr=False)
    ai_tool: str | None = None
    ai_auto_detect: bool = True

    @property
    def hostname(self) -> str:
        """The bare host name of the server."""
        return urlparse(self.host).hostname or ""

    @classmethod
    def from_config(cls, config: GerConfig) -> Credentials:
        """Build credentials from a validated config model."""
        return cls(
            host=config.host,
            username=config.username,
            password=config.password,
            ai_tool=config.ai_tool,
            ai_auto_detect=config.ai_auto_detect,
        )

    def to_config(self) -> GerConfig:
        """Convert back into the persisted schema."""
        return GerConfig(
            host=self.host,
            username=self.username,
            password=self.password,
            ai_tool=self.ai_tool,
            ai_auto_detect=self.ai_auto_detect,
        )


@dataclass(frozen=True)
class NetrcOptions:
    """Controls ``.netrc`` credential lookup."""

    enabled: bool = True
    path: Path | None = None


def lookup_netrc(hostname: str, options: NetrcOptions) -> tuple[str, str] | None:
    """
    Find a login/password pair for a host in a ``.netrc`` file.

    A missing file is not an error; a malformed one is.
    """
    if not options.enabled or not hostname:
        return None
    path = options.path or Path.home() / ".netrc"
    if not path.exists():
        log.debug("No .netrc file at %s", path)
        return None
    try:
        entry = netrc.netrc(str(path)).authenticators(hostname)
    except netrc.NetrcParseError as exc:
        raise ConfigError(f"Error parsing .netrc file {path}: {exc}") from exc
    if not entry:
        return None
    login, _account, password = entry
    if not login or not password:
        return None
    log.debug("Using credentials from .netrc for %s", hostname)
    return login, password


class ConfigStore:
    """
    Reads and persists credentials.

    Args:
        path: Config file location. Defaults to ``~/.ger/config.json``.
        netrc_options: ``.netrc`` lookup settings.
        environ: Environment mapping; defaults to ``os.environ``.
    """

    def __init__(
        self,
        path: Path | None = None,
        netrc_options: NetrcOptions | None = None,
        environ: dict[str, str] | None = None,
    ) -> None:
        self.path = path or default_config_path()
        self._netrc = netrc_options or NetrcOptions()
        self._environ = environ if environ is not None else os.environ

    def exists(self) -> bool:
        """Check whether the persisted file exists."""
        return self.path.exists()

    def load(self) -> Credentials:
        """
        Resolve credentials from the file, then environment and netrc.

        Raises:
            ConfigError: If no complete configuration can be found, or a
                source is malformed.
        """
        if self.path.exists():
            return Credentials.from_config(self._read_file())

        credentials = self._from_environment()
        if credentials is None:
            raise ConfigError(_MSG_NOT_FOUND)
        return credentials

    def load_optional(self) -> Credentials | None:
        """Like ``load()`` but returns None when nothing is configured."""
        try:
            return self.load()
        except ConfigError as exc:
            if str(exc) != _MSG_NOT_FOUND:
                raise
            return None

    def _read_file(self) -> GerConfig:
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to read configuration {self.path}: {exc}") from exc
        try:
            return GerConfig.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid configuration format in {self.path}: {_first_error(exc)}"
            ) from exc

    def _env(self, *names: str) -> str:
        for name in names:
            value = self._environ.get(name, "").strip()
            if value:
                return value
        return ""

    def _from_environment(self) -> Credentials | None:
        host = self._env("GERRIT_HOST")
        if not host:
            return None
        username = self._env("GERRIT_USERNAME", "GERRIT_HTTP_USER")
        password = self._env("GERRIT_PASSWORD", "GERRIT_HTTP_PASSWORD")

        if not (username and password):
            found = lookup_netrc(
                urlparse(normalize_gerrit_host(host)).hostname or "", self._netrc
            )
            if found is not None:
                username = username or found[0]
                password = password or found[1]

        if not (username and password):
            return None

        try:
            config = GerConfig(host=host, username=username, password=password)
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid environment configuration format: {_first_error(exc)}"
            ) from exc
        return Credentials.from_config(config)

    def save(self, credentials: Credentials) -> Path:
        """
        Persist credentials with owner-only permissions.

        Returns:
            The path that was written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        payload = credentials.to_config().model_dump(by_alias=True, exclude_none=True)
        self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        self.path.chmod(0o600)
        log.debug("Configuration written to %s", self.path)
        return self.path


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "(root)"
    return f"{location}: {error.get('msg', 'invalid value')}"


__all__ = [
    "ConfigError",
    "ConfigStore",
    "Credentials",
    "GerConfig",
    "NetrcOptions",
    "default_config_path",
    "lookup_netrc",
]
