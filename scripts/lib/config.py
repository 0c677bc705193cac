# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Configuration parsing and validation for devenv-e2e.

All knobs of the runner are environment variables (the tool runs as a
CI step or from a developer shell).  They are read once into a typed,
frozen :class:`RunnerConfig`.

Usage::

    from config import RunnerConfig

    config = RunnerConfig.from_environment()
    for problem in config.validate():
        print(problem)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from errors import ConfigError

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_GIT_HOST = "github.com"
DEFAULT_GIT_OWNER = "getoutreach"
DEFAULT_FLAGSHIP_APP = "outreach"
DEFAULT_DEVCONFIG_SCRIPT = ".bootstrap/shell/devconfig.sh"
DEFAULT_TEST_SCRIPT = ".bootstrap/shell/test.sh"
DEFAULT_TEST_TAGS = "or_test,or_e2e"
DEFAULT_LOCALIZER_HOST = "127.0.0.1"
DEFAULT_LOCALIZER_PORT = 7070

_GIT_PROTOCOLS = ("ssh", "https")


@dataclass(frozen=True)
class RunnerConfig:
    """Global configuration for an end-to-end run."""

    # Repository under test
    repo_dir: str = "."
    repo_name: str = ""

    # Remote source for dependency manifests
    git_host: str = DEFAULT_GIT_HOST
    git_owner: str = DEFAULT_GIT_OWNER
    git_protocol: str = "ssh"
    git_token: str = ""
    clone_timeout: str = "120s"

    # Resolution
    virtual_dependencies_json: str = ""
    flagship_app: str = DEFAULT_FLAGSHIP_APP

    # Behaviour
    skip_provision: bool = False
    skip_localizer: bool = False
    ci: bool = False
    debug: bool = False

    # Vault
    vault_addr: str = ""
    vault_addr_ci: str = ""

    # Scripts
    devconfig_script: str = DEFAULT_DEVCONFIG_SCRIPT
    test_script: str = DEFAULT_TEST_SCRIPT
    test_tags: str = DEFAULT_TEST_TAGS

    # Localizer tunnel
    localizer_host: str = DEFAULT_LOCALIZER_HOST
    localizer_port: int = DEFAULT_LOCALIZER_PORT
    localizer_start_interval: str = "1s"
    localizer_stable_interval: str = "5s"

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def repo_path(self) -> Path:
        """Return the repository directory as a :class:`Path`."""
        return Path(self.repo_dir)

    @property
    def root_name(self) -> str:
        """Name of the repository under test, excluded from the closure."""
        if self.repo_name:
            return self.repo_name
        return self.repo_path.resolve().name

    @property
    def clone_timeout_seconds(self) -> int:
        return parse_interval_to_seconds(self.clone_timeout)

    @property
    def effective_vault_addr(self) -> str:
        """Vault address to export, preferring the CI address in CI."""
        if self.ci and self.vault_addr_ci:
            return self.vault_addr_ci
        return self.vault_addr

    @property
    def localizer_url(self) -> str:
        return f"http://{self.localizer_host}:{self.localizer_port}"

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_environment(cls) -> RunnerConfig:
        """Parse configuration from environment variables."""
        env = os.environ.get

        raw_port = env("LOCALIZER_PORT", str(DEFAULT_LOCALIZER_PORT))
        try:
            localizer_port = int(raw_port)
        except ValueError as exc:
            raise ConfigError(
                f"LOCALIZER_PORT is not a valid integer: {raw_port!r}"
            ) from exc

        return cls(
            repo_dir=env("REPO_DIR", "."),
            repo_name=env("REPO_NAME", ""),
            git_host=env("GIT_HOST", DEFAULT_GIT_HOST),
            git_owner=env("GIT_OWNER", DEFAULT_GIT_OWNER),
            git_protocol=env("GIT_PROTOCOL", "ssh").strip().lower(),
            git_token=env("GITHUB_TOKEN", ""),
            clone_timeout=env("CLONE_TIMEOUT", "120s"),
            virtual_dependencies_json=env("VIRTUAL_DEPENDENCIES", ""),
            flagship_app=env("FLAGSHIP_APP", DEFAULT_FLAGSHIP_APP),
            skip_provision=_str_to_bool(env("SKIP_DEVENV_PROVISION", "false")),
            skip_localizer=_str_to_bool(env("SKIP_LOCALIZER", "false")),
            ci=_str_to_bool(env("CI", "false")),
            debug=_str_to_bool(env("DEBUG", "false")),
            vault_addr=env("VAULT_ADDR", ""),
            vault_addr_ci=env("VAULT_ADDR_CI", ""),
            devconfig_script=env("DEVCONFIG_SCRIPT", DEFAULT_DEVCONFIG_SCRIPT),
            test_script=env("TEST_SCRIPT", DEFAULT_TEST_SCRIPT),
            test_tags=env("TEST_TAGS", DEFAULT_TEST_TAGS),
            localizer_host=env("LOCALIZER_HOST", DEFAULT_LOCALIZER_HOST),
            localizer_port=localizer_port,
            localizer_start_interval=env("LOCALIZER_START_INTERVAL", "1s"),
            localizer_stable_interval=env("LOCALIZER_STABLE_INTERVAL", "5s"),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> list[str]:
        """Return a list of validation error messages (empty if valid)."""
        errors: list[str] = []

        if not self.repo_path.is_dir():
            errors.append(f"REPO_DIR is not a directory: {self.repo_dir}")

        if not self.git_host:
            errors.append("GIT_HOST must not be empty")
        if not self.git_owner:
            errors.append("GIT_OWNER must not be empty")

        if self.git_protocol not in _GIT_PROTOCOLS:
            errors.append(
                f"Invalid GIT_PROTOCOL: '{self.git_protocol}' "
                f"(expected one of: {', '.join(_GIT_PROTOCOLS)})"
            )

        for name, value in (
            ("CLONE_TIMEOUT", self.clone_timeout),
            ("LOCALIZER_START_INTERVAL", self.localizer_start_interval),
            ("LOCALIZER_STABLE_INTERVAL", self.localizer_stable_interval),
        ):
            if not _INTERVAL_RE.match(value.strip()):
                errors.append(
                    f"{name} must be a valid interval "
                    f"(e.g. '30s', '5m', '1h'): got '{value}'"
                )

        if not (1 <= self.localizer_port <= 65535):
            errors.append(f"LOCALIZER_PORT out of range: {self.localizer_port}")

        if not self.flagship_app:
            errors.append("FLAGSHIP_APP must not be empty")

        return errors


# ---------------------------------------------------------------------------
# Interval parsing
# ---------------------------------------------------------------------------

_INTERVAL_RE = re.compile(r"^(\d+)([smhSMH]?)$")


def parse_interval_to_seconds(interval: str) -> int:
    """Parse a time interval string (e.g. ``"60s"``, ``"5m"``, ``"1h"``) to seconds.

    Plain integers (e.g. ``"60"``) are treated as seconds.

    Raises :class:`ConfigError` for invalid formats.
    """
    m = _INTERVAL_RE.match(interval.strip())
    if not m:
        raise ConfigError(
            f"Invalid interval '{interval}'. "
            "Expected format: <integer>[s|m|h], e.g. 60s, 5m, 1h"
        )
    value = int(m.group(1))
    unit = m.group(2).lower()
    if unit == "m":
        return value * 60
    if unit == "h":
        return value * 3600
    return value


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _str_to_bool(value: str) -> bool:
    """Convert a string to bool (``"true"`` → True, anything else → False)."""
    return value.strip().lower() == "true"
