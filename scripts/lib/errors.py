# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Domain-specific exception hierarchy for devenv-e2e.

All exceptions raised by devenv-e2e library modules inherit from
:class:`E2EError`, making it easy to catch every anticipated failure at
the CLI entry-point level while still allowing callers to handle
specific categories (manifest, fetch, readiness, …) individually.

Fatal vs. non-fatal is decided by the caller, not the exception:
:class:`ConfigNotFoundError` or :class:`ConfigMalformedError` for a
transitive dependency degrades that node to "no children", while the
same errors for the root repository abort the run.
"""

from __future__ import annotations


class E2EError(Exception):
    """Base exception for all devenv-e2e errors."""


class ConfigError(E2EError):
    """Invalid or missing configuration."""


class ConfigNotFoundError(ConfigError):
    """No dependency manifest was found.

    Attributes:
        path: The file or directory that was searched.
    """

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ConfigMalformedError(ConfigError):
    """A dependency manifest exists but could not be parsed.

    Attributes:
        path: The manifest file that failed to parse.
    """

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class CommandError(E2EError):
    """An external command failed.

    Attributes:
        command: The command that was run, with secrets redacted.
        returncode: Exit code returned by the process.
        stderr: Standard error output captured from the process.
    """

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: int = 1,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}\nstderr: {self.stderr.strip()}"
        return base


class FetchError(E2EError):
    """A dependency's source could not be retrieved.

    Attributes:
        dependency: Name of the dependency whose fetch failed.
        returncode: Exit code of the fetch command, if any.
        stderr: Standard error output of the fetch command.
    """

    def __init__(
        self,
        message: str,
        dependency: str = "",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.dependency = dependency
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}\nstderr: {self.stderr.strip()}"
        return base


class CancelledError(E2EError):
    """The run was cancelled via the shared cancellation event."""


class StatusCheckError(E2EError):
    """A readiness status check failed.

    Attributes:
        target: Description of the process being checked.
    """

    def __init__(self, message: str, target: str = "") -> None:
        super().__init__(message)
        self.target = target
