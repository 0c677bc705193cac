# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Ephemeral retrieval of a dependency's repository.

Each dependency is a repository on the source host.  To read its
manifest the repository is shallow-cloned into a temporary directory
that is removed as soon as the manifest has been read, so nothing is
left behind on local storage.

Usage::

    from fetcher import RemoteFetcher

    fetcher = RemoteFetcher("github.com", "getoutreach")
    with fetcher.fetch("mint") as repo_dir:
        print(sorted(p.name for p in repo_dir.iterdir()))

    manifest = fetcher.read_manifest("mint")   # None if it has none
"""

from __future__ import annotations

import base64
import contextlib
import logging
import os
import subprocess
import tempfile
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from commands import run_command
from errors import CommandError, ConfigNotFoundError, FetchError
from manifest import Manifest, find_manifest

logger = logging.getLogger(__name__)

DEFAULT_CLONE_TIMEOUT = 120


@dataclass(frozen=True)
class RepositoryRef:
    """Location of a repository on the source host."""

    host: str
    owner: str
    name: str

    @property
    def ssh_url(self) -> str:
        return f"git@{self.host}:{self.owner}/{self.name}"

    @property
    def https_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.name}.git"


class RemoteFetcher:
    """Shallow-clone dependency repositories into temporary directories.

    Parameters
    ----------
    host:
        Source host, e.g. ``github.com``.
    owner:
        Organisation or user owning the dependency repositories.
    protocol:
        ``"ssh"`` (uses the runner's SSH agent / keys) or ``"https"``.
    token:
        Access token for ``https``.  It is sent as an HTTP header through
        ``GIT_CONFIG_*`` environment variables and never appears in the
        clone URL, the process arguments or the logs.
    timeout:
        Maximum seconds per clone.
    cancel:
        Shared cancellation event; a cancelled clone is killed promptly.
    runner:
        Command runner, :func:`commands.run_command` by default.
    """

    def __init__(
        self,
        host: str,
        owner: str,
        *,
        protocol: str = "ssh",
        token: str = "",
        timeout: float = DEFAULT_CLONE_TIMEOUT,
        cancel: threading.Event | None = None,
        runner: Callable[..., subprocess.CompletedProcess[str]] = run_command,
    ) -> None:
        self.host = host
        self.owner = owner
        self.protocol = protocol
        self.token = token
        self.timeout = timeout
        self.cancel = cancel
        self._runner = runner

    # ------------------------------------------------------------------
    # Command construction
    # ------------------------------------------------------------------

    def _auth_header(self) -> str:
        credentials = base64.b64encode(
            f"x-access-token:{self.token}".encode()
        ).decode("ascii")
        return f"AUTHORIZATION: basic {credentials}"

    def _secrets(self) -> tuple[str, ...]:
        if not self.token:
            return ()
        return (self.token, self._auth_header())

    def clone_command(self, name: str, dest: Path) -> list[str]:
        """Return the ``git clone`` argument vector for dependency *name*."""
        ref = RepositoryRef(self.host, self.owner, name)
        url = ref.https_url if self.protocol == "https" else ref.ssh_url
        return ["git", "clone", "-q", "--depth", "1", url, str(dest)]

    def clone_env(self) -> dict[str, str] | None:
        """Return the environment for ``git clone``, or *None* to inherit.

        With ``https`` and a token, the auth header is injected as git
        configuration through ``GIT_CONFIG_COUNT`` / ``GIT_CONFIG_KEY_0``
        / ``GIT_CONFIG_VALUE_0`` so it never shows up in the process list.
        """
        if self.protocol != "https" or not self.token:
            return None
        env = dict(os.environ)
        env.update(
            {
                "GIT_CONFIG_COUNT": "1",
                "GIT_CONFIG_KEY_0": "http.extraheader",
                "GIT_CONFIG_VALUE_0": self._auth_header(),
            }
        )
        return env

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def fetch(self, name: str) -> Iterator[Path]:
        """Clone dependency *name* and yield the checkout directory.

        The directory is deleted when the ``with`` block exits.

        Raises
        ------
        FetchError
            If the clone failed (network, authentication, missing
            repository, timeout).
        CancelledError
            If the shared cancellation event was set.
        """
        with tempfile.TemporaryDirectory(prefix=f"e2e-{name}-") as tmp:
            dest = Path(tmp)
            kwargs: dict[str, Any] = {
                "timeout": self.timeout,
                "cancel": self.cancel,
                "secrets": self._secrets(),
                "env": self.clone_env(),
            }
            try:
                self._runner(self.clone_command(name, dest), **kwargs)
            except CommandError as exc:
                raise FetchError(
                    f"Failed to clone dependency {name}",
                    dependency=name,
                    returncode=exc.returncode,
                    stderr=exc.stderr,
                ) from exc
            yield dest

    def read_manifest(self, name: str) -> Manifest | None:
        """Return the manifest of dependency *name*, or *None* if it has none.

        A manifest that exists but cannot be parsed raises
        :class:`~errors.ConfigMalformedError`.
        """
        with self.fetch(name) as repo_dir:
            try:
                return find_manifest(repo_dir)
            except ConfigNotFoundError:
                return None
