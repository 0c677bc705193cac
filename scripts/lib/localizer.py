# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Localizer tunnel management.

The end-to-end tests reach services inside the developer environment
through ``localizer``, a privileged helper that tunnels cluster
services to the local machine.  This module:

- spawns ``sudo localizer`` unless one is already listening,
- waits for it with :class:`readiness.ReadinessPoller` (port open, then
  "stable" reported by its status endpoint),
- tears it down on the way out, best effort.

Usage::

    from localizer import run_localizer

    with run_localizer(config, cancel):
        run_tests()
"""

from __future__ import annotations

import contextlib
import logging
import socket
import subprocess
import tempfile
import threading
from collections.abc import Iterator
from typing import Any

import requests
from commands import run_command
from config import RunnerConfig, parse_interval_to_seconds
from errors import StatusCheckError
from readiness import ReadinessPoller, cleanup

logger = logging.getLogger(__name__)

LOCALIZER_COMMAND = ["sudo", "localizer", "--skip-update"]
SUDO_PREWARM_COMMAND = ["sudo", "true"]

# Seconds to wait for the process to exit after SIGTERM
_TERMINATE_GRACE = 10


# ---------------------------------------------------------------------------
# Status endpoint client
# ---------------------------------------------------------------------------


class LocalizerClient:
    """Client for the localizer status endpoint.

    Every failure (transport, HTTP status, unexpected body) raises
    :class:`StatusCheckError`; callers must not retry.
    """

    def __init__(self, base_url: str, timeout: float = 5.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def _request(self, method: str, path: str) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise StatusCheckError(
                f"localizer {method} {path} failed: {exc}", target="localizer"
            ) from exc
        return resp

    def stable(self) -> bool:
        """Return whether localizer reports that its tunnels are stable."""
        resp = self._request("GET", "/v1/stable")
        try:
            body: Any = resp.json()
        except ValueError as exc:
            raise StatusCheckError(
                f"localizer returned invalid JSON: {exc}", target="localizer"
            ) from exc
        if not isinstance(body, dict) or not isinstance(body.get("stable"), bool):
            raise StatusCheckError(
                f"localizer returned an unexpected status: {body!r}",
                target="localizer",
            )
        return body["stable"]

    def kill(self) -> None:
        """Ask localizer to shut down."""
        self._request("POST", "/v1/kill")


def is_localizer_running(host: str, port: int, timeout: float = 1.0) -> bool:
    """Return *True* if something is accepting connections on *host*:*port*."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


# ---------------------------------------------------------------------------
# Process lifecycle
# ---------------------------------------------------------------------------


def _stop_process(proc: subprocess.Popen[Any]) -> None:
    """Terminate *proc*, escalating to kill if it does not exit in time."""
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=_TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        logger.warning("localizer did not exit after SIGTERM, killing it")
        proc.kill()
        proc.wait(timeout=_TERMINATE_GRACE)


@contextlib.contextmanager
def run_localizer(
    config: RunnerConfig,
    cancel: threading.Event,
) -> Iterator[LocalizerClient]:
    """Ensure localizer is running and stable for the duration of the block.

    An instance that is already listening is reused and left running.
    A spawned instance is always cleaned up on exit, whether the wait
    succeeded, failed, or was cancelled.

    Raises
    ------
    StatusCheckError
        If the spawned process exits before its port opens, or the
        status endpoint fails.
    CancelledError
        If *cancel* is set while waiting.
    ConfigError
        If an interval setting cannot be parsed; nothing is spawned.
    """
    client = LocalizerClient(config.localizer_url)
    host, port = config.localizer_host, config.localizer_port

    if is_localizer_running(host, port):
        logger.info("localizer is already running at %s, reusing it", config.localizer_url)
        yield client
        return

    poller = ReadinessPoller(
        cancel,
        start_interval=parse_interval_to_seconds(config.localizer_start_interval),
        stable_interval=parse_interval_to_seconds(config.localizer_stable_interval),
        target="localizer",
    )

    # Prompt for the password (if any) before localizer takes the terminal
    logger.info("Pre-warming sudo for localizer")
    run_command(SUDO_PREWARM_COMMAND, capture=False, cancel=cancel)

    log_file = tempfile.NamedTemporaryFile(
        prefix="localizer-", suffix=".log", delete=False
    )
    logger.info("Starting localizer (log: %s)", log_file.name)
    try:
        proc = subprocess.Popen(
            LOCALIZER_COMMAND,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
        )
    except OSError:
        log_file.close()
        raise

    def is_running() -> bool:
        code = proc.poll()
        if code is not None:
            raise StatusCheckError(
                f"localizer exited with code {code} before it was ready "
                f"(see {log_file.name})",
                target="localizer",
            )
        return is_localizer_running(host, port)

    try:
        poller.wait(is_running, client.stable)
        yield client
    finally:
        logger.info("Stopping localizer…")
        if proc.poll() is None:
            cleanup(client.kill, target="localizer (kill request)")
        cleanup(lambda: _stop_process(proc), target="localizer process")
        log_file.close()
