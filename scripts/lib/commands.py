# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Cancellable execution of external commands.

Every external binary the runner drives (``git``, ``devenv``, ``sudo``,
the repository's shell scripts) goes through :func:`run_command`, which
provides:

- Structured error handling via :class:`CommandError`
- Timeout management
- Prompt cancellation through a shared :class:`threading.Event`
- Debug logging of every command, with secrets redacted

The process is waited on in short slices so that a cancellation request
kills it within :data:`POLL_INTERVAL` seconds instead of after it
finishes.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from collections.abc import Iterable, Mapping

from errors import CancelledError, CommandError

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while a command is running
POLL_INTERVAL = 0.2

_REDACTED = "***"


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret in *text* with ``***``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, _REDACTED)
    return text


def run_command(
    cmd: list[str],
    *,
    timeout: float | None = None,
    check: bool = True,
    capture: bool = True,
    cancel: threading.Event | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    secrets: Iterable[str] = (),
) -> subprocess.CompletedProcess[str]:
    """Run *cmd* and return the completed process.

    Parameters
    ----------
    cmd:
        Full argument vector, e.g. ``["git", "clone", …]``.
    timeout:
        Maximum wall-clock seconds before the process is killed.
        *None* waits indefinitely.
    check:
        If *True* (the default), raise :class:`CommandError` when the
        process exits with a non-zero return code.
    capture:
        Capture stdout/stderr as text.  With *False* the process
        inherits the runner's standard streams, which is what the
        long-running ``devenv`` and test commands want.
    cancel:
        Shared cancellation event.  When set, the process is killed and
        :class:`CancelledError` is raised.
    env:
        Environment for the child process (defaults to the current one).
    cwd:
        Working directory for the child process.
    secrets:
        Strings to redact from the logged command and error messages.

    Raises
    ------
    CommandError
        If the executable is missing, the timeout elapsed, or *check*
        is True and the exit code was non-zero.
    CancelledError
        If *cancel* was set before or while the command ran.
    """
    secrets = tuple(secrets)
    display = redact(shlex.join(cmd), secrets)
    program = cmd[0]

    if cancel is not None and cancel.is_set():
        raise CancelledError(f"Cancelled before running {program}")

    logger.debug("Running: %s", display)
    pipe = subprocess.PIPE if capture else None
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=pipe,
            stderr=pipe,
            text=True,
            env=dict(env) if env is not None else None,
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        raise CommandError(
            f"{program} executable not found – is it installed?",
            command=display,
            returncode=-1,
            stderr=str(exc),
        ) from exc

    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        try:
            stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.is_set():
                _kill(proc)
                logger.debug("Killed %s after cancellation", program)
                raise CancelledError(f"{display} was cancelled") from None
            if deadline is not None and time.monotonic() >= deadline:
                _kill(proc)
                raise CommandError(
                    f"{display} timed out after {timeout:.0f}s",
                    command=display,
                    returncode=-1,
                ) from None

    stdout = redact(stdout or "", secrets)
    stderr = redact(stderr or "", secrets)

    if check and proc.returncode != 0:
        raise CommandError(
            f"{display} failed (exit {proc.returncode})",
            command=display,
            returncode=proc.returncode,
            stderr=stderr,
        )

    logger.debug(
        "%s exited %d (stdout=%d bytes, stderr=%d bytes)",
        program,
        proc.returncode,
        len(stdout),
        len(stderr),
    )
    return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)


def _kill(proc: subprocess.Popen[str]) -> None:
    """Kill *proc* and reap it."""
    proc.kill()
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("Process %s did not exit after SIGKILL", proc.pid)
