# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Readiness polling for spawned helper processes.

Waiting for a helper such as the localizer tunnel happens in two
sequential phases with their own predicates and intervals:

1. *running* – the process exists and its endpoint answers (short
   interval, usually a second or two);
2. *stable* – the process reports that it has finished initialising
   (longer interval).

Between polls the poller waits on the shared cancellation event rather
than sleeping, so a cancellation ends the wait immediately.  A check
that raises is fatal: the error is reported at once and never retried.

Usage::

    from readiness import ReadinessPoller

    poller = ReadinessPoller(cancel, start_interval=1, stable_interval=5)
    poller.wait(is_running=client.is_running, status_check=client.stable)
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable

from errors import CancelledError, StatusCheckError

logger = logging.getLogger(__name__)

DEFAULT_START_INTERVAL = 1.0
DEFAULT_STABLE_INTERVAL = 5.0


class PollState(enum.Enum):
    """Lifecycle of a :class:`ReadinessPoller`."""

    STARTING = "starting"
    POLLING = "polling"
    STABLE = "stable"
    CANCELLED = "cancelled"


class ReadinessPoller:
    """Two-phase, cancellable readiness wait.

    Parameters
    ----------
    cancel:
        Shared cancellation event.
    start_interval:
        Seconds between "is it running" checks.
    stable_interval:
        Seconds between "is it stable" checks.
    target:
        Human-readable name of the process, for logs and errors.
    """

    def __init__(
        self,
        cancel: threading.Event,
        *,
        start_interval: float = DEFAULT_START_INTERVAL,
        stable_interval: float = DEFAULT_STABLE_INTERVAL,
        target: str = "process",
    ) -> None:
        self.cancel = cancel
        self.start_interval = start_interval
        self.stable_interval = stable_interval
        self.target = target
        self.state = PollState.STARTING
        self.checks = 0

    def wait_until_running(self, is_running: Callable[[], bool]) -> None:
        """Block until *is_running* returns True."""
        logger.info("Waiting for %s to start…", self.target)
        self._poll(is_running, self.start_interval, "running")
        logger.info("%s is running ✅", self.target)

    def wait_until_stable(self, status_check: Callable[[], bool]) -> None:
        """Block until *status_check* reports the process as stable."""
        logger.info("Waiting for %s to become stable…", self.target)
        self._poll(status_check, self.stable_interval, "stable")
        self.state = PollState.STABLE
        logger.info("%s is stable ✅", self.target)

    def wait(
        self,
        is_running: Callable[[], bool],
        status_check: Callable[[], bool],
    ) -> None:
        """Run both phases in order."""
        self.wait_until_running(is_running)
        self.wait_until_stable(status_check)

    def _poll(self, check: Callable[[], bool], interval: float, predicate: str) -> None:
        self.state = PollState.POLLING
        while True:
            if self.cancel.is_set():
                raise self._cancel_error(predicate)

            self.checks += 1
            try:
                ready = check()
            except CancelledError as exc:
                raise self._cancel_error(predicate) from exc
            except StatusCheckError:
                raise
            except Exception as exc:
                raise StatusCheckError(
                    f"Status check for {self.target} failed: {exc}",
                    target=self.target,
                ) from exc

            if ready:
                return

            logger.debug(
                "%s not %s yet (check %d), next check in %.1fs",
                self.target,
                predicate,
                self.checks,
                interval,
            )
            # Event.wait returns early as soon as the event is set
            if self.cancel.wait(interval):
                raise self._cancel_error(predicate)

    def _cancel_error(self, predicate: str) -> CancelledError:
        self.state = PollState.CANCELLED
        return CancelledError(f"Cancelled while waiting for {self.target} to be {predicate}")


def cleanup(terminate: Callable[[], object], target: str = "process") -> bool:
    """Run *terminate* best effort.

    Failures are logged as warnings and never raised, so cleanup can
    always run on the way out.

    Returns
    -------
    bool
        *True* if *terminate* completed without raising.
    """
    try:
        terminate()
    except Exception as exc:
        logger.warning("Failed to clean up %s: %s", target, exc)
        return False
    logger.info("Cleaned up %s", target)
    return True
