# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Logging setup shared by the devenv-e2e entry points.

:func:`setup_logging` configures the root logger once per process and
:func:`log_group` wraps a phase of the run (dependency resolution,
provisioning, tunnel, tests) in a collapsible section when running
under GitHub Actions.

Usage::

    from logging_utils import log_group, setup_logging

    setup_logging()            # reads DEBUG from env
    with log_group("Resolving dependencies"):
        ...
"""

from __future__ import annotations

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are only interesting when debugging
_NOISY_LOGGERS = ("urllib3", "requests")


def _running_in_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


class _E2EFormatter(logging.Formatter):
    """Formatter that can prefix warnings and errors with CI annotations.

    With *annotate* enabled, records at WARNING or above are preceded by
    a ``::warning::`` / ``::error::`` workflow command so that GitHub
    Actions surfaces them on the run page (e.g. a dependency whose
    manifest could not be found).
    """

    _ANNOTATIONS = {
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def __init__(self, annotate: bool = False) -> None:
        super().__init__(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
        self.annotate = annotate

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        if not self.annotate:
            return formatted
        annotation = self._ANNOTATIONS.get(record.levelno)
        if annotation:
            return f"::{annotation}::{record.getMessage()}\n{formatted}"
        return formatted


def setup_logging(debug: bool | None = None) -> None:
    """Configure the root logger for a devenv-e2e entry point.

    Parameters
    ----------
    debug:
        Force ``DEBUG`` (*True*) or ``INFO`` (*False*).  When *None*
        the ``DEBUG`` environment variable decides (``"true"``,
        case-insensitive, selects debug).

    Calling this more than once replaces the previously installed
    handler.  Outside debug mode the HTTP client libraries are kept at
    ``WARNING`` so that status polling does not flood the log.
    """
    if debug is None:
        debug = os.environ.get("DEBUG", "false").lower() == "true"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_E2EFormatter(annotate=_running_in_actions()))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


class _LogGroup:
    """Context manager for GitHub Actions collapsible log groups."""

    def __init__(self, title: str) -> None:
        self._title = title
        self._in_actions = _running_in_actions()

    def __enter__(self) -> None:
        if self._in_actions:
            print(f"::group::{self._title}", file=sys.stderr)
        else:
            print(f"\n--- {self._title} ---", file=sys.stderr)

    def __exit__(self, *_args: object) -> None:
        if self._in_actions:
            print("::endgroup::", file=sys.stderr)


def log_group(title: str) -> _LogGroup:
    """Return a context manager that groups log output under *title*.

    Outside GitHub Actions the title is printed as a plain header.
    """
    return _LogGroup(title)
