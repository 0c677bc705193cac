#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Resolve the transitive service dependencies of a repository.

Reads the repository's ``devenv.yaml``, walks every dependency's
manifest (cloning each dependency shallowly), and reports the flat set
of services the repository needs plus the snapshot target that
provisioning would use.

Usage::

    # In the repository under test
    python scripts/resolve-dependencies.py

    # Against another checkout, over HTTPS
    REPO_DIR=../my-service GIT_PROTOCOL=https GITHUB_TOKEN=... \\
        python scripts/resolve-dependencies.py
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Path setup – ensure ``scripts/lib`` is importable
# ---------------------------------------------------------------------------
SCRIPT_DIR = Path(__file__).parent.resolve()
LIB_DIR = SCRIPT_DIR / "lib"
sys.path.insert(0, str(LIB_DIR))

from config import RunnerConfig  # noqa: E402
from errors import CancelledError, E2EError  # noqa: E402
from logging_utils import setup_logging  # noqa: E402
from outputs import emit_dependency_outputs  # noqa: E402
from resolver import resolve_dependencies, select_target  # noqa: E402

logger = logging.getLogger(__name__)


def run(cancel: threading.Event | None = None) -> int:
    """Resolve and publish the dependency closure.

    Returns
    -------
    int
        Exit code: 0 on success, 1 on anticipated error.
    """
    config = RunnerConfig.from_environment()
    setup_logging(debug=config.debug)

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Configuration error: %s", err)
        return 1

    logger.info("Resolving dependencies of %s…", config.root_name)
    closure = resolve_dependencies(config, cancel=cancel)
    target = select_target(closure, config.flagship_app)

    logger.info("========================================")
    logger.info("Dependency resolution complete ✅")
    logger.info("========================================")
    logger.info("Dependencies (%d):", len(closure))
    for name in closure:
        logger.info("  %s", name)
    logger.info("Snapshot target: %s", target)
    if closure.warnings:
        logger.warning("%d dependencies have no manifest", len(closure.warnings))

    emit_dependency_outputs(closure.names, target, closure.warnings)

    # Plain list on stdout for shell consumers
    for name in closure:
        print(name)

    return 0


def main() -> int:
    """Entry point with structured error handling."""
    cancel = threading.Event()

    def _signal_handler(_signum: int, _frame: Any) -> None:
        logger.info("Interrupted — cancelling…")
        cancel.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        return run(cancel)
    except CancelledError as exc:
        logger.error("Cancelled: %s", exc)
        return 130
    except E2EError as exc:
        logger.error(str(exc))
        print(f"::error::{exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.exception("Unexpected error: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
