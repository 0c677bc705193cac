#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Run a repository's end-to-end tests inside a developer environment.

This script is the main orchestrator.  It handles:

- Dependency resolution (transitive closure of ``devenv.yaml``)
- Developer environment provisioning via ``devenv`` (or reuse)
- Deployment of missing dependencies and of the repository itself
- The repository's ``devconfig`` bootstrap script
- The ``localizer`` tunnel (started, waited on, torn down)
- The repository's test script with the end-to-end tags

Usage::

    # In the repository under test
    python scripts/run-e2e.py

    # Reuse an environment you provisioned yourself, without a tunnel
    SKIP_DEVENV_PROVISION=true SKIP_LOCALIZER=true \\
        python scripts/run-e2e.py
"""

from __future__ import annotations

import contextlib
import logging
import os
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

from commands import run_command  # noqa: E402
from config import RunnerConfig  # noqa: E402
from devenv_manager import DevenvManager, provision_new  # noqa: E402
from errors import CancelledError, CommandError, E2EError  # noqa: E402
from localizer import run_localizer  # noqa: E402
from logging_utils import log_group, setup_logging  # noqa: E402
from manifest import Manifest  # noqa: E402
from outputs import emit_dependency_outputs, write_status_summary  # noqa: E402
from resolver import (  # noqa: E402
    DependencyClosure,
    load_root_manifest,
    resolve_dependencies,
    select_target,
)

logger = logging.getLogger(__name__)


# =====================================================================
# Steps
# =====================================================================


def configure_vault(config: RunnerConfig) -> str:
    """Export ``VAULT_ADDR`` for the deploy and test steps.

    Returns the exported address, or ``""`` if none is configured.
    """
    vault_addr = config.effective_vault_addr
    if vault_addr:
        os.environ["VAULT_ADDR"] = vault_addr
        logger.info("Set Vault address: %s", vault_addr)
    return vault_addr


def ensure_environment(
    devenv: DevenvManager,
    config: RunnerConfig,
    closure: DependencyClosure,
) -> str:
    """Provision the developer environment unless one can be reused.

    Returns what happened: ``"skipped"``, ``"provisioned"`` or
    ``"reused"``.
    """
    if config.skip_provision:
        logger.info("SKIP_DEVENV_PROVISION=true, not provisioning")
        return "skipped"

    if devenv.is_provisioned():
        logger.warning(
            "Re-using existing developer environment, this may lead to a "
            "non-reproducible failure/success. To ensure a clean run, "
            "run `devenv destroy` before running tests"
        )
        return "reused"

    target = select_target(closure, config.flagship_app)
    provision_new(devenv, closure.names, target)
    return "provisioned"


def deploy_application(devenv: DevenvManager, manifest: Manifest) -> bool:
    """Deploy the repository under test if it is a service.

    Returns *True* if a deployment happened.
    """
    if not manifest.service:
        logger.info("Repository is a library, not deploying it")
        return False

    logger.info("Deploying current application into the environment")
    try:
        devenv.deploy(".")
    except CommandError as exc:
        raise CommandError(
            "Failed to deploy current application into the environment",
            command=exc.command,
            returncode=exc.returncode,
        ) from exc
    return True


def run_script(
    config: RunnerConfig,
    script: str,
    description: str,
    cancel: threading.Event,
    extra_env: dict[str, str] | None = None,
) -> None:
    """Run a repository script, streaming its output."""
    path = (config.repo_path / script).resolve()
    env = dict(os.environ)
    env.update(extra_env or {})

    logger.info("Running %s (%s)", description, script)
    try:
        run_command(
            [str(path)],
            capture=False,
            cancel=cancel,
            env=env,
            cwd=str(config.repo_path),
        )
    except CommandError as exc:
        raise CommandError(
            f"{description} failed (exit {exc.returncode})",
            command=exc.command,
            returncode=exc.returncode,
        ) from exc


# =====================================================================
# Main orchestrator
# =====================================================================


def run(cancel: threading.Event | None = None) -> int:
    """Run the full end-to-end sequence.

    Returns
    -------
    int
        Exit code: 0 when the tests passed, 1 on configuration errors.
        Other failures raise and are mapped by :func:`main`.
    """
    if cancel is None:
        cancel = threading.Event()

    config = RunnerConfig.from_environment()
    setup_logging(debug=config.debug)

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Configuration error: %s", err)
        return 1

    configure_vault(config)

    # Absence of the root manifest is fatal
    root_manifest = load_root_manifest(config)

    with log_group("Resolving dependencies"):
        closure = resolve_dependencies(config, cancel=cancel, root_manifest=root_manifest)
        target = select_target(closure, config.flagship_app)
        logger.info("Dependencies: %s", ", ".join(closure) or "(none)")
        emit_dependency_outputs(closure.names, target, closure.warnings)

    devenv = DevenvManager(cancel=cancel)

    with log_group("Developer environment"):
        ensure_environment(devenv, config, closure)
        deploy_application(devenv, root_manifest)

    with log_group("devconfig"):
        run_script(config, config.devconfig_script, "devconfig", cancel)

    if config.skip_localizer:
        logger.info("SKIP_LOCALIZER=true, not starting localizer")
        tunnel: contextlib.AbstractContextManager[Any] = contextlib.nullcontext()
    else:
        tunnel = run_localizer(config, cancel)

    with tunnel, log_group("End-to-end tests"):
        run_script(
            config,
            config.test_script,
            "End-to-end tests",
            cancel,
            extra_env={"TEST_TAGS": config.test_tags},
        )

    logger.info("End-to-end tests passed ✅")
    write_status_summary("End-to-end Tests", "All end-to-end tests passed.", emoji="✅")
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
        write_status_summary("End-to-end Tests", f"Failed: {exc}", emoji="❌")
        return 1
    except Exception as exc:
        logger.exception("Unexpected error: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
