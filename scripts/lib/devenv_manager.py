# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Thin wrapper around the ``devenv`` CLI.

Provisioning and deployment are implemented by ``devenv``; the runner
only sequences it.  Every interaction goes through this module so that:

- every call carries ``--skip-update``,
- failures surface as :class:`CommandError` with the exit code,
- the shared cancellation event reaches each subprocess.

The exit status is the only signal read from ``devenv``, except for
``apps list`` whose JSON output is parsed to skip redeploying apps that
came with a snapshot.

Usage::

    from devenv_manager import DevenvManager

    devenv = DevenvManager(cancel=cancel)
    if not devenv.is_provisioned():
        provision_new(devenv, closure.sorted(), "base")
    devenv.deploy(".")
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from collections.abc import Iterable, Mapping

from commands import run_command
from errors import CommandError

logger = logging.getLogger(__name__)

DEVENV = "devenv"


class DevenvManager:
    """Thin wrapper around the ``devenv`` CLI.

    Parameters
    ----------
    cancel:
        Shared cancellation event passed to every command.
    """

    def __init__(self, cancel: threading.Event | None = None) -> None:
        self.cancel = cancel

    # ------------------------------------------------------------------
    # Low-level command execution
    # ------------------------------------------------------------------

    def run_cmd(
        self,
        args: list[str],
        *,
        check: bool = True,
        capture: bool = True,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run ``devenv --skip-update <args…>``.

        Parameters
        ----------
        args:
            Arguments after the ``--skip-update`` flag, e.g.
            ``["apps", "deploy", "mint"]``.
        check:
            Raise :class:`CommandError` on a non-zero exit code.
        capture:
            Capture output instead of streaming it to the terminal.
        timeout:
            Maximum seconds; *None* waits indefinitely.
        env:
            Environment for the process.
        """
        return run_command(
            [DEVENV, "--skip-update", *args],
            check=check,
            capture=capture,
            timeout=timeout,
            cancel=self.cancel,
            env=env,
        )

    # ------------------------------------------------------------------
    # Environment lifecycle
    # ------------------------------------------------------------------

    def is_provisioned(self) -> bool:
        """Return *True* if a developer environment already exists."""
        result = self.run_cmd(["status"], check=False)
        return result.returncode == 0

    def destroy(self) -> None:
        """Destroy the current environment, ignoring failures."""
        logger.info("Destroying any existing developer environment…")
        try:
            result = self.run_cmd(["destroy"], check=False, timeout=600)
        except CommandError as exc:
            logger.debug("devenv destroy could not run: %s", exc)
            return
        if result.returncode != 0:
            logger.debug("devenv destroy exited %d (ignored)", result.returncode)

    def provision(self, target: str) -> None:
        """Provision a new environment from snapshot *target*."""
        logger.info("Provisioning developer environment (snapshot target: %s)…", target)
        self.run_cmd(["provision", "--snapshot-target", target], capture=False)
        logger.info("Developer environment provisioned ✅")

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def deployed_apps(self) -> set[str]:
        """Return the names of deployed applications.

        Any failure (command error, bad JSON) yields an empty set so the
        caller falls back to deploying.
        """
        try:
            result = self.run_cmd(["apps", "list", "--output", "json"], check=False)
        except CommandError as exc:
            logger.debug("devenv apps list failed: %s", exc)
            return set()
        if result.returncode != 0:
            return set()

        try:
            apps = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.debug("devenv apps list returned invalid JSON")
            return set()
        if not isinstance(apps, list):
            return set()
        return {
            app["name"]
            for app in apps
            if isinstance(app, dict) and isinstance(app.get("name"), str)
        }

    def app_deployed(self, app: str) -> bool:
        return app in self.deployed_apps()

    def deploy(self, app: str) -> None:
        """Deploy *app* (a dependency name, or ``.`` for the current repo)."""
        self.run_cmd(["apps", "deploy", app], capture=False)


def provision_new(devenv: DevenvManager, deps: Iterable[str], target: str) -> None:
    """Recreate the environment and deploy every dependency in *deps*.

    Dependencies that are already deployed, usually because they are
    part of the snapshot just provisioned, are skipped.
    """
    devenv.destroy()
    devenv.provision(target)

    deployed = devenv.deployed_apps()
    for dep in sorted(deps):
        if dep in deployed:
            logger.info("App %s already deployed, skipping", dep)
            continue
        logger.info("Deploying dependency '%s'", dep)
        try:
            devenv.deploy(dep)
        except CommandError as exc:
            raise CommandError(
                f"Failed to deploy dependency '{dep}'",
                command=exc.command,
                returncode=exc.returncode,
                stderr=exc.stderr,
            ) from exc
