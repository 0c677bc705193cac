# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Tests for the devenv_manager module."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock, call, patch

import pytest
from conftest import make_completed_process
from devenv_manager import DevenvManager, provision_new
from errors import CommandError


@pytest.fixture()
def mock_run():
    """Patch ``run_command`` as seen by devenv_manager."""
    with patch("devenv_manager.run_command") as mock:
        mock.return_value = make_completed_process()
        yield mock


# ---------------------------------------------------------------------------
# DevenvManager
# ---------------------------------------------------------------------------


class TestRunCmd:
    def test_prefixes_skip_update(self, mock_run: MagicMock) -> None:
        cancel = threading.Event()
        DevenvManager(cancel=cancel).run_cmd(["status"], check=False)

        args, kwargs = mock_run.call_args
        assert args[0] == ["devenv", "--skip-update", "status"]
        assert kwargs["check"] is False
        assert kwargs["cancel"] is cancel


class TestLifecycle:
    def test_is_provisioned(self, mock_run: MagicMock) -> None:
        assert DevenvManager().is_provisioned() is True

    def test_not_provisioned(self, mock_run: MagicMock) -> None:
        mock_run.return_value = make_completed_process(returncode=1)
        assert DevenvManager().is_provisioned() is False

    def test_destroy_ignores_failures(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = CommandError("devenv executable not found", returncode=-1)
        DevenvManager().destroy()

    def test_destroy_ignores_nonzero_exit(self, mock_run: MagicMock) -> None:
        mock_run.return_value = make_completed_process(returncode=1)
        DevenvManager().destroy()
        assert mock_run.call_args[0][0][-1] == "destroy"

    def test_provision_uses_snapshot_target(self, mock_run: MagicMock) -> None:
        DevenvManager().provision("flagship")
        args, kwargs = mock_run.call_args
        assert args[0] == [
            "devenv",
            "--skip-update",
            "provision",
            "--snapshot-target",
            "flagship",
        ]
        assert kwargs["capture"] is False

    def test_provision_failure_propagates(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = CommandError("devenv provision failed (exit 1)")
        with pytest.raises(CommandError):
            DevenvManager().provision("base")


class TestApps:
    def test_deployed_apps(self, mock_run: MagicMock) -> None:
        mock_run.return_value = make_completed_process(
            stdout=json.dumps([{"name": "mint"}, {"name": "clerk"}, {"other": 1}])
        )
        assert DevenvManager().deployed_apps() == {"mint", "clerk"}

    @pytest.mark.parametrize("stdout", ["not json", '{"name": "mint"}'])
    def test_deployed_apps_bad_output(self, mock_run: MagicMock, stdout: str) -> None:
        mock_run.return_value = make_completed_process(stdout=stdout)
        assert DevenvManager().deployed_apps() == set()

    def test_deployed_apps_command_failure(self, mock_run: MagicMock) -> None:
        mock_run.return_value = make_completed_process(returncode=1)
        assert DevenvManager().deployed_apps() == set()

    def test_app_deployed(self, mock_run: MagicMock) -> None:
        mock_run.return_value = make_completed_process(stdout='[{"name": "mint"}]')
        devenv = DevenvManager()
        assert devenv.app_deployed("mint") is True
        assert devenv.app_deployed("clerk") is False

    def test_deploy(self, mock_run: MagicMock) -> None:
        DevenvManager().deploy(".")
        assert mock_run.call_args[0][0] == ["devenv", "--skip-update", "apps", "deploy", "."]


# ---------------------------------------------------------------------------
# provision_new
# ---------------------------------------------------------------------------


class TestProvisionNew:
    def test_sequence(self) -> None:
        devenv = MagicMock(spec=DevenvManager)
        devenv.deployed_apps.return_value = {"outreach"}

        provision_new(devenv, ["mint", "outreach", "clerk"], "flagship")

        assert devenv.method_calls == [
            call.destroy(),
            call.provision("flagship"),
            call.deployed_apps(),
            call.deploy("clerk"),
            call.deploy("mint"),
        ]

    def test_no_dependencies(self) -> None:
        devenv = MagicMock(spec=DevenvManager)
        devenv.deployed_apps.return_value = set()
        provision_new(devenv, [], "base")
        devenv.deploy.assert_not_called()

    def test_deploy_failure_names_dependency(self) -> None:
        devenv = MagicMock(spec=DevenvManager)
        devenv.deployed_apps.return_value = set()
        devenv.deploy.side_effect = [None, CommandError("failed", returncode=2)]

        with pytest.raises(CommandError, match="Failed to deploy dependency 'mint'") as excinfo:
            provision_new(devenv, ["mint", "clerk"], "base")

        assert excinfo.value.returncode == 2

    def test_provision_failure_skips_deploys(self) -> None:
        devenv = MagicMock(spec=DevenvManager)
        devenv.provision.side_effect = CommandError("provision failed")

        with pytest.raises(CommandError, match="provision failed"):
            provision_new(devenv, ["mint"], "base")

        devenv.deploy.assert_not_called()
