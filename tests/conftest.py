# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Shared pytest fixtures for devenv-e2e tests."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import yaml
from errors import CommandError
from manifest import Manifest

# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove devenv-e2e-specific environment variables.

    This prevents host environment from leaking into tests.
    """
    env_vars = [
        "REPO_DIR",
        "REPO_NAME",
        "GIT_HOST",
        "GIT_OWNER",
        "GIT_PROTOCOL",
        "GITHUB_TOKEN",
        "CLONE_TIMEOUT",
        "VIRTUAL_DEPENDENCIES",
        "FLAGSHIP_APP",
        "SKIP_DEVENV_PROVISION",
        "SKIP_LOCALIZER",
        "CI",
        "DEBUG",
        "VAULT_ADDR",
        "VAULT_ADDR_CI",
        "DEVCONFIG_SCRIPT",
        "TEST_SCRIPT",
        "TEST_TAGS",
        "LOCALIZER_HOST",
        "LOCALIZER_PORT",
        "LOCALIZER_START_INTERVAL",
        "LOCALIZER_STABLE_INTERVAL",
        "GITHUB_OUTPUT",
        "GITHUB_STEP_SUMMARY",
        "GITHUB_ACTIONS",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture()
def github_output(tmp_path: Path) -> Path:
    """Create a temporary file for $GITHUB_OUTPUT."""
    f = tmp_path / "github_output"
    f.touch()
    return f


@pytest.fixture()
def github_summary(tmp_path: Path) -> Path:
    """Create a temporary file for $GITHUB_STEP_SUMMARY."""
    f = tmp_path / "github_summary"
    f.touch()
    return f


# ---------------------------------------------------------------------------
# Manifest helpers
# ---------------------------------------------------------------------------


def write_manifest(
    directory: Path,
    *,
    filename: str = "devenv.yaml",
    required: Iterable[str] = (),
    optional: Iterable[str] = (),
    service: bool = False,
) -> Path:
    """Write a manifest file into *directory* and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(
        yaml.safe_dump(
            {
                "service": service,
                "dependencies": {
                    "required": list(required),
                    "optional": list(optional),
                },
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def repo_dir(tmp_path: Path) -> Path:
    """Create an empty repository directory named ``my-service``."""
    d = tmp_path / "my-service"
    d.mkdir()
    return d


class FakeManifestReader:
    """Stand-in for ``RemoteFetcher.read_manifest`` backed by a dict.

    *graph* maps a dependency name to its required dependencies, to
    ``None`` (no manifest), or to an exception instance to raise.  Names
    missing from *graph* have an empty manifest.  Every call is recorded
    in :attr:`calls`.
    """

    def __init__(self, graph: Mapping[str, Any] | None = None) -> None:
        self.graph = dict(graph or {})
        self.calls: list[str] = []

    def __call__(self, name: str) -> Manifest | None:
        self.calls.append(name)
        entry = self.graph.get(name, ())
        if isinstance(entry, BaseException):
            raise entry
        if entry is None:
            return None
        if isinstance(entry, Manifest):
            return entry
        return Manifest(required=tuple(entry))


# ---------------------------------------------------------------------------
# Subprocess mock helpers
# ---------------------------------------------------------------------------


def make_completed_process(
    stdout: str = "",
    stderr: str = "",
    returncode: int = 0,
) -> subprocess.CompletedProcess[str]:
    """Create a mock subprocess.CompletedProcess."""
    return subprocess.CompletedProcess(
        args=["devenv"],
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )


class FakeCloneRunner:
    """Command runner that "clones" by writing files into the destination.

    *files* maps a file name to its content.  With *per_repo*, the files
    are looked up by the repository name at the end of the clone URL.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        error: CommandError | None = None,
        per_repo: dict[str, dict[str, str]] | None = None,
    ) -> None:
        self.files = files or {}
        self.error = error
        self.per_repo = per_repo or {}
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.destinations: list[Path] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((cmd, kwargs))
        if self.error is not None:
            raise self.error
        dest = Path(cmd[-1])
        self.destinations.append(dest)
        repo = cmd[-2].rsplit("/", 1)[-1].removesuffix(".git")
        files = self.per_repo.get(repo, self.files)
        for name, content in files.items():
            (dest / name).write_text(content, encoding="utf-8")
        return make_completed_process()


def make_popen_mock(
    stdout: str = "",
    stderr: str = "",
    returncode: int = 0,
) -> MagicMock:
    """Create a mock process as returned by ``subprocess.Popen``."""
    proc = MagicMock()
    proc.communicate.return_value = (stdout, stderr)
    proc.returncode = returncode
    proc.pid = 4242
    return proc


@pytest.fixture()
def mock_popen():
    """Patch subprocess.Popen and return the mock.

    The default process exits 0 with empty output.  Tests can replace
    ``mock.return_value`` (see :func:`make_popen_mock`) or use
    ``mock.side_effect`` for sequences of processes.
    """
    with patch("subprocess.Popen") as mock:
        mock.return_value = make_popen_mock()
        yield mock


# ---------------------------------------------------------------------------
# Requests mock helpers
# ---------------------------------------------------------------------------


class MockResponse:
    """Minimal mock for requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        url: str = "",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.text = text
        self.url = url or ""
        self.headers = headers or {}
        self.content = text.encode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            from requests.exceptions import HTTPError

            raise HTTPError(f"{self.status_code}", response=self)  # type: ignore[arg-type]
