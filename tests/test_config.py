# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Tests for the config module."""

from __future__ import annotations

from pathlib import Path

import pytest
from config import (
    DEFAULT_GIT_HOST,
    DEFAULT_GIT_OWNER,
    RunnerConfig,
    parse_interval_to_seconds,
)
from errors import ConfigError

# ---------------------------------------------------------------------------
# RunnerConfig.from_environment
# ---------------------------------------------------------------------------


class TestFromEnvironment:
    """Tests for RunnerConfig.from_environment."""

    def test_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        config = RunnerConfig.from_environment()
        assert config.repo_dir == "."
        assert config.git_host == DEFAULT_GIT_HOST
        assert config.git_owner == DEFAULT_GIT_OWNER
        assert config.git_protocol == "ssh"
        assert config.git_token == ""
        assert config.clone_timeout_seconds == 120
        assert config.flagship_app == "outreach"
        assert config.skip_provision is False
        assert config.skip_localizer is False
        assert config.ci is False
        assert config.test_tags == "or_test,or_e2e"
        assert config.localizer_port == 7070

    def test_reads_variables(
        self, clean_env: pytest.MonkeyPatch, repo_dir: Path
    ) -> None:
        clean_env.setenv("REPO_DIR", str(repo_dir))
        clean_env.setenv("GIT_HOST", "git.example.com")
        clean_env.setenv("GIT_OWNER", "acme")
        clean_env.setenv("GIT_PROTOCOL", "HTTPS")
        clean_env.setenv("GITHUB_TOKEN", "tok")
        clean_env.setenv("CLONE_TIMEOUT", "2m")
        clean_env.setenv("SKIP_DEVENV_PROVISION", "TRUE")
        clean_env.setenv("SKIP_LOCALIZER", "true")
        clean_env.setenv("CI", "true")
        clean_env.setenv("LOCALIZER_PORT", "9000")

        config = RunnerConfig.from_environment()

        assert config.repo_path == repo_dir
        assert config.git_host == "git.example.com"
        assert config.git_owner == "acme"
        assert config.git_protocol == "https"
        assert config.git_token == "tok"
        assert config.clone_timeout_seconds == 120
        assert config.skip_provision is True
        assert config.skip_localizer is True
        assert config.ci is True
        assert config.localizer_port == 9000
        assert config.localizer_url == "http://127.0.0.1:9000"

    def test_invalid_localizer_port(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("LOCALIZER_PORT", "not-a-port")
        with pytest.raises(ConfigError, match="LOCALIZER_PORT"):
            RunnerConfig.from_environment()

    def test_frozen(self) -> None:
        config = RunnerConfig()
        with pytest.raises(AttributeError):
            config.git_host = "x"  # pyright: ignore[reportAttributeAccessIssue]


# ---------------------------------------------------------------------------
# Derived properties
# ---------------------------------------------------------------------------


class TestDerivedProperties:
    def test_root_name_defaults_to_directory_name(self, repo_dir: Path) -> None:
        config = RunnerConfig(repo_dir=str(repo_dir))
        assert config.root_name == "my-service"

    def test_root_name_explicit(self, repo_dir: Path) -> None:
        config = RunnerConfig(repo_dir=str(repo_dir), repo_name="other")
        assert config.root_name == "other"

    def test_vault_addr_outside_ci(self) -> None:
        config = RunnerConfig(vault_addr="https://vault", vault_addr_ci="https://vault-ci")
        assert config.effective_vault_addr == "https://vault"

    def test_vault_addr_in_ci(self) -> None:
        config = RunnerConfig(
            ci=True, vault_addr="https://vault", vault_addr_ci="https://vault-ci"
        )
        assert config.effective_vault_addr == "https://vault-ci"

    def test_vault_addr_in_ci_without_ci_address(self) -> None:
        config = RunnerConfig(ci=True, vault_addr="https://vault")
        assert config.effective_vault_addr == "https://vault"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidate:
    def test_valid(self, repo_dir: Path) -> None:
        assert RunnerConfig(repo_dir=str(repo_dir)).validate() == []

    def test_missing_repo_dir(self, tmp_path: Path) -> None:
        errors = RunnerConfig(repo_dir=str(tmp_path / "nope")).validate()
        assert any("REPO_DIR" in e for e in errors)

    def test_invalid_protocol(self, repo_dir: Path) -> None:
        errors = RunnerConfig(repo_dir=str(repo_dir), git_protocol="ftp").validate()
        assert any("GIT_PROTOCOL" in e for e in errors)

    def test_invalid_interval(self, repo_dir: Path) -> None:
        errors = RunnerConfig(
            repo_dir=str(repo_dir), localizer_stable_interval="soon"
        ).validate()
        assert any("LOCALIZER_STABLE_INTERVAL" in e for e in errors)

    def test_port_out_of_range(self, repo_dir: Path) -> None:
        errors = RunnerConfig(repo_dir=str(repo_dir), localizer_port=70000).validate()
        assert any("LOCALIZER_PORT" in e for e in errors)

    def test_empty_owner(self, repo_dir: Path) -> None:
        errors = RunnerConfig(repo_dir=str(repo_dir), git_owner="").validate()
        assert errors == ["GIT_OWNER must not be empty"]


# ---------------------------------------------------------------------------
# parse_interval_to_seconds
# ---------------------------------------------------------------------------


class TestParseInterval:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("30", 30), ("30s", 30), ("5m", 300), ("1h", 3600), ("2H", 7200), (" 7s ", 7)],
    )
    def test_valid(self, value: str, expected: int) -> None:
        assert parse_interval_to_seconds(value) == expected

    @pytest.mark.parametrize("value", ["", "s", "1d", "-5s", "1.5m"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ConfigError, match="Invalid interval"):
            parse_interval_to_seconds(value)
