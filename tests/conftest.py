"""
Shared fixtures: settings rooted in tmp_path and a recording command runner.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from ipam_installer.config import deep_merge_configs, load_config, settings_from_config  # noqa: E402
from ipam_installer.credentials import Secret, SecretPolicy, SecretSet  # noqa: E402
from ipam_installer.errors import DependencyToolError  # noqa: E402
from ipam_installer.runner import CommandRunner  # noqa: E402


class FakeRunner(CommandRunner):
    """
    Records every command instead of running it.

    returncodes maps a substring of the joined command to an exit code; None
    simulates a missing binary.
    """

    def __init__(self, returncodes: dict | None = None, outputs: dict | None = None) -> None:
        self.returncodes = returncodes or {}
        self.outputs = outputs or {}
        self.calls: list[list[str]] = []
        self.cwds: list = []

    @property
    def commands(self) -> list[str]:
        return [' '.join(cmd) for cmd in self.calls]

    def _lookup(self, table: dict, cmd: list[str], default):
        joined = ' '.join(cmd)
        for pattern, value in table.items():
            if pattern in joined:
                return value
        return default

    def run(self, cmd, cwd=None, check=True, capture_output=True, timeout=None):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.cwds.append(cwd)
        code = self._lookup(self.returncodes, cmd, 0)
        if code is None:
            raise DependencyToolError(cmd, None)
        if check and code != 0:
            raise DependencyToolError(cmd, code)
        stdout = self._lookup(self.outputs, cmd, '')
        return subprocess.CompletedProcess(cmd, code, stdout=stdout, stderr='')

    def stream(self, cmd, cwd=None, prefix=''):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.cwds.append(cwd)
        code = self._lookup(self.returncodes, cmd, 0)
        if code is None or code != 0:
            raise DependencyToolError(cmd, code)
        return code


class CountingProbe:
    """Readiness check that fails until attempt succeed_on (1-based); None never succeeds."""

    def __init__(self, succeed_on: int | None = None) -> None:
        self.succeed_on = succeed_on
        self.calls = 0

    def __call__(self) -> tuple[bool, str]:
        self.calls += 1
        if self.succeed_on is not None and self.calls >= self.succeed_on:
            return True, "HTTP 200"
        return False, "Connection failed: refused"


@pytest.fixture(autouse=True)
def _clean_installer_env(monkeypatch):
    monkeypatch.delenv("IPAM_INSTALLER_CONFIG", raising=False)
    for name in ("IPAM_MYSQL_ROOT_PASSWORD", "IPAM_MYSQL_PASSWORD", "IPAM_PHPIPAM_ADMIN_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Factory: make_runner({"is-active": 3}) for non-zero exits."""
    return FakeRunner


@pytest.fixture
def make_probe():
    """Factory: make_probe(succeed_on=3) for a probe that answers on attempt 3."""
    return CountingProbe


@pytest.fixture
def make_settings(tmp_path):
    """Factory: make_settings(config={...}, dry_run=True, ...)."""

    def _make(config: dict | None = None, **flags):
        base = {
            "install": {
                "path": str(tmp_path / "phpipam-docker"),
                "credentials_file": str(tmp_path / "phpipam_credentials.txt"),
            },
            "readiness": {"interval_seconds": 0},
        }
        merged = load_config(overrides=deep_merge_configs(base, config or {}))
        return settings_from_config(merged, **flags)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def sample_secrets() -> SecretSet:
    return SecretSet(
        mysql_root=Secret("MYSQL_ROOT_PASSWORD", "RootSecret+Value/1=", SecretPolicy.USER_SUPPLIED, 32,
                          "MySQL Root Password", "Used for database administration"),
        mysql_app=Secret("MYSQL_PASSWORD", "AppSecretValue2", SecretPolicy.USER_SUPPLIED, 32,
                         "MySQL phpIPAM User Password", "Used by phpIPAM to connect to database"),
        admin=Secret("PHPIPAM_ADMIN_PASSWORD", "AdminSecretValue3", SecretPolicy.AUTO_GENERATED, 24,
                     "phpIPAM Admin Password", "Password for logging into phpIPAM web interface"),
    )
