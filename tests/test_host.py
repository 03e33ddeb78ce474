#!/usr/bin/env python3
"""
Privilege check and container engine setup tests.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from ipam_installer.errors import DependencyToolError, PrivilegeError  # noqa: E402
from ipam_installer.host import check_privilege, ensure_container_engine  # noqa: E402


def _docker_present(name):
    return f"/usr/bin/{name}"


def _docker_missing(name):
    return None


class TestCheckPrivilege:
    def test_root_passes(self):
        check_privilege(lambda: 0)

    def test_non_root_raises(self):
        with pytest.raises(PrivilegeError, match="root"):
            check_privilege(lambda: 1000)


class TestEnsureContainerEngine:
    def test_full_setup_with_zypper(self, settings, fake_runner):
        ensure_container_engine(settings, fake_runner, which=_docker_missing)

        assert fake_runner.commands == [
            "zypper refresh",
            "zypper update -y",
            "zypper install -y docker docker-compose",
            "systemctl start docker",
            "systemctl enable docker",
            "docker --version",
            "docker compose version",
        ]

    def test_existing_docker_is_not_reinstalled(self, settings, fake_runner):
        ensure_container_engine(settings, fake_runner, which=_docker_present)

        assert not any("install" in cmd for cmd in fake_runner.commands)
        assert "systemctl start docker" in fake_runner.commands

    def test_skip_system_update(self, make_settings, fake_runner):
        settings = make_settings({"packages": {"update_system": False}})

        ensure_container_engine(settings, fake_runner, which=_docker_present)

        assert fake_runner.commands[0] == "systemctl start docker"

    def test_apt_get_manager(self, make_settings, fake_runner):
        settings = make_settings({"packages": {"manager": "apt-get", "names": ["docker.io", "docker-compose-v2"]}})

        ensure_container_engine(settings, fake_runner, which=_docker_missing)

        assert fake_runner.commands[:3] == [
            "apt-get update",
            "apt-get upgrade -y",
            "apt-get install -y docker.io docker-compose-v2",
        ]

    def test_package_failure_propagates(self, settings, make_runner):
        runner = make_runner({"zypper update": 106})

        with pytest.raises(DependencyToolError) as exc_info:
            ensure_container_engine(settings, runner, which=_docker_missing)

        assert exc_info.value.returncode == 106
        assert "zypper install -y docker docker-compose" not in runner.commands
