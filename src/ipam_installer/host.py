#!/usr/bin/env python3
"""Host checks and container engine setup."""

from __future__ import annotations

import logging
import os
import shutil
from typing import Callable, Optional

from . import console
from .config import InstallSettings
from .config_constants import PACKAGE_MANAGER_COMMANDS
from .errors import PrivilegeError
from .runner import CommandRunner

logger = logging.getLogger(__name__)


def check_privilege(geteuid: Callable[[], int] = os.geteuid) -> None:
    """
    Raises:
        PrivilegeError: effective UID is not root
    """
    euid = geteuid()
    logger.debug(f"Effective UID: {euid}")
    if euid != 0:
        raise PrivilegeError("This installer must be run as root")


def ensure_container_engine(
    settings: InstallSettings,
    runner: CommandRunner,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> None:
    """
    Make sure the container engine is installed, running and answering.

    Steps:
    1. Refresh and upgrade host packages (packages.update_system)
    2. Install engine packages unless `docker` is already on PATH
    3. Start and enable the engine service
    4. Print engine and compose versions
    """
    refresh_cmd, upgrade_cmd, install_cmd = PACKAGE_MANAGER_COMMANDS[settings.package_manager]

    if settings.update_system:
        console.info("Updating system packages...")
        runner.run(refresh_cmd, capture_output=False)
        runner.run(upgrade_cmd, capture_output=False)
    else:
        logger.debug("packages.update_system disabled; not upgrading host packages")

    if which('docker'):
        console.success("Docker already installed")
    else:
        console.info(f"Installing {', '.join(settings.engine_packages)}...")
        runner.run([*install_cmd, *settings.engine_packages], capture_output=False)

    runner.run(['systemctl', 'start', settings.engine_service])
    runner.run(['systemctl', 'enable', settings.engine_service])

    engine_version = runner.run(['docker', '--version']).stdout.strip()
    compose_version = runner.run([*settings.compose_command, 'version']).stdout.strip()
    console.info(engine_version)
    console.info(compose_version)
    console.success("Docker and Docker Compose ready")
