#!/usr/bin/env python3
"""Pull images and start the stack through the compose CLI."""

from __future__ import annotations

import logging

from . import console
from .config import InstallSettings
from .runner import CommandRunner
from .stack import ServiceSpec, startup_order

logger = logging.getLogger(__name__)


class StackLauncher:
    """
    Drive `<compose> -f docker-compose.yml ...` inside the install directory.

    A failed command raises DependencyToolError and nothing is rolled back;
    containers already started keep running.
    """

    def __init__(self, settings: InstallSettings, runner: CommandRunner) -> None:
        self.settings = settings
        self.runner = runner

    def _compose(self, *args: str) -> list[str]:
        return [*self.settings.compose_command, '-f', str(self.settings.compose_path), *args]

    def teardown(self) -> bool:
        """
        Remove containers and volumes of a previous run.

        Must run before a new manifest is written, so `down -v` sees the
        services and volume of the previous installation.

        Returns:
            False when there is no compose file to tear down
        """
        if not self.settings.compose_path.exists():
            logger.debug(f"No {self.settings.compose_path}; nothing to tear down")
            return False
        console.warn("Resetting stack: removing containers and the database volume")
        self.runner.stream(self._compose('down', '-v'), cwd=self.settings.install_path, prefix='  [COMPOSE] ')
        return True

    def pull(self) -> None:
        console.info("Pulling Docker images (this may take several minutes on first run)...")
        self.runner.stream(self._compose('pull'), cwd=self.settings.install_path, prefix='  [COMPOSE] ')

    def up(self, services: list[ServiceSpec]) -> list[str]:
        """
        Start every service detached.

        Compose enforces the order through depends_on; the computed order is
        returned for reporting and fails early on a broken dependency graph.
        """
        order = startup_order(services)
        logger.debug(f"Startup order: {' -> '.join(order)}")
        console.info("Starting containers...")
        self.runner.stream(self._compose('up', '-d'), cwd=self.settings.install_path, prefix='  [COMPOSE] ')
        return order

    def launch(self, services: list[ServiceSpec]) -> list[str]:
        self.pull()
        order = self.up(services)
        console.success("Docker containers started")
        return order
