#!/usr/bin/env python3
"""Open the web port in firewalld when it is running."""

from __future__ import annotations

import logging

from . import console
from .config import InstallSettings
from .errors import DependencyToolError
from .runner import CommandRunner

logger = logging.getLogger(__name__)


class FirewallManager:
    def __init__(self, settings: InstallSettings, runner: CommandRunner) -> None:
        self.settings = settings
        self.runner = runner

    def is_active(self) -> bool:
        """True when `systemctl is-active` reports the firewall unit running."""
        try:
            result = self.runner.run(
                ['systemctl', 'is-active', '--quiet', self.settings.firewall_unit],
                check=False,
            )
        except DependencyToolError:
            # No systemctl on this host
            logger.debug("systemctl not available; treating firewall as inactive")
            return False
        return result.returncode == 0

    def rule_args(self) -> list[str]:
        """The firewall-cmd rule: the named service on the default port, else the raw port."""
        if self.settings.web_host_port == 80:
            return [f"--add-service={self.settings.firewall_service}"]
        return [f"--add-port={self.settings.web_host_port}/tcp"]

    def expose(self) -> bool:
        """
        Permanently allow the web port and reload firewalld.

        Returns:
            False when the firewall is not active and nothing was changed
        """
        if not self.is_active():
            console.info(f"{self.settings.firewall_unit} not active; skipping firewall configuration")
            return False

        console.info("Opening firewall for HTTP...")
        self.runner.run(['firewall-cmd', '--permanent', *self.rule_args()])
        self.runner.run(['firewall-cmd', '--reload'])
        console.success("Firewall configured")
        return True
