"""Exception types raised by installer stages."""

from __future__ import annotations

from typing import Optional, Sequence


class InstallerError(Exception):
    """Base class for every failure that halts the pipeline."""

    hint: Optional[str] = None


class ConfigError(InstallerError):
    """Configuration file missing, unreadable or holding invalid values."""


class PrivilegeError(InstallerError):
    """The installer is not running with root privilege."""


class DependencyToolError(InstallerError):
    """An external command (package manager, container engine, firewall) failed."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], detail: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.detail = detail
        joined = ' '.join(self.command)
        if returncode is None:
            message = f"Command not available: {joined}"
        else:
            message = f"Command failed with exit code {returncode}: {joined}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class ReadinessTimeoutError(InstallerError):
    """The readiness probe never succeeded within its attempt budget."""

    def __init__(self, url: str, attempts: int, hint: Optional[str] = None) -> None:
        self.url = url
        self.attempts = attempts
        self.hint = hint
        super().__init__(f"{url} did not respond successfully after {attempts} attempts")


class PipelineCancelled(InstallerError):
    """The operator interrupted the run."""
