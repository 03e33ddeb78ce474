#!/usr/bin/env python3
"""Thin wrapper around subprocess for the external tools the installer drives."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from .errors import DependencyToolError

logger = logging.getLogger(__name__)


class CommandRunner:
    """
    Run host commands.

    Every stage talks to the outside world through one of these so tests can
    swap in a recording fake.
    """

    def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[Path] = None,
        check: bool = True,
        capture_output: bool = True,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command and return the result.

        Raises:
            DependencyToolError: command missing, or non-zero exit when check is set
        """
        cmd = list(cmd)
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=capture_output,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise DependencyToolError(cmd, None) from e
        except subprocess.TimeoutExpired as e:
            raise DependencyToolError(cmd, None, f"Timed out after {timeout}s") from e

        if check and result.returncode != 0:
            detail = (result.stderr or '').strip() if capture_output else ''
            raise DependencyToolError(cmd, result.returncode, detail)
        return result

    def stream(self, cmd: Sequence[str], cwd: Optional[Path] = None, prefix: str = '') -> int:
        """
        Run a command, echoing its combined output line by line.

        Raises:
            DependencyToolError: command missing or non-zero exit
        """
        cmd = list(cmd)
        logger.debug(f"Streaming: {' '.join(cmd)}")
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise DependencyToolError(cmd, None) from e

        try:
            for line in proc.stdout:
                print(f"{prefix}{line.rstrip()}", flush=True)
            proc.wait()
        except KeyboardInterrupt:
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()
            raise

        if proc.returncode != 0:
            raise DependencyToolError(cmd, proc.returncode)
        return proc.returncode
