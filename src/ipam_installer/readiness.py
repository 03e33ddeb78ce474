#!/usr/bin/env python3
"""
Readiness gate: poll the web endpoint until the stack answers.

A running container is not proof that phpIPAM finished initialising, so the
gate probes over HTTP from the outside. States:

    WAITING --probe ok--> READY
    WAITING --last attempt failed--> TIMED_OUT

Waiting between attempts goes through a threading.Event, so a cancel request
ends the wait at once and tests can run with a zero interval.
"""

from __future__ import annotations

import http.client
import logging
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from . import console
from .config import InstallSettings
from .config_constants import PRODUCT_NAME
from .errors import PipelineCancelled, ReadinessTimeoutError

logger = logging.getLogger(__name__)

ProbeFunc = Callable[[], tuple[bool, str]]
WaitFunc = Callable[[float], bool]


class ReadinessState(str, Enum):
    WAITING = 'waiting'
    READY = 'ready'
    TIMED_OUT = 'timed-out'


@dataclass(frozen=True)
class ReadinessOutcome:
    state: ReadinessState
    attempts: int
    message: str = ''


class Deadline:
    """Optional wall-clock bound on top of the attempt budget."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self.expires_at = None if not seconds else clock() + seconds

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self.clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


def check_http_status_ok(url: str, timeout: float = 10) -> tuple[bool, str]:
    """GET url; any 2xx/3xx after redirects counts as success."""
    try:
        req = urllib.request.Request(url, headers={'User-Agent': 'ipam-installer-readiness/1.0'})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return True, f"HTTP {response.status}"
    except urllib.error.HTTPError as e:
        return False, f"HTTP {e.code}: {e.reason}"
    except urllib.error.URLError as e:
        return False, f"Connection failed: {e.reason}"
    except (OSError, http.client.HTTPException) as e:
        return False, f"Error: {e}"


def poll_until_ready(
    probe: ProbeFunc,
    max_attempts: int,
    interval: float,
    cancel: Optional[threading.Event] = None,
    wait: Optional[WaitFunc] = None,
    deadline: Optional[Deadline] = None,
    on_retry: Optional[Callable[[int, str], None]] = None,
) -> ReadinessOutcome:
    """
    Run probe up to max_attempts times, waiting interval seconds in between.

    Args:
        probe: Returns (ok, message)
        max_attempts: Attempt budget; no wait follows the final attempt
        interval: Seconds between attempts
        cancel: Set to abort the poll
        wait: Sleep function returning True when cancelled (default: cancel.wait)
        deadline: Optional overall time bound
        on_retry: Called with (attempt, message) after each failure that is retried

    Raises:
        PipelineCancelled: cancel was set
    """
    cancel = cancel or threading.Event()
    wait = wait or cancel.wait

    message = ''
    attempt = 0
    while attempt < max_attempts:
        if cancel.is_set():
            raise PipelineCancelled("Readiness check cancelled")

        attempt += 1
        ok, message = probe()
        logger.debug(f"Readiness attempt {attempt}/{max_attempts}: {message}")
        if ok:
            return ReadinessOutcome(ReadinessState.READY, attempt, message)

        if attempt >= max_attempts:
            break
        if deadline is not None and deadline.expired():
            logger.debug("Readiness deadline expired")
            break

        if on_retry is not None:
            on_retry(attempt, message)

        pause = interval
        remaining = deadline.remaining() if deadline is not None else None
        if remaining is not None:
            pause = min(pause, remaining)
        if wait(pause) or cancel.is_set():
            raise PipelineCancelled("Readiness check cancelled")

    return ReadinessOutcome(ReadinessState.TIMED_OUT, attempt, message)


class ReadinessGate:
    """Block until the phpIPAM web endpoint answers or the budget runs out."""

    def __init__(
        self,
        settings: InstallSettings,
        probe: Optional[ProbeFunc] = None,
        cancel: Optional[threading.Event] = None,
        wait: Optional[WaitFunc] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.probe = probe or (
            lambda: check_http_status_ok(settings.probe_url, timeout=settings.request_timeout_seconds)
        )
        self.cancel = cancel or threading.Event()
        self.wait = wait
        self.clock = clock
        self.state = ReadinessState.WAITING

    def _report_retry(self, attempt: int, message: str) -> None:
        print(
            f"{console.BLUE}Waiting for {PRODUCT_NAME}... ({attempt}/{self.settings.max_attempts}){console.RESET}",
            flush=True,
        )

    def run(self) -> ReadinessOutcome:
        """
        Raises:
            ReadinessTimeoutError: every attempt failed
            PipelineCancelled: cancel event set while waiting
        """
        console.info(f"Waiting for {PRODUCT_NAME} at {self.settings.probe_url} (database initialization)...")
        outcome = poll_until_ready(
            self.probe,
            max_attempts=self.settings.max_attempts,
            interval=self.settings.interval_seconds,
            cancel=self.cancel,
            wait=self.wait,
            deadline=Deadline(self.settings.deadline_seconds, clock=self.clock),
            on_retry=self._report_retry,
        )
        self.state = outcome.state

        if outcome.state is ReadinessState.TIMED_OUT:
            raise ReadinessTimeoutError(
                self.settings.probe_url,
                outcome.attempts,
                hint=f"Check logs with: cd {self.settings.install_path} && {self.settings.compose_display} logs",
            )

        console.success(f"{PRODUCT_NAME} is ready! ({outcome.message}, attempt {outcome.attempts})")
        return outcome
