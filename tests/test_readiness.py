#!/usr/bin/env python3
"""
Readiness gate tests.
"""

import sys
import threading
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from ipam_installer.errors import PipelineCancelled, ReadinessTimeoutError  # noqa: E402
from ipam_installer.readiness import (  # noqa: E402
    Deadline,
    ReadinessGate,
    ReadinessState,
    check_http_status_ok,
    poll_until_ready,
)


class RecordingWait:
    def __init__(self):
        self.pauses = []

    def __call__(self, seconds):
        self.pauses.append(seconds)
        return False


class TestPollUntilReady:
    def test_times_out_after_exactly_max_attempts(self, make_probe):
        probe, wait = make_probe(), RecordingWait()

        outcome = poll_until_ready(probe, max_attempts=30, interval=5, wait=wait)

        assert outcome.state is ReadinessState.TIMED_OUT
        assert outcome.attempts == 30
        assert probe.calls == 30
        assert wait.pauses == [5] * 29

    @pytest.mark.parametrize("n", [1, 3, 30])
    def test_ready_on_nth_attempt(self, n, make_probe):
        probe, wait = make_probe(succeed_on=n), RecordingWait()

        outcome = poll_until_ready(probe, max_attempts=30, interval=5, wait=wait)

        assert outcome.state is ReadinessState.READY
        assert outcome.attempts == n
        assert probe.calls == n
        assert len(wait.pauses) == n - 1

    def test_on_retry_sees_each_retried_failure(self, make_probe):
        seen = []

        poll_until_ready(make_probe(succeed_on=3), max_attempts=5, interval=0,
                         on_retry=lambda attempt, msg: seen.append(attempt))

        assert seen == [1, 2]

    def test_cancel_before_first_probe(self, make_probe):
        cancel = threading.Event()
        cancel.set()
        probe = make_probe()

        with pytest.raises(PipelineCancelled):
            poll_until_ready(probe, max_attempts=30, interval=5, cancel=cancel)
        assert probe.calls == 0

    def test_cancel_during_wait(self, make_probe):
        probe = make_probe()

        with pytest.raises(PipelineCancelled):
            poll_until_ready(probe, max_attempts=30, interval=5, wait=lambda seconds: True)
        assert probe.calls == 1

    def test_deadline_stops_early(self, make_probe):
        now = [0.0]
        deadline = Deadline(10, clock=lambda: now[0])

        def advancing_wait(seconds):
            now[0] += seconds
            return False

        probe = make_probe()
        outcome = poll_until_ready(probe, max_attempts=30, interval=5, wait=advancing_wait, deadline=deadline)

        assert outcome.state is ReadinessState.TIMED_OUT
        assert probe.calls == 3


class TestDeadline:
    def test_disabled_never_expires(self):
        deadline = Deadline(0)

        assert deadline.remaining() is None
        assert deadline.expired() is False


class TestReadinessGate:
    def test_timeout_raises_with_logs_hint(self, settings, capsys, make_probe):
        gate = ReadinessGate(settings, probe=make_probe(), wait=RecordingWait())

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            gate.run()

        assert exc_info.value.attempts == 30
        assert "logs" in exc_info.value.hint
        assert gate.state is ReadinessState.TIMED_OUT
        assert "Waiting for phpIPAM... (29/30)" in capsys.readouterr().out

    def test_ready_on_third_attempt(self, settings, make_probe):
        gate = ReadinessGate(settings, probe=make_probe(succeed_on=3), wait=RecordingWait())

        outcome = gate.run()

        assert outcome.attempts == 3
        assert gate.state is ReadinessState.READY

    def test_default_probe_targets_settings_url(self, make_settings):
        settings = make_settings({"readiness": {"max_attempts": 1}})

        with patch("ipam_installer.readiness.check_http_status_ok", return_value=(True, "HTTP 200")) as check:
            ReadinessGate(settings).run()

        check.assert_called_once_with("http://localhost", timeout=10.0)


class TestCheckHttpStatusOk:
    def test_success(self):
        response = MagicMock()
        response.status = 200
        response.__enter__.return_value = response

        with patch("urllib.request.urlopen", return_value=response):
            ok, msg = check_http_status_ok("http://localhost")

        assert ok is True
        assert msg == "HTTP 200"

    def test_http_error_is_failure(self):
        error = urllib.error.HTTPError("http://localhost", 502, "Bad Gateway", {}, None)

        with patch("urllib.request.urlopen", side_effect=error):
            ok, msg = check_http_status_ok("http://localhost")

        assert ok is False
        assert "502" in msg

    def test_connection_refused_is_failure(self):
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            ok, msg = check_http_status_ok("http://localhost")

        assert ok is False
        assert "refused" in msg

    def test_reset_connection_is_failure(self):
        with patch("urllib.request.urlopen", side_effect=ConnectionResetError("reset")):
            ok, _ = check_http_status_ok("http://localhost")

        assert ok is False
