"""
test_detector.py - Loop decisions over already-fetched evidence.

The detector is pure: these tests never touch the database.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from app.services.detector import DetectorConfig, FailureDetector

T0 = datetime(2026, 1, 1, 12, 0, 0)


@dataclass
class Err:
    message: str
    timestamp: datetime


def at(seconds):
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def detector():
    return FailureDetector(DetectorConfig())


class TestClientErrorLoop:
    def test_two_identical_errors_are_not_a_loop(self, detector):
        recent = [Err("timeout", at(10)), Err("timeout", at(0))]
        decision = detector.evaluate_client_error("timeout", at(10), recent)
        assert decision.is_loop is False
        assert decision.count == 2
        assert decision.reason is None

    def test_three_identical_errors_are_a_loop(self, detector):
        recent = [Err("timeout", at(20)), Err("timeout", at(10)), Err("timeout", at(0))]
        decision = detector.evaluate_client_error("timeout", at(20), recent)
        assert decision.is_loop is True
        assert decision.count == 3
        assert decision.reason == 'Loop detected: "timeout" repeated 3x in 1 min'

    def test_different_messages_are_counted_separately(self, detector):
        recent = [Err("timeout", at(20)), Err("Timeout", at(10)), Err("timeout ", at(0))]
        assert detector.evaluate_client_error("timeout", at(20), recent).count == 1

    def test_window_is_anchored_at_report_timestamp(self, detector):
        # Old backfilled reports still count against each other
        recent = [Err("x", at(-3600)), Err("x", at(-3610)), Err("x", at(-3620))]
        assert detector.evaluate_client_error("x", at(-3600), recent).is_loop is True

    def test_errors_outside_window_are_ignored(self, detector):
        recent = [Err("x", at(61)), Err("x", at(30)), Err("x", at(0))]
        decision = detector.evaluate_client_error("x", at(61), recent)
        assert decision.count == 2
        assert decision.is_loop is False

    def test_window_start_is_inclusive(self, detector):
        recent = [Err("x", at(60)), Err("x", at(30)), Err("x", at(0))]
        assert detector.evaluate_client_error("x", at(60), recent).is_loop is True


class TestUpstreamFailureLoop:
    def test_below_threshold(self, detector):
        decision = detector.evaluate_upstream_failures(2, 500)
        assert decision.is_loop is False
        assert decision.count == 2

    def test_http_failures_reason(self, detector):
        decision = detector.evaluate_upstream_failures(3, 500)
        assert decision.is_loop is True
        assert decision.reason == "Proxy auto-block: 3 upstream failures in 1 min (last: HTTP 500)"

    def test_network_failure_reason(self, detector):
        decision = detector.evaluate_upstream_failures(4, None)
        assert decision.reason == "Proxy auto-block: 4 failures in 1 min (network error)"


class TestConfig:
    def test_custom_threshold_and_window(self):
        detector = FailureDetector(DetectorConfig(threshold=2, window=timedelta(seconds=90)))
        decision = detector.evaluate_upstream_failures(2, 503)
        assert decision.is_loop is True
        assert "in 90s" in decision.reason

    def test_from_settings(self, test_settings):
        config = DetectorConfig.from_settings(test_settings)
        assert config.threshold == 3
        assert config.window == timedelta(seconds=60)
        assert config.recent_error_limit == 5
