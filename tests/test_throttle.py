"""Tests for the inter-call pacer."""

from __future__ import annotations

import pytest

from crmview.throttle import Pacer


class _FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def clock(monkeypatch):
    fake = _FakeClock()
    monkeypatch.setattr("crmview.throttle.time.monotonic", fake.monotonic)
    monkeypatch.setattr("crmview.throttle.time.sleep", fake.sleep)
    return fake


class TestPacer:

    def test_first_call_does_not_wait(self, clock):
        Pacer(0.05).wait()
        assert clock.sleeps == []

    def test_waits_remaining_gap(self, clock):
        pacer = Pacer(0.05)
        pacer.wait()
        clock.now += 0.01
        pacer.wait()
        assert clock.sleeps == [pytest.approx(0.04)]

    def test_no_wait_when_gap_elapsed(self, clock):
        pacer = Pacer(0.05)
        pacer.wait()
        clock.now += 1.0
        pacer.wait()
        assert clock.sleeps == []

    def test_from_millis(self):
        assert Pacer.from_millis(50).delay == pytest.approx(0.05)

    def test_negative_delay_clamped(self, clock):
        pacer = Pacer(-1)
        pacer.wait()
        pacer.wait()
        assert pacer.delay == 0.0
        assert clock.sleeps == []
