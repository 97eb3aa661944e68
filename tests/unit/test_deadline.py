"""Unit tests for perflink.pipeline.deadline."""

from __future__ import annotations

from perflink.pipeline.deadline import JobDeadline


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestJobDeadline:
    def test_remaining_and_elapsed(self) -> None:
        clock = _Clock()
        deadline = JobDeadline(60, margin_seconds=10, clock=clock)
        clock.now += 15
        assert deadline.elapsed() == 15
        assert deadline.remaining() == 45
        assert deadline.should_stop() is False
        assert deadline.expired() is False

    def test_should_stop_inside_margin(self) -> None:
        clock = _Clock()
        deadline = JobDeadline(60, margin_seconds=10, clock=clock)
        clock.now += 50
        assert deadline.should_stop() is True
        assert deadline.expired() is False

    def test_expired(self) -> None:
        clock = _Clock()
        deadline = JobDeadline(60, clock=clock)
        clock.now += 61
        assert deadline.remaining() == 0.0
        assert deadline.expired() is True

    def test_unlimited(self) -> None:
        deadline = JobDeadline.unlimited()
        assert deadline.should_stop() is False
        assert deadline.expired() is False

    def test_zero_budget_is_already_expired(self) -> None:
        assert JobDeadline(0).expired() is True
