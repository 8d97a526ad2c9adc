"""
Shared test fixtures for fintrack.

Provides:
- A controllable clock for deterministic cache tests
"""

import pytest


class FakeClock:
    """Controllable clock (seconds) for deterministic cache tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()

