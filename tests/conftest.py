"""Fixtures shared by the portfolio-live tests."""

import pytest

from portfolio_live import Editor


@pytest.fixture
def anyio_backend():
    """Run async tests with asyncio only."""
    return "asyncio"


@pytest.fixture
def alice():
    """An editor called Alice."""
    return Editor(user_id=1, username="alice1", first_name="Alice", last_name="Smith")


@pytest.fixture
def bob():
    """An editor called Bob."""
    return Editor(user_id=2, username="bob2", first_name="Bob", last_name="Jones")


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """A `FakeClock` starting at a fixed time."""
    return FakeClock()
