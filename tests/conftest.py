"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from courier.sender import SendResult


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


class FakeSender:
    """MessageSender that records deliveries and can be told to fail."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.sent: list[tuple[str, object]] = []
        self.fail_with: Exception | None = None

    async def send(self, to: str, content: object) -> SendResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((to, content))
        return SendResult(sent_at=self._clock.now())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def sender(clock: FakeClock) -> FakeSender:
    return FakeSender(clock)
