import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from syncbot.features.weekly_sync.domain import WeeklySchedule
from syncbot.features.weekly_sync.jobs import AsyncioWeeklyJobRunner

LA = ZoneInfo("America/Los_Angeles")
FRIDAY_NOON = WeeklySchedule(weekday=4, hour=12, timezone="America/Los_Angeles")


def _cancelling_sleep(delays: list[float], stop_after: int):
    async def _sleep(delay: float) -> None:
        delays.append(delay)
        if len(delays) >= stop_after:
            raise asyncio.CancelledError

    return _sleep


@pytest.mark.asyncio
async def test_sleeps_until_next_occurrence_then_runs():
    delays: list[float] = []
    calls = []

    async def handler():
        calls.append("run")

    runner = AsyncioWeeklyJobRunner(
        clock=lambda: datetime(2026, 1, 14, 9, 0, tzinfo=LA),
        sleep=_cancelling_sleep(delays, stop_after=2),
    )

    with pytest.raises(asyncio.CancelledError):
        await runner._run(FRIDAY_NOON, handler)

    # Wednesday 09:00 -> Friday 12:00 is two days and three hours
    assert delays[0] == 2 * 86400 + 3 * 3600
    assert calls == ["run"]


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_the_loop():
    delays: list[float] = []
    calls = []

    async def handler():
        calls.append("run")
        raise RuntimeError("boom")

    runner = AsyncioWeeklyJobRunner(
        clock=lambda: datetime(2026, 1, 16, 12, 0, tzinfo=LA),
        sleep=_cancelling_sleep(delays, stop_after=3),
    )

    with pytest.raises(asyncio.CancelledError):
        await runner._run(FRIDAY_NOON, handler)

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_does_not_fire_twice_for_the_same_occurrence():
    delays: list[float] = []

    async def handler():
        return None

    # Clock sits exactly on the occurrence: the first run fires a week later,
    # and so does the next one
    runner = AsyncioWeeklyJobRunner(
        clock=lambda: datetime(2026, 1, 16, 12, 0, tzinfo=LA),
        sleep=_cancelling_sleep(delays, stop_after=2),
    )

    with pytest.raises(asyncio.CancelledError):
        await runner._run(FRIDAY_NOON, handler)

    assert delays == [7 * 86400, 7 * 86400]


@pytest.mark.asyncio
async def test_cancel_stops_the_job():
    async def park(delay: float) -> None:
        await asyncio.Event().wait()

    async def handler():
        return None

    runner = AsyncioWeeklyJobRunner(sleep=park)
    handle = runner.schedule_weekly(FRIDAY_NOON, handler)
    await asyncio.sleep(0)

    assert handle.cancelled is False

    handle.cancel()
    for _ in range(3):
        await asyncio.sleep(0)

    assert handle.cancelled is True
    assert handle.schedule == FRIDAY_NOON
