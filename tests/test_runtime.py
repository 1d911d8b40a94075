"""Tests for the asyncio tickers that drive a session."""
import asyncio

import pytest

from focusflow.runtime import PeriodicTicker, run_session, setup_logger
from focusflow.session import FocusSession
from focusflow.types import SessionStatus, Settings, TimerMode, get_log_dir


class SteppingClock:
    """Monotonic clock that advances a fixed step on every read."""

    def __init__(self, step: float):
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.mark.asyncio
async def test_ticker_reports_clock_deltas():
    deltas = []
    enough = asyncio.Event()

    def on_tick(delta):
        deltas.append(delta)
        if len(deltas) == 3:
            enough.set()

    ticker = PeriodicTicker(0.001, on_tick, clock=SteppingClock(1.5))
    ticker.start()
    await asyncio.wait_for(enough.wait(), timeout=5)
    await ticker.stop()
    assert deltas[:3] == [1.5, 1.5, 1.5]
    assert not ticker.running


def test_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        PeriodicTicker(0, lambda delta: None)


@pytest.mark.asyncio
async def test_run_session_until_complete(audio_engine):
    settings = Settings(sound_enabled=True, selected_sound_id='brown')
    session = FocusSession(settings, audio=audio_engine)
    await session.begin(TimerMode.CUSTOM, custom_minutes=1)
    outcome = await asyncio.wait_for(
        run_session(session, tick_interval=0.001, control_interval=0.001, clock=SteppingClock(60)),
        timeout=5,
    )
    assert session.machine.status is SessionStatus.COMPLETED
    assert outcome.record.duration_minutes >= 1


@pytest.mark.asyncio
async def test_paused_time_is_not_counted():
    session = FocusSession(Settings())
    await session.begin(TimerMode.CUSTOM, custom_minutes=5)
    session.pause()
    runner = asyncio.create_task(run_session(session, tick_interval=0.001, clock=SteppingClock(60)))
    await asyncio.sleep(0.05)
    assert session.machine.state.elapsed_focus_seconds == 0
    session.cancel()
    outcome = await asyncio.wait_for(runner, timeout=5)
    assert outcome.cancelled
    assert outcome.record is None


@pytest.mark.asyncio
async def test_tick_errors_propagate():
    def explode(remaining):
        raise RuntimeError('display crashed')

    session = FocusSession(Settings(), on_tick=explode)
    await session.begin(TimerMode.CUSTOM, custom_minutes=30)
    with pytest.raises(RuntimeError, match='display crashed'):
        await asyncio.wait_for(run_session(session, tick_interval=0.001, clock=SteppingClock(1)), timeout=5)


@pytest.mark.asyncio
async def test_finished_session_returns_immediately():
    session = FocusSession(Settings())
    await session.begin(TimerMode.CUSTOM, custom_minutes=1)
    session.finish()
    outcome = await run_session(session)
    assert outcome is session.outcome
    assert outcome.record is None


def test_setup_logger_writes_under_app_home():
    logger = setup_logger(console=False)
    assert logger.name == 'focusflow'
    assert (get_log_dir() / 'focusflow.log').exists()


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_pause_between_ticks_is_not_counted():
    clock = ManualClock()
    session = FocusSession(Settings())
    await session.begin(TimerMode.CUSTOM, custom_minutes=10)
    runner = asyncio.create_task(run_session(session, tick_interval=0.01, clock=clock))
    await asyncio.sleep(0.05)
    clock.now = 100.0
    while session.machine.state.elapsed_focus_seconds < 100:
        await asyncio.sleep(0.01)

    # no ticker fire can land between these three lines
    session.pause()
    clock.now = 400.0
    await session.resume()

    await asyncio.sleep(0.1)
    assert session.machine.state.elapsed_focus_seconds == 100
    session.cancel()
    outcome = await asyncio.wait_for(runner, timeout=5)
    assert outcome.record.duration_minutes == 1
