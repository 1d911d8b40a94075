#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusFlow - Runtime

Drives a FocusSession on one asyncio event loop with two independent timers:

    session ticker  (1 s)    -> session.tick(delta)      state transitions
    control ticker  (30 ms)  -> audio.control_tick()     volume ramp only

Deltas are measured with an injectable monotonic clock, so a late wakeup is
credited in full on the next tick instead of being lost.
"""
import asyncio
import logging
import sys
import time
from typing import Callable, Optional

from .session import FocusSession
from .types import (
    CONTROL_TICK_INTERVAL,
    SESSION_TICK_INTERVAL,
    SessionOutcome,
    SessionStatus,
    get_log_dir,
)

LOG_FILE_NAME = 'focusflow.log'
LOG_ROTATE_BYTES = 5 * 1024 * 1024


def setup_logger(level: int = logging.INFO, console: bool = True) -> logging.Logger:
    """Setup rotating logger with fixed filename"""
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / LOG_FILE_NAME

    # Rotate if too large (5MB)
    try:
        if log_file.exists() and log_file.stat().st_size > LOG_ROTATE_BYTES:
            backup = log_dir / f"{LOG_FILE_NAME}.old"
            if backup.exists():
                backup.unlink()
            log_file.rename(backup)
    except OSError:
        pass

    handlers = [logging.FileHandler(log_file, encoding='utf-8', mode='a')]
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=handlers
    )

    return logging.getLogger('focusflow')


class PeriodicTicker:
    """Calls ``callback(delta)`` every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, callback: Callable[[float], None],
                 clock: Callable[[], float] = time.monotonic, name: str = 'ticker'):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self.clock = clock
        self.name = name
        self.task: Optional[asyncio.Task] = None
        self._last: Optional[float] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self.task
        self.task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self.task

    def reset(self):
        """Measure the next delta from now."""
        self._last = self.clock()

    async def _run(self):
        self.reset()
        while True:
            await asyncio.sleep(self.interval)
            now = self.clock()
            delta, self._last = max(0.0, now - self._last), now
            self.callback(delta)

    async def stop(self):
        task, self.task = self.task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


async def run_session(session: FocusSession,
                      tick_interval: float = SESSION_TICK_INTERVAL,
                      control_interval: float = CONTROL_TICK_INTERVAL,
                      clock: Callable[[], float] = time.monotonic,
                      logger: Optional[logging.Logger] = None) -> Optional[SessionOutcome]:
    """Run an already begun session until it completes or is cancelled.

    Ticks that arrive while the session is paused are dropped, and the session
    ticker re-measures from the moment of resume, so paused time never counts. An exception raised by a tick stops both tickers and
    propagates to the caller.
    """
    logger = logger or logging.getLogger(__name__)

    def on_session_tick(delta: float):
        if session.machine.status is SessionStatus.RUNNING:
            session.tick(delta)

    def on_control_tick(delta: float):
        if session.audio is not None:
            session.audio.control_tick(delta)

    session_ticker = PeriodicTicker(tick_interval, on_session_tick, clock, name='focusflow-session')
    control_ticker = PeriodicTicker(control_interval, on_control_tick, clock, name='focusflow-volume')

    if session.machine.status.is_terminal:
        return session.outcome

    session.resume_listeners.append(session_ticker.reset)
    waiter = asyncio.ensure_future(session.finished.wait())
    tickers = [session_ticker.start(), control_ticker.start()]
    try:
        done, _ = await asyncio.wait([waiter, *tickers], return_when=asyncio.FIRST_COMPLETED)
        for task in tickers:
            if task in done:
                # a ticker only ends on its own by raising
                task.result()
    finally:
        waiter.cancel()
        session.resume_listeners.remove(session_ticker.reset)
        await session_ticker.stop()
        await control_ticker.stop()
        logger.debug("[Session] Tickers stopped")
    return session.outcome
