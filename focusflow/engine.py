#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusFlow - Session Engine

Location: focusflow/engine.py

The countdown / pause / break / cancel / complete state machine.

    IDLE -> RUNNING -> {PAUSED <-> RUNNING} -> RUNNING(next segment) | COMPLETED
    RUNNING | PAUSED -> CANCELLED

Time only moves through tick(delta_seconds); whoever owns the machine decides
where deltas come from (a periodic timer in production, direct calls in tests).
A tick is the only operation that advances segments on its own, and it does so
synchronously before returning.
"""
import logging
from typing import Callable, Optional, Tuple

from .types import (
    SECONDS_PER_MINUTE,
    InvalidTransitionError,
    Segment,
    SessionPlan,
    SessionState,
    SessionStatus,
    SegmentKind,
    TimerMode,
)

SegmentChangeCallback = Callable[[Segment, int], None]
TickCallback = Callable[[Optional[float]], None]
CompleteCallback = Callable[[int, bool], None]
CancelCallback = Callable[[int], None]


def whole_minutes(seconds: float) -> int:
    return int(seconds // SECONDS_PER_MINUTE)


class SessionStateMachine:
    """
    Runs one session plan to completion or cancellation.

    Callbacks:
        on_segment_change(segment, index): a new segment became current
        on_tick(remaining_seconds): after every tick that did not finish the session
            (None for the open-ended stopwatch segment)
        on_complete(total_focused_minutes, task_should_be_marked_done)
        on_cancel(partial_focused_minutes)
    """

    def __init__(self,
                 on_segment_change: Optional[SegmentChangeCallback] = None,
                 on_tick: Optional[TickCallback] = None,
                 on_complete: Optional[CompleteCallback] = None,
                 on_cancel: Optional[CancelCallback] = None,
                 logger: Optional[logging.Logger] = None):
        self.on_segment_change = on_segment_change
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.on_cancel = on_cancel
        self.logger = logger or logging.getLogger(__name__)

        self._mode = TimerMode.POMODORO
        self._status = SessionStatus.IDLE
        self._segments: Tuple[Segment, ...] = ()
        self._index = 0
        self._remaining: Optional[float] = None
        self._elapsed_focus = 0.0
        # index of the last Work segment and whether it ran out on its own
        self._final_work_index = -1
        self._final_work_elapsed = False

    # ==================== Read access ====================
    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def state(self) -> SessionState:
        return SessionState(
            mode=self._mode,
            status=self._status,
            segments=self._segments,
            current_segment_index=self._index,
            remaining_seconds=self._remaining,
            elapsed_focus_seconds=self._elapsed_focus,
        )

    @property
    def current_segment(self) -> Optional[Segment]:
        if 0 <= self._index < len(self._segments):
            return self._segments[self._index]
        return None

    @property
    def focused_minutes(self) -> int:
        return whole_minutes(self._elapsed_focus)

    # ==================== Transitions ====================
    def start(self, plan: SessionPlan, starting_segment_index: int = 0) -> None:
        self._require(SessionStatus.IDLE, 'start')
        if not plan.segments:
            raise ValueError("session plan has no segments")
        if not 0 <= starting_segment_index < len(plan.segments):
            raise ValueError(f"starting segment {starting_segment_index} out of range")
        self._mode = plan.mode
        self._segments = tuple(plan.segments)
        self._final_work_index = max((i for i, s in enumerate(self._segments) if s.kind is SegmentKind.WORK), default=-1)
        self._final_work_elapsed = False
        self._elapsed_focus = 0.0
        self._status = SessionStatus.RUNNING
        self.logger.info(f"[Session] Start {plan.mode.value}: {len(self._segments)} segment(s) from #{starting_segment_index}")
        self._enter(starting_segment_index)

    def tick(self, delta_seconds: float) -> None:
        self._require(SessionStatus.RUNNING, 'tick')
        if delta_seconds < 0:
            raise ValueError(f"negative tick: {delta_seconds}")
        budget = float(delta_seconds)
        while self._status is SessionStatus.RUNNING:
            segment = self._segments[self._index]
            if segment.is_open_ended:
                self._elapsed_focus += budget
                self._emit_tick()
                return
            step = min(budget, self._remaining)
            self._remaining -= step
            budget -= step
            if segment.kind is SegmentKind.WORK:
                self._elapsed_focus += step
            if self._remaining > 0:
                self._emit_tick()
                return
            if self._index == self._final_work_index:
                self._final_work_elapsed = True
            self._advance(self._index + 1)
            if budget <= 0:
                if self._status is SessionStatus.RUNNING:
                    self._emit_tick()
                return

    def pause(self) -> None:
        self._require(SessionStatus.RUNNING, 'pause')
        self._status = SessionStatus.PAUSED
        self.logger.debug(f"[Session] Paused at segment #{self._index} ({self._remaining}s left)")

    def resume(self) -> None:
        self._require(SessionStatus.PAUSED, 'resume')
        self._status = SessionStatus.RUNNING
        self.logger.debug(f"[Session] Resumed segment #{self._index}")

    def cancel(self) -> None:
        self._require_active('cancel')
        self._status = SessionStatus.CANCELLED
        minutes = self.focused_minutes
        self.logger.info(f"[Session] Cancelled with {minutes} focused minute(s)")
        if self.on_cancel:
            self.on_cancel(minutes)

    def skip_break(self) -> None:
        self._require_active('skip_break')
        segment = self.current_segment
        if segment is None or not segment.kind.is_break:
            raise InvalidTransitionError("skip_break is only valid during a break")
        self._status = SessionStatus.RUNNING
        next_work = next((i for i in range(self._index + 1, len(self._segments))
                          if self._segments[i].kind is SegmentKind.WORK), len(self._segments))
        self.logger.info(f"[Session] Break #{self._index} skipped")
        self._advance(next_work)

    def finish(self) -> None:
        """End the session early, keeping the focus accrued so far."""
        self._require_active('finish')
        self._complete()

    # ==================== Internals ====================
    def _require(self, expected: SessionStatus, op: str) -> None:
        if self._status is not expected:
            raise InvalidTransitionError(f"{op}() is invalid while {self._status.value}")

    def _require_active(self, op: str) -> None:
        if self._status not in (SessionStatus.RUNNING, SessionStatus.PAUSED):
            raise InvalidTransitionError(f"{op}() is invalid while {self._status.value}")

    def _enter(self, index: int) -> None:
        # zero-length segments are passed over without a tick of their own
        while index < len(self._segments) and self._segments[index].duration_seconds == 0:
            if index == self._final_work_index:
                self._final_work_elapsed = True
            index += 1
        if index >= len(self._segments):
            self._complete()
            return
        self._index = index
        segment = self._segments[index]
        self._remaining = None if segment.is_open_ended else float(segment.duration_seconds)
        if self.on_segment_change:
            self.on_segment_change(segment, index)

    def _advance(self, index: int) -> None:
        self._status = SessionStatus.RUNNING
        self._enter(index)

    def _complete(self) -> None:
        self._status = SessionStatus.COMPLETED
        if self._remaining is not None:
            self._remaining = max(0.0, self._remaining)
        minutes = self.focused_minutes
        self.logger.info(f"[Session] Completed: {minutes} focused minute(s), task done={self._final_work_elapsed}")
        if self.on_complete:
            self.on_complete(minutes, self._final_work_elapsed)

    def _emit_tick(self) -> None:
        if self.on_tick:
            self.on_tick(self._remaining)
