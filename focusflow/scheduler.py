#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusFlow - Cycle Scheduler

Maps a timer configuration to the ordered Work/Break segments of one cycle.
Everything here is pure: the same configuration always yields the same plan.

    rounds=4, work=25, short=5, long=15
    -> [W25, S5, W25, S5, W25, S5, W25, L15]  (7800 s)
"""
from typing import List, Optional, Tuple

from .types import (
    SECONDS_PER_MINUTE,
    InvalidConfigurationError,
    Segment,
    SegmentKind,
    SessionPlan,
    Settings,
    Task,
    TimerConfiguration,
    TimerMode,
)

# Custom-duration slider: 1:1 up to an hour, then 5-minute steps up to 4 hours
SLIDER_MAX = 96
SLIDER_FINE_LIMIT = 60
SLIDER_COARSE_STEP = 5
MAX_CUSTOM_MINUTES = SLIDER_FINE_LIMIT + (SLIDER_MAX - SLIDER_FINE_LIMIT) * SLIDER_COARSE_STEP

SEGMENT_LABELS = {SegmentKind.WORK: 'Focus', SegmentKind.SHORT_BREAK: 'Break', SegmentKind.LONG_BREAK: 'Long Break'}


def _require_positive_int(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfigurationError(f"{name} must be a positive integer, got {value!r}")


def validate_configuration(config: TimerConfiguration) -> None:
    _require_positive_int('work_minutes', config.work_minutes)
    _require_positive_int('short_break_minutes', config.short_break_minutes)
    _require_positive_int('long_break_minutes', config.long_break_minutes)
    _require_positive_int('rounds_per_cycle', config.rounds_per_cycle)


def build_cycle(config: TimerConfiguration) -> Tuple[Segment, ...]:
    """Materialize the segment list of one cycle.

    The last break of the cycle is always a long break; every other break is
    short. A single-round cycle is one Work segment followed by the long break.
    """
    validate_configuration(config)
    work = config.work_minutes * SECONDS_PER_MINUTE
    short = config.short_break_minutes * SECONDS_PER_MINUTE
    long = config.long_break_minutes * SECONDS_PER_MINUTE
    segments: List[Segment] = []
    for i in range(config.rounds_per_cycle):
        segments.append(Segment(SegmentKind.WORK, work))
        if i < config.rounds_per_cycle - 1:
            segments.append(Segment(SegmentKind.SHORT_BREAK, short))
        else:
            segments.append(Segment(SegmentKind.LONG_BREAK, long))
    return tuple(segments)


def cycle_total_seconds(config: TimerConfiguration) -> int:
    """Total cycle length without materializing the segments."""
    validate_configuration(config)
    w = config.work_minutes * SECONDS_PER_MINUTE
    s = config.short_break_minutes * SECONDS_PER_MINUTE
    l = config.long_break_minutes * SECONDS_PER_MINUTE
    rounds = config.rounds_per_cycle
    if rounds == 1:
        return w + l
    return (w + s) * (rounds - 1) + w + l


def stopwatch_plan(task_id: Optional[str] = None) -> SessionPlan:
    return SessionPlan(TimerMode.STOPWATCH, (Segment(SegmentKind.WORK, None),), task_id)


def custom_plan(minutes: int, task_id: Optional[str] = None) -> SessionPlan:
    _require_positive_int('minutes', minutes)
    return SessionPlan(TimerMode.CUSTOM, (Segment(SegmentKind.WORK, minutes * SECONDS_PER_MINUTE),), task_id)


def slider_value_to_minutes(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= SLIDER_MAX:
        raise InvalidConfigurationError(f"slider value must be within 0..{SLIDER_MAX}, got {value!r}")
    if value <= SLIDER_FINE_LIMIT:
        return value
    return SLIDER_FINE_LIMIT + (value - SLIDER_FINE_LIMIT) * SLIDER_COARSE_STEP


def minutes_to_slider_value(minutes: int) -> int:
    if isinstance(minutes, bool) or not isinstance(minutes, int) or not 0 <= minutes <= MAX_CUSTOM_MINUTES:
        raise InvalidConfigurationError(f"minutes must be within 0..{MAX_CUSTOM_MINUTES}, got {minutes!r}")
    if minutes <= SLIDER_FINE_LIMIT:
        return minutes
    return SLIDER_FINE_LIMIT + (minutes - SLIDER_FINE_LIMIT) // SLIDER_COARSE_STEP


def rounds_for(settings: Settings, task: Optional[Task] = None) -> int:
    # a task with its own pomodoro count overrides the configured rounds
    if task is not None and task.pomodoro_count > 0:
        return task.pomodoro_count
    return settings.pomodoros_per_round


def plan_session(mode: TimerMode, settings: Settings, task: Optional[Task] = None, custom_minutes: Optional[int] = None) -> SessionPlan:
    task_id = task.id if task is not None else None
    if mode is TimerMode.STOPWATCH:
        return stopwatch_plan(task_id)
    if mode is TimerMode.CUSTOM:
        minutes = custom_minutes if custom_minutes is not None else (task.duration_minutes if task is not None else None)
        if minutes is None:
            raise InvalidConfigurationError("custom mode needs a duration")
        return custom_plan(minutes, task_id)
    config = TimerConfiguration(settings.work_time, settings.short_break_time, settings.long_break_time, rounds_for(settings, task))
    return SessionPlan(TimerMode.POMODORO, build_cycle(config), task_id)


def describe_cycle(segments) -> List[Tuple[str, Optional[int]]]:
    return [(SEGMENT_LABELS[s.kind], s.duration_seconds) for s in segments]
