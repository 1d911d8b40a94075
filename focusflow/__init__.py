#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""FocusFlow Core v1.2.0"""
from .types import (
    __version__,
    SECONDS_PER_MINUTE, NONE_SOUND_ID, SESSION_TICK_INTERVAL, CONTROL_TICK_INTERVAL,
    FocusFlowError, InvalidConfigurationError, InvalidTransitionError, OutputBlockedError, AutoplayBlockedWarning,
    TimerMode, SessionStatus, SegmentKind, SoundCategory, SoundMode,
    TimerConfiguration, Segment, SessionPlan, SessionState, PetState, SoundOption, Settings, Task,
    FocusRecord, SessionOutcome, day_key,
)
from .scheduler import build_cycle, cycle_total_seconds, plan_session, slider_value_to_minutes, minutes_to_slider_value
from .engine import SessionStateMachine
from .progression import apply_reward, initial_pet
from .audio import AudioConstants, AudioEngine, NoiseSynthesizer, OutputDevice, SoundCatalog, VolumeRamp
from .database import DATABASE_VERSION, FocusHistoryDB
from .session import FocusSession, Haptics, NullHaptics
from .runtime import PeriodicTicker, run_session
__all__ = [
    '__version__',
    'SECONDS_PER_MINUTE', 'NONE_SOUND_ID', 'SESSION_TICK_INTERVAL', 'CONTROL_TICK_INTERVAL',
    'FocusFlowError', 'InvalidConfigurationError', 'InvalidTransitionError', 'OutputBlockedError', 'AutoplayBlockedWarning',
    'TimerMode', 'SessionStatus', 'SegmentKind', 'SoundCategory', 'SoundMode',
    'TimerConfiguration', 'Segment', 'SessionPlan', 'SessionState', 'PetState', 'SoundOption', 'Settings', 'Task',
    'FocusRecord', 'SessionOutcome', 'day_key',
    'build_cycle', 'cycle_total_seconds', 'plan_session', 'slider_value_to_minutes', 'minutes_to_slider_value',
    'SessionStateMachine',
    'apply_reward', 'initial_pet',
    'AudioConstants', 'AudioEngine', 'NoiseSynthesizer', 'OutputDevice', 'SoundCatalog', 'VolumeRamp',
    'DATABASE_VERSION', 'FocusHistoryDB',
    'FocusSession', 'Haptics', 'NullHaptics',
    'PeriodicTicker', 'run_session',
]
def get_status() -> dict:
    return {'version': __version__, 'database': DATABASE_VERSION, 'sounds': [o.id for o in SoundCatalog().options()]}
