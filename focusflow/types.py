#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""FocusFlow - Types Module"""
import json
import os
import time
import logging
from datetime import date
from dataclasses import dataclass
from typing import Optional, Dict, Tuple, Any
from enum import Enum
from pathlib import Path
__version__ = '1.2.0'
SECONDS_PER_MINUTE = 60
NONE_SOUND_ID = 'none'
SESSION_TICK_INTERVAL = 1.0
CONTROL_TICK_INTERVAL = 0.03
APP_HOME_ENV = 'FOCUSFLOW_HOME'


# ==================== Errors ====================
class FocusFlowError(Exception):
    """Base class for engine errors."""


class InvalidConfigurationError(FocusFlowError, ValueError):
    """Non-positive durations or round counts, or out-of-range slider input."""


class InvalidTransitionError(FocusFlowError, RuntimeError):
    """A session operation was called from a state where it makes no sense."""


class OutputBlockedError(FocusFlowError):
    """The output device refused to start a streamed source."""


class AutoplayBlockedWarning(UserWarning):
    pass


# ==================== Enums ====================
class TimerMode(Enum):
    POMODORO = 'POMODORO'
    STOPWATCH = 'STOPWATCH'
    CUSTOM = 'CUSTOM'


class SessionStatus(Enum):
    IDLE = 'IDLE'
    RUNNING = 'RUNNING'
    PAUSED = 'PAUSED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class SegmentKind(Enum):
    WORK = 'work'
    SHORT_BREAK = 'shortBreak'
    LONG_BREAK = 'longBreak'

    @property
    def is_break(self) -> bool:
        return self is not SegmentKind.WORK


class SoundCategory(Enum):
    FREQUENCY = 'frequency'
    AMBIENCE = 'ambience'
    CUSTOM = 'custom'
    NONE = 'none'


class SoundMode(Enum):
    TIMER_ONLY = 'timer'
    ALWAYS_ON = 'always'


# ==================== Session data ====================
@dataclass(frozen=True)
class TimerConfiguration:
    work_minutes: int
    short_break_minutes: int
    long_break_minutes: int
    rounds_per_cycle: int


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    duration_seconds: Optional[int]

    @property
    def is_open_ended(self) -> bool:
        return self.duration_seconds is None


@dataclass(frozen=True)
class SessionPlan:
    mode: TimerMode
    segments: Tuple[Segment, ...]
    task_id: Optional[str] = None


@dataclass(frozen=True)
class SessionState:
    mode: TimerMode
    status: SessionStatus
    segments: Tuple[Segment, ...]
    current_segment_index: int
    remaining_seconds: Optional[float]
    elapsed_focus_seconds: float

    @property
    def current_segment(self) -> Optional[Segment]:
        if 0 <= self.current_segment_index < len(self.segments):
            return self.segments[self.current_segment_index]
        return None


@dataclass(frozen=True)
class PetState:
    level: int
    current_exp: float
    max_exp: int
    happiness: int
    last_daily_activity_date: Optional[str] = None
    streak_count: int = 0

    def to_dict(self) -> Dict:
        return {'level': self.level, 'current_exp': self.current_exp, 'max_exp': self.max_exp, 'happiness': self.happiness,
                'last_daily_activity_date': self.last_daily_activity_date, 'streak_count': self.streak_count}

    @classmethod
    def from_dict(cls, d: Dict) -> 'PetState':
        return cls(level=int(d.get('level', 1)), current_exp=float(d.get('current_exp', 0)), max_exp=int(d.get('max_exp', 100)),
                   happiness=int(d.get('happiness', 100)), last_daily_activity_date=d.get('last_daily_activity_date') or None,
                   streak_count=int(d.get('streak_count', 0)))


@dataclass(frozen=True)
class SoundOption:
    id: str
    name: str
    category: SoundCategory
    generated: bool = False
    source_url: Optional[str] = None


@dataclass
class Settings:
    work_time: int = 25
    short_break_time: int = 5
    long_break_time: int = 15
    pomodoros_per_round: int = 4
    sound_enabled: bool = False
    sound_mode: SoundMode = SoundMode.TIMER_ONLY
    selected_sound_id: str = NONE_SOUND_ID
    sound_volume: float = 0.5
    auto_volume: bool = False

    def timer_configuration(self) -> TimerConfiguration:
        return TimerConfiguration(self.work_time, self.short_break_time, self.long_break_time, self.pomodoros_per_round)

    def to_dict(self) -> Dict:
        return {'workTime': self.work_time, 'shortBreakTime': self.short_break_time, 'longBreakTime': self.long_break_time,
                'pomodorosPerRound': self.pomodoros_per_round, 'soundEnabled': self.sound_enabled,
                'soundMode': self.sound_mode.value, 'selectedSoundId': self.selected_sound_id,
                'soundVolume': self.sound_volume, 'autoVolume': self.auto_volume}


@dataclass
class Task:
    id: str
    title: str
    duration_minutes: int = 25
    pomodoro_count: int = 0
    completed: bool = False


@dataclass(frozen=True)
class FocusRecord:
    date: str
    duration_minutes: int
    mode: TimerMode


@dataclass(frozen=True)
class SessionOutcome:
    record: Optional[FocusRecord]
    pet: Optional[PetState]
    task_id: Optional[str] = None
    task_done: bool = False
    cancelled: bool = False


def day_key(day: date) -> str:
    return day.isoformat()


# ==================== JSON helpers ====================
def safe_read_json(path: Path, default: Dict = None, logger: logging.Logger = None, max_retries: int = 3) -> Dict:
    if default is None:
        default = {}
    last_error = None
    for attempt in range(max_retries):
        try:
            if not path.exists():
                return default.copy()
            content = path.read_text(encoding='utf-8').strip()
            if not content:
                if logger:
                    logger.warning(f"Empty JSON file: {path}")
                return default.copy()
            data = json.loads(content)
            if not isinstance(data, dict):
                if logger:
                    logger.error(f"Expected a JSON object in {path}")
                return default.copy()
            return data
        except json.JSONDecodeError as e:
            if logger:
                logger.error(f"JSON decode error in {path}: {e}")
            return default.copy()
        except UnicodeDecodeError as e:
            if logger:
                logger.error(f"Cannot decode {path} as UTF-8: {e}")
            return default.copy()
        except (PermissionError, OSError) as e:
            last_error = e
            if logger and attempt < max_retries - 1:
                logger.debug(f"Retry {attempt + 1}/{max_retries} for {path}: {e}")
            time.sleep(0.1)
    if logger and last_error:
        logger.error(f"All retries failed for {path}: {last_error}")
    return default.copy()


def safe_write_json(path: Path, data: Dict[str, Any], logger: logging.Logger = None, max_retries: int = 3) -> bool:
    for attempt in range(max_retries):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = path.with_suffix('.tmp')
            temp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding='utf-8')
            temp_path.replace(path)
            return True
        except (PermissionError, OSError) as e:
            if logger and attempt < max_retries - 1:
                logger.debug(f"Retry {attempt + 1}/{max_retries} for {path}: {e}")
            time.sleep(0.1)
    if logger:
        logger.error(f"All retries failed writing {path}")
    return False


# ==================== Paths ====================
def get_root_path() -> Path:
    override = os.environ.get(APP_HOME_ENV)
    return Path(override).expanduser() if override else Path.home() / '.focusflow'
def get_config_path() -> Path:
    return get_root_path() / 'config.json'
def get_db_path() -> Path:
    return get_root_path() / 'Data' / 'focusflow.db'
def get_log_dir() -> Path:
    return get_root_path() / 'logs'
def get_sound_cache_path() -> Path:
    return get_root_path() / 'Data' / 'sounds'
