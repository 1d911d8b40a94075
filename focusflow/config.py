#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""FocusFlow - Settings file (config.json) with defaults"""
import logging
from pathlib import Path
from typing import Dict, Optional

from .types import (
    InvalidConfigurationError,
    Settings,
    SoundMode,
    get_config_path,
    safe_read_json,
    safe_write_json,
)

DEFAULT_SETTINGS: Dict = Settings().to_dict()


def _as_bool(key: str, value) -> bool:
    if isinstance(value, bool):
        return value
    raise InvalidConfigurationError(f"{key} must be true or false, got {value!r}")


def _as_volume(key: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
        raise InvalidConfigurationError(f"{key} must be a number within 0..1, got {value!r}")
    return float(value)


def _as_positive_int(key: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfigurationError(f"{key} must be a positive integer, got {value!r}")
    return value


def settings_from_dict(data: Dict) -> Settings:
    """Merge ``data`` over the defaults; unknown keys are ignored, bad values raise."""
    merged = {**DEFAULT_SETTINGS, **{k: v for k, v in data.items() if k in DEFAULT_SETTINGS}}
    try:
        sound_mode = SoundMode(merged['soundMode'])
    except ValueError:
        raise InvalidConfigurationError(f"soundMode must be one of {[m.value for m in SoundMode]}, got {merged['soundMode']!r}")
    return Settings(
        work_time=_as_positive_int('workTime', merged['workTime']),
        short_break_time=_as_positive_int('shortBreakTime', merged['shortBreakTime']),
        long_break_time=_as_positive_int('longBreakTime', merged['longBreakTime']),
        pomodoros_per_round=_as_positive_int('pomodorosPerRound', merged['pomodorosPerRound']),
        sound_enabled=_as_bool('soundEnabled', merged['soundEnabled']),
        sound_mode=sound_mode,
        selected_sound_id=str(merged['selectedSoundId']),
        sound_volume=_as_volume('soundVolume', merged['soundVolume']),
        auto_volume=_as_bool('autoVolume', merged['autoVolume']),
    )


def load_settings(path: Optional[Path] = None, logger: Optional[logging.Logger] = None) -> Settings:
    path = path or get_config_path()
    return settings_from_dict(safe_read_json(path, DEFAULT_SETTINGS, logger))


def save_settings(settings: Settings, path: Optional[Path] = None, logger: Optional[logging.Logger] = None) -> bool:
    return safe_write_json(path or get_config_path(), settings.to_dict(), logger)
