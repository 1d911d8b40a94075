"""Tests for the settings file."""
import json
import logging

import pytest

from focusflow.config import DEFAULT_SETTINGS, load_settings, save_settings, settings_from_dict
from focusflow.types import InvalidConfigurationError, Settings, SoundMode, get_config_path, get_root_path


def test_missing_file_gives_defaults():
    assert load_settings() == Settings()


def test_defaults_use_camel_case_keys():
    assert DEFAULT_SETTINGS['workTime'] == 25
    assert DEFAULT_SETTINGS['soundMode'] == 'timer'
    assert DEFAULT_SETTINGS['selectedSoundId'] == 'none'


def test_save_and_load(focusflow_home):
    settings = Settings(work_time=50, sound_enabled=True, selected_sound_id='brown',
                        sound_mode=SoundMode.ALWAYS_ON, sound_volume=0.3)
    assert save_settings(settings)
    assert get_config_path().parent == focusflow_home
    assert load_settings() == settings


def test_partial_file_is_merged_over_defaults(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'workTime': 45, 'legacyTheme': 'dark'}), encoding='utf-8')
    settings = load_settings(path)
    assert settings.work_time == 45
    assert settings.short_break_time == 5


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text('{not json', encoding='utf-8')
    assert load_settings(path) == Settings()


def test_undecodable_file_falls_back_to_defaults(tmp_path, caplog):
    path = tmp_path / 'config.json'
    path.write_bytes(b'{"workTime": "\xff\xfe"}')
    logger = logging.getLogger('focusflow.test')
    with caplog.at_level(logging.ERROR, logger='focusflow.test'):
        assert load_settings(path, logger=logger) == Settings()
    assert 'Cannot decode' in caplog.text


@pytest.mark.parametrize('data', [
    {'workTime': 0},
    {'pomodorosPerRound': 2.5},
    {'soundVolume': 1.5},
    {'soundEnabled': 'yes'},
    {'soundMode': 'sometimes'},
])
def test_bad_values_raise(data):
    with pytest.raises(InvalidConfigurationError):
        settings_from_dict(data)


def test_root_path_override(monkeypatch, tmp_path):
    monkeypatch.setenv('FOCUSFLOW_HOME', str(tmp_path / 'elsewhere'))
    assert get_root_path() == tmp_path / 'elsewhere'
