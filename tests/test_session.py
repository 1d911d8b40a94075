"""Tests for the session controller: rewards, history, tasks, sound policy and haptics."""
from datetime import date

import pytest

from focusflow.session import FocusSession
from focusflow.types import (
    AutoplayBlockedWarning,
    NONE_SOUND_ID,
    SessionStatus,
    Settings,
    SoundMode,
    Task,
    TimerMode,
)

TODAY = date(2024, 3, 2)


class RecordingHaptics:
    def __init__(self):
        self.events = []

    def impact_light(self):
        self.events.append('light')

    def impact_medium(self):
        self.events.append('medium')

    def notification_success(self):
        self.events.append('success')


class BrokenHaptics:
    def impact_light(self):
        raise RuntimeError('no vibration motor')

    impact_medium = notification_success = impact_light


def make_session(settings=None, **kwargs) -> FocusSession:
    return FocusSession(settings or Settings(), clock=lambda: TODAY, **kwargs)


@pytest.mark.asyncio
async def test_completed_session_is_recorded_and_rewarded(history):
    session = make_session(history=history)
    await session.begin(TimerMode.CUSTOM, custom_minutes=25)
    session.tick(25 * 60)
    assert session.finished.is_set()
    outcome = session.outcome
    assert not outcome.cancelled
    assert outcome.record.duration_minutes == 25
    assert outcome.record.date == '2024-03-02'
    assert outcome.pet.current_exp == 5
    assert history.minutes_for_day('2024-03-02') == 25
    assert history.load_pet() == outcome.pet


@pytest.mark.asyncio
async def test_short_session_is_recorded_without_reward(history):
    session = make_session(history=history)
    await session.begin(TimerMode.CUSTOM, custom_minutes=1)
    session.tick(60)
    assert session.outcome.record.duration_minutes == 1
    assert session.outcome.pet.current_exp == 0
    assert history.load_pet().last_daily_activity_date is None


@pytest.mark.asyncio
async def test_linked_task_is_marked_done(history):
    task = Task('t1', 'Draft chapter', duration_minutes=5)
    history.upsert_task(task)
    session = make_session(history=history)
    await session.begin(TimerMode.CUSTOM, task=task)
    session.tick(5 * 60)
    assert session.outcome.task_done
    assert history.get_task('t1').completed


@pytest.mark.asyncio
async def test_cancel_keeps_partial_minutes_but_no_reward(history):
    task = Task('t2', 'Review')
    history.upsert_task(task)
    session = make_session(history=history)
    await session.begin(TimerMode.POMODORO, task=task)
    session.tick(7 * 60)
    session.cancel()
    outcome = session.outcome
    assert outcome.cancelled
    assert outcome.record.duration_minutes == 7
    assert not outcome.task_done
    assert outcome.pet == history.load_pet()
    assert history.minutes_for_day('2024-03-02') == 7
    assert not history.get_task('t2').completed


@pytest.mark.asyncio
async def test_cancel_before_a_minute_records_nothing(history):
    session = make_session(history=history)
    await session.begin(TimerMode.POMODORO)
    session.tick(30)
    session.cancel()
    assert session.outcome.record is None
    assert history.records_for_day('2024-03-02') == []


@pytest.mark.asyncio
async def test_settings_are_snapshotted_at_begin():
    settings = Settings(work_time=25)
    session = make_session(settings)
    plan = await session.begin(TimerMode.POMODORO)
    settings.work_time = 50
    assert plan.segments[0].duration_seconds == 1500
    assert session.settings.work_time == 25


@pytest.mark.asyncio
async def test_timer_only_sound_follows_the_session(audio_engine, fake_output):
    settings = Settings(sound_enabled=True, selected_sound_id='brown', sound_volume=0.4)
    session = make_session(settings, audio=audio_engine)
    await session.begin(TimerMode.CUSTOM, custom_minutes=5)
    assert audio_engine.current_sound_id == 'brown'
    assert audio_engine.ramp.base_volume == pytest.approx(0.4)
    session.pause()
    assert fake_output.paused
    await session.resume()
    assert not fake_output.paused
    session.tick(300)
    assert audio_engine.current_sound_id == NONE_SOUND_ID


@pytest.mark.asyncio
async def test_always_on_sound_keeps_playing(audio_engine, fake_output):
    settings = Settings(sound_enabled=True, selected_sound_id='pink', sound_mode=SoundMode.ALWAYS_ON)
    session = make_session(settings, audio=audio_engine)
    await session.begin(TimerMode.CUSTOM, custom_minutes=5)
    session.pause()
    assert not fake_output.paused
    session.cancel()
    assert audio_engine.current_sound_id == 'pink'


@pytest.mark.asyncio
async def test_sound_disabled_plays_nothing(audio_engine, fake_output):
    session = make_session(Settings(sound_enabled=False, selected_sound_id='brown'), audio=audio_engine)
    await session.begin(TimerMode.CUSTOM, custom_minutes=5)
    assert fake_output.calls == []


@pytest.mark.asyncio
async def test_haptics_fire_on_lifecycle_events():
    haptics = RecordingHaptics()
    session = make_session(haptics=haptics)
    await session.begin(TimerMode.CUSTOM, custom_minutes=1)
    session.pause()
    await session.resume()
    session.tick(60)
    assert haptics.events == ['light', 'medium', 'medium', 'success']


@pytest.mark.asyncio
async def test_haptics_failures_are_ignored():
    session = make_session(haptics=BrokenHaptics())
    await session.begin(TimerMode.CUSTOM, custom_minutes=1)
    session.tick(60)
    assert session.machine.status is SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_ui_callbacks_are_forwarded():
    segments, completed = [], []
    session = make_session(on_segment_change=lambda seg, i: segments.append(i),
                           on_complete=lambda minutes, done: completed.append((minutes, done)))
    await session.begin(TimerMode.POMODORO, task=Task('t', 'x', pomodoro_count=1))
    session.tick(25 * 60)
    session.skip_break()
    assert segments == [0, 1]
    assert completed == [(25, True)]


@pytest.mark.asyncio
async def test_stopwatch_finish_rewards(history):
    session = make_session(history=history)
    await session.begin(TimerMode.STOPWATCH)
    session.tick(12 * 60)
    session.finish()
    assert session.outcome.record.duration_minutes == 12
    assert session.outcome.pet.current_exp == 5


@pytest.mark.asyncio
async def test_blocked_audio_on_resume_does_not_stop_the_timer(audio_engine, fake_output):
    settings = Settings(sound_enabled=True, selected_sound_id='brown')
    session = make_session(settings, audio=audio_engine)
    await session.begin(TimerMode.CUSTOM, custom_minutes=5)
    session.pause()
    fake_output.block_prepare = True
    with pytest.warns(AutoplayBlockedWarning):
        await session.resume()
    assert session.machine.status is SessionStatus.RUNNING
    session.tick(300)
    assert session.outcome.record.duration_minutes == 5
