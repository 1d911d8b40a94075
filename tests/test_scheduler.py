"""Tests for cycle planning and the custom-duration slider."""
import pytest

from focusflow.scheduler import (
    MAX_CUSTOM_MINUTES,
    SLIDER_MAX,
    build_cycle,
    cycle_total_seconds,
    describe_cycle,
    minutes_to_slider_value,
    plan_session,
    slider_value_to_minutes,
)
from focusflow.types import (
    InvalidConfigurationError,
    SegmentKind,
    Settings,
    Task,
    TimerConfiguration,
    TimerMode,
)

W, S, L = SegmentKind.WORK, SegmentKind.SHORT_BREAK, SegmentKind.LONG_BREAK


def test_default_cycle_order_and_total():
    config = TimerConfiguration(25, 5, 15, 4)
    segments = build_cycle(config)
    assert [s.kind for s in segments] == [W, S, W, S, W, S, W, L]
    assert [s.duration_seconds for s in segments] == [1500, 300, 1500, 300, 1500, 300, 1500, 900]
    assert cycle_total_seconds(config) == 7800


def test_single_round_cycle_ends_with_long_break():
    segments = build_cycle(TimerConfiguration(50, 10, 20, 1))
    assert [(s.kind, s.duration_seconds) for s in segments] == [(W, 3000), (L, 1200)]


def test_closed_form_total_matches_materialized_cycle():
    for rounds in (1, 2, 3, 7):
        for work, short, long in ((1, 1, 1), (25, 5, 15), (90, 3, 30)):
            config = TimerConfiguration(work, short, long, rounds)
            segments = build_cycle(config)
            assert len(segments) == 2 * rounds
            assert cycle_total_seconds(config) == sum(s.duration_seconds for s in segments)


@pytest.mark.parametrize('config', [
    TimerConfiguration(0, 5, 15, 4),
    TimerConfiguration(25, -5, 15, 4),
    TimerConfiguration(25, 5, 15, 0),
    TimerConfiguration(25.5, 5, 15, 4),
])
def test_invalid_configuration_is_rejected(config):
    with pytest.raises(InvalidConfigurationError):
        build_cycle(config)
    with pytest.raises(ValueError):
        cycle_total_seconds(config)


def test_slider_mapping():
    assert slider_value_to_minutes(0) == 0
    assert slider_value_to_minutes(45) == 45
    assert slider_value_to_minutes(60) == 60
    assert slider_value_to_minutes(61) == 65
    assert slider_value_to_minutes(SLIDER_MAX) == MAX_CUSTOM_MINUTES == 240
    assert minutes_to_slider_value(120) == 72


def test_slider_round_trips_every_position():
    for value in range(SLIDER_MAX + 1):
        assert minutes_to_slider_value(slider_value_to_minutes(value)) == value


@pytest.mark.parametrize('value', [-1, SLIDER_MAX + 1])
def test_slider_out_of_range(value):
    with pytest.raises(InvalidConfigurationError):
        slider_value_to_minutes(value)


def test_minutes_out_of_slider_range():
    with pytest.raises(InvalidConfigurationError):
        minutes_to_slider_value(MAX_CUSTOM_MINUTES + 1)


def test_task_pomodoro_count_overrides_rounds():
    plan = plan_session(TimerMode.POMODORO, Settings(), Task('t1', 'Write report', pomodoro_count=2))
    assert plan.task_id == 't1'
    assert [s.kind for s in plan.segments] == [W, S, W, L]


def test_custom_plan_uses_task_duration_unless_given():
    task = Task('t2', 'Read', duration_minutes=40)
    assert plan_session(TimerMode.CUSTOM, Settings(), task).segments[0].duration_seconds == 2400
    assert plan_session(TimerMode.CUSTOM, Settings(), task, custom_minutes=10).segments[0].duration_seconds == 600
    with pytest.raises(InvalidConfigurationError):
        plan_session(TimerMode.CUSTOM, Settings())


def test_stopwatch_plan_is_open_ended():
    plan = plan_session(TimerMode.STOPWATCH, Settings())
    assert len(plan.segments) == 1
    assert plan.segments[0].is_open_ended
    assert plan.segments[0].kind is W


def test_describe_cycle_labels():
    labels = [label for label, _ in describe_cycle(build_cycle(TimerConfiguration(25, 5, 15, 2)))]
    assert labels == ['Focus', 'Break', 'Focus', 'Long Break']
