#!/usr/bin/env python3
"""
FocusFlow CLI

Terminal front end for the focus session engine:

    focusflow preview --rounds 4
    focusflow start --mode custom --minutes 50 --sound brown
    focusflow stats
"""
import asyncio
import logging
from dataclasses import replace
from datetime import date

import click

from .audio import AudioEngine, SoundCatalog
from .config import load_settings, save_settings
from .database import FocusHistoryDB
from .progression import streak_tier
from .runtime import run_session, setup_logger
from .scheduler import (
    MAX_CUSTOM_MINUTES,
    SEGMENT_LABELS,
    build_cycle,
    cycle_total_seconds,
    describe_cycle,
)
from .session import FocusSession
from .types import (
    FocusFlowError,
    SessionStatus,
    SoundMode,
    TimerConfiguration,
    TimerMode,
    __version__,
    day_key,
)

CHART_WIDTH = 30


def format_duration(seconds) -> str:
    seconds = int(max(0, seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


@click.group()
@click.version_option(__version__, prog_name='focusflow')
@click.pass_context
def cli(ctx):
    """FocusFlow - Pomodoro sessions with procedural ambient sound."""
    ctx.ensure_object(dict)
    try:
        ctx.obj['settings'] = load_settings(logger=logging.getLogger(__name__))
    except FocusFlowError as e:
        raise click.ClickException(f"config.json: {e}")


@cli.command()
@click.option('--work', type=click.IntRange(min=1), help='Focus minutes per round')
@click.option('--short', 'short_break', type=click.IntRange(min=1), help='Short break minutes')
@click.option('--long', 'long_break', type=click.IntRange(min=1), help='Long break minutes')
@click.option('--rounds', type=click.IntRange(min=1), help='Focus rounds per cycle')
@click.pass_context
def preview(ctx, work, short_break, long_break, rounds):
    """Show the segments of one Pomodoro cycle."""
    settings = ctx.obj['settings']
    config = TimerConfiguration(
        work or settings.work_time,
        short_break or settings.short_break_time,
        long_break or settings.long_break_time,
        rounds or settings.pomodoros_per_round,
    )
    for i, (label, seconds) in enumerate(describe_cycle(build_cycle(config)), start=1):
        click.echo(f"  {i:2d}. {label:<11} {format_duration(seconds)}")
    click.echo(f"Total: {format_duration(cycle_total_seconds(config))}")


@cli.command()
@click.option('--work', type=click.IntRange(min=1))
@click.option('--short', 'short_break', type=click.IntRange(min=1))
@click.option('--long', 'long_break', type=click.IntRange(min=1))
@click.option('--rounds', type=click.IntRange(min=1))
@click.option('--sound', 'sound_id', help='Default ambient sound id')
@click.option('--sound-mode', type=click.Choice([m.value for m in SoundMode]))
@click.option('--volume', type=click.FloatRange(0.0, 1.0))
@click.option('--auto-volume/--no-auto-volume', default=None)
@click.pass_context
def configure(ctx, work, short_break, long_break, rounds, sound_id, sound_mode, volume, auto_volume):
    """Update and save the default settings."""
    settings = ctx.obj['settings']
    if work:
        settings.work_time = work
    if short_break:
        settings.short_break_time = short_break
    if long_break:
        settings.long_break_time = long_break
    if rounds:
        settings.pomodoros_per_round = rounds
    if sound_id is not None:
        if SoundCatalog().get(sound_id) is None:
            raise click.BadParameter(f"unknown sound '{sound_id}'", param_hint='--sound')
        settings.selected_sound_id = sound_id
        settings.sound_enabled = sound_id != 'none'
    if sound_mode:
        settings.sound_mode = SoundMode(sound_mode)
    if volume is not None:
        settings.sound_volume = volume
    if auto_volume is not None:
        settings.auto_volume = auto_volume
    if not save_settings(settings, logger=logging.getLogger(__name__)):
        raise click.ClickException("could not write config.json")
    for key, value in settings.to_dict().items():
        click.echo(f"{key}: {value}")


@cli.command()
@click.option('--mode', type=click.Choice(['pomodoro', 'custom', 'stopwatch'], case_sensitive=False),
              default='pomodoro', show_default=True)
@click.option('--minutes', type=click.IntRange(1, MAX_CUSTOM_MINUTES), help='Duration for custom mode')
@click.option('--sound', 'sound_id', help='Ambient sound id (see `focusflow sounds`)')
@click.option('--no-sound', is_flag=True, help='Run without ambient sound')
@click.option('-v', '--verbose', is_flag=True, help='Echo log lines to the terminal')
@click.pass_context
def start(ctx, mode, minutes, sound_id, no_sound, verbose):
    """Run a focus session in the terminal. Ctrl+C ends it early."""
    settings = replace(ctx.obj['settings'])
    timer_mode = TimerMode[mode.upper()]
    if timer_mode is TimerMode.CUSTOM and minutes is None:
        raise click.BadParameter("custom mode needs --minutes", param_hint='--minutes')
    if sound_id:
        settings.selected_sound_id = sound_id
        settings.sound_enabled = sound_id != 'none'
    if no_sound:
        settings.sound_enabled = False

    logger = setup_logger(logging.DEBUG if verbose else logging.INFO, console=verbose)
    history = FocusHistoryDB(logger=logger)
    audio = None
    if settings.sound_enabled:
        from .mixer import PygameOutput
        audio = AudioEngine(PygameOutput(logger=logger), logger=logger)

    def show_segment(segment, index):
        click.echo(f"\n{SEGMENT_LABELS[segment.kind]} (#{index + 1})")

    def show_tick(remaining):
        shown = format_duration(session.machine.state.elapsed_focus_seconds if remaining is None else remaining)
        click.echo(f"\r  {shown} ", nl=False)

    session = FocusSession(settings, audio=audio, history=history,
                           on_segment_change=show_segment, on_tick=show_tick, logger=logger)
    try:
        asyncio.run(_drive(session, timer_mode, minutes))
    except KeyboardInterrupt:
        pass
    finally:
        history.close()

    outcome = session.outcome
    if outcome is None:
        return
    minutes_done = outcome.record.duration_minutes if outcome.record else 0
    verb = 'Cancelled' if outcome.cancelled else 'Completed'
    click.echo(f"\n{verb}: {minutes_done} focused minute(s)")
    if not outcome.cancelled and outcome.pet is not None:
        click.echo(f"Pet: level {outcome.pet.level}, exp {outcome.pet.current_exp:g}/{outcome.pet.max_exp}")


async def _drive(session: FocusSession, mode: TimerMode, minutes):
    await session.begin(mode, custom_minutes=minutes)
    try:
        await run_session(session)
    except asyncio.CancelledError:
        # Ctrl+C: a stopwatch has no end of its own, so it finishes; timed sessions cancel
        if session.machine.status in (SessionStatus.RUNNING, SessionStatus.PAUSED):
            if mode is TimerMode.STOPWATCH:
                session.finish()
            else:
                session.cancel()
        raise
    finally:
        if session.audio is not None:
            session.audio.close()


@cli.command()
def stats():
    """Today's focus minutes, the last 7 days and the pet."""
    history = FocusHistoryDB()
    try:
        today = date.today()
        click.echo(f"Today: {history.minutes_for_day(day_key(today))} min")
        chart = history.daily_minutes(today)
        peak = max((m for _, m in chart), default=0) or 1
        for day, minutes in chart:
            bar = '#' * round(CHART_WIDTH * minutes / peak)
            click.echo(f"  {day}  {bar:<{CHART_WIDTH}} {minutes}m")
        pet = history.load_pet()
        click.echo(f"Pet: level {pet.level}, exp {pet.current_exp:g}/{pet.max_exp}, happiness {pet.happiness}")
        click.echo(f"Streak: {pet.streak_count} day(s), tier {streak_tier(pet.streak_count)}")
    finally:
        history.close()


@cli.command()
def sounds():
    """List the ambient sounds."""
    for option in SoundCatalog().options():
        source = 'generated' if option.generated else (option.source_url or '-')
        click.echo(f"{option.id:<8} {option.name:<12} {option.category.value:<9} {source}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
