#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
FocusFlow - Focus session controller

Owns one SessionStateMachine for the lifetime of a session screen and connects
it to its collaborators:

    settings snapshot -> scheduler -> machine
    machine events    -> UI callbacks, audio (per sound mode), haptics
    end of session    -> reward, focus history, task completion
"""
import asyncio
import logging
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional, Protocol

from .audio import AudioEngine
from .database import FocusHistoryDB
from .engine import CancelCallback, CompleteCallback, SessionStateMachine
from .progression import apply_reward, initial_pet
from .scheduler import plan_session
from .types import (
    FocusRecord,
    PetState,
    Segment,
    SessionOutcome,
    SessionPlan,
    Settings,
    SoundMode,
    Task,
    TimerMode,
    day_key,
)


class Haptics(Protocol):
    def impact_light(self) -> None: ...
    def impact_medium(self) -> None: ...
    def notification_success(self) -> None: ...


class NullHaptics:
    def impact_light(self) -> None:
        pass

    def impact_medium(self) -> None:
        pass

    def notification_success(self) -> None:
        pass


class FocusSession:
    def __init__(self, settings: Settings,
                 audio: Optional[AudioEngine] = None,
                 history: Optional[FocusHistoryDB] = None,
                 haptics: Optional[Haptics] = None,
                 pet: Optional[PetState] = None,
                 clock: Callable[[], date] = date.today,
                 on_segment_change: Optional[Callable[[Segment, int], None]] = None,
                 on_tick: Optional[Callable[[Optional[float]], None]] = None,
                 on_complete: Optional[CompleteCallback] = None,
                 on_cancel: Optional[CancelCallback] = None,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._live_settings = settings
        self.settings: Optional[Settings] = None
        self.audio = audio
        self.history = history
        self.haptics = haptics or NullHaptics()
        self.pet = pet or (history.load_pet() if history else initial_pet())
        self._today = clock
        self.on_segment_change = on_segment_change
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.on_cancel = on_cancel
        self.machine = SessionStateMachine(
            on_segment_change=self._segment_changed,
            on_tick=self._ticked,
            on_complete=self._completed,
            on_cancel=self._cancelled,
            logger=self.logger,
        )
        self.plan: Optional[SessionPlan] = None
        self.outcome: Optional[SessionOutcome] = None
        self.finished = asyncio.Event()
        # called right after the machine resumes, before any audio await
        self.resume_listeners: List[Callable[[], None]] = []

    # ==================== Lifecycle ====================
    async def begin(self, mode: TimerMode, task: Optional[Task] = None, custom_minutes: Optional[int] = None) -> SessionPlan:
        self.settings = replace(self._live_settings)
        plan = plan_session(mode, self.settings, task, custom_minutes)
        await self.begin_plan(plan)
        return plan

    async def begin_plan(self, plan: SessionPlan) -> None:
        if self.settings is None:
            self.settings = replace(self._live_settings)
        self.plan = plan
        self.machine.start(plan)
        self._haptic('impact_light')
        if self.audio is not None and self.settings.sound_enabled and not self.machine.status.is_terminal:
            self.audio.set_base_volume(self.settings.sound_volume)
            self.audio.set_auto_volume(self.settings.auto_volume)
            await self.audio.play(self.settings.selected_sound_id)

    def tick(self, delta_seconds: float) -> None:
        self.machine.tick(delta_seconds)

    def pause(self) -> None:
        self.machine.pause()
        self._haptic('impact_medium')
        if self._audio_follows_timer():
            self.audio.pause()

    async def resume(self) -> None:
        self.machine.resume()
        for listener in list(self.resume_listeners):
            listener()
        self._haptic('impact_medium')
        if self._audio_follows_timer():
            await self.audio.resume()

    def cancel(self) -> None:
        self.machine.cancel()

    def skip_break(self) -> None:
        self.machine.skip_break()

    def finish(self) -> None:
        self.machine.finish()

    def report_attention(self, scale: float) -> None:
        """Duck the ambient sound from an external attention signal (0..1)."""
        if self.audio is not None:
            self.audio.set_dynamic_volume_scale(scale)

    # ==================== Machine events ====================
    def _segment_changed(self, segment: Segment, index: int) -> None:
        self.logger.info(f"[Session] Segment #{index}: {segment.kind.value} ({segment.duration_seconds}s)")
        if self.on_segment_change:
            self.on_segment_change(segment, index)

    def _ticked(self, remaining: Optional[float]) -> None:
        if self.on_tick:
            self.on_tick(remaining)

    def _completed(self, minutes: int, task_done: bool) -> None:
        today = day_key(self._today())
        record = FocusRecord(today, minutes, self.plan.mode) if minutes > 0 else None
        rewarded = apply_reward(self.pet, minutes, today)
        task_id = self.plan.task_id
        mark_task = task_done and task_id is not None
        if self.history is not None:
            if record is not None:
                self.history.add_focus_record(record)
            if rewarded is not self.pet:
                self.history.save_pet(rewarded)
            if mark_task:
                self.history.mark_task_done(task_id)
        if rewarded is not self.pet:
            self.logger.info(f"[Session] Reward: level {rewarded.level}, exp {rewarded.current_exp}/{rewarded.max_exp}")
        self.pet = rewarded
        self._end_audio()
        self._haptic('notification_success')
        self.outcome = SessionOutcome(record, rewarded, task_id, mark_task, cancelled=False)
        self.finished.set()
        if self.on_complete:
            self.on_complete(minutes, task_done)

    def _cancelled(self, minutes: int) -> None:
        # partial credit: the focused minutes are kept, the reward is not granted
        record = FocusRecord(day_key(self._today()), minutes, self.plan.mode) if minutes > 0 else None
        if self.history is not None and record is not None:
            self.history.add_focus_record(record)
        self._end_audio()
        self._haptic('impact_medium')
        self.outcome = SessionOutcome(record, self.pet, self.plan.task_id, False, cancelled=True)
        self.finished.set()
        if self.on_cancel:
            self.on_cancel(minutes)

    # ==================== Helpers ====================
    def _audio_follows_timer(self) -> bool:
        return self.audio is not None and self.settings is not None and self.settings.sound_mode is SoundMode.TIMER_ONLY

    def _end_audio(self) -> None:
        if self._audio_follows_timer():
            self.audio.stop()

    def _haptic(self, name: str) -> None:
        try:
            getattr(self.haptics, name)()
        except Exception as e:
            self.logger.debug(f"[Session] Haptics {name} ignored: {e}")
