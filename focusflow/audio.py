#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""FocusFlow - Procedural ambient sound: synthesis, volume ramp and engine"""
import abc
import asyncio
import logging
import warnings
from dataclasses import dataclass, replace
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Union

import numpy as np
from scipy import signal as scipy_signal

from .types import (
    NONE_SOUND_ID,
    AutoplayBlockedWarning,
    OutputBlockedError,
    SoundCategory,
    SoundOption,
)


class AudioConstants:
    SAMPLE_RATE = 44100
    BIT_DEPTH = 16
    CHANNELS = 2
    MAX_AMPLITUDE = 32767
    MIN_AMPLITUDE = -32768
    BUFFER_SIZE = 2048
    LOOP_SECONDS = 2.0
    # filters settle on a discarded pre-roll so the loop starts in steady state
    PREROLL_SAMPLES = 8192
    # Paul Kellet pink filter: (pole, white gain) per stage
    KELLET_POLES = (
        (0.99886, 0.0555179),
        (0.99332, 0.0750759),
        (0.96900, 0.1538520),
        (0.86650, 0.3104856),
        (0.55000, 0.5329522),
        (-0.7616, -0.0168980),
    )
    KELLET_DIRECT = 0.5362
    KELLET_DELAYED = 0.115926
    PINK_GAIN = 0.11
    BROWN_LEAK = 1.02
    BROWN_STEP = 0.02
    BROWN_GAIN = 3.5
    RAIN_LPF_CUTOFF = 1000
    RAIN_LPF_ORDER = 4
    TONE_HZ = 40.0
    TONE_AMPLITUDE = 0.5
    RAMP_STEP = 0.02
    STREAM_GAIN_RATIO = 1.0
    GENERATED_GAIN_RATIO = 0.15


def to_pcm16(samples: np.ndarray, channels: int = AudioConstants.CHANNELS) -> np.ndarray:
    """Float mono [-1, 1] -> int16 frames of shape (n, channels)."""
    mono = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0) * AudioConstants.MAX_AMPLITUDE
    pcm = np.clip(mono, AudioConstants.MIN_AMPLITUDE, AudioConstants.MAX_AMPLITUDE).astype(np.int16)
    return np.ascontiguousarray(np.repeat(pcm[:, None], channels, axis=1))


# ==================== Synthesis ====================
@dataclass(frozen=True)
class Oscillator:
    """Fixed-frequency tone. Its loop buffer always holds a whole number of
    periods, so repeating it is indistinguishable from a free-running sine."""
    frequency: float = AudioConstants.TONE_HZ
    amplitude: float = AudioConstants.TONE_AMPLITUDE
    sample_rate: int = AudioConstants.SAMPLE_RATE

    def _loop_ratio(self) -> Fraction:
        if self.frequency <= 0:
            raise ValueError(f"frequency must be positive, got {self.frequency}")
        return Fraction(self.sample_rate) / Fraction(self.frequency).limit_denominator(1000)

    @property
    def loop_samples(self) -> int:
        return self._loop_ratio().numerator

    @property
    def loop_cycles(self) -> int:
        return self._loop_ratio().denominator

    def loop_buffer(self) -> np.ndarray:
        n = self.loop_samples
        t = np.arange(n, dtype=np.float64)
        return self.amplitude * np.sin(2 * np.pi * self.loop_cycles * t / n)


class NoiseSynthesizer:
    """Renders loopable mono buffers for the generated sound ids.

    Each call draws fresh white noise from the synthesizer's generator; pass a
    seed for reproducible buffers.
    """

    def __init__(self, sample_rate: int = AudioConstants.SAMPLE_RATE, duration: float = AudioConstants.LOOP_SECONDS,
                 seed: Optional[int] = None):
        self.sample_rate = sample_rate
        self.duration = duration
        self._rng = np.random.default_rng(seed)
        self._generators: Dict[str, Callable[[], np.ndarray]] = {
            'pink': self.pink,
            'brown': self.brown,
            'rain': self.rain,
            'gamma40': self.tone,
        }

    @property
    def num_samples(self) -> int:
        return int(self.sample_rate * self.duration)

    @property
    def kinds(self) -> List[str]:
        return list(self._generators)

    def _white(self) -> np.ndarray:
        return self._rng.uniform(-1.0, 1.0, self.num_samples + AudioConstants.PREROLL_SAMPLES)

    def pink(self) -> np.ndarray:
        white = self._white()
        pink = white * AudioConstants.KELLET_DIRECT
        for pole, gain in AudioConstants.KELLET_POLES:
            pink += scipy_signal.lfilter([gain], [1.0, -pole], white)
        pink += scipy_signal.lfilter([0.0, AudioConstants.KELLET_DELAYED], [1.0], white)
        return (pink * AudioConstants.PINK_GAIN)[AudioConstants.PREROLL_SAMPLES:]

    def _brown_full(self) -> np.ndarray:
        # y[n] = (y[n-1] + 0.02 * w[n]) / 1.02
        leak = AudioConstants.BROWN_LEAK
        brown = scipy_signal.lfilter([AudioConstants.BROWN_STEP / leak], [1.0, -1.0 / leak], self._white())
        return brown * AudioConstants.BROWN_GAIN

    def brown(self) -> np.ndarray:
        return self._brown_full()[AudioConstants.PREROLL_SAMPLES:]

    def rain(self) -> np.ndarray:
        sos = scipy_signal.butter(AudioConstants.RAIN_LPF_ORDER, AudioConstants.RAIN_LPF_CUTOFF / (self.sample_rate / 2),
                                  btype='low', output='sos')
        return scipy_signal.sosfilt(sos, self._brown_full())[AudioConstants.PREROLL_SAMPLES:]

    def tone(self, frequency: float = AudioConstants.TONE_HZ) -> np.ndarray:
        return Oscillator(frequency=frequency, sample_rate=self.sample_rate).loop_buffer()

    def render(self, kind: str) -> np.ndarray:
        if kind not in self._generators:
            raise KeyError(f"no generator for sound '{kind}'")
        return self._generators[kind]()


# ==================== Volume ====================
class VolumeRamp:
    """Steps the output level toward its target by a fixed amount per control
    tick, so every volume change is heard as a fade."""
    STEP = AudioConstants.RAMP_STEP
    _EPSILON = 1e-9

    def __init__(self, base_volume: float = 0.5, auto_volume: bool = False, current: float = 0.0):
        self.base_volume = _clamp(base_volume)
        self.auto_volume = auto_volume
        self.dynamic_scale = 1.0
        self.current = _clamp(current)

    @property
    def target(self) -> float:
        scale = self.dynamic_scale if self.auto_volume else 1.0
        return _clamp(self.base_volume * scale)

    @property
    def converged(self) -> bool:
        return self.current == self.target

    def set_base_volume(self, volume: float):
        self.base_volume = _clamp(volume)

    def set_auto_volume(self, enabled: bool):
        self.auto_volume = enabled
        if not enabled:
            self.dynamic_scale = 1.0

    def set_dynamic_scale(self, scale: float):
        self.dynamic_scale = _clamp(scale) if self.auto_volume else 1.0

    def reset(self, level: float = 0.0):
        self.current = _clamp(level)

    def tick(self) -> float:
        target = self.target
        diff = target - self.current
        if abs(diff) < self.STEP + self._EPSILON:
            self.current = target
        else:
            self.current += self.STEP if diff > 0 else -self.STEP
        return self.current

    def gains(self) -> tuple:
        """(streamed, generated) gains for the current level."""
        return (self.current * AudioConstants.STREAM_GAIN_RATIO, self.current * AudioConstants.GENERATED_GAIN_RATIO)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


# ==================== Catalog ====================
SOUND_LIBRARY = (
    SoundOption('none', 'Off', SoundCategory.NONE),
    SoundOption('pink', 'Pink Noise', SoundCategory.AMBIENCE, generated=True),
    SoundOption('brown', 'Brown Noise', SoundCategory.AMBIENCE, generated=True),
    SoundOption('rain', 'Rain', SoundCategory.AMBIENCE, generated=True),
    SoundOption('gamma40', '40 Hz Focus', SoundCategory.FREQUENCY, generated=True),
    SoundOption('forest', 'Forest', SoundCategory.AMBIENCE, source_url='https://actions.google.com/sounds/v1/relaxing/forest_sounds.ogg'),
    SoundOption('cafe', 'Cafe', SoundCategory.AMBIENCE, source_url='https://actions.google.com/sounds/v1/ambiences/coffee_shop.ogg'),
    SoundOption('white', 'White Noise', SoundCategory.AMBIENCE, source_url='https://actions.google.com/sounds/v1/relaxing/white_noise.ogg'),
)


class SoundCatalog:
    """Static library plus custom sounds registered while the process runs."""

    def __init__(self, options=SOUND_LIBRARY):
        self._static: Dict[str, SoundOption] = {o.id: o for o in options}
        self._custom: Dict[str, str] = {}

    def register_custom_sound(self, sound_id: str, url: str) -> SoundOption:
        if sound_id in self._static or sound_id in self._custom:
            raise ValueError(f"sound id already registered: {sound_id}")
        self._custom[sound_id] = url
        return self.get(sound_id)

    def get(self, sound_id: str) -> Optional[SoundOption]:
        if sound_id in self._static:
            return self._static[sound_id]
        if sound_id in self._custom:
            return SoundOption(sound_id, sound_id, SoundCategory.CUSTOM, source_url=self._custom[sound_id])
        return None

    def options(self) -> List[SoundOption]:
        return list(self._static.values()) + [self.get(i) for i in self._custom]

    def clear_custom(self):
        self._custom.clear()


# ==================== Output state ====================
@dataclass(frozen=True)
class Silent:
    pass


@dataclass(frozen=True)
class Generated:
    kind: str


@dataclass(frozen=True)
class Streamed:
    url: str


OutputSource = Union[Silent, Generated, Streamed]
SILENT = Silent()


@dataclass(frozen=True)
class AudioState:
    current_sound_id: str = NONE_SOUND_ID
    source: OutputSource = SILENT
    generation: int = 0
    paused: bool = False


@dataclass(frozen=True)
class Requested:
    sound_id: str


@dataclass(frozen=True)
class Started:
    generation: int
    source: OutputSource


@dataclass(frozen=True)
class Stopped:
    pass


@dataclass(frozen=True)
class Paused:
    pass


@dataclass(frozen=True)
class Resumed:
    pass


AudioAction = Union[Requested, Started, Stopped, Paused, Resumed]


def reduce_audio(state: AudioState, action: AudioAction) -> AudioState:
    """The only place the engine's output state changes.

    Every request or stop opens a new generation; a start that reports an
    older generation arrived too late and leaves the state untouched.
    """
    if isinstance(action, Requested):
        return AudioState(current_sound_id=action.sound_id, source=SILENT, generation=state.generation + 1)
    if isinstance(action, Started):
        if action.generation != state.generation:
            return state
        return replace(state, source=action.source)
    if isinstance(action, Stopped):
        return AudioState(current_sound_id=NONE_SOUND_ID, source=SILENT, generation=state.generation + 1)
    if isinstance(action, Paused):
        return replace(state, paused=True)
    if isinstance(action, Resumed):
        return replace(state, paused=False)
    raise TypeError(f"unknown audio action: {action!r}")


class OutputDevice(abc.ABC):
    """What the engine needs from an audio backend."""

    @abc.abstractmethod
    async def prepare(self) -> None:
        """Open or resume the device; may wait on permission prompts."""

    @abc.abstractmethod
    def play_buffer(self, samples: np.ndarray) -> None: ...

    @abc.abstractmethod
    async def fetch_stream(self, url: str) -> str:
        """Resolve a streamed source to something play_stream can start.

        Nothing is audible yet; raises OutputBlockedError if the source is unreachable.
        """

    @abc.abstractmethod
    def play_stream(self, source: str) -> None:
        """Start looping a fetched source; raises OutputBlockedError if refused."""

    @abc.abstractmethod
    def stop_buffer(self) -> None: ...

    @abc.abstractmethod
    def stop_stream(self) -> None: ...

    @abc.abstractmethod
    def pause(self) -> None: ...

    @abc.abstractmethod
    def resume(self) -> None: ...

    @abc.abstractmethod
    def set_gains(self, streamed: float, generated: float) -> None: ...

    def close(self) -> None:
        self.stop_buffer()
        self.stop_stream()


# ==================== Engine ====================
class AudioEngine:
    """Plays at most one ambient source at a time on an injected output device."""

    def __init__(self, output: OutputDevice, catalog: Optional[SoundCatalog] = None,
                 synthesizer: Optional[NoiseSynthesizer] = None, ramp: Optional[VolumeRamp] = None,
                 logger: Optional[logging.Logger] = None):
        self.output = output
        self.catalog = catalog or SoundCatalog()
        self.synthesizer = synthesizer or NoiseSynthesizer()
        self.ramp = ramp or VolumeRamp()
        self.logger = logger or logging.getLogger(__name__)
        self._state = AudioState()
        self.last_warning: Optional[str] = None

    @property
    def state(self) -> AudioState:
        return self._state

    @property
    def current_sound_id(self) -> str:
        return self._state.current_sound_id

    @property
    def source(self) -> OutputSource:
        return self._state.source

    def _dispatch(self, action: AudioAction) -> AudioState:
        self._state = reduce_audio(self._state, action)
        return self._state

    def _is_stale(self, generation: int) -> bool:
        return generation != self._state.generation

    def _silence(self):
        self.output.stop_buffer()
        self.output.stop_stream()

    def _push_gains(self):
        streamed, generated = self.ramp.gains()
        self.output.set_gains(streamed, generated)

    # ==================== Playback ====================
    async def play(self, sound_id: str) -> None:
        if sound_id == NONE_SOUND_ID:
            self.stop()
            return
        if sound_id == self._state.current_sound_id:
            return
        option = self.catalog.get(sound_id)
        if option is None or (not option.generated and not option.source_url):
            self.logger.warning(f"[Audio] Unknown sound '{sound_id}', staying silent")
            self.stop()
            return
        self._silence()
        generation = self._dispatch(Requested(sound_id)).generation
        await self._start(option, generation)

    async def retry(self) -> None:
        """Try again to start the selected sound after a blocked start."""
        sound_id = self._state.current_sound_id
        if sound_id == NONE_SOUND_ID or not isinstance(self._state.source, Silent):
            return
        option = self.catalog.get(sound_id)
        if option is None:
            return
        generation = self._dispatch(Requested(sound_id)).generation
        await self._start(option, generation)

    async def _start(self, option: SoundOption, generation: int) -> None:
        self.ramp.reset()
        self._push_gains()
        try:
            await self.output.prepare()
        except OutputBlockedError as e:
            self._blocked(option, e)
            return
        if self._is_stale(generation):
            self.logger.debug(f"[Audio] Dropped stale start of '{option.id}'")
            return
        if option.generated:
            loop = asyncio.get_running_loop()
            samples = await loop.run_in_executor(None, self.synthesizer.render, option.id)
            if self._is_stale(generation):
                self.logger.debug(f"[Audio] Dropped stale buffer for '{option.id}'")
                return
            self.output.play_buffer(samples)
            self._dispatch(Started(generation, Generated(option.id)))
        else:
            try:
                source = await self.output.fetch_stream(option.source_url)
            except OutputBlockedError as e:
                if not self._is_stale(generation):
                    self._blocked(option, e)
                return
            # nothing is audible yet; no await between this check and play_stream
            if self._is_stale(generation):
                self.logger.debug(f"[Audio] Dropped stale stream for '{option.id}'")
                return
            try:
                self.output.play_stream(source)
            except OutputBlockedError as e:
                self._blocked(option, e)
                return
            self._dispatch(Started(generation, Streamed(option.source_url)))
        if self._state.paused:
            self.output.pause()
        self.logger.info(f"[Audio] Playing '{option.id}'")

    def _blocked(self, option: SoundOption, error: Exception):
        self._warn(f"Autoplay blocked for '{option.id}': {error}")

    def _blocked_resume(self, error: Exception):
        self._warn(f"Resume blocked for '{self._state.current_sound_id}': {error}")

    def _warn(self, message: str):
        self.last_warning = message
        self.logger.warning(f"[Audio] {self.last_warning}")
        warnings.warn(self.last_warning, AutoplayBlockedWarning, stacklevel=3)

    def stop(self) -> None:
        self._silence()
        self._dispatch(Stopped())
        self.ramp.reset()
        self._push_gains()

    def pause(self) -> None:
        if self._state.current_sound_id == NONE_SOUND_ID or self._state.paused:
            return
        self.output.pause()
        self._dispatch(Paused())

    async def resume(self) -> None:
        if not self._state.paused:
            return
        try:
            await self.output.prepare()
        except OutputBlockedError as e:
            # stays paused; a later resume() tries again
            self._blocked_resume(e)
            return
        self.output.resume()
        self._dispatch(Resumed())

    def register_custom_sound(self, sound_id: str, url: str) -> SoundOption:
        return self.catalog.register_custom_sound(sound_id, url)

    # ==================== Volume ====================
    def set_base_volume(self, volume: float):
        self.ramp.set_base_volume(volume)

    def set_auto_volume(self, enabled: bool):
        self.ramp.set_auto_volume(enabled)

    def set_dynamic_volume_scale(self, scale: float):
        if not self.ramp.auto_volume:
            self.logger.debug("[Audio] Auto volume off, dynamic scale held at 1.0")
        self.ramp.set_dynamic_scale(scale)

    def control_tick(self, _delta: float = 0.0) -> float:
        level = self.ramp.tick()
        self._push_gains()
        return level

    def close(self):
        self.stop()
        self.output.close()
        self.catalog.clear_custom()
