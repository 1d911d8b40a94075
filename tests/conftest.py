"""
Pytest configuration and shared fixtures for FocusFlow tests.

- every test gets its own FOCUSFLOW_HOME under tmp_path
- FakeOutput stands in for the audio device and records what the engine asked for
"""
import asyncio
from typing import Dict, List, Optional

import numpy as np
import pytest

from focusflow.audio import AudioEngine, NoiseSynthesizer, OutputDevice
from focusflow.database import FocusHistoryDB
from focusflow.types import APP_HOME_ENV, OutputBlockedError


class FakeOutput(OutputDevice):
    def __init__(self, block_prepare: bool = False, block_stream: bool = False, block_fetch: bool = False):
        self.block_prepare = block_prepare
        self.block_stream = block_stream
        self.block_fetch = block_fetch
        # set to an asyncio.Event to hold prepare() until the test releases it
        self.gate: Optional[asyncio.Event] = None
        # url -> asyncio.Event holding fetch_stream() for that url
        self.stream_gates: Dict[str, asyncio.Event] = {}
        self.calls: List = []
        self.buffer: Optional[np.ndarray] = None
        self.stream_url: Optional[str] = None
        self.paused = False
        self.gains = (0.0, 0.0)

    async def prepare(self) -> None:
        self.calls.append('prepare')
        if self.block_prepare:
            raise OutputBlockedError("device refused")
        if self.gate is not None:
            await self.gate.wait()

    def play_buffer(self, samples) -> None:
        self.calls.append('play_buffer')
        self.buffer = samples

    async def fetch_stream(self, url: str) -> str:
        self.calls.append(('fetch_stream', url))
        gate = self.stream_gates.get(url)
        if gate is not None:
            await gate.wait()
        if self.block_fetch:
            raise OutputBlockedError("source unreachable")
        return url

    def play_stream(self, source: str) -> None:
        self.calls.append(('play_stream', source))
        if self.block_stream:
            raise OutputBlockedError("autoplay blocked")
        self.stream_url = source

    def stop_buffer(self) -> None:
        self.calls.append('stop_buffer')
        self.buffer = None

    def stop_stream(self) -> None:
        self.calls.append('stop_stream')
        self.stream_url = None

    def pause(self) -> None:
        self.calls.append('pause')
        self.paused = True

    def resume(self) -> None:
        self.calls.append('resume')
        self.paused = False

    def set_gains(self, streamed: float, generated: float) -> None:
        self.gains = (streamed, generated)

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c == name or (isinstance(c, tuple) and c[0] == name))


@pytest.fixture(autouse=True)
def focusflow_home(tmp_path, monkeypatch):
    """Isolate config, database and logs from the real home directory."""
    home = tmp_path / 'focusflow-home'
    monkeypatch.setenv(APP_HOME_ENV, str(home))
    return home


@pytest.fixture
def fake_output():
    return FakeOutput()


@pytest.fixture
def synthesizer():
    return NoiseSynthesizer(duration=0.05, seed=7)


@pytest.fixture
def audio_engine(fake_output, synthesizer):
    return AudioEngine(fake_output, synthesizer=synthesizer)


@pytest.fixture
def history(tmp_path):
    db = FocusHistoryDB(tmp_path / 'history.db')
    yield db
    db.close()
