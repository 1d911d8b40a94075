#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""FocusFlow - pygame output device"""
import asyncio
import hashlib
import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

os.environ.setdefault('PYGAME_HIDE_SUPPORT_PROMPT', '1')
import numpy as np
import pygame
import requests

from .audio import AudioConstants, OutputDevice, to_pcm16
from .types import OutputBlockedError, get_sound_cache_path

DOWNLOAD_TIMEOUT = 15.0
DOWNLOAD_CHUNK = 64 * 1024


def cached_sound_path(url: str, cache_dir: Path) -> Path:
    suffix = Path(urlparse(url).path).suffix or '.ogg'
    return cache_dir / f"{hashlib.sha1(url.encode('utf-8')).hexdigest()[:16]}{suffix}"


def fetch_remote_sound(url: str, cache_dir: Path, session: Optional[requests.Session] = None,
                       timeout: float = DOWNLOAD_TIMEOUT, logger: Optional[logging.Logger] = None) -> Path:
    """Download a remote sound once; later calls return the cached file."""
    logger = logger or logging.getLogger(__name__)
    path = cached_sound_path(url, cache_dir)
    if path.exists():
        return path
    cache_dir.mkdir(parents=True, exist_ok=True)
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout, stream=True)
        resp.raise_for_status()
        temp_path = path.with_suffix(path.suffix + '.part')
        with open(temp_path, 'wb') as f:
            for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK):
                if chunk:
                    f.write(chunk)
        temp_path.replace(path)
    except requests.RequestException as e:
        raise OutputBlockedError(f"download failed for {url}: {e}") from e
    logger.info(f"[Audio] Cached {url} -> {path.name}")
    return path


def resolve_local_source(url: str, cache_dir: Path, session: Optional[requests.Session] = None) -> Path:
    parsed = urlparse(url)
    if parsed.scheme in ('http', 'https'):
        return fetch_remote_sound(url, cache_dir, session=session)
    if parsed.scheme == 'file':
        return Path(parsed.path)
    return Path(url)


class PygameOutput(OutputDevice):
    """Generated loops play on a dedicated mixer channel; streamed sources use
    pygame.mixer.music, which decodes from disk instead of memory."""
    GENERATED_CHANNEL = 0

    def __init__(self, cache_dir: Optional[Path] = None, session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else get_sound_cache_path()
        self.session = session
        self.logger = logger or logging.getLogger(__name__)
        self._channel: Optional['pygame.mixer.Channel'] = None
        self._sound: Optional['pygame.mixer.Sound'] = None
        self._streaming = False
        self._stream_gain = 0.0
        self._generated_gain = 0.0

    @property
    def initialized(self) -> bool:
        return self._channel is not None

    async def prepare(self) -> None:
        if self.initialized:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._init_mixer)

    def _init_mixer(self):
        try:
            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=AudioConstants.SAMPLE_RATE, size=-AudioConstants.BIT_DEPTH,
                                  channels=AudioConstants.CHANNELS, buffer=AudioConstants.BUFFER_SIZE)
            pygame.mixer.set_num_channels(4)
            self._channel = pygame.mixer.Channel(self.GENERATED_CHANNEL)
            self._channel.set_volume(0.0)
        except pygame.error as e:
            raise OutputBlockedError(f"mixer init failed: {e}") from e
        self.logger.info(f"[Audio] Mixer ready: {pygame.mixer.get_init()}")

    def play_buffer(self, samples: np.ndarray) -> None:
        if self._channel is None:
            raise OutputBlockedError("mixer not prepared")
        channels = pygame.mixer.get_init()[2]
        self._sound = pygame.sndarray.make_sound(to_pcm16(samples, channels))
        self._channel.set_volume(self._generated_gain)
        self._channel.play(self._sound, loops=-1)

    async def fetch_stream(self, url: str) -> str:
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, resolve_local_source, url, self.cache_dir, self.session)
        return str(path)

    def play_stream(self, source: str) -> None:
        path = Path(source)
        if not pygame.mixer.get_init():
            raise OutputBlockedError("mixer not prepared")
        try:
            pygame.mixer.music.load(str(path))
            pygame.mixer.music.set_volume(self._stream_gain)
            pygame.mixer.music.play(loops=-1)
        except pygame.error as e:
            raise OutputBlockedError(f"cannot play {path.name}: {e}") from e
        self._streaming = True

    def stop_buffer(self) -> None:
        if self._channel is not None:
            self._channel.stop()
        self._sound = None

    def stop_stream(self) -> None:
        if self._streaming and pygame.mixer.get_init():
            pygame.mixer.music.stop()
            pygame.mixer.music.unload()
        self._streaming = False

    def pause(self) -> None:
        if pygame.mixer.get_init():
            pygame.mixer.pause()
            pygame.mixer.music.pause()

    def resume(self) -> None:
        if pygame.mixer.get_init():
            pygame.mixer.unpause()
            pygame.mixer.music.unpause()

    def set_gains(self, streamed: float, generated: float) -> None:
        self._stream_gain, self._generated_gain = streamed, generated
        if self._channel is not None:
            self._channel.set_volume(generated)
        if self._streaming:
            pygame.mixer.music.set_volume(streamed)

    def close(self) -> None:
        super().close()
        if pygame.mixer.get_init():
            pygame.mixer.quit()
        self._channel = None
