"""
Alert tone: a synthesized 880 Hz beep (or an alarm's own sound file) played through
an exclusive audio output. ToneEngine is the idle/playing state machine; the output
is created lazily once per process and reused across triggers.
"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import numpy as np
import pygame

from azan_alarm.core.task_manager import spawn

SAMPLE_RATE = 44100
TONE_FREQUENCY = 880.0  # A5
TONE_DURATION = 2.0
PEAK_GAIN = 0.5
# Gain envelope keypoints (seconds, gain): ramp up to peak, decay to silence, hold silent.
GAIN_ENVELOPE = ((0.0, 0.0), (0.1, PEAK_GAIN), (0.5, 0.0), (TONE_DURATION, 0.0))
# Frequency keypoints (seconds, Hz), each holding until the next one.
FREQUENCY_SCHEDULE = ((0.0, TONE_FREQUENCY), (0.5, TONE_FREQUENCY))


def synthesize_alert_tone(sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Mono float32 samples in [-1, 1] for the alert pattern."""
    count = int(sample_rate * TONE_DURATION)
    t = np.arange(count) / sample_rate

    frequency = np.empty(count)
    for start, hz in FREQUENCY_SCHEDULE:
        frequency[t >= start] = hz
    phase = 2 * np.pi * np.cumsum(frequency) / sample_rate

    times, gains = zip(*GAIN_ENVELOPE)
    envelope = np.interp(t, times, gains)
    return (envelope * np.sin(phase)).astype(np.float32)


class ToneOutput(ABC):
    """
    Audio output resource. play_* returns a voice handle and registers on_ended,
    which the output calls exactly once when that voice finishes on its own.
    Construction and load_sound() may block; ToneEngine runs them off the loop.
    """

    sample_rate = SAMPLE_RATE

    @property
    @abstractmethod
    def suspended(self) -> bool:
        pass

    @abstractmethod
    async def resume(self) -> None:
        pass

    def suspend(self) -> None:
        """Release the device while idle. Default keeps it."""

    @abstractmethod
    def load_sound(self, path: str) -> Any:
        pass

    @abstractmethod
    def play_samples(self, samples: np.ndarray, on_ended: Callable[[], None]) -> Any:
        pass

    @abstractmethod
    def play_sound(self, sound: Any, on_ended: Callable[[], None]) -> Any:
        pass

    @abstractmethod
    def stop(self, voice: Any) -> None:
        pass

    def close(self) -> None:
        pass


class PygameVoice:
    """One playing pygame Sound. Watches its channel and reports natural completion once."""

    POLL_INTERVAL = 0.05

    def __init__(self, sound: "pygame.mixer.Sound", channel: "pygame.mixer.Channel", on_ended: Callable[[], None]):
        self.sound = sound
        self.channel = channel
        self._on_ended: Optional[Callable[[], None]] = on_ended
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return self._on_ended is not None

    def watch(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._handle = loop.call_later(self.sound.get_length(), self._poll)

    def _poll(self) -> None:
        if not self.active:
            return
        if self.channel.get_busy():
            self._handle = self._loop.call_later(self.POLL_INTERVAL, self._poll)
            return
        self._handle = None
        on_ended, self._on_ended = self._on_ended, None
        on_ended()

    def stop(self) -> None:
        self._on_ended = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.channel.stop()


class PygameToneOutput(ToneOutput):
    """pygame.mixer output. Construction fails (pygame.error) when no audio device is available."""

    def __init__(self, volume: float = 1.0):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.volume = max(0.0, min(1.0, volume))
        self._init_mixer()

    def _init_mixer(self) -> None:
        pygame.mixer.init(frequency=SAMPLE_RATE, size=-16)
        frequency, _size, channels = pygame.mixer.get_init()
        self.sample_rate = frequency
        self.channels = channels
        self.logger.info(f"Audio output ready: {frequency} Hz, {channels} channel(s)")

    @property
    def suspended(self) -> bool:
        return pygame.mixer.get_init() is None

    async def resume(self) -> None:
        self.logger.info("Resuming suspended audio output")
        await asyncio.to_thread(self._init_mixer)

    def suspend(self) -> None:
        """Release the audio device; the next trigger resumes it."""
        if not self.suspended:
            self.logger.debug("Releasing audio output")
            pygame.mixer.quit()

    def load_sound(self, path: str) -> "pygame.mixer.Sound":
        return pygame.mixer.Sound(path)

    def play_samples(self, samples: np.ndarray, on_ended: Callable[[], None]) -> PygameVoice:
        pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
        if self.channels > 1:
            pcm = np.ascontiguousarray(np.repeat(pcm[:, np.newaxis], self.channels, axis=1))
        return self._play(pygame.sndarray.make_sound(pcm), on_ended)

    def play_sound(self, sound: "pygame.mixer.Sound", on_ended: Callable[[], None]) -> PygameVoice:
        return self._play(sound, on_ended)

    def _play(self, sound: "pygame.mixer.Sound", on_ended: Callable[[], None]) -> PygameVoice:
        sound.set_volume(self.volume)
        channel = sound.play()
        if channel is None:
            raise RuntimeError("No free mixer channel")
        voice = PygameVoice(sound, channel, on_ended)
        voice.watch(asyncio.get_running_loop())
        return voice

    def stop(self, voice: PygameVoice) -> None:
        voice.stop()

    def close(self) -> None:
        if not self.suspended:
            pygame.mixer.quit()


class ToneState:
    IDLE = "idle"
    PLAYING = "playing"


class ToneEngine:
    """
    At most one tone at a time: start() pre-empts whatever is playing. Audio failures are
    logged and leave the engine idle; nothing is raised to the caller.
    start() and cancel() must be called on the loop thread.
    """

    def __init__(self, output_factory: Callable[[], ToneOutput]):
        self.output_factory = output_factory
        self.logger = logging.getLogger(self.__class__.__name__)
        self.state = ToneState.IDLE
        self._output: Optional[ToneOutput] = None
        self._voice: Any = None
        self._generation = 0
        self._tone_cache: Dict[int, np.ndarray] = {}
        self._output_lock: Optional[asyncio.Lock] = None

    @property
    def is_playing(self) -> bool:
        return self.state == ToneState.PLAYING

    def start(self, sound_path: str = "") -> None:
        if self.state == ToneState.PLAYING:
            self.cancel()
        self.state = ToneState.PLAYING
        self._generation += 1
        spawn(self._play(self._generation, sound_path), name="alert-tone")

    def cancel(self) -> None:
        # Invalidates any start() still waiting on resume
        self._generation += 1
        voice, self._voice = self._voice, None
        if voice is not None and self._output is not None:
            try:
                self._output.stop(voice)
            except Exception as e:
                self.logger.debug(f"Ignoring error stopping tone: {e}")
        self.state = ToneState.IDLE

    def close(self) -> None:
        self.cancel()
        if self._output is not None:
            try:
                self._output.close()
            except Exception as e:
                self.logger.debug(f"Ignoring error closing audio output: {e}")
            self._output = None

    def _samples(self, sample_rate: int) -> np.ndarray:
        if sample_rate not in self._tone_cache:
            self._tone_cache[sample_rate] = synthesize_alert_tone(sample_rate)
        return self._tone_cache[sample_rate]

    async def _ready_output(self) -> ToneOutput:
        """Create (off the loop) or resume the output. Serialized so concurrent starts share one device."""
        if self._output_lock is None:
            self._output_lock = asyncio.Lock()
        async with self._output_lock:
            if self._output is None:
                # Not stored on failure, so the next trigger retries
                self._output = await asyncio.to_thread(self.output_factory)
            output = self._output
            if output.suspended:
                await output.resume()
        return output

    async def _play(self, generation: int, sound_path: str) -> None:
        try:
            output = await self._ready_output()

            sound = None
            if sound_path and os.path.exists(sound_path):
                try:
                    sound = await asyncio.to_thread(output.load_sound, sound_path)
                except Exception as e:
                    self.logger.error(f"Could not load {sound_path}, using alert tone: {e}")

            if generation != self._generation:
                return

            def on_ended():
                self._on_ended(generation)

            if sound is not None:
                voice = output.play_sound(sound, on_ended)
            else:
                voice = output.play_samples(self._samples(output.sample_rate), on_ended)
            self._voice = voice
            self.logger.info("Alert tone started")
        except Exception as e:
            self.logger.warning(f"Audio unavailable, alert tone skipped: {e}")
            if generation == self._generation:
                self._voice = None
                self.state = ToneState.IDLE

    def _on_ended(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._voice = None
        self.state = ToneState.IDLE
        self.logger.debug("Alert tone finished")
        if self._output is not None:
            try:
                self._output.suspend()
            except Exception as e:
                self.logger.debug(f"Ignoring error releasing audio output: {e}")
