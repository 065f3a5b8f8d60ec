"""Multi-channel audio buffers and the channels that carry them between threads."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import numpy as np

from .math import sqrt_interp

log = logging.getLogger(__name__)

INTO_AUDIO_DRAIN_TIMEOUT = 0.005


class ChannelClosed(Exception):
    """The channel is closed and holds no more items."""


class ChannelEmpty(Exception):
    """No item was available in time."""


class Channel:
    """A FIFO queue between threads that can be closed by its producer.

    ``maxsize`` of None makes the channel unbounded; otherwise ``send``
    blocks while the channel is full.
    """

    def __init__(self, maxsize: int | None = None) -> None:
        self._items: deque[Any] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._maxsize = None if maxsize is None else max(1, maxsize)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def send(self, item: Any) -> None:
        """Queue ``item``; raises ChannelClosed if the channel was closed."""
        with self._cond:
            while True:
                if self._closed:
                    raise ChannelClosed("send on a closed channel")
                if self._maxsize is None or len(self._items) < self._maxsize:
                    break
                self._cond.wait()
            self._items.append(item)
            self._cond.notify_all()

    def recv(self, timeout: float | None = None) -> Any:
        """Take the next item, waiting up to ``timeout`` seconds (forever if None).

        Raises ChannelEmpty on timeout and ChannelClosed once the channel is
        closed and drained.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._items:
                if self._closed:
                    raise ChannelClosed("channel closed")
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ChannelEmpty("no item received before timeout")
                self._cond.wait(remaining)
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def try_recv(self) -> Any:
        """Take the next item without waiting."""
        with self._cond:
            if self._items:
                item = self._items.popleft()
                self._cond.notify_all()
                return item
            if self._closed:
                raise ChannelClosed("channel closed")
            raise ChannelEmpty("channel empty")

    def close(self) -> None:
        """Close the channel; queued items can still be received."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()


def from_i8(n: int) -> float:
    return n / 127


def from_i16(n: int) -> float:
    return n / 32767


def from_i24(n: int) -> float:
    return n / 8388608.0


def from_i32(n: int) -> float:
    return n / 2147483647


def _seconds(value: timedelta | float) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclass(frozen=True)
class AudioSpec:
    """Channel count and sample rate of a stream."""

    channels: int
    sample_rate: int


@dataclass(eq=False)
class Audio:
    """Deinterleaved audio: one float32 array per channel."""

    data: list[np.ndarray]
    spec: AudioSpec

    def __post_init__(self) -> None:
        self.data = [np.asarray(channel, dtype=np.float32) for channel in self.data]

    @classmethod
    def from_spec(cls, spec: AudioSpec) -> Audio:
        return cls([np.zeros(0, dtype=np.float32) for _ in range(spec.channels)], spec)

    def duration(self) -> timedelta:
        return timedelta(seconds=len(self.data[0]) / self.spec.sample_rate)

    def clip_in_place(
        self,
        start_offset: timedelta | float | None = None,
        duration: timedelta | float | None = None,
    ) -> None:
        """Keep only the part starting at ``start_offset`` lasting ``duration``."""
        start = 0 if start_offset is None else self.duration_to_sample(start_offset)
        length = len(self.data[0])
        end = length if duration is None else start + self.duration_to_sample(duration)
        if start > end or end > length:
            raise ValueError(
                f"clip range {start}..{end} is outside audio of {length} samples"
            )
        self.data = [channel[start:end].copy() for channel in self.data]

    def amplify_in_place(self, factor: float) -> None:
        for channel in self.data:
            channel *= factor

    def rotate_channels(self) -> None:
        """Move the last channel to the front; swaps left and right in stereo."""
        if self.data:
            self.data = [self.data[-1], *self.data[:-1]]

    def fade_in(self, start: timedelta | float, dur: timedelta | float) -> None:
        self.fade_in_at_sample(self.duration_to_sample(start), self.duration_to_sample(dur))

    def fade_out(self, start: timedelta | float, dur: timedelta | float) -> None:
        self.fade_out_at_sample(self.duration_to_sample(start), self.duration_to_sample(dur))

    def fade_in_at_sample(self, start: int, dur: int) -> None:
        """Silence everything before ``start`` and ramp up over ``dur`` samples."""
        if start + dur > len(self.data[0]):
            log.warning("Fade in parameters out of bounds, ignoring.")
            return
        envelope = np.array([sqrt_interp(0.0, 1.0, p / dur) for p in range(dur)], dtype=np.float32)
        for channel in self.data:
            channel[:start] = 0.0
            channel[start:start + dur] *= envelope

    def fade_out_at_sample(self, start: int, dur: int) -> None:
        """Ramp down over ``dur`` samples from ``start`` and silence what follows."""
        if start + dur > len(self.data[0]):
            log.warning("Fade out parameters out of bounds, ignoring.")
            return
        envelope = np.array([sqrt_interp(1.0, 0.0, p / dur) for p in range(dur)], dtype=np.float32)
        for channel in self.data:
            channel[start + dur:] = 0.0
            channel[start:start + dur] *= envelope

    def duration_to_sample(self, duration: timedelta | float) -> int:
        return int(_seconds(duration) * self.spec.sample_rate)

    def sample_to_duration(self, sample: int) -> timedelta:
        return timedelta(seconds=sample / self.spec.sample_rate)


@dataclass(eq=False)
class AudioBus:
    """A set of per-channel channels carrying chunks of audio."""

    spec: AudioSpec
    channels: list[Channel]
    expected_total_samples: int | None = None

    def into_audio(self) -> Audio:
        """Drain every channel until all are closed and join the chunks."""
        if len(self.channels) != self.spec.channels:
            raise ValueError("bus channel count does not match its spec")
        collected: list[list[np.ndarray]] = [[] for _ in self.channels]
        while True:
            disconnected = 0
            for chunks, channel in zip(collected, self.channels):
                try:
                    chunks.append(
                        np.asarray(channel.recv(INTO_AUDIO_DRAIN_TIMEOUT), dtype=np.float32)
                    )
                except ChannelEmpty:
                    pass
                except ChannelClosed:
                    disconnected += 1
            if disconnected == self.spec.channels:
                break
        data = [
            np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.float32)
            for chunks in collected
        ]
        return Audio(data, self.spec)

    @classmethod
    def from_audio(cls, audio: Audio) -> AudioBus:
        channels = []
        for samples in audio.data:
            channel = Channel()
            channel.send(samples)
            channel.close()
            channels.append(channel)
        return cls(audio.spec, channels, len(audio.data[0]))

    @classmethod
    def from_spec(
        cls, spec: AudioSpec, expected_total_samples: int | None = None
    ) -> tuple[AudioBus, list[Channel]]:
        """Create an empty bus and return it with the channels to feed it."""
        channels = [Channel() for _ in range(spec.channels)]
        return cls(spec, channels, expected_total_samples), list(channels)

    def collect_chunk(self) -> Audio:
        """Block for one chunk from every channel; raises ChannelClosed at the end."""
        return Audio([channel.recv() for channel in self.channels], self.spec)