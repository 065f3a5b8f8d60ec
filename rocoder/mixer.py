"""Mixing several audio buses into one output stream with amplitude envelopes."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta

import numpy as np

from .audio import Audio, AudioBus, AudioSpec, ChannelClosed
from .math import sqrt_interp

log = logging.getLogger(__name__)

STATUS_REPORT_INTERVAL = 1.0
_KEYFRAME_VAL_TOLERANCE = 0.001


class LayerNotFound(LookupError):
    """No layer with the requested id is playing."""


def _seconds(value: timedelta | float) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


@dataclass(eq=False)
class Keyframe:
    """An amplitude value pinned to a sample position.

    Keyframes order by position only; they are equal when the positions
    match and the values agree to within 0.001.
    """

    sample_pos: int
    val: float

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Keyframe):
            return NotImplemented
        return (
            self.sample_pos == other.sample_pos
            and abs(self.val - other.val) < _KEYFRAME_VAL_TOLERANCE
        )

    def __lt__(self, other: Keyframe) -> bool:
        return self.sample_pos < other.sample_pos

    def __le__(self, other: Keyframe) -> bool:
        return self.sample_pos <= other.sample_pos

    def __gt__(self, other: Keyframe) -> bool:
        return self.sample_pos > other.sample_pos

    def __ge__(self, other: Keyframe) -> bool:
        return self.sample_pos >= other.sample_pos


class Layer:
    """One bus being played, with an amplitude envelope.

    ``amp_keyframes`` is kept in reverse order: the earliest keyframe is last.
    """

    def __init__(self, bus: AudioBus, shutdown_when_finished: bool = False) -> None:
        self.bus = bus
        self.shutdown_when_finished = shutdown_when_finished
        self.amp_keyframes: list[Keyframe] = []
        self.total_samples_played = 0
        self.buffer = Audio.from_spec(bus.spec)
        self.buffer_pos = 0
        self._last_status_report = time.monotonic()

    def load_next_chunk(self) -> None:
        """Take the next chunk from the bus and apply the envelope to it.

        Raises ChannelClosed once the bus has no more audio.
        """
        self.prune_keyframes()
        self._log_status()
        chunk = self.bus.collect_chunk()
        length = len(chunk.data[0]) if chunk.data else 0
        amps = self._amplitudes(length)
        chunk.data = [channel * amps for channel in chunk.data]
        self.total_samples_played += length
        self.buffer = chunk
        self.buffer_pos = 0

    def _log_status(self) -> None:
        now = time.monotonic()
        if now - self._last_status_report < STATUS_REPORT_INTERVAL:
            return
        rate = self.bus.spec.sample_rate
        played = self.total_samples_played / rate
        expected = self.bus.expected_total_samples
        if expected is not None:
            total = expected / rate
            percent = int(played / total * 100.0) if total else 0
            log.info("Played %ds of %ds ~ %d%%", int(played), int(total), percent)
        else:
            log.info("Played %ds", int(played))
        self._last_status_report = now

    def prune_keyframes(self) -> None:
        """Drop keyframes whose segment has been fully played."""
        keyframes = self.amp_keyframes
        while len(keyframes) > 1 and keyframes[-2].sample_pos < self.total_samples_played:
            keyframes.pop()

    def sort_keyframes(self) -> None:
        self.amp_keyframes.sort()
        self.amp_keyframes.reverse()

    def clear_keyframes_after(self, sample_pos: int) -> None:
        self.amp_keyframes = [k for k in self.amp_keyframes if k.sample_pos <= sample_pos]

    def current_amp(self) -> float:
        """The envelope's amplitude at the current playback position."""
        return self._amp_at(self.total_samples_played)

    def _amp_at(self, position: int) -> float:
        keyframes = self.amp_keyframes
        if not keyframes:
            return 1.0
        if len(keyframes) == 1:
            return keyframes[0].val
        prev, nxt = keyframes[-1], keyframes[-2]
        span = nxt.sample_pos - prev.sample_pos
        if span == 0:
            return nxt.val if position >= nxt.sample_pos else prev.val
        return sqrt_interp(prev.val, nxt.val, (position - prev.sample_pos) / span)

    def _amplitudes(self, count: int) -> np.ndarray:
        if not self.amp_keyframes:
            return np.ones(count, dtype=np.float32)
        if len(self.amp_keyframes) == 1:
            return np.full(count, self.amp_keyframes[0].val, dtype=np.float32)
        start = self.total_samples_played
        return np.fromiter(
            (self._amp_at(position) for position in range(start, start + count)),
            dtype=np.float32,
            count=count,
        )

    def dur_to_sample(self, dur: timedelta | float) -> int:
        return int(_seconds(dur) * self.bus.spec.sample_rate)

    def fade_from_now(self, to: float, dur: timedelta | float) -> None:
        """Fade from the current amplitude to ``to`` over ``dur``.

        Assumes no keyframes exist inside the faded window.
        """
        current = self.current_amp()
        self.amp_keyframes.append(Keyframe(self.total_samples_played, current))
        self.amp_keyframes.append(
            Keyframe(self.total_samples_played + self.dur_to_sample(dur), to)
        )
        self.sort_keyframes()

    def fade(
        self,
        start: timedelta | float,
        start_val: float,
        dur: timedelta | float,
        end_val: float,
    ) -> None:
        """Fade from ``start_val`` at ``start`` to ``end_val`` ``dur`` later."""
        self.amp_keyframes.append(Keyframe(self.dur_to_sample(start), start_val))
        self.amp_keyframes.append(
            Keyframe(self.dur_to_sample(_seconds(start) + _seconds(dur)), end_val)
        )
        self.sort_keyframes()

    def fade_in_out(
        self,
        fade_in_dur: timedelta | float | None,
        fade_out_dur: timedelta | float | None,
    ) -> None:
        """Fade in at the start and out at the end.

        Only fades out if ``fade_out_dur`` is given and the bus knows its length.
        """
        if fade_in_dur is not None:
            self.fade(0.0, 0.0, fade_in_dur, 1.0)
        expected = self.bus.expected_total_samples
        if fade_out_dur is not None and expected is not None:
            total = expected / self.bus.spec.sample_rate
            fade_start = total - _seconds(fade_out_dur)
            if fade_start < 0:
                raise ValueError("fade out is longer than the layer")
            self.fade(fade_start, 1.0, fade_out_dur, 0.0)


class Mixer:
    """Sums any number of layers into frames of output audio."""

    def __init__(self, spec: AudioSpec) -> None:
        self.spec = spec
        self.finished_flag = threading.Event()
        self._layers: dict[int, Layer] = {}

    def fill_buffer(self, frames: int) -> np.ndarray:
        """Mix the next ``frames`` frames; returns a ``(frames, channels)`` array.

        Layers whose bus has closed are removed; if such a layer asked for it,
        ``finished_flag`` is set.
        """
        if frames < 0:
            raise ValueError("frame count must not be negative")
        out = np.zeros((frames, self.spec.channels), dtype=np.float32)
        closed: list[int] = []
        for layer_id, layer in self._layers.items():
            written = 0
            while written < frames:
                available = len(layer.buffer.data[0]) - layer.buffer_pos
                if available <= 0:
                    try:
                        layer.load_next_chunk()
                    except ChannelClosed:
                        if layer.shutdown_when_finished:
                            log.info("Layer finished and requested mixer shutdown; setting flag.")
                            self.finished_flag.set()
                        closed.append(layer_id)
                        break
                    continue
                count = min(frames - written, available)
                pos = layer.buffer_pos
                for index, samples in enumerate(layer.buffer.data[: self.spec.channels]):
                    out[written:written + count, index] += samples[pos:pos + count]
                layer.buffer_pos += count
                written += count
        for layer_id in closed:
            del self._layers[layer_id]
        return out

    def insert_layer(
        self, layer_id: int, bus: AudioBus, shutdown_when_finished: bool = False
    ) -> None:
        self._layers[layer_id] = Layer(bus, shutdown_when_finished)

    def fade_out_all_layers(self, dur: timedelta | float) -> None:
        for layer in self._layers.values():
            layer.fade_from_now(0.0, dur)
            layer.clear_keyframes_after(layer.total_samples_played + layer.dur_to_sample(dur))

    def _layer(self, layer_id: int) -> Layer:
        try:
            return self._layers[layer_id]
        except KeyError:
            raise LayerNotFound(f"Layer not found: {layer_id}") from None

    def fade_from_now(self, layer_id: int, to: float, dur: timedelta | float) -> None:
        self._layer(layer_id).fade_from_now(to, dur)

    def fade(
        self,
        layer_id: int,
        start: timedelta | float,
        start_val: float,
        dur: timedelta | float,
        end_val: float,
    ) -> None:
        self._layer(layer_id).fade(start, start_val, dur, end_val)

    def fade_in_out(
        self,
        layer_id: int,
        fade_in_dur: timedelta | float | None,
        fade_out_dur: timedelta | float | None,
    ) -> None:
        """Only fades out if ``fade_out_dur`` is given and the layer knows its length."""
        self._layer(layer_id).fade_in_out(fade_in_dur, fade_out_dur)