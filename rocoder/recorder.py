"""Post-processing for recorded audio: channel layout fixes and auto-cropping."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import timedelta

import numpy as np

from .audio import Audio, AudioSpec
from .power import audio_power

log = logging.getLogger(__name__)

NOISE_ANALYSIS_WINDOW_SIZE = timedelta(milliseconds=100)
NOISE_THRESHOLD_PERCENTILE = 30


def collect_samples(spec: AudioSpec, samples: Iterable[float]) -> Audio:
    """Split interleaved samples into channels."""
    interleaved = np.fromiter(samples, dtype=np.float32)
    channels = spec.channels
    return Audio([interleaved[c::channels].copy() for c in range(channels)], spec)


def chunked_audio_power(audio: Audio, bin_dur: timedelta | float) -> list[tuple[int, float]]:
    """Peak level of each bin of ``bin_dur``, loudest channel wins.

    Returns ``(bin start sample, decibels)`` pairs in order.
    """
    bin_length = audio.duration_to_sample(bin_dur)
    if bin_length <= 0:
        raise ValueError("analysis bin must span at least one sample")
    total = len(audio.data[0])
    return [
        (start, max(audio_power(channel[start:start + bin_length]) for channel in audio.data))
        for start in range(0, total, bin_length)
    ]


def auto_split_mono(audio: Audio) -> None:
    """If only one channel carries signal, copy it into the silent channels.

    This corrects for mono input given on a stereo device.
    """
    nonempty = [i for i, channel in enumerate(audio.data) if not np.all(channel == 0.0)]
    if len(nonempty) != 1:
        return
    mono_index = nonempty[0]
    log.info("Detected mono input from non-mono device. Automatically splitting.")
    mono = audio.data[mono_index]
    audio.data = [
        channel if i == mono_index else mono.copy() for i, channel in enumerate(audio.data)
    ]


def autocrop_audio(
    audio: Audio, analysis_window: timedelta | float, threshold_percentile: int
) -> None:
    """Crop the audio to where the signal rises above the noise floor."""
    amplitudes = chunked_audio_power(audio, analysis_window)
    points = determine_autocrop_points(amplitudes, threshold_percentile)
    if points is None:
        return
    start, end = points
    log.info(
        "autocropping audio to start %s later and end %s earlier",
        audio.sample_to_duration(start),
        audio.sample_to_duration(len(audio.data[0]) - end),
    )
    audio.data = [channel[start:end].copy() for channel in audio.data]


def determine_noise_threshold(
    amplitudes: list[tuple[int, float]], threshold_percentile: int
) -> float:
    """The amplitude at ``threshold_percentile`` of the sorted levels."""
    if not amplitudes:
        raise ValueError("no amplitudes to analyse")
    if not 0 <= threshold_percentile <= 100:
        raise ValueError(f"percentile {threshold_percentile} is outside 0..100")
    ordered = sorted(level for _, level in amplitudes)
    position = (
        np.float32(threshold_percentile) / np.float32(100.0) * np.float32(len(ordered))
    )
    index = math.floor(float(position))
    if index >= len(ordered):
        raise ValueError(f"percentile {threshold_percentile} selects no amplitude")
    return ordered[index]


def determine_autocrop_points(
    amplitudes: list[tuple[int, float]], threshold_percentile: int
) -> tuple[int, int] | None:
    """Start and end sample of the signal, or None if nothing exceeds the noise.

    Assumes ``amplitudes`` is sorted by sample position.
    """
    threshold = determine_noise_threshold(amplitudes, threshold_percentile)
    loud = [i for i, (_, level) in enumerate(amplitudes) if level > threshold]
    if not loud:
        return None
    start = amplitudes[loud[0]][0]
    end = amplitudes[min(loud[-1] + 1, len(amplitudes) - 1)][0]
    return start, end