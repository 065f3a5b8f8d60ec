"""Command line entry point: stretch a WAVE file into another."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from .audio import Audio, Channel
from .audio_files import WavReader, WavWriter
from .duration_parser import parse_duration
from .node import Node
from .stretcher import Stretcher
from .stretcher_processor import StretcherProcessor
from .windows import hanning

_LOG_FORMAT = "[%(levelname)s] %(message)s"


def setup_logging() -> None:
    """Send the package's log messages, debug and up, to standard output."""
    logger = logging.getLogger("rocoder")
    logger.setLevel(logging.DEBUG)
    if not any(getattr(handler, "_rocoder_cli", False) for handler in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._rocoder_cli = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return value


def _pitch_multiple(text: str) -> int:
    value = int(text)
    if value == 0 or not -128 <= value <= 127:
        raise argparse.ArgumentTypeError(
            f"must be a non-zero integer between -128 and 127, got {value}"
        )
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rocoder", description="A phase vocoder.")
    parser.add_argument(
        "-w", "--window", dest="window_len", type=_positive_int, default=16384,
        help="Processing window size",
    )
    parser.add_argument(
        "-b", "--buffer", dest="buffer_dur", type=parse_duration, default="1",
        help="The maximum amount of audio to process ahead of time.",
    )
    parser.add_argument(
        "-f", "--factor", type=float, default=1.0,
        help="Stretch factor; e.g. 5 to slow 5x and 0.2 to speed up 5x",
    )
    parser.add_argument(
        "-p", "--pitch_multiple", type=_pitch_multiple, default=1,
        help="A non-zero integer pitch multiplier.",
    )
    parser.add_argument(
        "-a", "--amplitude", type=float, default=1.0, help="Output amplitude"
    )
    parser.add_argument(
        "-i", "--input", required=True,
        help="A .wav file. Use '-' for stdin.",
    )
    parser.add_argument(
        "--rotate-channels", dest="rotate_channels", action="store_true",
        help="Rotate the input audio channels; with stereo this swaps left and right",
    )
    parser.add_argument(
        "-s", "--start", type=parse_duration, default=None,
        help="Start time in input audio (hh:mm:ss.ss)",
    )
    parser.add_argument(
        "-d", "--duration", type=parse_duration, default=None,
        help="Duration to use from input audio, starting at start time if given (hh:mm:ss.ss)",
    )
    parser.add_argument(
        "-o", "--output", required=True, help="Output .wav file path. Uses 32-bit float."
    )
    return parser


def load_audio(options: argparse.Namespace) -> Audio:
    """Read the input audio and apply clipping and channel rotation."""
    if options.input == "-":
        audio = WavReader(sys.stdin.buffer).read_all()
    else:
        audio = WavReader.open(options.input).read_all()
    if options.start is not None or options.duration is not None:
        audio.clip_in_place(options.start, options.duration)
    if options.rotate_channels:
        audio.rotate_channels()
    return audio


def main(argv: Sequence[str] | None = None) -> int:
    setup_logging()
    options = build_parser().parse_args(argv)
    audio = load_audio(options)
    total_samples = len(audio.data[0])
    window = hanning(options.window_len)

    stretchers = []
    for samples in audio.data:
        source = Channel()
        source.send(samples)
        source.close()
        stretchers.append(
            Stretcher(
                audio.spec,
                source,
                options.factor,
                options.amplitude,
                options.pitch_multiple,
                window,
                options.buffer_dur,
            )
        )
    expected_total_samples = int(total_samples * options.factor)
    processor, bus = StretcherProcessor.create(stretchers, expected_total_samples)
    node = Node(processor)

    # The whole output is held in memory before it is written.
    output = bus.into_audio()
    with WavWriter.open(options.output, output.spec) as writer:
        writer.write_into_channels(output.data)
    node.join()
    return 0