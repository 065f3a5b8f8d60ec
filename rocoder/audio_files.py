"""Reading and writing RIFF/WAVE audio files."""

from __future__ import annotations

import io
import struct
from collections.abc import Callable, Iterator, Sequence
from typing import BinaryIO

import numpy as np

from .audio import Audio, AudioSpec

_FORMAT_PCM = 1
_FORMAT_FLOAT = 3
_FORMAT_EXTENSIBLE = 0xFFFE

_HEADER_LEN = 44
_MAX_CHUNK_SIZE = 0xFFFFFFFF
_READ_BLOCK_SAMPLES = 65536


class WavFormatError(ValueError):
    """The data is not a WAVE file this package can handle."""


def _decode_float32(raw: bytes) -> np.ndarray:
    return np.frombuffer(raw, dtype="<f4").astype(np.float32)


def _decode_int8(raw: bytes) -> np.ndarray:
    # 8-bit WAVE samples are stored unsigned with an offset of 128.
    values = np.frombuffer(raw, dtype=np.uint8).astype(np.int16) - 128
    return (values / 127).astype(np.float32)


def _decode_int16(raw: bytes) -> np.ndarray:
    return (np.frombuffer(raw, dtype="<i2") / 32767).astype(np.float32)


def _decode_int24(raw: bytes) -> np.ndarray:
    triples = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
    values = triples[:, 0] | (triples[:, 1] << 8) | (triples[:, 2] << 16)
    values = np.where(values >= 1 << 23, values - (1 << 24), values)
    return (values / 8388608.0).astype(np.float32)


def _decode_int32(raw: bytes) -> np.ndarray:
    return (np.frombuffer(raw, dtype="<i4") / 2147483647).astype(np.float32)


_DECODERS: dict[tuple[str, int], Callable[[bytes], np.ndarray]] = {
    ("float", 32): _decode_float32,
    ("int", 8): _decode_int8,
    ("int", 16): _decode_int16,
    ("int", 24): _decode_int24,
    ("int", 32): _decode_int32,
}


class WavReader:
    """Decode a WAVE stream into float samples in the range -1..1.

    The header is read immediately; sample data is read on demand.
    Iterating yields interleaved samples.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        (
            self.spec,
            self._bytes_per_sample,
            self._decode,
            data_size,
        ) = self._read_header()
        self._num_samples = data_size // self._bytes_per_sample
        if self._num_samples % self.spec.channels != 0:
            raise WavFormatError(
                f"num_samples {self._num_samples} is not a multiple of "
                f"channel count {self.spec.channels}"
            )
        self._remaining = self._num_samples

    @classmethod
    def open(cls, path: str) -> WavReader:
        with open(path, "rb") as handle:
            contents = handle.read()
        return cls(io.BytesIO(contents))

    def duration(self) -> int:
        """Length in sample frames, regardless of the number of channels."""
        return self._num_samples // self.spec.channels

    def num_samples(self) -> int:
        """Total number of samples: ``duration() * channels``."""
        return self._num_samples

    def read_all(self) -> Audio:
        """Read every remaining sample and split it into channels."""
        blocks = []
        while True:
            block = self._next_block(_READ_BLOCK_SAMPLES)
            if block.size == 0:
                break
            blocks.append(block)
        interleaved = np.concatenate(blocks) if blocks else np.zeros(0, dtype=np.float32)
        channels = self.spec.channels
        return Audio([interleaved[c::channels].copy() for c in range(channels)], self.spec)

    def __iter__(self) -> Iterator[float]:
        while True:
            block = self._next_block(_READ_BLOCK_SAMPLES)
            if block.size == 0:
                return
            yield from block.tolist()

    def _read_exact(self, n: int) -> bytes:
        data = self._stream.read(n)
        if data is None or len(data) < n:
            raise WavFormatError("unexpected end of WAVE data")
        return data

    def _next_block(self, max_samples: int) -> np.ndarray:
        count = min(self._remaining, max_samples)
        if count == 0:
            return np.zeros(0, dtype=np.float32)
        raw = self._read_exact(count * self._bytes_per_sample)
        self._remaining -= count
        return self._decode(raw)

    def _read_header(self):
        riff = self._stream.read(12)
        if riff is None or len(riff) < 12 or riff[:4] != b"RIFF" or riff[8:12] != b"WAVE":
            raise WavFormatError("not a RIFF/WAVE file")
        fmt = None
        while True:
            chunk_header = self._stream.read(8)
            if chunk_header is None or len(chunk_header) < 8:
                raise WavFormatError("no data chunk found")
            chunk_id = chunk_header[:4]
            (size,) = struct.unpack("<I", chunk_header[4:])
            if chunk_id == b"data":
                if fmt is None:
                    raise WavFormatError("data chunk found before fmt chunk")
                return (*fmt, size)
            body = self._read_exact(size + (size & 1))
            if chunk_id == b"fmt ":
                fmt = self._parse_fmt(body[:size])

    @staticmethod
    def _parse_fmt(body: bytes):
        if len(body) < 16:
            raise WavFormatError("fmt chunk too short")
        tag, channels, sample_rate, _byte_rate, block_align, bits = struct.unpack(
            "<HHIIHH", body[:16]
        )
        if tag == _FORMAT_EXTENSIBLE:
            if len(body) < 40:
                raise WavFormatError("extensible fmt chunk too short")
            (valid_bits,) = struct.unpack("<H", body[18:20])
            (tag,) = struct.unpack("<H", body[24:26])
            if valid_bits != bits:
                raise WavFormatError(
                    f"unsupported WAVE format: {valid_bits} valid bits in {bits}-bit samples"
                )
        if channels == 0:
            raise WavFormatError("WAVE file declares zero channels")
        if tag == _FORMAT_PCM:
            sample_format = "int"
        elif tag == _FORMAT_FLOAT:
            sample_format = "float"
        else:
            raise WavFormatError(f"unsupported WAVE format tag {tag:#x}")
        decoder = _DECODERS.get((sample_format, bits))
        bytes_per_sample = (bits + 7) // 8
        if decoder is None or block_align != channels * bytes_per_sample:
            raise WavFormatError(
                f"Cannot read unsupported .wav format: ({sample_format}, {bits})"
            )
        spec = AudioSpec(channels=channels, sample_rate=sample_rate)
        return spec, bytes_per_sample, decoder


class WavWriter:
    """Encode samples as a 32-bit float WAVE stream.

    The stream must be seekable so that sizes can be filled in by
    ``finalize``. Samples are written interleaved.
    """

    def __init__(self, stream: BinaryIO, spec: AudioSpec) -> None:
        if spec.channels < 1:
            raise ValueError("a WAVE file needs at least one channel")
        self.spec = spec
        self._stream = stream
        self._owns_stream = False
        self._start = stream.tell()
        self._samples_written = 0
        self._finalized = False
        block_align = spec.channels * 4
        stream.write(
            b"RIFF"
            + struct.pack("<I", 0)
            + b"WAVE"
            + b"fmt "
            + struct.pack("<I", 16)
            + struct.pack(
                "<HHIIHH",
                _FORMAT_FLOAT,
                spec.channels,
                spec.sample_rate,
                spec.sample_rate * block_align,
                block_align,
                32,
            )
            + b"data"
            + struct.pack("<I", 0)
        )

    @classmethod
    def open(cls, path: str, spec: AudioSpec) -> WavWriter:
        handle = open(path, "wb")
        try:
            writer = cls(handle, spec)
        except BaseException:
            handle.close()
            raise
        writer._owns_stream = True
        return writer

    def write(self, sample: float) -> None:
        self._write_bytes(struct.pack("<f", sample), 1)

    def write_into_channels(self, channels: Sequence[Sequence[float] | np.ndarray]) -> None:
        """Interleave equally long channels and write them."""
        if not channels:
            raise ValueError("at least one channel is required")
        arrays = [np.asarray(channel, dtype="<f4") for channel in channels]
        if len({array.shape[0] for array in arrays}) != 1:
            raise ValueError("all channels must have the same length")
        interleaved = np.stack(arrays, axis=1).reshape(-1)
        self._write_bytes(interleaved.tobytes(), interleaved.size)

    def finalize(self) -> None:
        """Fill in the chunk sizes and close a file opened by ``open``."""
        if self._finalized:
            return
        if self._samples_written % self.spec.channels != 0:
            raise WavFormatError("the last frame is incomplete")
        data_bytes = self._samples_written * 4
        end = self._stream.tell()
        self._stream.seek(self._start + 4)
        self._stream.write(struct.pack("<I", _HEADER_LEN - 8 + data_bytes))
        self._stream.seek(self._start + _HEADER_LEN - 4)
        self._stream.write(struct.pack("<I", data_bytes))
        self._stream.seek(end)
        self._stream.flush()
        self._finalized = True
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> WavWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.finalize()
        elif self._owns_stream and not self._finalized:
            self._finalized = True
            self._stream.close()

    def _write_bytes(self, raw: bytes, count: int) -> None:
        if self._finalized:
            raise ValueError("write to a finalized WAVE writer")
        new_total = (self._samples_written + count) * 4
        if _HEADER_LEN - 8 + new_total > _MAX_CHUNK_SIZE:
            raise WavFormatError("WAVE data exceeds the 4 GiB limit")
        self._stream.write(raw)
        self._samples_written += count