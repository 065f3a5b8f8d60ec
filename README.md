# rocoder

A phase vocoder for stretching audio in time and shifting its pitch by
integer multiples. Each window of audio is resynthesised with its frequency
magnitudes kept and its phases randomised. This makes it well suited to
turning short sounds into long, slowly evolving textures.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command line

The `rocoder` command reads a `.wav` file, stretches every channel on a
background thread, and writes the result to a 32-bit float `.wav` file.

```
rocoder -i input.wav -o output.wav -f 10
```

Use `-i -` to read a `.wav` stream from standard input. Both `-i` and `-o`
are required.

| Option | Default | Meaning |
| --- | --- | --- |
| `-i`, `--input` | | Input `.wav` file, or `-` for standard input |
| `-o`, `--output` | | Output `.wav` path (32-bit float) |
| `-w`, `--window` | `16384` | Processing window size in samples; must be positive |
| `-b`, `--buffer` | `1` | Maximum amount of audio to process ahead of time |
| `-f`, `--factor` | `1` | Stretch factor; `5` slows 5x, `0.2` speeds up 5x; must be positive |
| `-p`, `--pitch_multiple` | `1` | Non-zero integer pitch multiplier between -128 and 127; negative values lower the pitch |
| `-a`, `--amplitude` | `1` | Output amplitude |
| `-s`, `--start` | | Start time within the input audio |
| `-d`, `--duration` | | Length of input audio to use, from the start time |
| `--rotate-channels` | off | Rotate the input channels (swaps left and right in stereo) |

Durations are written as `ss`, `mm:ss` or `hh:mm:ss`. Seconds may be
fractional (`1:02.5`); minutes and hours must be whole numbers.

WAVE input may be 8, 16, 24 or 32-bit integer PCM or 32-bit float.

## Library use

The building blocks are importable on their own:

```python
from rocoder.audio_files import WavReader, WavWriter
from rocoder.duration_parser import parse_duration

audio = WavReader.open("input.wav").read_all()
audio.clip_in_place(parse_duration("0:01.5"), parse_duration("3"))
audio.amplify_in_place(0.5)

with WavWriter.open("clip.wav", audio.spec) as writer:
    writer.write_into_channels(audio.data)
```

- `rocoder.audio` — `Audio` (per-channel float32 arrays with clipping,
  fades, amplification and channel rotation), `AudioSpec`, `AudioBus`, and
  `Channel`, a closable queue between threads.
- `rocoder.audio_files` — `WavReader` and `WavWriter`.
- `rocoder.windows` — `hanning`, `rectangular` and `inverse`.
- `rocoder.fft` — `ReFFT`, the windowed resynthesiser. It can take a
  `Channel` delivering frequency kernels: Python callables given the time in
  milliseconds and the complex spectrum, returning a spectrum of the same
  length. A kernel that raises is dropped and the previous one is used.
- `rocoder.stretcher` — `Stretcher`, the vocoder for one channel.
- `rocoder.stretcher_processor` and `rocoder.node` — run stretchers on a
  background thread and steer them with control messages.
- `rocoder.mixer` — `Mixer`, which sums audio buses into interleaved frames
  with amplitude keyframes for fades.
- `rocoder.recorder` — helpers for recorded audio: splitting mono signal
  across channels and cropping silence from the start and end.
- `rocoder.duration_parser`, `rocoder.power`, `rocoder.resampler`,
  `rocoder.crossfade`, `rocoder.math` — smaller helpers.

## What it does not do

- It does not play audio through a sound device, and it does not record from
  a microphone; the command always reads a `.wav` file and writes one.
  `Mixer` produces frames in memory but does not send them anywhere.
- It reads only WAVE files; MP3 input is not supported.
- The command line has no option for fading the output or for loading
  frequency kernels; both are available only from Python, through `Mixer`
  and `ReFFT`/`Stretcher`.
- The whole output is held in memory before it is written.