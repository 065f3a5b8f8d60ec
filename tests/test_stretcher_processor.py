from datetime import timedelta

import numpy as np

from rocoder.audio import AudioSpec, Channel
from rocoder.node import Node, ProcessorState
from rocoder.stretcher import Stretcher
from rocoder.stretcher_processor import StretcherControlMessage, StretcherProcessor
from rocoder.windows import hanning

SPEC = AudioSpec(channels=2, sample_rate=8000)


def make_stretchers(channels, window_len=256):
    stretchers = []
    for samples in channels:
        source = Channel()
        source.send(np.asarray(samples, dtype=np.float32))
        source.close()
        stretchers.append(
            Stretcher(SPEC, source, 1.0, 1.0, 1, hanning(window_len), timedelta(seconds=1))
        )
    return stretchers


def test_create_builds_bus_from_stretchers():
    stretchers = make_stretchers([np.zeros(10), np.zeros(10)])
    _, bus = StretcherProcessor.create(stretchers, 10)
    assert bus.spec == SPEC
    assert len(bus.channels) == 2
    assert bus.expected_total_samples == 10


def test_shutdown_message_finishes():
    processor, _ = StretcherProcessor.create(make_stretchers([np.zeros(4)]), None)
    ctrl = Channel()
    ctrl.send(StretcherProcessor.shutdown_message())
    assert processor.handle_control_messages(ctrl) is ProcessorState.FINISHED
    assert StretcherProcessor.shutdown_message() is StretcherControlMessage.SHUTDOWN


def test_empty_control_channel_keeps_running():
    processor, _ = StretcherProcessor.create(make_stretchers([np.zeros(4)]), None)
    assert processor.handle_control_messages(Channel()) is ProcessorState.RUNNING


def test_closed_control_channel_finishes():
    processor, _ = StretcherProcessor.create(make_stretchers([np.zeros(4)]), None)
    ctrl = Channel()
    ctrl.close()
    assert processor.handle_control_messages(ctrl) is ProcessorState.FINISHED


def test_full_run_produces_whole_windows():
    silent = np.zeros(2000)
    tone = np.sin(np.arange(2000) / 9.0)
    processor, bus = StretcherProcessor.create(make_stretchers([silent, tone]), 2000)
    node = Node(processor)
    audio = bus.into_audio()
    node.join()
    assert node.is_finished()
    assert len(audio.data[0]) == len(audio.data[1])
    assert len(audio.data[0]) % 256 == 0
    assert len(audio.data[0]) >= 2000
    assert np.allclose(audio.data[0], 0.0)
    assert np.abs(audio.data[1]).max() > 0.0