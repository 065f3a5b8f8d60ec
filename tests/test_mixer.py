from datetime import timedelta

import numpy as np
import pytest

from rocoder.audio import Audio, AudioBus, AudioSpec, Channel, ChannelClosed
from rocoder.mixer import Keyframe, Layer, LayerNotFound, Mixer


def basic_layer():
    spec = AudioSpec(channels=2, sample_rate=44100)
    bus = AudioBus(spec, [Channel()], None)
    return Layer(bus, False)


def basic_keyframe(sample_pos):
    return Keyframe(sample_pos, 1.0)


def bus_of(values, sample_rate=4):
    data = [np.asarray(channel, dtype=np.float32) for channel in values]
    spec = AudioSpec(channels=len(data), sample_rate=sample_rate)
    return AudioBus.from_audio(Audio(data, spec))


def test_prune_keyframes():
    layer = basic_layer()
    assert layer.amp_keyframes == []
    layer.amp_keyframes = [basic_keyframe(4000), basic_keyframe(1500), basic_keyframe(1000)]

    layer.total_samples_played = 900
    layer.prune_keyframes()
    assert len(layer.amp_keyframes) == 3
    layer.total_samples_played = 1200
    layer.prune_keyframes()
    assert len(layer.amp_keyframes) == 3

    layer.total_samples_played = 2000
    layer.prune_keyframes()
    assert len(layer.amp_keyframes) == 2
    assert layer.amp_keyframes[0].sample_pos == 4000
    assert layer.amp_keyframes[1].sample_pos == 1500

    layer.total_samples_played = 5000
    layer.prune_keyframes()
    assert len(layer.amp_keyframes) == 1
    assert layer.amp_keyframes[0].sample_pos == 4000


def test_clear_keyframes_after_with_no_keyframes():
    layer = basic_layer()
    layer.clear_keyframes_after(0)
    assert layer.amp_keyframes == []


def test_clear_keyframes_after_with_keyframes_before_and_after():
    layer = basic_layer()
    layer.fade(timedelta(seconds=0), 0.5, timedelta(seconds=2), 1.0)
    layer.fade(timedelta(seconds=5), 0.3, timedelta(seconds=6), 0.9)
    assert len(layer.amp_keyframes) == 4
    layer.clear_keyframes_after(layer.dur_to_sample(timedelta(seconds=4)))
    assert len(layer.amp_keyframes) == 2
    assert layer.amp_keyframes[0].val == pytest.approx(1.0, abs=1e-4)
    assert layer.amp_keyframes[1].val == pytest.approx(0.5, abs=1e-4)


def test_keyframe_equality_and_ordering():
    assert Keyframe(10, 0.5) == Keyframe(10, 0.5005)
    assert not Keyframe(10, 0.5) == Keyframe(10, 0.6)
    assert not Keyframe(10, 0.5) == Keyframe(11, 0.5)
    assert Keyframe(3, 9.0) < Keyframe(4, 0.0)
    assert sorted([Keyframe(7, 0.0), Keyframe(2, 0.0), Keyframe(5, 0.0)])[0].sample_pos == 2


def test_current_amp_without_keyframes_is_unity():
    assert basic_layer().current_amp() == 1.0


def test_current_amp_with_single_keyframe():
    layer = basic_layer()
    layer.amp_keyframes = [Keyframe(100, 0.25)]
    assert layer.current_amp() == 0.25


def test_current_amp_interpolates_between_keyframes():
    layer = Layer(bus_of([[1.0]]), False)
    layer.fade(timedelta(seconds=0), 0.0, timedelta(seconds=1), 1.0)
    assert [k.sample_pos for k in layer.amp_keyframes] == [4, 0]
    assert layer.current_amp() == pytest.approx(0.0, abs=1e-4)
    layer.total_samples_played = 2
    assert layer.current_amp() == pytest.approx(0.70710677, abs=1e-4)


def test_load_next_chunk_applies_envelope():
    layer = Layer(bus_of([[1.0] * 4, [1.0] * 4]), False)
    layer.fade(0.0, 0.0, 1.0, 1.0)
    layer.load_next_chunk()
    expected = [0.0, 0.5, 0.70710677, 0.8660254]
    np.testing.assert_allclose(layer.buffer.data[0], expected, atol=1e-4)
    np.testing.assert_allclose(layer.buffer.data[1], expected, atol=1e-4)
    assert layer.total_samples_played == 4
    assert layer.buffer_pos == 0
    with pytest.raises(ChannelClosed):
        layer.load_next_chunk()


def test_fade_in_out_adds_keyframes_in_reverse_order():
    spec = AudioSpec(channels=1, sample_rate=4)
    layer = Layer(AudioBus(spec, [Channel()], 8), False)
    layer.fade_in_out(timedelta(seconds=1), timedelta(seconds=1))
    assert [k.sample_pos for k in layer.amp_keyframes] == [8, 4, 4, 0]
    assert [k.val for k in layer.amp_keyframes] == [0.0, 1.0, 1.0, 0.0]


def test_fade_in_out_without_expected_length_only_fades_in():
    spec = AudioSpec(channels=1, sample_rate=4)
    layer = Layer(AudioBus(spec, [Channel()], None), False)
    layer.fade_in_out(timedelta(seconds=1), timedelta(seconds=1))
    assert [k.sample_pos for k in layer.amp_keyframes] == [4, 0]


def test_fade_out_longer_than_layer_is_rejected():
    spec = AudioSpec(channels=1, sample_rate=4)
    layer = Layer(AudioBus(spec, [Channel()], 4), False)
    with pytest.raises(ValueError):
        layer.fade_in_out(None, timedelta(seconds=2))


def test_fill_buffer_plays_layer_then_sets_finished_flag():
    mixer = Mixer(AudioSpec(channels=2, sample_rate=4))
    mixer.insert_layer(0, bus_of([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]), True)
    out = mixer.fill_buffer(5)
    np.testing.assert_allclose(
        out, [[1.0, 4.0], [2.0, 5.0], [3.0, 6.0], [0.0, 0.0], [0.0, 0.0]]
    )
    assert mixer.finished_flag.is_set()
    with pytest.raises(LayerNotFound):
        mixer.fade_from_now(0, 0.0, 1.0)


def test_fill_buffer_layer_without_shutdown_does_not_set_flag():
    mixer = Mixer(AudioSpec(channels=1, sample_rate=4))
    mixer.insert_layer(3, bus_of([[0.5]]), False)
    out = mixer.fill_buffer(2)
    np.testing.assert_allclose(out, [[0.5], [0.0]])
    assert not mixer.finished_flag.is_set()


def test_fill_buffer_sums_layers_across_calls():
    mixer = Mixer(AudioSpec(channels=1, sample_rate=4))
    mixer.insert_layer(1, bus_of([[1.0, 1.0, 1.0]]), False)
    mixer.insert_layer(2, bus_of([[2.0, 2.0, 2.0]]), False)
    np.testing.assert_allclose(mixer.fill_buffer(2), [[3.0], [3.0]])
    np.testing.assert_allclose(mixer.fill_buffer(2), [[3.0], [0.0]])


def test_fade_out_all_layers():
    mixer = Mixer(AudioSpec(channels=1, sample_rate=4))
    mixer.insert_layer(0, bus_of([[1.0] * 8]), False)
    mixer.fade_out_all_layers(timedelta(seconds=1))
    out = mixer.fill_buffer(8)
    np.testing.assert_allclose(
        out[:, 0], [1.0, 0.8660254, 0.70710677, 0.5, 0.0, 0.0, 0.0, 0.0], atol=1e-4
    )


def test_mixer_fade_applies_to_layer():
    mixer = Mixer(AudioSpec(channels=1, sample_rate=4))
    mixer.insert_layer(0, bus_of([[1.0] * 4]), False)
    mixer.fade(0, 0.0, 0.0, 1.0, 1.0)
    out = mixer.fill_buffer(4)
    np.testing.assert_allclose(out[:, 0], [0.0, 0.5, 0.70710677, 0.8660254], atol=1e-4)


def test_missing_layer_raises():
    mixer = Mixer(AudioSpec(channels=1, sample_rate=4))
    with pytest.raises(LayerNotFound):
        mixer.fade(9, 0.0, 0.0, 1.0, 1.0)
    with pytest.raises(LayerNotFound):
        mixer.fade_in_out(9, 1.0, None)


def test_negative_frame_count_rejected():
    mixer = Mixer(AudioSpec(channels=1, sample_rate=4))
    with pytest.raises(ValueError):
        mixer.fill_buffer(-1)