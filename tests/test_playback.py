from __future__ import annotations

import random
from unittest.mock import MagicMock, patch

import numpy as np

from models import EncodedAudioChunk, PlaybackSource
from pcm_codec import float_to_pcm16
from playback import PlaybackScheduler, SoundDeviceSink


class FakeSink:
    def __init__(self) -> None:
        self.current_time = 0.0
        self.playing: list[PlaybackSource] = []
        self.stopped: list[PlaybackSource] = []

    def play(self, source: PlaybackSource) -> None:
        self.playing.append(source)

    def stop(self, source: PlaybackSource) -> None:
        self.stopped.append(source)

    def finish(self, source: PlaybackSource) -> None:
        assert source.on_ended is not None
        source.on_ended(source)


def _samples(seconds: float, rate: int = 24000) -> np.ndarray:
    return np.zeros(int(seconds * rate), dtype=np.float32)


def test_sources_never_overlap_and_start_times_increase() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    rng = random.Random(7)

    sources = []
    for _ in range(50):
        sink.current_time += rng.choice([0.0, 0.01, 0.3])
        sources.append(scheduler.enqueue(_samples(rng.uniform(0.02, 0.2))))

    for earlier, later in zip(sources, sources[1:]):
        assert later.start_time >= earlier.start_time
        assert later.start_time >= earlier.end_time - 1e-9


def test_chunks_play_back_to_back_without_gaps() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)

    first = scheduler.enqueue(_samples(0.5))
    second = scheduler.enqueue(_samples(0.25))

    assert first.start_time == 0.0
    assert second.start_time == first.end_time
    assert scheduler.next_start_time == 0.75


def test_never_schedules_in_the_past() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    scheduler.enqueue(_samples(0.1))

    sink.current_time = 2.0
    source = scheduler.enqueue(_samples(0.1))

    assert source.start_time == 2.0


def test_interrupt_stops_everything_and_resets_clock() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    queued = [scheduler.enqueue(_samples(0.2)) for _ in range(5)]

    stopped = scheduler.interrupt()

    assert stopped == 5
    assert scheduler.active_sources == []
    assert scheduler.next_start_time == 0.0
    assert set(sink.stopped) == set(queued)
    assert all(source.stopped for source in queued)


def test_interrupt_with_nothing_queued() -> None:
    scheduler = PlaybackScheduler(FakeSink())
    assert scheduler.interrupt() == 0
    assert scheduler.next_start_time == 0.0


def test_finished_source_leaves_active_set() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    first = scheduler.enqueue(_samples(0.1))
    second = scheduler.enqueue(_samples(0.1))

    sink.finish(first)

    assert scheduler.active_sources == [second]


def test_enqueue_chunk_decodes_pcm16() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    pcm = float_to_pcm16(np.full(2400, 0.5, dtype=np.float32))

    source = scheduler.enqueue_chunk(EncodedAudioChunk(data=pcm, mime_type="audio/pcm;rate=24000"))

    assert source is not None
    assert source.duration == 0.1
    assert np.allclose(source.samples, 0.5, atol=1 / 32768)


def test_empty_chunk_is_not_scheduled() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)

    assert scheduler.enqueue_chunk(EncodedAudioChunk(data=b"")) is None
    assert sink.playing == []
    assert scheduler.next_start_time == 0.0


# ---------------------------------------------------------------
# SoundDeviceSink mixing
# ---------------------------------------------------------------

def test_sink_renders_sources_at_their_start_frame() -> None:
    sink = SoundDeviceSink(sample_rate=10)
    ended: list[PlaybackSource] = []
    source = PlaybackSource(
        samples=np.full(4, 0.5, dtype=np.float32),
        sample_rate=10,
        start_time=0.3,
        on_ended=ended.append,
    )
    sink.play(source)

    block = sink.render(5)
    assert block.tolist() == [0.0, 0.0, 0.0, 0.5, 0.5]
    assert ended == []
    assert sink.current_time == 0.5

    block = sink.render(5)
    assert block.tolist() == [0.5, 0.5, 0.0, 0.0, 0.0]
    assert ended == [source]


def test_sink_stop_silences_source() -> None:
    sink = SoundDeviceSink(sample_rate=10)
    source = PlaybackSource(samples=np.ones(10, dtype=np.float32), sample_rate=10, start_time=0.0)
    sink.play(source)
    sink.stop(source)

    assert sink.render(5).tolist() == [0.0] * 5


def test_scheduler_and_sink_together() -> None:
    sink = SoundDeviceSink(sample_rate=10)
    scheduler = PlaybackScheduler(sink, sample_rate=10)
    scheduler.enqueue(np.full(3, 0.25, dtype=np.float32))
    scheduler.enqueue(np.full(3, 0.5, dtype=np.float32))

    block = sink.render(8)

    assert np.allclose(block, [0.25, 0.25, 0.25, 0.5, 0.5, 0.5, 0.0, 0.0])
    assert scheduler.active_sources == []


@patch("playback.sd")
def test_sink_open_and_close(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.OutputStream.return_value = mock_stream

    sink = SoundDeviceSink()
    sink.open()
    sink.open()

    mock_sd.OutputStream.assert_called_once()
    assert mock_sd.OutputStream.call_args.kwargs["samplerate"] == 24000
    mock_stream.start.assert_called_once()

    sink.close()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()


def test_chunk_at_other_rate_is_resampled_to_sink_rate() -> None:
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    pcm = float_to_pcm16(np.full(1600, 0.25, dtype=np.float32))

    first = scheduler.enqueue_chunk(EncodedAudioChunk(data=pcm, mime_type="audio/pcm;rate=16000"))
    second = scheduler.enqueue(_samples(0.1))

    assert first.sample_rate == 24000
    assert first.samples.size == 2400
    assert first.duration == 0.1
    assert np.allclose(first.samples, 0.25, atol=1 / 32768)
    assert second.start_time == first.end_time


def test_resampled_chunk_renders_without_gap() -> None:
    sink = SoundDeviceSink(sample_rate=10)
    scheduler = PlaybackScheduler(sink, sample_rate=10)
    scheduler.enqueue(np.full(4, 0.5, dtype=np.float32), sample_rate=20)
    scheduler.enqueue(np.full(2, 0.25, dtype=np.float32))

    block = sink.render(6)

    assert np.allclose(block, [0.5, 0.5, 0.25, 0.25, 0.0, 0.0])
