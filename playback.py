"""Gapless, interruptible scheduling of model audio."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional, Set

import numpy as np

from interfaces import AudioSink
from models import EncodedAudioChunk, PlaybackSource
from pcm_codec import OUTPUT_SAMPLE_RATE, decode_chunk, resample

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class PlaybackScheduler:
    """Queue decoded chunks back to back on the sink's clock.

    ``next_start_time`` only moves forward while chunks arrive and is reset to
    zero by :meth:`interrupt`. The read and the write of the cursor happen in
    one locked section per chunk.
    """

    def __init__(self, sink: AudioSink, sample_rate: int = OUTPUT_SAMPLE_RATE) -> None:
        self._sink = sink
        self.sample_rate = sample_rate
        self._lock = threading.RLock()
        self._next_start_time = 0.0
        self._sources: Set[PlaybackSource] = set()

    @property
    def next_start_time(self) -> float:
        return self._next_start_time

    @property
    def active_sources(self) -> List[PlaybackSource]:
        with self._lock:
            return sorted(self._sources, key=lambda s: s.start_time)

    def enqueue_chunk(self, chunk: EncodedAudioChunk) -> Optional[PlaybackSource]:
        samples = decode_chunk(chunk)
        return self.enqueue(samples, chunk.sample_rate)

    def enqueue(self, samples: np.ndarray, sample_rate: Optional[int] = None) -> Optional[PlaybackSource]:
        """Schedule ``samples`` right after the previous source.

        Samples at another rate are resampled to ``self.sample_rate``, the
        rate the sink plays every source at.
        """
        if samples.size == 0:
            return None
        if sample_rate and sample_rate != self.sample_rate:
            samples = resample(samples, sample_rate, self.sample_rate)
        with self._lock:
            start = max(self._next_start_time, self._sink.current_time)
            source = PlaybackSource(
                samples=samples,
                sample_rate=self.sample_rate,
                start_time=start,
                on_ended=self._on_source_ended,
            )
            self._next_start_time = start + source.duration
            self._sources.add(source)
            self._sink.play(source)
        return source

    def interrupt(self) -> int:
        with self._lock:
            sources = list(self._sources)
            self._sources.clear()
            self._next_start_time = 0.0
            for source in sources:
                source.stopped = True
                self._sink.stop(source)
        if sources:
            logger.info("Playback interrupted, %d buffer(s) dropped", len(sources))
        return len(sources)

    def _on_source_ended(self, source: PlaybackSource) -> None:
        with self._lock:
            self._sources.discard(source)


class SoundDeviceSink:
    """Mix scheduled sources into a ``sounddevice.OutputStream``.

    The output clock is the number of frames rendered so far divided by the
    sample rate, so it starts at zero when the stream is opened.
    """

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE, blocksize: int = 1024, device: Optional[Any] = None) -> None:
        self.sample_rate = sample_rate
        self.blocksize = blocksize
        self.device = device
        self._stream: Any = None
        self._lock = threading.Lock()
        self._frames_rendered = 0
        self._scheduled: List[PlaybackSource] = []

    @property
    def current_time(self) -> float:
        return self._frames_rendered / float(self.sample_rate)

    def open(self) -> None:
        with self._lock:
            if self._stream is not None:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.blocksize,
                device=self.device,
                callback=self._on_output,
            )
            self._stream.start()

    def close(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
            self._scheduled.clear()
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()

    def play(self, source: PlaybackSource) -> None:
        with self._lock:
            self._scheduled.append(source)

    def stop(self, source: PlaybackSource) -> None:
        with self._lock:
            if source in self._scheduled:
                self._scheduled.remove(source)

    def render(self, frames: int) -> np.ndarray:
        """Produce the next ``frames`` samples and advance the clock."""
        out = np.zeros(frames, dtype=np.float32)
        finished: List[PlaybackSource] = []
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            for source in self._scheduled:
                first = int(round(source.start_time * self.sample_rate))
                last = first + source.samples.size
                lo = max(first, block_start)
                hi = min(last, block_end)
                if hi > lo:
                    out[lo - block_start:hi - block_start] += source.samples[lo - first:hi - first]
                if last <= block_end:
                    finished.append(source)
            for source in finished:
                self._scheduled.remove(source)
            self._frames_rendered = block_end
        for source in finished:
            if source.on_ended is not None:
                source.on_ended(source)
        np.clip(out, -1.0, 1.0, out=out)
        return out

    def _on_output(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        outdata[:, 0] = self.render(frames)
