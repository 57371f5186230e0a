"""Microphone capture pipeline."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from models import AudioFrame, EncodedAudioChunk
from pcm_codec import INPUT_SAMPLE_RATE, encode_frame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[EncodedAudioChunk], None]


class SoundDeviceCapture:
    """Pull fixed-size mono frames from the microphone and forward them encoded.

    ``on_chunk`` is called on the PortAudio thread and must not block; the
    session hands chunks over to its event loop.
    """

    def __init__(
        self,
        sample_rate: int = INPUT_SAMPLE_RATE,
        blocksize: int = 4096,
        device: Optional[Any] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.blocksize = blocksize
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_chunk: Optional[ChunkCallback] = None
        self.frames_sent = 0
        self.frames_skipped = 0

    @property
    def is_recording(self) -> bool:
        return self._running

    def start(self, on_chunk: ChunkCallback) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._on_chunk = on_chunk
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=1,
                    dtype="float32",
                    blocksize=self.blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._running = True
                self._stream.start()
            except Exception:
                self._release_locked()
                raise
            logger.info("Microphone capture started at %d Hz", self.sample_rate)

    def stop(self) -> None:
        with self._lock:
            self._release_locked()

    def _release_locked(self) -> None:
        self._running = False
        self._on_chunk = None
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("Microphone capture stopped")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        on_chunk = self._on_chunk
        if not self._running or on_chunk is None or np is None:
            return
        if status:
            logger.debug("Input stream status: %s", status)
        samples = np.asarray(indata, dtype=np.float32).reshape(-1)
        frame = AudioFrame(
            samples=samples,
            sample_rate=self.sample_rate,
            timestamp_ms=int(time.time() * 1000),
        )
        self.forward(frame, on_chunk)

    def forward(self, frame: AudioFrame, on_chunk: ChunkCallback) -> bool:
        """Encode ``frame`` and hand it on; empty frames and payloads are dropped."""
        if len(frame) == 0:
            self.frames_skipped += 1
            return False
        chunk = encode_frame(frame)
        if not chunk.data:
            self.frames_skipped += 1
            return False
        on_chunk(chunk)
        self.frames_sent += 1
        return True
