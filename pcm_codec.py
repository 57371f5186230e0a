"""Conversions between float samples and the PCM16 wire format."""

from __future__ import annotations

import base64
from typing import Union

import numpy as np

from models import AudioFrame, EncodedAudioChunk

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000


def pcm_mime_type(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Clamp to [-1, 1] and pack as little-endian signed 16-bit.

    Negative values scale by 0x8000 and positive values by 0x7FFF, so -1.0 maps
    to -32768 and 1.0 to 32767.
    """
    data = np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)
    scaled = np.where(data < 0, data * 0x8000, data * 0x7FFF)
    return scaled.astype("<i2").tobytes()


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    """Unpack little-endian PCM16 into float32 samples in [-1, 1).

    Multi-channel input is de-interleaved and the first channel returned.
    """
    usable = len(data) - (len(data) % 2)
    ints = np.frombuffer(data[:usable], dtype="<i2")
    if channels > 1:
        ints = ints[: ints.size - (ints.size % channels)].reshape(-1, channels)[:, 0]
    return ints.astype(np.float32) / 32768.0


def resample(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Linear-interpolation resample; duration is preserved."""
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    if from_rate == to_rate or samples.size == 0:
        return samples
    count = max(1, int(round(samples.size * to_rate / float(from_rate))))
    positions = np.arange(count, dtype=np.float64) * (from_rate / float(to_rate))
    return np.interp(positions, np.arange(samples.size), samples).astype(np.float32)


def encode_frame(frame: Union[AudioFrame, np.ndarray], sample_rate: int = INPUT_SAMPLE_RATE) -> EncodedAudioChunk:
    if isinstance(frame, AudioFrame):
        sample_rate = frame.sample_rate
        frame = frame.samples
    return EncodedAudioChunk(data=float_to_pcm16(frame), mime_type=pcm_mime_type(sample_rate))


def decode_chunk(chunk: Union[EncodedAudioChunk, bytes, str]) -> np.ndarray:
    """Decode an inbound audio payload; base64 text is accepted as well as raw bytes."""
    if isinstance(chunk, EncodedAudioChunk):
        chunk = chunk.data
    if isinstance(chunk, str):
        chunk = decode_base64(chunk)
    return pcm16_to_float(chunk)


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: str) -> bytes:
    return base64.b64decode(text)
