"""Tests for SoundDeviceCapture."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from models import AudioFrame, EncodedAudioChunk
from recorder import SoundDeviceCapture


def _block(n_samples: int = 4096, value: float = 0.0) -> np.ndarray:
    """Shape matches what sounddevice hands to the callback: (frames, channels)."""
    return np.full((n_samples, 1), value, dtype=np.float32)


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_runs(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    capture.start(lambda chunk: None)

    mock_sd.InputStream.assert_called_once()
    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["channels"] == 1
    assert kwargs["dtype"] == "float32"
    assert kwargs["blocksize"] == 4096
    mock_stream.start.assert_called_once()
    assert capture.is_recording is True

    capture.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert capture.is_recording is False


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    capture = SoundDeviceCapture()
    capture.start(lambda chunk: None)
    capture.start(lambda chunk: None)  # second call should be no-op

    assert mock_sd.InputStream.call_count == 1
    capture.stop()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    capture.start(lambda chunk: None)
    capture.stop()
    capture.stop()  # second stop: should not raise

    mock_stream.close.assert_called_once()


def test_stop_without_start_is_safe() -> None:
    capture = SoundDeviceCapture()
    capture.stop()
    assert capture.is_recording is False


@patch("recorder.sd")
def test_failed_stream_start_releases_device(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_stream.start.side_effect = RuntimeError("Error querying device -1")
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    with pytest.raises(RuntimeError, match="querying device"):
        capture.start(lambda chunk: None)

    mock_stream.close.assert_called_once()
    assert capture.is_recording is False


# ---------------------------------------------------------------
# Audio callback forwards encoded frames
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_callback_forwards_encoded_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    sent: list[EncodedAudioChunk] = []

    capture = SoundDeviceCapture()
    capture.start(sent.append)
    capture._on_audio(_block(4096, 0.5), frames=4096, time_info=None, status=None)

    assert len(sent) == 1
    assert sent[0].mime_type == "audio/pcm;rate=16000"
    assert len(sent[0].data) == 4096 * 2
    assert capture.frames_sent == 1
    capture.stop()


@patch("recorder.sd")
def test_empty_frames_are_never_forwarded(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    sent: list[EncodedAudioChunk] = []

    capture = SoundDeviceCapture()
    capture.start(sent.append)
    capture._on_audio(_block(0), frames=0, time_info=None, status=None)

    assert sent == []
    assert capture.frames_skipped == 1
    capture.stop()


def test_empty_payload_is_not_forwarded() -> None:
    capture = SoundDeviceCapture()
    sent: list[EncodedAudioChunk] = []

    with patch("recorder.encode_frame", return_value=EncodedAudioChunk(data=b"")):
        forwarded = capture.forward(AudioFrame(samples=np.zeros(16, dtype=np.float32)), sent.append)

    assert forwarded is False
    assert sent == []


@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    sent: list[EncodedAudioChunk] = []

    capture = SoundDeviceCapture()
    capture.start(sent.append)
    capture.stop()

    capture._on_audio(_block(), frames=4096, time_info=None, status=None)
    assert sent == []


# ---------------------------------------------------------------
# No sounddevice installed
# ---------------------------------------------------------------

def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    capture = SoundDeviceCapture()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        capture.start(lambda chunk: None)
