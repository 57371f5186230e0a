"""Core data models for the app."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import numpy as np


class SessionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    ERROR = "ERROR"


@dataclass
class AudioFrame:
    samples: np.ndarray
    sample_rate: int = 16000
    timestamp_ms: int = 0

    def __len__(self) -> int:
        return int(self.samples.size)


@dataclass
class EncodedAudioChunk:
    data: bytes
    mime_type: str = "audio/pcm;rate=16000"

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def sample_rate(self) -> int:
        """Sample rate parsed from the MIME tag, 24000 when absent."""
        for param in self.mime_type.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key == "rate" and value.isdigit():
                return int(value)
        return 24000


@dataclass(eq=False)
class PlaybackSource:
    """A decoded output buffer scheduled to start at ``start_time`` seconds."""

    samples: np.ndarray
    sample_rate: int
    start_time: float
    on_ended: Optional[Callable[["PlaybackSource"], None]] = None
    stopped: bool = False

    @property
    def duration(self) -> float:
        return self.samples.size / float(self.sample_rate)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


@dataclass
class ServerEvent:
    output_transcription: Optional[str] = None
    audio: List[EncodedAudioChunk] = field(default_factory=list)
    turn_complete: bool = False
    interrupted: bool = False


@dataclass
class ImageInfo:
    file_name: str
    mime_type: str
    data: bytes = b""
    user_context: str = ""
    ai_context: str = "pending"
    url: str = ""


@dataclass
class ToolDeclaration:
    name: str
    description: str
    parameters: Dict[str, str] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)


@dataclass
class ToolCall:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuxiliaryResponse:
    text: str = ""
    calls: List[ToolCall] = field(default_factory=list)


@dataclass
class LiveCallbacks:
    on_open: Callable[[], None]
    on_message: Callable[[ServerEvent], None]
    on_error: Callable[[str], None]
    on_close: Callable[[str], None]


AsyncNotifier = Callable[[str], Awaitable[None]]
