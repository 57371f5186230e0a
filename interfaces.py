"""Protocol interfaces used by VoiceSession."""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, Tuple

from models import (
    AuxiliaryResponse,
    EncodedAudioChunk,
    LiveCallbacks,
    PlaybackSource,
    ToolDeclaration,
)


class Capture(Protocol):
    @property
    def is_recording(self) -> bool: ...

    def start(self, on_chunk: Callable[[EncodedAudioChunk], None]) -> None: ...

    def stop(self) -> None: ...


class AudioSink(Protocol):
    @property
    def current_time(self) -> float: ...

    def play(self, source: PlaybackSource) -> None: ...

    def stop(self, source: PlaybackSource) -> None: ...


class LiveSessionHandle(Protocol):
    async def send_audio(self, chunk: EncodedAudioChunk) -> None: ...

    async def send_text(self, text: str) -> None: ...

    async def close(self) -> None: ...


class LiveTransport(Protocol):
    async def connect(
        self,
        system_prompt: Optional[str],
        callbacks: LiveCallbacks,
    ) -> LiveSessionHandle: ...


class AuxiliaryModel(Protocol):
    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        images: Optional[List[Tuple[bytes, str]]] = None,
        tools: Optional[List[ToolDeclaration]] = None,
    ) -> AuxiliaryResponse: ...
