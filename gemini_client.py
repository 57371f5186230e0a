"""Gemini adapters for the live voice transport and the auxiliary model.

The live transport wraps ``client.aio.live.connect`` and turns the SDK's
async iterator of ``LiveServerMessage`` objects into the open/message/
error/close callbacks VoiceSession expects. The auxiliary model is a thin
``generate_content`` call that returns free text and function calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Tuple

from config import DEFAULT_ASSISTANT_MODEL, DEFAULT_LIVE_MODEL, DEFAULT_VOICE
from models import (
    AuxiliaryResponse,
    EncodedAudioChunk,
    LiveCallbacks,
    ServerEvent,
    ToolCall,
    ToolDeclaration,
)

try:
    from google import genai
    from google.genai import types
except Exception:  # pragma: no cover
    genai = None  # type: ignore
    types = None  # type: ignore

try:
    from websockets.exceptions import ConnectionClosed
except Exception:  # pragma: no cover
    ConnectionClosed = None  # type: ignore

logger = logging.getLogger(__name__)


def _create_client(api_key: str) -> Any:
    if genai is None:
        raise RuntimeError("google-genai is not installed")
    if not api_key:
        raise RuntimeError("No API key configured")
    return genai.Client(api_key=api_key)


def to_server_event(message: Any) -> Optional[ServerEvent]:
    """Translate a ``LiveServerMessage``; None when it carries no server content."""
    content = getattr(message, "server_content", None)
    if not content:
        return None
    event = ServerEvent(
        turn_complete=bool(getattr(content, "turn_complete", False)),
        interrupted=bool(getattr(content, "interrupted", False)),
    )
    transcription = getattr(content, "output_transcription", None)
    if transcription is not None and getattr(transcription, "text", None):
        event.output_transcription = transcription.text
    model_turn = getattr(content, "model_turn", None)
    for part in getattr(model_turn, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is None or not inline.data:
            continue
        mime_type = inline.mime_type or "audio/pcm;rate=24000"
        if not mime_type.startswith("audio/"):
            continue
        event.audio.append(EncodedAudioChunk(data=inline.data, mime_type=mime_type))
    return event


class GeminiLiveSession:
    """Handle for one open live connection."""

    def __init__(self, context: Any, session: Any, callbacks: LiveCallbacks) -> None:
        self._context = context
        self._session = session
        self._callbacks = callbacks
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._receive_loop())

    async def send_audio(self, chunk: EncodedAudioChunk) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=chunk.data, mime_type=chunk.mime_type)
        )

    async def send_text(self, text: str) -> None:
        await self._session.send_client_content(
            turns=types.Content(role="user", parts=[types.Part(text=text)]),
            turn_complete=True,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._context.__aexit__(None, None, None)

    async def _receive_loop(self) -> None:
        self._callbacks.on_open()
        try:
            while not self._closed:
                received = False
                # receive() ends after each turn_complete; keep reading turns.
                async for message in self._session.receive():
                    received = True
                    event = to_server_event(message)
                    if event is not None:
                        self._callbacks.on_message(event)
                if not received:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._closed:
                return
            if ConnectionClosed is not None and isinstance(exc, ConnectionClosed):
                rcvd = getattr(exc, "rcvd", None)
                self._callbacks.on_close(getattr(rcvd, "reason", "") or str(exc))
            else:
                self._callbacks.on_error(str(exc) or exc.__class__.__name__)
            return
        if not self._closed:
            self._callbacks.on_close("server ended the session")


class GeminiLiveTransport:
    def __init__(
        self,
        api_key: str = "",
        model: str = DEFAULT_LIVE_MODEL,
        voice: str = DEFAULT_VOICE,
        client: Any = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._voice = voice
        self._client = client

    def build_config(self, system_prompt: Optional[str]) -> Any:
        config = types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self._voice)
                )
            ),
            output_audio_transcription=types.AudioTranscriptionConfig(),
        )
        if system_prompt:
            config.system_instruction = types.Content(parts=[types.Part(text=system_prompt)])
        return config

    async def connect(self, system_prompt: Optional[str], callbacks: LiveCallbacks) -> GeminiLiveSession:
        if self._client is None:
            self._client = _create_client(self._api_key)
        logger.info('Gemini API Call: live.connect(model="%s")', self._model)
        context = self._client.aio.live.connect(model=self._model, config=self.build_config(system_prompt))
        session = await context.__aenter__()
        handle = GeminiLiveSession(context, session, callbacks)
        handle.start()
        return handle


class GeminiAuxiliaryModel:
    def __init__(self, api_key: str = "", model: str = DEFAULT_ASSISTANT_MODEL, client: Any = None) -> None:
        self._api_key = api_key
        self._model = model
        self._client = client

    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        images: Optional[List[Tuple[bytes, str]]] = None,
        tools: Optional[List[ToolDeclaration]] = None,
    ) -> AuxiliaryResponse:
        if self._client is None:
            self._client = _create_client(self._api_key)

        contents: Any = prompt
        if images:
            parts = [types.Part(text=prompt)]
            parts.extend(types.Part.from_bytes(data=data, mime_type=mime) for data, mime in images)
            contents = types.Content(role="user", parts=parts)

        config = None
        if system_instruction or tools:
            config = types.GenerateContentConfig(
                system_instruction=system_instruction,
                tools=[self._to_tool(tools)] if tools else None,
            )

        logger.info('Gemini API Call: models.generate_content(model="%s")', self._model)
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=contents,
            config=config,
        )
        calls = [
            ToolCall(name=call.name or "", args=dict(call.args or {}))
            for call in (response.function_calls or [])
        ]
        text = "" if calls else (response.text or "")
        return AuxiliaryResponse(text=text, calls=calls)

    @staticmethod
    def _to_tool(tools: List[ToolDeclaration]) -> Any:
        declarations = [
            types.FunctionDeclaration(
                name=tool.name,
                description=tool.description,
                parameters=types.Schema(
                    type=types.Type.OBJECT,
                    properties={
                        name: types.Schema(type=types.Type.STRING, description=description)
                        for name, description in tool.parameters.items()
                    },
                    required=list(tool.required),
                ),
            )
            for tool in tools
        ]
        return types.Tool(function_declarations=declarations)
