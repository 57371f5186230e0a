"""State-machine based live voice session orchestration."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from functools import partial
from typing import Callable, Deque, Dict, FrozenSet, Optional, Set

from context_sync import ContextSyncAgent
from errors import TRANSPORT_ERROR, classify_capture_error, classify_transport_error
from image_context import ImageContextStore
from interfaces import AuxiliaryModel, Capture, LiveSessionHandle, LiveTransport
from models import EncodedAudioChunk, ImageInfo, LiveCallbacks, ServerEvent, SessionState
from playback import PlaybackScheduler
from prompts import displayed_image_notice, voice_system_prompt
from transcription import TranscriptionAccumulator

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
StatusCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]

_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CONNECTING}),
    SessionState.CONNECTING: frozenset({SessionState.OPEN, SessionState.ERROR, SessionState.CLOSED}),
    SessionState.OPEN: frozenset({SessionState.CLOSED, SessionState.ERROR}),
    SessionState.CLOSED: frozenset({SessionState.CONNECTING, SessionState.IDLE}),
    SessionState.ERROR: frozenset({SessionState.CONNECTING, SessionState.CLOSED, SessionState.IDLE}),
}


class VoiceSession:
    """Own the single live session and wire audio, transcription and context sync to it.

    All methods run on one asyncio loop. The only foreign-thread entry point
    is the capture callback, which hands chunks to the loop with
    ``call_soon_threadsafe``. Callbacks carry the generation of the session
    that produced them and are dropped once that session has been replaced.
    """

    def __init__(
        self,
        transport: LiveTransport,
        store: ImageContextStore,
        capture: Capture,
        scheduler: PlaybackScheduler,
        auxiliary_model: Optional[AuxiliaryModel] = None,
        accumulator: Optional[TranscriptionAccumulator] = None,
        outbound_maxsize: int = 64,
        on_state_change: Optional[StateCallback] = None,
        on_status: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._capture = capture
        self._scheduler = scheduler
        self._accumulator = accumulator or TranscriptionAccumulator()
        self._context_agent: Optional[ContextSyncAgent] = None
        if auxiliary_model is not None:
            self._context_agent = ContextSyncAgent(
                auxiliary_model, store, notify=self.send_notification, on_status=self._set_status
            )
        self._on_state_change = on_state_change
        self._on_status = on_status
        self._on_error = on_error

        self._state = SessionState.IDLE
        self._session: Optional[LiveSessionHandle] = None
        self._generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._outbound: Deque[EncodedAudioChunk] = deque(maxlen=outbound_maxsize)
        self._outbound_ready: Optional[asyncio.Event] = None
        self._sender_task: Optional[asyncio.Task] = None
        self._sync_tasks: Set[asyncio.Task] = set()
        self.dropped_chunks = 0
        self.system_prompt: Optional[str] = None

        self._status = ""
        self._error = ""
        self._message_seq = 0
        self._status_seq = 0
        self._error_seq = 0

    # ------------------------------------------------------------------
    # Read-only state for the UI
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def store(self) -> ImageContextStore:
        return self._store

    @property
    def is_recording(self) -> bool:
        return self._capture.is_recording

    @property
    def status(self) -> str:
        return self._status

    @property
    def error(self) -> str:
        return self._error

    @property
    def status_line(self) -> str:
        """The most recent of the status and error messages."""
        if self._error and self._error_seq > self._status_seq:
            return self._error
        return self._status

    @property
    def pending_sync_tasks(self) -> Set[asyncio.Task]:
        return set(self._sync_tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> bool:
        """Open a new live session, closing any session that is still held."""
        self._loop = asyncio.get_running_loop()
        if self._session is not None or self._state in (SessionState.OPEN, SessionState.CONNECTING):
            logger.info("Replacing the current live session")
            await self._teardown_session()
        self._generation += 1
        generation = self._generation
        self.system_prompt = voice_system_prompt(self._store)
        self._transition(SessionState.CONNECTING)
        callbacks = LiveCallbacks(
            on_open=partial(self._handle_open, generation),
            on_message=partial(self._handle_message, generation),
            on_error=partial(self._handle_error, generation),
            on_close=partial(self._handle_close, generation),
        )
        try:
            session = await self._transport.connect(self.system_prompt, callbacks)
        except Exception as exc:
            if generation != self._generation:
                return False
            logger.exception("Connecting the live session failed")
            self._fail(classify_transport_error(exc), str(exc))
            return False
        if generation != self._generation:
            await self._safe_close(session)
            return False
        self._session = session
        self._ensure_sender()
        return True

    async def reset(self) -> bool:
        """Drop the current session and connect again with a fresh system prompt."""
        await self._teardown_session()
        self._set_status("Session cleared.")
        return await self.connect()

    async def apply_context(self) -> bool:
        connected = await self.reset()
        self._store.mark_applied()
        return connected

    async def load_images(self, images: list[ImageInfo], biography: str = "") -> None:
        """Replace the photo set; the voice model sees it after the next reset."""
        self._store.load(images, biography)
        self._set_status(f"Loaded {len(self._store)} photo(s). Apply context to use them in voice chat.")

    async def clear_images(self) -> bool:
        self._store.clear()
        connected = await self.reset()
        self._set_status("Image context cleared.")
        return connected

    async def close(self) -> None:
        self._safe_stop_capture()
        await self._teardown_session()
        task = self._sender_task
        self._sender_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._transition(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def start_recording(self) -> bool:
        if self._capture.is_recording:
            return True
        self._loop = asyncio.get_running_loop()
        self._set_status("Requesting microphone access...")
        try:
            self._capture.start(self._on_captured_chunk)
        except Exception as exc:
            logger.exception("Error starting recording")
            self._set_status(f"Error: {exc}")
            self._emit_error(classify_capture_error(exc), str(exc))
            self._safe_stop_capture()
            return False
        self._ensure_sender()
        self._set_status("🔴 Recording... Capturing PCM chunks.")
        return True

    async def stop_recording(self) -> None:
        was_recording = self._capture.is_recording
        if was_recording:
            self._set_status("Stopping recording...")
        self._safe_stop_capture()
        if was_recording:
            self._set_status("Recording stopped. Click Start to begin again.")

    # ------------------------------------------------------------------
    # Displayed photo
    # ------------------------------------------------------------------

    async def change_displayed_image(self) -> Optional[ImageInfo]:
        info = self._store.advance()
        if info is not None:
            await self.send_notification(displayed_image_notice(info.file_name))
        return info

    async def send_notification(self, text: str) -> bool:
        """Tell the open live session something without reconnecting."""
        session = self._session
        if session is None or self._state != SessionState.OPEN:
            logger.info("No open session, notification not sent: %s", text)
            return False
        self._set_status(text)
        generation = self._generation
        logger.info("Sending to voice session: %s", text)
        try:
            await session.send_text(text)
        except Exception as exc:
            if generation == self._generation:
                self._fail(classify_transport_error(exc), str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _handle_open(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._transition(SessionState.OPEN)
        if len(self._store) > 0:
            self._set_status("Image context loaded. Ready to chat.")
        else:
            self._set_status("Opened")

    def _handle_message(self, generation: int, event: ServerEvent) -> None:
        if generation != self._generation:
            return
        if event.output_transcription:
            self._accumulator.append(event.output_transcription)
        for chunk in event.audio:
            try:
                self._scheduler.enqueue_chunk(chunk)
            except Exception:
                logger.exception("Dropping undecodable audio chunk (%s)", chunk.mime_type)
        if event.turn_complete:
            text = self._accumulator.take_and_clear()
            if text.strip():
                self._start_context_sync(text)
        if event.interrupted:
            self._scheduler.interrupt()
            self._accumulator.clear()

    def _handle_error(self, generation: int, message: str) -> None:
        if generation != self._generation:
            return
        logger.error("Live session error: %s", message)
        self._fail(TRANSPORT_ERROR, message)

    def _handle_close(self, generation: int, reason: str) -> None:
        if generation != self._generation:
            return
        logger.info("Live session closed: %s", reason)
        # handle stays held so the next teardown releases the SDK connection
        self._transition(SessionState.CLOSED)
        self._set_status(f"Close: {reason}")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _start_context_sync(self, text: str) -> None:
        if self._context_agent is None:
            return
        task = asyncio.get_running_loop().create_task(self._context_agent.process(text))
        self._sync_tasks.add(task)
        task.add_done_callback(self._sync_tasks.discard)

    def _on_captured_chunk(self, chunk: EncodedAudioChunk) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._queue_outbound, chunk)
        except RuntimeError:
            # loop shut down between the check and the call
            pass

    def _queue_outbound(self, chunk: EncodedAudioChunk) -> None:
        if self._outbound.maxlen is not None and len(self._outbound) >= self._outbound.maxlen:
            self.dropped_chunks += 1
        self._outbound.append(chunk)
        if self._outbound_ready is not None:
            self._outbound_ready.set()

    def _ensure_sender(self) -> None:
        if self._sender_task is not None and not self._sender_task.done():
            return
        ready = asyncio.Event()
        if self._outbound:
            ready.set()
        self._outbound_ready = ready
        self._sender_task = asyncio.get_running_loop().create_task(self._send_loop(ready))

    async def _send_loop(self, ready: asyncio.Event) -> None:
        while True:
            await ready.wait()
            while self._outbound:
                chunk = self._outbound.popleft()
                session = self._session
                if session is None or self._state != SessionState.OPEN:
                    continue
                generation = self._generation
                try:
                    await session.send_audio(chunk)
                except Exception as exc:
                    if generation == self._generation and self._state == SessionState.OPEN:
                        logger.warning("Sending audio failed: %s", exc)
                        self._fail(classify_transport_error(exc), str(exc))
            ready.clear()

    async def _teardown_session(self) -> None:
        self._generation += 1
        session, self._session = self._session, None
        self._accumulator.clear()
        self._scheduler.interrupt()
        self._outbound.clear()
        if session is not None:
            await self._safe_close(session)
        if self._state in (SessionState.OPEN, SessionState.CONNECTING):
            self._transition(SessionState.CLOSED)

    async def _safe_close(self, session: LiveSessionHandle) -> None:
        try:
            await session.close()
        except Exception:
            logger.warning("Ignoring failure while closing the live session", exc_info=True)

    def _safe_stop_capture(self) -> None:
        try:
            self._capture.stop()
        except Exception:
            logger.warning("Ignoring failure while stopping capture", exc_info=True)

    def _fail(self, code: str, message: str) -> None:
        self._transition(SessionState.ERROR)
        self._set_error(message)
        self._emit_error(code, message)

    def _set_status(self, message: str) -> None:
        self._message_seq += 1
        self._status_seq = self._message_seq
        self._status = message
        if self._on_status:
            self._on_status(message)

    def _set_error(self, message: str) -> None:
        self._message_seq += 1
        self._error_seq = self._message_seq
        self._error = message

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_state: SessionState) -> bool:
        from_state = self._state
        if from_state == to_state:
            return False
        if to_state not in _TRANSITIONS[from_state]:
            logger.debug("Ignoring transition %s -> %s", from_state.value, to_state.value)
            return False
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
        return True
