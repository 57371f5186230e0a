"""Keep the photo context in step with what the voice model says."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from image_context import ImageContextStore
from interfaces import AuxiliaryModel
from models import AsyncNotifier, ToolCall
from prompts import (
    SHOW_IMAGE_TOOL,
    UPDATE_CONTEXT_TOOL,
    context_sync_instruction,
    context_sync_tools,
    context_updated_status,
    displayed_image_notice,
    switched_photo_status,
)

logger = logging.getLogger(__name__)


class ContextSyncAgent:
    """Ask an auxiliary model whether a finished turn should change the photo context.

    The voice model is told to open with a fixed phrase when it intends to
    record new facts, and to confirm out loud when it shows a photo. Each
    completed turn is passed here, the auxiliary model answers with zero or
    more tool calls, and the calls are applied to the store in order.
    Failures are logged and never reach the caller.
    """

    def __init__(
        self,
        model: AuxiliaryModel,
        store: ImageContextStore,
        notify: Optional[AsyncNotifier] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._model = model
        self._store = store
        self._notify = notify
        self._on_status = on_status

    async def process(self, utterance: str) -> List[ToolCall]:
        if len(self._store) == 0:
            return []
        current = self._store.current_image
        if current is None:
            return []

        logger.info("Context update check for %s", current.file_name)
        try:
            response = await self._model.generate(
                utterance,
                system_instruction=context_sync_instruction(current, self._store.file_names),
                tools=context_sync_tools(),
            )
        except Exception:
            logger.exception("Context update check failed")
            return []

        applied: List[ToolCall] = []
        for call in response.calls:
            try:
                if await self.apply(call):
                    applied.append(call)
            except Exception:
                logger.exception("Applying %s failed", call.name)
        return applied

    async def apply(self, call: ToolCall) -> bool:
        file_name = str(call.args.get("fileName", ""))
        if call.name == UPDATE_CONTEXT_TOOL:
            new_context = str(call.args.get("newContext", ""))
            logger.info('updateImageContext called for %s with newContext: "%s"', file_name, new_context)
            if not self._store.update_user_context(file_name, new_context):
                logger.warning("Could not find image to update: %s", file_name)
                return False
            self._status(context_updated_status(file_name))
            return True
        if call.name == SHOW_IMAGE_TOOL:
            logger.info("showImage called for %s", file_name)
            if not self._store.show(file_name):
                logger.warning("Could not find image to show: %s", file_name)
                return False
            if self._notify is not None:
                await self._notify(displayed_image_notice(file_name))
            self._status(switched_photo_status(file_name))
            return True
        logger.warning("Ignoring unknown function call %s", call.name)
        return False

    def _status(self, message: str) -> None:
        if self._on_status is not None:
            self._on_status(message)
