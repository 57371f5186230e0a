"""One-shot requests about the loaded photos."""

from __future__ import annotations

import asyncio
import logging

from image_context import ImageContextStore
from interfaces import AuxiliaryModel
from models import ImageInfo
from prompts import ANALYSIS_FAILED, DESCRIBE_IMAGE_PROMPT, image_context_block, question_preamble

logger = logging.getLogger(__name__)


async def describe_image(store: ImageContextStore, model: AuxiliaryModel, info: ImageInfo) -> str:
    try:
        response = await model.generate(DESCRIBE_IMAGE_PROMPT, images=[(info.data, info.mime_type)])
        description = response.text.strip() or ANALYSIS_FAILED
    except Exception:
        logger.exception("Failed to analyze image %s", info.file_name)
        description = ANALYSIS_FAILED
    store.set_ai_context(info.file_name, description)
    return description


async def describe_images(store: ImageContextStore, model: AuxiliaryModel) -> None:
    """Fill in the AI description of every photo concurrently."""
    await asyncio.gather(*(describe_image(store, model, info) for info in store.images))


async def answer_question(store: ImageContextStore, model: AuxiliaryModel, question: str) -> str:
    question = question.strip()
    images = store.images
    if not question or not images:
        return ""
    blocks = "\n\n".join(image_context_block(info) for info in images)
    prompt = f"{question_preamble()}\n\n{blocks}\n\nThe images follow in the same order.\n\nUser's question: {question}"
    response = await model.generate(prompt, images=[(info.data, info.mime_type) for info in images])
    return response.text
