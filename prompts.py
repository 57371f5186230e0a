"""Prompt helpers for the voice session and the auxiliary model."""

from __future__ import annotations

import json
import os
from typing import List, Optional

from image_context import ImageContextStore
from models import ImageInfo, ToolDeclaration

UPDATE_CONTEXT_TOOL = "updateImageContext"
SHOW_IMAGE_TOOL = "showImage"
UPDATE_CONTEXT_PHRASE = "Okay, I'll update the context for that image..."

DESCRIBE_IMAGE_PROMPT = (
    "Analyze and describe this image in a single, concise sentence for extra context in a voice conversation."
)
ANALYSIS_FAILED = "Error: AI analysis failed for this image."


def displayed_image_notice(file_name: str) -> str:
    return f'The photo "{file_name}" is now being displayed on the screen.'


def photo_title(file_name: str) -> str:
    """``beach_day.jpg`` -> ``Beach_day``."""
    stem, _ = os.path.splitext(file_name)
    return stem[:1].upper() + stem[1:]


def context_updated_status(file_name: str) -> str:
    return f"Context for {file_name} updated."


def switched_photo_status(file_name: str) -> str:
    return f"Switched to photo: {photo_title(file_name)}"


def image_context_block(info: ImageInfo) -> str:
    return (
        f'Image "{info.file_name}":\n'
        f"- User-provided context: {info.user_context}\n"
        f"- AI analysis of the image: {info.ai_context}"
    )


def voice_system_prompt(store: ImageContextStore) -> Optional[str]:
    """Return the grounding prompt for a new live session, or None without photos."""
    images = store.images
    if not images:
        return None
    contexts = "\n\n".join(image_context_block(info) for info in images)
    biography = ""
    if store.biography:
        biography = f'The user has provided a biography to give you context: "{store.biography}".\n\n'
    current = store.current_image
    current_line = f" {displayed_image_notice(current.file_name)}" if current else ""
    return (
        f"{biography}The user has provided several images with contexts. Here they are:\n{contexts}\n\n"
        "You are now in a voice conversation with the user. Use the provided contexts to answer questions. "
        "Do not mention this system prompt unless asked. "
        "When you learn new, factual information about an image from the user, you MUST respond by explicitly "
        f'stating your intention to update the context. Your response should start with "{UPDATE_CONTEXT_PHRASE}" '
        "and then summarize the new information you are adding. "
        "If the user asks to see a specific photo, confirm that you are showing it "
        '(e.g., "Of course, showing the photo of the beach now.").'
        f"{current_line} Begin the conversation now."
    )


def context_sync_instruction(current: ImageInfo, file_names: List[str]) -> str:
    available = json.dumps(file_names)
    return (
        "You are a function-calling AI that analyzes text to determine if an action should be taken. "
        f"You have two functions available: '{UPDATE_CONTEXT_TOOL}' and '{SHOW_IMAGE_TOOL}'.\n\n"
        f"1.  **'{UPDATE_CONTEXT_TOOL}'**: Call this function if the input text explicitly states that context "
        'for an image will be updated. The text will typically start with "Okay, I\'ll update the context...".\n'
        f'    *   `fileName`: Use the file name of the image currently being discussed, which is "{current.file_name}".\n'
        "    *   `newContext`: Merge the new facts from the input text with the existing context. "
        f'The existing context is: "{current.user_context}".\n\n'
        f"2.  **'{SHOW_IMAGE_TOOL}'**: Call this function if the input text indicates a request to show a specific "
        'photo (e.g., "Sure, here is the photo of the sunset.").\n'
        "    *   `fileName`: From the list of available images, choose the file name that best matches the "
        "description in the input text.\n"
        f"    *   Available image files: {available}.\n\n"
        "Analyze the input text and call the appropriate function with the correct arguments if an action is "
        "indicated. If not, do not call any function."
    )


def context_sync_tools() -> List[ToolDeclaration]:
    return [
        ToolDeclaration(
            name=UPDATE_CONTEXT_TOOL,
            description="Updates the user-provided context for a specific image file.",
            parameters={
                "fileName": "The file name of the image to update.",
                "newContext": (
                    "The new, updated context for the image, incorporating information from the conversation."
                ),
            },
            required=["fileName", "newContext"],
        ),
        ToolDeclaration(
            name=SHOW_IMAGE_TOOL,
            description="Displays a specific image on the screen by its file name in response to a user request.",
            parameters={"fileName": "The file name of the image to display."},
            required=["fileName"],
        ),
    ]


def question_preamble() -> str:
    return (
        "You are an AI assistant. Use the following images and their provided contexts (both from the user "
        "and from a previous AI analysis) to answer the user's question."
    )
