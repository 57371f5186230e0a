from __future__ import annotations

import asyncio
from typing import Optional

from image_analysis import answer_question, describe_image, describe_images
from image_context import ImageContextStore
from models import AuxiliaryResponse, ImageInfo


class FakeAuxiliaryModel:
    def __init__(self, text: str = "", fail_for: Optional[bytes] = None) -> None:
        self.text = text
        self.fail_for = fail_for
        self.requests: list[tuple[str, list]] = []

    async def generate(self, prompt, *, system_instruction=None, images=None, tools=None):  # noqa: ANN001
        self.requests.append((prompt, images or []))
        if self.fail_for is not None and images and images[0][0] == self.fail_for:
            raise RuntimeError("model unavailable")
        return AuxiliaryResponse(text=self.text)


def _store() -> ImageContextStore:
    store = ImageContextStore()
    store.load(
        [
            ImageInfo(file_name="a.jpg", mime_type="image/jpeg", data=b"A", user_context="Dad's boat"),
            ImageInfo(file_name="b.png", mime_type="image/png", data=b"B", ai_context="A dog on a beach."),
        ]
    )
    return store


def test_describe_image_stores_description() -> None:
    store = _store()
    model = FakeAuxiliaryModel(text="  A red boat in a harbour.\n")

    result = asyncio.run(describe_image(store, model, store.get("a.jpg")))

    assert result == "A red boat in a harbour."
    assert store.get("a.jpg").ai_context == "A red boat in a harbour."
    assert model.requests[0][1] == [(b"A", "image/jpeg")]


def test_describe_images_marks_failures() -> None:
    store = _store()
    model = FakeAuxiliaryModel(text="Something.", fail_for=b"B")

    asyncio.run(describe_images(store, model))

    assert store.get("a.jpg").ai_context == "Something."
    assert store.get("b.png").ai_context == "Error: AI analysis failed for this image."


def test_empty_description_counts_as_failure() -> None:
    store = _store()
    asyncio.run(describe_image(store, FakeAuxiliaryModel(text=""), store.get("a.jpg")))
    assert store.get("a.jpg").ai_context == "Error: AI analysis failed for this image."


def test_answer_question_sends_contexts_and_images_in_order() -> None:
    store = _store()
    model = FakeAuxiliaryModel(text="It was taken in Cornwall.")

    answer = asyncio.run(answer_question(store, model, "  Where was this taken? "))

    assert answer == "It was taken in Cornwall."
    prompt, images = model.requests[0]
    assert prompt.index('Image "a.jpg"') < prompt.index('Image "b.png"')
    assert "- User-provided context: Dad's boat" in prompt
    assert "- AI analysis of the image: A dog on a beach." in prompt
    assert prompt.endswith("User's question: Where was this taken?")
    assert images == [(b"A", "image/jpeg"), (b"B", "image/png")]


def test_answer_question_needs_question_and_photos() -> None:
    model = FakeAuxiliaryModel(text="unused")

    assert asyncio.run(answer_question(_store(), model, "   ")) == ""
    assert asyncio.run(answer_question(ImageContextStore(), model, "What is this?")) == ""
    assert model.requests == []
