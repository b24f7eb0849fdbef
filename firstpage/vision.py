"""OpenAI Responses API wrapper for the image and text prompts used here."""

from __future__ import annotations

import base64
import json
import logging
import random
import re
import time
from typing import Any, Callable

import openai

from firstpage.errors import ConfigurationError, ModelRequestError
from firstpage.models import IdentityGuess

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_OUTPUT_TOKENS = 4000
AFFIRMATIVE_TOKEN = "yes"

COVER_CHECK_PROMPT = 'Is this image clearly a book cover? Respond with only "yes" or "no".'
IDENTIFY_COVER_PROMPT = (
    "Extract the following information from this book cover in JSON format: "
    "title, author, ISBN (if visible), and whether it appears to be fiction or non-fiction. "
    "If you cannot determine any field, use null for that value."
)


def to_plain_object(value: Any) -> Any:
    if value is None:
        return None

    if isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, list):
        return [to_plain_object(item) for item in value]

    if isinstance(value, dict):
        return {k: to_plain_object(v) for k, v in value.items()}

    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return model_dump()

    return str(value)


def extract_response_text(response: Any) -> str:
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text

    payload = to_plain_object(response)

    if isinstance(payload, dict):
        candidate = payload.get("output_text")
        if isinstance(candidate, str) and candidate.strip():
            return candidate

    def visit(node: Any) -> str | None:
        if isinstance(node, dict):
            text = node.get("text")
            if node.get("type") == "output_text" and isinstance(text, str) and text.strip():
                return text
            for value in node.values():
                found = visit(value)
                if found:
                    return found
        elif isinstance(node, list):
            for item in node:
                found = visit(item)
                if found:
                    return found
        return None

    found_text = visit(payload)
    if found_text:
        return found_text

    raise ValueError("Could not find text output in model response")


def parse_json_object(text: str) -> Any:
    """Parse the first {...} block in a model reply, tolerating code fences."""
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        raise ValueError("No JSON object in model reply")
    return json.loads(match.group(0))


def encode_image_data_url(image_bytes: bytes, encoding: str = "jpeg") -> str:
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return f"data:image/{encoding};base64,{b64}"


def sniff_image_encoding(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\x89PNG"):
        return "png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "webp"
    if image_bytes[:3] == b"GIF":
        return "gif"
    return "jpeg"


def retry_call(
    label: str,
    max_retries: int,
    fn: Callable[[], Any],
    sleep: Callable[[float], None] = time.sleep,
    fatal: tuple[type[BaseException], ...] = (),
) -> Any:
    attempts = 0
    while True:
        attempts += 1
        try:
            return fn()
        except fatal:
            raise
        except Exception as exc:
            if attempts >= max_retries:
                raise RuntimeError(f"{label} failed after {attempts} attempts: {exc}") from exc
            delay = (2 ** (attempts - 1)) + random.random() * 0.5
            logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                label,
                attempts,
                max_retries,
                exc,
                delay,
            )
            sleep(delay)


def _build_default_client(api_key: str, timeout_seconds: int) -> Any:
    return openai.OpenAI(api_key=api_key, timeout=timeout_seconds)


class VisionModel:
    """Image question answering, transcription and text generation over one client."""

    def __init__(
        self,
        *,
        api_key: str,
        vision_model: str,
        text_model: str,
        client: Any | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        timeout_seconds: int = 120,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError("OpenAI API key is missing")
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self.vision_model = vision_model
        self.text_model = text_model
        self.client = client or _build_default_client(api_key, timeout_seconds)
        self.max_retries = max_retries
        self.max_output_tokens = max_output_tokens
        self._sleep = sleep

    def _create(self, label: str, model: str, **kwargs: Any) -> str:
        def call() -> str:
            try:
                response = self.client.responses.create(
                    model=model, max_output_tokens=self.max_output_tokens, **kwargs
                )
            except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
                raise ConfigurationError(f"OpenAI rejected the API key: {exc}") from exc
            return extract_response_text(response)

        try:
            text = retry_call(label, self.max_retries, call, sleep=self._sleep, fatal=(ConfigurationError,))
        except RuntimeError as exc:
            raise ModelRequestError(model, str(exc)) from exc

        text = text.strip()
        if not text:
            raise ModelRequestError(model, f"{label} returned empty text")
        return text

    def ask_image(self, instruction: str, image_data_url: str, *, label: str = "vision") -> str:
        return self._create(
            label,
            self.vision_model,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": instruction},
                        {"type": "input_image", "image_url": image_data_url, "detail": "high"},
                    ],
                }
            ],
        )

    def generate_text(self, prompt: str, *, instructions: str | None = None, label: str = "generate") -> str:
        kwargs: dict[str, Any] = {"input": prompt}
        if instructions:
            kwargs["instructions"] = instructions
        return self._create(label, self.text_model, **kwargs)

    def is_book_cover(self, image_bytes: bytes) -> bool:
        data_url = encode_image_data_url(image_bytes, sniff_image_encoding(image_bytes))
        answer = self.ask_image(COVER_CHECK_PROMPT, data_url, label="cover check")
        result = AFFIRMATIVE_TOKEN in answer.lower()
        logger.info("Book cover validation result: %s", result)
        return result

    def identify_cover(self, image_bytes: bytes) -> IdentityGuess:
        data_url = encode_image_data_url(image_bytes, sniff_image_encoding(image_bytes))
        answer = self.ask_image(IDENTIFY_COVER_PROMPT, data_url, label="identify cover")
        try:
            payload = parse_json_object(answer)
        except ValueError as exc:
            raise ModelRequestError(
                self.vision_model, f"Could not extract book information from the image: {exc}"
            ) from exc
        guess = IdentityGuess.from_payload(payload)
        logger.info("Extracted book details: %s", guess)
        return guess
