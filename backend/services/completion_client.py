"""Text-completion service: protocol plus the Google Gemini implementation."""

import asyncio
import json
import logging
from typing import Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel

from config import settings
from services.errors import AuthError, PipelineError, TransportError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class CompletionConfig(BaseModel):
    """Per-call sampling and budget settings."""
    temperature: float = 0.0
    max_output_tokens: int = 4096
    system_instruction: str | None = None
    json_output: bool = True
    stage: str = ""  # for log context only


class CompletionService(Protocol):
    async def complete(self, prompt: str, config: CompletionConfig) -> str:
        """Send one prompt and return the raw completion text."""
        ...


class GeminiCompletionService:
    """CompletionService backed by the google-genai async client."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self._client: genai.Client | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> genai.Client:
        if not self.api_key:
            raise AuthError("Completion service API key not configured", code="MISSING_API_KEY")
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str, config: CompletionConfig) -> str:
        client = self._get_client()
        gen_config = types.GenerateContentConfig(
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            system_instruction=config.system_instruction,
            response_mime_type="application/json" if config.json_output else None,
        )
        logger.info(
            "Calling %s (stage=%s, max_tokens=%d, temperature=%.2f)",
            self.model, config.stage, config.max_output_tokens, config.temperature,
        )

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=gen_config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Completion service timed out after {self.timeout_seconds:.0f}s", code="TIMEOUT"
            ) from e
        except genai_errors.APIError as e:
            raise classify_api_error(e.code, str(e)) from e
        except httpx.TransportError as e:
            raise TransportError(f"Completion service unreachable: {e}", code="CONNECTION_ERROR") from e

        text = response.text or ""
        if not text.strip():
            raise TransportError("Completion service returned an empty response", code="EMPTY_RESPONSE")
        logger.info("Completion received (stage=%s, chars=%d)", config.stage, len(text))
        return text


def classify_api_error(status: int | None, message: str) -> PipelineError:
    """Map an HTTP status from the completion API onto the error taxonomy."""
    if status in (401, 403):
        return AuthError(f"Completion service rejected credentials: {message}", code="UPSTREAM_AUTH_FAILED")
    if status == 429:
        return TransportError(f"Completion service rate limited: {message}", code="RATE_LIMITED")
    if status in _RETRYABLE_STATUS:
        return TransportError(f"Completion service error {status}: {message}", code="UPSTREAM_UNAVAILABLE")
    return PipelineError(f"Completion service error {status}: {message}", code="UPSTREAM_ERROR")


def parse_json_response(text: str) -> dict:
    """Parse a completion as a JSON object, tolerating markdown code fences.

    Raises ValueError when the text is not a JSON object.
    """
    text = text.strip()
    # Strip markdown code fences if present
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


_service: GeminiCompletionService | None = None


def get_completion_service() -> GeminiCompletionService:
    global _service
    if _service is None:
        if not settings.gemini_api_key:
            logger.warning("No GEMINI_API_KEY set - analysis requests will fail")
        _service = GeminiCompletionService()
    return _service
