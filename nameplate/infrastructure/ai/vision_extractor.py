"""Vision-model extraction of nameplate fields.

Sends the image URL and a structured-extraction instruction to an
OpenAI-compatible chat-completions endpoint, validates the JSON answer
against :class:`NameplateExtraction` and converts it to an
:class:`ExtractionResult`. Calls are admitted through a
:class:`RequestThrottle`; rate-limit errors are retried with exponential
backoff, everything else is fatal for the image.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any, Awaitable, Callable

import httpx
from pydantic import BaseModel, Field, ValidationError

from nameplate.domain.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    RateLimitError,
    is_rate_limit_error,
)
from nameplate.domain.models import ExtractionMethod, ExtractionResult, LlmRawData
from nameplate.infrastructure.observability import (
    get_logger,
    record_extraction,
    record_rate_limit_retry,
)

from .rate_limiter import RequestThrottle

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
MAX_RETRIES = 3
BACKOFF_BASE_SECONDS = 2.0

EXTRACTION_PROMPT = """Analyze this nameplate image from a household appliance \
(washing machine, dryer, dishwasher, oven, refrigerator...) and extract:

1. brand: the manufacturer name, in UPPERCASE (e.g. WHIRLPOOL, SAMSUNG, LG).
2. product_family: the kind of appliance, in UPPERCASE and in French, even when \
the plate is written in another language (e.g. LAVE-LINGE, SECHE-LINGE, \
LAVE-VAISSELLE, REFRIGERATEUR, FOUR).
3. model_number: the model or product code exactly as printed.
4. serial_number: the serial number exactly as printed.

Rules:
- Never include label prefixes in a value: no "S/N", "SN", "Serial No", \
"Model", "Mod.", "Type" or similar.
- Watch for characters that are easily confused on worn plates: O and 0, \
I and 1, S and 5, G and 6, B and 8. Serial numbers are usually numeric; \
model numbers usually mix letters and digits.
- Leave a field out when it is not visible. Do not guess.

Give a confidence between 0 and 1 for every field based on how clearly the \
text is visible. Lower the confidence when text is blurred, partially \
obscured or ambiguous."""


class FieldConfidence(BaseModel):
    """Per-field confidence reported by the model."""

    brand: float | None = Field(default=None, ge=0.0, le=1.0)
    product_family: float | None = Field(default=None, ge=0.0, le=1.0)
    model_number: float | None = Field(default=None, ge=0.0, le=1.0)
    serial_number: float | None = Field(default=None, ge=0.0, le=1.0)


class NameplateExtraction(BaseModel):
    """Typed response expected from the vision model."""

    brand: str | None = Field(
        default=None,
        description="The brand or manufacturer name (e.g. WHIRLPOOL, SAMSUNG, LG)",
    )
    product_family: str | None = Field(
        default=None,
        description="The product family in French (e.g. LAVE-LINGE, SECHE-LINGE)",
    )
    model_number: str | None = Field(
        default=None, description="The model number or product code"
    )
    serial_number: str | None = Field(
        default=None, description="The serial number or unique identifier"
    )
    confidence: FieldConfidence | None = Field(
        default=None,
        description="Confidence scores for each extracted field (0-1)",
    )

    def confidence_scores(self) -> dict[str, float]:
        if self.confidence is None:
            return {}
        return self.confidence.model_dump(exclude_none=True)


def response_format() -> dict[str, Any]:
    """Structured-output specification sent with each request."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "nameplate_extraction",
            "schema": NameplateExtraction.model_json_schema(),
        },
    }


class VisionExtractor:
    """Extracts nameplate fields with a vision-capable language model."""

    def __init__(
        self,
        throttle: RequestThrottle,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        temperature: float | None = 0.1,
        max_retries: int = MAX_RETRIES,
        backoff_base_seconds: float = BACKOFF_BASE_SECONDS,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the extractor.

        Args:
            throttle: Shared throttle every call is admitted through.
            api_key: API key. Defaults to the OPENAI_API_KEY env var.
            model: Default model identifier.
            base_url: Base URL of the OpenAI-compatible API.
            timeout: Per-request timeout in seconds.
            temperature: Sampling temperature, or None to omit it.
            max_retries: Retries allowed after rate-limit errors.
            backoff_base_seconds: First backoff delay; doubles per retry.
            client: Optional pre-built HTTP client (used by tests).
            sleep: Coroutine used for backoff waits.
        """
        self.throttle = throttle
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self._client = client
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2**attempt)

    def _build_payload(self, image_url: str, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": EXTRACTION_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": image_url, "detail": "high"},
                        },
                    ],
                }
            ],
            "response_format": response_format(),
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload

    async def _request(self, image_url: str, model: str) -> NameplateExtraction:
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=self._build_payload(image_url, model),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ExtractionTimeoutError(
                f"Vision model call timed out after {self.timeout}s"
            ) from e

        if response.status_code == 429:
            raise RateLimitError(f"Rate limit reached: {response.text[:200]}")
        response.raise_for_status()

        data = response.json()
        content = data["choices"][0]["message"].get("content")
        if not content:
            raise ExtractionError("Vision model returned an empty response")
        try:
            return NameplateExtraction.model_validate_json(content)
        except ValidationError as e:
            raise ExtractionError(
                f"Vision model response did not match schema: {e}") from e

    async def extract(
        self,
        image_url: str,
        retry_count: int = 0,
        *,
        model: str | None = None,
    ) -> ExtractionResult:
        """Extract nameplate fields from an image URL.

        Args:
            image_url: URL the remote model can read at call time.
            retry_count: Retries already spent on this image.
            model: Model identifier overriding the default.

        Returns:
            ExtractionResult tagged ``llm``.

        Raises:
            ExtractionTimeoutError: If the remote call timed out.
            ExtractionError: On any other failure, or when rate-limit
                retries are exhausted.
        """
        if not self.api_key:
            raise ExtractionError(
                "OpenAI API key not configured (set OPENAI_API_KEY)")

        model_name = model or self.model
        start = time.perf_counter()
        attempt = retry_count
        while True:
            await self.throttle.admit()
            logger.info("Requesting vision extraction (model=%s, attempt=%d)",
                        model_name, attempt)
            try:
                parsed = await self._request(image_url, model_name)
                break
            except ExtractionTimeoutError:
                record_extraction(ExtractionMethod.LLM.value, "failed",
                                  time.perf_counter() - start)
                raise
            except Exception as e:
                if is_rate_limit_error(e) and attempt < self.max_retries:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        "Vision model rate limited, retrying in %.0fs "
                        "(retry %d/%d)",
                        delay,
                        attempt + 1,
                        self.max_retries,
                    )
                    record_rate_limit_retry(attempt + 1)
                    await self._sleep(delay)
                    attempt += 1
                    continue
                logger.error("LLM extraction failed: %s", str(e))
                record_extraction(ExtractionMethod.LLM.value, "failed",
                                  time.perf_counter() - start)
                if isinstance(e, ExtractionError):
                    raise
                raise ExtractionError(f"LLM extraction failed: {e}") from e

        elapsed = time.perf_counter() - start
        record_extraction(ExtractionMethod.LLM.value, "success", elapsed)
        logger.debug("Vision extraction finished in %.0fms", elapsed * 1000)

        return ExtractionResult(
            method=ExtractionMethod.LLM,
            brand=parsed.brand,
            product_family=parsed.product_family,
            model_number=parsed.model_number,
            serial_number=parsed.serial_number,
            confidence_scores=parsed.confidence_scores(),
            processing_time_ms=int(elapsed * 1000),
            raw_data=LlmRawData(llm_response=parsed.model_dump()),
        )


__all__ = [
    "EXTRACTION_PROMPT",
    "FieldConfidence",
    "NameplateExtraction",
    "VisionExtractor",
    "response_format",
]
