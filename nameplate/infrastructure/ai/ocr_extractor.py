"""OCR extraction through the OCR.space web API.

The OCR service returns raw recognized text; a heuristic pass then guesses
the four nameplate fields with regexes and keyword search. Confidence scores
on this path are fixed per heuristic, not derived from legibility. The raw
text is kept on the result so the rule-based extractor can reuse it.
"""

from __future__ import annotations

import base64
import binascii
import os
import re
import time
from typing import Any

import httpx

from nameplate.domain.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    ImageTooLargeError,
)
from nameplate.domain.models import CombinedFields, ExtractionMethod, ExtractionResult, OcrRawData
from nameplate.infrastructure.observability import get_logger, record_extraction

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://api.ocr.space/parse/image"
DEFAULT_MAX_IMAGE_BYTES = 1024 * 1024

KNOWN_BRANDS = [
    "whirlpool",
    "samsung",
    "lg",
    "ge",
    "maytag",
    "kenmore",
    "frigidaire",
    "bosch",
    "electrolux",
    "haier",
]

FAMILY_KEYWORDS = ["wash", "dry", "tower", "flex",
                   "turbo", "smart", "eco", "steam"]

BRAND_PATTERN = re.compile(
    r"\b(" + "|".join(KNOWN_BRANDS) + r")\b", re.IGNORECASE)

# Examples: WTW5000, AB12C, 4500XL
MODEL_PATTERN = re.compile(
    r"\b[A-Z]{1,4}[0-9]{2,6}[A-Z]?\b|\b[0-9]{3,6}[A-Z]{1,3}\b")

SERIAL_PATTERN = re.compile(r"\b[A-Z0-9]{8,20}\b")

MAX_FAMILY_LINE_LENGTH = 50

BRAND_CONFIDENCE = 0.8
FAMILY_CONFIDENCE = 0.6
MODEL_CONFIDENCE = 0.7
SERIAL_CONFIDENCE = 0.7


def extract_fields_from_text(text: str) -> CombinedFields:
    """Guess nameplate fields from OCR text with fixed-confidence heuristics."""
    lines = [line.strip() for line in text.split("\n") if line.strip()]

    brand = None
    brand_match = BRAND_PATTERN.search(text)
    if brand_match:
        brand = brand_match.group(0).lower().capitalize()

    model_number = None
    model_match = MODEL_PATTERN.search(text)
    if model_match:
        model_number = model_match.group(0)

    serial_number = None
    serial_matches = SERIAL_PATTERN.findall(text)
    if serial_matches:
        # Longest wins, first one on equal length
        serial_number = max(serial_matches, key=len)

    product_family = None
    for line in lines:
        lowered = line.lower()
        if len(line) < MAX_FAMILY_LINE_LENGTH and any(
            keyword in lowered for keyword in FAMILY_KEYWORDS
        ):
            product_family = line
            break

    scores: dict[str, float] = {}
    if brand:
        scores["brand"] = BRAND_CONFIDENCE
    if product_family:
        scores["product_family"] = FAMILY_CONFIDENCE
    if model_number:
        scores["model_number"] = MODEL_CONFIDENCE
    if serial_number:
        scores["serial_number"] = SERIAL_CONFIDENCE

    return CombinedFields(
        brand=brand,
        product_family=product_family,
        model_number=model_number,
        serial_number=serial_number,
        confidence_scores=scores,
    )


def _data_url_size(image_url: str) -> int | None:
    """Return the decoded byte size of a base64 data URL, if it is one."""
    if not image_url.startswith("data:"):
        return None
    header, _, payload = image_url.partition(",")
    if not header.endswith(";base64"):
        return len(payload)
    try:
        return len(base64.b64decode(payload, validate=False))
    except (binascii.Error, ValueError):
        return None


class OcrExtractor:
    """Extracts nameplate fields via a remote OCR service."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        language: str = "eng",
        engine: int = 2,
        max_image_bytes: int | None = DEFAULT_MAX_IMAGE_BYTES,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the OCR extractor.

        Args:
            api_key: OCR.space API key. Defaults to OCR_SPACE_API_KEY.
            endpoint: URL of the parse endpoint.
            language: OCR language code.
            engine: OCR.space engine selector.
            max_image_bytes: Pre-flight size limit, or None to skip the check.
            timeout: Per-request timeout in seconds.
            client: Optional pre-built HTTP client (used by tests).
        """
        self.api_key = api_key or os.environ.get("OCR_SPACE_API_KEY")
        self.endpoint = endpoint
        self.language = language
        self.engine = engine
        self.max_image_bytes = max_image_bytes
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def check_image_size(self, image_url: str) -> None:
        """Reject images over the size limit before calling the OCR service.

        Raises:
            ImageTooLargeError: If the image is known to exceed the limit.

        Any failure to determine the size is logged and ignored.
        """
        if self.max_image_bytes is None:
            return

        size = _data_url_size(image_url)
        if size is None and not image_url.startswith("data:"):
            try:
                client = await self._get_client()
                response = await client.head(image_url, timeout=self.timeout)
                response.raise_for_status()
                content_length = response.headers.get("content-length")
                size = int(content_length) if content_length else None
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Could not validate image size: %s", str(e))
                return

        if size is not None and size > self.max_image_bytes:
            raise ImageTooLargeError(size, self.max_image_bytes)

    def _form_data(self, image_url: str) -> dict[str, str]:
        data = {
            "language": self.language,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "scale": "true",
            "OCREngine": str(self.engine),
        }
        if image_url.startswith("data:"):
            data["base64Image"] = image_url
        else:
            data["url"] = image_url
        return data

    async def recognize_text(self, image_url: str) -> str:
        """Run OCR on the image and return the raw recognized text.

        Raises:
            ExtractionError: If the service rejects the request or reports a
                processing error.
            ExtractionTimeoutError: If the request timed out.
        """
        if not self.api_key:
            raise ExtractionError(
                "OCR API key not configured (set OCR_SPACE_API_KEY)")

        await self.check_image_size(image_url)

        client = await self._get_client()
        try:
            response = await client.post(
                self.endpoint,
                headers={"apikey": self.api_key},
                data=self._form_data(image_url),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ExtractionTimeoutError(
                f"OCR call timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ExtractionError(f"OCR request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "OCR API error: status_code=%s, detail=%s",
                response.status_code,
                response.text[:200],
            )
            raise ExtractionError(
                f"OCR API error: {response.status_code} {response.text[:200]}")

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise ExtractionError("OCR returned invalid JSON") from e
        if data.get("IsErroredOnProcessing"):
            message = data.get("ErrorMessage")
            if isinstance(message, list):
                message = "; ".join(str(m) for m in message)
            raise ExtractionError(f"OCR processing error: {message}")

        parsed = data.get("ParsedResults") or []
        if not parsed:
            return ""
        return parsed[0].get("ParsedText") or ""

    async def extract(self, image_url: str) -> ExtractionResult:
        """Run OCR and the heuristic field pass on an image URL."""
        start = time.perf_counter()
        try:
            text = await self.recognize_text(image_url)
        except ExtractionError as e:
            logger.error("OCR extraction failed: %s", str(e))
            record_extraction(ExtractionMethod.OCR.value, "failed",
                              time.perf_counter() - start)
            raise

        fields = extract_fields_from_text(text)
        elapsed = time.perf_counter() - start
        record_extraction(ExtractionMethod.OCR.value, "success", elapsed)

        return ExtractionResult.from_fields(
            fields,
            method=ExtractionMethod.OCR,
            processing_time_ms=int(elapsed * 1000),
            raw_data=OcrRawData(ocr_text=text),
        )


__all__ = [
    "KNOWN_BRANDS",
    "OcrExtractor",
    "extract_fields_from_text",
]
