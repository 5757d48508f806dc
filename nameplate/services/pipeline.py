"""Per-image extraction orchestration.

The pipeline resolves a readable URL for a stored image, runs the extractors
the requested method calls for, and returns one canonicalized result:

- ``llm``: the vision model alone.
- ``hybrid``: vision model and OCR concurrently, the rule battery over the
  OCR text, then a field-by-field combination in trust order
  (vision, OCR, rules). Individual extractor failures are logged and
  dropped; if everything fails the result simply has no fields.
"""

from __future__ import annotations

import asyncio
import time

from nameplate.domain.errors import NameplateError, PipelineError
from nameplate.domain.models import (
    FIELD_NAMES,
    ExtractionMethod,
    ExtractionResult,
    HybridRawData,
    ImageReference,
    LlmRawData,
    OcrRawData,
    RuleRawData,
    StorageNamespace,
)
from nameplate.infrastructure.ai import (
    OcrExtractor,
    RuleBasedExtractor,
    VisionExtractor,
)
from nameplate.infrastructure.observability import (
    get_logger,
    log_context,
    log_exception,
    record_extraction,
)
from nameplate.infrastructure.storage import (
    DEFAULT_SIGNED_URL_TTL_SECONDS,
    BlobStore,
)

from .canonicalize import canonicalize_result
from .combiner import combine

logger = get_logger(__name__)


class ExtractionPipeline:
    """Runs the extractors for one image and merges their output."""

    def __init__(
        self,
        blob_store: BlobStore,
        vision_extractor: VisionExtractor,
        ocr_extractor: OcrExtractor | None = None,
        rule_extractor: RuleBasedExtractor | None = None,
        *,
        signed_url_ttl: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
    ) -> None:
        self.blob_store = blob_store
        self.vision_extractor = vision_extractor
        self.ocr_extractor = ocr_extractor
        self.rule_extractor = rule_extractor or RuleBasedExtractor()
        self.signed_url_ttl = signed_url_ttl

    async def __aenter__(self) -> "ExtractionPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP clients held by the extractors and the blob store."""
        await self.vision_extractor.close()
        if self.ocr_extractor is not None:
            await self.ocr_extractor.close()
        await self.blob_store.close()

    async def resolve_url(
        self, image: ImageReference, namespace: StorageNamespace
    ) -> str:
        """Sign the image's storage path so remote extractors can read it."""
        try:
            return await self.blob_store.sign(
                namespace, image.storage_path, self.signed_url_ttl)
        except NameplateError as e:
            raise PipelineError(
                f"Failed to get signed URL for {image.storage_path}: {e}"
            ) from e

    async def process_image(
        self,
        image: ImageReference,
        method: ExtractionMethod = ExtractionMethod.LLM,
        model_name: str | None = None,
        *,
        namespace: StorageNamespace = StorageNamespace.PRODUCTION,
    ) -> ExtractionResult:
        """Extract nameplate fields from a stored image.

        Args:
            image: The stored image to process.
            method: ``llm`` or ``hybrid``.
            model_name: Vision model override.
            namespace: Bucket the image lives in.

        Raises:
            ValueError: If the method is not supported by the pipeline.
            PipelineError: If no readable URL could be obtained.
            ExtractionError: In ``llm`` mode, when the vision model fails.
        """
        if method not in (ExtractionMethod.LLM, ExtractionMethod.HYBRID):
            raise ValueError(f"Unsupported extraction method: {method.value}")

        with log_context(image_id=image.id, method=method.value):
            start = time.perf_counter()
            logger.info("Processing image %s", image.storage_path)
            try:
                image_url = await self.resolve_url(image, namespace)
                if method == ExtractionMethod.HYBRID:
                    result = await self._process_hybrid(image_url, model_name)
                else:
                    result = await self.vision_extractor.extract(
                        image_url, model=model_name)
            except Exception:
                record_extraction(f"pipeline_{method.value}", "failed",
                                  time.perf_counter() - start)
                raise

            elapsed = time.perf_counter() - start
            record_extraction(f"pipeline_{method.value}", "success", elapsed)
            result = canonicalize_result(result).with_changes(
                processing_time_ms=int(elapsed * 1000))
            logger.info("Extracted %d fields in %dms",
                        sum(1 for name in FIELD_NAMES if result.get(name)),
                        result.processing_time_ms)
            return result

    async def _process_hybrid(
        self, image_url: str, model_name: str | None
    ) -> ExtractionResult:
        if self.ocr_extractor is not None:
            vision_outcome, ocr_outcome = await asyncio.gather(
                self.vision_extractor.extract(image_url, model=model_name),
                self.ocr_extractor.extract(image_url),
                return_exceptions=True,
            )
        else:
            (vision_outcome,) = await asyncio.gather(
                self.vision_extractor.extract(image_url, model=model_name),
                return_exceptions=True,
            )
            ocr_outcome = None

        successes: list[ExtractionResult] = []
        llm_response = None
        ocr_text = None
        rule_matches = None

        if isinstance(vision_outcome, ExtractionResult):
            successes.append(vision_outcome)
            if isinstance(vision_outcome.raw_data, LlmRawData):
                llm_response = vision_outcome.raw_data.llm_response
        elif isinstance(vision_outcome, BaseException):
            logger.error("Vision extraction failed in hybrid mode: %s",
                         str(vision_outcome))

        if isinstance(ocr_outcome, ExtractionResult):
            successes.append(ocr_outcome)
            if isinstance(ocr_outcome.raw_data, OcrRawData):
                ocr_text = ocr_outcome.raw_data.ocr_text
        elif isinstance(ocr_outcome, BaseException):
            logger.error("OCR extraction failed in hybrid mode: %s",
                         str(ocr_outcome))

        if ocr_text:
            try:
                rule_result = self.rule_extractor.extract(ocr_text)
            except Exception as e:
                log_exception(logger, "Rule-based extraction failed", e)
            else:
                successes.append(rule_result)
                if isinstance(rule_result.raw_data, RuleRawData):
                    rule_matches = rule_result.raw_data.rule_matches

        if not successes:
            logger.warning("All extractors failed; returning empty result")

        return ExtractionResult.from_fields(
            combine(successes),
            method=ExtractionMethod.HYBRID,
            raw_data=HybridRawData(
                llm_response=llm_response,
                ocr_text=ocr_text,
                rule_matches=rule_matches,
            ),
        )
