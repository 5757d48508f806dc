"""Application services: orchestration, persistence and evaluation."""

from .batch import (BatchItem, BatchReport, FieldMatches, compare_fields,
                    run_batch, summarize_accuracy)
from .canonicalize import (canonicalize_brand, canonicalize_model_number,
                           canonicalize_product_family, canonicalize_result,
                           canonicalize_serial_number)
from .combiner import combine
from .extraction_service import (ExtractionOutcome, ExtractionService,
                                 UploadRejectedError, validate_upload)
from .pipeline import ExtractionPipeline

__all__ = [
    "BatchItem",
    "BatchReport",
    "ExtractionOutcome",
    "ExtractionPipeline",
    "ExtractionService",
    "FieldMatches",
    "UploadRejectedError",
    "canonicalize_brand",
    "canonicalize_model_number",
    "canonicalize_product_family",
    "canonicalize_result",
    "canonicalize_serial_number",
    "combine",
    "compare_fields",
    "run_batch",
    "summarize_accuracy",
    "validate_upload",
]
