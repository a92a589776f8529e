"""Extraction orchestrator: classify, call Gemini, parse, normalize, validate, score.

The user-visible contract is "always get a record back": dedicated-form
failures fall back to the generic path, and if that fails too the caller
gets a defaulted Generic record with zero confidence and a warning.
"""

import logging
import time
from collections.abc import Iterable, Mapping

from form_brain.classifier import detect
from form_brain.confidence import score_record, with_item_scores
from form_brain.gemini_client import GeminiClient, InferenceError
from form_brain.models import ConfidenceScore, ExtractionResult, FormType, GenericReceipt
from form_brain.normalization import normalize
from form_brain.parsing import ParseError, parse_response
from form_brain.prompts import PROMPTS
from form_brain.validation import annotate, validate_header

logger = logging.getLogger(__name__)


def extract(image: bytes, mime_type: str, form_type: FormType, client: GeminiClient) -> str:
    """Raw model text for *form_type*. Raises InferenceError when no model answers."""
    result = client.infer(image, mime_type, PROMPTS[FormType(form_type)])
    logger.info("Extraction for %s answered by %s", FormType(form_type).value, result.model)
    return result.text


def build_result(
    parsed: Mapping,
    form_type: FormType,
    warnings: Iterable[str] = (),
    elapsed_ms: int = 0,
) -> ExtractionResult:
    """Normalize -> validate -> score a parsed model object."""
    record = normalize(parsed, form_type)
    record = with_item_scores(annotate(record))
    return ExtractionResult(
        data=record,
        confidence=score_record(record),
        warnings=[*warnings, *validate_header(record)],
        processing_time_ms=elapsed_ms,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def process_image(
    image: bytes,
    mime_type: str,
    client: GeminiClient,
    form_type: FormType | None = None,
    mode: str | None = None,
) -> ExtractionResult:
    """Run the full pipeline on one image. Never raises for inference/parse failures.

    *form_type* skips classification (a user-chosen layout); *mode* picks the
    classifier ("prompt" or "keywords", default from settings).
    """
    start = time.monotonic()
    warnings: list[str] = []
    generic_data: dict | None = None

    # Byte count only, never image content
    logger.info("Processing image: type=%s size=%d bytes", mime_type, len(image))

    if form_type is None:
        verdict = detect(image, mime_type, client, mode=mode)
        form_type = verdict.form_type
        # Keyword mode already ran the generic extraction
        generic_data = verdict.generic_data or None
    form_type = FormType(form_type)
    logger.info("Detected form type: %s", form_type.value)

    if form_type != FormType.GENERIC:
        try:
            parsed = parse_response(extract(image, mime_type, form_type, client))
            return build_result(parsed, form_type, warnings, _elapsed_ms(start))
        except (InferenceError, ParseError) as e:
            logger.error("%s extraction failed, falling back to generic: %s", form_type.value, e)
            warnings.append(f"{form_type.value} extraction failed ({e}); fell back to generic extraction")

    if generic_data is not None:
        return build_result(generic_data, FormType.GENERIC, warnings, _elapsed_ms(start))

    try:
        parsed = parse_response(extract(image, mime_type, FormType.GENERIC, client))
        return build_result(parsed, FormType.GENERIC, warnings, _elapsed_ms(start))
    except (InferenceError, ParseError) as e:
        logger.error("Generic extraction failed: %s", e)
        warnings.append(f"Could not extract any fields from the image: {e}")

    return ExtractionResult(
        data=GenericReceipt(),
        confidence=ConfidenceScore.zero(),
        warnings=warnings,
        processing_time_ms=_elapsed_ms(start),
    )


