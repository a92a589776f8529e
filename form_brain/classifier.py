"""Decide which form layout an image shows.

Two modes:
- prompt: ask the model for one literal label and match it by substring
  against labels and known synonyms.
- keywords: run a generic extraction, lowercase every returned string into
  one haystack and count per-form keyword hits against configurable
  thresholds.

Classification never raises; any failure degrades to Generic because a
wrong layout only costs field coverage downstream.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from form_brain.config import settings
from form_brain.gemini_client import GeminiClient, InferenceError
from form_brain.models import FormType
from form_brain.parsing import ParseError, parse_response
from form_brain.prompts import CLASSIFY_PROMPT, PROMPTS

logger = logging.getLogger(__name__)

# Checked in order; first synonym found in the cleaned answer wins
LABEL_SYNONYMS: tuple[tuple[FormType, tuple[str, ...]], ...] = (
    (FormType.HAND_RECEIPT, ("DA2062", "DA 2062", "HAND RECEIPT", "HANDRECEIPT", "2062")),
    (FormType.REQUEST_TURN_IN, ("DA3161", "DA 3161", "REQUEST FOR ISSUE", "REQUESTTURNIN", "3161")),
    (FormType.EQUIPMENT_RECORD, ("OCIE", "3645", "EQUIPMENTRECORD", "RANK/GRADE", "SSN/PID")),
)

KEYWORDS: dict[FormType, tuple[str, ...]] = {
    FormType.HAND_RECEIPT: (
        "hand receipt",
        "annex number",
        "da form 2062",
        "from:",
        "to:",
        "stock number",
        "item description",
        "publication",
        "hand receipt/annex number",
    ),
    FormType.REQUEST_TURN_IN: (
        "request for issue",
        "turn-in",
        "dodaac",
        "da form 3161",
        "request no.",
        "voucher no.",
        "send to:",
        "request from:",
        "priority",
    ),
    FormType.EQUIPMENT_RECORD: (
        "rank/grade",
        "ssn/pid",
        "cif code",
        "lin",
        "nomenclature",
        "da form 3645",
        "organizational clothing",
        "individual equipment",
        "name:",
        "unit:",
        "issuing cif",
        "size",
        "partial nsn",
        "auth qty",
        "oh qty",
        "due out",
        "pcs trans",
        "ets trans",
        "body armor",
        "fragmentation",
        "ocie record",
        "central issue facility",
        "cif",
        "dod id",
        "liability",
        "size/measurements",
        "issue",
        "turn-in",
        "authorized",
        "item description",
    ),
}


@dataclass(frozen=True)
class KeywordScore:
    form_type: FormType
    scores: dict[FormType, int]


@dataclass(frozen=True)
class KeywordClassification:
    form_type: FormType
    scores: dict[FormType, int] = field(default_factory=dict)
    generic_data: dict = field(default_factory=dict)


def match_label(answer: str) -> FormType:
    """Map a free-text label answer onto a form type."""
    cleaned = (answer or "").strip().upper()
    for form_type, synonyms in LABEL_SYNONYMS:
        if any(s in cleaned for s in synonyms):
            return form_type
    return FormType.GENERIC


def _thresholds(overrides: Mapping | None) -> dict[FormType, int]:
    raw = dict(settings.CLASSIFIER_THRESHOLDS)
    if overrides:
        raw.update({getattr(k, "value", k): v for k, v in overrides.items()})
    limits = {}
    for key, value in raw.items():
        try:
            form_type = FormType(key)
        except ValueError:
            logger.warning("Ignoring classifier threshold for unknown form type %r", key)
            continue
        limits[form_type] = int(value)
    return limits


def score_text(text: str, thresholds: Mapping | None = None) -> KeywordScore:
    """Count keyword hits per form type; the single best eligible count wins.

    A form type is eligible when its count reaches its threshold. Ties at
    the top and no eligible form both fall back to Generic.
    """
    haystack = (text or "").lower()
    limits = _thresholds(thresholds)
    scores = {ft: sum(1 for kw in words if kw in haystack) for ft, words in KEYWORDS.items()}

    eligible = {ft: s for ft, s in scores.items() if s >= limits.get(ft, 1) and s > 0}
    if not eligible:
        return KeywordScore(FormType.GENERIC, scores)

    best = max(eligible.values())
    leaders = [ft for ft, s in eligible.items() if s == best]
    if len(leaders) > 1:
        return KeywordScore(FormType.GENERIC, scores)
    return KeywordScore(leaders[0], scores)


def collect_text(obj) -> str:
    """Every string in a parsed object, joined into one lowercase haystack."""
    parts: list[str] = []

    def walk(value):
        if isinstance(value, str):
            parts.append(value)
        elif isinstance(value, Mapping):
            for v in value.values():
                walk(v)
        elif isinstance(value, list):
            for v in value:
                walk(v)

    walk(obj)
    return " ".join(parts).lower()


def classify_by_prompt(image: bytes, mime_type: str, client: GeminiClient) -> FormType:
    try:
        result = client.infer(image, mime_type, CLASSIFY_PROMPT)
    except InferenceError as e:
        logger.error("Form type detection failed: %s", e)
        return FormType.GENERIC
    form_type = match_label(result.text)
    logger.info("Classifier answer %r -> %s", result.text[:40], form_type.value)
    return form_type


def classify_by_keywords(
    image: bytes,
    mime_type: str,
    client: GeminiClient,
    thresholds: Mapping | None = None,
) -> KeywordClassification:
    """Score a generic extraction; keeps the parsed generic data for reuse."""
    try:
        result = client.infer(image, mime_type, PROMPTS[FormType.GENERIC])
        data = parse_response(result.text)
    except (InferenceError, ParseError) as e:
        logger.error("Keyword form detection failed: %s", e)
        return KeywordClassification(FormType.GENERIC)

    verdict = score_text(collect_text(data), thresholds)
    logger.info(
        "Form detection scores: %s -> %s",
        {ft.value: s for ft, s in verdict.scores.items()},
        verdict.form_type.value,
    )
    return KeywordClassification(verdict.form_type, verdict.scores, data)


def detect(image: bytes, mime_type: str, client: GeminiClient, mode: str | None = None) -> KeywordClassification:
    """Classifier verdict for *image*, with any generic data parsed on the way.

    Generic on any failure.
    """
    mode = (mode or settings.CLASSIFIER_MODE).lower()
    try:
        if mode == "keywords":
            return classify_by_keywords(image, mime_type, client)
        return KeywordClassification(classify_by_prompt(image, mime_type, client))
    except Exception:
        logger.exception("Unexpected error during form detection")
        return KeywordClassification(FormType.GENERIC)


def classify(image: bytes, mime_type: str, client: GeminiClient, mode: str | None = None) -> FormType:
    """Form type for *image*; Generic on any failure."""
    return detect(image, mime_type, client, mode=mode).form_type
