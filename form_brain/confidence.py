"""Confidence scoring for extracted records.

These numbers are a heuristic proxy for extraction completeness based on
field presence and shape. They are NOT statistical confidence intervals
and say nothing about whether a value was read correctly; test
expectations here pin the heuristic, not ground-truth accuracy.

Per item: critical fields (identity code, description, primary quantity)
contribute 0 or 100 times their weight; each non-empty bonus field adds a
flat BONUS_POINTS with BONUS_WEIGHT. Score = weighted sum / total weight,
capped at 100. Per header: share of expected header fields that are
non-empty. Overall: mean of header and items.

All scores round half up (62.5 -> 63), not to the nearest even integer.
"""

from collections.abc import Callable
from typing import Any

from form_brain.models import (
    ConfidenceScore,
    EquipmentItem,
    FormType,
    GenericReceipt,
    HandReceiptItem,
    RequestTurnInItem,
)

IDENTITY_WEIGHT = 1.5
DESCRIPTION_WEIGHT = 2.0
QUANTITY_WEIGHT = 2.0
BONUS_POINTS = 10
BONUS_WEIGHT = 0.5

MIN_IDENTITY_LENGTH = 4
MIN_DESCRIPTION_LENGTH = 10

# (name, weight, passes?) per form type
Critical = tuple[str, float, Callable[[Any], bool]]


def _long_enough(minimum: int, exclusive: bool = False) -> Callable[[str], bool]:
    if exclusive:
        return lambda value: len(value.strip()) > minimum
    return lambda value: len(value.strip()) >= minimum


_identity_ok = _long_enough(MIN_IDENTITY_LENGTH)
_description_ok = _long_enough(MIN_DESCRIPTION_LENGTH, exclusive=True)

_CRITICAL: dict[FormType, tuple[Critical, ...]] = {
    FormType.EQUIPMENT_RECORD: (
        ("lin", IDENTITY_WEIGHT, lambda i: _identity_ok(i.lin)),
        ("nomenclature", DESCRIPTION_WEIGHT, lambda i: _description_ok(i.nomenclature)),
        ("quantities", QUANTITY_WEIGHT, lambda i: i.quantities.on_hand > 0),
    ),
    FormType.HAND_RECEIPT: (
        ("stock_number", IDENTITY_WEIGHT, lambda i: _identity_ok(i.stock_number)),
        ("item_description", DESCRIPTION_WEIGHT, lambda i: _description_ok(i.item_description)),
        (
            "quantities",
            QUANTITY_WEIGHT,
            lambda i: i.quantity_auth > 0 or any(v > 0 for v in i.quantities.model_dump().values()),
        ),
    ),
    FormType.REQUEST_TURN_IN: (
        ("stock_number", IDENTITY_WEIGHT, lambda i: _identity_ok(i.stock_number)),
        ("item_description", DESCRIPTION_WEIGHT, lambda i: _description_ok(i.item_description)),
        ("quantity", QUANTITY_WEIGHT, lambda i: i.quantity > 0),
    ),
    FormType.GENERIC: (
        ("serial_number", IDENTITY_WEIGHT, lambda r: _identity_ok(r.serial_number)),
        ("item_name", DESCRIPTION_WEIGHT, lambda r: bool(r.item_name.strip())),
        ("borrower_name", QUANTITY_WEIGHT, lambda r: bool(r.borrower_name.strip())),
    ),
}

_BONUS: dict[FormType, tuple[str, ...]] = {
    FormType.EQUIPMENT_RECORD: ("size", "nsn", "issuing_cif"),
    FormType.HAND_RECEIPT: ("unit_of_issue", "model_number", "security_code"),
    FormType.REQUEST_TURN_IN: ("unit_of_issue", "code", "supply_action"),
    FormType.GENERIC: ("condition", "date"),
}

HEADER_FIELDS: dict[FormType, tuple[str, ...]] = {
    FormType.EQUIPMENT_RECORD: ("soldier_name", "rank_grade", "ssn_pid", "unit", "cif_code", "report_date"),
    FormType.HAND_RECEIPT: ("hand_receipt_number", "from_unit", "to", "publication_date"),
    FormType.REQUEST_TURN_IN: ("request_number", "send_to", "date_required", "dodaac", "priority", "request_from"),
    FormType.GENERIC: ("item_name", "borrower_name", "date", "serial_number", "condition"),
}


def round_half_up(value: float) -> int:
    return int(value + 0.5)


def score_item(item: EquipmentItem | HandReceiptItem | RequestTurnInItem | GenericReceipt, form_type: FormType) -> int:
    """Weighted presence score for one line item (or a whole Generic record)."""
    form_type = FormType(form_type)
    score = 0.0
    total_weight = 0.0

    for _name, weight, passes in _CRITICAL[form_type]:
        score += (100 if passes(item) else 0) * weight
        total_weight += weight

    for name in _BONUS[form_type]:
        value = getattr(item, name, "")
        if isinstance(value, str) and value.strip():
            score += BONUS_POINTS
            total_weight += BONUS_WEIGHT

    return min(100, round_half_up(score / total_weight))


def score_header(record) -> tuple[int, dict[str, int]]:
    """Share of expected header fields that are filled, and the per-field map."""
    names = HEADER_FIELDS[FormType(record.form_type)]
    fields = {}
    for name in names:
        value = getattr(record, name, "")
        fields[name] = 100 if isinstance(value, str) and value.strip() else 0
    header = round_half_up(sum(fields.values()) / len(names)) if names else 0
    return header, fields


def score_items(record) -> int:
    form_type = FormType(record.form_type)
    if isinstance(record, GenericReceipt):
        return score_item(record, form_type)
    if not record.items:
        return 0
    scores = [score_item(item, form_type) for item in record.items]
    return round_half_up(sum(scores) / len(scores))


def score_record(record) -> ConfidenceScore:
    """Header, items and overall scores for a normalized record."""
    header, fields = score_header(record)
    items = score_items(record)
    return ConfidenceScore(
        overall=round_half_up((header + items) / 2),
        header=header,
        items=items,
        fields=fields,
    )


def with_item_scores(record):
    """Copy of *record* whose items carry their own confidence."""
    if isinstance(record, GenericReceipt):
        return record.model_copy(deep=True)
    form_type = FormType(record.form_type)
    items = [item.model_copy(update={"confidence": score_item(item, form_type)}) for item in record.items]
    return record.model_copy(update={"items": items}, deep=True)
