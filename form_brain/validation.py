"""Per-item and per-record consistency rules.

Issues are advisory strings: an item with issues is still usable. OCR
output is inherently uncertain, so the goal is to surface doubt, not to
block the workflow. Nothing here raises.
"""

import re

from form_brain.models import (
    EquipmentItem,
    EquipmentRecord,
    FormType,
    GenericReceipt,
    HandReceipt,
    HandReceiptItem,
    RequestTurnIn,
    RequestTurnInItem,
)

NSN_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{3}-\d{4}$")
PARTIAL_NSN_PATTERN = re.compile(r"^\d{4}$")
# Something that was probably meant to be an NSN (13 digits, any separators)
_NSN_LIKE = re.compile(r"^\d{4}\D?\d{2}\D?\d{3}\D?\d{4}$")

SIZE_VOCABULARY = ("LRG", "MED", "SML", "REG", "XS", "XL", "XXL", "SM", "LG", "SHORT", "LONG")
# 7, 7 1/8, 10R, 32X30, 9 1/2W
SIZE_NUMERIC_PATTERN = re.compile(r"^\d+(?:\s?\d+/\d+|/\d+)?(?:X\d+)?[A-Z]{0,2}\b")

COST_TOLERANCE = 0.01


def _nsn_issues(nsn: str) -> list[str]:
    if nsn and not NSN_PATTERN.match(nsn):
        return [f"Invalid NSN format: {nsn}"]
    return []


def _negative_issue(*quantities: int) -> list[str]:
    if any(q < 0 for q in quantities):
        return ["Negative quantity detected"]
    return []


def _size_is_known(size: str) -> bool:
    size = size.upper()
    return any(word in size for word in SIZE_VOCABULARY) or bool(SIZE_NUMERIC_PATTERN.match(size))


def validate_equipment_item(item: EquipmentItem) -> list[str]:
    issues = _nsn_issues(item.nsn)
    if item.partial_nsn and not PARTIAL_NSN_PATTERN.match(item.partial_nsn):
        issues.append(f"Invalid Partial NSN format: {item.partial_nsn}")

    q = item.quantities
    if q.on_hand > q.authorized:
        issues.append(f"OH QTY ({q.on_hand}) > AUTH QTY ({q.authorized})")
    issues += _negative_issue(q.authorized, q.on_hand, q.due_out)

    if item.size and not _size_is_known(item.size):
        issues.append(f"Unusual size format: {item.size}")
    return issues


def validate_hand_receipt_item(item: HandReceiptItem) -> list[str]:
    q = item.quantities
    return _nsn_issues(item.stock_number) + _negative_issue(item.quantity_auth, q.A, q.B, q.C, q.D, q.E, q.F)


def validate_request_turn_in_item(item: RequestTurnInItem) -> list[str]:
    issues = _nsn_issues(item.stock_number) + _negative_issue(item.quantity)
    if item.unit_price < 0 or item.total_cost < 0:
        issues.append("Negative amount detected")
    if item.unit_price > 0 and item.total_cost > 0 and item.quantity > 0:
        expected = round(item.unit_price * item.quantity, 2)
        if abs(expected - item.total_cost) > COST_TOLERANCE:
            issues.append(
                f"Total cost ({item.total_cost:.2f}) does not match "
                f"quantity x unit price ({expected:.2f})"
            )
    return issues


_ITEM_VALIDATORS = {
    FormType.HAND_RECEIPT: validate_hand_receipt_item,
    FormType.REQUEST_TURN_IN: validate_request_turn_in_item,
    FormType.EQUIPMENT_RECORD: validate_equipment_item,
}


def validate_item(item, form_type: FormType) -> list[str]:
    """Issues for one line item. Generic records have no line items."""
    validator = _ITEM_VALIDATORS.get(FormType(form_type))
    if validator is None:
        return []
    return validator(item)


# --- Record-level warnings ---

# (attribute, message) pairs checked on the header
_REQUIRED_HEADER = {
    FormType.HAND_RECEIPT: (("to", "Missing recipient"), ("from_unit", "Missing issuing unit")),
    FormType.REQUEST_TURN_IN: (("request_from", "Missing requesting unit"), ("send_to", "Missing send-to activity")),
    FormType.EQUIPMENT_RECORD: (
        ("soldier_name", "Missing soldier name"),
        ("ssn_pid", "Missing SSN/PID"),
        ("unit", "Missing unit information"),
    ),
    FormType.GENERIC: (("item_name", "Missing item name"), ("borrower_name", "Missing borrower name")),
}


def _quantity(item: HandReceiptItem | RequestTurnInItem) -> int:
    if isinstance(item, HandReceiptItem):
        return max(item.quantity_auth, *item.quantities.model_dump().values())
    return item.quantity


def _item_gaps(record) -> list[str]:
    warnings = []
    for n, item in enumerate(record.items, start=1):
        if isinstance(item, EquipmentItem):
            if not item.lin:
                warnings.append(f"Item {n}: Missing LIN")
            if not item.nomenclature:
                warnings.append(f"Item {n}: Missing nomenclature")
            if item.quantities.on_hand <= 0:
                warnings.append(f"Item {n}: Missing on-hand quantity")
        else:
            if not item.stock_number:
                warnings.append(f"Item {n}: Missing stock number")
            if not item.item_description:
                warnings.append(f"Item {n}: Missing item description")
            if _quantity(item) <= 0:
                warnings.append(f"Item {n}: Missing quantity")
    return warnings


def validate_header(record: HandReceipt | RequestTurnIn | EquipmentRecord | GenericReceipt) -> list[str]:
    """Record-level warnings: missing key header fields and item gaps."""
    form_type = FormType(record.form_type)
    warnings = [message for attr, message in _REQUIRED_HEADER[form_type] if not getattr(record, attr)]

    if isinstance(record, GenericReceipt):
        if record.serial_number and _NSN_LIKE.match(record.serial_number):
            warnings += _nsn_issues(record.serial_number)
        return warnings

    if not record.items:
        warnings.append("No items found")
    else:
        warnings += _item_gaps(record)
    return warnings


def annotate(record):
    """Copy of *record* whose items carry their validation issues.

    Issues already present (e.g. recorded while normalizing) are kept.
    """
    if isinstance(record, GenericReceipt):
        return record.model_copy(deep=True)
    items = [
        item.model_copy(update={"issues": _merge(item.issues, validate_item(item, record.form_type))})
        for item in record.items
    ]
    return record.model_copy(update={"items": items}, deep=True)


def _merge(existing: list[str], found: list[str]) -> list[str]:
    return existing + [issue for issue in found if issue not in existing]
