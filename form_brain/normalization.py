"""Normalize loosely-typed model output into strict per-form records.

The model can omit, mistype or misnest any field, so every field is read
through a coercion combinator with a default, and every form is described
by a field table: target attribute -> (coercer, source paths). Source paths
are dotted ("header.soldierName") and tried in order, so a nested section
wins over a flat top-level key of the same name.

Normalization never raises.
"""

import logging
import math
import re
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from form_brain.models import (
    RECEIPT_CATEGORIES,
    EquipmentItem,
    EquipmentRecord,
    FormType,
    GenericReceipt,
    HandReceipt,
    HandReceiptItem,
    RequestTurnIn,
    RequestTurnInItem,
)

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "yes", "y", "x", "1", "checked", "t"}
_FALSE_WORDS = {"false", "no", "n", "0", "", "unchecked", "f", "none"}
_NUMBER_NOISE = re.compile(r"[,$\s]")
_US_DATE = re.compile(r"(?<!\d)(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})(?!\d)")

_MISSING = object()


# --- Coercion combinators ---


def as_string(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    return default


def as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(_NUMBER_NOISE.sub("", value))
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = as_float(value, math.nan)
    if math.isnan(number):
        return default
    return int(round(number))


def as_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return default


def as_list(value: Any, normalize_item: Callable[[Mapping, int], Any]) -> list:
    """Normalize each mapping in a list independently; anything else is dropped."""
    if not isinstance(value, list):
        return []
    items = []
    for index, raw in enumerate(value):
        if not isinstance(raw, Mapping):
            logger.debug("Skipping non-object list entry %d: %r", index, raw)
            continue
        items.append(normalize_item(raw, index))
    return items


def as_date(value: Any) -> str:
    """MM/DD/YYYY (or MM-DD-YY) -> YYYY-MM-DD; anything else passes through trimmed."""
    text = as_string(value)
    match = _US_DATE.search(text)
    if not match:
        return text
    month, day, year = match.groups()
    if len(year) == 2:
        year = ("19" if int(year) >= 50 else "20") + year
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def as_category(value: Any) -> str:
    text = as_string(value).lower()
    for category in RECEIPT_CATEGORIES:
        if category.lower() == text:
            return category
    return "Other"


def as_transaction_type(value: Any) -> str:
    text = as_string(value).upper().replace(" ", "-").replace("_", "-")
    return "TURN-IN" if "TURN" in text else "ISSUE"


# --- Source lookup ---


def _squash(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


def _get(data: Any, key: str) -> Any:
    """Exact key first, then a camelCase/snake_case-insensitive match."""
    if not isinstance(data, Mapping):
        return _MISSING
    if key in data:
        return data[key]
    wanted = _squash(key)
    for candidate, value in data.items():
        if isinstance(candidate, str) and _squash(candidate) == wanted:
            return value
    return _MISSING


def _resolve(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        current = _get(current, part)
        if current is _MISSING:
            return _MISSING
    return current


def _is_empty(value: Any) -> bool:
    return value is _MISSING or value is None or (isinstance(value, str) and not value.strip())


def pick(data: Any, *paths: str) -> Any:
    """First non-empty value among *paths*, or None."""
    for path in paths:
        value = _resolve(data, path)
        if not _is_empty(value):
            return value
    return None


FieldTable = dict[str, tuple[Callable[[Any], Any], tuple[str, ...]]]


def _map_fields(data: Mapping, table: FieldTable) -> dict[str, Any]:
    return {target: coerce(pick(data, *paths)) for target, (coerce, paths) in table.items()}


def _quantity(data: Mapping, issues: list[str], label: str, *paths: str) -> int:
    value = as_int(pick(data, *paths))
    if value < 0:
        issues.append(f"Negative quantity clamped to 0: {label} was {value}")
        return 0
    return value


# --- DA 2062 ---

_HAND_RECEIPT_HEADER: FieldTable = {
    "hand_receipt_number": (as_string, ("header.handReceiptNumber", "handReceiptNumber")),
    "from_unit": (as_string, ("header.from", "from", "fromUnit")),
    "to": (as_string, ("header.to", "to")),
    "publication_date": (as_string, ("header.publicationDate", "publicationDate")),
    "page": (as_string, ("header.page", "page")),
    "total_pages": (as_string, ("header.totalPages", "totalPages")),
}

_HAND_RECEIPT_ITEM: FieldTable = {
    "stock_number": (as_string, ("stockNumber", "nsn")),
    "item_description": (as_string, ("itemDescription", "description")),
    "model_number": (as_string, ("model", "modelNumber")),
    "security_code": (as_string, ("securityCode",)),
    "unit_of_issue": (as_string, ("unitOfIssue",)),
}


def _normalize_hand_receipt_item(raw: Mapping, index: int) -> HandReceiptItem:
    issues: list[str] = []
    quantities = {
        slot: _quantity(raw, issues, f"quantity {slot}", f"quantities.{slot}", f"quantities.{slot.lower()}")
        for slot in "ABCDEF"
    }
    return HandReceiptItem(
        **_map_fields(raw, _HAND_RECEIPT_ITEM),
        quantity_auth=_quantity(raw, issues, "authorized quantity", "quantityAuth"),
        quantities=quantities,
        issues=issues,
    )


def normalize_hand_receipt(data: Mapping) -> HandReceipt:
    return HandReceipt(
        **_map_fields(data, _HAND_RECEIPT_HEADER),
        items=as_list(_get(data, "items"), _normalize_hand_receipt_item),
    )


# --- DA 3161 ---

_REQUEST_TURN_IN_HEADER: FieldTable = {
    "request_number": (as_string, ("header.requestNumber", "requestNumber")),
    "voucher_number": (as_string, ("header.voucherNumber", "voucherNumber")),
    "send_to": (as_string, ("header.sendTo", "sendTo")),
    "date_required": (as_string, ("header.dateRequired", "dateRequired")),
    "dodaac": (as_string, ("header.dodAAC", "dodAAC", "dodaac")),
    "priority": (as_string, ("header.priority", "priority")),
    "request_from": (as_string, ("header.requestFrom", "requestFrom")),
    "transaction_type": (as_transaction_type, ("header.transactionType", "transactionType")),
    "signature": (as_string, ("footer.signature", "signature")),
    "date": (as_string, ("footer.date", "date")),
}

_REQUEST_TURN_IN_ITEM: FieldTable = {
    "item_number": (as_int, ("itemNumber",)),
    "stock_number": (as_string, ("stockNumber", "nsn")),
    "item_description": (as_string, ("itemDescription", "description")),
    "unit_of_issue": (as_string, ("unitOfIssue",)),
    "code": (as_string, ("code",)),
    "supply_action": (as_string, ("supplyAction",)),
    "unit_price": (as_float, ("unitPrice",)),
    "total_cost": (as_float, ("totalCost",)),
}


def _normalize_request_turn_in_item(raw: Mapping, index: int) -> RequestTurnInItem:
    issues: list[str] = []
    fields = _map_fields(raw, _REQUEST_TURN_IN_ITEM)
    if fields["item_number"] <= 0:
        fields["item_number"] = index + 1
    return RequestTurnInItem(
        **fields,
        quantity=_quantity(raw, issues, "quantity", "quantity"),
        issues=issues,
    )


def normalize_request_turn_in(data: Mapping) -> RequestTurnIn:
    return RequestTurnIn(
        **_map_fields(data, _REQUEST_TURN_IN_HEADER),
        items=as_list(_get(data, "items"), _normalize_request_turn_in_item),
    )


# --- OCIE / DA 3645 ---

_EQUIPMENT_HEADER: FieldTable = {
    "soldier_name": (as_string, ("header.soldierName", "soldierName", "header.name", "name")),
    "rank_grade": (as_string, ("header.rankGrade", "rankGrade")),
    "dod_id": (as_string, ("header.dodId", "dodId")),
    "ssn_pid": (as_string, ("header.ssnPid", "ssnPid")),
    "unit": (as_string, ("header.unit", "unit")),
    "cif_code": (as_string, ("header.cifCode", "cifCode")),
    "report_date": (as_string, ("header.reportDate", "reportDate")),
    "total_value": (as_float, ("footer.totalValue", "totalValue")),
    "is_signed": (as_bool, ("footer.isSigned", "isSigned")),
    "signature_text": (as_string, ("footer.signatureText", "signatureText", "signature")),
    "statement_date": (as_string, ("footer.statementDate", "statementDate")),
}

_EQUIPMENT_ITEM: FieldTable = {
    "issuing_cif": (as_string, ("issuingCif",)),
    "lin": (as_string, ("lin",)),
    "size": (lambda v: as_string(v).upper(), ("size",)),
    "nomenclature": (as_string, ("nomenclature", "description")),
    "edition": (as_string, ("edition",)),
    "fig": (as_string, ("fig",)),
    "with_pc": (as_string, ("withPc",)),
    "partial_nsn": (as_string, ("partialNsn",)),
    "nsn": (as_string, ("nsn",)),
}


def _normalize_equipment_item(raw: Mapping, index: int) -> EquipmentItem:
    issues: list[str] = []
    quantities = {
        "authorized": _quantity(raw, issues, "AUTH QTY", "quantities.authorized", "authQty", "authorized"),
        "on_hand": _quantity(raw, issues, "OH QTY", "quantities.onHand", "onHandQty", "ohQty"),
        "due_out": _quantity(raw, issues, "DUE OUT", "quantities.dueOut", "dueOut"),
    }
    flags = {
        "pcs_trans": as_bool(pick(raw, "flags.pcsTrans", "pcsTrans")),
        "ets_trans": as_bool(pick(raw, "flags.etsTrans", "etsTrans")),
    }
    return EquipmentItem(
        id=f"ocie-item-{index}-{uuid.uuid4().hex[:8]}",
        **_map_fields(raw, _EQUIPMENT_ITEM),
        quantities=quantities,
        flags=flags,
        issues=issues,
    )


def normalize_equipment_record(data: Mapping) -> EquipmentRecord:
    return EquipmentRecord(
        **_map_fields(data, _EQUIPMENT_HEADER),
        items=as_list(_get(data, "items"), _normalize_equipment_item),
    )


# --- Generic ---

_GENERIC: FieldTable = {
    "item_name": (as_string, ("itemName",)),
    "borrower_name": (as_string, ("borrowerName",)),
    "date": (as_date, ("date",)),
    "serial_number": (as_string, ("serialNumber",)),
    "category": (as_category, ("category",)),
    "condition": (as_string, ("condition",)),
    "notes": (as_string, ("notes",)),
}


def normalize_generic(data: Mapping) -> GenericReceipt:
    return GenericReceipt(**_map_fields(data, _GENERIC))


_NORMALIZERS: dict[FormType, Callable[[Mapping], Any]] = {
    FormType.HAND_RECEIPT: normalize_hand_receipt,
    FormType.REQUEST_TURN_IN: normalize_request_turn_in,
    FormType.EQUIPMENT_RECORD: normalize_equipment_record,
    FormType.GENERIC: normalize_generic,
}


def normalize(data: Any, form_type: FormType) -> HandReceipt | RequestTurnIn | EquipmentRecord | GenericReceipt:
    """Build the strict record for *form_type*; non-mapping input yields all defaults."""
    if not isinstance(data, Mapping):
        data = {}
    return _NORMALIZERS[FormType(form_type)](data)
