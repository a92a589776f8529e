"""Row-wise CSV export of stored receipts.

Every form type maps onto one fixed column set: one row per line item, or
a single row for Generic and item-less records.
"""

import csv
import io
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone

from form_brain.models import EquipmentRecord, GenericReceipt, HandReceipt, LineItem, Receipt, RequestTurnIn

COLUMNS = (
    "id",
    "form_type",
    "timestamp",
    "document_number",
    "from",
    "to",
    "date",
    "line",
    "stock_number",
    "lin",
    "description",
    "size",
    "unit_of_issue",
    "quantity",
    "serial_number",
    "category",
    "condition",
    "confidence",
    "issues",
    "notes",
)


def _header(data) -> dict:
    if isinstance(data, HandReceipt):
        return {
            "document_number": data.hand_receipt_number,
            "from": data.from_unit,
            "to": data.to,
            "date": data.publication_date,
        }
    if isinstance(data, RequestTurnIn):
        return {
            "document_number": data.request_number,
            "from": data.request_from,
            "to": data.send_to,
            "date": data.date or data.date_required,
        }
    if isinstance(data, EquipmentRecord):
        return {
            "document_number": data.cif_code,
            "from": data.unit,
            "to": f"{data.rank_grade} {data.soldier_name}".strip(),
            "date": data.report_date,
        }
    return {
        "to": data.borrower_name,
        "date": data.date,
        "description": data.item_name,
        "serial_number": data.serial_number,
        "category": data.category,
        "condition": data.condition,
    }


def _item(item: LineItem) -> dict:
    if hasattr(item, "lin"):
        return {
            "stock_number": item.nsn,
            "lin": item.lin,
            "description": item.nomenclature,
            "size": item.size,
            "quantity": item.quantities.on_hand,
        }
    quantity = item.quantity_auth if hasattr(item, "quantity_auth") else item.quantity
    return {
        "stock_number": item.stock_number,
        "description": item.item_description,
        "unit_of_issue": item.unit_of_issue,
        "quantity": quantity,
    }


def flatten(receipt: Receipt) -> list[dict]:
    """CSV rows for one receipt, keyed by COLUMNS."""
    base = dict.fromkeys(COLUMNS, "")
    base.update(
        id=receipt.id,
        form_type=receipt.form_type.value,
        timestamp=datetime.fromtimestamp(receipt.timestamp / 1000, tz=timezone.utc).isoformat(),
        confidence=receipt.confidence.overall,
        notes=receipt.notes,
    )
    base.update(_header(receipt.data))

    items = [] if isinstance(receipt.data, GenericReceipt) else receipt.data.items
    if not items:
        return [base]

    rows = []
    for line, item in enumerate(items, start=1):
        row = {**base, **_item(item), "line": line, "confidence": item.confidence}
        row["issues"] = "; ".join(item.issues)
        rows.append(row)
    return rows


def iter_csv(receipts: Iterable[Receipt]) -> Iterator[str]:
    """CSV text chunk by chunk: the header line, then one chunk per receipt."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=COLUMNS)
    writer.writeheader()
    yield buffer.getvalue()
    buffer.seek(0)
    buffer.truncate(0)

    for receipt in receipts:
        writer.writerows(flatten(receipt))
        yield buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)


def to_csv(receipts: Iterable[Receipt]) -> str:
    return "".join(iter_csv(receipts))
