"""Tests for CSV export of receipts."""

import csv
import io

from form_brain.export import COLUMNS, flatten, iter_csv, to_csv
from form_brain.models import (
    EquipmentItem,
    EquipmentQuantities,
    EquipmentRecord,
    FormType,
    GenericReceipt,
    HandReceipt,
    HandReceiptItem,
    Receipt,
)


def _hand_receipt() -> Receipt:
    data = HandReceipt(
        hand_receipt_number="HR-1",
        from_unit="B CO",
        to="SGT Smith",
        items=[
            HandReceiptItem(stock_number="1005-01-231-0973", item_description="RIFLE, 5.56MM M4", quantity_auth=1),
            HandReceiptItem(stock_number="bad", issues=["Invalid NSN format: bad", "Negative quantity detected"]),
        ],
    )
    return Receipt(form_type=FormType.HAND_RECEIPT, data=data, timestamp=0)


class TestFlatten:
    def test_one_row_per_item(self):
        rows = flatten(_hand_receipt())

        assert [r["line"] for r in rows] == [1, 2]
        assert rows[0]["document_number"] == "HR-1"
        assert rows[0]["to"] == "SGT Smith"
        assert rows[0]["quantity"] == 1
        assert rows[1]["issues"] == "Invalid NSN format: bad; Negative quantity detected"
        assert rows[0]["timestamp"] == "1970-01-01T00:00:00+00:00"
        assert all(set(r) == set(COLUMNS) for r in rows)

    def test_generic_is_one_row(self):
        receipt = Receipt(
            form_type=FormType.GENERIC,
            data=GenericReceipt(item_name="Radio", borrower_name="SPC Lee", serial_number="W1", category="Radios/Comms"),
            notes="loaner",
        )

        [row] = flatten(receipt)

        assert row["description"] == "Radio"
        assert row["to"] == "SPC Lee"
        assert row["category"] == "Radios/Comms"
        assert row["line"] == ""
        assert row["notes"] == "loaner"

    def test_itemless_record_is_one_row(self):
        data = EquipmentRecord(soldier_name="DOE, JOHN", rank_grade="SGT", unit="HHC")
        [row] = flatten(Receipt(form_type=FormType.EQUIPMENT_RECORD, data=data))

        assert row["to"] == "SGT DOE, JOHN"
        assert row["from"] == "HHC"

    def test_equipment_item_columns(self):
        item = EquipmentItem(lin="H53342", nomenclature="HELMET", size="MED", quantities=EquipmentQuantities(on_hand=2))
        data = EquipmentRecord(items=[item])
        [row] = flatten(Receipt(form_type=FormType.EQUIPMENT_RECORD, data=data))

        assert (row["lin"], row["description"], row["size"], row["quantity"]) == ("H53342", "HELMET", "MED", 2)


class TestCsv:
    def test_header_and_quoting(self):
        text = to_csv([_hand_receipt()])

        assert text.splitlines()[0] == ",".join(COLUMNS)
        rows = list(csv.DictReader(io.StringIO(text)))
        assert len(rows) == 2
        assert rows[0]["description"] == "RIFLE, 5.56MM M4"
        assert rows[0]["from"] == "B CO"

    def test_streams_one_chunk_per_receipt(self):
        chunks = list(iter_csv([_hand_receipt(), _hand_receipt()]))
        assert len(chunks) == 3

    def test_no_receipts_is_header_only(self):
        assert to_csv([]).strip() == ",".join(COLUMNS)
