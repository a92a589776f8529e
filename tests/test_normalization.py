"""Tests for turning loose model output into strict records."""

import re

import pytest

from form_brain.models import EquipmentRecord, FormType, GenericReceipt, HandReceipt, RequestTurnIn
from form_brain.normalization import (
    as_bool,
    as_category,
    as_date,
    as_float,
    as_int,
    as_string,
    as_transaction_type,
    normalize,
    pick,
)
from form_brain.parsing import parse_response


class TestCoercion:
    @pytest.mark.parametrize(
        "value, expected",
        [("2", 2), (" 7 ", 7), ("1,200", 1200), ("2.6", 3), (4.0, 4), ("abc", 0), (None, 0), (True, 0), ([], 0)],
    )
    def test_as_int(self, value, expected):
        assert as_int(value) == expected

    def test_as_float_strips_currency(self):
        assert as_float("$1,234.50") == 1234.5
        assert as_float("n/a") == 0.0
        assert as_float(float("inf")) == 0.0

    @pytest.mark.parametrize(
        "value, expected",
        [("Yes", True), ("x", True), ("TRUE", True), (1, True), ("no", False), ("", False), ("maybe", False), (None, False)],
    )
    def test_as_bool(self, value, expected):
        assert as_bool(value) is expected

    def test_as_string(self):
        assert as_string("  SGT Smith ") == "SGT Smith"
        assert as_string(12) == "12"
        assert as_string(3.0) == "3"
        assert as_string(None) == ""
        assert as_string({"nested": "object"}) == ""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("03/15/2024", "2024-03-15"),
            ("3/5/99", "1999-03-05"),
            ("01-02-24", "2024-01-02"),
            ("2024-03-15", "2024-03-15"),
            ("15 MAR 2024", "15 MAR 2024"),
            (None, ""),
        ],
    )
    def test_as_date(self, value, expected):
        assert as_date(value) == expected

    def test_as_category(self):
        assert as_category("weapons") == "Weapons"
        assert as_category("radios/comms") == "Radios/Comms"
        assert as_category("Snacks") == "Other"

    def test_as_transaction_type(self):
        assert as_transaction_type("Turn In") == "TURN-IN"
        assert as_transaction_type("turn_in") == "TURN-IN"
        assert as_transaction_type("issue") == "ISSUE"
        assert as_transaction_type(None) == "ISSUE"


class TestPick:
    def test_nested_section_wins(self):
        data = {"header": {"unit": "A CO"}, "unit": "B CO"}
        assert pick(data, "header.unit", "unit") == "A CO"

    def test_empty_nested_value_falls_through(self):
        data = {"header": {"unit": "  "}, "unit": "B CO"}
        assert pick(data, "header.unit", "unit") == "B CO"

    def test_snake_case_tolerated(self):
        assert pick({"soldier_name": "DOE"}, "soldierName") == "DOE"

    def test_missing_is_none(self):
        assert pick({"header": "not a mapping"}, "header.unit", "unit") is None


class TestDefaults:
    @pytest.mark.parametrize(
        "form_type, expected",
        [
            (FormType.HAND_RECEIPT, HandReceipt()),
            (FormType.REQUEST_TURN_IN, RequestTurnIn()),
            (FormType.EQUIPMENT_RECORD, EquipmentRecord()),
            (FormType.GENERIC, GenericReceipt()),
        ],
    )
    def test_empty_object_yields_documented_defaults(self, form_type, expected):
        assert normalize({}, form_type) == expected

    @pytest.mark.parametrize("junk", [None, "text", [1, 2], 42])
    def test_non_object_input_yields_defaults(self, junk):
        assert normalize(junk, FormType.HAND_RECEIPT) == HandReceipt()


class TestHandReceipt:
    def test_model_text_to_record(self):
        raw = (
            'Here you go:\n```json\n{"to":"SGT Smith","items":[{"stockNumber":"1005-01-231-0001",'
            '"quantities":{"A":"2"}}]}\n```'
        )
        record = normalize(parse_response(raw), FormType.HAND_RECEIPT)

        assert record.to == "SGT Smith"
        assert len(record.items) == 1
        item = record.items[0]
        assert item.stock_number == "1005-01-231-0001"
        assert item.quantity_auth == 0
        assert item.quantities.A == 2
        assert [item.quantities.B, item.quantities.C, item.quantities.D, item.quantities.E, item.quantities.F] == [0] * 5

    def test_header_fields(self, hand_receipt_response):
        record = normalize(parse_response(hand_receipt_response), FormType.HAND_RECEIPT)

        assert record.hand_receipt_number == "HR-2024-017"
        assert record.from_unit == "B CO 1-114 IN"
        assert record.items[0].model_number == "M4"
        assert record.items[0].quantity_auth == 1

    def test_negative_quantity_clamped_and_recorded(self):
        record = normalize({"items": [{"quantities": {"B": -3}}]}, FormType.HAND_RECEIPT)

        item = record.items[0]
        assert item.quantities.B == 0
        assert item.issues == ["Negative quantity clamped to 0: quantity B was -3"]


class TestRequestTurnIn:
    def test_items_numbered_when_missing(self):
        data = {"items": [{"stockNumber": "5820-01-451-8250"}, {"itemNumber": "7", "quantity": "2"}]}
        record = normalize(data, FormType.REQUEST_TURN_IN)

        assert [i.item_number for i in record.items] == [1, 7]
        assert record.items[1].quantity == 2

    def test_header_and_footer(self):
        data = {
            "header": {"requestNumber": "R-17", "dodAAC": "W90ABC", "transactionType": "Turn-In"},
            "footer": {"signature": "J. DOE", "date": "2024-04-01"},
            "items": [{"unitPrice": "$12.50", "totalCost": "25"}],
        }
        record = normalize(data, FormType.REQUEST_TURN_IN)

        assert record.request_number == "R-17"
        assert record.dodaac == "W90ABC"
        assert record.transaction_type == "TURN-IN"
        assert record.signature == "J. DOE"
        assert record.items[0].unit_price == 12.5
        assert record.items[0].total_cost == 25.0


class TestEquipmentRecord:
    def test_zone_nested_record(self, equipment_response):
        record = normalize(parse_response(equipment_response), FormType.EQUIPMENT_RECORD)

        assert record.soldier_name == "DOE, JOHN"
        assert record.cif_code == "NY1"
        assert record.total_value == 1250.0
        assert record.is_signed is True
        item = record.items[0]
        assert item.size == "MED"
        assert item.quantities.authorized == 1
        assert item.quantities.on_hand == 3

    def test_quantities_are_non_negative_integers(self):
        data = {"items": [{"quantities": {"authorized": "-2", "onHand": "1.4", "dueOut": None}}]}
        item = normalize(data, FormType.EQUIPMENT_RECORD).items[0]

        assert (item.quantities.authorized, item.quantities.on_hand, item.quantities.due_out) == (0, 1, 0)
        assert item.issues == ["Negative quantity clamped to 0: AUTH QTY was -2"]

    def test_flat_quantity_aliases(self):
        item = normalize({"items": [{"authQty": 2, "ohQty": 2}]}, FormType.EQUIPMENT_RECORD).items[0]
        assert item.quantities.authorized == 2
        assert item.quantities.on_hand == 2

    def test_item_ids_and_non_object_entries(self):
        record = normalize({"items": ["junk", {"lin": "H53342", "pcsTrans": "X"}]}, FormType.EQUIPMENT_RECORD)

        assert len(record.items) == 1
        item = record.items[0]
        assert re.fullmatch(r"ocie-item-1-[0-9a-f]{8}", item.id)
        assert item.flags.pcs_trans is True
        assert item.flags.ets_trans is False


class TestGeneric:
    def test_generic_fields(self, generic_response):
        record = normalize(parse_response(generic_response), FormType.GENERIC)

        assert record.item_name == "Coffee mug"
        assert record.borrower_name == "Bob Jones"
        assert record.date == "2024-03-15"
        assert record.category == "Other"
        assert record.condition == "Good"
