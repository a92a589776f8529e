"""Shared test fixtures for form brain tests."""

import json
from unittest.mock import MagicMock

import pytest

from form_brain.gemini_client import GeminiClient
from form_brain.storage import ReceiptStore


@pytest.fixture
def fake_image() -> bytes:
    """Opaque image bytes; nothing in the pipeline decodes them."""
    return b"\xff\xd8\xff\xe0fake-jpeg-bytes"


@pytest.fixture
def hand_receipt_response() -> str:
    """Model answer for a DA 2062 hand receipt."""
    return json.dumps({
        "handReceiptNumber": "HR-2024-017",
        "from": "B CO 1-114 IN",
        "to": "SGT Smith",
        "publicationDate": "JAN 2024",
        "items": [
            {
                "stockNumber": "1005-01-231-0973",
                "itemDescription": "RIFLE, 5.56MM M4",
                "model": "M4",
                "securityCode": "Q",
                "unitOfIssue": "EA",
                "quantityAuth": "1",
                "quantities": {"A": "1"},
            }
        ],
        "page": "1",
        "totalPages": "1",
    })


@pytest.fixture
def equipment_response() -> str:
    """Model answer for an OCIE record, zone-nested."""
    return json.dumps({
        "header": {
            "soldierName": "DOE, JOHN",
            "rankGrade": "SGT/E5",
            "ssnPid": "1234",
            "unit": "HHC 2-108 IN",
            "cifCode": "NY1",
            "reportDate": "2024-02-01",
        },
        "items": [
            {
                "lin": "H53342",
                "size": "med",
                "nomenclature": "HELMET, ADVANCED COMBAT",
                "nsn": "8470-01-506-6183",
                "quantities": {"authorized": 1, "onHand": 3, "dueOut": 0},
            }
        ],
        "footer": {"totalValue": "$1,250.00", "isSigned": "yes"},
    })


@pytest.fixture
def generic_response() -> str:
    """Model answer for a plain borrow slip; matches no form keywords."""
    return json.dumps({
        "itemName": "Coffee mug",
        "borrowerName": "Bob Jones",
        "date": "03/15/2024",
        "serialNumber": "",
        "category": "other",
        "condition": "Good",
        "notes": "",
    })


@pytest.fixture
def mock_client() -> MagicMock:
    """A Gemini client double; set infer.return_value / side_effect per test."""
    client = MagicMock(spec=GeminiClient)
    client.configured = True
    client.models = ["model-a"]
    return client


@pytest.fixture
def store(tmp_path) -> ReceiptStore:
    return ReceiptStore(tmp_path)
