"""Pydantic models for extracted forms, confidence scores and stored receipts."""

import time
import uuid
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class FormType(str, Enum):
    """Form layouts the pipeline knows how to extract."""

    HAND_RECEIPT = "DA2062"
    REQUEST_TURN_IN = "DA3161"
    EQUIPMENT_RECORD = "OCIE"
    GENERIC = "Generic"


FORM_TYPE_LABELS: dict[FormType, str] = {
    FormType.HAND_RECEIPT: "DA Form 2062 - Hand Receipt",
    FormType.REQUEST_TURN_IN: "DA Form 3161 - Request/Turn-In",
    FormType.EQUIPMENT_RECORD: "OCIE Record - DA Form 3645",
    FormType.GENERIC: "Generic Receipt",
}

RECEIPT_CATEGORIES: tuple[str, ...] = (
    "Weapons",
    "Optics",
    "Radios/Comms",
    "PPE",
    "Tools",
    "Vehicles",
    "Medical",
    "Other",
)


class ConfidenceScore(BaseModel):
    """Heuristic completeness score (0-100), not a statistical accuracy estimate."""

    overall: int = 0
    header: int = 0
    items: int = 0
    fields: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def zero(cls) -> "ConfidenceScore":
        return cls()


# --- DA Form 2062 (Hand Receipt) ---


class HandReceiptQuantities(BaseModel):
    A: int = 0
    B: int = 0
    C: int = 0
    D: int = 0
    E: int = 0
    F: int = 0


class HandReceiptItem(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    stock_number: str = ""
    item_description: str = ""
    model_number: str = ""
    security_code: str = ""
    unit_of_issue: str = ""
    quantity_auth: int = 0
    quantities: HandReceiptQuantities = Field(default_factory=HandReceiptQuantities)
    issues: list[str] = Field(default_factory=list)
    confidence: int = 0


class HandReceipt(BaseModel):
    form_type: Literal["DA2062"] = Field("DA2062", frozen=True)
    hand_receipt_number: str = ""
    from_unit: str = ""
    to: str = ""
    publication_date: str = ""
    page: str = ""
    total_pages: str = ""
    items: list[HandReceiptItem] = Field(default_factory=list)


# --- DA Form 3161 (Request for Issue or Turn-In) ---


class RequestTurnInItem(BaseModel):
    item_number: int = 0
    stock_number: str = ""
    item_description: str = ""
    unit_of_issue: str = ""
    quantity: int = 0
    code: str = ""
    supply_action: str = ""
    unit_price: float = 0.0
    total_cost: float = 0.0
    issues: list[str] = Field(default_factory=list)
    confidence: int = 0


class RequestTurnIn(BaseModel):
    form_type: Literal["DA3161"] = Field("DA3161", frozen=True)
    request_number: str = ""
    voucher_number: str = ""
    send_to: str = ""
    date_required: str = ""
    dodaac: str = ""
    priority: str = ""
    request_from: str = ""
    transaction_type: Literal["ISSUE", "TURN-IN"] = "ISSUE"
    signature: str = ""
    date: str = ""
    items: list[RequestTurnInItem] = Field(default_factory=list)


# --- OCIE record (DA Form 3645) ---


class EquipmentQuantities(BaseModel):
    authorized: int = 0
    on_hand: int = 0
    due_out: int = 0


class TransferFlags(BaseModel):
    pcs_trans: bool = False
    ets_trans: bool = False


class EquipmentItem(BaseModel):
    id: str = ""
    issuing_cif: str = ""
    lin: str = ""
    size: str = ""
    nomenclature: str = ""
    edition: str = ""
    fig: str = ""
    with_pc: str = ""
    partial_nsn: str = ""
    nsn: str = ""
    quantities: EquipmentQuantities = Field(default_factory=EquipmentQuantities)
    flags: TransferFlags = Field(default_factory=TransferFlags)
    issues: list[str] = Field(default_factory=list)
    confidence: int = 0


class EquipmentRecord(BaseModel):
    form_type: Literal["OCIE"] = Field("OCIE", frozen=True)
    soldier_name: str = ""
    rank_grade: str = ""
    dod_id: str = ""
    ssn_pid: str = ""
    unit: str = ""
    cif_code: str = ""
    report_date: str = ""
    total_value: float = 0.0
    is_signed: bool = False
    signature_text: str = ""
    statement_date: str = ""
    items: list[EquipmentItem] = Field(default_factory=list)


# --- Anything else ---


class GenericReceipt(BaseModel):
    form_type: Literal["Generic"] = Field("Generic", frozen=True)
    item_name: str = ""
    borrower_name: str = ""
    date: str = ""
    serial_number: str = ""
    category: str = "Other"
    condition: str = ""
    notes: str = ""


FormData = Annotated[
    Union[HandReceipt, RequestTurnIn, EquipmentRecord, GenericReceipt],
    Field(discriminator="form_type"),
]

LineItem = Union[HandReceiptItem, RequestTurnInItem, EquipmentItem]


class ExtractionResult(BaseModel):
    """Output of one image-processing run. Frozen; use model_copy to derive a changed one."""

    model_config = ConfigDict(frozen=True)

    data: FormData
    confidence: ConfidenceScore = Field(default_factory=ConfidenceScore)
    warnings: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def form_type(self) -> FormType:
        return FormType(self.data.form_type)


class Receipt(BaseModel):
    """A stored extraction plus the reference to its source photo."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    form_type: FormType
    photo_url: str = ""
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    notes: str = ""
    data: FormData
    confidence: ConfidenceScore = Field(default_factory=ConfidenceScore)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_extraction(cls, result: ExtractionResult, photo_url: str = "", notes: str = "") -> "Receipt":
        return cls(
            form_type=result.form_type,
            photo_url=photo_url,
            notes=notes,
            data=result.data.model_copy(deep=True),
            confidence=result.confidence.model_copy(deep=True),
            warnings=list(result.warnings),
        )


class LegacyReceipt(BaseModel):
    """Flat record shape written before form types existed."""

    id: str
    item_name: str = Field("", alias="itemName")
    borrower_name: str = Field("", alias="borrowerName")
    date: str = ""
    photo_url: str = Field("", alias="photoUrl")
    timestamp: int = 0
    serial_number: str | None = Field(None, alias="serialNumber")
    category: str = "Other"
    condition: str | None = None
    notes: str | None = None

    model_config = ConfigDict(populate_by_name=True)


# --- Request bodies ---


class ReceiptCreate(BaseModel):
    """A reviewed extraction the caller wants to keep."""

    data: FormData
    confidence: ConfidenceScore = Field(default_factory=ConfidenceScore)
    warnings: list[str] = Field(default_factory=list)
    photo_url: str = ""
    notes: str = ""

    def to_receipt(self) -> Receipt:
        return Receipt(
            form_type=FormType(self.data.form_type),
            photo_url=self.photo_url,
            notes=self.notes,
            data=self.data,
            confidence=self.confidence,
            warnings=self.warnings,
        )


class DeleteRequest(BaseModel):
    ids: list[str]
