from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

Disposition = Literal["RETURN", "REPAIR", "SCRAP", "LOST"]
ReturnReasonCode = Literal["AVARIA", "FIM_USO", "TROCA", "EXTRAVIO", "OUTRO"]


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


class UnitRegisterPayload(CamelModel):
    code: str = Field(..., min_length=1, max_length=120)
    product_id: str
    serial_number: str | None = None
    asset_tag: str | None = None
    invoice_id: str | None = None
    reason: str | None = None
    notes: str | None = None


class UnitAcquirePayload(CamelModel):
    code: str = Field(..., min_length=1)
    assigned_to_user_id: str | None = None
    reason: str | None = None
    cost_center: str | None = None
    notes: str | None = None


class UnitReturnPayload(CamelModel):
    code: str = Field(..., min_length=1)
    reason: str | None = None
    notes: str | None = None


class UnitRepairPayload(CamelModel):
    code: str = Field(..., min_length=1)
    reason: str | None = None
    cost_center: str | None = None
    ticket_number: str | None = None
    notes: str | None = None


class UnitSubstitutePayload(CamelModel):
    old_code: str = Field(..., min_length=1)
    new_code: str = Field(..., min_length=1)
    old_disposition: Disposition
    return_reason_code: ReturnReasonCode
    return_reason_detail: str | None = Field(default=None, max_length=500)
    assigned_to_user_id: str | None = None
    reason: str | None = None
    cost_center: str | None = None
    ticket_number: str | None = None
    notes: str | None = None
    compatibility_override_reason: str | None = Field(default=None, max_length=500)

    def cleaned(self) -> "UnitSubstitutePayload":
        data = self.model_dump()
        data["old_code"] = self.old_code.strip()
        data["new_code"] = self.new_code.strip()
        for field in (
            "return_reason_detail",
            "assigned_to_user_id",
            "reason",
            "cost_center",
            "ticket_number",
            "notes",
            "compatibility_override_reason",
        ):
            data[field] = _clean(data[field])
        return UnitSubstitutePayload.model_validate(data)


class RequestItemPayload(CamelModel):
    product_id: str | None = None
    description: str | None = None
    quantity: int = Field(default=1, ge=1)
    unit: str = "un"
    reference: str | None = None
    destination: str | None = None
    notes: str | None = None


class RequestCreatePayload(CamelModel):
    requesting_service_id: int
    title: str | None = Field(default=None, max_length=200)
    notes: str | None = None
    priority: Literal["LOW", "NORMAL", "HIGH", "URGENT"] | None = None
    requester_name: str | None = None
    supplier_option1: str | None = None
    supplier_option2: str | None = None
    as_user_id: str | None = None
    submit: bool = True
    items: list[RequestItemPayload] = Field(..., min_length=1)


class ProductSnapshot(CamelModel):
    id: str
    name: str
    sku: str
    quantity: int
    status: str


class UnitSnapshot(CamelModel):
    id: str
    code: str
    status: str
    product: ProductSnapshot
    assigned_to_user_id: str | None = None
    pending_return_request_id: str | None = None


class LinkedRequest(CamelModel):
    id: str
    gtmi_number: str
    status: str
    owner_user_id: str
    owner_name: str | None = None


class UnitOutcome(CamelModel):
    unit: UnitSnapshot
    movement_id: str | None = None
    movement_type: str | None = None


class ReturnOutcome(CamelModel):
    unit: UnitSnapshot
    linked_request: LinkedRequest


class SubstitutionMeta(CamelModel):
    reason: str
    reason_code: ReturnReasonCode
    reason_detail: str | None = None
    disposition: Disposition
    cost_center: str | None = None
    ticket_number: str | None = None
    notes: str | None = None
    compatibility_override_reason: str | None = None
    performed_at: datetime


class SubstitutionOutcome(CamelModel):
    substitution_id: str
    old_unit: UnitSnapshot
    new_unit: UnitSnapshot
    meta: SubstitutionMeta
    linked_request: LinkedRequest


class StockMovementResponse(CamelModel):
    id: str
    type: str
    quantity: int
    stock_delta: int
    product_id: str
    unit_id: str | None = None
    request_id: str | None = None
    invoice_id: str | None = None
    performed_by_user_id: str | None = None
    assigned_to_user_id: str | None = None
    reason: str | None = None
    cost_center: str | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}
