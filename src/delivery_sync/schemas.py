"""Pydantic schemas for the remote wire format and the local router."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from delivery_sync.types import (
    DeliveryRecord,
    HistoryRecord,
    PendingDelivery,
)

# Servers have shipped the proof under either key. The first non-null
# value wins, in the order listed.
HISTORY_PROOF_KEYS = ("receiverProofPath", "receiverProof")
DETAIL_PROOF_KEYS = ("receiverProof", "receiverProofPath")


def resolve_field(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first non-null value among ``keys``, else None."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


# --- Remote wire format ---


class DeliveryPayload(BaseModel):
    """JSON body of a single submit and of each bulk entry."""

    model_config = ConfigDict(populate_by_name=True)

    item: str
    serial_number: str = Field(alias="serialNumber")
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str = Field(alias="deliveryAgent")
    receiver_proof: str = Field(default="", alias="receiverProof")

    @classmethod
    def from_record(
        cls, record: DeliveryRecord | PendingDelivery, proof: str
    ) -> DeliveryPayload:
        return cls(
            item=record.item,
            serial_number=record.serial_number,
            sim=record.sim,
            merchant=record.merchant,
            shop=record.shop,
            receiver=record.receiver,
            delivery_agent=record.delivery_agent,
            receiver_proof=proof,
        )

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class _RemoteDelivery(BaseModel):
    """Lenient base for delivery objects read from the server.

    Missing or null text fields read as empty strings and scalars are
    stringified, so a sparse server object still parses.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item: str = ""
    serial_number: str = Field(default="", alias="serialNumber")
    sim: str = ""
    merchant: str = ""
    shop: str = ""
    receiver: str = ""
    delivery_agent: str = Field(default="", alias="deliveryAgent")
    code: str = ""

    @field_validator(
        "item",
        "serial_number",
        "sim",
        "merchant",
        "shop",
        "receiver",
        "delivery_agent",
        "code",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, dict | list):
            raise ValueError("expected a scalar value")
        return str(value)


class HistoryItem(_RemoteDelivery):
    """One element of a history page."""

    id: str | None = None
    proof: str | None = None
    created_at: str | None = Field(default=None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _resolve_proof(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("history item must be a JSON object")
        data = dict(data)
        data["proof"] = resolve_field(data, HISTORY_PROOF_KEYS)
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        if data.get("createdAt") is not None:
            data["createdAt"] = str(data["createdAt"])
        return data

    def stable_id(self, page: int, index: int) -> str:
        """Server id, else code, else a page-local fallback."""
        if self.id:
            return self.id
        if self.code:
            return self.code
        return f"{page}_{index}"

    def to_record(
        self, *, page: int, index: int, row_order: int
    ) -> HistoryRecord:
        return HistoryRecord(
            id=self.stable_id(page, index),
            item=self.item,
            serial_number=self.serial_number,
            sim=self.sim,
            merchant=self.merchant,
            shop=self.shop,
            receiver=self.receiver,
            delivery_agent=self.delivery_agent,
            code=self.code,
            proof_file_ref=self.proof,
            created_at=self.created_at,
            row_order=row_order,
        )


class HistoryDetail(_RemoteDelivery):
    """Body of the history detail endpoint."""

    receiver_proof: str = ""

    @model_validator(mode="before")
    @classmethod
    def _resolve_proof(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("history detail must be a JSON object")
        data = dict(data)
        data["receiver_proof"] = resolve_field(data, DETAIL_PROOF_KEYS) or ""
        return data


_history_page_adapter = TypeAdapter(list[HistoryItem])


def parse_history_page(body: str | None) -> list[HistoryItem]:
    """Parse a history page body; an empty body is an empty page.

    Raises ``pydantic.ValidationError`` on malformed JSON or items.
    """
    if body is None or not body.strip():
        return []
    return _history_page_adapter.validate_json(body)


def parse_history_detail(body: str | None) -> HistoryDetail:
    return HistoryDetail.model_validate_json(body or "")


# --- Local router ---


class SubmitDeliveryRequest(BaseModel):
    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    proof_file_ref: str | None = None

    def to_record(self) -> DeliveryRecord:
        return DeliveryRecord(**self.model_dump())


class SubmitResponse(BaseModel):
    result: str
    id: int | None = None
    message: str | None = None


class SyncResponse(BaseModel):
    result: str
    count: int = 0
    message: str | None = None
    category: str | None = None


class PendingDeliveryResponse(BaseModel):
    id: int
    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    proof_file_ref: str | None
    created_at: datetime
    retry_count: int
    status: str
    server_code: str | None = None

    @classmethod
    def from_pending(cls, pending: PendingDelivery) -> PendingDeliveryResponse:
        return cls(
            id=pending.id,
            item=pending.item,
            serial_number=pending.serial_number,
            sim=pending.sim,
            merchant=pending.merchant,
            shop=pending.shop,
            receiver=pending.receiver,
            delivery_agent=pending.delivery_agent,
            proof_file_ref=pending.proof_file_ref,
            created_at=pending.created_at,
            retry_count=pending.retry_count,
            status=str(pending.status),
            server_code=pending.server_code,
        )


class PendingCountResponse(BaseModel):
    count: int


class HistoryItemResponse(BaseModel):
    id: str
    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    code: str
    proof_file_ref: str | None
    created_at: str | None

    @classmethod
    def from_record(cls, record: HistoryRecord) -> HistoryItemResponse:
        return cls(
            id=record.id,
            item=record.item,
            serial_number=record.serial_number,
            sim=record.sim,
            merchant=record.merchant,
            shop=record.shop,
            receiver=record.receiver,
            delivery_agent=record.delivery_agent,
            code=record.code,
            proof_file_ref=record.proof_file_ref,
            created_at=record.created_at,
        )


class HistoryPageResponse(BaseModel):
    items: list[HistoryItemResponse]
    end_reached: bool
    error: str | None = None


class HistoryDetailResponse(BaseModel):
    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    code: str
    receiver_proof: str
