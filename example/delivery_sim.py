"""In-memory simulator of the remote deliveries API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Query, Response
from pydantic import BaseModel

# --- Simulator state (in-memory, ephemeral) ---

_sim_deliveries: list[dict[str, Any]] = []
_sim_state: dict[str, Any] = {"outage_status": None}


def _store(payload: dict[str, Any]) -> dict[str, Any]:
    code = f"DLV-{uuid4().hex[:8].upper()}"
    entry = {
        **payload,
        "id": code.lower(),
        "code": code,
        "createdAt": datetime.now(tz=UTC).isoformat(),
    }
    # Proofs are kept inline; the history list exposes them by path.
    entry["receiverProofPath"] = f"/delivery-sim/proofs/{code}"
    _sim_deliveries.insert(0, entry)
    return entry


def _check_outage() -> None:
    status_code = _sim_state["outage_status"]
    if status_code is not None:
        raise HTTPException(status_code=status_code, detail="Simulated outage")


def reset() -> None:
    _sim_deliveries.clear()
    _sim_state["outage_status"] = None


# --- Remote API endpoints ---

api_router = APIRouter(prefix="/api/rest/v1/deliveries", tags=["remote"])


@api_router.post("", status_code=201)
async def create_delivery(payload: dict[str, Any]) -> dict[str, Any]:
    _check_outage()
    entry = _store(payload)
    return {"code": entry["code"]}


@api_router.post("/bulk")
async def create_deliveries(
    payloads: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    _check_outage()
    return [{"code": _store(payload)["code"]} for payload in payloads]


@api_router.get("/history")
async def list_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    keyword: str | None = None,
) -> list[dict[str, Any]]:
    _check_outage()
    entries = _sim_deliveries
    if keyword:
        needle = keyword.lower()
        entries = [
            e
            for e in entries
            if needle in e.get("item", "").lower()
            or needle in e.get("serialNumber", "").lower()
        ]
    window = entries[(page - 1) * limit : page * limit]
    return [
        {k: v for k, v in e.items() if k != "receiverProof"} for e in window
    ]


@api_router.get("/history/{code}")
async def history_detail(code: str) -> dict[str, Any]:
    _check_outage()
    for entry in _sim_deliveries:
        if entry["code"] == code:
            return entry
    raise HTTPException(status_code=404, detail="Unknown delivery")


# --- Simulator controls ---

sim_router = APIRouter(prefix="/delivery-sim", tags=["delivery-sim"])


class SimOutageRequest(BaseModel):
    status_code: int | None = None


class SimStateResponse(BaseModel):
    deliveries: int
    outage_status: int | None


@sim_router.get("/state", response_model=SimStateResponse)
async def sim_state() -> SimStateResponse:
    return SimStateResponse(
        deliveries=len(_sim_deliveries),
        outage_status=_sim_state["outage_status"],
    )


@sim_router.post("/outage", response_model=SimStateResponse)
async def sim_outage(body: SimOutageRequest) -> SimStateResponse:
    """Make every remote call fail with ``status_code``; null clears it."""
    _sim_state["outage_status"] = body.status_code
    return await sim_state()


@sim_router.get("/proofs/{code}")
async def sim_proof(code: str) -> Response:
    for entry in _sim_deliveries:
        if entry["code"] == code:
            return Response(
                content=entry.get("receiverProof", ""),
                media_type="text/plain",
            )
    raise HTTPException(status_code=404, detail="Unknown delivery")


def create_sim_app() -> FastAPI:
    app = FastAPI(title="deliveries simulator")
    app.include_router(api_router)
    app.include_router(sim_router)
    return app
