"""API routes for Zalo Bridge."""

from __future__ import annotations

import secrets
from typing import Any

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from zalobridge import orchestrator
from zalobridge.exceptions import UnauthorizedError
from zalobridge.settings import get_settings

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class SendRequest(BaseModel):
    """Body of a ``POST /send`` request.

    Both fields are optional at the schema level so that a missing field
    surfaces as the 400 envelope rather than a schema error.
    """

    target: str | None = Field(None, description="Phone number, contact name or group name.")
    message: str | None = Field(None, description="Plain-text message to send.")

    @field_validator("target", "message", mode="before")
    @classmethod
    def _stringify_numbers(cls, value: Any) -> Any:
        # Phone numbers and short codes often arrive as JSON numbers.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class QRResponse(BaseModel):
    ok: bool = True
    qr: str


class SaveResponse(BaseModel):
    ok: bool = True
    message: str = "Saved cookies"
    count: int


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def require_api_key(
    x_api_key: str | None = Header(None),
    api_key: str | None = Query(None),
) -> None:
    """Accept the shared secret from the ``x-api-key`` header or ``api_key`` query."""
    supplied = x_api_key or api_key
    expected = get_settings().api.api_key
    if not supplied or not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise UnauthorizedError()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/status")
def status() -> dict[str, Any]:
    """Report browser and saved-login state without launching anything."""
    return {"ok": True, **orchestrator.session_status()}


@router.get("/qr", response_model=QRResponse)
async def get_qr() -> QRResponse:
    """Return the login QR code so an operator can scan it with the Zalo app."""
    return QRResponse(qr=await orchestrator.request_qr())


@router.get("/save", response_model=SaveResponse)
async def save_cookies() -> SaveResponse:
    """Persist cookies once the QR code has been scanned."""
    return SaveResponse(count=await orchestrator.save_session())


@router.post("/send", dependencies=[Depends(require_api_key)])
async def send(req: SendRequest) -> JSONResponse:
    """Send a text message to a phone number, contact or group."""
    result = await orchestrator.deliver_message(req.target, req.message)
    if result.ok:
        return JSONResponse({"ok": True})
    return JSONResponse(status_code=500, content={"ok": False, "error": result.error or "unknown"})
