"""
Visitor ledger endpoints: record site openings and login attempts, list and
clear the ledger, and report aggregate counts.

Storage failures raise ``LedgerError``, which the app maps to a 500 response.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from visitor_ledger.models.enums import EntryOutcome
from visitor_ledger.models.schemas import (
    ErrorResponse,
    IdentifierRequest,
    MessageResponse,
    StatsResponse,
    VisitorRecordResponse,
)
from visitor_ledger.services.client_ip import resolve_identifier
from visitor_ledger.services.ledger import VisitorLedger, get_ledger

router = APIRouter(
    tags=["Visitors"],
    responses={500: {"model": ErrorResponse, "description": "Internal server error"}},
)


@router.post("/open-site", response_model=MessageResponse)
async def open_site(
    request: Request,
    ledger: Annotated[VisitorLedger, Depends(get_ledger)],
    data: IdentifierRequest | None = None,
) -> MessageResponse:
    """
    Record that a visitor opened the site.

    Returns "inserted" the first time an identifier is seen and "exists" afterwards.
    """
    identifier = resolve_identifier(request, data.identifier if data else None)
    outcome = await ledger.record_entry(identifier)
    return MessageResponse(message=outcome.value)


@router.post("/login-attempt", response_model=MessageResponse)
async def login_attempt(
    request: Request,
    ledger: Annotated[VisitorLedger, Depends(get_ledger)],
    data: IdentifierRequest | None = None,
) -> MessageResponse:
    """
    Record a login attempt.

    Visitors not seen before are created already marked as logged in.
    """
    identifier = resolve_identifier(request, data.identifier if data else None)
    outcome = await ledger.record_login(identifier)
    if outcome is EntryOutcome.CREATED:
        return MessageResponse(message="User IP inserted successfully")
    return MessageResponse(message="Login count updated successfully")


@router.get("/users", response_model=list[VisitorRecordResponse])
async def list_visitors(
    ledger: Annotated[VisitorLedger, Depends(get_ledger)],
) -> list[VisitorRecordResponse]:
    """List every visitor record (unordered)."""
    rows = await ledger.list_all()
    return [VisitorRecordResponse(**row) for row in rows]


@router.delete("/users", response_model=MessageResponse)
async def clear_visitors(
    ledger: Annotated[VisitorLedger, Depends(get_ledger)],
) -> MessageResponse:
    """Delete every visitor record. Irreversible."""
    await ledger.clear_all()
    return MessageResponse(message="Old data deleted successfully")


@router.get("/stats", response_model=StatsResponse)
async def visitor_stats(
    ledger: Annotated[VisitorLedger, Depends(get_ledger)],
) -> StatsResponse:
    """Total visitors, and how many did / did not log in."""
    stats = await ledger.get_stats()
    return StatsResponse(
        total_entered=stats.total_entered,
        total_logged_in=stats.total_logged_in,
        total_not_logged_in=stats.total_not_logged_in,
    )
