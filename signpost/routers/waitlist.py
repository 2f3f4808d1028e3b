"""
Waitlist routes: join and position lookup
"""
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Body, Depends

from signpost.database import AsyncSessionLocal
from signpost.schemas.waitlist import CheckRequest, CheckResponse, JoinRequest, JoinResponse
from signpost.services.waitlist_service import WaitlistService

router = APIRouter()


@lru_cache()
def get_waitlist_service() -> WaitlistService:
    """Shared service instance; holds no per-request state"""
    return WaitlistService(AsyncSessionLocal)


@router.post("/join", response_model=JoinResponse)
async def join_waitlist(
    data: JoinRequest,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """
    Join the waitlist

    Fresh signups, repeat signups and honeypot hits all get the same
    response.
    """
    outcome = await service.join(data.email, website=data.website, timestamp=data.timestamp)
    return JoinResponse(success=True, message=outcome.message)


@router.post("/check", response_model=CheckResponse, response_model_exclude_none=True)
async def check_position(
    payload: Any = Body(None),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """
    Queue position for an email

    Returns ``{"found": false}`` for unknown or malformed emails, including
    bodies that are not a JSON object.
    """
    data = CheckRequest.model_validate(payload) if isinstance(payload, dict) else CheckRequest()
    lookup = await service.check(data.email)
    if not lookup.found:
        return CheckResponse(found=False)
    return CheckResponse(
        found=True,
        position=lookup.position,
        total=lookup.total,
        joined_at=lookup.joined_at,
    )
