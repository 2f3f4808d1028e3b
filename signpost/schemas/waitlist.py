"""
Waitlist schemas

Request fields are typed loosely on purpose: malformed values are rejected by
the waitlist validator with its own error kinds, not by request validation.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional


class JoinRequest(BaseModel):
    """Join request"""
    email: Any = None
    website: Any = None  # honeypot, hidden from humans
    timestamp: Any = None  # client clock, epoch ms


class JoinResponse(BaseModel):
    """Join response"""
    success: bool = True
    message: str


class CheckRequest(BaseModel):
    """Position lookup request"""
    email: Any = None


class CheckResponse(BaseModel):
    """Position lookup response"""
    model_config = ConfigDict(populate_by_name=True)

    found: bool
    position: Optional[int] = None
    total: Optional[int] = None
    joined_at: Optional[int] = Field(default=None, alias="joinedAt")
