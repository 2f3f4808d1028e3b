"""
Waitlist error taxonomy

Every error that can reach a client carries a pre-approved message. Anything
else is collapsed into ``GENERIC_MESSAGE`` by ``public_message``.
"""
from typing import Optional

GENERIC_MESSAGE = "Something went wrong"


class WaitlistError(Exception):
    """Base class for errors surfaced by the admission pipeline"""
    code = "INTERNAL_ERROR"
    status_code = 500
    message = GENERIC_MESSAGE

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidEmail(WaitlistError):
    code = "INVALID_EMAIL"
    status_code = 400
    message = "Invalid email address"


class DisposableDomain(WaitlistError):
    code = "DISPOSABLE_DOMAIN"
    status_code = 400
    message = "Please use a non-disposable email address"


class RateLimited(WaitlistError):
    code = "RATE_LIMITED"
    status_code = 429
    message = "Too many sign-ups right now. Please try again in a minute."


class ExpiredRequest(WaitlistError):
    code = "EXPIRED_REQUEST"
    status_code = 400
    message = "Request expired. Please try again."


class InternalError(WaitlistError):
    """Store failure or unexpected exception; detail stays in the server log"""


SAFE_MESSAGES = frozenset(
    {
        InvalidEmail.message,
        DisposableDomain.message,
        RateLimited.message,
        "Too many sign-ups right now",
        ExpiredRequest.message,
        GENERIC_MESSAGE,
    }
)


def public_message(message: Optional[str]) -> str:
    """Return ``message`` if it is allow-listed, otherwise the generic fallback."""
    if message in SAFE_MESSAGES:
        return message
    return GENERIC_MESSAGE
