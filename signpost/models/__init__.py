"""
Database models
"""
from signpost.models.waitlist_entry import WaitlistEntry
from signpost.models.rate_limit import RateLimitBucket

__all__ = [
    "WaitlistEntry",
    "RateLimitBucket",
]
