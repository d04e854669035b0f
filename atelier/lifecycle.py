"""
Design session lifecycle policy.

Decides expiration and favorite eligibility for AI design sessions.
Nothing here touches storage; callers pass in the session (any object with
``is_favorite`` and ``expires_at`` attributes) and the current time.

All timestamps are naive UTC datetimes.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

SESSION_TTL_DAYS = 15
MAX_FAVORITE_SESSIONS = 5

# Sessions with this many days (or fewer) left are flagged as expiring soon
EXPIRING_SOON_DAYS = 3


class LimitExceeded(Exception):
    """Raised when a user already has the maximum number of favorite sessions."""

    def __init__(self, limit: int = MAX_FAVORITE_SESSIONS):
        self.limit = limit
        super().__init__(f"You can only have up to {limit} favorite sessions")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def initial_expiration(now: datetime) -> datetime:
    """Expiration timestamp for a freshly created, non-favorite session."""
    return now + timedelta(days=SESSION_TTL_DAYS)


def compute_expiration_on_favorite_toggle(current_favorite: bool, now: datetime) -> Optional[datetime]:
    """Return the new ``expires_at`` for a session whose favorite flag is being flipped.

    ``current_favorite`` is the status before the toggle. Marking a session
    favorite clears its expiration; unmarking it restarts the full TTL.
    """
    if not current_favorite:
        return None
    return initial_expiration(now)


def can_mark_favorite(current_favorite_count: int) -> bool:
    return current_favorite_count < MAX_FAVORITE_SESSIONS


def ensure_can_mark_favorite(current_favorite_count: int) -> None:
    """Raise LimitExceeded if another favorite would break the cap."""
    if not can_mark_favorite(current_favorite_count):
        raise LimitExceeded()


def is_expired(session, now: datetime) -> bool:
    return (
        not session.is_favorite
        and session.expires_at is not None
        and session.expires_at < now
    )


def derive_title(category: str, metal_type: str, style: str) -> str:
    return f"{category} in {metal_type} ({style})"


def days_until_expiry(session, now: datetime) -> Optional[int]:
    """Whole days left before expiry, rounded up. None for sessions that never expire."""
    if session.is_favorite or session.expires_at is None:
        return None
    remaining = (session.expires_at - now).total_seconds() / 86400.0
    return math.ceil(remaining)


def expiry_label(session, now: datetime) -> str:
    """Short badge for a session: favorite, expired, expiring, active or none."""
    if session.is_favorite:
        return "favorite"
    days_left = days_until_expiry(session, now)
    if days_left is None:
        return "none"
    if days_left <= 0:
        return "expired"
    if days_left <= EXPIRING_SOON_DAYS:
        return "expiring"
    return "active"
