"""Session list filtering and ordering."""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional


class SortOption(str, Enum):
    RECENT = "recent"
    FAVORITED = "favorited"
    EXPIRING = "expiring"


def _activity(session) -> datetime:
    return session.last_message_at or session.created_at


def matches_search(session, term: Optional[str]) -> bool:
    """Case-insensitive substring match on title, description and category."""
    if not term:
        return True
    needle = term.lower()
    haystacks = (session.title or "", session.description or "", session.category or "")
    return any(needle in h.lower() for h in haystacks)


def filter_sessions(sessions: Iterable, search: Optional[str] = None, favorites_only: bool = False) -> list:
    return [
        s for s in sessions
        if matches_search(s, search) and (not favorites_only or s.is_favorite)
    ]


def sort_sessions(sessions: Iterable, sort_by: SortOption = SortOption.RECENT) -> list:
    """Return a new list ordered by the chosen option.

    recent    -- last activity (falling back to creation time), newest first
    favorited -- favorites first, then recent
    expiring  -- soonest expiry first; sessions that never expire go last
    """
    sort_by = SortOption(sort_by)
    items = list(sessions)

    if sort_by == SortOption.RECENT:
        return sorted(items, key=_activity, reverse=True)

    if sort_by == SortOption.FAVORITED:
        by_recent = sorted(items, key=_activity, reverse=True)
        # sorted() is stable, so recency order survives within each group
        return sorted(by_recent, key=lambda s: not s.is_favorite)

    expiring = sorted((s for s in items if s.expires_at is not None), key=lambda s: s.expires_at)
    never = [s for s in items if s.expires_at is None]
    return expiring + never


def browse_sessions(
    sessions: Iterable,
    search: Optional[str] = None,
    favorites_only: bool = False,
    sort_by: SortOption = SortOption.RECENT,
) -> list:
    return sort_sessions(filter_sessions(sessions, search, favorites_only), sort_by)
