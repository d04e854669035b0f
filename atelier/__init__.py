"""
Lumiere Atelier design engine

Pure policy for AI design sessions: expiration, the favorite cap,
title derivation and session list browsing.

No storage or network access happens in this package.
"""

from atelier.lifecycle import (
    MAX_FAVORITE_SESSIONS,
    SESSION_TTL_DAYS,
    LimitExceeded,
    can_mark_favorite,
    compute_expiration_on_favorite_toggle,
    derive_title,
    days_until_expiry,
    ensure_can_mark_favorite,
    expiry_label,
    initial_expiration,
    is_expired,
    utcnow,
)
from atelier.browse import SortOption, browse_sessions, filter_sessions, sort_sessions

__version__ = "0.1.0"
