"""Expiry sweeper. Deletes non-favorite design sessions past their expiration.

Runs when an external scheduler triggers it, either through
``POST /api/ai/cleanup-expired-sessions`` or the ``lumiere-sweep`` console
script. Re-running with nothing newly expired is a no-op.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select

from atelier.lifecycle import utcnow
from backend.models_db import DesignMessage, DesignSession

logger = logging.getLogger(__name__)


def find_expired_session_ids(db, now: datetime) -> list[str]:
    stmt = select(DesignSession.id).where(
        DesignSession.is_favorite == False,  # noqa: E712
        DesignSession.expires_at < now,
    )
    return list(db.execute(stmt).scalars())


def sweep_expired_sessions(session_factory=None, now: Optional[datetime] = None) -> int:
    """Delete expired sessions and their messages. Returns the number of sessions removed.

    Messages go first, then sessions, each committed separately. If the
    process dies in between, the sessions still match the expiry predicate
    and the next run removes them.
    """
    if session_factory is None:
        from backend.database import SessionLocal
        session_factory = SessionLocal
    now = now or utcnow()

    db = session_factory()
    try:
        session_ids = find_expired_session_ids(db, now)
        if not session_ids:
            logger.info("No expired sessions to clean up")
            return 0

        removed_messages = db.execute(
            delete(DesignMessage).where(DesignMessage.session_id.in_(session_ids))
        ).rowcount
        db.commit()

        db.execute(delete(DesignSession).where(DesignSession.id.in_(session_ids)))
        db.commit()

        logger.info(
            "Cleaned up %d expired sessions (%d messages)", len(session_ids), removed_messages
        )
        return len(session_ids)
    finally:
        db.close()


def main() -> None:
    """Console entry point for cron."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    from backend.database import init_db
    init_db()
    count = sweep_expired_sessions()
    print(f"Cleaned up {count} expired sessions")


if __name__ == "__main__":
    main()
