import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, delete, func, insert, literal, select, update
from sqlalchemy.orm import aliased

from atelier.lifecycle import (
    MAX_FAVORITE_SESSIONS,
    LimitExceeded,
    compute_expiration_on_favorite_toggle,
    derive_title,
    ensure_can_mark_favorite,
    expiry_label,
    initial_expiration,
    utcnow,
)
from backend.designer.models import DesignBrief, DesignSessionOut, MessageOut, Sender
from backend.errors import NotFound
from backend.models_db import DesignMessage, DesignOrder, DesignSession, User

logger = logging.getLogger(__name__)


def lock_owner_stmt(user_id: str):
    """Row lock on the user, taken before any write that reads the favorite count."""
    return select(User.id).where(User.id == user_id).with_for_update()


def lock_session_stmt(session_id: str):
    """Row lock on the session, taken before computing the next message seq."""
    return select(DesignSession.id).where(DesignSession.id == session_id).with_for_update()


class DesignSessionStore:
    """Persistent design session store backed by SQLAlchemy.

    Every lookup that starts from a caller-supplied session id is scoped by
    the owning user id as well.

    Writes that depend on a count or a max are serialized per owner: SQLite
    locks the whole database per write, and on servers that support it the
    user or session row is locked FOR UPDATE first.
    """

    def __init__(self, session_factory=None):
        if session_factory is None:
            from backend.database import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory

    def _to_pydantic(self, row: DesignSession, now: Optional[datetime] = None) -> DesignSessionOut:
        out = DesignSessionOut.model_validate(row)
        out.expiry_label = expiry_label(out, now or utcnow())
        return out

    def _mark_favorite_stmt(self, session_id: str, user_id: str):
        """Set favorite only if the user is still under the cap, as one statement."""
        others = aliased(DesignSession)
        favorite_count = (
            select(func.count(others.id))
            .where(others.user_id == user_id, others.is_favorite == True)  # noqa: E712
            .scalar_subquery()
        )
        return (
            update(DesignSession)
            .where(
                DesignSession.id == session_id,
                DesignSession.user_id == user_id,
                DesignSession.is_favorite == False,  # noqa: E712
                favorite_count < MAX_FAVORITE_SESSIONS,
            )
            .values(is_favorite=True, expires_at=compute_expiration_on_favorite_toggle(False, utcnow()))
            .execution_options(synchronize_session=False)
        )

    def _count_favorites(self, db, user_id: str) -> int:
        return (
            db.query(func.count(DesignSession.id))
            .filter(DesignSession.user_id == user_id, DesignSession.is_favorite == True)  # noqa: E712
            .scalar()
        )

    async def create_session(
        self, user_id: str, brief: DesignBrief, is_favorite: bool = False
    ) -> DesignSessionOut:
        now = utcnow()
        db = self._session_factory()
        try:
            row = DesignSession(
                id=str(uuid.uuid4()),
                user_id=user_id,
                category=brief.category.value,
                metal_type=brief.metal_type.value,
                style=brief.style.value,
                diamond_type=brief.diamond_type.value,
                description=brief.description,
                reference_image_url=str(brief.reference_image_url) if brief.reference_image_url else None,
                title=derive_title(brief.category.value, brief.metal_type.value, brief.style.value),
                status="active",
                is_favorite=False,
                expires_at=initial_expiration(now),
                last_message_at=now,
                created_at=now,
            )
            db.add(row)
            db.flush()
            if is_favorite:
                db.execute(lock_owner_stmt(user_id))
                result = db.execute(self._mark_favorite_stmt(row.id, user_id))
                if result.rowcount == 0:
                    db.rollback()
                    raise LimitExceeded()
            db.commit()
            db.refresh(row)
            return self._to_pydantic(row, now)
        finally:
            db.close()

    async def get_session(self, session_id: str, user_id: str) -> Optional[DesignSessionOut]:
        db = self._session_factory()
        try:
            row = (
                db.query(DesignSession)
                .filter(DesignSession.id == session_id, DesignSession.user_id == user_id)
                .first()
            )
            if not row:
                return None
            return self._to_pydantic(row)
        finally:
            db.close()

    async def list_sessions(self, user_id: str) -> list[DesignSessionOut]:
        now = utcnow()
        db = self._session_factory()
        try:
            rows = (
                db.query(DesignSession)
                .filter(DesignSession.user_id == user_id)
                .order_by(DesignSession.last_message_at.desc())
                .all()
            )
            return [self._to_pydantic(r, now) for r in rows]
        finally:
            db.close()

    async def list_messages(self, session_id: str, user_id: str) -> list[MessageOut]:
        db = self._session_factory()
        try:
            rows = (
                db.query(DesignMessage)
                .join(DesignSession, DesignSession.id == DesignMessage.session_id)
                .filter(DesignMessage.session_id == session_id, DesignSession.user_id == user_id)
                .order_by(DesignMessage.seq.asc())
                .all()
            )
            return [MessageOut.model_validate(r) for r in rows]
        finally:
            db.close()

    async def get_message(self, message_id: str, session_id: str) -> Optional[MessageOut]:
        db = self._session_factory()
        try:
            row = (
                db.query(DesignMessage)
                .filter(DesignMessage.id == message_id, DesignMessage.session_id == session_id)
                .first()
            )
            return MessageOut.model_validate(row) if row else None
        finally:
            db.close()

    async def append_message(
        self, session_id: str, sender: Sender, message: str, image_url: Optional[str] = None
    ) -> MessageOut:
        """Persist one message at the end of the session's history."""
        message_id = str(uuid.uuid4())
        db = self._session_factory()
        try:
            db.execute(lock_session_stmt(session_id))
            # seq is computed inside the INSERT, after the session row lock
            next_seq = select(
                literal(message_id, String()),
                literal(session_id, String()),
                literal(Sender(sender).value, String()),
                literal(message or "", String()),
                literal(image_url, String()),
                func.coalesce(func.max(DesignMessage.seq), 0) + 1,
                literal(utcnow(), DateTime()),
            ).where(DesignMessage.session_id == session_id)
            db.execute(
                insert(DesignMessage).from_select(
                    ["id", "session_id", "sender", "message", "image_url", "seq", "created_at"],
                    next_seq,
                )
            )
            db.commit()
            row = db.query(DesignMessage).filter(DesignMessage.id == message_id).one()
            return MessageOut.model_validate(row)
        finally:
            db.close()

    async def touch_session(self, session_id: str, user_id: str) -> None:
        db = self._session_factory()
        try:
            db.execute(
                update(DesignSession)
                .where(DesignSession.id == session_id, DesignSession.user_id == user_id)
                .values(last_message_at=utcnow())
            )
            db.commit()
        finally:
            db.close()

    async def toggle_favorite(self, session_id: str, user_id: str) -> DesignSessionOut:
        """Flip the favorite flag, keeping expires_at in step with it.

        Raises NotFound for unknown or foreign sessions and LimitExceeded when
        the user already has the maximum number of favorites.
        """
        now = utcnow()
        db = self._session_factory()
        try:
            row = (
                db.query(DesignSession)
                .filter(DesignSession.id == session_id, DesignSession.user_id == user_id)
                .first()
            )
            if not row:
                raise NotFound()

            if row.is_favorite:
                row.is_favorite = False
                row.expires_at = compute_expiration_on_favorite_toggle(True, now)
                db.commit()
            else:
                db.execute(lock_owner_stmt(user_id))
                result = db.execute(self._mark_favorite_stmt(session_id, user_id))
                if result.rowcount == 0:
                    # Either the cap is reached or a concurrent toggle already favorited it
                    ensure_can_mark_favorite(self._count_favorites(db, user_id))
                db.commit()

            db.refresh(row)
            return self._to_pydantic(row, now)
        finally:
            db.close()

    async def delete_session(self, session_id: str, user_id: str) -> bool:
        db = self._session_factory()
        try:
            row = (
                db.query(DesignSession.id)
                .filter(DesignSession.id == session_id, DesignSession.user_id == user_id)
                .first()
            )
            if not row:
                return False
            db.execute(delete(DesignMessage).where(DesignMessage.session_id == session_id))
            db.execute(delete(DesignSession).where(DesignSession.id == session_id))
            db.commit()
            return True
        finally:
            db.close()

    async def create_order(
        self,
        user_id: str,
        session_id: str,
        message_id: str,
        notes: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> str:
        """Record an order. image_url is kept so the order outlives its session."""
        order_id = str(uuid.uuid4())
        db = self._session_factory()
        try:
            db.add(DesignOrder(
                id=order_id,
                user_id=user_id,
                session_id=session_id,
                message_id=message_id,
                image_url=image_url,
                notes=notes,
                status="requested",
            ))
            db.commit()
            logger.info("Design order %s requested for session %s", order_id, session_id)
            return order_id
        finally:
            db.close()
