"""SQLAlchemy ORM models."""
import uuid
from sqlalchemy import Boolean, Column, String, Integer, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from atelier.lifecycle import utcnow
from backend.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class DesignSession(Base):
    __tablename__ = "design_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    category = Column(String, nullable=False)
    metal_type = Column(String, nullable=False)
    style = Column(String, nullable=False)
    diamond_type = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    reference_image_url = Column(String, nullable=True)
    title = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default="active")
    is_favorite = Column(Boolean, nullable=False, default=False)
    # NULL exactly when is_favorite is true
    expires_at = Column(DateTime, nullable=True)
    last_message_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    messages = relationship(
        "DesignMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DesignMessage.seq",
    )

    __table_args__ = (
        Index("ix_design_sessions_user_id", "user_id"),
        Index("ix_design_sessions_sweep", "is_favorite", "expires_at"),
    )


class DesignMessage(Base):
    __tablename__ = "design_messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String, ForeignKey("design_sessions.id", ondelete="CASCADE"), nullable=False)
    sender = Column(String, nullable=False)  # "user" or "assistant"
    message = Column(Text, nullable=False, default="")
    image_url = Column(String, nullable=True)
    seq = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    session = relationship("DesignSession", back_populates="messages")

    __table_args__ = (
        UniqueConstraint("session_id", "seq", name="uq_design_messages_session_seq"),
    )


class DesignOrder(Base):
    __tablename__ = "design_orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    # Orders are kept when the sweeper or the owner removes the session
    session_id = Column(String, ForeignKey("design_sessions.id", ondelete="SET NULL"), nullable=True)
    message_id = Column(String, ForeignKey("design_messages.id", ondelete="SET NULL"), nullable=True)
    image_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="requested")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_design_orders_user_id", "user_id"),
    )
