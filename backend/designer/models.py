from __future__ import annotations
from enum import Enum
from typing import Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


class JewelryCategory(str, Enum):
    RING = "ring"
    NECKLACE = "necklace"
    EARRINGS = "earrings"
    BRACELET = "bracelet"
    PENDANT = "pendant"


class MetalType(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    PLATINUM = "platinum"
    ROSE_GOLD = "rose-gold"


class DesignStyle(str, Enum):
    MODERN = "modern"
    CLASSIC = "classic"
    VINTAGE = "vintage"
    MINIMALIST = "minimalist"
    STATEMENT = "statement"


class DiamondType(str, Enum):
    NONE = "none"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    MULTIPLE = "multiple"


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# --- Requests ---

class DesignBrief(BaseModel):
    """The design form submitted to open a session."""
    category: JewelryCategory
    metal_type: MetalType
    style: DesignStyle
    diamond_type: DiamondType
    description: str = Field(..., min_length=10, max_length=500)
    reference_image_url: Optional[HttpUrl] = None


class StartSessionRequest(DesignBrief):
    is_favorite: bool = False


class FormData(BaseModel):
    """Brief fields echoed back on the first message of a session."""
    category: str
    metal_type: str
    style: str
    diamond_type: str
    description: str


class SendMessageRequest(BaseModel):
    session_id: UUID
    message: str = Field(..., min_length=1, max_length=4000)
    reference_image_url: Optional[HttpUrl] = None
    is_initial: bool = False
    form_data: Optional[FormData] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be blank")
        return v


class FavoriteToggleRequest(BaseModel):
    session_id: UUID


class OrderRequest(BaseModel):
    session_id: UUID
    message_id: UUID
    notes: Optional[str] = Field(None, max_length=2000)


# --- Responses ---

class DesignSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    category: str
    metal_type: str
    style: str
    diamond_type: str
    description: str
    reference_image_url: Optional[str] = None
    title: str
    status: str
    is_favorite: bool
    expires_at: Optional[datetime] = None
    last_message_at: datetime
    created_at: datetime
    expiry_label: Optional[str] = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    sender: Sender
    message: str
    image_url: Optional[str] = None
    seq: int
    created_at: datetime


class StartSessionResponse(BaseModel):
    success: bool = True
    session: DesignSessionOut


class SessionListResponse(BaseModel):
    success: bool = True
    sessions: list[DesignSessionOut]


class SessionDetailResponse(BaseModel):
    success: bool = True
    session: DesignSessionOut
    messages: list[MessageOut]


class SendMessageResponse(BaseModel):
    success: bool = True
    message: str
    image_url: Optional[str] = None
    user_message: MessageOut
    assistant_message: MessageOut


class FavoriteToggleResponse(BaseModel):
    success: bool = True
    is_favorite: bool
    expires_at: Optional[datetime] = None


class DeleteSessionResponse(BaseModel):
    success: bool = True
    message: str = "Session deleted successfully"


class UploadResponse(BaseModel):
    success: bool = True
    url: str


class OrderResponse(BaseModel):
    success: bool = True
    message: str = "Order placed successfully"
    order_id: str


class CleanupResponse(BaseModel):
    success: bool = True
    message: str
    count: int
