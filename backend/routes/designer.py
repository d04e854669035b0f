"""AI designer routes: design sessions, chat turns, favorites and orders."""

import logging
import os
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.security import HTTPAuthorizationCredentials

from atelier.browse import SortOption, browse_sessions
from backend.auth import get_current_user, security
from backend.designer.models import (
    CleanupResponse,
    DeleteSessionResponse,
    FavoriteToggleRequest,
    FavoriteToggleResponse,
    OrderRequest,
    OrderResponse,
    SendMessageRequest,
    SendMessageResponse,
    SessionDetailResponse,
    SessionListResponse,
    StartSessionRequest,
    StartSessionResponse,
    UploadResponse,
)
from backend.designer.orchestrator import Orchestrator
from backend.designer.session_store import DesignSessionStore
from backend.designer.sweeper import sweep_expired_sessions
from backend.errors import NotFound, Unauthorized, ValidationFailed
from backend.models_db import User
from backend.services.storage import reference_image_path

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_IMAGE_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}
MAX_REFERENCE_IMAGE_BYTES = 5 * 1024 * 1024


def _get_store(request: Request) -> DesignSessionStore:
    return request.app.state.session_store


def _get_orchestrator(request: Request) -> Orchestrator:
    state = request.app.state
    return Orchestrator(state.session_store, state.text_generator, state.image_generator, state.storage)


async def _require_session(store: DesignSessionStore, session_id: str, user: User):
    session = await store.get_session(session_id, user.id)
    if not session:
        raise NotFound()
    return session


@router.post("/ai/start-session", response_model=StartSessionResponse, status_code=201)
async def start_session(
    body: StartSessionRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Open a design session from the design brief. Expires in 15 days unless favorited."""
    store = _get_store(request)
    session = await store.create_session(current_user.id, body, is_favorite=body.is_favorite)
    logger.info("User %s started design session %s", current_user.id, session.id)
    return StartSessionResponse(session=session)


@router.post("/ai/send-message", response_model=SendMessageResponse)
async def send_message(
    body: SendMessageRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Run one chat turn: the user's message in, the designer's reply and render out."""
    orchestrator = _get_orchestrator(request)
    result = await orchestrator.handle_message(
        session_id=str(body.session_id),
        user_id=current_user.id,
        content=body.message,
        reference_image_url=str(body.reference_image_url) if body.reference_image_url else None,
        is_initial=body.is_initial,
        form_data=body.form_data,
    )
    return SendMessageResponse(
        message=result.message,
        image_url=result.image_url,
        user_message=result.user_message,
        assistant_message=result.assistant_message,
    )


@router.get("/ai/sessions", response_model=SessionListResponse)
async def list_sessions(
    request: Request,
    q: Optional[str] = Query(None, max_length=200, description="Search title, description and category"),
    favorites_only: bool = Query(False),
    sort: SortOption = Query(SortOption.RECENT),
    current_user: User = Depends(get_current_user),
):
    """List the caller's design sessions."""
    sessions = await _get_store(request).list_sessions(current_user.id)
    return SessionListResponse(
        sessions=browse_sessions(sessions, search=q, favorites_only=favorites_only, sort_by=sort)
    )


@router.get("/ai/session/{session_id}", response_model=SessionDetailResponse)
async def get_session(
    session_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Get a session with its full message history, oldest first."""
    store = _get_store(request)
    session = await _require_session(store, session_id, current_user)
    messages = await store.list_messages(session.id, current_user.id)
    return SessionDetailResponse(session=session, messages=messages)


@router.delete("/ai/session/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(
    session_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Delete a session and all of its messages."""
    deleted = await _get_store(request).delete_session(session_id, current_user.id)
    if not deleted:
        raise NotFound()
    return DeleteSessionResponse()


@router.post("/ai/favorite-toggle", response_model=FavoriteToggleResponse)
async def favorite_toggle(
    body: FavoriteToggleRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Flip the favorite flag. Favorites never expire; at most 5 per user."""
    session = await _get_store(request).toggle_favorite(str(body.session_id), current_user.id)
    return FavoriteToggleResponse(is_favorite=session.is_favorite, expires_at=session.expires_at)


@router.post("/ai/reference-image", response_model=UploadResponse, status_code=201)
async def upload_reference_image(
    request: Request,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
):
    """Store a customer's reference image and return its public URL."""
    extension = ALLOWED_IMAGE_TYPES.get(file.content_type or "")
    if not extension:
        raise ValidationFailed("Reference image must be PNG, JPEG or WebP")

    data = await file.read()
    if not data:
        raise ValidationFailed("Reference image is empty")
    if len(data) > MAX_REFERENCE_IMAGE_BYTES:
        raise ValidationFailed("Reference image must be 5 MB or smaller")

    url = await request.app.state.storage.upload(
        reference_image_path(current_user.id, extension), data, content_type=file.content_type
    )
    return UploadResponse(url=url)


@router.post("/ai/order", response_model=OrderResponse)
async def place_order(
    body: OrderRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Request that the atelier make the design shown in one of the session's messages."""
    store = _get_store(request)
    session = await _require_session(store, str(body.session_id), current_user)

    message = await store.get_message(str(body.message_id), session.id)
    if not message:
        raise NotFound("Message not found")

    order_id = await store.create_order(
        current_user.id, session.id, message.id, body.notes, image_url=message.image_url
    )
    return OrderResponse(order_id=order_id)


def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Scheduler auth: a bearer token equal to CRON_SECRET, when one is configured."""
    expected = os.getenv("CRON_SECRET")
    if not expected:
        return
    if not credentials or not secrets.compare_digest(credentials.credentials, expected):
        raise Unauthorized()


@router.post(
    "/ai/cleanup-expired-sessions",
    response_model=CleanupResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def cleanup_expired_sessions(request: Request):
    """Scheduled job: delete non-favorite sessions past their expiration."""
    count = sweep_expired_sessions(request.app.state.session_factory)
    if count == 0:
        return CleanupResponse(message="No expired sessions to clean up", count=0)
    return CleanupResponse(message=f"Cleaned up {count} expired sessions", count=count)
