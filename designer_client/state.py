"""
Session state and its transitions.

SessionState is immutable. Each transition takes the current state plus the
outcome of one API call and returns the next state; nothing here does I/O.
Sessions and messages are the JSON objects returned by the API.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class SessionState:
    sessions: tuple = ()
    active_session: Optional[dict] = None
    messages: tuple = ()
    loading: bool = False
    error: Optional[str] = None

    @property
    def active_session_id(self) -> Optional[str]:
        return self.active_session["id"] if self.active_session else None

    def favorite_count(self) -> int:
        return sum(1 for s in self.sessions if s.get("is_favorite"))


def request_started(state: SessionState) -> SessionState:
    return replace(state, loading=True, error=None)


def request_failed(state: SessionState, error: str) -> SessionState:
    return replace(state, loading=False, error=error)


def sessions_loaded(state: SessionState, sessions: list) -> SessionState:
    active = state.active_session
    if active is not None:
        active = next((s for s in sessions if s["id"] == active["id"]), None)
    messages = state.messages if active is not None else ()
    return replace(state, sessions=tuple(sessions), active_session=active, messages=messages,
                   loading=False, error=None)


def session_started(state: SessionState, session: dict) -> SessionState:
    return replace(
        state,
        sessions=(session,) + tuple(s for s in state.sessions if s["id"] != session["id"]),
        active_session=session,
        messages=(),
        loading=False,
        error=None,
    )


def session_opened(state: SessionState, session: dict, messages: list) -> SessionState:
    return replace(
        state,
        sessions=tuple(session if s["id"] == session["id"] else s for s in state.sessions),
        active_session=session,
        messages=tuple(messages),
        loading=False,
        error=None,
    )


def message_exchanged(state: SessionState, session_id: str, user_message: dict,
                      assistant_message: dict) -> SessionState:
    """Append a completed turn. Only the active session's messages are held locally."""
    messages = state.messages
    if state.active_session_id == session_id:
        messages = messages + (user_message, assistant_message)
    last_message_at = assistant_message.get("created_at")
    sessions = tuple(
        {**s, "last_message_at": last_message_at} if s["id"] == session_id else s
        for s in state.sessions
    )
    active = state.active_session
    if active is not None and active["id"] == session_id:
        active = {**active, "last_message_at": last_message_at}
    return replace(state, sessions=sessions, active_session=active, messages=messages,
                   loading=False, error=None)


def favorite_toggled(state: SessionState, session_id: str, is_favorite: bool,
                     expires_at: Optional[str]) -> SessionState:
    def _apply(s: dict) -> dict:
        if s["id"] != session_id:
            return s
        return {**s, "is_favorite": is_favorite, "expires_at": expires_at}

    active = _apply(state.active_session) if state.active_session is not None else None
    return replace(state, sessions=tuple(_apply(s) for s in state.sessions), active_session=active,
                   loading=False, error=None)


def session_deleted(state: SessionState, session_id: str) -> SessionState:
    is_active = state.active_session_id == session_id
    return replace(
        state,
        sessions=tuple(s for s in state.sessions if s["id"] != session_id),
        active_session=None if is_active else state.active_session,
        messages=() if is_active else state.messages,
        loading=False,
        error=None,
    )


def error_cleared(state: SessionState) -> SessionState:
    return replace(state, error=None)
