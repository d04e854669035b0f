"""
Client-side store for AI design sessions.

SessionStore is the single source of truth a UI reads from. Each action
makes one request to the Lumiere API and, on success, moves the state
forward with the matching transition from ``designer_client.state``. On
failure the error message is recorded on the state (for a toast) and the
rest of the state is left as it was.

Usage:
    http = httpx.Client(base_url="https://lumiere.example")
    store = SessionStore(http, token)
    store.subscribe(render)
    session = store.start_session({"category": "ring", ...})
    store.send_message(session["id"], "Could the band be thinner?")

Rapid repeated calls are not debounced or serialized here.
"""

import logging
from typing import Callable, Optional

import httpx

from designer_client import state as transitions
from designer_client.state import SessionState

logger = logging.getLogger(__name__)

Listener = Callable[[SessionState], None]

API_PREFIX = "/api/ai"


class SessionStore:
    def __init__(self, http: httpx.Client, token: Optional[str] = None):
        self._http = http
        self._token = token
        self._state = SessionState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: SessionState) -> None:
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    def _request(self, method: str, path: str, **kwargs) -> Optional[dict]:
        """Send one request. Returns the JSON body, or None after recording the error."""
        self._set_state(transitions.request_started(self._state))
        try:
            resp = self._http.request(method, f"{API_PREFIX}{path}", headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            self._set_state(transitions.request_failed(self._state, "Network error. Please try again."))
            return None

        if resp.status_code >= 400:
            self._set_state(transitions.request_failed(self._state, _error_message(resp)))
            return None
        return resp.json()

    # --- Actions ---

    def list_sessions(self, q: Optional[str] = None, favorites_only: bool = False,
                      sort: str = "recent") -> list:
        params = {"favorites_only": favorites_only, "sort": sort}
        if q:
            params["q"] = q
        body = self._request("GET", "/sessions", params=params)
        if body is None:
            return []
        self._set_state(transitions.sessions_loaded(self._state, body["sessions"]))
        return body["sessions"]

    def start_session(self, brief: dict) -> Optional[dict]:
        body = self._request("POST", "/start-session", json=brief)
        if body is None:
            return None
        self._set_state(transitions.session_started(self._state, body["session"]))
        return body["session"]

    def open_session(self, session_id: str) -> Optional[dict]:
        body = self._request("GET", f"/session/{session_id}")
        if body is None:
            return None
        self._set_state(transitions.session_opened(self._state, body["session"], body["messages"]))
        return body["session"]

    def upload_reference_image(self, filename: str, data: bytes, content_type: str) -> Optional[str]:
        body = self._request("POST", "/reference-image", files={"file": (filename, data, content_type)})
        return body["url"] if body is not None else None

    def send_message(
        self,
        session_id: str,
        text: str,
        image: Optional[tuple] = None,
        is_initial: bool = False,
        form_data: Optional[dict] = None,
    ) -> Optional[dict]:
        """Send one chat message. ``image`` is an optional (filename, bytes, content_type) upload."""
        payload = {"session_id": session_id, "message": text, "is_initial": is_initial}
        if form_data is not None:
            payload["form_data"] = form_data
        if image is not None:
            url = self.upload_reference_image(*image)
            if url is None:
                return None
            payload["reference_image_url"] = url

        body = self._request("POST", "/send-message", json=payload)
        if body is None:
            return None
        self._set_state(transitions.message_exchanged(
            self._state, session_id, body["user_message"], body["assistant_message"]
        ))
        return body["assistant_message"]

    def toggle_favorite(self, session_id: str) -> Optional[bool]:
        body = self._request("POST", "/favorite-toggle", json={"session_id": session_id})
        if body is None:
            return None
        self._set_state(transitions.favorite_toggled(
            self._state, session_id, body["is_favorite"], body.get("expires_at")
        ))
        return body["is_favorite"]

    def delete_session(self, session_id: str) -> bool:
        body = self._request("DELETE", f"/session/{session_id}")
        if body is None:
            return False
        self._set_state(transitions.session_deleted(self._state, session_id))
        return True

    def dismiss_error(self) -> None:
        self._set_state(transitions.error_cleared(self._state))


def _error_message(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, str) and detail:
        return detail
    return f"Request failed ({resp.status_code})"
