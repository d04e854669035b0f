"""
Tests for the SQLAlchemy design session store and the chat orchestrator.

Store methods are coroutines; each test drives them with asyncio.run.
"""

import asyncio
import uuid

import pytest
from sqlalchemy.dialects import postgresql

from atelier.lifecycle import LimitExceeded, is_expired, utcnow
from backend.database import SessionLocal
from backend.designer.models import DesignBrief, Sender
from backend.designer.orchestrator import Orchestrator
from backend.designer.session_store import lock_owner_stmt, lock_session_stmt
from backend.errors import NotFound
from backend.models_db import DesignMessage, DesignOrder


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def design_brief(brief):
    return DesignBrief(**brief)


def _assert_invariant(session):
    assert (session.expires_at is None) == session.is_favorite


class TestCreateAndLookup:

    def test_create_sets_expiry_and_title(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))

        _assert_invariant(session)
        assert session.title == "ring in gold (modern)"
        assert session.status == "active"
        assert not is_expired(session, utcnow())

    def test_lookup_is_scoped_by_owner(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))

        assert run(store.get_session(session.id, user_id)).id == session.id
        assert run(store.get_session(session.id, "someone-else")) is None


class TestMessages:

    def test_seq_increments_per_session(self, store, user_id, design_brief):
        first = run(store.create_session(user_id, design_brief))
        second = run(store.create_session(user_id, design_brief))

        a1 = run(store.append_message(first.id, Sender.USER, "one"))
        b1 = run(store.append_message(second.id, Sender.USER, "uno"))
        a2 = run(store.append_message(first.id, Sender.ASSISTANT, "two", "http://testserver/media/x.png"))

        assert (a1.seq, a2.seq, b1.seq) == (1, 2, 1)
        assert a2.image_url == "http://testserver/media/x.png"

    def test_history_ordered_by_seq(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        for i in range(5):
            run(store.append_message(session.id, Sender.USER if i % 2 == 0 else Sender.ASSISTANT, f"m{i}"))

        history = run(store.list_messages(session.id, user_id))
        assert [m.message for m in history] == ["m0", "m1", "m2", "m3", "m4"]
        assert [m.seq for m in history] == [1, 2, 3, 4, 5]

    def test_history_scoped_by_owner(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        run(store.append_message(session.id, Sender.USER, "private idea"))

        assert run(store.list_messages(session.id, "someone-else")) == []
        assert len(run(store.list_messages(session.id, user_id))) == 1

    def test_touch_scoped_by_owner(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))

        run(store.touch_session(session.id, "someone-else"))
        assert run(store.get_session(session.id, user_id)).last_message_at == session.last_message_at

        run(store.touch_session(session.id, user_id))
        assert run(store.get_session(session.id, user_id)).last_message_at >= session.last_message_at

    def test_seq_computed_under_session_row_lock(self):
        sql = str(lock_session_stmt("s1").compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql
        assert "design_sessions" in sql

    def test_empty_assistant_body_allowed(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        msg = run(store.append_message(session.id, Sender.ASSISTANT, ""))
        assert msg.message == ""
        assert msg.image_url is None


class TestToggleFavorite:

    def test_invariant_holds_after_every_toggle(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        for _ in range(4):
            session = run(store.toggle_favorite(session.id, user_id))
            _assert_invariant(session)

    def test_cap_enforced(self, store, user_id, design_brief):
        sessions = [run(store.create_session(user_id, design_brief)) for _ in range(6)]
        for s in sessions[:5]:
            run(store.toggle_favorite(s.id, user_id))

        with pytest.raises(LimitExceeded):
            run(store.toggle_favorite(sessions[5].id, user_id))

        after = run(store.get_session(sessions[5].id, user_id))
        assert after.is_favorite is False
        assert after.expires_at is not None

    def test_favorite_writes_lock_the_owner_row(self):
        sql = str(lock_owner_stmt("u1").compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql
        assert "users" in sql

    def test_conditional_update_matches_nothing_at_cap(self, store, user_id, design_brief):
        for _ in range(5):
            run(store.create_session(user_id, design_brief, is_favorite=True))
        extra = run(store.create_session(user_id, design_brief))

        db = SessionLocal()
        try:
            result = db.execute(store._mark_favorite_stmt(extra.id, user_id))
            db.commit()
            assert result.rowcount == 0
        finally:
            db.close()

    def test_unknown_session(self, store, user_id):
        with pytest.raises(NotFound):
            run(store.toggle_favorite(str(uuid.uuid4()), user_id))


class TestDelete:

    def test_delete_cascades_to_messages(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        run(store.append_message(session.id, Sender.USER, "hello"))

        assert run(store.delete_session(session.id, user_id)) is True
        assert run(store.get_session(session.id, user_id)) is None

        db = SessionLocal()
        try:
            assert db.query(DesignMessage).count() == 0
        finally:
            db.close()

    def test_delete_requires_owner(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        assert run(store.delete_session(session.id, "someone-else")) is False
        assert run(store.get_session(session.id, user_id)) is not None


class TestOrders:

    def test_order_outlives_its_session(self, store, user_id, design_brief):
        session = run(store.create_session(user_id, design_brief))
        msg = run(store.append_message(session.id, Sender.ASSISTANT, "done", "http://testserver/media/d.png"))
        order_id = run(store.create_order(user_id, session.id, msg.id, "size 6", image_url=msg.image_url))

        assert run(store.delete_session(session.id, user_id)) is True

        db = SessionLocal()
        try:
            order = db.get(DesignOrder, order_id)
            assert order.session_id is None
            assert order.message_id is None
            assert order.image_url == "http://testserver/media/d.png"
            assert order.notes == "size 6"
        finally:
            db.close()


class TestOrchestrator:

    def _orchestrator(self, store, fake_text, fake_image, tmp_path):
        from backend.services.storage import LocalObjectStorage
        return Orchestrator(store, fake_text, fake_image, LocalObjectStorage(str(tmp_path), "http://cdn.test"))

    def test_unknown_session_fails_before_persisting(self, store, user_id, fake_text, fake_image, tmp_path):
        orchestrator = self._orchestrator(store, fake_text, fake_image, tmp_path)

        with pytest.raises(NotFound):
            run(orchestrator.handle_message(str(uuid.uuid4()), user_id, "hello"))

        assert fake_text.calls == []
        assert fake_image.prompts == []

    def test_turn_result(self, store, user_id, design_brief, fake_text, fake_image, tmp_path):
        orchestrator = self._orchestrator(store, fake_text, fake_image, tmp_path)
        session = run(store.create_session(user_id, design_brief))

        result = run(orchestrator.handle_message(session.id, user_id, "hello"))

        assert result.message == fake_text.reply
        assert result.image_url.startswith(f"http://cdn.test/media/ai-generated-designs/{user_id}/{session.id}/")
        assert result.user_message.seq == 1
        assert result.assistant_message.seq == 2

    def test_storage_failure_still_completes_turn(self, store, user_id, design_brief, fake_text, fake_image,
                                                  tmp_path, monkeypatch):
        orchestrator = self._orchestrator(store, fake_text, fake_image, tmp_path)
        session = run(store.create_session(user_id, design_brief))

        async def broken_upload(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(orchestrator.storage, "upload", broken_upload)
        result = run(orchestrator.handle_message(session.id, user_id, "hello"))

        assert result.image_url is None
        assert len(run(store.list_messages(session.id, user_id))) == 2
