"""
Tests for session list filtering and sorting.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from atelier.browse import SortOption, browse_sessions, filter_sessions, sort_sessions

BASE = datetime(2026, 3, 1, 12, 0, 0)


def make_session(sid, title="ring in gold (modern)", description="A modern gold band", category="ring",
                 is_favorite=False, expires_at=None, last_message_at=None, created_at=BASE):
    return SimpleNamespace(
        id=sid,
        title=title,
        description=description,
        category=category,
        is_favorite=is_favorite,
        expires_at=expires_at,
        last_message_at=last_message_at,
        created_at=created_at,
    )


@pytest.fixture
def sessions():
    return [
        make_session("old", last_message_at=BASE + timedelta(hours=1), expires_at=BASE + timedelta(days=3)),
        make_session("new", last_message_at=BASE + timedelta(hours=5), expires_at=BASE + timedelta(days=10)),
        make_session("fav", category="necklace", title="necklace in silver (vintage)",
                     description="Victorian locket", is_favorite=True,
                     last_message_at=BASE + timedelta(hours=2)),
        make_session("quiet", created_at=BASE + timedelta(hours=3), expires_at=BASE + timedelta(days=1)),
    ]


class TestFilter:

    def test_search_is_case_insensitive(self, sessions):
        result = filter_sessions(sessions, search="LOCKET")
        assert [s.id for s in result] == ["fav"]

    def test_search_matches_category(self, sessions):
        result = filter_sessions(sessions, search="neck")
        assert [s.id for s in result] == ["fav"]

    def test_empty_search_keeps_all(self, sessions):
        assert len(filter_sessions(sessions, search="")) == 4

    def test_favorites_only(self, sessions):
        result = filter_sessions(sessions, favorites_only=True)
        assert [s.id for s in result] == ["fav"]

    def test_missing_title_tolerated(self):
        session = make_session("x", title=None)
        assert filter_sessions([session], search="gold") == [session]


class TestSort:

    def test_recent_uses_last_activity_then_created(self, sessions):
        result = sort_sessions(sessions, SortOption.RECENT)
        assert [s.id for s in result] == ["new", "quiet", "fav", "old"]

    def test_favorited_first_then_recent(self, sessions):
        result = sort_sessions(sessions, "favorited")
        assert [s.id for s in result] == ["fav", "new", "quiet", "old"]

    def test_expiring_soonest_first_never_last(self, sessions):
        result = sort_sessions(sessions, SortOption.EXPIRING)
        assert [s.id for s in result] == ["quiet", "old", "new", "fav"]

    def test_unknown_option_rejected(self, sessions):
        with pytest.raises(ValueError):
            sort_sessions(sessions, "alphabetical")


def test_browse_combines_filter_and_sort(sessions):
    result = browse_sessions(sessions, search="gold", sort_by=SortOption.EXPIRING)
    assert [s.id for s in result] == ["quiet", "old", "new"]
