"""
End-to-end tests through FastAPI: response cache headers, conditional
requests, chunked views, the stats window and cache administration.
"""
from datetime import datetime, timedelta

import asyncpg
import pytest
from fastapi.testclient import TestClient

from app.cache import ChangeEvent
from app.main import create_app
from app.models import League, LeagueAdmin, Match, MatchStatistic
from config.settings import Settings

KICKOFF = datetime(2025, 3, 1, 18, 0)
PLAYER = {"X-User-Id": "player-1"}
ADMIN = {"X-User-Id": "boss"}


@pytest.fixture
def app():
    settings = Settings(
        database_url="sqlite://",
        notify_dsn=None,
        cache_reaper_interval_seconds=3600,
    )
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        seed(app)
        yield client


def seed(app):
    """League 1 with five results (m5 newest) and 30 fixtures in league 2."""
    db = app.state.session_factory()
    try:
        db.add_all([League(id=1, name="Sunday League"), League(id=2, name="Five-a-side")])
        db.add(LeagueAdmin(league_id=1, user_id="boss"))
        for i in range(1, 6):
            db.add(Match(
                id=i,
                league_id=1,
                status="RESULT_PUBLISHED",
                start=KICKOFF + timedelta(days=7 * i),
            ))
        for i in range(100, 130):
            db.add(Match(id=i, league_id=2, status="SCHEDULED", start=KICKOFF + timedelta(days=i)))
        db.commit()
    finally:
        db.close()


def stat_count(app):
    db = app.state.session_factory()
    try:
        return db.query(MatchStatistic).count()
    finally:
        db.close()


class TestResponseCache:
    def test_miss_then_hit(self, client):
        first = client.get("/leagues")
        second = client.get("/leagues")

        assert first.status_code == 200
        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert "x-cache-age" in second.headers
        assert first.headers["etag"] == second.headers["etag"]
        assert second.json() == first.json()
        assert [l["name"] for l in first.json()["leagues"]] == ["Five-a-side", "Sunday League"]

    def test_cache_control(self, client):
        response = client.get("/leagues")
        assert response.headers["cache-control"] == "public, max-age=120, must-revalidate"

    def test_conditional_request_returns_304(self, client):
        etag = client.get("/matches/1").headers["etag"]

        response = client.get("/matches/1", headers={"If-None-Match": etag})

        assert response.status_code == 304
        assert response.content == b""
        assert response.headers["etag"] == etag

    def test_stale_validator_gets_body(self, client):
        response = client.get("/matches/1", headers={"If-None-Match": '"stale"'})
        assert response.status_code == 200
        assert response.json()["match"]["id"] == 1

    def test_not_found_is_not_cached(self, client, app):
        response = client.get("/matches/999")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Match not found"}
        assert "etag" not in response.headers
        assert len(app.state.cache_store) == 0

    def test_query_filter_has_own_entry(self, client, app):
        client.get("/matches")
        client.get("/matches?leagueId=1")
        assert sorted(app.state.cache_store.keys()) == ["/matches?leagueId=1|public", "/matches|public"]

    def test_skip_cache(self, client, app):
        response = client.get("/leagues?skipCache=true")
        assert response.status_code == 200
        assert "x-cache" not in response.headers
        assert len(app.state.cache_store) == 0


class TestChunkedResponses:
    def test_pages_from_one_entry(self, client, app):
        first = client.get("/leagues/2/matches?page=1&limit=20")
        second = client.get("/leagues/2/matches?page=2&limit=20")

        assert len(first.json()["matches"]) == 20
        body = second.json()
        assert len(body["matches"]) == 10
        assert body["chunk"]["totalItems"] == 30
        assert body["chunk"]["hasMore"] is False
        assert second.headers["x-chunk-total"] == "2"
        assert second.headers["x-cache"] == "HIT"
        assert app.state.cache_store.keys() == ["/leagues/2/matches|public"]

    def test_chunked_flag(self, client):
        body = client.get("/matches?chunked=true").json()
        assert body["chunk"]["page"] == 1
        assert len(body["matches"]) == 20

    def test_page_etags_differ(self, client):
        p1 = client.get("/leagues/2/matches?page=1")
        p2 = client.get("/leagues/2/matches?page=2", headers={"If-None-Match": p1.headers["etag"]})

        assert p2.status_code == 200
        assert p1.headers["etag"] != p2.headers["etag"]


class TestStatsWindowRoutes:
    def test_window_report_for_player(self, client):
        response = client.get("/matches/3/stats-window", headers=PLAYER)

        assert response.status_code == 200
        window = response.json()["window"]
        assert window["isOlderThanTwo"] is True
        assert window["canPlayerSubmit"] is False
        assert window["adminCanSubmit"] is True
        assert window["indexFromEnd"] == 2
        assert "x-cache" not in response.headers

    def test_window_report_for_admin(self, client):
        window = client.get("/matches/3/stats-window", headers=ADMIN).json()["window"]
        assert window["isAdmin"] is True

    def test_window_report_unknown_match(self, client):
        assert client.get("/matches/999/stats-window").status_code == 404

    def test_player_can_submit_recent(self, client, app):
        response = client.post("/matches/5/stats", json={"goals": 2, "assists": 1}, headers=PLAYER)

        assert response.status_code == 200
        stat = response.json()["stat"]
        assert stat["goals"] == 2
        assert stat["user_id"] == "player-1"
        assert stat_count(app) == 1

    def test_player_rejected_for_older_game(self, client, app):
        response = client.post("/matches/3/stats", json={"goals": 1}, headers=PLAYER)

        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "message": (
                "It's not possible to add stats for earlier games. "
                "Please ask the admin to make changes to older games."
            ),
        }
        assert stat_count(app) == 0

    def test_admin_can_submit_older_game(self, client, app):
        response = client.post("/matches/1/stats", json={"goals": 3}, headers=ADMIN)
        assert response.status_code == 200
        assert stat_count(app) == 1

    def test_submit_requires_user(self, client):
        response = client.post("/matches/5/stats", json={"goals": 1})
        assert response.status_code == 401

    def test_invalid_payload(self, client):
        response = client.post("/matches/5/stats", json={"goals": -1}, headers=PLAYER)
        assert response.status_code == 422

    def test_resubmission_replaces_stats(self, client, app):
        client.post("/matches/5/stats", json={"goals": 1}, headers=PLAYER)
        client.post("/matches/5/stats", json={"goals": 4}, headers=PLAYER)

        stats = client.get("/matches/5/stats").json()["stats"]
        assert stat_count(app) == 1
        assert stats[0]["goals"] == 4

    def test_write_invalidates_cached_views(self, client, app):
        before = client.get("/matches/5/stats")
        assert before.json()["stats"] == []
        client.get("/leagues")

        client.post("/matches/5/stats", json={"goals": 2}, headers=PLAYER)

        after = client.get("/matches/5/stats")
        assert after.headers["x-cache"] == "MISS"
        assert after.json()["stats"][0]["goals"] == 2
        assert after.headers["etag"] != before.headers["etag"]
        assert client.get("/leagues").headers["x-cache"] == "MISS"

    def test_write_publishes_statistic_event(self, client, app):
        bridge = app.state.invalidation_bridge
        events = []
        handle_event = bridge.handle_event

        def recording_handle_event(event: ChangeEvent):
            events.append(event)
            return handle_event(event)

        bridge.handle_event = recording_handle_event
        client.post("/matches/5/stats", json={"goals": 2}, headers=PLAYER)

        assert len(events) == 1
        assert events[0].resource_type == "statistic"
        assert isinstance(events[0].id, str)
        assert events[0].id == str(client.get("/matches/5/stats").json()["stats"][0]["id"])


class TestCacheAdministration:
    def test_stats(self, client):
        client.get("/leagues")
        client.get("/leagues")

        body = client.get("/cache/stats").json()

        assert body["success"] is True
        assert body["cache"]["entries"] == 1
        assert body["cache"]["hits"] == 1
        assert body["cache"]["max_entries"] == 500
        assert body["invalidation"]["has_feed"] is False
        assert body["reaper"]["running"] is True

    def test_clear(self, client, app):
        client.get("/leagues")
        client.get("/matches")

        response = client.post("/cache/clear")

        assert response.json() == {"success": True, "removed": 2}
        assert len(app.state.cache_store) == 0

    def test_invalidate_pattern(self, client, app):
        client.get("/leagues")
        client.get("/matches")
        client.get("/matches/1")

        response = client.post("/cache/invalidate", params={"pattern": "/matches*"})

        assert response.json()["removed"] == 2
        assert app.state.cache_store.keys() == ["/leagues|public"]

    def test_invalidate_requires_pattern(self, client):
        assert client.post("/cache/invalidate").status_code == 422


class FakePostgres:
    """Records the asyncpg connections opened during startup."""

    def __init__(self):
        self.connections = []

    async def connect(self, dsn, timeout=None):
        conn = FakePostgresConnection()
        self.connections.append(conn)
        return conn


class FakePostgresConnection:
    def __init__(self):
        self.executed = []
        self.channels = []
        self.closed = False

    async def execute(self, sql, *args):
        self.executed.append(sql)

    async def fetchval(self, sql, *args):
        return True

    async def add_listener(self, channel, callback):
        self.channels.append(channel)

    def add_termination_listener(self, callback):
        pass

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True


class TestNotifyStartup:
    @pytest.fixture
    def postgres(self, monkeypatch):
        postgres = FakePostgres()
        monkeypatch.setattr(asyncpg, "connect", postgres.connect)
        return postgres

    def make_app(self, **overrides):
        settings = Settings(
            database_url="sqlite://",
            notify_dsn="postgresql://localhost/league",
            cache_reaper_interval_seconds=3600,
            **overrides,
        )
        return create_app(settings)

    def test_startup_installs_triggers(self, postgres):
        with TestClient(self.make_app()):
            installer = postgres.connections[0]
            assert "CREATE OR REPLACE FUNCTION cache_notify_change()" in installer.executed[0]
            creates = [sql for sql in installer.executed if sql.startswith("CREATE TRIGGER")]
            assert len(creates) == 4
            assert installer.closed

    def test_trigger_install_can_be_disabled(self, postgres):
        with TestClient(self.make_app(notify_install_triggers=False)):
            pass

        assert all(conn.executed == [] for conn in postgres.connections)

    def test_startup_survives_unreachable_database(self, monkeypatch):
        async def refuse(dsn, timeout=None):
            raise OSError("connection refused")

        monkeypatch.setattr(asyncpg, "connect", refuse)

        with TestClient(self.make_app()) as client:
            assert client.get("/health").json() == {"status": "ok"}
