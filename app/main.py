"""
League Stats API - Main FastAPI Application
League, match and player statistics with a shared response cache
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from sqlalchemy.orm import Session

from app import crud, schemas
from app.cache import CacheReaper, CacheStore, ChangeEvent, ConditionalResponseCache, InvalidationBridge
from app.cache.middleware import ResponseCacheMiddleware
from app.cache.notifications import PostgresChangeFeed, setup_notify_triggers
from app.db import get_db, init_db, make_engine, make_session_factory
from app.errors import NotFoundError, register_error_handlers
from app.identity import get_user_id
from app.stats_window import SqlStatsWindowAccessor, StatsWindowService
from config.settings import Settings, settings as default_settings

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "League Stats API"
APP_STAGE = "Beta"

logger = logging.getLogger("app.main")


def create_app(settings: Optional[Settings] = None, store: Optional[CacheStore] = None) -> FastAPI:
    """
    Build the application with its own cache store, database engine and
    background tasks.

    Args:
        settings: Configuration (defaults to environment/.env settings)
        store: Response store to share (a new one is created when omitted)
    """
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = make_engine(settings.database_url)
    session_factory = make_session_factory(engine)

    store = store or CacheStore(max_entries=settings.cache_max_entries)
    cache = ConditionalResponseCache(
        store,
        default_ttl=settings.cache_default_ttl_seconds,
        chunk_default_size=settings.chunk_default_size,
        chunk_max_size=settings.chunk_max_size,
        enabled=settings.cache_enabled,
    )
    feed = PostgresChangeFeed(settings.notify_dsn) if settings.notify_dsn else None
    bridge = InvalidationBridge(
        store,
        feed=feed,
        initial_backoff=settings.invalidation_initial_backoff_seconds,
        max_backoff=settings.invalidation_max_backoff_seconds,
    )
    reaper = CacheReaper(store, interval_seconds=settings.cache_reaper_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        if bridge.has_feed and settings.notify_install_triggers:
            await setup_notify_triggers(settings.notify_dsn)
        reaper.start()
        bridge.start()
        if not bridge.has_feed:
            logger.info("No notify DSN configured; cache relies on TTL and in-process events")
        try:
            yield
        finally:
            await bridge.stop()
            await reaper.stop()
            engine.dispose()

    app = FastAPI(
        title=f"{APP_NAME} ({APP_STAGE})",
        description="League, match and player statistics",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.cache_store = store
    app.state.response_cache = cache
    app.state.invalidation_bridge = bridge
    app.state.cache_reaper = reaper

    app.add_middleware(ResponseCacheMiddleware, cache=cache)
    register_error_handlers(app)
    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "stage": APP_STAGE,
            "full": f"{APP_NAME} {APP_VERSION} ({APP_STAGE})"
        }

    # ===== CACHE ADMINISTRATION =====

    @app.get("/cache/stats")
    def cache_stats(request: Request):
        """Get cache statistics."""
        state = request.app.state
        return {
            "success": True,
            "cache": state.response_cache.get_stats(),
            "invalidation": state.invalidation_bridge.get_stats(),
            "reaper": {
                "running": state.cache_reaper.running,
                "sweeps": state.cache_reaper.sweeps,
            },
        }

    @app.post("/cache/clear")
    def cache_clear(request: Request):
        """Drop every cached response."""
        removed = request.app.state.cache_store.clear()
        logger.info(f"Cache cleared via API ({removed} entries)")
        return {"success": True, "removed": removed}

    @app.post("/cache/invalidate")
    def cache_invalidate(request: Request, pattern: str = Query(..., min_length=1)):
        """Drop cached responses matching a key or '*' pattern, e.g. /matches*"""
        removed = request.app.state.cache_store.invalidate(pattern)
        logger.info(f"Cache invalidated via API: {pattern} ({removed} entries)")
        return {"success": True, "pattern": pattern, "removed": removed}

    # ===== LEAGUES =====

    @app.get("/leagues")
    def list_leagues(db: Session = Depends(get_db)):
        """
        Get all leagues

        Supports ?chunked=true&page=&limit= through the response cache
        """
        leagues = crud.get_leagues(db)
        return {
            "success": True,
            "leagues": [schemas.League.model_validate(league).model_dump(mode="json") for league in leagues],
        }

    @app.get("/leagues/{league_id}")
    def get_league(league_id: int, db: Session = Depends(get_db)):
        league = crud.get_league_by_id(db, league_id)
        if league is None:
            raise NotFoundError("League not found")
        return {"success": True, "league": schemas.League.model_validate(league).model_dump(mode="json")}

    @app.get("/leagues/{league_id}/matches")
    def get_league_matches(league_id: int, db: Session = Depends(get_db)):
        if crud.get_league_by_id(db, league_id) is None:
            raise NotFoundError("League not found")
        matches = crud.get_matches(db, league_id=league_id)
        return {
            "success": True,
            "matches": [schemas.Match.model_validate(m).model_dump(mode="json") for m in matches],
        }

    # ===== MATCHES =====

    @app.get("/matches")
    def list_matches(
        league_id: Optional[int] = Query(None, alias="leagueId"),
        db: Session = Depends(get_db)
    ):
        """
        Get matches, optionally for one league (?leagueId=)
        """
        matches = crud.get_matches(db, league_id=league_id)
        return {
            "success": True,
            "matches": [schemas.Match.model_validate(m).model_dump(mode="json") for m in matches],
        }

    @app.get("/matches/{match_id}")
    def get_match(match_id: int, db: Session = Depends(get_db)):
        match = crud.get_match_by_id(db, match_id)
        if match is None:
            raise NotFoundError("Match not found")
        return {"success": True, "match": schemas.Match.model_validate(match).model_dump(mode="json")}

    @app.get("/matches/{match_id}/stats")
    def get_match_stats(match_id: int, db: Session = Depends(get_db)):
        """Player statistics recorded for a match."""
        if crud.get_match_by_id(db, match_id) is None:
            raise NotFoundError("Match not found")
        stats = crud.get_match_statistics(db, match_id)
        return {
            "success": True,
            "stats": [schemas.MatchStatistic.model_validate(s).model_dump(mode="json") for s in stats],
        }

    # ===== STATS WINDOW =====

    @app.get("/matches/{match_id}/stats-window")
    def get_stats_window(match_id: int, request: Request, db: Session = Depends(get_db)):
        """
        Whether the caller may submit statistics for a match.

        Computed on every request; the path is never cached.
        """
        service = StatsWindowService(SqlStatsWindowAccessor(db))
        window = service.get_window(match_id, user_id=get_user_id(request))
        return {"success": True, "window": window.to_dict()}

    @app.post("/matches/{match_id}/stats")
    def submit_match_stats(
        match_id: int,
        payload: schemas.MatchStatisticIn,
        request: Request,
        db: Session = Depends(get_db)
    ):
        """
        Create or replace the caller's statistics for a match.

        Players may only edit the two most recent results of their league;
        admins may edit any match.
        """
        user_id = get_user_id(request)
        service = StatsWindowService(SqlStatsWindowAccessor(db))
        service.enforce(match_id, user_id)

        stat = crud.upsert_match_statistic(db, match_id, user_id, payload.model_dump())
        request.app.state.invalidation_bridge.handle_event(
            ChangeEvent("statistic", id=str(stat.id), operation="update")
        )
        return {"success": True, "stat": schemas.MatchStatistic.model_validate(stat).model_dump(mode="json")}


app = create_app()
