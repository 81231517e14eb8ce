"""
PostgreSQL LISTEN/NOTIFY change feed.

Database triggers publish a JSON payload on a per-table channel for every
insert/update/delete, so changes made by any process (migrations, scripts,
other API instances) reach the invalidation bridge.
"""
import asyncio
import json
import logging
from typing import AsyncIterator, Dict, Optional

import asyncpg

from .invalidation import ChangeEvent

logger = logging.getLogger("cache.notifications")

# NOTIFY channel -> resource type
CHANNEL_RESOURCES: Dict[str, str] = {
    "match_updates": "match",
    "league_updates": "league",
    "vote_updates": "vote",
    "stats_updates": "statistic",
}

# Table -> channel, for install_notify_triggers()
TRIGGER_TABLES: Dict[str, str] = {
    "matches": "match_updates",
    "leagues": "league_updates",
    "votes": "vote_updates",
    "match_statistics": "stats_updates",
}

NOTIFY_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION cache_notify_change() RETURNS trigger AS $$
DECLARE
    rec RECORD;
BEGIN
    IF TG_OP = 'DELETE' THEN
        rec := OLD;
    ELSE
        rec := NEW;
    END IF;
    PERFORM pg_notify(
        TG_ARGV[0],
        json_build_object(
            'table', TG_TABLE_NAME,
            'action', TG_OP,
            'id', to_jsonb(rec) ->> 'id',
            'matchId', to_jsonb(rec) ->> 'match_id',
            'deleted', TG_OP = 'DELETE'
        )::text
    );
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

_CLOSED = object()


def parse_notification(channel: str, payload: Optional[str]) -> Optional[ChangeEvent]:
    """
    Build a ChangeEvent from a NOTIFY payload.

    Unknown channels yield None. A payload that is not valid JSON is logged
    and treated as empty; the event still invalidates its resource type.
    """
    resource_type = CHANNEL_RESOURCES.get(channel)
    if resource_type is None:
        return None

    data: dict = {}
    if payload:
        try:
            decoded = json.loads(payload)
            if isinstance(decoded, dict):
                data = decoded
        except ValueError:
            logger.warning(f"Malformed payload on {channel}: {payload[:200]!r}")

    record_id = data.get("id") or data.get("matchId")
    if data.get("deleted") is True:
        operation = "delete"
    else:
        operation = str(data.get("action") or "update").lower()

    return ChangeEvent(
        resource_type=resource_type,
        id=str(record_id) if record_id is not None else None,
        operation=operation,
    )


class PostgresChangeFeed:
    """
    ChangeFeed over a dedicated asyncpg connection.

    Notifications are queued by the asyncpg listener callbacks and yielded
    from events(); connection termination ends the iterator with an error so
    the bridge reconnects.
    """

    def __init__(self, dsn: str, channels: Optional[Dict[str, str]] = None, timeout: float = 10.0):
        self._dsn = dsn
        self._channels = list((channels or CHANNEL_RESOURCES).keys())
        self._timeout = timeout
        self._conn: Optional[asyncpg.Connection] = None
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()

    async def connect(self) -> None:
        self._queue = asyncio.Queue()
        self._conn = await asyncpg.connect(self._dsn, timeout=self._timeout)
        self._conn.add_termination_listener(self._on_terminated)
        for channel in self._channels:
            await self._conn.add_listener(channel, self._on_notification)
        logger.info(f"LISTEN started on channels: {', '.join(self._channels)}")

    def _on_notification(self, connection, pid: int, channel: str, payload: str) -> None:
        event = parse_notification(channel, payload)
        if event is not None:
            self._queue.put_nowait(event)

    def _on_terminated(self, connection) -> None:
        self._queue.put_nowait(_CLOSED)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                raise ConnectionError("Notification connection closed")
            yield item

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None and not conn.is_closed():
            await conn.close()


async def install_notify_triggers(conn: asyncpg.Connection, tables: Optional[Dict[str, str]] = None) -> None:
    """
    Create the notify function and AFTER INSERT/UPDATE/DELETE triggers.

    Idempotent: existing triggers are replaced. Tables that do not exist are
    skipped.
    """
    await conn.execute(NOTIFY_FUNCTION_SQL)
    for table, channel in (tables or TRIGGER_TABLES).items():
        exists = await conn.fetchval("SELECT to_regclass($1) IS NOT NULL", table)
        if not exists:
            logger.info(f"Skipping notify trigger for missing table {table}")
            continue
        trigger = f"cache_notify_{table}"
        await conn.execute(f'DROP TRIGGER IF EXISTS {trigger} ON "{table}"')
        await conn.execute(
            f'CREATE TRIGGER {trigger} AFTER INSERT OR UPDATE OR DELETE ON "{table}" '
            f"FOR EACH ROW EXECUTE FUNCTION cache_notify_change('{channel}')"
        )
        logger.info(f"Installed notify trigger on {table} -> {channel}")


async def setup_notify_triggers(dsn: str, timeout: float = 10.0) -> bool:
    """
    Install the notify triggers over a short-lived connection.

    Runs at startup when a change feed is configured. A database that cannot
    be reached leaves the cache on TTL expiry; startup continues.

    Returns:
        True if the triggers were installed
    """
    try:
        conn = await asyncpg.connect(dsn, timeout=timeout)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
        logger.warning(f"Cannot install notify triggers, database unreachable: {e}")
        return False

    try:
        await install_notify_triggers(conn)
    except asyncpg.PostgresError as e:
        logger.warning(f"Installing notify triggers failed: {e}")
        return False
    finally:
        await conn.close()
    return True
