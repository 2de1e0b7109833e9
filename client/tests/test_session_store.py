"""
Tests for per-room session persistence.

Covers the in-memory, SQLite and Redis stores against the same contract:
partial updates leave other fields alone, and the active-room pointer can
be set and cleared independently of the auth records.
"""

import os
import sqlite3
import tempfile
import threading

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from models.session import Role, StoredAuth
from stores.redis_session_store import RedisSessionStore
from stores.session_store import MemorySessionStore, SqliteSessionStore


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sqlite_store():
    """Create a SQLite store backed by a temporary database."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    yield SqliteSessionStore(db_path=path)

    os.unlink(path)


@pytest.fixture
def mock_redis():
    """Create a mock Redis client that keeps hashes and strings in dicts."""
    mock = AsyncMock()

    data = {}
    hashes = {}

    async def mock_set(key, value, ex=None):
        data[key] = value.encode() if isinstance(value, str) else value

    async def mock_get(key):
        return data.get(key)

    async def mock_delete(*keys):
        for key in keys:
            data.pop(key, None)
            hashes.pop(key, None)

    async def mock_hgetall(key):
        return hashes.get(key, {})

    def mock_pipeline():
        pipe = MagicMock()

        def pipe_hset(key, mapping=None, **kwargs):
            bucket = hashes.setdefault(key, {})
            for k, v in (mapping or {}).items():
                bucket[k.encode()] = v.encode()
            return pipe

        pipe.hset = pipe_hset
        pipe.expire = MagicMock(return_value=pipe)
        pipe.execute = AsyncMock(return_value=[])
        mock._pipes.append(pipe)
        return pipe

    mock._pipes = []
    mock.set = mock_set
    mock.get = mock_get
    mock.delete = mock_delete
    mock.hgetall = mock_hgetall
    mock.pipeline = mock_pipeline
    mock.close = AsyncMock()

    mock._data = data
    mock._hashes = hashes
    return mock


@pytest.fixture
def redis_store(mock_redis):
    return RedisSessionStore(mock_redis)


@pytest.fixture(params=["memory", "sqlite", "redis"])
def store(request, sqlite_store, redis_store):
    """Each store implementation, for contract tests."""
    if request.param == "memory":
        return MemorySessionStore()
    if request.param == "sqlite":
        return sqlite_store
    return redis_store


# =============================================================================
# Contract tests (all stores)
# =============================================================================

class TestSessionStoreContract:

    @pytest.mark.asyncio
    async def test_unknown_room_is_empty(self, store):
        record = await store.get("nope")
        assert record == StoredAuth()
        assert not record.is_complete()
        assert await store.get_token("nope") is None

    @pytest.mark.asyncio
    async def test_persist_and_get(self, store):
        await store.persist("r1", token="tok", name="Alice", role=Role.ADMIN)

        record = await store.get("r1")
        assert record.token == "tok"
        assert record.name == "Alice"
        assert record.role == Role.ADMIN
        assert record.is_complete()

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, store):
        """A token refresh must not wipe the name or role."""
        await store.persist("r1", token="old", name="Alice", role=Role.PLAYER)
        await store.persist("r1", token="new")

        record = await store.get("r1")
        assert record.token == "new"
        assert record.name == "Alice"
        assert record.role == Role.PLAYER

    @pytest.mark.asyncio
    async def test_role_update_only(self, store):
        await store.persist("r1", token="tok", name="Alice", role=Role.PLAYER)
        await store.persist("r1", role=Role.ADMIN)

        record = await store.get("r1")
        assert record.role == Role.ADMIN
        assert record.token == "tok"

    @pytest.mark.asyncio
    async def test_rooms_are_independent(self, store):
        await store.persist("r1", token="t1", name="Alice", role=Role.ADMIN)
        await store.persist("r2", token="t2", name="Bob", role=Role.PLAYER)

        assert (await store.get("r1")).name == "Alice"
        assert (await store.get("r2")).name == "Bob"
        assert await store.get_token("r2") == "t2"

    @pytest.mark.asyncio
    async def test_active_room_pointer(self, store):
        assert await store.get_active_room_id() is None

        await store.set_active_room_id("r1")
        assert await store.get_active_room_id() == "r1"

        await store.set_active_room_id("r2")
        assert await store.get_active_room_id() == "r2"

        await store.clear_active_room_id()
        assert await store.get_active_room_id() is None

    @pytest.mark.asyncio
    async def test_clearing_pointer_keeps_records(self, store):
        await store.persist("r1", token="tok", name="Alice", role=Role.PLAYER)
        await store.set_active_room_id("r1")
        await store.clear_active_room_id()

        assert await store.get_token("r1") == "tok"


# =============================================================================
# Implementation specifics
# =============================================================================

class TestSqliteSessionStore:

    @pytest.mark.asyncio
    async def test_survives_reopen(self, sqlite_store):
        """A new store on the same file sees earlier writes."""
        await sqlite_store.persist("r1", token="tok", name="Alice", role=Role.ADMIN)
        await sqlite_store.set_active_room_id("r1")

        reopened = SqliteSessionStore(db_path=str(sqlite_store.db_path))
        assert await reopened.get_active_room_id() == "r1"
        assert (await reopened.get("r1")).role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_unknown_role_reads_as_none(self, sqlite_store):
        with sqlite3.connect(sqlite_store.db_path) as conn:
            conn.execute(
                "INSERT INTO room_auth (room_id, token, name, role) VALUES (?, ?, ?, ?)",
                ("r1", "tok", "Alice", "superuser"),
            )

        record = await sqlite_store.get("r1")
        assert record.role is None
        assert not record.is_complete()

    @pytest.mark.asyncio
    async def test_queries_run_off_the_event_loop(self, sqlite_store):
        """Every query executes in a worker thread, not the loop's thread."""
        loop_thread = threading.get_ident()
        seen = []
        original = sqlite3.connect

        def recording_connect(*args, **kwargs):
            seen.append(threading.get_ident())
            return original(*args, **kwargs)

        with patch("stores.session_store.sqlite3.connect", side_effect=recording_connect):
            await sqlite_store.persist("r1", token="tok", name="Alice")
            await sqlite_store.get("r1")
            await sqlite_store.set_active_room_id("r1")
            await sqlite_store.get_active_room_id()
            await sqlite_store.clear_active_room_id()

        assert len(seen) == 5
        assert loop_thread not in seen


class TestRedisSessionStore:

    @pytest.mark.asyncio
    async def test_keys_and_ttl(self, redis_store, mock_redis):
        await redis_store.persist("r1", token="tok", name="Alice", role=Role.ADMIN)

        assert b"token" in mock_redis._hashes["buzzer:auth:r1"]
        pipe = mock_redis._pipes[-1]
        pipe.expire.assert_called_once_with(
            "buzzer:auth:r1", int(RedisSessionStore.AUTH_TTL.total_seconds())
        )
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_persist_is_noop(self, redis_store, mock_redis):
        await redis_store.persist("r1")
        assert mock_redis._pipes == []

    @pytest.mark.asyncio
    async def test_active_room_decoded(self, redis_store, mock_redis):
        await redis_store.set_active_room_id("r1")
        assert mock_redis._data["buzzer:active_room"] == b"r1"
        assert await redis_store.get_active_room_id() == "r1"

    @pytest.mark.asyncio
    async def test_close(self, redis_store, mock_redis):
        await redis_store.close()
        mock_redis.close.assert_awaited_once()
