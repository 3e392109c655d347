"""
Unit Tests for OTP Stores
=========================
In-memory store semantics, the Redis store's script plumbing and the Lua scripts themselves.
"""

import asyncio
from unittest.mock import AsyncMock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, NoScriptError

from otpgate.exceptions import AlreadyLocked, OTPNotFound, StoreUnavailable
from otpgate.otp import OTPRecord
from otpgate.store import InMemoryStore, RedisStore
from otpgate.store.redis_store import CLOSE_SCRIPT, CREATE_SCRIPT, READ_SCRIPT


def make_template(**overrides) -> OTPRecord:
    fields = dict(
        namespace="myapp",
        id="myotp123",
        otp="123456",
        to="dummy@to.com",
        provider="dummyprovider",
        max_attempts=3,
    )
    fields.update(overrides)
    return OTPRecord(**fields)


# =============================================================================
# In-Memory Store
# =============================================================================


class TestInMemoryStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_create_sets_initial_state(self, store):
        """A new record starts with one attempt and open."""
        record = await store.create("myapp", "myotp123", make_template(attempts=9, closed=True), 10)

        assert record.attempts == 1
        assert record.closed is False
        assert record.otp == "123456"
        assert record.ttl == 10

    @pytest.mark.asyncio
    async def test_read_missing(self, store):
        with pytest.raises(OTPNotFound):
            await store.read("myapp", "missing1")

    @pytest.mark.asyncio
    async def test_read_without_increment(self, store):
        await store.create("myapp", "myotp123", make_template(), 10)

        first = await store.read("myapp", "myotp123")
        second = await store.read("myapp", "myotp123")

        assert first.attempts == 1
        assert second.attempts == 1

    @pytest.mark.asyncio
    async def test_read_with_increment(self, store):
        await store.create("myapp", "myotp123", make_template(), 10)

        assert (await store.read("myapp", "myotp123", increment=True)).attempts == 2
        assert (await store.read("myapp", "myotp123", increment=True)).attempts == 3

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, store):
        await store.create("myapp", "myotp123", make_template(), 10)

        with pytest.raises(OTPNotFound):
            await store.read("otherapp", "myotp123")

    @pytest.mark.asyncio
    async def test_expiry(self, store, clock):
        """Records vanish once the TTL elapses."""
        await store.create("myapp", "myotp123", make_template(), 10)

        clock.advance(9.5)
        assert (await store.read("myapp", "myotp123")).ttl == pytest.approx(0.5)

        clock.advance(0.5)
        with pytest.raises(OTPNotFound):
            await store.read("myapp", "myotp123")
        with pytest.raises(OTPNotFound):
            await store.close("myapp", "myotp123")

    @pytest.mark.asyncio
    async def test_increment_keeps_deadline(self, store, clock):
        await store.create("myapp", "myotp123", make_template(), 10)
        clock.advance(4)

        record = await store.read("myapp", "myotp123", increment=True)

        assert record.ttl == pytest.approx(6)

    @pytest.mark.asyncio
    async def test_close_keeps_deadline(self, store, clock):
        await store.create("myapp", "myotp123", make_template(), 10)
        clock.advance(3)

        record = await store.close("myapp", "myotp123")

        assert record.closed is True
        assert record.ttl == pytest.approx(7)
        assert (await store.read("myapp", "myotp123")).closed is True

    @pytest.mark.asyncio
    async def test_create_replaces_unlocked(self, store, clock):
        """Re-issuing resets attempts, the passcode and the TTL."""
        await store.create("myapp", "myotp123", make_template(), 10)
        await store.read("myapp", "myotp123", increment=True)
        await store.close("myapp", "myotp123")
        clock.advance(5)

        record = await store.create("myapp", "myotp123", make_template(otp="654321"), 10)

        assert record.attempts == 1
        assert record.closed is False
        assert record.otp == "654321"
        assert record.ttl == 10

    @pytest.mark.asyncio
    async def test_create_refuses_locked(self, store, clock):
        await store.create("myapp", "myotp123", make_template(), 10)
        for _ in range(3):
            await store.read("myapp", "myotp123", increment=True)
        clock.advance(2)

        with pytest.raises(AlreadyLocked) as exc_info:
            await store.create("myapp", "myotp123", make_template(otp="654321"), 10)

        assert exc_info.value.record.attempts == 4
        assert exc_info.value.record.ttl == pytest.approx(8)
        assert (await store.read("myapp", "myotp123")).otp == "123456"

    @pytest.mark.asyncio
    async def test_lock_clears_on_expiry(self, store, clock):
        await store.create("myapp", "myotp123", make_template(), 10)
        for _ in range(3):
            await store.read("myapp", "myotp123", increment=True)

        clock.advance(10)
        record = await store.create("myapp", "myotp123", make_template(), 10)

        assert record.attempts == 1

    @pytest.mark.asyncio
    async def test_concurrent_increments(self, store):
        """Every concurrent increment observes a distinct count."""
        await store.create("myapp", "myotp123", make_template(), 10)

        records = await asyncio.gather(
            *[store.read("myapp", "myotp123", increment=True) for _ in range(10)]
        )

        assert sorted(r.attempts for r in records) == list(range(2, 12))
        assert (await store.read("myapp", "myotp123")).attempts == 11

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.create("myapp", "myotp123", make_template(), 10)
        store.clear()

        with pytest.raises(OTPNotFound):
            await store.read("myapp", "myotp123")

    @pytest.mark.asyncio
    async def test_default_clock(self):
        store = InMemoryStore()
        record = await store.create("myapp", "myotp123", make_template(), 60)

        assert 0 < record.ttl <= 60


# =============================================================================
# Redis Store
# =============================================================================


SHAS = {
    CREATE_SCRIPT: b"sha-create",
    READ_SCRIPT: b"sha-read",
    CLOSE_SCRIPT: b"sha-close",
}


def hash_reply(**overrides):
    fields = {
        "otp": "123456",
        "to": "dummy@to.com",
        "description": "",
        "provider": "dummyprovider",
        "attempts": "2",
        "max_attempts": "3",
        "closed": "0",
    }
    fields.update(overrides)
    flat = []
    for key, value in fields.items():
        flat.extend([key.encode(), str(value).encode()])
    return flat


@pytest.fixture
def redis_client():
    client = AsyncMock()
    client.script_load.side_effect = lambda script: SHAS[script]
    return client


@pytest.fixture
def redis_store(redis_client):
    return RedisStore(redis_client, prefix="otpgate")


class TestRedisStore:
    """Tests for the Redis store against a mocked client."""

    def test_key_format(self, redis_store):
        assert redis_store.get_key("myapp", "myotp123") == "otpgate:myapp:myotp123"

    @pytest.mark.asyncio
    async def test_read_increment(self, redis_store, redis_client):
        redis_client.evalsha.return_value = [9500, hash_reply()]

        record = await redis_store.read("myapp", "myotp123", increment=True)

        redis_client.evalsha.assert_awaited_once_with(
            "sha-read", 1, "otpgate:myapp:myotp123", "1"
        )
        assert record.namespace == "myapp"
        assert record.id == "myotp123"
        assert record.otp == "123456"
        assert record.attempts == 2
        assert record.max_attempts == 3
        assert record.ttl == 9.5
        assert record.closed is False

    @pytest.mark.asyncio
    async def test_read_plain(self, redis_store, redis_client):
        redis_client.evalsha.return_value = [1000, hash_reply(closed="1")]

        record = await redis_store.read("myapp", "myotp123")

        assert redis_client.evalsha.await_args.args[-1] == "0"
        assert record.closed is True

    @pytest.mark.asyncio
    async def test_read_missing(self, redis_store, redis_client):
        redis_client.evalsha.return_value = None

        with pytest.raises(OTPNotFound):
            await redis_store.read("myapp", "myotp123")

    @pytest.mark.asyncio
    async def test_create(self, redis_store, redis_client):
        redis_client.evalsha.return_value = [1, 10000, hash_reply(attempts="1")]

        record = await redis_store.create("myapp", "myotp123", make_template(), 10)

        redis_client.evalsha.assert_awaited_once_with(
            "sha-create", 1, "otpgate:myapp:myotp123",
            "123456", "dummy@to.com", "", "dummyprovider", 3, 10000,
        )
        assert record.attempts == 1
        assert record.ttl == 10

    @pytest.mark.asyncio
    async def test_create_locked(self, redis_store, redis_client):
        redis_client.evalsha.return_value = [0, 4000, hash_reply(attempts="4")]

        with pytest.raises(AlreadyLocked) as exc_info:
            await redis_store.create("myapp", "myotp123", make_template(), 10)

        assert exc_info.value.record.attempts == 4
        assert exc_info.value.record.ttl == 4

    @pytest.mark.asyncio
    async def test_close(self, redis_store, redis_client):
        redis_client.evalsha.return_value = [3000, hash_reply(closed="1")]

        record = await redis_store.close("myapp", "myotp123")

        assert redis_client.evalsha.await_args.args[0] == "sha-close"
        assert record.closed is True

    @pytest.mark.asyncio
    async def test_scripts_loaded_once(self, redis_store, redis_client):
        redis_client.evalsha.return_value = [1000, hash_reply()]

        await redis_store.read("myapp", "myotp123")
        await redis_store.read("myapp", "myotp123")

        assert redis_client.script_load.await_count == 1

    @pytest.mark.asyncio
    async def test_reloads_flushed_script(self, redis_store, redis_client):
        """Should reload the script once when Redis lost it."""
        redis_client.evalsha.side_effect = [
            NoScriptError("NOSCRIPT No matching script"),
            [1000, hash_reply()],
        ]

        record = await redis_store.read("myapp", "myotp123")

        assert record.otp == "123456"
        assert redis_client.script_load.await_count == 2
        assert redis_client.evalsha.await_count == 2

    @pytest.mark.asyncio
    async def test_connection_error(self, redis_store, redis_client):
        redis_client.evalsha.side_effect = RedisConnectionError("connection refused")

        with pytest.raises(StoreUnavailable) as exc_info:
            await redis_store.read("myapp", "myotp123", increment=True)

        assert "connection refused" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_ping(self, redis_store, redis_client):
        redis_client.ping.return_value = True
        assert await redis_store.ping() is True

        redis_client.ping.side_effect = RedisConnectionError("down")
        assert await redis_store.ping() is False


@pytest.fixture
def scripted_store():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    return RedisStore(client, prefix="otpgate")


class TestRedisStoreScripts:
    """Runs the Lua scripts against an in-process Redis."""

    @pytest.mark.asyncio
    async def test_create(self, scripted_store):
        record = await scripted_store.create("myapp", "myotp123", make_template(attempts=7), 10)

        assert record.attempts == 1
        assert record.closed is False
        assert record.otp == "123456"
        assert record.max_attempts == 3
        assert 9 < record.ttl <= 10

    @pytest.mark.asyncio
    async def test_read_missing(self, scripted_store):
        with pytest.raises(OTPNotFound):
            await scripted_store.read("myapp", "missing1", increment=True)
        with pytest.raises(OTPNotFound):
            await scripted_store.close("myapp", "missing1")

    @pytest.mark.asyncio
    async def test_increment_keeps_expiry(self, scripted_store):
        await scripted_store.create("myapp", "myotp123", make_template(), 10)

        record = await scripted_store.read("myapp", "myotp123", increment=True)

        assert record.attempts == 2
        assert 9 < record.ttl <= 10
        assert 9000 < await scripted_store.redis.pttl("otpgate:myapp:myotp123") <= 10000

    @pytest.mark.asyncio
    async def test_concurrent_increments(self, scripted_store):
        """No increment is lost when checks race on one key."""
        await scripted_store.create("myapp", "myotp123", make_template(), 10)

        records = await asyncio.gather(
            *[scripted_store.read("myapp", "myotp123", increment=True) for _ in range(5)]
        )

        assert sorted(r.attempts for r in records) == [2, 3, 4, 5, 6]
        assert (await scripted_store.read("myapp", "myotp123")).attempts == 6

    @pytest.mark.asyncio
    async def test_create_refuses_locked(self, scripted_store):
        await scripted_store.create("myapp", "myotp123", make_template(), 10)
        for _ in range(3):
            await scripted_store.read("myapp", "myotp123", increment=True)

        with pytest.raises(AlreadyLocked) as exc_info:
            await scripted_store.create("myapp", "myotp123", make_template(otp="654321"), 10)

        assert exc_info.value.record.attempts == 4
        assert 9 < exc_info.value.record.ttl <= 10
        assert (await scripted_store.read("myapp", "myotp123")).otp == "123456"

    @pytest.mark.asyncio
    async def test_create_replaces_unlocked(self, scripted_store):
        await scripted_store.create("myapp", "myotp123", make_template(), 10)
        await scripted_store.read("myapp", "myotp123", increment=True)
        await scripted_store.close("myapp", "myotp123")

        record = await scripted_store.create("myapp", "myotp123", make_template(otp="654321"), 20)

        assert record.attempts == 1
        assert record.closed is False
        assert record.otp == "654321"
        assert 19 < record.ttl <= 20

    @pytest.mark.asyncio
    async def test_close_keeps_ttl(self, scripted_store):
        await scripted_store.create("myapp", "myotp123", make_template(), 10)

        record = await scripted_store.close("myapp", "myotp123")

        assert record.closed is True
        assert 9 < record.ttl <= 10
        assert (await scripted_store.read("myapp", "myotp123")).closed is True

    @pytest.mark.asyncio
    async def test_expiry(self, scripted_store):
        await scripted_store.create("myapp", "myotp123", make_template(), 0.2)

        await asyncio.sleep(0.3)

        with pytest.raises(OTPNotFound):
            await scripted_store.read("myapp", "myotp123")

    @pytest.mark.asyncio
    async def test_ping(self, scripted_store):
        assert await scripted_store.ping() is True
