"""
Redis Store
===========
Redis-backed OTP store using Lua scripts for atomic operations.
"""

from typing import Any, Dict, List, Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError

from otpgate.exceptions import AlreadyLocked, OTPNotFound, StoreUnavailable
from otpgate.otp.models import OTPRecord
from .base import OTPStore

logger = structlog.get_logger(__name__)

# Lua script for an atomic lock-check + overwrite.
# Returns {created, pttl, fields}.
CREATE_SCRIPT = """
local key = KEYS[1]
local ttl_ms = tonumber(ARGV[6])

if redis.call('EXISTS', key) == 1 then
    local attempts = tonumber(redis.call('HGET', key, 'attempts') or '0')
    local max_attempts = tonumber(redis.call('HGET', key, 'max_attempts') or '0')
    if attempts > max_attempts then
        return {0, redis.call('PTTL', key), redis.call('HGETALL', key)}
    end
    redis.call('DEL', key)
end

redis.call('HSET', key,
    'otp', ARGV[1],
    'to', ARGV[2],
    'description', ARGV[3],
    'provider', ARGV[4],
    'max_attempts', ARGV[5],
    'attempts', 1,
    'closed', 0)
redis.call('PEXPIRE', key, ttl_ms)

return {1, ttl_ms, redis.call('HGETALL', key)}
"""

# Lua script for an atomic read with optional increment.
# HINCRBY leaves the key's expiry untouched. Returns {pttl, fields} or nil.
READ_SCRIPT = """
local key = KEYS[1]

if redis.call('EXISTS', key) == 0 then
    return false
end

if ARGV[1] == '1' then
    redis.call('HINCRBY', key, 'attempts', 1)
end

return {redis.call('PTTL', key), redis.call('HGETALL', key)}
"""

# Lua script to mark a record closed. Returns {pttl, fields} or nil.
CLOSE_SCRIPT = """
local key = KEYS[1]

if redis.call('EXISTS', key) == 0 then
    return false
end

redis.call('HSET', key, 'closed', 1)

return {redis.call('PTTL', key), redis.call('HGETALL', key)}
"""

SCRIPTS = {
    "create": CREATE_SCRIPT,
    "read": READ_SCRIPT,
    "close": CLOSE_SCRIPT,
}


def _decode(value: Any) -> Any:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def _pairs(flat: List[Any]) -> Dict[str, str]:
    """Turn an HGETALL reply into a dict of strings."""
    items = [_decode(v) for v in flat]
    return dict(zip(items[::2], items[1::2]))


class RedisStore(OTPStore):
    """
    Redis-backed OTP store.

    One hash per (namespace, id) with a PEXPIRE-managed deadline. Every
    operation is a single Lua script, so concurrent increments serialize
    inside Redis.
    """

    def __init__(self, redis_client: Redis, prefix: str = "otpgate"):
        """
        Args:
            redis_client: Async Redis client
            prefix: Key prefix
        """
        self.redis = redis_client
        self.prefix = prefix
        self._script_shas: Dict[str, str] = {}

    @classmethod
    def from_url(cls, url: str, prefix: str = "otpgate") -> "RedisStore":
        return cls(Redis.from_url(url), prefix=prefix)

    def get_key(self, namespace: str, id: str) -> str:
        """Generate the hash key for an OTP."""
        return f"{self.prefix}:{namespace}:{id}"

    async def _ensure_script(self, name: str) -> str:
        """Load a Lua script into Redis if needed."""
        sha = self._script_shas.get(name)
        if sha is None:
            sha = await self.redis.script_load(SCRIPTS[name])
            self._script_shas[name] = _decode(sha)
        return self._script_shas[name]

    async def _run(self, name: str, key: str, *args) -> Any:
        try:
            sha = await self._ensure_script(name)
            try:
                return await self.redis.evalsha(sha, 1, key, *args)
            except NoScriptError:
                # Script cache was flushed (restart or SCRIPT FLUSH).
                logger.warning("Lua script missing, reloading", script=name)
                self._script_shas.pop(name, None)
                sha = await self._ensure_script(name)
                return await self.redis.evalsha(sha, 1, key, *args)
        except RedisError as e:
            logger.error("OTP store operation failed", script=name, error=str(e))
            raise StoreUnavailable("OTP store unavailable") from e

    def _to_record(self, namespace: str, id: str, pttl: Any, fields: Dict[str, str]) -> OTPRecord:
        pttl = int(pttl)
        return OTPRecord(
            namespace=namespace,
            id=id,
            otp=fields.get("otp", ""),
            to=fields.get("to", ""),
            description=fields.get("description", ""),
            provider=fields.get("provider", ""),
            attempts=int(fields.get("attempts", 0)),
            max_attempts=int(fields.get("max_attempts", 0)),
            ttl=pttl / 1000.0 if pttl > 0 else 0.0,
            closed=fields.get("closed", "0") in ("1", "true"),
        )

    def _parse(self, namespace: str, id: str, result: Optional[List[Any]]) -> OTPRecord:
        if result is None:
            raise OTPNotFound()
        pttl, flat = result
        return self._to_record(namespace, id, pttl, _pairs(flat))

    async def create(
        self,
        namespace: str,
        id: str,
        record: OTPRecord,
        ttl: float,
    ) -> OTPRecord:
        ttl_ms = max(int(ttl * 1000), 1)
        created, pttl, flat = await self._run(
            "create",
            self.get_key(namespace, id),
            record.otp,
            record.to,
            record.description,
            record.provider,
            record.max_attempts,
            ttl_ms,
        )

        out = self._to_record(namespace, id, pttl, _pairs(flat))
        if not int(created):
            raise AlreadyLocked(out)
        return out

    async def read(self, namespace: str, id: str, increment: bool = False) -> OTPRecord:
        result = await self._run(
            "read",
            self.get_key(namespace, id),
            "1" if increment else "0",
        )
        return self._parse(namespace, id, result)

    async def close(self, namespace: str, id: str) -> OTPRecord:
        result = await self._run("close", self.get_key(namespace, id))
        return self._parse(namespace, id, result)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def aclose(self) -> None:
        await self.redis.aclose()
