# backend/washbook/services/slots/hold_store.py
"""
HoldStore: short-lived, expiring claims on (date, time_slot) keys.

Redis layout:
    hold:slot:{date}:{HH:MM}   JSON hold, PX ttl               (the claim)
    hold:token:{hold_id}       JSON hold, PX ttl + tombstone   (token lookup)

The token key outlives the slot key so an expired hold is still
recognisable as "expired" rather than "never existed".

put    → Lua check-then-set (free key, or same holder_id)
remove → Lua compare-and-delete on hold_id
Reads treat expires_at <= now as absent even if the key is still there.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Protocol

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...errors import UnavailableError
from .config import BookingConfig, get_booking_config, minutes_to_time_str
from .domain import Hold, HoldKey

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# KEYS[1] slot key, KEYS[2] token key
# ARGV[1] hold JSON, ARGV[2] holder_id, ARGV[3] slot ttl ms, ARGV[4] token ttl ms
PUT_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current then
    local held = cjson.decode(current)
    if held['holder_id'] ~= ARGV[2] then
        return 0
    end
end
redis.call('SET', KEYS[1], ARGV[1], 'PX', ARGV[3])
redis.call('SET', KEYS[2], ARGV[1], 'PX', ARGV[4])
return 1
"""

# KEYS[1] slot key, KEYS[2] token key; ARGV[1] hold_id
REMOVE_SCRIPT = """
local removed = 0
local current = redis.call('GET', KEYS[1])
if current then
    local held = cjson.decode(current)
    if held['hold_id'] == ARGV[1] then
        redis.call('DEL', KEYS[1])
        removed = 1
    end
end
redis.call('DEL', KEYS[2])
return removed
"""


class HoldStore(Protocol):
    def put(self, key: HoldKey, hold: Hold, ttl_seconds: int) -> bool:
        ...

    def get(self, key: HoldKey) -> Optional[Hold]:
        ...

    def get_many(self, target_date: date, time_slots: Iterable[int]) -> dict[int, Hold]:
        ...

    def get_by_token(self, hold_id: str) -> Optional[Hold]:
        ...

    def remove(self, key: HoldKey, hold_id: str) -> bool:
        ...


@contextmanager
def redis_unavailable_guard(operation: str):
    """Re-raise connection-class Redis errors as UnavailableError."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.warning(f"Hold store unavailable during {operation}: {e}")
        raise UnavailableError(f"hold store unavailable: {operation}") from e


class RedisHoldStore:
    """HoldStore on a shared Redis instance (native PX expiry)."""

    SLOT_PREFIX = "hold:slot"
    TOKEN_PREFIX = "hold:token"

    def __init__(
        self,
        redis: Redis,
        config: BookingConfig | None = None,
        clock: Clock = datetime.now,
    ):
        self.redis = redis
        self.config = config or get_booking_config()
        self.clock = clock
        self._put = redis.register_script(PUT_SCRIPT)
        self._remove = redis.register_script(REMOVE_SCRIPT)

    def _slot_key(self, key: HoldKey) -> str:
        return f"{self.SLOT_PREFIX}:{key.date.isoformat()}:{minutes_to_time_str(key.time_slot)}"

    def _token_key(self, hold_id: str) -> str:
        return f"{self.TOKEN_PREFIX}:{hold_id}"

    # ── Write ────────────────────────────────────────────────────────────

    def put(self, key: HoldKey, hold: Hold, ttl_seconds: int) -> bool:
        """
        Claim key for hold unless another holder has a live claim.

        Returns:
            True if stored, False if the key is held by someone else.

        Raises:
            UnavailableError: Redis unreachable (never a false success)
        """
        slot_ttl_ms = ttl_seconds * 1000
        token_ttl_ms = (ttl_seconds + self.config.hold_tombstone_seconds) * 1000
        with redis_unavailable_guard("hold.put"):
            stored = self._put(
                keys=[self._slot_key(key), self._token_key(hold.hold_id)],
                args=[hold.to_json(), hold.holder_id, slot_ttl_ms, token_ttl_ms],
            )
        return bool(stored)

    def remove(self, key: HoldKey, hold_id: str) -> bool:
        """Delete the claim if it still belongs to hold_id."""
        with redis_unavailable_guard("hold.remove"):
            removed = self._remove(
                keys=[self._slot_key(key), self._token_key(hold_id)],
                args=[hold_id],
            )
        return bool(removed)

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, key: HoldKey) -> Optional[Hold]:
        with redis_unavailable_guard("hold.get"):
            raw = self.redis.get(self._slot_key(key))
        return self._live(raw)

    def get_many(self, target_date: date, time_slots: Iterable[int]) -> dict[int, Hold]:
        """Live holds for several start times of one date (single MGET)."""
        slots = list(time_slots)
        if not slots:
            return {}

        keys = [self._slot_key(HoldKey(target_date, t)) for t in slots]
        with redis_unavailable_guard("hold.get_many"):
            values = self.redis.mget(keys)

        result = {}
        for time_slot, raw in zip(slots, values):
            hold = self._live(raw)
            if hold is not None:
                result[time_slot] = hold
        return result

    def get_by_token(self, hold_id: str) -> Optional[Hold]:
        """Hold by token, expired ones included while the tombstone lives."""
        with redis_unavailable_guard("hold.get_by_token"):
            raw = self.redis.get(self._token_key(hold_id))
        return _decode(raw)

    def _live(self, raw) -> Optional[Hold]:
        hold = _decode(raw)
        if hold is None or not hold.is_live(self.clock()):
            return None
        return hold


class InMemoryHoldStore:
    """
    Process-local HoldStore for single-instance deployments and tests.

    Expiry is checked on access; expired slot claims are purged lazily
    and reported through on_expire.
    """

    def __init__(
        self,
        clock: Clock = datetime.now,
        on_expire: Optional[Callable[[Hold], None]] = None,
        tombstone_seconds: int = 3600,
    ):
        self.clock = clock
        self.on_expire = on_expire
        self.tombstone = timedelta(seconds=tombstone_seconds)
        self._lock = threading.Lock()
        self._slots: dict[HoldKey, Hold] = {}
        self._tokens: dict[str, Hold] = {}

    def put(self, key: HoldKey, hold: Hold, ttl_seconds: int) -> bool:
        expired = []
        with self._lock:
            now = self.clock()
            current = self._slots.get(key)
            if current is not None and not current.is_live(now):
                expired.append(self._slots.pop(key))
                current = None
            if current is not None and current.holder_id != hold.holder_id:
                stored = False
            else:
                self._slots[key] = hold
                self._tokens[hold.hold_id] = hold
                stored = True
        self._notify(expired)
        return stored

    def get(self, key: HoldKey) -> Optional[Hold]:
        with self._lock:
            hold, expired = self._live_slot(key)
        self._notify(expired)
        return hold

    def get_many(self, target_date: date, time_slots: Iterable[int]) -> dict[int, Hold]:
        result = {}
        expired = []
        with self._lock:
            for time_slot in time_slots:
                hold, gone = self._live_slot(HoldKey(target_date, time_slot))
                expired.extend(gone)
                if hold is not None:
                    result[time_slot] = hold
        self._notify(expired)
        return result

    def get_by_token(self, hold_id: str) -> Optional[Hold]:
        with self._lock:
            hold = self._tokens.get(hold_id)
            if hold is None:
                return None
            if hold.expires_at + self.tombstone <= self.clock():
                del self._tokens[hold_id]
                return None
            return hold

    def remove(self, key: HoldKey, hold_id: str) -> bool:
        with self._lock:
            self._tokens.pop(hold_id, None)
            current = self._slots.get(key)
            if current is None or current.hold_id != hold_id:
                return False
            del self._slots[key]
            return True

    def _live_slot(self, key: HoldKey) -> tuple[Optional[Hold], list[Hold]]:
        # Caller holds self._lock
        hold = self._slots.get(key)
        if hold is None:
            return None, []
        if hold.is_live(self.clock()):
            return hold, []
        del self._slots[key]
        return None, [hold]

    def _notify(self, expired: list[Hold]) -> None:
        if not self.on_expire:
            return
        for hold in expired:
            try:
                self.on_expire(hold)
            except Exception as e:
                logger.error(f"hold_expired callback failed for {hold.hold_id}: {e}")


def _decode(raw) -> Optional[Hold]:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode()
    try:
        return Hold.from_json(raw)
    except (ValueError, KeyError) as e:
        logger.warning(f"Discarding malformed hold record: {e}")
        return None
