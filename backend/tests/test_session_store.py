"""
Tests for the admin session store.
"""

import json
import threading
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.services.session_store import (
    InMemorySessionStore,
    Operation,
    RedisSessionStore,
    SessionIdentity,
    create_session_store,
)


ALICE = SessionIdentity.of(1001, -2002)
ALICE_OTHER_CHAT = SessionIdentity.of(1001, -3003)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 6, 1, 12, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


class FakeRedis:
    """Just enough of the redis client for the session store."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        self.ttls.pop(key, None)
        return True

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def expire(self, key, ttl):
        if key not in self.data:
            return False
        self.ttls[key] = ttl
        return True

    def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    def keys(self, pattern):
        prefix = pattern.rstrip("*")
        return [k for k in self.data if k.startswith(prefix)]

    def ping(self):
        return True


class TestInMemorySessionStore:
    """Test the in-process session registry."""

    def test_create_then_get(self):
        """Test a created session is returned with its operation and payload."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.FIELD_EDIT, {"field_name": "rating"})

        state = store.get(ALICE)
        assert state is not None
        assert state.operation == Operation.FIELD_EDIT
        assert state.payload == {"field_name": "rating"}
        assert state.identity == ALICE

    def test_update_merges_without_dropping_keys(self):
        """Test update shallow-merges and keeps the operation."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.VEHICLE_REGISTRATION, {"step": "serial", "assets": []})
        store.update(ALICE, {"serial": "1HGBH41JXMN109186", "step": "make"})

        state = store.get(ALICE)
        assert state.operation == Operation.VEHICLE_REGISTRATION
        assert state.payload == {"step": "make", "assets": [], "serial": "1HGBH41JXMN109186"}

    def test_update_without_session_is_noop(self):
        """Test update does not create a session."""
        store = InMemorySessionStore()
        store.update(ALICE, {"step": "make"})
        assert store.get(ALICE) is None

    def test_second_create_discards_previous_payload(self):
        """Test creating a session replaces the old one entirely."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.FIELD_EDIT, {"field_name": "rating", "target_id": "x"})
        store.create(ALICE, Operation.POLICY_SEARCH)

        state = store.get(ALICE)
        assert state.operation == Operation.POLICY_SEARCH
        assert state.payload == {}

    def test_clear_then_get_returns_none(self):
        """Test clear removes the session and is idempotent."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.POLICY_SEARCH)
        store.clear(ALICE)
        store.clear(ALICE)
        assert store.get(ALICE) is None

    def test_get_returns_a_copy(self):
        """Test mutating a returned payload does not change the stored one."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.POLICY_SEARCH, {"attempts": 0})
        store.get(ALICE).payload["attempts"] = 99
        assert store.get(ALICE).payload == {"attempts": 0}

    def test_identities_are_isolated_per_chat(self):
        """Test the same user in two chats has two sessions."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.POLICY_SEARCH)
        store.create(ALICE_OTHER_CHAT, Operation.RESTORE_SEARCH)

        assert store.get(ALICE).operation == Operation.POLICY_SEARCH
        assert store.get(ALICE_OTHER_CHAT).operation == Operation.RESTORE_SEARCH
        assert store.count() == 2

    def test_sliding_expiry(self):
        """Test sessions expire after the idle TTL and activity extends them."""
        clock = FakeClock()
        store = InMemorySessionStore(ttl_minutes=5, clock=clock)
        store.create(ALICE, Operation.POLICY_SEARCH)

        clock.advance(4)
        assert store.get(ALICE) is not None
        clock.advance(4)
        assert store.get(ALICE) is not None  # refreshed by the previous get

        clock.advance(6)
        assert store.get(ALICE) is None
        assert store.count() == 0

    def test_zero_ttl_never_expires(self):
        """Test a TTL of zero disables expiry."""
        clock = FakeClock()
        store = InMemorySessionStore(ttl_minutes=0, clock=clock)
        store.create(ALICE, Operation.POLICY_SEARCH)
        clock.advance(60 * 24)
        assert store.get(ALICE) is not None

    def test_stats_counts_per_operation(self):
        """Test stats groups active sessions by operation."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.POLICY_SEARCH)
        store.create(ALICE_OTHER_CHAT, Operation.POLICY_SEARCH)
        store.create(SessionIdentity.of(7, 7), Operation.FIELD_EDIT)

        assert store.stats() == {"search-for-edit": 2, "field-edit": 1}

    def test_concurrent_updates_keep_every_key(self):
        """Test updates from many threads are all applied."""
        store = InMemorySessionStore()
        store.create(ALICE, Operation.VEHICLE_REGISTRATION)

        threads = [
            threading.Thread(target=store.update, args=(ALICE, {f"key_{i}": i}))
            for i in range(25)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.get(ALICE).payload) == 25


class TestRedisSessionStore:
    """Test the Redis-backed store against an in-process fake client."""

    def test_create_update_get_clear(self):
        """Test the store contract holds over Redis."""
        client = FakeRedis()
        store = RedisSessionStore(client=client, ttl_minutes=5)

        store.create(ALICE, Operation.AWAITING_DELETION_REASON, {"policy_id": "p1"})
        store.update(ALICE, {"policy_number": "POL-1"})

        state = store.get(ALICE)
        assert state.operation == Operation.AWAITING_DELETION_REASON
        assert state.payload == {"policy_id": "p1", "policy_number": "POL-1"}

        store.clear(ALICE)
        assert store.get(ALICE) is None

    def test_keys_are_prefixed_and_expire(self):
        """Test entries are written with the idle TTL."""
        client = FakeRedis()
        store = RedisSessionStore(client=client, ttl_minutes=5)
        store.create(ALICE, Operation.POLICY_SEARCH)

        key = f"policyadmin:session:{ALICE.key}"
        assert key in client.data
        assert client.ttls[key] == timedelta(minutes=5)

    def test_get_refreshes_ttl(self):
        """Test reading a session slides its expiry."""
        client = FakeRedis()
        store = RedisSessionStore(client=client, ttl_minutes=5)
        store.create(ALICE, Operation.POLICY_SEARCH)
        key = f"policyadmin:session:{ALICE.key}"
        client.ttls[key] = timedelta(seconds=10)

        store.get(ALICE)
        assert client.ttls[key] == timedelta(minutes=5)

    def test_unknown_operation_reads_as_no_session(self):
        """Test an entry with an unparseable operation is treated as absent."""
        client = FakeRedis()
        store = RedisSessionStore(client=client)
        client.data[f"policyadmin:session:{ALICE.key}"] = json.dumps({
            "operation": "policy_unified_search",
            "payload": {},
            "created_at": datetime.utcnow().isoformat(),
            "last_activity": datetime.utcnow().isoformat(),
        })

        assert store.get(ALICE) is None
        store.update(ALICE, {"x": 1})
        assert json.loads(client.data[f"policyadmin:session:{ALICE.key}"])["payload"] == {}

    def test_stats(self):
        """Test stats reads operations from stored entries."""
        store = RedisSessionStore(client=FakeRedis())
        store.create(ALICE, Operation.FIELD_EDIT)
        store.create(ALICE_OTHER_CHAT, Operation.FIELD_EDIT)
        assert store.stats() == {"field-edit": 2}
        assert store.count() == 2


class TestCreateSessionStore:
    """Test backend selection."""

    def test_memory_backend(self):
        settings = SimpleNamespace(SESSION_BACKEND="memory", REDIS_URL="", SESSION_TTL_MINUTES=5)
        assert isinstance(create_session_store(settings), InMemorySessionStore)

    def test_unreachable_redis_falls_back_to_memory(self):
        settings = SimpleNamespace(
            SESSION_BACKEND="redis",
            REDIS_URL="redis://127.0.0.1:1/0",
            SESSION_TTL_MINUTES=5,
        )
        assert isinstance(create_session_store(settings), InMemorySessionStore)
