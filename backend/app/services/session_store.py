"""
Admin Session Store - per-(user, chat) registry of the multi-step operation in progress.

Provides an in-memory store with a Redis-backed alternative. Each identity holds at most
one session; creating a new one discards the previous session entirely.
"""
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, TypedDict

from app.core.logging import get_logger

logger = get_logger(__name__)


class Operation(str, Enum):
    """Multi-step admin protocols that can be in progress for a session."""
    POLICY_SEARCH = "search-for-edit"
    AWAITING_DELETION_REASON = "awaiting-deletion-reason"
    FIELD_EDIT = "field-edit"
    FIELD_EDIT_CONFIRMATION = "field-edit-confirmation"
    RESTORE_SEARCH = "search-for-restore"
    VEHICLE_REGISTRATION = "vehicle-registration"


class PolicySearchPayload(TypedDict, total=False):
    attempts: int


class DeletionPayload(TypedDict):
    policy_id: str
    policy_number: str


class FieldEditPayload(TypedDict):
    target_kind: str  # "policy" or "service"
    target_id: str
    field_name: str
    prior_value: Optional[str]


class FieldEditConfirmationPayload(FieldEditPayload):
    candidate_value: Any  # JSON-safe form, see FieldSpec.to_storage


class VehicleRegistrationPayload(TypedDict, total=False):
    step: str
    serial: str
    make: str
    model: str
    year: int
    color: str
    plate: str
    assets: List[Dict[str, Any]]


class SessionIdentity(NamedTuple):
    """Composite session key: the admin user and the chat they are writing in."""
    user_id: str
    chat_id: str

    @classmethod
    def of(cls, user_id: Any, chat_id: Any) -> "SessionIdentity":
        return cls(str(user_id), str(chat_id))

    @property
    def key(self) -> str:
        return f"{self.user_id}:{self.chat_id}"


@dataclass
class SessionState:
    identity: SessionIdentity
    operation: Operation
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_activity: datetime = field(default_factory=datetime.utcnow)


class SessionStore(ABC):
    """Abstract base class for admin session storage."""

    @abstractmethod
    def create(
        self,
        identity: SessionIdentity,
        operation: Operation,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Start a session, replacing any existing one for the identity."""
        pass

    @abstractmethod
    def update(self, identity: SessionIdentity, partial: Dict[str, Any]) -> None:
        """Shallow-merge into the payload. No-op if there is no session."""
        pass

    @abstractmethod
    def get(self, identity: SessionIdentity) -> Optional[SessionState]:
        """Get a copy of the current session, or None."""
        pass

    @abstractmethod
    def clear(self, identity: SessionIdentity) -> None:
        """Remove the session. Idempotent."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get the number of active sessions."""
        pass

    @abstractmethod
    def stats(self) -> Dict[str, int]:
        """Count active sessions per operation."""
        pass


class InMemorySessionStore(SessionStore):
    """In-memory session store. One instance per process, or per test."""

    def __init__(
        self,
        ttl_minutes: int = 0,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._sessions: Dict[str, SessionState] = {}
        self._lock = threading.Lock()
        self._ttl = timedelta(minutes=ttl_minutes) if ttl_minutes > 0 else None
        self._clock = clock

    def _is_expired(self, state: SessionState, now: datetime) -> bool:
        return self._ttl is not None and now - state.last_activity > self._ttl

    def _cleanup_expired(self):
        """Remove expired sessions. Caller holds the lock."""
        if self._ttl is None:
            return
        now = self._clock()
        expired = [k for k, v in self._sessions.items() if self._is_expired(v, now)]
        for key in expired:
            logger.debug(f"Session expired: {key}")
            self._sessions.pop(key, None)

    def create(
        self,
        identity: SessionIdentity,
        operation: Operation,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        now = self._clock()
        state = SessionState(
            identity=identity,
            operation=Operation(operation),
            payload=dict(payload or {}),
            created_at=now,
            last_activity=now,
        )
        with self._lock:
            self._sessions[identity.key] = state

    def update(self, identity: SessionIdentity, partial: Dict[str, Any]) -> None:
        with self._lock:
            self._cleanup_expired()
            state = self._sessions.get(identity.key)
            if state is None:
                return
            state.payload = {**state.payload, **partial}
            state.last_activity = self._clock()

    def get(self, identity: SessionIdentity) -> Optional[SessionState]:
        with self._lock:
            self._cleanup_expired()
            state = self._sessions.get(identity.key)
            if state is None:
                return None
            state.last_activity = self._clock()
            return replace(state, payload=dict(state.payload))

    def clear(self, identity: SessionIdentity) -> None:
        with self._lock:
            self._sessions.pop(identity.key, None)

    def count(self) -> int:
        with self._lock:
            self._cleanup_expired()
            return len(self._sessions)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            self._cleanup_expired()
            counts: Dict[str, int] = {}
            for state in self._sessions.values():
                counts[state.operation.value] = counts.get(state.operation.value, 0) + 1
            return counts


class RedisSessionStore(SessionStore):
    """Redis-backed session store, for running several bot workers against one registry."""

    def __init__(self, redis_url: Optional[str] = None, ttl_minutes: int = 0, client=None):
        if client is None:
            import redis
            client = redis.from_url(redis_url, decode_responses=True)
        self._redis = client
        self._prefix = "policyadmin:session:"
        self._ttl = timedelta(minutes=ttl_minutes) if ttl_minutes > 0 else None

    def _key(self, identity: SessionIdentity) -> str:
        return f"{self._prefix}{identity.key}"

    def _write(self, identity: SessionIdentity, data: Dict[str, Any]) -> None:
        encoded = json.dumps(data, default=str)
        if self._ttl is not None:
            self._redis.setex(self._key(identity), self._ttl, encoded)
        else:
            self._redis.set(self._key(identity), encoded)

    def _decode(self, identity: SessionIdentity, raw: str) -> Optional[SessionState]:
        try:
            data = json.loads(raw)
            return SessionState(
                identity=identity,
                operation=Operation(data["operation"]),
                payload=data.get("payload") or {},
                created_at=datetime.fromisoformat(data["created_at"]),
                last_activity=datetime.fromisoformat(data["last_activity"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            # Written by an older release, or corrupted; treat as no session
            logger.warning(f"Discarding unreadable session {identity.key}: {e}")
            return None

    def _load(self, identity: SessionIdentity) -> Optional[Dict[str, Any]]:
        raw = self._redis.get(self._key(identity))
        if raw is None:
            return None
        if self._decode(identity, raw) is None:
            return None
        return json.loads(raw)

    def create(
        self,
        identity: SessionIdentity,
        operation: Operation,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        now = datetime.utcnow().isoformat()
        self._write(identity, {
            "operation": Operation(operation).value,
            "payload": dict(payload or {}),
            "created_at": now,
            "last_activity": now,
        })

    def update(self, identity: SessionIdentity, partial: Dict[str, Any]) -> None:
        data = self._load(identity)
        if data is None:
            return
        data["payload"] = {**(data.get("payload") or {}), **partial}
        data["last_activity"] = datetime.utcnow().isoformat()
        self._write(identity, data)

    def get(self, identity: SessionIdentity) -> Optional[SessionState]:
        raw = self._redis.get(self._key(identity))
        if raw is None:
            return None
        state = self._decode(identity, raw)
        if state is not None and self._ttl is not None:
            self._redis.expire(self._key(identity), self._ttl)
        return state

    def clear(self, identity: SessionIdentity) -> None:
        self._redis.delete(self._key(identity))

    def count(self) -> int:
        """Get approximate number of active sessions."""
        return len(self._redis.keys(f"{self._prefix}*"))

    def stats(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for key in self._redis.keys(f"{self._prefix}*"):
            raw = self._redis.get(key)
            if not raw:
                continue
            try:
                operation = json.loads(raw).get("operation", "unknown")
            except json.JSONDecodeError:
                continue
            counts[operation] = counts.get(operation, 0) + 1
        return counts


def create_session_store(settings) -> SessionStore:
    """Build the session store selected by settings, falling back to memory."""
    if settings.SESSION_BACKEND == "redis":
        try:
            store = RedisSessionStore(settings.REDIS_URL, ttl_minutes=settings.SESSION_TTL_MINUTES)
            # Test connection
            store._redis.ping()
            logger.info("Using Redis session store")
            return store
        except Exception as e:
            logger.warning(f"Failed to connect to Redis, using in-memory store: {e}")

    logger.info("Using in-memory session store")
    return InMemorySessionStore(ttl_minutes=settings.SESSION_TTL_MINUTES)
