"""
Audit events as a fire-and-forget side channel.

The codec, the engine and the admin service report what they do through an
AuditEmitter. Sinks may fail or disappear; the emitter absorbs that so the
core never depends on audit delivery.
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class AuditLevel(Enum):
    """Audit event severity."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


@dataclass
class AuditEvent:
    """A single recorded action."""
    action: str
    level: AuditLevel
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def user_id(self) -> str:
        return self.metadata.get("userId", "anonymous")


class AuditSink(ABC):
    """Destination for audit events."""

    @abstractmethod
    def emit(self, action: str, level: AuditLevel, metadata: Mapping[str, Any]) -> bool:
        """Record an event. Returns False when it could not be recorded."""
        pass


class LoggingAuditSink(AuditSink):
    """Writes audit events to a standard logger."""

    def __init__(self, logger_name: str = "eplq.audit"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, action: str, level: AuditLevel, metadata: Mapping[str, Any]) -> bool:
        if level is AuditLevel.ERROR:
            log = self._logger.error
        elif level is AuditLevel.WARNING:
            log = self._logger.warning
        else:
            log = self._logger.info
        log("[%s] %s %s", level.value, action, dict(metadata))
        return True


class InMemoryAuditSink(AuditSink):
    """
    Keeps events in process memory.

    Serves as the reference sink for tests and for the search history
    endpoint; persistence is left to real sinks. Search events are also
    kept per user in their own bounded buffer, so a burst of codec events
    cannot evict anyone's search history.
    """

    SEARCH_ACTION = "POI search"

    def __init__(
        self,
        max_events: Optional[int] = 10000,
        max_searches_per_user: int = 100,
    ):
        self.max_events = max_events
        self.max_searches_per_user = max_searches_per_user
        self._events: List[AuditEvent] = []
        self._searches: Dict[str, Deque[AuditEvent]] = {}
        self._lock = threading.Lock()

    def emit(self, action: str, level: AuditLevel, metadata: Mapping[str, Any]) -> bool:
        event = AuditEvent(action=action, level=level, metadata=dict(metadata))
        with self._lock:
            self._events.append(event)
            if self.max_events is not None and len(self._events) > self.max_events:
                del self._events[: len(self._events) - self.max_events]
            if self.SEARCH_ACTION in action:
                history = self._searches.get(event.user_id)
                if history is None:
                    history = deque(maxlen=self.max_searches_per_user)
                    self._searches[event.user_id] = history
                history.append(event)
        return True

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def user_events(self, user_id: str, limit: int = 50) -> List[AuditEvent]:
        """Most recent events attributed to `user_id`, newest first."""
        matching = [e for e in reversed(self.events) if e.user_id == user_id]
        return matching[:limit]

    def search_history(self, user_id: str, limit: int = 10) -> List[AuditEvent]:
        """Most recent search events of `user_id`, newest first."""
        with self._lock:
            searches = list(self._searches.get(user_id, ()))
        searches.reverse()
        return searches[:limit]


class AuditEmitter:
    """
    Best-effort front for an optional AuditSink.

    Every emit returns a bool and never raises.
    """

    def __init__(self, sink: Optional[AuditSink] = None):
        self.sink = sink

    def emit(
        self,
        action: str,
        level: AuditLevel = AuditLevel.INFO,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        if self.sink is None:
            return False
        try:
            recorded = bool(self.sink.emit(action, level, dict(metadata or {})))
        except Exception as exc:  # sink failures never reach callers
            logger.debug("Audit sink dropped %r: %s", action, exc)
            return False
        if not recorded:
            logger.debug("Audit sink refused %r", action)
        return recorded

    def info(self, action: str, **metadata: Any) -> bool:
        return self.emit(action, AuditLevel.INFO, metadata)

    def warning(self, action: str, **metadata: Any) -> bool:
        return self.emit(action, AuditLevel.WARNING, metadata)

    def error(self, action: str, **metadata: Any) -> bool:
        return self.emit(action, AuditLevel.ERROR, metadata)

    def success(self, action: str, **metadata: Any) -> bool:
        return self.emit(action, AuditLevel.SUCCESS, metadata)
