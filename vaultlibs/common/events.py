"""Usage events and the analytics sink.

Producers build dataclass events and hand them to an ``AnalyticsSink``.
The production sink publishes JSON payloads on Redis channels named
``{prefix}:{event_type}``; downstream analytics consumers subscribe there.

Key concepts
- ``EventType`` identifiers are versioned (``.v1`` suffix)
- ``EventPublisher`` is a blocking publisher with retry/backoff
- ``RedisAnalyticsSink`` runs the publisher on a worker thread with a
  bounded backlog, so recording an event never blocks a request
"""

import json
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import redis
import structlog

from .metrics import MetricsCollector
from .retry import backoff_delay

logger = structlog.get_logger("events")


class EventType(Enum):
    """Event types emitted by vault services."""
    SEARCH_USAGE = "vault.search.usage.v1"


@dataclass
class BaseEvent:
    """Base event class.

    Child events set their ``event_type`` in ``__post_init__``.
    """
    timestamp: int
    event_type: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict(), default=str)


@dataclass
class SearchUsageEvent(BaseEvent):
    """Event emitted once per executed search."""
    query: str
    strategy: str
    results_count: int
    total_count: int
    filters: Dict[str, Any] = field(default_factory=dict)
    scope: Optional[str] = None
    has_results: bool = False

    def __post_init__(self):
        self.event_type = EventType.SEARCH_USAGE.value
        if not self.timestamp:
            self.timestamp = int(time.time() * 1000)
        self.has_results = self.results_count > 0


class AnalyticsSink(ABC):
    """Fire-and-forget destination for usage events."""

    @abstractmethod
    def record(self, event: BaseEvent) -> None:
        """Record an event. Must return promptly."""

    def close(self) -> None:
        """Release resources held by the sink."""


class NullAnalyticsSink(AnalyticsSink):
    """Sink used when analytics are disabled."""

    def record(self, event: BaseEvent) -> None:
        logger.debug("Analytics disabled, dropping event", event_type=event.event_type)


class EventPublisher:
    """Publishes events to Redis.

    Publishing is blocking; ``RedisAnalyticsSink`` moves it off the event
    loop. Payloads are JSON so consumers need not be written in Python.
    """

    def __init__(
        self,
        redis_url: str,
        channel_prefix: str = "vault_events",
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 4.0,
        socket_timeout: float = 1.0
    ):
        self.redis_client = redis.from_url(
            redis_url,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        self.channel_prefix = channel_prefix
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    def channel_for(self, event: BaseEvent) -> str:
        """Channel name derived from the event's type."""
        return f"{self.channel_prefix}:{event.event_type}"

    def publish(self, event: BaseEvent) -> None:
        """Publish ``event``, sleeping between attempts; the last error propagates."""
        channel = self.channel_for(event)
        message = event.to_json()

        for attempt in range(1, self.max_retries + 1):
            try:
                self.redis_client.publish(channel, message)
            except (redis.RedisError, OSError) as e:
                if attempt >= self.max_retries:
                    logger.error("Event publish gave up", channel=channel, attempts=attempt, error=str(e))
                    raise
                delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                logger.warning("Event publish failed", channel=channel, attempt=attempt, delay=delay, error=str(e))
                time.sleep(delay)
            else:
                logger.debug("Event published", channel=channel)
                return

    def close(self) -> None:
        """Close the underlying Redis connection pool."""
        self.redis_client.close()


class RedisAnalyticsSink(AnalyticsSink):
    """Analytics sink that publishes on a background thread.

    At most ``max_pending`` events are queued or in flight; further events
    are dropped and counted until the backlog drains.
    """

    def __init__(
        self,
        publisher: EventPublisher,
        max_workers: int = 2,
        max_pending: int = 100,
        metrics: Optional[MetricsCollector] = None
    ):
        self.publisher = publisher
        self.metrics = metrics
        self.dropped = 0
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="analytics"
        )

    def _drop(self, event: BaseEvent, reason: str) -> None:
        self.dropped += 1
        if self.metrics:
            self.metrics.record_analytics_dropped(reason)
        logger.warning("Analytics event dropped", event_type=event.event_type, reason=reason)

    def record(self, event: BaseEvent) -> None:
        if not self._slots.acquire(blocking=False):
            self._drop(event, "backlog_full")
            return
        try:
            future = self._executor.submit(self.publisher.publish, event)
        except RuntimeError:
            self._slots.release()
            self._drop(event, "closed")
            return
        future.add_done_callback(lambda done: self._finished(done, event))

    def _finished(self, future: Future, event: BaseEvent) -> None:
        self._slots.release()
        if future.exception() is not None:
            self._drop(event, "publish_failed")

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        self.publisher.close()


def create_event_publisher(
    redis_url: str,
    channel_prefix: str = "vault_events",
    socket_timeout: float = 1.0
) -> EventPublisher:
    """Create an event publisher."""
    return EventPublisher(redis_url, channel_prefix=channel_prefix, socket_timeout=socket_timeout)
