"""Publish/subscribe transports for project broadcasts.

The lifecycle engine only needs ``publish(topic, payload)``; subscribers are
the WebSocket rooms and the client-side view caches. Two transports exist:

- InMemoryEventBus: per-process fan-out, used by the API workers and tests
- RedisEventBus: publishes on ``studioflow:{topic}`` so other processes
  (Celery workers, other API replicas) reach the same listeners
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from typing import Any

import redis

from studioflow.core.config import Config, get_config

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, dict[str, Any]], None]
Unsubscribe = Callable[[], None]

CHANNEL_PREFIX = "studioflow:"


def project_topic(project_id: int) -> str:
    """One room per project."""
    return f"project:{project_id}"


class EventBus(ABC):
    """Fire-and-forget broadcast transport."""

    @abstractmethod
    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        """Deliver payload to every current subscriber of topic."""

    @abstractmethod
    def subscribe(self, topic: str, callback: Subscriber) -> Unsubscribe:
        """Register callback for topic and return a function that removes it."""

    def close(self) -> None:
        """Release transport resources."""


class InMemoryEventBus(EventBus):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(topic, ()))
        for callback in callbacks:
            try:
                callback(topic, payload)
            except Exception as exc:
                logger.error(
                    "event_bus.subscriber_failed",
                    extra={"event": "event_bus.subscriber_failed", "topic": topic, "error": str(exc)},
                )

    def subscribe(self, topic: str, callback: Subscriber) -> Unsubscribe:
        with self._lock:
            self._subscribers[topic].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(topic, None)

        return _unsubscribe

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, ()))


class RedisEventBus(EventBus):
    """Redis pub/sub transport.

    Local subscribers are served by a background listener thread started on
    the first ``subscribe`` call. Messages are JSON objects.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._local = InMemoryEventBus()
        self._pubsub = None
        self._thread = None
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str) -> "RedisEventBus":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        self._client.publish(f"{CHANNEL_PREFIX}{topic}", json.dumps(payload, default=str))

    def subscribe(self, topic: str, callback: Subscriber) -> Unsubscribe:
        with self._lock:
            if self._pubsub is None:
                self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
                self._pubsub.psubscribe(**{f"{CHANNEL_PREFIX}*": self._dispatch})
                self._thread = self._pubsub.run_in_thread(sleep_time=0.05, daemon=True)
        return self._local.subscribe(topic, callback)

    def _dispatch(self, message: dict[str, Any]) -> None:
        channel = message.get("channel") or ""
        topic = channel[len(CHANNEL_PREFIX):] if channel.startswith(CHANNEL_PREFIX) else channel
        try:
            payload = json.loads(message.get("data") or "{}")
        except (TypeError, ValueError) as exc:
            logger.warning(
                "event_bus.redis.bad_message",
                extra={"event": "event_bus.redis.bad_message", "channel": channel, "error": str(exc)},
            )
            return
        self._local.publish(topic, payload)

    def close(self) -> None:
        with self._lock:
            if self._thread is not None:
                self._thread.stop()
                self._thread = None
            if self._pubsub is not None:
                self._pubsub.close()
                self._pubsub = None
        self._client.close()


_bus: EventBus | None = None
_bus_lock = threading.Lock()


def build_event_bus(config: Config) -> EventBus:
    if config.EVENT_BUS_BACKEND == "redis":
        return RedisEventBus.from_url(config.REDIS_URL)
    return InMemoryEventBus()


def get_event_bus() -> EventBus:
    """Process-wide bus chosen by EVENT_BUS_BACKEND."""
    global _bus
    with _bus_lock:
        if _bus is None:
            _bus = build_event_bus(get_config())
            logger.info(
                "event_bus.ready",
                extra={"event": "event_bus.ready", "backend": type(_bus).__name__},
            )
        return _bus


def reset_event_bus(bus: EventBus | None = None) -> None:
    """Replace the process-wide bus; tests pass their own instance."""
    global _bus
    with _bus_lock:
        if _bus is not None and _bus is not bus:
            _bus.close()
        _bus = bus
