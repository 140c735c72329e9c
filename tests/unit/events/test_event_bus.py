from __future__ import annotations

import dataclasses
import json
import time

import fakeredis

from studioflow.events.bus import (
    InMemoryEventBus,
    RedisEventBus,
    build_event_bus,
    project_topic,
)


def test_in_memory_bus_delivers_to_topic_subscribers_only():
    bus = InMemoryEventBus()
    seen: list[tuple[str, dict]] = []
    other: list[dict] = []
    bus.subscribe(project_topic(1), lambda topic, payload: seen.append((topic, payload)))
    bus.subscribe(project_topic(2), lambda topic, payload: other.append(payload))

    bus.publish(project_topic(1), {"event": "project_updated", "projectId": 1})

    assert seen == [("project:1", {"event": "project_updated", "projectId": 1})]
    assert other == []


def test_unsubscribe_stops_delivery():
    bus = InMemoryEventBus()
    seen: list[dict] = []
    unsubscribe = bus.subscribe("project:1", lambda topic, payload: seen.append(payload))
    unsubscribe()
    unsubscribe()

    bus.publish("project:1", {"event": "project_updated"})
    assert seen == []
    assert bus.subscriber_count("project:1") == 0


def test_failing_subscriber_does_not_starve_others():
    bus = InMemoryEventBus()
    seen: list[dict] = []

    def _broken(topic, payload):
        raise RuntimeError("socket closed")

    bus.subscribe("project:1", _broken)
    bus.subscribe("project:1", lambda topic, payload: seen.append(payload))

    bus.publish("project:1", {"event": "project_updated"})
    assert seen == [{"event": "project_updated"}]


def test_redis_bus_publishes_json_on_prefixed_channel():
    client = fakeredis.FakeRedis(decode_responses=True)
    listener = client.pubsub(ignore_subscribe_messages=True)
    listener.subscribe("studioflow:project:7")
    bus = RedisEventBus(client)

    bus.publish(project_topic(7), {"event": "project_updated", "projectId": 7, "newStage": "production"})

    message = None
    deadline = time.time() + 2
    while message is None and time.time() < deadline:
        message = listener.get_message(timeout=0.1)
    assert message is not None
    assert message["channel"] == "studioflow:project:7"
    assert json.loads(message["data"])["newStage"] == "production"


def test_backend_is_chosen_from_configuration(config):
    assert isinstance(build_event_bus(config), InMemoryEventBus)
    redis_bus = build_event_bus(dataclasses.replace(config, EVENT_BUS_BACKEND="redis"))
    assert isinstance(redis_bus, RedisEventBus)
