# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the in-process event bus."""

from unittest.mock import Mock, call

import pytest

from swap_engine.core.event_bus import EventBus


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


class TestEventBus:
    def test_publish_to_all_subscribers(self, event_bus: EventBus) -> None:
        first, second = Mock(), Mock()
        event_bus.subscribe("job_failed", first)
        event_bus.subscribe("job_failed", second)

        event_bus.publish("job_failed", {"order_id": "order_1"})

        first.assert_called_once_with({"order_id": "order_1"})
        second.assert_called_once_with({"order_id": "order_1"})

    def test_publish_only_matching_event(self, event_bus: EventBus) -> None:
        callback = Mock()
        event_bus.subscribe("job_completed", callback)

        event_bus.publish("job_failed", {"order_id": "order_1"})

        callback.assert_not_called()

    def test_publish_without_subscribers(self, event_bus: EventBus) -> None:
        event_bus.publish("notification", {"message": "nobody listens"})

    def test_publish_keeps_order(self, event_bus: EventBus) -> None:
        callback = Mock()
        event_bus.subscribe("job_active", callback)

        event_bus.publish("job_active", {"attempt": 1})
        event_bus.publish("job_active", {"attempt": 2})

        assert callback.call_args_list == [call({"attempt": 1}), call({"attempt": 2})]

    def test_callback_errors_propagate(self, event_bus: EventBus) -> None:
        event_bus.subscribe("notification", Mock(side_effect=RuntimeError("boom")))
        with pytest.raises(RuntimeError, match="boom"):
            event_bus.publish("notification", {"message": "hello"})
