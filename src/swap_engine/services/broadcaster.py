# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Pushes order status events to live subscribers.

Delivery is best-effort: events for orders without an open channel are
dropped, the order record stays the durable source of truth.
"""

from logging import getLogger
from typing import Any, Self

from swap_engine.interfaces.channel import IStatusChannel
from swap_engine.models.order import OrderStatus, StatusEvent

LOG = getLogger(__name__)


class StatusBroadcaster:
    """Maps order IDs to at most one live subscriber channel."""

    def __init__(self: Self) -> None:
        self.__channels: dict[str, IStatusChannel] = {}

    async def subscribe(
        self: Self,
        order_id: str,
        channel: IStatusChannel,
        snapshot: StatusEvent | None = None,
    ) -> None:
        """
        Registers the channel of an order, replacing any prior one. The
        optional snapshot is sent right away so late subscribers learn the
        current status.
        """
        if order_id in self.__channels:
            LOG.debug("Replacing status channel of order '%s'", order_id)

        self.__channels[order_id] = channel
        channel.on_close(lambda: self.__remove(order_id, channel))
        LOG.info("Status channel registered for order '%s'", order_id)

        if snapshot is not None:
            await self.__deliver(order_id, channel, snapshot)

    def __remove(self: Self, order_id: str, channel: IStatusChannel) -> None:
        # Only remove the channel if it was not replaced in the meantime
        if self.__channels.get(order_id) is channel:
            del self.__channels[order_id]
            LOG.info("Status channel closed for order '%s'", order_id)

    async def publish(
        self: Self,
        order_id: str,
        status: OrderStatus,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Returns True if the event was handed to an open channel."""
        channel = self.__channels.get(order_id)
        if channel is None or not channel.is_open:
            LOG.debug("No open status channel for order '%s' (%s)", order_id, status)
            if channel is not None:
                self.__remove(order_id, channel)
            return False

        return await self.__deliver(
            order_id,
            channel,
            StatusEvent(order_id=order_id, status=status, data=data),
        )

    async def __deliver(
        self: Self,
        order_id: str,
        channel: IStatusChannel,
        event: StatusEvent,
    ) -> bool:
        try:
            await channel.send(event.to_message())
        except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
            LOG.warning(
                "Failed to send status update for order '%s': %s",
                order_id,
                exc,
            )
            self.__remove(order_id, channel)
            return False

        LOG.debug("Status update sent for order '%s': %s", order_id, event.status)
        return True
