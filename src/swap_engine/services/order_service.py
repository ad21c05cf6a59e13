# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Operations exposed to the request layer."""

from logging import getLogger
from typing import Any, Self

from pydantic import ValidationError

from swap_engine.exceptions import DuplicateJobError, OrderExistsError, OrderValidationError
from swap_engine.infrastructure.database import DBConnect, Orders
from swap_engine.interfaces.channel import IStatusChannel
from swap_engine.models.order import OrderRecord, OrderSpec, OrderStatus, StatusEvent
from swap_engine.services.broadcaster import StatusBroadcaster
from swap_engine.services.job_queue import JobQueue

LOG = getLogger(__name__)


def snapshot_data(record: OrderRecord) -> dict[str, Any] | None:
    """Event data describing the current state of an order record."""
    match record.status:
        case OrderStatus.CONFIRMED:
            return {
                "txHash": record.tx_hash,
                "executedPrice": record.executed_price,
                "amountOut": record.amount_out,
            }
        case OrderStatus.FAILED:
            return {"error": record.error}
        case _ if record.dex_selected is not None:
            return {
                f"{venue}Price": price for venue, price in record.quoted_prices.items()
            } | {"dexSelected": record.dex_selected}
    return None


class OrderService:
    """Submits orders and gives access to their status."""

    def __init__(
        self: Self,
        db: DBConnect,
        orders_table: Orders,
        queue: JobQueue,
        broadcaster: StatusBroadcaster,
    ) -> None:
        self.__db = db
        self.__orders = orders_table
        self.__queue = queue
        self.__broadcaster = broadcaster

    @staticmethod
    def validate(data: dict[str, Any] | OrderSpec) -> OrderSpec:
        """Parses a submission payload, raises OrderValidationError."""
        if isinstance(data, OrderSpec):
            return data
        try:
            return OrderSpec.model_validate(data)
        except ValidationError as exc:
            raise OrderValidationError(str(exc)) from exc

    def submit(self: Self, data: dict[str, Any] | OrderSpec) -> str:
        """
        Validates the order, creates its PENDING record and queues it for
        execution within one transaction. Returns the order ID without
        waiting for the execution.
        """
        spec = self.validate(data)
        order_id = spec.order_id

        with self.__db.transaction():
            if self.__queue.has_unresolved(order_id):
                raise DuplicateJobError(f"Order '{order_id}' is already queued")
            if self.__orders.exists(order_id):
                raise OrderExistsError(f"Order '{order_id}' already exists")
            self.__orders.create_order(spec)
            self.__queue.enqueue(order_id, spec)

        LOG.info(
            "Order '%s' submitted: %s %f %s -> %s",
            order_id,
            spec.order_type,
            spec.amount_in,
            spec.token_in,
            spec.token_out,
        )
        return order_id

    def get_status(self: Self, order_id: str) -> OrderRecord:
        """Raises OrderNotFoundError for unknown orders."""
        return self.__orders.get_order(order_id)

    def list_orders(
        self: Self,
        status: OrderStatus | str | None = None,
        user_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[OrderRecord], int]:
        """Returns a page of order records, newest first, and the total."""
        filters: dict[str, Any] = {}
        if status is not None:
            filters["status"] = OrderStatus(status)
        if user_id is not None:
            filters["user_id"] = user_id
        return self.__orders.list_orders(filters=filters, limit=limit, offset=offset)

    async def subscribe(self: Self, order_id: str, channel: IStatusChannel) -> None:
        """
        Attaches a live status channel to an order and sends the current
        status right away.
        """
        record = self.__orders.get_order(order_id)
        await self.__broadcaster.subscribe(
            order_id,
            channel,
            snapshot=StatusEvent(
                order_id=order_id,
                status=record.status,
                data=snapshot_data(record),
            ),
        )
