# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Drives a single order through its execution pipeline:

    PENDING -> ROUTING -> BUILDING -> SUBMITTED -> CONFIRMED | FAILED

Every status that is entered is persisted to the order record and pushed to
the status broadcaster before the next step starts. FAILED can be entered
from any non-terminal status. A FAILED order is only reopened to PENDING
when the worker pool starts another attempt; each attempt runs the whole
pipeline from scratch.
"""

from logging import getLogger
from typing import Any, Self

from swap_engine.exceptions import (
    InvalidStateTransitionError,
    OrderNotFoundError,
    UnsupportedOrderTypeError,
)
from swap_engine.infrastructure.database import Orders
from swap_engine.models.configuration import TradingConfigDTO
from swap_engine.models.order import OrderRecord, OrderSpec, OrderStatus, OrderType
from swap_engine.services.broadcaster import StatusBroadcaster
from swap_engine.services.quote_router import QuoteRouter

LOG = getLogger(__name__)

INTERRUPTED_ERROR = "Execution interrupted before completion"

TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.ROUTING, OrderStatus.FAILED),
    OrderStatus.ROUTING: (OrderStatus.BUILDING, OrderStatus.FAILED),
    OrderStatus.BUILDING: (OrderStatus.SUBMITTED, OrderStatus.FAILED),
    OrderStatus.SUBMITTED: (OrderStatus.CONFIRMED, OrderStatus.FAILED),
    OrderStatus.CONFIRMED: (),
    # Reopened for another attempt
    OrderStatus.FAILED: (OrderStatus.PENDING,),
}


def validate_transition(current: OrderStatus, new: OrderStatus) -> None:
    if new not in TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            f"Invalid state transition from {current} to {new}",
        )


class OrderStateMachine:
    """Executes orders and records every status transition."""

    def __init__(
        self: Self,
        router: QuoteRouter,
        orders_table: Orders,
        broadcaster: StatusBroadcaster,
        config: TradingConfigDTO | None = None,
    ) -> None:
        self.__router = router
        self.__orders = orders_table
        self.__broadcaster = broadcaster
        self.__config = config or TradingConfigDTO()

    @staticmethod
    def validate_order_type(order_type: OrderType) -> None:
        """Only MARKET orders are executable."""
        if order_type != OrderType.MARKET:
            raise UnsupportedOrderTypeError(
                f"Order type {order_type} is not supported. "
                "Currently only MARKET orders are implemented.",
            )

    def min_amount_out(self: Self, amount_out: float) -> float:
        """Slippage protected minimum output of a quoted amount."""
        return amount_out * (1 - self.__config.slippage_tolerance)

    async def run(self: Self, spec: OrderSpec, attempt: int = 0) -> OrderRecord:
        """
        Executes one attempt of an order and returns the final record.

        Errors raised by validation, routing or execution move the order to
        FAILED and are re-raised so that the caller can apply its retry
        policy. Already confirmed orders are returned without executing them
        again.
        """
        order_id = spec.order_id
        LOG.info(
            "Starting execution of order '%s' (%s, attempt %d)",
            order_id,
            spec.order_type,
            attempt + 1,
        )
        if (status := await self.__begin_attempt(spec)) is None:
            return self.__orders.get_order(order_id)

        try:
            # == Routing ======================================================
            status = await self.__transition(order_id, status, OrderStatus.ROUTING)
            self.validate_order_type(spec.order_type)

            decision = await self.__router.get_best_quote(
                spec.token_in,
                spec.token_out,
                spec.amount_in,
            )
            best_quote = decision.best_quote
            self.__orders.update_order(
                order_id,
                {"dex_selected": best_quote.venue, "quoted_prices": decision.prices},
            )
            await self.__broadcaster.publish(
                order_id,
                OrderStatus.ROUTING,
                {f"{venue}Price": price for venue, price in decision.prices.items()}
                | {"dexSelected": best_quote.venue},
            )

            # == Building =====================================================
            status = await self.__transition(order_id, status, OrderStatus.BUILDING)
            min_amount_out = self.min_amount_out(best_quote.amount_out)
            LOG.debug(
                "Order '%s': quoted %f, minimum output %f",
                order_id,
                best_quote.amount_out,
                min_amount_out,
            )

            # == Submitting ===================================================
            status = await self.__transition(order_id, status, OrderStatus.SUBMITTED)
            result = await self.__router.execute_swap(
                best_quote.venue,
                spec.token_in,
                spec.token_out,
                spec.amount_in,
                min_amount_out,
            )

            # == Confirmed ====================================================
            status = await self.__transition(
                order_id,
                status,
                OrderStatus.CONFIRMED,
                fields={
                    "tx_hash": result.tx_hash,
                    "executed_price": result.executed_price,
                    "amount_out": result.amount_out,
                },
                data=result.model_dump(by_alias=True),
            )
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            LOG.error("Order '%s' execution failed: %s", order_id, error)
            await self.__transition(
                order_id,
                status,
                OrderStatus.FAILED,
                fields={"error": error},
                data={"error": error},
            )
            raise

        LOG.info(
            "Order '%s' confirmed: tx=%s price=%f amount_out=%f",
            order_id,
            result.tx_hash,
            result.executed_price,
            result.amount_out,
        )
        return self.__orders.get_order(order_id)

    async def __begin_attempt(self: Self, spec: OrderSpec) -> OrderStatus | None:
        """
        Brings the record into PENDING for a new attempt. Returns None if
        the order is already confirmed.
        """
        order_id = spec.order_id
        try:
            record = self.__orders.get_order(order_id)
        except OrderNotFoundError:
            LOG.warning("No record for order '%s', creating it", order_id)
            record = self.__orders.create_order(spec)

        status = record.status
        if status == OrderStatus.CONFIRMED:
            LOG.warning("Order '%s' is already confirmed, skipping", order_id)
            return None

        if status not in (OrderStatus.PENDING, OrderStatus.FAILED):
            # Redelivered after the previous consumer stopped mid-pipeline
            LOG.warning("Order '%s' was interrupted in status %s", order_id, status)
            status = await self.__transition(
                order_id,
                status,
                OrderStatus.FAILED,
                fields={"error": INTERRUPTED_ERROR},
                data={"error": INTERRUPTED_ERROR},
            )

        fields: dict[str, Any] = {"attempts": record.attempts + 1}
        if status == OrderStatus.FAILED:
            return await self.__transition(
                order_id,
                status,
                OrderStatus.PENDING,
                fields=fields | {"error": None},
            )

        self.__orders.update_order(order_id, fields)
        await self.__broadcaster.publish(order_id, OrderStatus.PENDING)
        return OrderStatus.PENDING

    async def __transition(
        self: Self,
        order_id: str,
        current: OrderStatus,
        new: OrderStatus,
        fields: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> OrderStatus:
        """Persists and broadcasts the new status, returns it."""
        validate_transition(current, new)
        self.__orders.update_order(order_id, {"status": new} | (fields or {}))
        LOG.info("Order '%s': %s -> %s", order_id, current, new)
        await self.__broadcaster.publish(order_id, new, data)
        return new
