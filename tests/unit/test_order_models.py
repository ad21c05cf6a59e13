# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the order, quote and event models."""

import re

import pytest
from pydantic import ValidationError

from swap_engine.models.order import (
    JobState,
    OrderRecord,
    OrderSpec,
    OrderStatus,
    OrderType,
    Quote,
    RoutingDecision,
    StatusEvent,
    generate_order_id,
)


class TestOrderSpec:
    def test_from_camel_case_payload(self) -> None:
        spec = OrderSpec.model_validate(
            {
                "orderId": "order_1",
                "orderType": "MARKET",
                "tokenIn": " sol ",
                "tokenOut": "usdc",
                "amountIn": 1.5,
            },
        )

        assert spec.order_id == "order_1"
        assert spec.order_type == OrderType.MARKET
        assert spec.token_in == "SOL"
        assert spec.token_out == "USDC"
        assert spec.amount_in == 1.5
        assert spec.user_id is None

    def test_generated_order_id(self) -> None:
        spec = OrderSpec(order_type="market", token_in="SOL", token_out="USDC", amount_in=1)
        assert re.fullmatch(r"order_\d+_[0-9a-z]{9}", spec.order_id)

    def test_generated_order_ids_differ(self) -> None:
        assert generate_order_id() != generate_order_id()

    def test_unknown_order_type(self) -> None:
        with pytest.raises(ValidationError, match="orderType must be one of"):
            OrderSpec(order_type="stop", token_in="SOL", token_out="USDC", amount_in=1)

    @pytest.mark.parametrize(
        "amount_in",
        [0, -1, float("inf"), float("nan"), True, "10", "1.5"],
    )
    def test_invalid_amount(self, amount_in: object) -> None:
        with pytest.raises(ValidationError):
            OrderSpec(
                order_type="market",
                token_in="SOL",
                token_out="USDC",
                amount_in=amount_in,
            )

    @pytest.mark.parametrize("field", ["token_in", "token_out"])
    def test_empty_token(self, field: str) -> None:
        payload = {"order_type": "market", "token_in": "SOL", "token_out": "USDC"}
        payload[field] = ""
        with pytest.raises(ValidationError):
            OrderSpec(amount_in=1, **payload)

    def test_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            OrderSpec(
                order_type="market",
                token_in="SOL",
                token_out="USDC",
                amount_in=1,
                price=99,
            )

    def test_is_immutable(self, market_order: OrderSpec) -> None:
        with pytest.raises(ValidationError):
            market_order.amount_in = 2  # type: ignore[misc]

    def test_payload(self, market_order: OrderSpec) -> None:
        assert market_order.to_payload() == {
            "orderId": "order_1",
            "orderType": "market",
            "tokenIn": "SOL",
            "tokenOut": "USDC",
            "amountIn": 1.5,
        }
        assert OrderSpec.model_validate(market_order.to_payload()) == market_order


class TestOrderRecord:
    def test_from_spec(self, market_order: OrderSpec) -> None:
        record = OrderRecord.from_spec(market_order)

        assert record.status == OrderStatus.PENDING
        assert record.attempts == 0
        assert record.tx_hash is None
        assert record.quoted_prices == {}
        assert record.to_spec() == market_order


class TestStatuses:
    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (OrderStatus.PENDING, False),
            (OrderStatus.ROUTING, False),
            (OrderStatus.BUILDING, False),
            (OrderStatus.SUBMITTED, False),
            (OrderStatus.CONFIRMED, True),
            (OrderStatus.FAILED, True),
        ],
    )
    def test_terminal(self, status: OrderStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal

    def test_resolved_job_states(self) -> None:
        assert {state for state in JobState if state.is_resolved} == {
            JobState.COMPLETED,
            JobState.FAILED,
        }


class TestQuotes:
    def test_non_positive_price(self) -> None:
        with pytest.raises(ValidationError):
            Quote(venue="raydium", price=0, amount_out=1, fee=0.0025, slippage=0.001)

    def test_routing_prices(self) -> None:
        quotes = [
            Quote(venue="raydium", price=100, amount_out=99.75, fee=0.0025, slippage=0),
            Quote(venue="meteora", price=101, amount_out=100.8, fee=0.002, slippage=0),
        ]
        decision = RoutingDecision(best_quote=quotes[1], quotes=quotes)

        assert decision.prices == {"raydium": 100, "meteora": 101}


class TestStatusEvent:
    def test_message_shape(self) -> None:
        message = StatusEvent(
            order_id="order_1",
            status=OrderStatus.ROUTING,
            timestamp=1718000000000,
            data={"dexSelected": "meteora"},
        ).to_message()

        assert message == {
            "orderId": "order_1",
            "status": "routing",
            "timestamp": 1718000000000,
            "data": {"dexSelected": "meteora"},
        }

    def test_message_without_data(self) -> None:
        message = StatusEvent(order_id="order_1", status=OrderStatus.PENDING).to_message()
        assert "data" not in message
