# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Order, quote and job models.

The camelCase aliases define the wire shape used for queue payloads and
status events, e.g. ``{"orderId": ..., "orderType": "market", ...}``.
"""

from __future__ import annotations

import random
import string
import time
from datetime import datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class OrderType(StrEnum):
    MARKET = "market"
    LIMIT = "limit"
    SNIPER = "sniper"


class OrderStatus(StrEnum):
    PENDING = "pending"
    ROUTING = "routing"
    BUILDING = "building"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self: Self) -> bool:
        return self in (OrderStatus.CONFIRMED, OrderStatus.FAILED)


class JobState(StrEnum):
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_resolved(self: Self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def generate_order_id() -> str:
    """Returns a new order ID like ``order_1718000000000_k3j9x0a1b``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"order_{int(time.time() * 1000)}_{suffix}"


def now_ms() -> int:
    return int(time.time() * 1000)


class OrderSpec(_WireModel):
    """Immutable order as supplied by the producer."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    order_id: str = Field(default_factory=generate_order_id, min_length=1)
    order_type: OrderType
    token_in: str = Field(..., min_length=1)
    token_out: str = Field(..., min_length=1)
    amount_in: float = Field(..., gt=0, strict=True, allow_inf_nan=False)
    user_id: str | None = None

    @field_validator("order_type", mode="before")
    @classmethod
    def normalize_order_type(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in {member.value for member in OrderType}:
                raise ValueError("orderType must be one of: market, limit, sniper")
        return value

    @field_validator("token_in", "token_out", mode="before")
    @classmethod
    def normalize_token(cls, value: Any) -> Any:  # noqa: ANN401
        """Token symbols are compared case-insensitively, stored uppercase."""
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def to_payload(self: Self) -> dict[str, Any]:
        """Returns the queue message shape of this order."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OrderRecord(_WireModel):
    """Mutable order state as persisted by the order store."""

    order_id: str
    order_type: OrderType
    token_in: str
    token_out: str
    amount_in: float
    user_id: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    dex_selected: str | None = None
    quoted_prices: dict[str, float] = Field(default_factory=dict)
    executed_price: float | None = None
    amount_out: float | None = None
    tx_hash: str | None = None
    error: str | None = None
    attempts: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_spec(cls, spec: OrderSpec) -> OrderRecord:
        return cls(
            order_id=spec.order_id,
            order_type=spec.order_type,
            token_in=spec.token_in,
            token_out=spec.token_out,
            amount_in=spec.amount_in,
            user_id=spec.user_id,
        )

    def to_spec(self: Self) -> OrderSpec:
        return OrderSpec(
            order_id=self.order_id,
            order_type=self.order_type,
            token_in=self.token_in,
            token_out=self.token_out,
            amount_in=self.amount_in,
            user_id=self.user_id,
        )


class Quote(_WireModel):
    """A venue's momentary price offer."""

    venue: str
    price: float = Field(..., gt=0)
    amount_out: float = Field(..., ge=0)
    fee: float = Field(..., ge=0, lt=1)
    slippage: float = Field(..., ge=0)
    timestamp: int = Field(default_factory=now_ms)


class RoutingDecision(BaseModel):
    """The selected quote together with every individual quote."""

    best_quote: Quote
    quotes: list[Quote]

    @property
    def prices(self: Self) -> dict[str, float]:
        return {quote.venue: quote.price for quote in self.quotes}


class SwapResult(_WireModel):
    tx_hash: str = Field(..., min_length=1)
    executed_price: float = Field(..., gt=0)
    amount_out: float = Field(..., ge=0)


class Job(BaseModel):
    """A queued execution request for one order."""

    order_id: str
    spec: OrderSpec
    state: JobState = JobState.WAITING
    attempts_made: int = Field(default=0, ge=0)
    last_error: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    available_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    claimed_by: str | None = None
    lease_until: datetime | None = None


class StatusEvent(_WireModel):
    """Message pushed to status subscribers."""

    order_id: str
    status: OrderStatus
    timestamp: int = Field(default_factory=now_ms)
    data: dict[str, Any] | None = None

    def to_message(self: Self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
