# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Simulated liquidity venue.

Quotes and executions are derived from a per venue base price table with a
random variance to emulate market movement between quoting and execution.
All randomness comes from the injected random source, so that a seeded
source makes the simulation deterministic.
"""

import asyncio
import random
from logging import getLogger
from typing import Awaitable, Callable, ClassVar, Self

from swap_engine.exceptions import SlippageExceededError, VenueUnavailableError
from swap_engine.interfaces.venue import IVenueAdapter
from swap_engine.models.configuration import VenueConfigDTO
from swap_engine.models.order import Quote, SwapResult

LOG = getLogger(__name__)

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
TX_HASH_LENGTH = 88


class SimulatedVenueAdapter(IVenueAdapter):
    """Base class of the simulated venues, subclasses define fee and prices."""

    VENUE: ClassVar[str]
    FEE: ClassVar[float]
    BASE_PRICES: ClassVar[dict[str, float]] = {}

    def __init__(
        self: Self,
        config: VenueConfigDTO | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config or VenueConfigDTO()
        self._rng = rng or random.Random(self._config.seed)  # noqa: S311
        self._sleep = sleep
        self._base_prices = self.BASE_PRICES | {
            pair.upper(): price
            for pair, price in self._config.base_prices.get(self.VENUE, {}).items()
        }

    @property
    def name(self: Self) -> str:
        return self.VENUE

    def get_base_price(self: Self, token_in: str, token_out: str) -> float:
        """Returns the base rate of a pair, unknown pairs default to 1.0."""
        return self._base_prices.get(f"{token_in}/{token_out}".upper(), 1.0)

    def _varied_price(self: Self, token_in: str, token_out: str, variance: float) -> float:
        base_price = self.get_base_price(token_in, token_out)
        return base_price * self._rng.uniform(1 - variance, 1 + variance)

    def _simulate_failure(self: Self, action: str) -> None:
        if self._config.failure_rate and self._rng.random() < self._config.failure_rate:
            raise VenueUnavailableError(
                f"{self.VENUE}: simulated network failure during {action}",
            )

    def _generate_tx_hash(self: Self) -> str:
        return "".join(self._rng.choices(BASE58_ALPHABET, k=TX_HASH_LENGTH))

    async def get_quote(
        self: Self,
        token_in: str,
        token_out: str,
        amount_in: float,
    ) -> Quote:
        LOG.info(
            "Fetching %s quote for %f %s -> %s",
            self.VENUE,
            amount_in,
            token_in,
            token_out,
        )
        await self._sleep(self._config.network_delay_ms / 1000)
        self._simulate_failure("quoting")

        price = self._varied_price(token_in, token_out, self._config.quote_variance)
        quote = Quote(
            venue=self.VENUE,
            price=price,
            amount_out=amount_in * price * (1 - self.FEE),
            fee=self.FEE,
            slippage=self._rng.uniform(0.001, 0.003),
        )
        LOG.debug("%s quote received: %s", self.VENUE, quote)
        return quote

    async def execute_swap(
        self: Self,
        token_in: str,
        token_out: str,
        amount_in: float,
        min_amount_out: float,
    ) -> SwapResult:
        LOG.info(
            "Executing %s swap of %f %s -> %s (min out: %f)",
            self.VENUE,
            amount_in,
            token_in,
            token_out,
            min_amount_out,
        )
        await self._sleep(
            (
                self._config.execution_delay_ms
                + self._rng.uniform(0, self._config.execution_jitter_ms)
            )
            / 1000,
        )
        self._simulate_failure("execution")

        # Re-priced independently of the quote, with a wider variance
        executed_price = self._varied_price(
            token_in,
            token_out,
            self._config.execution_variance,
        )
        amount_out = amount_in * executed_price * (1 - self.FEE)

        if amount_out < min_amount_out:
            raise SlippageExceededError(
                f"Slippage protection: amountOut {amount_out} < minAmountOut {min_amount_out}",
            )

        result = SwapResult(
            tx_hash=self._generate_tx_hash(),
            executed_price=executed_price,
            amount_out=amount_out,
        )
        LOG.info(
            "%s swap executed: tx=%s price=%f amount_out=%f",
            self.VENUE,
            result.tx_hash,
            result.executed_price,
            result.amount_out,
        )
        return result
