# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Routes orders to the venue offering the best output amount."""

import asyncio
from collections.abc import Sequence
from logging import getLogger
from typing import Self

from swap_engine.exceptions import UnknownVenueError
from swap_engine.interfaces.venue import IVenueAdapter
from swap_engine.models.order import RoutingDecision, SwapResult

LOG = getLogger(__name__)


class QuoteRouter:
    """
    Fans quote requests out to all venues and dispatches the execution to
    the selected one. The adapter order defines the tie-break: on equal
    output amounts the adapter registered first wins.
    """

    def __init__(self: Self, adapters: Sequence[IVenueAdapter]) -> None:
        if not adapters:
            raise ValueError("At least one venue adapter is required")
        self.__adapters: dict[str, IVenueAdapter] = {}
        for adapter in adapters:
            if adapter.name in self.__adapters:
                raise ValueError(f"Duplicate venue adapter: {adapter.name}")
            self.__adapters[adapter.name] = adapter

    @property
    def venues(self: Self) -> list[str]:
        return list(self.__adapters)

    async def get_best_quote(
        self: Self,
        token_in: str,
        token_out: str,
        amount_in: float,
    ) -> RoutingDecision:
        """
        Requests quotes from all venues concurrently and selects the one
        with the strictly greatest output amount.
        """
        LOG.info(
            "Fetching quotes from all venues for %f %s -> %s",
            amount_in,
            token_in,
            token_out,
        )
        quotes = await asyncio.gather(
            *(
                adapter.get_quote(token_in, token_out, amount_in)
                for adapter in self.__adapters.values()
            ),
        )

        best_quote = quotes[0]
        for quote in quotes[1:]:
            if quote.amount_out > best_quote.amount_out:
                best_quote = quote

        worst = min(quote.amount_out for quote in quotes)
        LOG.info(
            "Routing decision: %s (amounts out: %s, difference: %.2f%%)",
            best_quote.venue,
            ", ".join(f"{q.venue}={q.amount_out:.6f}" for q in quotes),
            (best_quote.amount_out - worst) / best_quote.amount_out * 100
            if best_quote.amount_out
            else 0.0,
        )
        return RoutingDecision(best_quote=best_quote, quotes=list(quotes))

    async def execute_swap(  # noqa: PLR0913
        self: Self,
        venue: str,
        token_in: str,
        token_out: str,
        amount_in: float,
        min_amount_out: float,
    ) -> SwapResult:
        """Executes the swap on the given venue."""
        if (adapter := self.__adapters.get(venue)) is None:
            raise UnknownVenueError(f"Unknown DEX type: {venue}")

        LOG.info("Executing swap on %s", venue)
        return await adapter.execute_swap(token_in, token_out, amount_in, min_amount_out)
