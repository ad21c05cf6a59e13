# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Interface of the liquidity venues the quote router talks to."""

from abc import ABC, abstractmethod
from typing import Self

from swap_engine.models.order import Quote, SwapResult


class IVenueAdapter(ABC):
    """Quotes token pairs and executes swaps against one liquidity venue."""

    @property
    @abstractmethod
    def name(self: Self) -> str:
        """Unique identifier of the venue, e.g. "raydium"."""

    @abstractmethod
    async def get_quote(
        self: Self,
        token_in: str,
        token_out: str,
        amount_in: float,
    ) -> Quote:
        """Returns the current price offer for swapping amount_in of token_in."""

    @abstractmethod
    async def execute_swap(
        self: Self,
        token_in: str,
        token_out: str,
        amount_in: float,
        min_amount_out: float,
    ) -> SwapResult:
        """
        Executes the swap.

        Must raise SlippageExceededError without executing anything if the
        resulting output would be below min_amount_out.
        """
