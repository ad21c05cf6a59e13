# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from swap_engine.adapters.venues.base import SimulatedVenueAdapter


class RaydiumVenueAdapter(SimulatedVenueAdapter):
    """Simulated Raydium AMM with a 0.25% fee."""

    VENUE = "raydium"
    FEE = 0.0025
    BASE_PRICES = {  # noqa: RUF012
        "SOL/USDC": 100.0,
        "USDC/SOL": 0.01,
        "SOL/USDT": 100.0,
        "USDT/SOL": 0.01,
        "ETH/USDC": 2500.0,
        "USDC/ETH": 0.0004,
    }
