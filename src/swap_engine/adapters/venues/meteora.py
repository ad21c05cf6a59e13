# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from swap_engine.adapters.venues.base import SimulatedVenueAdapter


class MeteoraVenueAdapter(SimulatedVenueAdapter):
    """Simulated Meteora DLMM pools with a 0.20% fee."""

    VENUE = "meteora"
    FEE = 0.002
    BASE_PRICES = {  # noqa: RUF012
        "SOL/USDC": 100.2,
        "USDC/SOL": 0.00998,
        "SOL/USDT": 100.1,
        "USDT/SOL": 0.00999,
        "ETH/USDC": 2502.0,
        "USDC/ETH": 0.0003997,
    }
