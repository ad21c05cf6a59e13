# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from swap_engine.adapters.venues.base import SimulatedVenueAdapter
from swap_engine.adapters.venues.meteora import MeteoraVenueAdapter
from swap_engine.adapters.venues.raydium import RaydiumVenueAdapter

__all__ = [
    "MeteoraVenueAdapter",
    "RaydiumVenueAdapter",
    "SimulatedVenueAdapter",
]
