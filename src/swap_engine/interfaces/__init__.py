# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from swap_engine.interfaces.channel import IStatusChannel
from swap_engine.interfaces.notification import INotificationChannel
from swap_engine.interfaces.venue import IVenueAdapter

__all__ = [
    "INotificationChannel",
    "IStatusChannel",
    "IVenueAdapter",
]
