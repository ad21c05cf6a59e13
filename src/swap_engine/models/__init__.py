# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from swap_engine.models.configuration import (
    DBConfigDTO,
    EngineConfigDTO,
    NotificationConfigDTO,
    QueueConfigDTO,
    TelegramConfigDTO,
    TradingConfigDTO,
    VenueConfigDTO,
)
from swap_engine.models.order import (
    Job,
    JobState,
    OrderRecord,
    OrderSpec,
    OrderStatus,
    OrderType,
    Quote,
    RoutingDecision,
    StatusEvent,
    SwapResult,
)

__all__ = [
    "DBConfigDTO",
    "EngineConfigDTO",
    "Job",
    "JobState",
    "NotificationConfigDTO",
    "OrderRecord",
    "OrderSpec",
    "OrderStatus",
    "OrderType",
    "QueueConfigDTO",
    "Quote",
    "RoutingDecision",
    "StatusEvent",
    "SwapResult",
    "TelegramConfigDTO",
    "TradingConfigDTO",
    "VenueConfigDTO",
]
