# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Interface of the live status channels of order subscribers."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Self


class IStatusChannel(ABC):
    """A push channel delivering status events to one subscriber."""

    @property
    @abstractmethod
    def is_open(self: Self) -> bool:
        """True as long as the channel can deliver messages."""

    @abstractmethod
    async def send(self: Self, message: dict[str, Any]) -> None:
        """Deliver a message, raises if the channel is broken."""

    @abstractmethod
    def on_close(self: Self, callback: Callable[[], None]) -> None:
        """Register a callback executed once the channel closes."""

    @abstractmethod
    def close(self: Self) -> None:
        """Close the channel."""
