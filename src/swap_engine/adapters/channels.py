# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""In-process status channel backed by an asyncio queue."""

import asyncio
from collections.abc import AsyncIterator
from logging import getLogger
from typing import Any, Callable, Self

from swap_engine.interfaces.channel import IStatusChannel

LOG = getLogger(__name__)


class QueueStatusChannel(IStatusChannel):
    """
    Buffers the messages pushed to a subscriber until they are received.
    Iterating over the channel yields messages until it is closed and
    drained.
    """

    def __init__(self: Self) -> None:
        self.__queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self.__open = True
        self.__close_callbacks: list[Callable[[], None]] = []

    @property
    def is_open(self: Self) -> bool:
        return self.__open

    async def send(self: Self, message: dict[str, Any]) -> None:
        if not self.__open:
            raise ConnectionError("Channel is closed")
        await self.__queue.put(message)

    def on_close(self: Self, callback: Callable[[], None]) -> None:
        self.__close_callbacks.append(callback)

    def close(self: Self) -> None:
        if not self.__open:
            return
        self.__open = False
        # Wakes up a pending receive
        self.__queue.put_nowait(None)
        for callback in self.__close_callbacks:
            callback()

    async def receive(self: Self) -> dict[str, Any] | None:
        """Returns the next message or None once the channel is closed."""
        if not self.__open and self.__queue.empty():
            return None
        return await self.__queue.get()

    def __aiter__(self: Self) -> AsyncIterator[dict[str, Any]]:
        return self.__iterate()

    async def __iterate(self: Self) -> AsyncIterator[dict[str, Any]]:
        while (message := await self.receive()) is not None:
            yield message
