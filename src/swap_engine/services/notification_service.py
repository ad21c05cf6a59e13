# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

import asyncio
from logging import getLogger
from typing import Any, Self

from swap_engine.interfaces import INotificationChannel
from swap_engine.models.configuration import NotificationConfigDTO

LOG = getLogger(__name__)


class NotificationService:
    """Service for sending operator notifications through configured channels."""

    def __init__(self: Self, config: NotificationConfigDTO) -> None:
        self.__channels: list[INotificationChannel] = []
        self.__config = config
        self.__pending: set[asyncio.Task] = set()
        self._setup_channels_from_config()

    def _setup_channels_from_config(self: Self) -> None:
        """Set up notification channels from the loaded config."""
        if self.__config.telegram and self.__config.telegram.enabled:
            self.add_telegram_channel(
                bot_token=self.__config.telegram.token,
                chat_id=self.__config.telegram.chat_id,
            )

    def add_channel(self: Self, channel: INotificationChannel) -> None:
        """Add a notification channel to the service."""
        self.__channels.append(channel)

    def add_telegram_channel(self: Self, bot_token: str, chat_id: str) -> None:
        """Convenience method to add a Telegram notification channel."""
        from swap_engine.adapters.notification import (  # noqa: PLC0415 # pylint: disable=import-outside-toplevel
            TelegramNotificationChannelAdapter,
        )

        self.add_channel(TelegramNotificationChannelAdapter(bot_token, chat_id))

    def notify(self: Self, message: str) -> bool:
        """Send a notification through all configured channels.

        Args:
            message: The message to send

        Returns:
            bool: True if the message was sent through at least one channel
        """
        LOG.info("Sending notification: %s", message)
        if not self.__channels:
            return False

        success = False
        for channel in self.__channels:
            if channel.send(message):
                success = True

        return success

    def on_notification(self: Self, data: dict[str, Any]) -> None:
        """
        Handle a notification event. Inside a running event loop the message
        is sent from a worker thread so that slow channels do not stall the
        loop.
        """
        message = data["message"]
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.notify(message)
            return

        task = asyncio.create_task(self.__notify_in_thread(message))
        self.__pending.add(task)
        task.add_done_callback(self.__pending.discard)

    async def __notify_in_thread(self: Self, message: str) -> None:
        try:
            await asyncio.to_thread(self.notify, message)
        except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
            LOG.error("Failed to send notification: %s", exc, exc_info=exc)

    async def wait_for_pending(self: Self) -> None:
        """Waits until all notifications handed to worker threads were sent."""
        if self.__pending:
            await asyncio.gather(*self.__pending, return_exceptions=True)
