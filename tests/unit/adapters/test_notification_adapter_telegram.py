# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the Telegram notification adapter."""

from unittest.mock import Mock, patch

import pytest
from requests.exceptions import ConnectionError, Timeout  # noqa: A004

from swap_engine.adapters.notification import TelegramNotificationChannelAdapter
from swap_engine.interfaces import INotificationChannel

TOKEN = "123456789:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"  # noqa: S105


@pytest.fixture
def adapter() -> TelegramNotificationChannelAdapter:
    return TelegramNotificationChannelAdapter(TOKEN, "987654321")


def test_implements_interface(adapter: TelegramNotificationChannelAdapter) -> None:
    assert isinstance(adapter, INotificationChannel)


@patch("requests.post")
def test_send(mock_post: Mock, adapter: TelegramNotificationChannelAdapter) -> None:
    mock_post.return_value = Mock(status_code=200)

    assert adapter.send("Order 'order_1' failed after 3 attempt(s)") is True

    mock_post.assert_called_once_with(
        f"https://api.telegram.org/bot{TOKEN}/sendMessage",
        data={
            "chat_id": "987654321",
            "text": "Order 'order_1' failed after 3 attempt(s)",
            "parse_mode": "markdown",
        },
        timeout=10,
    )


@patch("requests.post")
def test_send_rejected(mock_post: Mock, adapter: TelegramNotificationChannelAdapter) -> None:
    mock_post.return_value = Mock(status_code=401)

    assert adapter.send("message") is False


@pytest.mark.parametrize("error", [ConnectionError("refused"), Timeout("slow")])
@patch("requests.post")
def test_send_request_error(
    mock_post: Mock,
    error: Exception,
    adapter: TelegramNotificationChannelAdapter,
) -> None:
    mock_post.side_effect = error

    assert adapter.send("message") is False
