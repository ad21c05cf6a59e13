# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the configuration models."""

import pytest
from pydantic import ValidationError

from swap_engine.models.configuration import (
    DBConfigDTO,
    EngineConfigDTO,
    NotificationConfigDTO,
    QueueConfigDTO,
    TelegramConfigDTO,
    TradingConfigDTO,
    VenueConfigDTO,
)

TOKEN = "test_token:12345678901234567890"  # noqa: S105
CHAT_ID = "1234567890"


class TestQueueConfigDTO:
    def test_defaults(self) -> None:
        config = QueueConfigDTO()

        assert config.concurrency == 10
        assert config.orders_per_minute == 100
        assert config.rate_limit_window_s == 60
        assert config.max_retries == 3
        assert config.backoff_base_ms == 1000
        assert config.backoff_cap_ms == 10000
        assert config.retry_all_errors is False

    @pytest.mark.parametrize(
        "field",
        ["concurrency", "orders_per_minute", "max_retries"],
    )
    def test_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            QueueConfigDTO(**{field: 0})

    def test_cap_below_base(self) -> None:
        with pytest.raises(ValidationError, match="backoff_cap_ms"):
            QueueConfigDTO(backoff_base_ms=5000, backoff_cap_ms=1000)


class TestVenueConfigDTO:
    def test_defaults(self) -> None:
        config = VenueConfigDTO()

        assert config.network_delay_ms == 200
        assert config.execution_delay_ms == 2000
        assert config.execution_jitter_ms == 1000
        assert config.failure_rate == 0
        assert config.base_prices == {}

    @pytest.mark.parametrize("failure_rate", [-0.1, 1.1])
    def test_failure_rate_is_a_probability(self, failure_rate: float) -> None:
        with pytest.raises(ValidationError):
            VenueConfigDTO(failure_rate=failure_rate)


class TestTradingConfigDTO:
    def test_default_tolerance(self) -> None:
        assert TradingConfigDTO().slippage_tolerance == 0.01

    def test_tolerance_below_one(self) -> None:
        with pytest.raises(ValidationError):
            TradingConfigDTO(slippage_tolerance=1)


class TestDBConfigDTO:
    def test_defaults(self) -> None:
        config = DBConfigDTO()

        assert config.in_memory is False
        assert config.sqlite_file is None
        assert config.db_name == "swap_engine"


class TestTelegramConfigDTO:
    @pytest.mark.parametrize(
        ("token", "chat_id", "enabled"),
        [
            (TOKEN, CHAT_ID, True),
            (None, CHAT_ID, False),
            (TOKEN, None, False),
            ("", "", False),
        ],
    )
    def test_enabled(self, token: str | None, chat_id: str | None, enabled: bool) -> None:
        assert TelegramConfigDTO(token=token, chat_id=chat_id).enabled is enabled

    def test_notification_config_default(self) -> None:
        assert NotificationConfigDTO().telegram.enabled is False


class TestEngineConfigDTO:
    def test_nested_defaults(self) -> None:
        config = EngineConfigDTO()

        assert config.name == "swap-engine"
        assert config.queue == QueueConfigDTO()
        assert config.venues == VenueConfigDTO()
        assert config.trading == TradingConfigDTO()

    def test_from_dict(self) -> None:
        config = EngineConfigDTO.model_validate(
            {"queue": {"concurrency": 2}, "venues": {"seed": 7}},
        )

        assert config.queue.concurrency == 2
        assert config.venues.seed == 7
