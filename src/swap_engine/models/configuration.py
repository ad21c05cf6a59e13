# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Configuration models of the swap order engine.

The values are passed via CLI or environment variables and validated here
before any component is constructed.
"""

from typing import Self

from pydantic import BaseModel, Field, computed_field, model_validator


class QueueConfigDTO(BaseModel):
    """Job queue and worker pool settings."""

    concurrency: int = Field(default=10, gt=0)
    orders_per_minute: int = Field(default=100, gt=0)
    rate_limit_window_s: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=3, gt=0)
    backoff_base_ms: int = Field(default=1000, ge=0)
    backoff_cap_ms: int = Field(default=10000, ge=0)
    completed_retention_s: int = Field(default=24 * 3600, ge=0)
    failed_retention_s: int = Field(default=7 * 24 * 3600, ge=0)
    poll_interval_s: float = Field(default=0.5, gt=0)
    housekeeping_interval_s: float = Field(default=3600.0, gt=0)
    # Claims of a consumer expire unless renewed within this time
    job_lease_s: float = Field(default=30.0, gt=0)
    # Retry every error up to max_retries, even those that cannot succeed
    retry_all_errors: bool = False

    @model_validator(mode="after")
    def validate_backoff(self: Self) -> Self:
        """The backoff cap must not be lower than the base delay."""
        if self.backoff_cap_ms < self.backoff_base_ms:
            raise ValueError(
                f"backoff_cap_ms ({self.backoff_cap_ms}) must be >= "
                f"backoff_base_ms ({self.backoff_base_ms})",
            )
        return self


class VenueConfigDTO(BaseModel):
    """Settings of the simulated liquidity venues."""

    network_delay_ms: float = Field(default=200, ge=0)
    execution_delay_ms: float = Field(default=2000, ge=0)
    execution_jitter_ms: float = Field(default=1000, ge=0)
    quote_variance: float = Field(default=0.02, ge=0, lt=1)
    execution_variance: float = Field(default=0.015, ge=0, lt=1)
    failure_rate: float = Field(default=0.0, ge=0, le=1)
    seed: int | None = None
    # Per venue overrides of the base price table, e.g.
    # {"raydium": {"SOL/USDC": 101.0}}
    base_prices: dict[str, dict[str, float]] = Field(default_factory=dict)


class TradingConfigDTO(BaseModel):
    slippage_tolerance: float = Field(default=0.01, ge=0, lt=1)


class DBConfigDTO(BaseModel):
    sqlite_file: str | None = None
    in_memory: bool = False
    db_user: str | None = None
    db_password: str | None = None
    db_host: str | None = None
    db_port: str | None = None
    db_name: str = "swap_engine"
    echo: bool = False


class TelegramConfigDTO(BaseModel):
    """Pydantic model for Telegram notification configuration."""

    token: str | None = None
    chat_id: str | None = None

    @computed_field
    def enabled(self) -> bool:
        """Return True if both token and chat_id are truthy values."""
        return bool(self.token and self.chat_id)


class NotificationConfigDTO(BaseModel):
    """Pydantic model for notification service configuration."""

    telegram: TelegramConfigDTO = Field(default_factory=TelegramConfigDTO)


class EngineConfigDTO(BaseModel):
    """Groups the configuration of all engine components."""

    name: str = "swap-engine"
    queue: QueueConfigDTO = Field(default_factory=QueueConfigDTO)
    venues: VenueConfigDTO = Field(default_factory=VenueConfigDTO)
    trading: TradingConfigDTO = Field(default_factory=TradingConfigDTO)
