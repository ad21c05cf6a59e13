# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from collections.abc import Generator

import pytest

from swap_engine.infrastructure.database import DBConnect, Jobs, Orders
from swap_engine.models.configuration import DBConfigDTO, QueueConfigDTO, VenueConfigDTO
from swap_engine.models.order import OrderSpec


@pytest.fixture
def db_config() -> DBConfigDTO:
    return DBConfigDTO(in_memory=True)


@pytest.fixture
def venue_config() -> VenueConfigDTO:
    """Venues without latency and with a fixed seed."""
    return VenueConfigDTO(
        network_delay_ms=0,
        execution_delay_ms=0,
        execution_jitter_ms=0,
        seed=42,
    )


@pytest.fixture
def queue_config() -> QueueConfigDTO:
    return QueueConfigDTO(backoff_base_ms=10, backoff_cap_ms=100, poll_interval_s=0.01)


@pytest.fixture
def db(db_config: DBConfigDTO) -> Generator[DBConnect, None, None]:
    conn = DBConnect(db_config)
    yield conn
    conn.close()


@pytest.fixture
def tables(db: DBConnect) -> tuple[Orders, Jobs]:
    orders, jobs = Orders(db=db), Jobs(db=db)
    db.init_db()
    return orders, jobs


@pytest.fixture
def orders_table(tables: tuple[Orders, Jobs]) -> Orders:
    return tables[0]


@pytest.fixture
def jobs_table(tables: tuple[Orders, Jobs]) -> Jobs:
    return tables[1]


@pytest.fixture
def market_order() -> OrderSpec:
    return OrderSpec(
        order_id="order_1",
        order_type="market",
        token_in="SOL",
        token_out="USDC",
        amount_in=1.5,
    )
