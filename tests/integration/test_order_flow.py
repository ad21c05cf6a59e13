# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Integration tests running orders through the whole engine: submission,
queueing, routing across the simulated venues, execution and status
streaming. The venues run without latency and without price variance so
that every run takes the same route.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import Mock

import pytest
import pytest_asyncio

from swap_engine.adapters.channels import QueueStatusChannel
from swap_engine.core.engine import Engine
from swap_engine.core.state_machine import States
from swap_engine.exceptions import DuplicateJobError
from swap_engine.models.configuration import (
    DBConfigDTO,
    EngineConfigDTO,
    QueueConfigDTO,
    VenueConfigDTO,
)
from swap_engine.models.order import JobState, OrderStatus

pytestmark = pytest.mark.integration

ORDER = {"orderType": "market", "tokenIn": "SOL", "tokenOut": "USDC", "amountIn": 1.5}


@pytest.fixture
def engine_config(queue_config: QueueConfigDTO) -> EngineConfigDTO:
    return EngineConfigDTO(
        name="swap-engine-test",
        queue=queue_config,
        venues=VenueConfigDTO(
            network_delay_ms=0,
            execution_delay_ms=0,
            execution_jitter_ms=0,
            quote_variance=0,
            execution_variance=0,
            seed=42,
        ),
    )


@pytest_asyncio.fixture
async def engine(
    engine_config: EngineConfigDTO,
    db_config: DBConfigDTO,
) -> AsyncGenerator[Engine, None]:
    engine = Engine(config=engine_config, db_config=db_config)
    yield engine
    await engine.stop()
    engine.close()


async def _process(engine: Engine) -> None:
    await engine.start()
    await asyncio.wait_for(engine.worker_pool.wait_until_idle(), 10)


async def _wait_for(channel: QueueStatusChannel, status: str) -> list[str]:
    statuses: list[str] = []
    while (message := await asyncio.wait_for(channel.receive(), 10)) is not None:
        statuses.append(message["status"])
        if message["status"] == status:
            break
    return statuses


async def _drain(channel: QueueStatusChannel) -> list[dict]:
    channel.close()
    return [message async for message in channel]


@pytest.mark.asyncio
async def test_market_order_is_confirmed(engine: Engine) -> None:
    order_id = engine.orders.submit(ORDER)
    channel = QueueStatusChannel()
    await engine.orders.subscribe(order_id, channel)

    await _process(engine)

    record = engine.orders.get_status(order_id)
    assert record.status == OrderStatus.CONFIRMED
    assert record.dex_selected == "meteora"
    assert record.quoted_prices == {"raydium": 100.0, "meteora": 100.2}
    assert record.executed_price == pytest.approx(100.2)
    assert record.amount_out == pytest.approx(1.5 * 100.2 * 0.998)
    assert len(record.tx_hash) == 88
    assert record.attempts == 1
    assert engine.queue.get_job(order_id).state == JobState.COMPLETED

    messages = await _drain(channel)
    assert [message["status"] for message in messages] == [
        "pending",  # snapshot on subscribe
        "pending",
        "routing",
        "routing",
        "building",
        "submitted",
        "confirmed",
    ]
    assert messages[3]["data"]["dexSelected"] == "meteora"
    assert messages[-1]["data"]["txHash"] == record.tx_hash


@pytest.mark.asyncio
async def test_limit_order_fails_without_retry(engine: Engine) -> None:
    order_id = engine.orders.submit(ORDER | {"orderType": "limit"})
    failures = Mock()
    engine.event_bus.subscribe("job_failed", failures)

    await _process(engine)

    record = engine.orders.get_status(order_id)
    assert record.status == OrderStatus.FAILED
    assert "Currently only MARKET orders are implemented" in record.error
    assert record.tx_hash is None
    job = engine.queue.get_job(order_id)
    assert job.state == JobState.FAILED
    assert job.attempts_made == 1
    failures.assert_called_once()


@pytest.mark.asyncio
async def test_duplicate_submission(engine: Engine) -> None:
    engine.orders.submit(ORDER | {"orderId": "order_1"})

    with pytest.raises(DuplicateJobError):
        engine.orders.submit(ORDER | {"orderId": "order_1"})


@pytest.mark.asyncio
async def test_many_orders(engine: Engine) -> None:
    order_ids = [
        engine.orders.submit(ORDER | {"orderId": f"order_{index}"}) for index in range(25)
    ]

    await _process(engine)

    records, total = engine.orders.list_orders(status="confirmed", limit=100)
    assert total == 25
    assert {record.order_id for record in records} == set(order_ids)
    assert engine.queue.metrics()["completed"] == 25


@pytest.mark.asyncio
async def test_interrupted_job_is_redelivered(
    engine_config: EngineConfigDTO,
    tmp_path: Path,
) -> None:
    db_config = DBConfigDTO(sqlite_file=str(tmp_path / "swap_engine.sqlite"))
    engine_config = engine_config.model_copy(
        update={"queue": engine_config.queue.model_copy(update={"job_lease_s": 0.1})},
    )

    crashed = Engine(config=engine_config, db_config=db_config)
    order_id = crashed.orders.submit(ORDER)
    # Claimed by a consumer that died before finishing the job
    assert crashed.queue.try_dequeue().order_id == order_id
    crashed.close()
    await asyncio.sleep(0.2)

    engine = Engine(config=engine_config, db_config=db_config)
    try:
        await _process(engine)
        assert engine.orders.get_status(order_id).status == OrderStatus.CONFIRMED
    finally:
        await engine.stop()
        engine.close()


@pytest.mark.asyncio
async def test_run_until_shutdown(engine_config: EngineConfigDTO, tmp_path: Path) -> None:
    engine = Engine(
        config=engine_config,
        db_config=DBConfigDTO(sqlite_file=str(tmp_path / "swap_engine.sqlite")),
    )
    notifications = Mock()
    engine.event_bus.subscribe("notification", notifications)

    running = asyncio.create_task(engine.run())
    order_id = engine.orders.submit(ORDER)
    channel = QueueStatusChannel()
    await engine.orders.subscribe(order_id, channel)

    async for message in channel:
        if message["status"] == "confirmed":
            break
    engine.request_shutdown()
    await asyncio.wait_for(running, 10)

    assert engine.state == States.SHUTDOWN_REQUESTED
    assert "shut down successfully" in notifications.call_args.args[0]["message"]


@pytest.mark.asyncio
async def test_venue_outage_is_retried_until_max_retries(
    engine_config: EngineConfigDTO,
    db_config: DBConfigDTO,
) -> None:
    config = engine_config.model_copy(
        update={"venues": engine_config.venues.model_copy(update={"failure_rate": 1.0})},
    )
    engine = Engine(config=config, db_config=db_config)
    retries = Mock()
    engine.event_bus.subscribe("job_retrying", retries)
    try:
        order_id = engine.orders.submit(ORDER)
        await _process(engine)

        record = engine.orders.get_status(order_id)
        assert record.status == OrderStatus.FAILED
        assert record.attempts == 3
        assert "simulated network failure" in record.error
        assert engine.queue.get_job(order_id).attempts_made == 3
        assert retries.call_count == 2
    finally:
        await engine.stop()
        engine.close()


@pytest.mark.asyncio
async def test_second_engine_leaves_running_job_alone(
    engine_config: EngineConfigDTO,
    tmp_path: Path,
) -> None:
    db_config = DBConfigDTO(sqlite_file=str(tmp_path / "swap_engine.sqlite"))
    slow_config = engine_config.model_copy(
        update={"venues": engine_config.venues.model_copy(update={"execution_delay_ms": 300})},
    )
    first = Engine(config=slow_config, db_config=db_config)
    second = Engine(config=engine_config, db_config=db_config)
    try:
        order_id = first.orders.submit(ORDER)
        channel = QueueStatusChannel()
        await first.orders.subscribe(order_id, channel)
        await first.start()
        assert (await _wait_for(channel, "submitted"))[-1] == "submitted"

        # Starting recovers stalled jobs from the shared database
        await second.start()

        job = second.queue.get_job(order_id)
        assert job.state == JobState.ACTIVE
        assert job.claimed_by == first.queue.consumer_id
        assert (await _wait_for(channel, "confirmed")) == ["confirmed"]

        await asyncio.wait_for(first.worker_pool.wait_until_idle(), 10)
        record = second.orders.get_status(order_id)
        assert record.status == OrderStatus.CONFIRMED
        assert record.attempts == 1
        job = second.queue.get_job(order_id)
        assert job.state == JobState.COMPLETED
        assert job.attempts_made == 0
        assert job.claimed_by is None
    finally:
        for engine in (first, second):
            await engine.stop()
            engine.close()
