# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

import asyncio
import random
import signal
from importlib.metadata import PackageNotFoundError, version
from logging import getLogger
from typing import Self

from swap_engine.core.event_bus import EventBus
from swap_engine.core.order_state_machine import OrderStateMachine
from swap_engine.core.state_machine import StateMachine, States
from swap_engine.exceptions import EngineStateError
from swap_engine.infrastructure.database import DBConnect, Jobs, Orders
from swap_engine.interfaces.venue import IVenueAdapter
from swap_engine.models.configuration import (
    DBConfigDTO,
    EngineConfigDTO,
    NotificationConfigDTO,
)
from swap_engine.services.broadcaster import StatusBroadcaster
from swap_engine.services.job_queue import JobQueue
from swap_engine.services.notification_service import NotificationService
from swap_engine.services.order_service import OrderService
from swap_engine.services.quote_router import QuoteRouter
from swap_engine.services.worker_pool import WorkerPool

LOG = getLogger(__name__)


def _package_version() -> str:
    try:
        return version("swap-order-engine")
    except PackageNotFoundError:
        return "unknown"


class Engine:
    """
    Wires the components of the swap order engine and runs the worker pool
    until a shutdown is requested.
    """

    def __init__(
        self: Self,
        config: EngineConfigDTO,
        db_config: DBConfigDTO,
        notification_config: NotificationConfigDTO | None = None,
        adapters: list[IVenueAdapter] | None = None,
    ) -> None:
        LOG.info("Initiate the swap order engine (v%s)", _package_version())
        LOG.debug("Config: %s", config)

        self.__config = config
        self.__event_bus = EventBus()
        self.__state_machine = StateMachine()

        # == Infrastructure components =========================================
        ##
        self.__db = DBConnect(db_config)
        self.__orders_table = Orders(db=self.__db)
        self.__jobs_table = Jobs(db=self.__db)
        self.__db.init_db()

        # == Application services ==============================================
        ##
        self.__queue = JobQueue(self.__db, self.__jobs_table, config=config.queue)
        self.__router = QuoteRouter(adapters or self.__venue_factory())
        self.__broadcaster = StatusBroadcaster()
        self.__order_state_machine = OrderStateMachine(
            router=self.__router,
            orders_table=self.__orders_table,
            broadcaster=self.__broadcaster,
            config=config.trading,
        )
        self.__worker_pool = WorkerPool(
            queue=self.__queue,
            order_state_machine=self.__order_state_machine,
            event_bus=self.__event_bus,
            config=config.queue,
        )
        self.__order_service = OrderService(
            db=self.__db,
            orders_table=self.__orders_table,
            queue=self.__queue,
            broadcaster=self.__broadcaster,
        )
        self.__notification_service = NotificationService(
            notification_config or NotificationConfigDTO(),
        )

        self.__setup_event_handlers()

    def __venue_factory(self: Self) -> list[IVenueAdapter]:
        """Creates the simulated venues, sharing one random source."""
        from swap_engine.adapters.venues import (  # noqa: PLC0415 # pylint: disable=import-outside-toplevel
            MeteoraVenueAdapter,
            RaydiumVenueAdapter,
        )

        rng = random.Random(self.__config.venues.seed)  # noqa: S311
        return [
            RaydiumVenueAdapter(config=self.__config.venues, rng=rng),
            MeteoraVenueAdapter(config=self.__config.venues, rng=rng),
        ]

    def __setup_event_handlers(self: Self) -> None:
        self.__event_bus.subscribe(
            "notification",
            self.__notification_service.on_notification,
        )

    @property
    def state(self: Self) -> States:
        return self.__state_machine.state

    @property
    def event_bus(self: Self) -> EventBus:
        return self.__event_bus

    @property
    def orders(self: Self) -> OrderService:
        """The request layer operations: submit, status, listing."""
        return self.__order_service

    @property
    def queue(self: Self) -> JobQueue:
        return self.__queue

    @property
    def worker_pool(self: Self) -> WorkerPool:
        return self.__worker_pool

    async def start(self: Self) -> None:
        """Recovers stalled jobs and starts consuming the queue."""
        if self.__state_machine.state == States.SHUTDOWN_REQUESTED:
            raise EngineStateError("The engine was already shut down")

        recovered = self.__queue.recover_stalled()
        self.__state_machine.facts = {"recovered_jobs": recovered}
        await self.__worker_pool.start()
        self.__state_machine.transition_to(States.RUNNING)
        LOG.info("Engine '%s' is running", self.__config.name)

    async def stop(self: Self) -> None:
        """Stops the worker pool after the in-flight jobs finished."""
        await self.__worker_pool.stop()

    def request_shutdown(self: Self) -> None:
        self.__state_machine.transition_to(States.SHUTDOWN_REQUESTED)

    async def run(self: Self) -> None:
        """Runs the engine until SIGINT, SIGTERM or an error."""
        LOG.info("Starting the swap order engine...")

        # ======================================================================
        # Handle the shutdown signals
        #
        # A controlled shutdown is initiated by sending a SIGINT or SIGTERM
        # signal to the process. Jobs that are already running are finished
        # before the engine terminates.
        ##
        def _signal_handler() -> None:
            LOG.warning("Initiate a controlled shutdown of the engine...")
            self.request_shutdown()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

        try:
            await self.start()
            await self.__state_machine.wait_for_shutdown()
        except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
            LOG.error("Exception in main.", exc_info=exc)
            if self.__state_machine.state != States.SHUTDOWN_REQUESTED:
                self.__state_machine.transition_to(States.ERROR)
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

        await self.stop()

        if self.__state_machine.state == States.SHUTDOWN_REQUESTED:
            self.terminate("The engine was shut down successfully!")
        else:
            self.terminate("The engine was shut down due to an error!")
        await self.__notification_service.wait_for_pending()

    def close(self: Self) -> None:
        """Closes the database connection."""
        self.__db.close()

    def terminate(self: Self, reason: str = "") -> None:
        """
        Handle the termination of the engine.

        1. Stops the connection to the database.
        2. Notifies the operator about the termination.
        """
        self.close()
        self.__event_bus.publish(
            "notification",
            {"message": f"{self.__config.name} terminated.\nReason: {reason}"},
        )
