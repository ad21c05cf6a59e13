# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Bounded-concurrency consumer of the job queue.

A job is only claimed once a worker slot is free and the rolling-window rate
limiter admits its start. While it runs, the lease of its claim is renewed.
Failed jobs are retried with exponential backoff until ``max_retries``
attempts were made.
"""

import asyncio
import time
from collections import deque
from logging import getLogger
from typing import Awaitable, Callable, Self

from swap_engine.core.event_bus import EventBus
from swap_engine.core.order_state_machine import OrderStateMachine
from swap_engine.exceptions import OrderExecutionError
from swap_engine.models.configuration import QueueConfigDTO
from swap_engine.models.order import Job
from swap_engine.services.job_queue import JobQueue

LOG = getLogger(__name__)


def calculate_backoff(attempt: int, base_ms: float = 1000, cap_ms: float = 10000) -> float:
    """
    Returns the delay in milliseconds before redelivering a job whose
    ``attempt`` (0-indexed) failed: ``min(base * 2**attempt, cap)``.
    """
    return min(base_ms * 2**attempt, cap_ms)


class RollingWindowRateLimiter:
    """Admits at most ``max_starts`` acquisitions per rolling window."""

    def __init__(
        self: Self,
        max_starts: int,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.__max_starts = max_starts
        self.__window_s = window_s
        self.__clock = clock
        self.__sleep = sleep
        self.__starts: deque[float] = deque()
        self.__lock = asyncio.Lock()

    def _evict(self: Self, now: float) -> None:
        while self.__starts and self.__starts[0] <= now - self.__window_s:
            self.__starts.popleft()

    @property
    def available(self: Self) -> int:
        """Number of starts admitted right now without waiting."""
        self._evict(self.__clock())
        return self.__max_starts - len(self.__starts)

    async def acquire(self: Self) -> None:
        """Waits until a start is admitted, never rejects."""
        async with self.__lock:
            while True:
                now = self.__clock()
                self._evict(now)
                if len(self.__starts) < self.__max_starts:
                    self.__starts.append(now)
                    return
                wait_s = self.__starts[0] + self.__window_s - now
                LOG.debug("Rate limit reached, waiting %.3f s", wait_s)
                await self.__sleep(wait_s)

    def refund(self: Self) -> None:
        """Gives back the most recent start."""
        if self.__starts:
            self.__starts.pop()


class WorkerPool:
    """
    Consumes jobs from the queue and runs each of them through the order
    state machine.

    Events published on the event bus:

    - ``job_active``: a job was admitted and started
    - ``job_completed``: the order was confirmed
    - ``job_retrying``: the attempt failed and the job was re-queued
    - ``job_failed``: the job failed permanently
    - ``notification``: operator message for permanent failures
    """

    def __init__(
        self: Self,
        queue: JobQueue,
        order_state_machine: OrderStateMachine,
        event_bus: EventBus,
        config: QueueConfigDTO | None = None,
        rate_limiter: RollingWindowRateLimiter | None = None,
    ) -> None:
        self.__queue = queue
        self.__order_state_machine = order_state_machine
        self.__event_bus = event_bus
        self.__config = config or QueueConfigDTO()
        self.__rate_limiter = rate_limiter or RollingWindowRateLimiter(
            max_starts=self.__config.orders_per_minute,
            window_s=self.__config.rate_limit_window_s,
        )
        self.__slots = asyncio.Semaphore(self.__config.concurrency)
        self.__in_flight: set[asyncio.Task] = set()
        self.__dispatcher: asyncio.Task | None = None
        self.__background: list[asyncio.Task] = []

    @property
    def running(self: Self) -> bool:
        return self.__dispatcher is not None and not self.__dispatcher.done()

    @property
    def in_flight(self: Self) -> int:
        return len(self.__in_flight)

    async def start(self: Self) -> None:
        if self.running:
            return
        LOG.info(
            "Starting worker pool (concurrency: %d, rate limit: %d orders/%ds)",
            self.__config.concurrency,
            self.__config.orders_per_minute,
            self.__config.rate_limit_window_s,
        )
        self.__dispatcher = asyncio.create_task(self.__dispatch_loop())
        self.__background = [
            asyncio.create_task(self.__housekeeping_loop()),
            asyncio.create_task(self.__recovery_loop()),
        ]

    async def stop(self: Self) -> None:
        """
        Stops taking new jobs and waits for all in-flight jobs to finish.
        Running jobs are never cancelled.
        """
        LOG.info("Stopping worker pool...")
        for task in (self.__dispatcher, *self.__background):
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self.__dispatcher = None
        self.__background = []

        if self.__in_flight:
            LOG.info("Waiting for %d in-flight job(s)...", len(self.__in_flight))
            await asyncio.gather(*self.__in_flight, return_exceptions=True)
        LOG.info("Worker pool stopped")

    async def wait_until_idle(self: Self) -> None:
        """Returns once the queue holds no available job and nothing runs."""
        while True:
            metrics = self.__queue.metrics()
            if not self.__in_flight and not (
                metrics["waiting"] or metrics["delayed"] or metrics["active"]
            ):
                return
            await asyncio.sleep(0.01)

    async def __dispatch_loop(self: Self) -> None:
        while True:
            await self.__slots.acquire()
            try:
                job = await self.__admit_next_job()
            except BaseException:
                self.__slots.release()
                raise

            task = asyncio.create_task(self.__process(job))
            self.__in_flight.add(task)
            task.add_done_callback(self.__in_flight.discard)

    async def __admit_next_job(self: Self) -> Job:
        """
        Claims a job only after the rate limiter admitted its start, so that
        a throttled consumer leaves pending jobs to other consumers.
        """
        while True:
            await self.__queue.wait_for_job()
            await self.__rate_limiter.acquire()
            if (job := self.__queue.try_dequeue()) is not None:
                return job
            # Another consumer was faster
            self.__rate_limiter.refund()

    async def __housekeeping_loop(self: Self) -> None:
        while True:
            try:
                self.__queue.purge()
            except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
                LOG.error("Housekeeping failed: %s", exc, exc_info=exc)
            await asyncio.sleep(self.__config.housekeeping_interval_s)

    async def __recovery_loop(self: Self) -> None:
        while True:
            await asyncio.sleep(self.__config.job_lease_s)
            try:
                self.__queue.recover_stalled()
            except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
                LOG.error("Recovering stalled jobs failed: %s", exc, exc_info=exc)

    async def __keep_lease(self: Self, job: Job) -> None:
        while True:
            await asyncio.sleep(self.__config.job_lease_s / 3)
            try:
                if not self.__queue.renew(job):
                    LOG.warning("Lost the claim of job '%s'", job.order_id)
                    return
            except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
                LOG.warning(
                    "Renewing the lease of job '%s' failed: %s",
                    job.order_id,
                    exc,
                )

    def _is_retryable(self: Self, exc: Exception) -> bool:
        if self.__config.retry_all_errors:
            return True
        return not isinstance(exc, OrderExecutionError) or exc.retryable

    async def __process(self: Self, job: Job) -> None:
        attempt = job.attempts_made + 1
        LOG.info(
            "Processing order '%s' (attempt %d/%d)",
            job.order_id,
            attempt,
            self.__config.max_retries,
        )
        self.__event_bus.publish(
            "job_active",
            {"order_id": job.order_id, "attempt": attempt},
        )
        lease = asyncio.create_task(self.__keep_lease(job))
        error: Exception | None = None
        try:
            try:
                await self.__order_state_machine.run(job.spec, attempt=job.attempts_made)
            except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
                error = exc
            finally:
                lease.cancel()
            self.__acknowledge(job, error)
        finally:
            self.__slots.release()

    def __acknowledge(self: Self, job: Job, error: Exception | None) -> None:
        try:
            if error is not None:
                self.__handle_failure(job, error)
            elif self.__queue.complete(job):
                self.__event_bus.publish("job_completed", {"order_id": job.order_id})
        except Exception as exc:  # noqa: BLE001 # pylint: disable=broad-exception-caught
            # The claim is kept until its lease expires, then the job is
            # redelivered.
            LOG.error(
                "Failed to acknowledge job '%s': %s",
                job.order_id,
                exc,
                exc_info=exc,
            )

    def __handle_failure(self: Self, job: Job, exc: Exception) -> None:
        error = str(exc) or exc.__class__.__name__
        LOG.error(
            "Order '%s' processing failed (attempt %d/%d): %s",
            job.order_id,
            job.attempts_made + 1,
            self.__config.max_retries,
            error,
        )

        if self._is_retryable(exc) and job.attempts_made + 1 < self.__config.max_retries:
            delay_ms = calculate_backoff(
                job.attempts_made,
                self.__config.backoff_base_ms,
                self.__config.backoff_cap_ms,
            )
            if self.__queue.retry(job, delay_ms, error):
                self.__event_bus.publish(
                    "job_retrying",
                    {
                        "order_id": job.order_id,
                        "error": error,
                        "delay_ms": delay_ms,
                        "next_attempt": job.attempts_made + 2,
                    },
                )
            return

        if not self.__queue.fail(job, error):
            return
        self.__event_bus.publish(
            "job_failed",
            {
                "order_id": job.order_id,
                "error": error,
                "attempts": job.attempts_made + 1,
            },
        )
        self.__event_bus.publish(
            "notification",
            {
                "message": f"Order '{job.order_id}' failed after "
                f"{job.attempts_made + 1} attempt(s): {error}",
            },
        )
