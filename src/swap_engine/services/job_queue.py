# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Durable job queue keyed by order ID.

Jobs are stored in the database so that they survive restarts and can be
enqueued by other processes. A claimed job carries a lease that its
consumer renews while the job runs. Delivery is at-least-once: jobs whose
lease ran out, e.g. because their consumer died, are handed out again after
``recover_stalled``.
"""

import asyncio
from collections.abc import Callable
from contextlib import suppress
from datetime import datetime, timedelta
from logging import getLogger
from typing import Any, Self
from uuid import uuid4

from swap_engine.exceptions import DuplicateJobError
from swap_engine.infrastructure.database import DBConnect, Jobs
from swap_engine.models.configuration import QueueConfigDTO
from swap_engine.models.order import Job, JobState, OrderSpec

LOG = getLogger(__name__)

UNRESOLVED_STATES = (JobState.WAITING, JobState.DELAYED, JobState.ACTIVE)


class JobQueue:
    """Producer and consumer side of the order execution queue."""

    def __init__(
        self: Self,
        db: DBConnect,
        jobs_table: Jobs,
        config: QueueConfigDTO | None = None,
        clock: Callable[[], datetime] = datetime.now,
        consumer_id: str | None = None,
    ) -> None:
        self.__db = db
        self.__jobs = jobs_table
        self.__config = config or QueueConfigDTO()
        self.__clock = clock
        self.__consumer_id = consumer_id or uuid4().hex
        self.__wakeup = asyncio.Event()

    @property
    def consumer_id(self: Self) -> str:
        return self.__consumer_id

    def __lease_until(self: Self) -> datetime:
        return self.__clock() + timedelta(seconds=self.__config.job_lease_s)

    # == Producer side =========================================================

    def enqueue(self: Self, order_id: str, spec: OrderSpec) -> Job:
        """
        Durably queues a job and returns without waiting for its execution.

        Raises DuplicateJobError if an unresolved job for the order exists.
        A resolved job with the same order ID is replaced.
        """
        if (existing := self.__jobs.get(order_id)) is not None:
            if not existing.state.is_resolved:
                raise DuplicateJobError(
                    f"Order '{order_id}' is already queued ({existing.state})",
                )
            LOG.debug("Replacing resolved job '%s'", order_id)

        now = self.__clock()
        job = Job(order_id=order_id, spec=spec, created_at=now, available_at=now)
        with self.__db.transaction():
            if existing is not None:
                self.__jobs.remove(order_id)
            self.__jobs.add(job)

        LOG.info("Order '%s' added to queue", order_id)
        self.__wakeup.set()
        return job

    def has_unresolved(self: Self, order_id: str) -> bool:
        return self.__jobs.count(
            filters={"order_id": order_id, "state": UNRESOLVED_STATES},
        ) > 0

    def get_job(self: Self, order_id: str) -> Job | None:
        return self.__jobs.get(order_id)

    # == Consumer side =========================================================

    def try_dequeue(self: Self) -> Job | None:
        """Claims the next available job, returns None if there is none."""
        job = self.__jobs.claim_next(
            self.__clock(),
            consumer=self.__consumer_id,
            lease_until=self.__lease_until(),
        )
        if job is not None:
            LOG.debug(
                "Dequeued job '%s' (attempts made: %d)",
                job.order_id,
                job.attempts_made,
            )
        return job

    async def wait_for_job(self: Self) -> None:
        """
        Waits until a job is available without claiming it. Jobs enqueued by
        other processes are noticed within the configured poll interval.
        """
        while True:
            self.__wakeup.clear()
            if self.__jobs.has_available(self.__clock()):
                return

            timeout = self.__config.poll_interval_s
            if (available_at := self.__jobs.next_available_at()) is not None:
                timeout = min(
                    timeout,
                    max((available_at - self.__clock()).total_seconds(), 0),
                )
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.__wakeup.wait(), timeout=timeout)

    async def dequeue(self: Self) -> Job:
        """Waits for and claims the next available job."""
        while True:
            await self.wait_for_job()
            if (job := self.try_dequeue()) is not None:
                return job

    def renew(self: Self, job: Job) -> bool:
        """
        Extends the lease of a running job. Returns False if this consumer
        no longer holds the claim.
        """
        return bool(
            self.__jobs.update(
                job.order_id,
                {"lease_until": self.__lease_until()},
                expected_states=(JobState.ACTIVE,),
                claimed_by=self.__consumer_id,
            ),
        )

    def __acknowledge(self: Self, job: Job, updates: dict[str, Any]) -> bool:
        """Resolves or re-queues a job as long as this consumer holds its claim."""
        acknowledged = self.__jobs.update(
            job.order_id,
            updates | {"claimed_by": None, "lease_until": None},
            expected_states=(JobState.ACTIVE,),
            claimed_by=self.__consumer_id,
        )
        if not acknowledged:
            LOG.warning(
                "Job '%s' is no longer claimed by this consumer, dropping the"
                " acknowledgement",
                job.order_id,
            )
        return bool(acknowledged)

    def complete(self: Self, job: Job) -> bool:
        """Acknowledges a successfully processed job."""
        if acknowledged := self.__acknowledge(
            job,
            {"state": JobState.COMPLETED, "finished_at": self.__clock()},
        ):
            LOG.info("Job '%s' completed", job.order_id)
        return acknowledged

    def retry(self: Self, job: Job, delay_ms: float, error: str) -> bool:
        """Re-queues a job for redelivery after the given delay."""
        now = self.__clock()
        if acknowledged := self.__acknowledge(
            job,
            {
                "state": JobState.DELAYED,
                "attempts_made": job.attempts_made + 1,
                "last_error": error,
                "available_at": now + timedelta(milliseconds=delay_ms),
            },
        ):
            LOG.info("Job '%s' will be retried in %d ms", job.order_id, delay_ms)
            self.__wakeup.set()
        return acknowledged

    def fail(self: Self, job: Job, error: str) -> bool:
        """Marks a job as permanently failed."""
        if acknowledged := self.__acknowledge(
            job,
            {
                "state": JobState.FAILED,
                "attempts_made": job.attempts_made + 1,
                "last_error": error,
                "finished_at": self.__clock(),
            },
        ):
            LOG.error("Job '%s' permanently failed: %s", job.order_id, error)
        return acknowledged

    # == Housekeeping ==========================================================

    def recover_stalled(self: Self) -> int:
        """
        Returns active jobs whose lease expired to the queue. Jobs that a
        live consumer is still running are left alone.
        """
        if count := self.__jobs.requeue_expired(self.__clock()):
            LOG.warning("Recovered %d stalled job(s) for redelivery", count)
            self.__wakeup.set()
        return count

    def purge(self: Self) -> int:
        """
        Deletes completed and failed jobs older than their retention window.
        The order records are not affected.
        """
        now = self.__clock()
        removed = self.__jobs.purge(
            JobState.COMPLETED,
            now - timedelta(seconds=self.__config.completed_retention_s),
        ) + self.__jobs.purge(
            JobState.FAILED,
            now - timedelta(seconds=self.__config.failed_retention_s),
        )
        LOG.info("Purged %d resolved job(s)", removed)
        return removed

    def metrics(self: Self) -> dict[str, int]:
        counts = {
            state.value: self.__jobs.count(filters={"state": state}) for state in JobState
        }
        counts["total"] = sum(counts.values())
        return counts
