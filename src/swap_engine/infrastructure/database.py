# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2023 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Persistence layer of the swap order engine.

``DBConnect`` wraps the SQLAlchemy engine and session, while ``Orders`` and
``Jobs`` each own one table. The order records are the durable source of
truth for the order status, the jobs table backs the durable job queue.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from logging import getLogger
from typing import Any, Self

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    asc,
    create_engine,
    delete,
    desc,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Result
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from swap_engine.exceptions import OrderNotFoundError
from swap_engine.models.configuration import DBConfigDTO
from swap_engine.models.order import (
    Job,
    JobState,
    OrderRecord,
    OrderSpec,
)

LOG = getLogger(__name__)


def _value(value: Any) -> Any:  # noqa: ANN401
    """Enum members are stored by value."""
    return value.value if isinstance(value, Enum) else value


def _to_row(values: dict[str, Any]) -> dict[str, Any]:
    return {key: _value(value) for key, value in values.items()}


class DBConnect:
    """Class handling the connection to the PostgreSQL or SQLite database."""

    def __init__(self: Self, config: DBConfigDTO) -> None:
        LOG.info("Connecting to the database...")
        if config.in_memory:
            engine_url = "sqlite:///:memory:"
        elif config.sqlite_file:
            engine_url = f"sqlite:///{config.sqlite_file}"
        else:
            engine_url = (
                f"postgresql://{config.db_user}:{config.db_password}"
                f"@{config.db_host}:{config.db_port}/{config.db_name}"
            )

        self.engine = create_engine(engine_url, echo=config.echo)
        self.session = sessionmaker(bind=self.engine)()
        self.metadata = MetaData()
        self.__transaction_depth = 0

    def init_db(self: Self) -> None:
        """Create tables if they do not exist"""
        LOG.debug("Initializing the database tables...")
        self.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self: Self) -> Iterator[None]:
        """
        Groups all writes issued inside the block into one commit. Nested
        blocks join the outermost transaction.
        """
        self.__transaction_depth += 1
        try:
            yield
        except Exception:
            if self.__transaction_depth == 1:
                self.session.rollback()
            raise
        else:
            if self.__transaction_depth == 1:
                self.session.commit()
        finally:
            self.__transaction_depth -= 1

    def _commit(self: Self) -> None:
        if self.__transaction_depth == 0:
            self.session.commit()

    @staticmethod
    def _where(
        table: Table,
        filters: dict | None = None,
        exclude: dict | None = None,
        where: Iterable[ColumnElement] | None = None,
    ) -> list[ColumnElement]:
        clauses: list[ColumnElement] = []
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                clauses.append(table.c[column].in_([_value(v) for v in value]))
            else:
                clauses.append(table.c[column] == _value(value))
        for column, value in (exclude or {}).items():
            clauses.append(table.c[column] != _value(value))
        clauses.extend(where or [])
        return clauses

    def add_row(self: Self, table: Table, **kwargs: Any) -> None:
        """Insert a row into a specific table"""
        LOG.debug("Inserting a row into '%s': %s", table, kwargs)
        self.session.execute(table.insert().values(**_to_row(kwargs)))
        self._commit()

    def get_rows(  # noqa: PLR0913
        self: Self,
        table: Table,
        filters: dict | None = None,
        exclude: dict | None = None,
        where: Iterable[ColumnElement] | None = None,
        order_by: tuple[str, str] | list[tuple[str, str]] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Result:
        """Fetch rows from a specific table with optional filtering"""
        query = select(table).where(*self._where(table, filters, exclude, where))
        if order_by:
            for column, direction in (
                [order_by] if isinstance(order_by, tuple) else order_by
            ):
                query = query.order_by(
                    desc(table.c[column]) if direction == "desc" else asc(table.c[column]),
                )
        if limit:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)
        return self.session.execute(query).mappings()

    def update_row(
        self: Self,
        table: Table,
        filters: dict,
        updates: dict,
        where: Iterable[ColumnElement] | None = None,
    ) -> int:
        """Update rows in a specific table, returns the number of changed rows"""
        LOG.debug("Updating rows in '%s' %s: %s", table, filters, updates)
        result = self.session.execute(
            update(table)
            .where(*self._where(table, filters, where=where))
            .values(**_to_row(updates)),
        )
        self._commit()
        return result.rowcount

    def delete_row(
        self: Self,
        table: Table,
        filters: dict | None = None,
        where: Iterable[ColumnElement] | None = None,
    ) -> int:
        """Delete rows from a specific table, returns the number of deleted rows"""
        result = self.session.execute(
            delete(table).where(*self._where(table, filters, where=where)),
        )
        self._commit()
        return result.rowcount

    def count(
        self: Self,
        table: Table,
        filters: dict | None = None,
        exclude: dict | None = None,
        where: Iterable[ColumnElement] | None = None,
    ) -> int:
        """Count the rows matching the filters"""
        query = (
            select(func.count())
            .select_from(table)
            .where(*self._where(table, filters, exclude, where))
        )
        return self.session.execute(query).scalar_one()

    def close(self: Self) -> None:
        """Close database"""
        self.session.close()
        self.engine.dispose()


# ==============================================================================
# Tables
##


class Orders:
    """Table containing one record per order."""

    def __init__(self: Self, db: DBConnect) -> None:
        LOG.debug("Initializing the 'orders' table...")
        self.__db = db
        self.__table = Table(
            "orders",
            self.__db.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("order_id", String, nullable=False, unique=True),
            Column("user_id", String, nullable=True),
            Column("order_type", String, nullable=False),
            Column("token_in", String, nullable=False),
            Column("token_out", String, nullable=False),
            Column("amount_in", Float, nullable=False),
            Column("status", String, nullable=False),
            Column("dex_selected", String, nullable=True),
            Column("quoted_prices", JSON, nullable=True),
            Column("executed_price", Float, nullable=True),
            Column("amount_out", Float, nullable=True),
            Column("tx_hash", String, nullable=True),
            Column("error", Text, nullable=True),
            Column("attempts", Integer, nullable=False, default=0),
            Column("created_at", DateTime, nullable=False),
            Column("updated_at", DateTime, nullable=False),
        )

    @staticmethod
    def _to_record(row: Any) -> OrderRecord:  # noqa: ANN401
        values = dict(row)
        values.pop("id", None)
        values["quoted_prices"] = values.get("quoted_prices") or {}
        return OrderRecord(**values)

    def create_order(self: Self, spec: OrderSpec) -> OrderRecord:
        """Create the PENDING record of a new order."""
        LOG.debug("Creating order record '%s'...", spec.order_id)
        record = OrderRecord.from_spec(spec)
        self.__db.add_row(self.__table, **record.model_dump())
        return record

    def update_order(self: Self, order_id: str, fields: dict[str, Any]) -> None:
        """Update the given fields of an order record."""
        updates = fields | {"updated_at": datetime.now()}
        if not self.__db.update_row(self.__table, {"order_id": order_id}, updates):
            raise OrderNotFoundError(f"Order '{order_id}' not found")

    def get_order(self: Self, order_id: str) -> OrderRecord:
        row = self.__db.get_rows(self.__table, filters={"order_id": order_id}).first()
        if row is None:
            raise OrderNotFoundError(f"Order '{order_id}' not found")
        return self._to_record(row)

    def exists(self: Self, order_id: str) -> bool:
        return self.__db.count(self.__table, filters={"order_id": order_id}) > 0

    def list_orders(
        self: Self,
        filters: dict | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[OrderRecord], int]:
        """Returns one page of records, newest first, and the total count."""
        rows = self.__db.get_rows(
            self.__table,
            filters=filters,
            order_by=[("created_at", "desc"), ("id", "desc")],
            limit=limit,
            offset=offset,
        ).all()
        return [self._to_record(row) for row in rows], self.__db.count(
            self.__table,
            filters=filters,
        )


class Jobs:
    """Table backing the durable job queue, one row per order ID."""

    def __init__(self: Self, db: DBConnect) -> None:
        LOG.debug("Initializing the 'jobs' table...")
        self.__db = db
        self.__table = Table(
            "jobs",
            self.__db.metadata,
            # The autoincrement ID is the arrival sequence
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("order_id", String, nullable=False, unique=True),
            Column("payload", JSON, nullable=False),
            Column("state", String, nullable=False),
            Column("attempts_made", Integer, nullable=False, default=0),
            Column("last_error", Text, nullable=True),
            Column("created_at", DateTime, nullable=False),
            Column("available_at", DateTime, nullable=False),
            Column("finished_at", DateTime, nullable=True),
            Column("claimed_by", String, nullable=True),
            Column("lease_until", DateTime, nullable=True),
        )

    @staticmethod
    def _to_job(row: Any) -> Job:  # noqa: ANN401
        values = dict(row)
        return Job(
            order_id=values["order_id"],
            spec=OrderSpec.model_validate(values["payload"]),
            state=values["state"],
            attempts_made=values["attempts_made"],
            last_error=values["last_error"],
            created_at=values["created_at"],
            available_at=values["available_at"],
            finished_at=values["finished_at"],
            claimed_by=values["claimed_by"],
            lease_until=values["lease_until"],
        )

    def add(self: Self, job: Job) -> None:
        self.__db.add_row(
            self.__table,
            order_id=job.order_id,
            payload=job.spec.to_payload(),
            state=job.state,
            attempts_made=job.attempts_made,
            last_error=job.last_error,
            created_at=job.created_at,
            available_at=job.available_at,
            finished_at=job.finished_at,
            claimed_by=job.claimed_by,
            lease_until=job.lease_until,
        )

    def get(self: Self, order_id: str) -> Job | None:
        row = self.__db.get_rows(self.__table, filters={"order_id": order_id}).first()
        return None if row is None else self._to_job(row)

    def remove(self: Self, order_id: str) -> int:
        return self.__db.delete_row(self.__table, filters={"order_id": order_id})

    def update(
        self: Self,
        order_id: str,
        updates: dict[str, Any],
        expected_states: Iterable[JobState] | None = None,
        claimed_by: str | None = None,
    ) -> int:
        """
        Update a job. When ``expected_states`` is passed, the row only changes
        if it is currently in one of these states. When ``claimed_by`` is
        passed, it only changes while that consumer holds the claim.
        """
        filters: dict[str, Any] = {"order_id": order_id}
        if expected_states is not None:
            filters["state"] = tuple(expected_states)
        if claimed_by is not None:
            filters["claimed_by"] = claimed_by
        return self.__db.update_row(self.__table, filters, updates)

    def claim_next(
        self: Self,
        now: datetime,
        consumer: str,
        lease_until: datetime,
    ) -> Job | None:
        """
        Marks the earliest available job as active and claimed by
        ``consumer`` until ``lease_until``. Jobs are taken by availability
        time, then by arrival.
        """
        available = (JobState.WAITING, JobState.DELAYED)
        while True:
            row = self.__db.get_rows(
                self.__table,
                filters={"state": available},
                where=[self.__table.c.available_at <= now],
                order_by=[("available_at", "asc"), ("id", "asc")],
                limit=1,
            ).first()
            if row is None:
                return None

            # Another consumer may have claimed it in the meantime.
            claim = {
                "state": JobState.ACTIVE,
                "claimed_by": consumer,
                "lease_until": lease_until,
            }
            if self.update(row["order_id"], claim, expected_states=available):
                return self._to_job(row).model_copy(update=claim)

    def has_available(self: Self, now: datetime) -> bool:
        return self.__db.count(
            self.__table,
            filters={"state": (JobState.WAITING, JobState.DELAYED)},
            where=[self.__table.c.available_at <= now],
        ) > 0

    def next_available_at(self: Self) -> datetime | None:
        """Returns the earliest availability time of all pending jobs."""
        row = self.__db.get_rows(
            self.__table,
            filters={"state": (JobState.WAITING, JobState.DELAYED)},
            order_by=("available_at", "asc"),
            limit=1,
        ).first()
        return None if row is None else row["available_at"]

    def count(self: Self, filters: dict | None = None) -> int:
        return self.__db.count(self.__table, filters=filters)

    def purge(self: Self, state: JobState, finished_before: datetime) -> int:
        """Delete resolved jobs of a state that finished before a given time."""
        return self.__db.delete_row(
            self.__table,
            filters={"state": state},
            where=[self.__table.c.finished_at < finished_before],
        )

    def requeue_expired(self: Self, now: datetime) -> int:
        """
        Moves active jobs whose lease ran out back to waiting, returns the
        count. Jobs of live consumers keep renewing their lease.
        """
        return self.__db.update_row(
            self.__table,
            {"state": JobState.ACTIVE},
            {"state": JobState.WAITING, "claimed_by": None, "lease_until": None},
            where=[
                or_(
                    self.__table.c.lease_until.is_(None),
                    self.__table.c.lease_until < now,
                ),
            ],
        )
