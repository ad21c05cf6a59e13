#!/usr/bin/env python3
# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

import sys
from logging import DEBUG, INFO, WARNING, basicConfig, getLogger
from typing import Any

from click import BOOL, FLOAT, INT, STRING, Context, echo, pass_context
from cloup import Choice, HelpFormatter, HelpTheme, Style, argument, group, option

from swap_engine.models.configuration import DBConfigDTO, EngineConfigDTO

FORMATTER_SETTINGS = HelpFormatter.settings(
    theme=HelpTheme(
        invoked_command=Style(fg="bright_yellow"),
        heading=Style(fg="bright_white", bold=True),
        constraint=Style(fg="magenta"),
        col1=Style(fg="bright_yellow"),
    ),
)


def print_version(ctx: Context, param: Any, value: Any) -> None:  # noqa: ANN401, ARG001
    """Prints the version of the package"""
    if not value or ctx.resilient_parsing:
        return
    from importlib.metadata import (  # noqa: PLC0415 # pylint: disable=import-outside-toplevel
        version,
    )

    echo(version("swap-order-engine"))
    ctx.exit()


def ensure_larger_than_zero(
    ctx: Context,
    param: Any,  # noqa: ANN401
    value: Any,  # noqa: ANN401
) -> Any:  # noqa: ANN401
    """Ensure the value is larger than 0"""
    if value is not None and value <= 0:
        ctx.fail(f"Value for option '{param.name}' must be larger than 0")
    return value


def _engine(ctx: Context, config: EngineConfigDTO | None = None, **kwargs: Any) -> Any:  # noqa: ANN401
    from swap_engine.core.engine import (  # noqa: PLC0415 # pylint: disable=import-outside-toplevel
        Engine,
    )

    return Engine(
        config=config or EngineConfigDTO(),
        db_config=ctx.obj["db_config"],
        **kwargs,
    )


@group(
    context_settings={
        "auto_envvar_prefix": "SWAP_ENGINE",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=FORMATTER_SETTINGS,
    no_args_is_help=True,
)
@option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
)
@option(
    "-v",
    "--verbose",
    count=True,
    help="Increase the verbosity of output. Use -vv for even more verbosity.",
)
@option(
    "--sqlite-file",
    type=STRING,
    help="SQLite file to use as database instead of PostgreSQL",
)
@option(
    "--in-memory",
    is_flag=True,
    default=False,
    help="Use an in-memory database, the data is lost on exit.",
)
@option("--db-user", type=STRING, help="PostgreSQL DB user")
@option("--db-password", type=STRING, help="PostgreSQL DB password")
@option("--db-name", type=STRING, default="swap_engine", help="PostgreSQL DB name")
@option("--db-host", type=STRING, default="postgresql", help="PostgreSQL DB host")
@option("--db-port", type=STRING, default="5432", help="PostgreSQL DB port")
@pass_context
def cli(ctx: Context, **kwargs: dict) -> None:
    """
    Command-line interface entry point
    """
    ctx.ensure_object(dict)

    verbosity = kwargs.pop("verbose", 0)
    ctx.obj["db_config"] = DBConfigDTO(**kwargs)

    basicConfig(
        format="%(asctime)s %(levelname)8s | %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
        level=INFO if verbosity == 0 else DEBUG,
    )

    getLogger("requests").setLevel(WARNING)
    getLogger("urllib3").setLevel(WARNING)

    if verbosity > 1:  # type: ignore[operator]
        getLogger("sqlalchemy.engine").setLevel(INFO)
    else:
        getLogger("sqlalchemy.engine").setLevel(WARNING)


@cli.command(
    context_settings={
        "auto_envvar_prefix": "SWAP_ENGINE_RUN",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=FORMATTER_SETTINGS,
)
@option("--name", type=STRING, default="swap-engine", help="The name of the engine.")
@option(
    "--concurrency",
    type=INT,
    default=10,
    callback=ensure_larger_than_zero,
    help="Maximum number of orders executed at the same time.",
)
@option(
    "--orders-per-minute",
    type=INT,
    default=100,
    callback=ensure_larger_than_zero,
    help="Maximum number of order executions started per minute.",
)
@option(
    "--max-retries",
    type=INT,
    default=3,
    callback=ensure_larger_than_zero,
    help="Maximum number of execution attempts per order.",
)
@option(
    "--backoff-base-ms",
    type=INT,
    default=1000,
    help="Base delay of the exponential retry backoff.",
)
@option(
    "--backoff-cap-ms",
    type=INT,
    default=10000,
    help="Upper bound of the retry backoff.",
)
@option(
    "--retry-all-errors",
    type=BOOL,
    is_flag=True,
    default=False,
    help="Also retry errors that cannot succeed, e.g. unsupported order types.",
)
@option(
    "--slippage-tolerance",
    type=FLOAT,
    default=0.01,
    help="Accepted relative shortfall of the executed output vs. the quote.",
)
@option(
    "--network-delay-ms",
    type=FLOAT,
    default=200,
    help="Simulated latency of venue quotes.",
)
@option(
    "--execution-delay-ms",
    type=FLOAT,
    default=2000,
    help="Simulated base latency of swap executions.",
)
@option(
    "--execution-jitter-ms",
    type=FLOAT,
    default=1000,
    help="Maximum random latency added to swap executions.",
)
@option(
    "--failure-rate",
    type=FLOAT,
    default=0.0,
    help="Probability of simulated venue failures.",
)
@option(
    "--seed",
    type=INT,
    default=None,
    help="Seed of the venue simulation.",
)
@option(
    "--telegram-token",
    required=False,
    type=STRING,
    help="The telegram token to use.",
)
@option(
    "--telegram-chat-id",
    required=False,
    type=STRING,
    help="The telegram chat ID to use.",
)
@pass_context
def run(ctx: Context, **kwargs: dict) -> None:
    """Run the engine and execute the queued orders"""
    # pylint: disable=import-outside-top-level
    import asyncio  # noqa: PLC0415

    from swap_engine.core.state_machine import States  # noqa: PLC0415
    from swap_engine.models.configuration import (  # noqa: PLC0415
        NotificationConfigDTO,
        QueueConfigDTO,
        TelegramConfigDTO,
        TradingConfigDTO,
        VenueConfigDTO,
    )

    config = EngineConfigDTO(
        name=kwargs["name"],
        queue=QueueConfigDTO(
            concurrency=kwargs["concurrency"],
            orders_per_minute=kwargs["orders_per_minute"],
            max_retries=kwargs["max_retries"],
            backoff_base_ms=kwargs["backoff_base_ms"],
            backoff_cap_ms=kwargs["backoff_cap_ms"],
            retry_all_errors=kwargs["retry_all_errors"],
        ),
        venues=VenueConfigDTO(
            network_delay_ms=kwargs["network_delay_ms"],
            execution_delay_ms=kwargs["execution_delay_ms"],
            execution_jitter_ms=kwargs["execution_jitter_ms"],
            failure_rate=kwargs["failure_rate"],
            seed=kwargs["seed"],
        ),
        trading=TradingConfigDTO(slippage_tolerance=kwargs["slippage_tolerance"]),
    )
    notification_config = NotificationConfigDTO(
        telegram=TelegramConfigDTO(
            token=kwargs["telegram_token"],
            chat_id=kwargs["telegram_chat_id"],
        ),
    )

    engine = _engine(ctx, config, notification_config=notification_config)
    asyncio.run(engine.run())
    sys.exit(engine.state == States.ERROR)


@cli.command(
    context_settings={
        "auto_envvar_prefix": "SWAP_ENGINE_SUBMIT",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=FORMATTER_SETTINGS,
)
@option(
    "--order-type",
    type=Choice(choices=("market", "limit", "sniper"), case_sensitive=False),
    default="market",
    help="The type of the order.",
)
@option("--token-in", required=True, type=STRING, help="The token to sell.")
@option("--token-out", required=True, type=STRING, help="The token to buy.")
@option(
    "--amount-in",
    required=True,
    type=FLOAT,
    help="The amount of the input token.",
)
@option("--order-id", type=STRING, help="Order ID to use instead of a generated one.")
@option("--user-id", type=STRING, help="Reference of the submitting user.")
@pass_context
def submit(ctx: Context, **kwargs: dict) -> None:
    """Queue an order for execution and print its order ID"""
    from swap_engine.exceptions import SwapEngineError  # noqa: PLC0415

    payload = {key: value for key, value in kwargs.items() if value is not None}
    engine = _engine(ctx)
    try:
        echo(engine.orders.submit(payload))
    except SwapEngineError as exc:
        echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        engine.close()


@cli.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    formatter_settings=FORMATTER_SETTINGS,
)
@argument("order_id", type=STRING)
@pass_context
def status(ctx: Context, order_id: str) -> None:
    """Print the current record of an order"""
    from swap_engine.exceptions import OrderNotFoundError  # noqa: PLC0415

    engine = _engine(ctx)
    try:
        record = engine.orders.get_status(order_id)
    except OrderNotFoundError as exc:
        echo(f"Error: {exc}", err=True)
        sys.exit(1)
    finally:
        engine.close()

    echo(record.model_dump_json(by_alias=True, indent=2))


@cli.command(
    context_settings={
        "auto_envvar_prefix": "SWAP_ENGINE_ORDERS",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=FORMATTER_SETTINGS,
)
@option(
    "--status",
    "status_",
    type=Choice(
        choices=("pending", "routing", "building", "submitted", "confirmed", "failed"),
        case_sensitive=False,
    ),
    help="Only list orders in this status.",
)
@option("--user-id", type=STRING, help="Only list orders of this user.")
@option(
    "--limit",
    type=INT,
    default=50,
    callback=ensure_larger_than_zero,
    show_default=True,
)
@option("--offset", type=INT, default=0, show_default=True)
@pass_context
def orders(ctx: Context, status_: str | None, **kwargs: Any) -> None:
    """List orders, newest first"""
    import prettytable  # noqa: PLC0415

    engine = _engine(ctx)
    try:
        records, total = engine.orders.list_orders(status=status_, **kwargs)
    finally:
        engine.close()

    table = prettytable.PrettyTable()
    table.field_names = [
        "Order ID",
        "Type",
        "Pair",
        "Amount In",
        "Status",
        "DEX",
        "Amount Out",
        "Attempts",
        "Created",
    ]
    for record in records:
        table.add_row(
            [
                record.order_id,
                record.order_type,
                f"{record.token_in}/{record.token_out}",
                record.amount_in,
                record.status,
                record.dex_selected or "-",
                "-" if record.amount_out is None else f"{record.amount_out:.6f}",
                record.attempts,
                record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            ],
        )
    echo(table)
    echo(f"Showing {len(records)} of {total} order(s)")


@cli.command(
    context_settings={"help_option_names": ["-h", "--help"]},
    formatter_settings=FORMATTER_SETTINGS,
)
@pass_context
def purge(ctx: Context) -> None:
    """Delete resolved jobs that exceeded their retention"""
    engine = _engine(ctx)
    try:
        removed = engine.queue.purge()
    finally:
        engine.close()
    echo(f"Purged {removed} job(s)")
