# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Exceptions raised by the swap order engine."""


class SwapEngineError(Exception):
    """Base exception of the swap order engine."""


class EngineStateError(SwapEngineError):
    """Raised when the engine runs into an unrecoverable state."""


# == Submission errors =========================================================
##
class OrderValidationError(SwapEngineError):
    """The submitted order payload has an invalid shape, type or range."""


class DuplicateJobError(SwapEngineError):
    """An unresolved job with the same order ID is already queued."""


class OrderExistsError(SwapEngineError):
    """An order record with the same order ID already exists."""


class OrderNotFoundError(SwapEngineError):
    """No order record exists for the requested order ID."""


class InvalidStateTransitionError(SwapEngineError, ValueError):
    """The requested order status transition is not allowed."""


# == Execution errors ==========================================================
##
class OrderExecutionError(SwapEngineError):
    """
    Base class for errors raised while an order is executed.

    ``retryable`` tells the worker pool whether another attempt could
    possibly succeed.
    """

    retryable: bool = True


class UnsupportedOrderTypeError(OrderExecutionError):
    """Only MARKET orders can be executed."""

    retryable = False


class UnknownVenueError(OrderExecutionError):
    """No venue adapter is registered for the requested venue."""

    retryable = False


class SlippageExceededError(OrderExecutionError):
    """The realized output fell below the slippage protected minimum."""


class VenueUnavailableError(OrderExecutionError):
    """Transient venue failure, e.g. a network error."""
