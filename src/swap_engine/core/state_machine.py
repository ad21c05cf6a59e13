# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2024 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Lifecycle state machine of the engine process."""

import asyncio
from enum import Enum, auto
from logging import getLogger
from typing import Any, Self

LOG = getLogger(__name__)


class States(Enum):
    INITIALIZING = auto()
    RUNNING = auto()
    SHUTDOWN_REQUESTED = auto()
    ERROR = auto()


class StateMachine:
    """Tracks whether the engine is starting, running or shutting down."""

    def __init__(self: Self, initial_state: States = States.INITIALIZING) -> None:
        self._state: States = initial_state
        self._facts: dict[str, Any] = {}
        self._transitions: dict[States, list[States]] = {
            States.INITIALIZING: [
                States.RUNNING,
                States.SHUTDOWN_REQUESTED,
                States.ERROR,
            ],
            States.RUNNING: [States.ERROR, States.SHUTDOWN_REQUESTED],
            States.ERROR: [States.RUNNING, States.SHUTDOWN_REQUESTED],
            States.SHUTDOWN_REQUESTED: [],
        }

    @property
    def state(self: Self) -> States:
        return self._state

    @property
    def facts(self: Self) -> dict[str, Any]:
        return self._facts

    @facts.setter
    def facts(self: Self, new_facts: dict[str, Any]) -> None:
        self._facts |= new_facts

    def transition_to(self: Self, new_state: States) -> None:
        """Attempt to transition to a new state"""
        if new_state == self._state:
            return

        if new_state not in self._transitions.get(self._state, []):
            raise ValueError(
                f"Invalid state transition from {self._state} to {new_state}",
            )

        LOG.debug("Engine state: %s -> %s", self._state.name, new_state.name)
        self._state = new_state

        if new_state in (States.SHUTDOWN_REQUESTED, States.ERROR) and hasattr(
            self,
            "_shutdown_event",
        ):
            self._shutdown_event.set()

    async def wait_for_shutdown(self: Self) -> None:
        """Wait until the state machine enters SHUTDOWN_REQUESTED or ERROR"""
        if self._state in (States.SHUTDOWN_REQUESTED, States.ERROR):
            return

        if not hasattr(self, "_shutdown_event"):
            self._shutdown_event = asyncio.Event()

        await self._shutdown_event.wait()
