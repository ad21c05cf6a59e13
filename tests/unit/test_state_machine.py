# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2024 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the engine lifecycle state machine."""

import asyncio
import pytest

from swap_engine.core.state_machine import StateMachine, States


@pytest.fixture
def state_machine() -> StateMachine:
    return StateMachine()


class TestLifecycle:
    def test_initial_state(self, state_machine: StateMachine) -> None:
        assert state_machine.state == States.INITIALIZING

    def test_start_and_shutdown(self, state_machine: StateMachine) -> None:
        state_machine.transition_to(States.RUNNING)
        state_machine.transition_to(States.SHUTDOWN_REQUESTED)
        assert state_machine.state == States.SHUTDOWN_REQUESTED

    def test_recovery_from_error(self, state_machine: StateMachine) -> None:
        state_machine.transition_to(States.ERROR)
        state_machine.transition_to(States.RUNNING)
        assert state_machine.state == States.RUNNING

    def test_same_state_is_noop(self) -> None:
        sm = StateMachine(initial_state=States.SHUTDOWN_REQUESTED)
        sm.transition_to(States.SHUTDOWN_REQUESTED)
        assert sm.state == States.SHUTDOWN_REQUESTED

    @pytest.mark.parametrize(
        "target",
        [States.RUNNING, States.ERROR, States.INITIALIZING],
    )
    def test_shutdown_is_final(self, target: States) -> None:
        sm = StateMachine(initial_state=States.SHUTDOWN_REQUESTED)
        with pytest.raises(ValueError, match=r"Invalid state transition from"):
            sm.transition_to(target)
        assert sm.state == States.SHUTDOWN_REQUESTED

    def test_running_cannot_go_back_to_initializing(self) -> None:
        sm = StateMachine(initial_state=States.RUNNING)
        with pytest.raises(ValueError, match=r"Invalid state transition from"):
            sm.transition_to(States.INITIALIZING)

    def test_facts_are_merged(self, state_machine: StateMachine) -> None:
        state_machine.facts = {"recovered_jobs": 2}
        state_machine.facts = {"pool_started": True}
        assert state_machine.facts == {"recovered_jobs": 2, "pool_started": True}


class TestWaitForShutdown:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [States.SHUTDOWN_REQUESTED, States.ERROR])
    async def test_returns_immediately(self, state: States) -> None:
        await asyncio.wait_for(StateMachine(initial_state=state).wait_for_shutdown(), 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [States.SHUTDOWN_REQUESTED, States.ERROR])
    async def test_wakes_up_all_waiters(self, state: States) -> None:
        sm = StateMachine(initial_state=States.RUNNING)
        waiters = [asyncio.create_task(sm.wait_for_shutdown()) for _ in range(3)]
        await asyncio.sleep(0.01)
        assert not any(waiter.done() for waiter in waiters)

        sm.transition_to(state)

        await asyncio.wait_for(asyncio.gather(*waiters), 1)
