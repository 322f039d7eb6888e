"""Shared fixtures for stately tests."""
import pytest

from stately import machine


def door_states():
    """Two-state door, each action returning the other state."""
    return {
        "OPEN": {
            "close": lambda states: states.CLOSED,
        },
        "CLOSED": {
            "open": lambda states: states.OPEN,
        },
    }


@pytest.fixture
def door():
    return machine(door_states(), name="door")


@pytest.fixture
def transitions():
    """Listener that records every (event, old, new) triple."""
    log = []

    def listener(event, old_state, new_state):
        log.append((event, old_state, new_state))

    listener.log = log
    return listener
