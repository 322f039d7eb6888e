"""Tests for notification listeners."""
from stately import machine

from conftest import door_states


def test_callback_as_options(transitions):
    """A callable second argument is called on every transition."""
    door = machine(door_states(), transitions)

    assert door.close().get_machine_state() == "CLOSED"
    assert transitions.log == [("close", "OPEN", "CLOSED")]


def test_on_transition_option(transitions):
    door = machine(door_states(), {"onTransition": transitions})

    door.close().open()

    assert transitions.log == [("close", "OPEN", "CLOSED"), ("open", "CLOSED", "OPEN")]


def test_bind_in_registration_order(transitions):
    order = []
    door = machine(door_states(), on_transition=lambda *a: order.append("options"))
    door.bind(lambda *a: order.append("first")).bind(lambda *a: order.append("second"))

    door.close()

    assert order == ["options", "first", "second"]


def test_bind_none_is_noop(door):
    assert door.bind(None) is door
    assert door.close().get_machine_state() == "CLOSED"


def test_unbind_callback(door, transitions):
    door.bind(transitions)
    door.close()
    door.unbind(transitions)
    door.open()

    assert transitions.log == [("close", "OPEN", "CLOSED")]


def test_unbind_removes_every_registration(door, transitions):
    door.bind(transitions).bind(transitions)
    door.close()
    door.unbind(transitions)
    door.open()

    assert len(transitions.log) == 2


def test_unbind_all(transitions):
    other = []
    door = machine(door_states(), transitions)
    door.bind(lambda *a: other.append(a))

    assert door.unbind() is door
    door.close()

    assert transitions.log == []
    assert other == []


def test_no_notification_when_staying(transitions):
    door = machine({"OPEN": {"knock": lambda states: None, "close": "CLOSED"}, "CLOSED": {}})
    door.bind(transitions)

    door.knock()

    assert transitions.log == []


def test_unbind_during_notification(door):
    """Listeners removed while notifying still get the current notification."""
    calls = []

    def first(*args):
        calls.append("first")
        door.unbind(second)

    def second(*args):
        calls.append("second")

    door.bind(first).bind(second)
    door.close()
    door.open()

    assert calls == ["first", "second", "first"]


def test_unbind_bound_method(door):
    """Bound methods are matched by equality, not identity."""
    class Recorder:
        def __init__(self):
            self.log = []

        def on_change(self, event, old, new):
            self.log.append((event, old, new))

    recorder = Recorder()
    door.bind(recorder.on_change)
    door.unbind(recorder.on_change)
    door.close()

    assert recorder.log == []
