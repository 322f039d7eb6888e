"""Tests for YAML machine definitions."""
import pytest

from stately import ConfigurationError, MachineParser

DOOR_YAML = """
OPEN:
  close: CLOSED
CLOSED:
  open: OPEN
  lock: LOCKED
LOCKED:
  unlock: CLOSED
"""

DOCUMENT_YAML = """
name: door
initial_state: CLOSED
invalid_event_errors: true
history_size: 5
states:
  OPEN: {close: CLOSED}
  CLOSED: {open: OPEN}
  BROKEN:
"""


class TestParsing:
    """Parsing definitions into MachineDefinition objects."""

    def test_bare_states(self):
        definition = MachineParser.from_string(DOOR_YAML)

        assert definition.options == {}
        assert definition.name == "stately"
        assert definition.states == {
            "OPEN": {"close": "CLOSED"},
            "CLOSED": {"open": "OPEN", "lock": "LOCKED"},
            "LOCKED": {"unlock": "CLOSED"},
        }

    def test_document_with_options(self):
        definition = MachineParser.from_string(DOCUMENT_YAML)

        assert definition.name == "door"
        assert definition.options == {
            "name": "door",
            "initial_state": "CLOSED",
            "invalid_event_errors": True,
            "history_size": 5,
        }
        assert definition.states["BROKEN"] == {}

    def test_from_file(self, tmp_path):
        path = tmp_path / "door.yaml"
        path.write_text(DOOR_YAML)

        definition = MachineParser.from_file(path)

        assert definition.source == str(path)
        assert list(definition.states) == ["OPEN", "CLOSED", "LOCKED"]

    @pytest.mark.parametrize("text", [
        "",
        "- OPEN\n- CLOSED\n",
        "states: {}\n",
        "OPEN: [close]\n",
        "OPEN: {close: 3}\n",
        "name: door\ncolour: red\nstates: {OPEN: {}}\n",
        "OPEN: {close: [CLOSED\n",
    ])
    def test_invalid_definitions(self, text):
        with pytest.raises(ConfigurationError):
            MachineParser.from_string(text)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            MachineParser.from_file(tmp_path / "missing.yaml")


class TestBuild:
    """Building machines from definitions."""

    def test_build_bare(self):
        door = MachineParser.from_string(DOOR_YAML).build()

        assert door.close().lock().get_machine_state() == "LOCKED"
        assert door.get_machine_events() == ["unlock"]

    def test_build_applies_document_options(self):
        door = MachineParser.from_string(DOCUMENT_YAML).build()

        assert door.name == "door"
        assert door.get_machine_state() == "CLOSED"
        assert door.options.invalid_event_errors is True
        assert door.options.history_size == 5

    def test_overrides(self):
        door = MachineParser.from_string(DOCUMENT_YAML).build(
            initial_state="OPEN", invalid_event_errors=False
        )
        assert door.get_machine_state() == "OPEN"
        assert door.open() is door

    def test_merge_python_actions(self):
        entered = []
        definition = MachineParser.from_string(DOOR_YAML)

        door = definition.build(actions={
            "LOCKED": {
                "onEnter": lambda states, event, old, new: entered.append(old),
                "force": lambda states: states.OPEN,
            },
        })

        door.close().lock()
        assert entered == ["CLOSED"]
        assert door.get_machine_events() == ["unlock", "force"]
        assert door.force().get_machine_state() == "OPEN"
        # The loaded definition is left untouched
        assert definition.states["LOCKED"] == {"unlock": "CLOSED"}

    def test_merge_unknown_state(self):
        definition = MachineParser.from_string(DOOR_YAML)
        with pytest.raises(ConfigurationError):
            definition.build(actions={"AJAR": {"close": "CLOSED"}})
