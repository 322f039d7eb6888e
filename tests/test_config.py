"""Tests for MachineOptions."""
import pytest
from prometheus_client import CollectorRegistry

from stately import ConfigurationError, MachineOptions


class TestFromValue:
    """Normalising the options argument."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STATELY_INVALID_EVENT_ERRORS", raising=False)
        monkeypatch.delenv("STATELY_METRICS", raising=False)

        options = MachineOptions.from_value(None)

        assert options.name == "stately"
        assert options.initial_state is None
        assert options.on_transition is None
        assert options.invalid_event_errors is False
        assert options.history_size == 20
        assert options.metrics is True

    def test_callable(self):
        callback = lambda *a: None
        assert MachineOptions.from_value(callback).on_transition is callback

    def test_initial_state_string(self):
        assert MachineOptions.from_value("CLOSED").initial_state == "CLOSED"

    def test_camel_case_mapping(self):
        callback = lambda *a: None
        options = MachineOptions.from_value({
            "onTransition": callback,
            "invalidEventErrors": True,
            "initialState": "CLOSED",
            "historySize": 5,
        })

        assert options.on_transition is callback
        assert options.invalid_event_errors is True
        assert options.initial_state == "CLOSED"
        assert options.history_size == 5

    def test_overrides_win(self):
        options = MachineOptions.from_value({"name": "door"}, name="gate", invalidEventErrors=True)
        assert options.name == "gate"
        assert options.invalid_event_errors is True

    def test_instance_passthrough(self):
        options = MachineOptions(name="door")
        assert MachineOptions.from_value(options) is options

    def test_metrics_registry(self):
        registry = CollectorRegistry()
        assert MachineOptions(metrics_registry=registry).metrics_registry is registry

    def test_metrics_disabled_from_environment(self, monkeypatch):
        monkeypatch.setenv("STATELY_METRICS", "false")
        assert MachineOptions().metrics is False


class TestValidation:
    """Rejected option values."""

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            MachineOptions.from_value({"onTransitions": lambda *a: None})

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError):
            MachineOptions.from_value(None, colour="red")

    def test_unsupported_value(self):
        with pytest.raises(ConfigurationError):
            MachineOptions.from_value(42)

    def test_non_callable_listener(self):
        with pytest.raises(ConfigurationError):
            MachineOptions(on_transition="CLOSED")

    @pytest.mark.parametrize("size", [-1, "20"])
    def test_bad_history_size(self, size):
        with pytest.raises(ConfigurationError):
            MachineOptions(history_size=size)

    def test_empty_name(self):
        with pytest.raises(ConfigurationError):
            MachineOptions(name="")
