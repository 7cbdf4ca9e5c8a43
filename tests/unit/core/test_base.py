"""Unit tests for the manager base class."""

from ferron_forge.core.base import ForgeManager


class DummyManager(ForgeManager):
    def initialize(self) -> None:
        self._initialized = True
        self._healthy = True

    def shutdown(self) -> None:
        self._initialized = False
        self._healthy = False


def test_manager_lifecycle():
    manager = DummyManager("dummy")
    assert manager.status() == {"name": "dummy", "initialized": False, "healthy": False}

    manager.initialize()
    assert manager.name == "dummy"
    assert manager.initialized
    assert manager.healthy

    manager.shutdown()
    assert not manager.initialized


def test_manager_has_no_logger_slot():
    manager = DummyManager("dummy")
    assert not hasattr(manager, "set_logger")
    assert not hasattr(manager, "_logger")
