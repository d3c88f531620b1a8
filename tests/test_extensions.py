import logging

from flask import Flask

import springgrid.extensions as ext
from springgrid import Simulation
from springgrid.extensions import SimulationRegistry
from springgrid.logging_config import setup_logging


def test_singleton_instance():
    assert isinstance(ext.simulations, SimulationRegistry)


def test_init_app_registers_registry():
    app = Flask(__name__)
    registry = SimulationRegistry(app)
    assert app.extensions["simulations"] is registry


def test_registry_add_get_remove():
    registry = SimulationRegistry()
    first = registry.add(Simulation())
    second = registry.add(Simulation())
    assert first != second
    assert registry.ids() == sorted([first, second])
    assert isinstance(registry.get(first), Simulation)
    assert registry.remove(first) is True
    assert registry.remove(first) is False
    assert registry.get(first) is None
    assert len(registry) == 1


def test_registry_ids_are_not_reused_after_clear():
    registry = SimulationRegistry()
    first = registry.add(Simulation())
    registry.clear()
    assert len(registry) == 0
    assert registry.add(Simulation()) > first


def test_setup_logging_does_not_duplicate_handlers():
    setup_logging(logging.DEBUG)
    logger = setup_logging("warning")
    assert logger.name == "springgrid"
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1


def test_setup_logging_writes_log_file(tmp_path):
    log_file = tmp_path / "springgrid.log"
    logger = setup_logging(logging.INFO, log_file=str(log_file))
    logger.info("grid ready")
    for handler in logger.handlers:
        handler.flush()
    assert "grid ready" in log_file.read_text(encoding="utf-8")
    setup_logging(logging.WARNING)
