"""
Tests for the simulation controller and the batch runner.
"""

import sys

import numpy as np
import pytest

sys.path.append("src")

from springgrid import ConfigurationError, IntegrationMethod, Simulation, SimulationConfig, Vec2, simulate


# --------------------------------------------------------------------------- #
# CONFIGURATION
# --------------------------------------------------------------------------- #


def test_config_defaults():
    config = SimulationConfig()
    assert config.preset_id == 1
    assert config.integration_method is IntegrationMethod.SEMI_IMPLICIT_EULER
    assert config.include_shear is False
    assert config.shape() == (1, 2)
    assert config.clamp_euler is False


def test_config_shear_follows_preset_unless_overridden():
    assert SimulationConfig(preset_id=4).include_shear is True
    assert SimulationConfig(preset_id=4, shear_enabled=False).include_shear is False
    assert SimulationConfig(preset_id=2, shear_enabled=True).include_shear is True


def test_config_from_dict_parses_method():
    config = SimulationConfig.from_dict({"preset_id": 5, "integration_method": "verlet", "rows": 3, "cols": 4})
    assert config.integration_method is IntegrationMethod.VERLET
    assert config.shape() == (3, 4)


@pytest.mark.parametrize(
    "data",
    [
        {"preset_id": 9},
        {"integration_method": "rk4"},
        {"rows": 0, "preset_id": 5},
        {"cols": "3"},
        {"shear_enabled": "yes"},
        {"clamp_euler": 1},
        {"restore_force": float("nan")},
        {"damping": "high"},
        {"colour": "red"},
    ],
)
def test_config_rejects_invalid_values(data):
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_dict(data)


def test_config_to_dict_round_trips_through_from_dict():
    config = SimulationConfig(preset_id=5, integration_method="verlet", rows=2, cols=3, restore_force=2.5, damping=0.4)
    assert SimulationConfig.from_dict(config.to_dict()) == config


# --------------------------------------------------------------------------- #
# RUN / PAUSE
# --------------------------------------------------------------------------- #


def test_tick_is_a_no_op_while_paused():
    sim = Simulation(SimulationConfig(preset_id=4))
    before = sim.grid.positions.copy()
    assert sim.tick() is None
    assert sim.tick_count == 0
    assert np.array_equal(sim.grid.positions, before)


def test_tick_advances_while_running():
    sim = Simulation(SimulationConfig(preset_id=4))
    assert sim.toggle() is True
    frame = sim.tick()
    assert frame is not None
    assert frame.tick == 1
    assert frame.time == pytest.approx(0.016)
    assert len(frame.edges) == 20
    assert sim.toggle() is False
    assert sim.tick() is None


def test_stop_takes_effect_before_next_tick():
    sim = Simulation()
    sim.start()
    sim.tick()
    sim.stop()
    positions = sim.grid.positions.copy()
    assert sim.tick() is None
    assert np.array_equal(sim.grid.positions, positions)


def test_advance_ignores_running_flag():
    sim = Simulation()
    frames = sim.advance(3)
    assert [f.tick for f in frames] == [1, 2, 3]
    assert sim.running is False


def test_advance_rejects_negative_steps():
    with pytest.raises(ConfigurationError):
        Simulation().advance(-1)


def test_frames_are_independent_snapshots():
    sim = Simulation()
    first = sim.advance(1)[0]
    sim.advance(5)
    assert not np.array_equal(first.positions, sim.grid.positions)


# --------------------------------------------------------------------------- #
# RECONFIGURATION
# --------------------------------------------------------------------------- #


def test_changing_preset_rebuilds_grid():
    sim = Simulation(SimulationConfig(preset_id=1))
    sim.advance(10)
    assert sim.configure(preset_id=4) is True
    assert sim.grid.shape == (3, 3)
    assert sim.tick_count == 0
    assert sim.grid.position(1, 1).y == pytest.approx(260.0)


def test_rows_and_cols_only_rebuild_free_form():
    sim = Simulation(SimulationConfig(preset_id=4))
    assert sim.configure(rows=6, cols=6) is False
    assert sim.grid.shape == (3, 3)

    sim.configure(preset_id=5, rows=2, cols=3)
    assert sim.grid.shape == (2, 3)
    assert sim.configure(cols=8) is True
    assert sim.grid.shape == (2, 8)


def test_method_change_keeps_state():
    sim = Simulation(SimulationConfig(preset_id=3))
    sim.advance(5)
    positions = sim.grid.positions.copy()
    assert sim.configure(integration_method="verlet") is False
    assert np.array_equal(sim.grid.positions, positions)
    assert sim.advance(1)[0].method is IntegrationMethod.VERLET


def test_inert_parameters_do_not_change_dynamics():
    plain = Simulation(SimulationConfig(preset_id=4))
    tuned = Simulation(SimulationConfig(preset_id=4, restore_force=50.0, damping=9.0))
    plain.advance(50)
    tuned.advance(50)
    assert np.array_equal(plain.grid.positions, tuned.grid.positions)
    assert tuned.config.to_dict()["restore_force"] == 50.0


def test_invalid_reconfiguration_leaves_state_untouched():
    sim = Simulation(SimulationConfig(preset_id=2))
    with pytest.raises(ConfigurationError):
        sim.configure(preset_id=42)
    assert sim.config.preset_id == 2


def test_grid_size_limit_applies_to_creation_and_reconfiguration():
    with pytest.raises(ConfigurationError):
        Simulation(SimulationConfig(preset_id=5, rows=101, cols=100), max_points=10000)
    sim = Simulation(SimulationConfig(preset_id=5, rows=100, cols=100), max_points=10000)
    with pytest.raises(ConfigurationError):
        sim.configure(rows=101)
    assert sim.config.rows == 100
    assert sim.grid.shape == (100, 100)


def test_size_limit_checks_the_preset_shape():
    sim = Simulation(SimulationConfig(preset_id=4), max_points=9)
    sim.configure(rows=500, cols=500)
    assert sim.grid.shape == (3, 3)


def test_reset_rebuilds_and_pauses():
    sim = Simulation(SimulationConfig(preset_id=1))
    sim.start()
    sim.advance(20)
    sim.reset()
    assert sim.running is False
    assert sim.tick_count == 0
    assert sim.grid.position(0, 1) == Vec2(770.0, 300.0)


def test_drag_clamps_and_syncs_previous_position():
    sim = Simulation(SimulationConfig(preset_id=4))
    assert sim.drag(0, 0, -100.0, 2000.0) == Vec2(50.0, 550.0)
    assert sim.grid.previous_position(0, 0) == Vec2(50.0, 550.0)


def test_to_dict_is_json_ready():
    data = Simulation(SimulationConfig(preset_id=2)).to_dict()
    assert data["running"] is False
    assert data["grid"]["rows"] == 2
    assert data["frame"]["positions"][0][1] == [750.0, 20.0]
    assert {"start": [0, 0], "end": [0, 1], "kind": "structural"} in data["frame"]["edges"]


# --------------------------------------------------------------------------- #
# BATCH RUNS
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize("method", ["euler", "verlet"])
def test_single_spring_stays_bounded_for_ten_thousand_steps(method):
    results = simulate(SimulationConfig(preset_id=1, integration_method=method), steps=10000, record_every=500)
    assert results.issues == []
    assert results.get_final_frame().tick == 10000
    for frame in results.frames:
        assert np.all(np.isfinite(frame.positions))
        assert np.all(np.isfinite(frame.velocities))
        # centre of mass sits at x = 410, nothing may wander off
        assert np.all(np.abs(frame.positions[:, :, 0] - 410.0) < 1000.0)
        # the spring is horizontal, so y never moves
        assert np.all(frame.positions[:, :, 1] == 300.0)


def test_verlet_keeps_three_by_three_inside_bounds():
    results = simulate(SimulationConfig(preset_id=4, integration_method="verlet"), steps=2000, record_every=100)
    for frame in results.frames:
        assert np.all(frame.positions[:, :, 0] >= 50.0) and np.all(frame.positions[:, :, 0] <= 750.0)
        assert np.all(frame.positions[:, :, 1] >= 50.0) and np.all(frame.positions[:, :, 1] <= 550.0)


def test_simulate_records_initial_and_final_frames():
    results = simulate(SimulationConfig(preset_id=2), steps=25, record_every=10)
    assert [f.tick for f in results.frames] == [0, 10, 20, 25]
    assert results.total_frames == 4
    assert results.final_time == pytest.approx(25 * 0.016)


def test_simulate_zero_steps_returns_initial_frame():
    results = simulate(SimulationConfig(preset_id=3), steps=0)
    assert results.total_frames == 1
    assert results.get_final_frame().tick == 0


def test_simulate_rejects_bad_record_interval():
    with pytest.raises(ConfigurationError):
        simulate(steps=10, record_every=0)


def test_simulate_respects_grid_size_limit():
    with pytest.raises(ConfigurationError):
        simulate(SimulationConfig(preset_id=5, rows=30, cols=30), steps=1, max_points=100)
