from __future__ import annotations

import logging

from flask import Blueprint, abort, current_app, jsonify, request

from .extensions import simulations
from .simulation import DERIVED_CONFIG_FIELDS, Simulation, SimulationConfig

logger = logging.getLogger(__name__)

simulation_bp = Blueprint("simulation", __name__, url_prefix="/simulation")


def _json_body() -> dict:
    if not request.is_json:
        abort(400, description="JSON body required")
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        abort(400, description="JSON object required")
    return data


def _get_simulation(sim_id: int) -> Simulation:
    sim = simulations.get(sim_id)
    if sim is None:
        abort(404, description=f"No simulation with id {sim_id}")
    return sim


def _new_simulation(config: SimulationConfig) -> Simulation:
    cfg = current_app.config
    return Simulation(
        config,
        width=cfg["SIMULATION_WIDTH"],
        height=cfg["SIMULATION_HEIGHT"],
        padding=cfg["SIMULATION_PADDING"],
        time_step=cfg["SIMULATION_TIME_STEP"],
        max_points=cfg["MAX_GRID_POINTS"],
    )


@simulation_bp.get("")
def list_simulations():
    return jsonify({"ids": simulations.ids()})


@simulation_bp.post("")
def create_simulation():
    """Create a simulation from an optional configuration body."""
    data = request.get_json(silent=True) if request.is_json else None
    data = data or {}
    if not isinstance(data, dict):
        return jsonify({"error": "JSON object required"}), 400
    running = bool(data.pop("running", False))
    try:
        sim = _new_simulation(SimulationConfig.from_dict(data))
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    if running:
        sim.start()
    sim_id = simulations.add(sim)
    logger.info("Created simulation %d (preset %d)", sim_id, sim.config.preset_id)
    return jsonify({"id": sim_id, **sim.to_dict()}), 201


@simulation_bp.get("/<int:sim_id>")
def get_simulation(sim_id: int):
    sim = _get_simulation(sim_id)
    with sim.lock:
        return jsonify({"id": sim_id, **sim.to_dict()})


@simulation_bp.delete("/<int:sim_id>")
def delete_simulation(sim_id: int):
    _get_simulation(sim_id)
    simulations.remove(sim_id)
    logger.info("Deleted simulation %d", sim_id)
    return jsonify({"status": "deleted"})


@simulation_bp.post("/<int:sim_id>/tick")
def tick_simulation(sim_id: int):
    """One scheduled tick; a no-op while the simulation is paused."""
    sim = _get_simulation(sim_id)
    with sim.lock:
        frame = sim.tick()
        return jsonify({"running": sim.running, "frame": frame.to_dict() if frame else None})


@simulation_bp.post("/<int:sim_id>/step")
def step_simulation(sim_id: int):
    sim = _get_simulation(sim_id)
    data = _json_body()
    steps = data.get("steps", 1)
    limit = current_app.config["MAX_STEPS_PER_REQUEST"]
    if isinstance(steps, bool) or not isinstance(steps, int) or not 1 <= steps <= limit:
        return jsonify({"error": f"steps must be an integer between 1 and {limit}"}), 400
    with sim.lock:
        frames = sim.advance(steps)
        running = sim.running
    final = frames[-1]
    return jsonify({"running": running, "steps": steps, "frame": final.to_dict(), "issues": [i for f in frames for i in f.issues]})


@simulation_bp.post("/<int:sim_id>/toggle")
def toggle_simulation(sim_id: int):
    sim = _get_simulation(sim_id)
    with sim.lock:
        running = sim.toggle()
    return jsonify({"running": running})


@simulation_bp.post("/<int:sim_id>/drag")
def drag_point(sim_id: int):
    """Move one point to a new position, clamped to the drawable area."""
    sim = _get_simulation(sim_id)
    data = _json_body()
    try:
        row, col, x, y = int(data["row"]), int(data["col"]), float(data["x"]), float(data["y"])
    except KeyError as e:
        return jsonify({"error": f"missing field {e.args[0]}"}), 400
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    with sim.lock:
        try:
            position = sim.drag(row, col, x, y)
        except (ValueError, IndexError) as e:
            return jsonify({"error": str(e)}), 400
        frame = sim.snapshot()
    return jsonify({"position": list(position.as_tuple()), "frame": frame.to_dict()})


@simulation_bp.put("/<int:sim_id>/config")
def update_config(sim_id: int):
    sim = _get_simulation(sim_id)
    data = {k: v for k, v in _json_body().items() if k not in DERIVED_CONFIG_FIELDS}
    unknown = set(data) - set(SimulationConfig.__dataclass_fields__)
    if unknown:
        return jsonify({"error": f"Unknown configuration fields: {sorted(unknown)}"}), 400
    with sim.lock:
        try:
            rebuilt = sim.configure(**data)
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"rebuilt": rebuilt, **sim.to_dict()})


@simulation_bp.post("/<int:sim_id>/reset")
def reset_simulation(sim_id: int):
    sim = _get_simulation(sim_id)
    with sim.lock:
        sim.reset()
        return jsonify(sim.to_dict())
