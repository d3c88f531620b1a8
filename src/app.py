from __future__ import annotations

import logging
import os
import sys

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from springgrid import SimulationConfig, simulate
from springgrid.extensions import simulations
from springgrid.logging_config import setup_logging
from springgrid.presets import PRESETS

logger = logging.getLogger("springgrid.app")

# -------------------------------------------------------------------
# Module-level extensions are defined in springgrid.extensions
# -------------------------------------------------------------------


def create_app(config_object: object | str | None = None) -> Flask:
    """Application factory with optional config object."""
    app = Flask(__name__)

    # --- Configuration ------------------------------------------------
    config_object = config_object or os.environ.get("FLASK_CONFIG", "config.DevelopmentConfig")

    if isinstance(config_object, str):
        sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
        from werkzeug.utils import import_string

        config_object = import_string(config_object)

    app.config.from_object(config_object)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # --- Initialize extensions ----------------------------------------
    simulations.init_app(app)

    from springgrid.api import simulation_bp

    app.register_blueprint(simulation_bp)

    # --- Routes -------------------------------------------------------
    @app.get("/presets")
    def list_presets():
        """Describe the available task presets."""
        return jsonify({"presets": [p.to_dict() for p in PRESETS.values()]})

    @app.post("/simulate")
    def simulate_endpoint():
        """Run a fresh simulation and return the recorded frames."""
        if not request.is_json:
            return jsonify({"error": "JSON body required"}), 400

        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object required"}), 400

        steps = data.pop("steps", 100)
        record_every = data.pop("record_every", 1)
        limit = app.config["MAX_STEPS_PER_REQUEST"]
        if isinstance(steps, bool) or not isinstance(steps, int) or not 0 <= steps <= limit:
            return jsonify({"error": f"steps must be an integer between 0 and {limit}"}), 400

        try:
            config = SimulationConfig.from_dict(data)
            results = simulate(
                config,
                steps=steps,
                time_step=app.config["SIMULATION_TIME_STEP"],
                record_every=record_every,
                max_points=app.config["MAX_GRID_POINTS"],
                width=app.config["SIMULATION_WIDTH"],
                height=app.config["SIMULATION_HEIGHT"],
                padding=app.config["SIMULATION_PADDING"],
            )
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400

        logger.info("Batch run of preset %d finished after %d frames", config.preset_id, results.total_frames)
        return jsonify(
            {
                "config": config.to_dict(),
                "frames": [frame.to_dict() for frame in results.frames],
                "final_time": results.final_time,
                "total_frames": results.total_frames,
                "issues": results.issues,
            }
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description}), e.code

    return app


if __name__ == "__main__":
    create_app().run(debug=True, host="0.0.0.0", port=5000)
