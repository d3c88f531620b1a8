import os


class Config:
    """Base configuration with sensible defaults."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Drawable area shared with the front end, in scene units
    SIMULATION_WIDTH = float(os.environ.get("SIMULATION_WIDTH", 800))
    SIMULATION_HEIGHT = float(os.environ.get("SIMULATION_HEIGHT", 600))
    SIMULATION_PADDING = float(os.environ.get("SIMULATION_PADDING", 50))
    SIMULATION_TIME_STEP = 0.016

    # Upper bound on steps computed by a single request
    MAX_STEPS_PER_REQUEST = 20000

    # Largest rows x cols grid a simulation may hold
    MAX_GRID_POINTS = int(os.environ.get("MAX_GRID_POINTS", 10000))


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
