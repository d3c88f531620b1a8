from __future__ import annotations

import itertools
import threading
from typing import Dict, List, Optional

from flask import Flask

from .simulation import Simulation


class SimulationRegistry:
    """In-process store of live simulations, keyed by integer id."""

    def __init__(self, app: Optional[Flask] = None):
        self._sessions: Dict[int, Simulation] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["simulations"] = self

    def add(self, simulation: Simulation) -> int:
        with self._lock:
            sim_id = next(self._ids)
            self._sessions[sim_id] = simulation
        return sim_id

    def get(self, sim_id: int) -> Optional[Simulation]:
        return self._sessions.get(sim_id)

    def remove(self, sim_id: int) -> bool:
        with self._lock:
            return self._sessions.pop(sim_id, None) is not None

    def ids(self) -> List[int]:
        return sorted(self._sessions)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# Global extension instances

simulations = SimulationRegistry()
