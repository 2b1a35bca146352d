# config.py
"""
Centralized solver and benchmark configuration.
Works with main.py's update_from_row(...) for per-scenario overrides.
"""

import math
from dataclasses import dataclass, asdict
from typing import Dict, Any

from exceptions import ConfigError


@dataclass
class SolverConfig:
    # Numerical tolerances
    LinkEpsilon: float = 1e-6     # x[i,j] > eps counts as a fractional link
    OpenTolerance: float = 1e-9   # accumulator >= f[j] - tol opens facility j

    # Gurobi parameters for the LP / MIP oracles
    SolverOutputFlag: int = 0
    SolverTimeLimit: float = 0.0  # seconds, 0 = no limit

    # Instance generation
    NumClients: int = 40
    NumFacilities: int = 12
    NumInstances: int = 5
    Seed: int = 100
    GridSize: float = 100.0
    OpeningScale: float = 100.0
    RoundCosts: bool = True

    # Benchmark harness
    Workers: int = 1
    TimeoutSeconds: float = 60.0
    RunExact: bool = True

    # Logging
    LogDir: str = "logs"
    LogLevel: str = "INFO"

    def update(self, **kwargs) -> None:
        """
        Programmatic override of fields, with safety for unknown keys.
        Example:
            SETTINGS.update(TimeoutSeconds=30)
        """
        for k, v in kwargs.items():
            if hasattr(self, k):
                setattr(self, k, v)
            else:
                raise ConfigError(f"Unknown config field: {k}")

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Singleton instance
SETTINGS = SolverConfig()


def _present(value) -> bool:
    # empty cells come back from pandas as NaN
    return value is not None and not (isinstance(value, float) and math.isnan(value))


def update_from_row(row) -> None:
    """
    Accepts a pandas Series or dict with these keys:
      N_CLIENTS
      N_FACILITIES
      N_INSTANCES
      SEED
      OPENING_SCALE     (optional)
      TIMEOUT_SECONDS   (optional)
    Missing optional keys keep their current SETTINGS value.
    """
    # Support both Series and dict
    get = row.get if hasattr(row, "get") else (lambda k, d=None: row[k])

    try:
        overrides = dict(
            NumClients=int(get("N_CLIENTS")),
            NumFacilities=int(get("N_FACILITIES")),
            NumInstances=int(get("N_INSTANCES")),
            Seed=int(get("SEED")),
        )
    except (TypeError, ValueError, KeyError) as e:
        raise ConfigError(f"Invalid scenario row: {e}") from e

    opening_scale = get("OPENING_SCALE", None)
    if _present(opening_scale):
        overrides["OpeningScale"] = float(opening_scale)
    timeout = get("TIMEOUT_SECONDS", None)
    if _present(timeout):
        overrides["TimeoutSeconds"] = float(timeout)

    SETTINGS.update(**overrides)


__all__ = [
    "SolverConfig",
    "SETTINGS",
    "update_from_row",
]
