"""Random Euclidean UFLP instances on a square grid."""
from typing import Optional, Tuple

import numpy as np

from config import SETTINGS
from data_structures import Instance
from exceptions import InvalidInstanceError


def generate_instance(
    n: int,
    p: Optional[int] = None,
    seed: Optional[int] = None,
    grid: Optional[float] = None,
    opening_scale: Optional[float] = None,
    round_costs: Optional[bool] = None,
) -> Tuple[Instance, np.ndarray, np.ndarray]:
    """
    Places n clients and p candidate sites uniformly on a grid x grid square
    and uses Euclidean distances as connection costs. Opening costs are
    uniform on [0, opening_scale). With p=None clients and sites coincide
    (n points, n x n costs).

    Rounded costs mirror integer-distance benchmark files but may break the
    triangle inequality by up to one unit; pass round_costs=False for a
    strictly metric instance.

    Returns (instance, client_coords, facility_coords), coords as (k, 2) arrays.
    """
    if n <= 0 or (p is not None and p <= 0):
        raise InvalidInstanceError(f"Need at least one client and one facility, got n={n}, p={p}")
    grid = SETTINGS.GridSize if grid is None else grid
    opening_scale = SETTINGS.OpeningScale if opening_scale is None else opening_scale
    round_costs = SETTINGS.RoundCosts if round_costs is None else round_costs

    rng = np.random.default_rng(seed)
    clients = rng.random((n, 2)) * grid
    sites = clients.copy() if p is None else rng.random((p, 2)) * grid

    costs = np.linalg.norm(clients[:, None, :] - sites[None, :, :], axis=2)
    if round_costs:
        costs = np.round(costs)
    opening = rng.random(sites.shape[0]) * opening_scale

    return Instance.from_arrays(costs, opening), clients, sites
