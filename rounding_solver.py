"""
Clustering heuristic that rounds the UFLP LP relaxation using its duals.

Clients are processed by increasing dual value. Each pick i* forms a cluster
with every still-unassigned client that shares a fractionally used facility
with i*, and the cheapest facility among i*'s fractional links is opened for
the whole cluster.
"""
from typing import List, Optional

import numpy as np

from config import SETTINGS
from data_structures import (
    Instance,
    LPRelaxationResult,
    Solution,
    assign_to_nearest,
    build_solution,
)
from exceptions import OracleError
import uflp_utils.logging as logging
logger = logging.getLogger(__name__)


def _check_lp_result(instance: Instance, lp_result: LPRelaxationResult) -> None:
    if not lp_result.is_optimal:
        raise OracleError(f"LP relaxation is not optimal (status={lp_result.status})")
    n, p = instance.n_clients, instance.n_facilities
    if np.shape(lp_result.x) != (n, p):
        raise OracleError(f"LP x has shape {np.shape(lp_result.x)}, expected {(n, p)}")
    if np.shape(lp_result.duals) != (n,):
        raise OracleError(f"LP duals have shape {np.shape(lp_result.duals)}, expected {(n,)}")


def _select_pivot(unassigned: np.ndarray, duals: np.ndarray) -> int:
    # smallest dual, exact ties to the lowest client index
    return int(min(unassigned, key=lambda i: (duals[i], i)))


def solve_rounding(C, f, lp_result: LPRelaxationResult, link_eps: Optional[float] = None) -> Solution:
    """
    Rounds an optimal LP relaxation into an integral UFLP solution.

    Raises OracleError if `lp_result` is not an optimal relaxation of (C, f)
    and InvalidInstanceError if (C, f) is malformed.
    """
    instance = Instance.from_arrays(C, f)
    _check_lp_result(instance, lp_result)

    eps = SETTINGS.LinkEpsilon if link_eps is None else link_eps
    costs, opening = instance.costs, instance.opening_costs
    support = np.asarray(lp_result.x, dtype=float) > eps
    duals = np.asarray(lp_result.duals, dtype=float)

    assigned = np.zeros(instance.n_clients, dtype=bool)
    opened: List[int] = []

    n_clusters = 0
    while not assigned.all():
        unassigned = np.flatnonzero(~assigned)
        pivot = _select_pivot(unassigned, duals)
        linked = np.flatnonzero(support[pivot])

        members = [pivot]
        if linked.size:
            members += [
                int(i) for i in unassigned
                if i != pivot and support[i, linked].any()
            ]

        if linked.size:
            # argmin keeps the first minimum -> lowest facility index
            chosen = int(linked[np.argmin(opening[linked])])
            if chosen not in opened:
                opened.append(chosen)
            logger.debug("cluster %d: pivot=%d size=%d facility=%d", n_clusters, pivot, len(members), chosen)
        else:
            # numerical degeneracy: the pivot has no fractional link
            logger.warning("Client %d has no LP link above %.1e; using per-client fallback", pivot, eps)
            for i in members:
                chosen = int(np.argmin(costs[i] + opening))
                if chosen not in opened:
                    opened.append(chosen)

        assigned[members] = True
        n_clusters += 1

    # the opened set is fixed; every client then uses its closest opened facility
    assignment = assign_to_nearest(instance, opened)
    solution = build_solution(instance, opened, assignment)
    logger.info(
        "Rounding => %d clusters, %d facilities opened, cost=%.4f",
        n_clusters, solution.n_opened, solution.total_cost,
    )
    return solution
