"""
Jain-Vazirani primal-dual algorithm for the UFLP (3-approximation on metric instances).

Phase 1 grows every unconnected client's dual alpha at unit rate. Once
alpha_i reaches C[i, j] the client is tight with j: it starts paying into
j's opening cost if j is still closed, or connects to j at once if j is
already (tentatively) open. A facility opens when its payments reach f[j]
and connects all of its paying clients.

Phase 2 keeps a subset of the tentatively opened facilities, in opening
order, such that no client has paid towards two kept facilities.

Reference: K. Jain, V. V. Vazirani, "Approximation algorithms for metric
facility location and k-median problems using the primal-dual schema and
Lagrangian relaxation", J. ACM 48(2), 2001.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from config import SETTINGS
from data_structures import (
    ClientState,
    ContributeEvent,
    FacilityState,
    Instance,
    Solution,
    assign_to_nearest,
    build_solution,
)
import uflp_utils.logging as logging
logger = logging.getLogger(__name__)


@dataclass
class DualGrowth:
    """Phase 1 outcome. Owned by a single call; never shared."""
    clients: List[ClientState]
    facilities: List[FacilityState]
    opening_order: List[int]
    final_time: float
    forced_clients: List[int]

    @property
    def dual_value(self) -> float:
        return float(sum(c.alpha for c in self.clients))


def build_contribute_events(instance: Instance) -> List[ContributeEvent]:
    """One event per (client, facility) pair, sorted by (time, client, facility)."""
    n, p = instance.n_clients, instance.n_facilities
    events = [
        ContributeEvent(float(instance.costs[i, j]), i, j)
        for i in range(n)
        for j in range(p)
    ]
    events.sort()
    return events


def _connect(growth: DualGrowth, i: int, j: int, alpha: float) -> None:
    client = growth.clients[i]
    client.connected = True
    client.alpha = alpha
    client.witness = j
    for k in client.tight_facilities:
        growth.facilities[k].active -= 1


def _open_facility(growth: DualGrowth, j: int, f_j: float, previous_t: float, t: float) -> int:
    """Tentatively open j and connect its unconnected contributors. Returns how many got connected."""
    facility = growth.facilities[j]
    facility.opened = True
    facility.opening_position = len(growth.opening_order)
    growth.opening_order.append(j)

    if facility.rate > 0:
        # exact time the accumulator hit f[j] inside the last step
        alpha = previous_t + (f_j - facility.contribution_before) / facility.rate
        alpha = min(max(alpha, previous_t), t)
    else:
        alpha = t
    facility.contribution = f_j

    newly = 0
    for i in facility.contributors:
        if not growth.clients[i].connected:
            _connect(growth, i, j, alpha)
            newly += 1
    logger.debug("t=%.6f: facility %d opens, %d clients connected", alpha, j, newly)
    return newly


def grow_duals(instance: Instance, open_tol: Optional[float] = None) -> DualGrowth:
    """
    Phase 1 as a discrete-event simulation.

    Each step advances to the earlier of the next relevant contribute event
    and the earliest projected opening time, moves every closed facility's
    accumulator by (active contributors) x dt, opens every facility that
    crossed its cost (index order), then consumes the triggering event.
    """
    tol = SETTINGS.OpenTolerance if open_tol is None else open_tol
    n, p = instance.n_clients, instance.n_facilities
    f = instance.opening_costs

    growth = DualGrowth(
        clients=[ClientState() for _ in range(n)],
        facilities=[FacilityState() for _ in range(p)],
        opening_order=[],
        final_time=0.0,
        forced_clients=[],
    )
    clients, facilities = growth.clients, growth.facilities
    events = build_contribute_events(instance)

    t = 0.0
    k = 0
    n_connected = 0
    while n_connected < n:
        # stale events: the client is already connected
        while k < len(events) and clients[events[k].client].connected:
            k += 1
        next_event_t = events[k].time if k < len(events) else math.inf

        next_open_t = math.inf
        due = []
        for j, facility in enumerate(facilities):
            if facility.opened or facility.active == 0:
                continue
            t_open = t + (f[j] - facility.contribution) / facility.active
            if t_open < next_open_t:
                next_open_t, due = t_open, [j]
            elif t_open == next_open_t:
                due.append(j)

        t_next = min(next_event_t, next_open_t)
        if math.isinf(t_next):
            break
        if next_open_t > t_next:
            due = []

        dt = max(t_next - t, 0.0)
        for facility in facilities:
            if facility.opened:
                continue
            facility.contribution_before = facility.contribution
            facility.rate = facility.active
            facility.contribution += facility.active * dt
        previous_t, t = t, t_next

        # every closed facility is checked: several may cross in the same step
        for j, facility in enumerate(facilities):
            if facility.opened:
                continue
            if j in due or facility.contribution >= f[j] - tol:
                n_connected += _open_facility(growth, j, float(f[j]), previous_t, t)

        if k < len(events) and events[k].time <= t:
            event = events[k]
            k += 1
            client = clients[event.client]
            if client.connected:
                continue
            facility = facilities[event.facility]
            if facility.opened:
                _connect(growth, event.client, event.facility, event.time)
                n_connected += 1
            else:
                facility.contributors.append(event.client)
                facility.active += 1
                client.tight_facilities.append(event.facility)

    growth.final_time = t

    if n_connected < n:
        leftovers = [i for i, c in enumerate(clients) if not c.connected]
        target = growth.opening_order[0] if growth.opening_order else None
        logger.warning(
            "Dual growth exhausted events with %d unconnected clients; forcing them onto facility %s",
            len(leftovers), target,
        )
        for i in leftovers:
            client = clients[i]
            client.connected = True
            client.alpha = t
            client.witness = target
        growth.forced_clients = leftovers

    return growth


def prune(growth: DualGrowth, n_clients: int) -> List[int]:
    """
    Phase 2: greedy independent set over the contributor conflict graph,
    walking facilities in opening order.
    """
    claimed = np.zeros(n_clients, dtype=bool)
    kept = []
    for j in growth.opening_order:
        contributors = np.asarray(growth.facilities[j].contributors, dtype=int)
        if claimed[contributors].any():
            continue
        kept.append(j)
        claimed[contributors] = True
    return kept


def solve_primal_dual(C, f, open_tol: Optional[float] = None) -> Tuple[Solution, float]:
    """
    Runs both phases and assigns every client to its nearest kept facility.

    Returns (solution, dual_value); dual_value = sum of alphas, a lower bound
    on the optimum for metric instances. Raises InvalidInstanceError for
    malformed instances.
    """
    instance = Instance.from_arrays(C, f)
    growth = grow_duals(instance, open_tol=open_tol)
    kept = prune(growth, instance.n_clients)

    if not kept:
        fallback = int(np.argmin(instance.opening_costs + instance.costs.sum(axis=0)))
        logger.warning("Pruning kept no facility; opening %d", fallback)
        kept = [fallback]

    assignment = assign_to_nearest(instance, kept)
    solution = build_solution(instance, kept, assignment)
    dual_value = growth.dual_value
    logger.info(
        "Primal-dual => %d tentatively opened, %d kept, cost=%.4f, dual=%.4f",
        len(growth.opening_order), solution.n_opened, solution.total_cost, dual_value,
    )
    return solution, dual_value
