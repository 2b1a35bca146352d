"""Instance, oracle output, simulation state and solution records."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from exceptions import InvalidInstanceError

STATUS_OPTIMAL = "optimal"
STATUS_INFEASIBLE = "infeasible"
STATUS_OTHER = "other"


@dataclass(frozen=True)
class Instance:
    """
    UFLP data, read-only for the duration of a run:
    - costs[i, j]: cost of serving client i from facility j (n x p, >= 0, inf = forbidden)
    - opening_costs[j]: cost of opening facility j (length p, finite, >= 0)

    The 3-approximation of the primal-dual algorithm assumes costs obey the
    triangle inequality; this is not enforced (see is_metric).
    """
    costs: np.ndarray
    opening_costs: np.ndarray

    @classmethod
    def from_arrays(cls, C, f) -> "Instance":
        if isinstance(C, Instance):
            return C
        try:
            costs = np.array(C, dtype=float)
            opening = np.array(f, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInstanceError(f"Costs are not numeric: {e}") from e

        if costs.ndim != 2:
            raise InvalidInstanceError(f"Cost matrix must be 2-D, got shape {costs.shape}")
        if opening.ndim != 1:
            raise InvalidInstanceError(f"Facility costs must be 1-D, got shape {opening.shape}")
        n, p = costs.shape
        if p == 0 or opening.size == 0:
            raise InvalidInstanceError("Instance has no facilities")
        if n == 0:
            raise InvalidInstanceError("Instance has no clients")
        if opening.size != p:
            raise InvalidInstanceError(
                f"Cost matrix has {p} facility columns but {opening.size} facility costs were given"
            )
        if np.isnan(costs).any() or np.isnan(opening).any():
            raise InvalidInstanceError("Costs contain NaN entries")
        if (costs < 0).any() or (opening < 0).any():
            raise InvalidInstanceError("Costs must be non-negative")
        if not np.isfinite(opening).all():
            raise InvalidInstanceError("Facility opening costs must be finite")
        unreachable = np.flatnonzero(~np.isfinite(costs).any(axis=1))
        if unreachable.size:
            raise InvalidInstanceError(
                f"Clients {unreachable.tolist()} have no finite-cost facility"
            )

        costs.setflags(write=False)
        opening.setflags(write=False)
        return cls(costs=costs, opening_costs=opening)

    @property
    def n_clients(self) -> int:
        return self.costs.shape[0]

    @property
    def n_facilities(self) -> int:
        return self.costs.shape[1]

    def is_metric(self, tol: float = 1e-9) -> bool:
        """
        Bipartite triangle inequality: C[i,j] <= C[i,k] + C[l,k] + C[l,j]
        for all clients i, l and facilities j, k.
        """
        C = self.costs
        for j in range(self.n_facilities):
            # best[l, k] = C[l, k] + C[l, j]; bound[i] = min_{l,k} C[i,k] + best[l,k]
            through_l = (C + C[:, [j]]).min(axis=0)
            bound = (C + through_l[None, :]).min(axis=1)
            if (C[:, j] > bound + tol).any():
                return False
        return True


@dataclass
class LPRelaxationResult:
    """
    Output of the LP oracle:
    - x[i, j], y[j] in [0, 1]
    - duals[i] >= 0 for each client's demand constraint
    """
    status: str
    x: np.ndarray
    y: np.ndarray
    duals: np.ndarray
    objective: Optional[float] = None

    @property
    def is_optimal(self) -> bool:
        return self.status == STATUS_OPTIMAL


@dataclass
class ClientState:
    connected: bool = False
    alpha: float = 0.0
    witness: Optional[int] = None
    tight_facilities: List[int] = field(default_factory=list)


@dataclass
class FacilityState:
    contribution: float = 0.0
    opened: bool = False
    contributors: List[int] = field(default_factory=list)
    opening_position: Optional[int] = None
    active: int = 0          # contributors not yet connected
    rate: int = 0            # active count over the last time step
    contribution_before: float = 0.0


@dataclass(frozen=True, order=True)
class ContributeEvent:
    """Client `client` becomes tight with `facility` at `time` = C[client, facility]."""
    time: float
    client: int
    facility: int


@dataclass(frozen=True)
class Solution:
    opened: Tuple[int, ...]
    assignment: Tuple[int, ...]
    total_cost: float

    @property
    def n_opened(self) -> int:
        return len(self.opened)


def compute_total_cost(instance: Instance, opened: Sequence[int], assignment: Sequence[int]) -> float:
    """Sum of opening costs over `opened` plus each client's connection cost."""
    facility_cost = float(sum(instance.opening_costs[j] for j in opened))
    connection_cost = float(sum(instance.costs[i, j] for i, j in enumerate(assignment)))
    return facility_cost + connection_cost


def assign_to_nearest(instance: Instance, opened: Sequence[int]) -> Tuple[int, ...]:
    """Nearest opened facility per client by raw cost; ties go to the lowest index."""
    candidates = np.array(sorted(opened), dtype=int)
    if candidates.size == 0:
        raise InvalidInstanceError("Cannot assign clients: no facility is opened")
    # argmin returns the first minimum, i.e. the lowest facility index
    best = np.argmin(instance.costs[:, candidates], axis=1)
    return tuple(int(candidates[k]) for k in best)


def build_solution(instance: Instance, opened: Sequence[int], assignment: Sequence[int]) -> Solution:
    opened_sorted = tuple(sorted(int(j) for j in set(opened)))
    assignment = tuple(int(j) for j in assignment)
    return Solution(
        opened=opened_sorted,
        assignment=assignment,
        total_cost=compute_total_cost(instance, opened_sorted, assignment),
    )
