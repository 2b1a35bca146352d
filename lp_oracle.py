"""
LP relaxation and exact MIP oracles for the UFLP (Gurobi).

    min  sum_j f_j y_j + sum_{i,j} c_ij x_ij
    s.t. sum_j x_ij = 1        for every client i   (demand)
         x_ij <= y_j           for every pair i, j  (link)
         x_ij, y_j >= 0        (binary for the exact model)
"""
import math

import numpy as np
import gurobipy as gp
from gurobipy import GRB

from config import SETTINGS
from data_structures import (
    Instance,
    LPRelaxationResult,
    STATUS_INFEASIBLE,
    STATUS_OPTIMAL,
    STATUS_OTHER,
)
from exceptions import InvalidInstanceError, OracleError
from uflp_utils.decorators import log_and_time
import uflp_utils.logging as logging
logger = logging.getLogger(__name__)


def _map_status(status) -> str:
    if status == GRB.OPTIMAL:
        return STATUS_OPTIMAL
    if status in (GRB.INFEASIBLE, GRB.INF_OR_UNBD):
        return STATUS_INFEASIBLE
    return STATUS_OTHER


def build_model(instance: Instance, integral: bool = False):
    """
    Builds (but does not solve) the UFLP model.
    Returns (model, x, y, demand) where x[(i, j)], y[j] are variables and
    demand[i] is the client's assignment constraint.
    """
    n, p = instance.n_clients, instance.n_facilities
    C, f = instance.costs, instance.opening_costs

    model = gp.Model("UFLP_MIP" if integral else "UFLP_LP")
    model.Params.OutputFlag = SETTINGS.SolverOutputFlag
    if SETTINGS.SolverTimeLimit > 0:
        model.Params.TimeLimit = SETTINGS.SolverTimeLimit

    vtype = GRB.BINARY if integral else GRB.CONTINUOUS
    # x <= 1 and y <= 1 are implied at an optimal vertex; leaving them out keeps
    # the demand duals equal to the LP value (no bound duals)
    upper = 1.0 if integral else GRB.INFINITY

    y = {j: model.addVar(lb=0.0, ub=upper, vtype=vtype, name=f"y_{j}") for j in range(p)}
    x = {}
    for i in range(n):
        for j in range(p):
            # forbidden pair: keep the variable but pin it to zero
            ub = upper if math.isfinite(C[i, j]) else 0.0
            x[(i, j)] = model.addVar(lb=0.0, ub=ub, vtype=vtype, name=f"x_{i}_{j}")

    obj = gp.quicksum(float(f[j]) * y[j] for j in range(p)) + gp.quicksum(
        float(C[i, j]) * x[(i, j)] for i in range(n) for j in range(p) if math.isfinite(C[i, j])
    )
    model.setObjective(obj, GRB.MINIMIZE)

    demand = {
        i: model.addConstr(gp.quicksum(x[(i, j)] for j in range(p)) == 1, name=f"demand_{i}")
        for i in range(n)
    }
    for i in range(n):
        for j in range(p):
            model.addConstr(x[(i, j)] <= y[j], name=f"link_{i}_{j}")

    model.update()
    return model, x, y, demand


@log_and_time("LP relaxation", error_cls=OracleError, passthrough=(InvalidInstanceError,))
def solve_relaxation(C, f) -> LPRelaxationResult:
    """
    Solves the LP relaxation and reads back x, y and the demand duals.
    A non-optimal solve is reported through `status`, not raised; the
    rounding heuristic decides what to do with it.
    """
    instance = Instance.from_arrays(C, f)
    n, p = instance.n_clients, instance.n_facilities
    model, x, y, demand = build_model(instance, integral=False)
    try:
        model.optimize()
        status = _map_status(model.Status)
        if status != STATUS_OPTIMAL:
            logger.warning("LP relaxation ended with status=%s", model.Status)
            return LPRelaxationResult(
                status=status,
                x=np.zeros((n, p)),
                y=np.zeros(p),
                duals=np.zeros(n),
            )

        x_val = np.array([[x[(i, j)].X for j in range(p)] for i in range(n)])
        y_val = np.array([y[j].X for j in range(p)])
        duals = np.array([demand[i].Pi for i in range(n)])
        logger.info("LP relaxation => OPTIMAL, ObjVal=%s", model.ObjVal)
        return LPRelaxationResult(
            status=status,
            x=x_val,
            y=y_val,
            duals=duals,
            objective=float(model.ObjVal),
        )
    finally:
        model.dispose()


@log_and_time("Exact MIP", error_cls=OracleError, passthrough=(InvalidInstanceError,))
def solve_exact(C, f):
    """
    Solves the integer program. Returns (cost, status); cost is None unless
    the solver proved optimality.
    """
    instance = Instance.from_arrays(C, f)
    model, _, _, _ = build_model(instance, integral=True)
    try:
        model.optimize()
        status = _map_status(model.Status)
        if status != STATUS_OPTIMAL:
            logger.warning("Exact MIP ended with status=%s", model.Status)
            return None, status
        logger.info("Exact MIP => OPTIMAL, ObjVal=%s", model.ObjVal)
        return float(model.ObjVal), status
    finally:
        model.dispose()
