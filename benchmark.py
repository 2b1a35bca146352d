"""
Benchmark harness: runs the approximation algorithms (and optionally the
exact MIP) over many instances and collects one result row per
(instance, algorithm).

Every job runs in its own worker process, at most `workers` at a time.
A job's clock starts when its worker reports that it has begun; a job
still running when its time is up is killed and recorded with outcome
"timeout", a job that raises with outcome "error". A worker that never
reports within the budget after launch is also a timeout.
"""
import math
import multiprocessing
import time
from collections import deque
from dataclasses import dataclass
from multiprocessing.connection import wait
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from config import SETTINGS
from data_loader import instance_paths, save_instance
from data_structures import Instance
from exceptions import BenchmarkError, UflpError
from instance_generator import generate_instance
from lp_oracle import solve_exact, solve_relaxation
from primal_dual_solver import solve_primal_dual
from rounding_solver import solve_rounding
from uflp_utils.context import run_context
import uflp_utils.logging as logging
logger = logging.getLogger(__name__)

OUTCOME_OK = "ok"
OUTCOME_TIMEOUT = "timeout"
OUTCOME_ERROR = "error"
JOB_STARTED = "started"

RESULT_COLUMNS = [
    "instance_id", "n_clients", "n_facilities", "algorithm", "outcome",
    "total_cost", "dual_value", "opt_value", "lp_value", "gap_lp", "ratio", "dual_ratio",
    "n_opened", "runtime", "message",
]


def run_rounding(instance: Instance) -> Dict:
    lp_result = solve_relaxation(instance.costs, instance.opening_costs)
    solution = solve_rounding(instance.costs, instance.opening_costs, lp_result)
    return {"total_cost": solution.total_cost, "n_opened": solution.n_opened,
            "dual_value": lp_result.objective, "lp_value": lp_result.objective}


def run_primal_dual(instance: Instance) -> Dict:
    solution, dual_value = solve_primal_dual(instance.costs, instance.opening_costs)
    return {"total_cost": solution.total_cost, "n_opened": solution.n_opened,
            "dual_value": dual_value}


def run_exact(instance: Instance) -> Dict:
    cost, status = solve_exact(instance.costs, instance.opening_costs)
    if cost is None:
        raise BenchmarkError(f"Exact solver ended with status={status}")
    lp_result = solve_relaxation(instance.costs, instance.opening_costs)
    return {"total_cost": cost, "n_opened": None, "dual_value": None,
            "lp_value": lp_result.objective}


ALGORITHMS: Dict[str, Callable[[Instance], Dict]] = {
    "rounding": run_rounding,
    "primal_dual": run_primal_dual,
}
EXACT = "exact"


@dataclass
class _Job:
    index: int
    instance_id: str
    instance: Instance
    algorithm: str
    runner: Callable[[Instance], Dict]
    process: Any = None
    conn: Any = None
    deadline: float = math.inf


def _job_main(conn, instance_id: str, algorithm: str, runner: Callable[[Instance], Dict],
              instance: Instance, settings: Dict) -> None:
    """
    Worker process body. Sends (JOB_STARTED, None) once set up, then
    (OUTCOME_OK, result) or (OUTCOME_ERROR, message).
    `settings` carries the parent's SETTINGS.
    """
    try:
        SETTINGS.update(**settings)
        logging.setup_worker(SETTINGS.LogLevel)
        conn.send((JOB_STARTED, None))
        with run_context(instance_id, algorithm):
            try:
                t0 = time.perf_counter()
                result = runner(instance)
                result["runtime"] = time.perf_counter() - t0
                conn.send((OUTCOME_OK, result))
            except UflpError as e:
                conn.send((OUTCOME_ERROR, str(e)))
            except Exception as e:
                logger.exception("%s crashed", algorithm)
                conn.send((OUTCOME_ERROR, f"{type(e).__name__}: {e}"))
    finally:
        conn.close()


def _launch(ctx, job: _Job, settings: Dict, budget: Optional[float]) -> None:
    recv_end, send_end = ctx.Pipe(duplex=False)
    job.process = ctx.Process(
        target=_job_main,
        args=(send_end, job.instance_id, job.algorithm, job.runner, job.instance, settings),
        name=f"{job.algorithm}:{job.instance_id}",
        daemon=True,
    )
    job.process.start()
    # the parent keeps only the reading end, so a dead worker shows up as EOF
    send_end.close()
    job.conn = recv_end
    job.deadline = time.monotonic() + budget if budget else math.inf


def _stop(job: _Job) -> None:
    if job.process.is_alive():
        job.process.terminate()
    job.process.join()
    job.conn.close()


def _advance(job: _Job, row: Dict, budget: Optional[float]) -> bool:
    """Consumes the worker's messages into `row`. Returns True once the job is settled."""
    while job.conn.poll():
        try:
            kind, payload = job.conn.recv()
        except EOFError:
            job.process.join(1.0)
            row["outcome"] = OUTCOME_ERROR
            row["message"] = f"worker exited with code {job.process.exitcode} before reporting"
            logger.error("%s: %s", job.algorithm, row["message"])
            return True
        if kind == JOB_STARTED:
            job.deadline = time.monotonic() + budget if budget else math.inf
            continue
        if kind == OUTCOME_OK:
            row.update(payload)
            row["outcome"] = OUTCOME_OK
        else:
            row["outcome"] = OUTCOME_ERROR
            row["message"] = payload
            logger.error("%s failed: %s", job.algorithm, payload)
        return True

    if time.monotonic() >= job.deadline:
        row["outcome"] = OUTCOME_TIMEOUT
        row["message"] = f"no result after {budget}s"
        logger.warning("%s timed out after %ss; worker killed", job.algorithm, budget)
        return True
    return False


def _empty_row(instance_id: str, instance: Instance, algorithm: str) -> Dict:
    row = dict.fromkeys(RESULT_COLUMNS)
    row.update(
        instance_id=instance_id,
        n_clients=instance.n_clients,
        n_facilities=instance.n_facilities,
        algorithm=algorithm,
    )
    return row


def _add_ratios(df: pd.DataFrame) -> pd.DataFrame:
    for col in ("total_cost", "dual_value", "opt_value", "lp_value", "gap_lp",
                "ratio", "dual_ratio", "n_opened", "runtime"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    ok = df["outcome"] == OUTCOME_OK

    exact = df[(df["algorithm"] == EXACT) & ok]
    df["opt_value"] = df["instance_id"].map(exact.set_index("instance_id")["total_cost"])
    # every LP solve of an instance gives the same value; any of them will do
    lp = df[ok].dropna(subset=["lp_value"]).groupby("instance_id")["lp_value"].first()
    df["lp_value"] = df["instance_id"].map(lp)

    has_opt = df["opt_value"] > 0
    df.loc[has_opt, "gap_lp"] = (
        (df.loc[has_opt, "opt_value"] - df.loc[has_opt, "lp_value"]) / df.loc[has_opt, "opt_value"] * 100
    )
    df.loc[ok, "ratio"] = df.loc[ok, "total_cost"] / df.loc[ok, "opt_value"]
    has_dual = ok & (df["dual_value"] > 0)
    df.loc[has_dual, "dual_ratio"] = df.loc[has_dual, "total_cost"] / df.loc[has_dual, "dual_value"]
    return df


def run_benchmark(
    instances: Iterable[Tuple[str, Instance]],
    algorithms: Optional[Dict[str, Callable[[Instance], Dict]]] = None,
    exact: Optional[bool] = None,
    workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> pd.DataFrame:
    """
    Runs every algorithm on every (instance_id, instance) pair.
    Returns a DataFrame with RESULT_COLUMNS; `ratio` is relative to the exact
    optimum when it was computed, `dual_ratio` relative to the algorithm's
    own lower bound (LP objective for rounding, sum of alphas for primal-dual),
    `gap_lp` the LP integrality gap in percent of the optimum.
    Runners must be picklable (module-level functions).
    """
    algorithms = dict(ALGORITHMS if algorithms is None else algorithms)
    exact = SETTINGS.RunExact if exact is None else exact
    workers = SETTINGS.Workers if workers is None else workers
    timeout = SETTINGS.TimeoutSeconds if timeout is None else timeout
    if exact:
        algorithms[EXACT] = run_exact
    if workers < 1:
        raise BenchmarkError(f"workers must be >= 1, got {workers}")
    budget = timeout if timeout and timeout > 0 else None

    settings = SETTINGS.as_dict()
    jobs = deque()
    rows: List[Dict] = []
    for instance_id, instance in instances:
        for name, runner in algorithms.items():
            jobs.append(_Job(len(rows), instance_id, instance, name, runner))
            rows.append(_empty_row(instance_id, instance, name))

    ctx = multiprocessing.get_context()
    running: List[_Job] = []
    try:
        while jobs or running:
            while jobs and len(running) < workers:
                job = jobs.popleft()
                _launch(ctx, job, settings, budget)
                running.append(job)

            next_deadline = min(job.deadline for job in running) - time.monotonic()
            wait([job.conn for job in running],
                 timeout=max(next_deadline, 0.0) if math.isfinite(next_deadline) else None)

            still_running = []
            for job in running:
                with run_context(job.instance_id, job.algorithm):
                    settled = _advance(job, rows[job.index], budget)
                if settled:
                    _stop(job)
                else:
                    still_running.append(job)
            running = still_running
    finally:
        for job in running:
            _stop(job)

    df = pd.DataFrame(rows, columns=RESULT_COLUMNS)
    if not df.empty:
        df = _add_ratios(df)
    logger.info("Benchmark finished: %d rows, %d timeouts, %d errors",
                len(df), int((df["outcome"] == OUTCOME_TIMEOUT).sum()),
                int((df["outcome"] == OUTCOME_ERROR).sum()))
    return df


def generate_scenario(scenario_id=None) -> List[Tuple[str, Instance]]:
    """Instances of the current SETTINGS scenario, seeds Seed, Seed+1, ..."""
    prefix = f"{scenario_id}_" if scenario_id is not None else ""
    instances = []
    for k in range(SETTINGS.NumInstances):
        seed = SETTINGS.Seed + k
        instance, _, _ = generate_instance(SETTINGS.NumClients, SETTINGS.NumFacilities, seed=seed)
        instances.append((f"{prefix}n{SETTINGS.NumClients}_p{SETTINGS.NumFacilities}_s{seed}", instance))
    return instances


def find_gap_instance(n: int, p: int, seed: int = 100, max_tries: int = 500, min_gap: float = 0.01,
                      save_dir=None):
    """
    Searches seeds seed, seed+1, ... for an instance whose MIP optimum exceeds
    its LP relaxation by more than `min_gap`, i.e. where rounding has work to do.
    With `save_dir` the instance is written there as C_gap_n<n>_p<p>_s<seed>.txt
    and f_gap_n<n>_p<p>_s<seed>.txt, ready for data_loader.load_instance_dir.
    Returns (seed, instance, lp_value, mip_value) or None.
    """
    for current_seed in range(seed, seed + max_tries):
        instance, _, _ = generate_instance(n, p, seed=current_seed)
        lp_result = solve_relaxation(instance.costs, instance.opening_costs)
        mip_value, _ = solve_exact(instance.costs, instance.opening_costs)
        if lp_result.objective is None or mip_value is None:
            continue
        if mip_value - lp_result.objective > min_gap:
            logger.info(
                "Gap instance at seed %d: MIP=%.4f LP=%.4f gap=%.4f%%",
                current_seed, mip_value, lp_result.objective,
                (mip_value - lp_result.objective) / mip_value * 100,
            )
            if save_dir is not None:
                costs_path, opening_path = instance_paths(save_dir, f"gap_n{n}_p{p}_s{current_seed}")
                save_instance(instance, costs_path, opening_path)
            return current_seed, instance, lp_result.objective, mip_value
    logger.warning("No instance with an integrality gap in seeds %d..%d", seed, seed + max_tries - 1)
    return None
