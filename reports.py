"""Benchmark result rows, per-size summaries and their CSV files."""

import csv
import math
from datetime import datetime

import pandas as pd

from exceptions import ReportWriteError
import uflp_utils.logging as logging
logger = logging.getLogger(__name__)

RESULT_HEADER = [
    "TIME_STAMP", "INSTANCE_ID", "N_CLIENTS", "N_FACILITIES", "ALGORITHM", "OUTCOME",
    "TOTAL_COST", "DUAL_VALUE", "OPT_VALUE", "LP_VALUE", "GAP_LP", "RATIO", "DUAL_RATIO",
    "NUM_OPENED", "RUN_TIME", "MESSAGE",
]

SUMMARY_HEADER = [
    "N_CLIENTS", "N_FACILITIES", "ALGORITHM", "RUNS", "TIMEOUTS", "ERRORS",
    "MEAN_RATIO", "STD_RATIO", "MAX_RATIO", "MEAN_DUAL_RATIO", "MAX_DUAL_RATIO",
    "MEAN_GAP_LP", "MEAN_OPENED", "MEAN_RUN_TIME",
]


def _fmt(value, digits=6):
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        return round(value, digits)
    return value


def gather_result_rows(results: pd.DataFrame):
    """One CSV row per (instance, algorithm) result of run_benchmark."""
    rows = []
    timestamp = datetime.now().strftime("%a %b %d %H:%M:%S.%f %Y")
    for rec in results.itertuples(index=False):
        rows.append([
            timestamp,
            rec.instance_id,
            rec.n_clients,
            rec.n_facilities,
            rec.algorithm,
            rec.outcome,
            _fmt(rec.total_cost),
            _fmt(rec.dual_value),
            _fmt(rec.opt_value),
            _fmt(rec.lp_value),
            _fmt(rec.gap_lp, 4),
            _fmt(rec.ratio),
            _fmt(rec.dual_ratio),
            "" if rec.n_opened is None or pd.isna(rec.n_opened) else int(rec.n_opened),
            _fmt(rec.runtime, 4),
            rec.message or "",
        ])
    return rows


def summarize(results: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregates results per instance size and algorithm: run, timeout and
    error counts, approximation ratios (mean, std, max), mean LP gap,
    mean number of opened facilities and mean runtime.
    """
    if results.empty:
        return pd.DataFrame(columns=SUMMARY_HEADER)

    df = results.copy()
    df["is_timeout"] = df["outcome"] == "timeout"
    df["is_error"] = df["outcome"] == "error"
    grouped = df.groupby(["n_clients", "n_facilities", "algorithm"], sort=True)
    summary = grouped.agg(
        RUNS=("outcome", "size"),
        TIMEOUTS=("is_timeout", "sum"),
        ERRORS=("is_error", "sum"),
        MEAN_RATIO=("ratio", "mean"),
        STD_RATIO=("ratio", "std"),
        MAX_RATIO=("ratio", "max"),
        MEAN_DUAL_RATIO=("dual_ratio", "mean"),
        MAX_DUAL_RATIO=("dual_ratio", "max"),
        MEAN_GAP_LP=("gap_lp", "mean"),
        MEAN_OPENED=("n_opened", "mean"),
        MEAN_RUN_TIME=("runtime", "mean"),
    ).reset_index()
    summary = summary.rename(columns={
        "n_clients": "N_CLIENTS", "n_facilities": "N_FACILITIES", "algorithm": "ALGORITHM",
    })
    return summary[SUMMARY_HEADER]


def _write_rows(final_filename, header, rows):
    try:
        with open(final_filename, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
    except OSError as e:
        raise ReportWriteError(f"Could not write {final_filename}: {e}") from e


def write_results_csv(final_filename, all_result_rows):
    """
    Takes result rows (from all scenarios),
    writes them to final_filename with a single header row.
    """
    _write_rows(final_filename, RESULT_HEADER, all_result_rows)
    logger.info(f"[OK] Wrote Results CSV: {final_filename} with {len(all_result_rows)} rows.")


def write_summary_csv(final_filename, summary: pd.DataFrame):
    rows = [[_fmt(v) for v in rec] for rec in summary[SUMMARY_HEADER].itertuples(index=False)]
    _write_rows(final_filename, SUMMARY_HEADER, rows)
    logger.info(f"[OK] Wrote Summary CSV: {final_filename} with {len(rows)} rows.")
