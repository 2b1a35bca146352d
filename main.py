import os
import sys
from datetime import datetime

import pandas as pd

import config as cfg
import benchmark
import reports
import uflp_utils.logging as logging
from data_loader import load_instance_dir
from exceptions import DataLoadError
from uflp_utils.context import run_context

SCENARIO_COLUMNS = ["SCENARIO_ID", "N_CLIENTS", "N_FACILITIES", "N_INSTANCES", "SEED"]


def load_scenarios(scenario_file=None) -> pd.DataFrame:
    """
    Scenario table with one benchmark size per row. Without a file the
    current SETTINGS describe a single scenario.
    """
    if scenario_file is None:
        s = cfg.SETTINGS
        return pd.DataFrame([{
            "SCENARIO_ID": "default",
            "N_CLIENTS": s.NumClients,
            "N_FACILITIES": s.NumFacilities,
            "N_INSTANCES": s.NumInstances,
            "SEED": s.Seed,
        }])
    try:
        df = pd.read_csv(scenario_file)
    except (OSError, ValueError) as e:
        raise DataLoadError(f"Error reading scenario file {scenario_file}: {e}") from e
    missing = [c for c in SCENARIO_COLUMNS if c not in df.columns]
    if missing:
        raise DataLoadError(f"Scenario file {scenario_file} is missing columns {missing}")
    return df


def _scenario_results(scenario_file, logger):
    df_scen = load_scenarios(scenario_file)
    logger.info("Loaded %d scenarios", len(df_scen))

    all_results = []
    for scen_row in df_scen.itertuples(index=False):
        scenario_id = getattr(scen_row, "SCENARIO_ID")
        with run_context(instance_id=scenario_id):
            cfg.update_from_row(scen_row._asdict())
            logger.info("Scenario %s config applied: n=%d p=%d instances=%d",
                        scenario_id, cfg.SETTINGS.NumClients, cfg.SETTINGS.NumFacilities,
                        cfg.SETTINGS.NumInstances)
            instances = benchmark.generate_scenario(scenario_id)
            all_results.append(benchmark.run_benchmark(instances))
    return all_results


def run_pipeline(scenario_file=None, output_root=".", instance_dir=None):
    """
    Benchmarks the scenarios of `scenario_file` (or the SETTINGS scenario),
    or, with `instance_dir`, the saved C_<name>.txt / f_<name>.txt instances
    found there. Writes results.csv and summary.csv into a timestamped folder.
    """
    logging.setup(log_dir=cfg.SETTINGS.LogDir, level=cfg.SETTINGS.LogLevel)
    logger = logging.getLogger(__name__)

    if instance_dir is not None:
        all_results = [benchmark.run_benchmark(load_instance_dir(instance_dir))]
    else:
        all_results = _scenario_results(scenario_file, logger)

    results = pd.concat(all_results, ignore_index=True) if all_results else pd.DataFrame(columns=benchmark.RESULT_COLUMNS)
    summary = reports.summarize(results)

    output_folder = os.path.join(output_root, f"reports_{datetime.now().strftime('%Y%m%d_%H%M%S')}")
    os.makedirs(output_folder, exist_ok=True)
    reports.write_results_csv(os.path.join(output_folder, "results.csv"), reports.gather_result_rows(results))
    reports.write_summary_csv(os.path.join(output_folder, "summary.csv"), summary)
    logger.info("Reports written to %s", output_folder)
    return results, summary


def main():
    # a directory argument holds saved instances, a file argument is a scenario table
    arg = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        if arg is not None and os.path.isdir(arg):
            run_pipeline(instance_dir=arg)
        else:
            run_pipeline(scenario_file=arg)
    except Exception:
        logging.getLogger(__name__).exception("Pipeline failed")
        raise

if __name__ == '__main__':
    main()
