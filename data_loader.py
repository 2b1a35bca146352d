"""Whitespace-delimited instance tables: one file for C (n rows x p columns), one for f."""
from pathlib import Path
from typing import List, Tuple

import numpy as np
import pandas as pd

from data_structures import Instance
from exceptions import DataLoadError, InvalidInstanceError
import uflp_utils.logging as logging
logger = logging.getLogger(__name__)


def _read_table(path) -> np.ndarray:
    try:
        df = pd.read_csv(path, sep=r"\s+", header=None, dtype=float)
    except (OSError, ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataLoadError(f"Could not read numeric table {path}: {e}") from e
    return df.to_numpy()


def load_instance(costs_path, opening_path) -> Instance:
    costs = _read_table(costs_path)
    # a single column or a single row both describe the facility-cost vector
    opening = _read_table(opening_path).ravel()
    try:
        instance = Instance.from_arrays(costs, opening)
    except InvalidInstanceError as e:
        raise DataLoadError(f"Invalid instance in {costs_path} / {opening_path}: {e}") from e
    logger.info(
        "Loaded instance with %d clients and %d facilities from %s",
        instance.n_clients, instance.n_facilities, costs_path,
    )
    return instance


def save_instance(instance: Instance, costs_path, opening_path) -> None:
    for path in (costs_path, opening_path):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    try:
        pd.DataFrame(instance.costs).to_csv(costs_path, sep="\t", header=False, index=False)
        pd.DataFrame(instance.opening_costs).to_csv(opening_path, sep="\t", header=False, index=False)
    except OSError as e:
        raise DataLoadError(f"Could not write instance tables: {e}") from e
    logger.info("Saved instance to %s and %s", costs_path, opening_path)


COSTS_PREFIX = "C_"
OPENING_PREFIX = "f_"


def instance_paths(directory, name):
    """(costs_path, opening_path) of the saved instance `name` inside `directory`."""
    root = Path(directory)
    return root / f"{COSTS_PREFIX}{name}.txt", root / f"{OPENING_PREFIX}{name}.txt"


def load_instance_dir(directory) -> List[Tuple[str, Instance]]:
    """
    Loads every C_<name>.txt / f_<name>.txt pair in `directory`, sorted by name.
    A costs table without its opening-cost partner is skipped with a warning.
    """
    root = Path(directory)
    if not root.is_dir():
        raise DataLoadError(f"Instance directory {directory} does not exist")

    instances = []
    for costs_path in sorted(root.glob(f"{COSTS_PREFIX}*.txt")):
        name = costs_path.stem[len(COSTS_PREFIX):]
        _, opening_path = instance_paths(root, name)
        if not opening_path.is_file():
            logger.warning("No %s for %s; skipped", opening_path.name, costs_path.name)
            continue
        instances.append((name, load_instance(costs_path, opening_path)))
    logger.info("Loaded %d saved instances from %s", len(instances), directory)
    return instances
