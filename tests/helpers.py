from itertools import combinations

import numpy as np


def brute_force(C, f):
    """Exact optimum by enumerating every non-empty facility subset. Returns (cost, opened)."""
    C = np.asarray(C, dtype=float)
    f = np.asarray(f, dtype=float)
    p = C.shape[1]
    best_cost, best_set = np.inf, None
    for size in range(1, p + 1):
        for subset in combinations(range(p), size):
            cols = list(subset)
            cost = f[cols].sum() + C[:, cols].min(axis=1).sum()
            if cost < best_cost:
                best_cost, best_set = cost, subset
    return float(best_cost), best_set


def nearest_costs(C, opened):
    C = np.asarray(C, dtype=float)
    return C[:, sorted(opened)].min(axis=1)


METRIC_SEEDS = range(12)
