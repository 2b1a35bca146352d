import unittest

import numpy as np

from data_structures import Instance, LPRelaxationResult, compute_total_cost
from exceptions import InvalidInstanceError, OracleError
from rounding_solver import solve_rounding
from tests.helpers import brute_force, nearest_costs


def lp(x, duals, status="optimal"):
    x = np.asarray(x, dtype=float)
    return LPRelaxationResult(status=status, x=x, y=x.max(axis=0), duals=np.asarray(duals, dtype=float))


class TestRoundingScenarios(unittest.TestCase):

    def test_single_client_single_facility(self):
        sol = solve_rounding([[2.0]], [3.0], lp([[1.0]], [5.0]))
        self.assertEqual(sol.opened, (0,))
        self.assertEqual(sol.assignment, (0,))
        self.assertAlmostEqual(sol.total_cost, 5.0)

    def test_two_separated_clients_open_both(self):
        sol = solve_rounding([[0, 10], [10, 0]], [1, 1], lp(np.eye(2), [1, 1]))
        self.assertEqual(sol.opened, (0, 1))
        self.assertAlmostEqual(sol.total_cost, 2.0)

    def test_expensive_facility_matches_brute_force(self):
        C = [[0, 100], [100, 0]]
        f = [1, 1000]
        # optimal LP: both clients on facility 0, duals v = (1, 100)
        sol = solve_rounding(C, f, lp([[1, 0], [1, 0]], [1, 100]))
        opt, best = brute_force(C, f)
        self.assertEqual(sol.opened, best)
        self.assertAlmostEqual(sol.total_cost, opt)
        self.assertAlmostEqual(sol.total_cost, 101.0)

    def test_cluster_opens_cheapest_linked_facility(self):
        C = [[1, 1, 9], [9, 1, 9], [9, 9, 1]]
        f = [3, 2, 1]
        x = [[0.5, 0.5, 0], [0, 1, 0], [0, 0, 1]]
        # client 2 goes first (smallest dual), then client 0 pulls client 1 into its cluster
        sol = solve_rounding(C, f, lp(x, [5, 5, 1]))
        self.assertEqual(sol.opened, (1, 2))
        self.assertEqual(sol.assignment, (1, 1, 2))
        self.assertAlmostEqual(sol.total_cost, 2 + 1 + 1 + 1 + 1)

    def test_equal_duals_pick_lowest_client_index(self):
        C = [[0, 5], [2, 2], [5, 0]]
        x = [[1, 0], [0.5, 0.5], [0, 1]]
        # pivot 0 clusters {0, 1} on facility 0, then client 2 opens facility 1;
        # pivot 1 would have put all three clients on a single facility
        sol = solve_rounding(C, [1, 1], lp(x, [4, 4, 4]))
        self.assertEqual(sol.opened, (0, 1))
        self.assertEqual(sol.assignment, (0, 0, 1))
        self.assertAlmostEqual(sol.total_cost, 4.0)

    def test_unlinked_pivot_falls_back_to_cheapest_service(self):
        C = [[1, 4], [4, 1]]
        f = [5, 1]
        # client 0 has no fractional link at all; C[0] + f = (6, 5) -> facility 1
        sol = solve_rounding(C, f, lp([[0, 0], [0, 1]], [0, 3]))
        self.assertEqual(sol.opened, (1,))
        self.assertEqual(sol.assignment, (1, 1))
        self.assertAlmostEqual(sol.total_cost, 1 + 4 + 1)

    def test_link_threshold_ignores_numerical_noise(self):
        C = [[0, 10], [10, 0]]
        x = [[1 - 1e-9, 1e-9], [1e-9, 1 - 1e-9]]
        sol = solve_rounding(C, [1, 1], lp(x, [1, 1]))
        self.assertEqual(sol.opened, (0, 1))
        sol = solve_rounding(C, [1, 1], lp(x, [1, 1]), link_eps=1e-12)
        self.assertEqual(sol.opened, (0,))

    def test_assignment_is_nearest_open_and_cost_recomputes(self):
        C = np.array([[1, 3, 7], [2, 2, 6], [8, 4, 1], [7, 5, 2]], dtype=float)
        f = [4, 4, 4]
        x = [[1, 0, 0], [0.5, 0.5, 0], [0, 0, 1], [0, 0.5, 0.5]]
        sol = solve_rounding(C, f, lp(x, [3, 4, 2, 5]))
        inst = Instance.from_arrays(C, f)
        chosen = C[np.arange(4), list(sol.assignment)]
        np.testing.assert_allclose(chosen, nearest_costs(C, sol.opened))
        self.assertAlmostEqual(sol.total_cost, compute_total_cost(inst, sol.opened, sol.assignment))

    def test_deterministic(self):
        C = [[1, 3, 7], [2, 2, 6], [8, 4, 1]]
        x = [[0.5, 0.5, 0], [0.5, 0.5, 0], [0, 0, 1]]
        first = solve_rounding(C, [2, 2, 2], lp(x, [3, 3, 3]))
        for _ in range(3):
            self.assertEqual(solve_rounding(C, [2, 2, 2], lp(x, [3, 3, 3])), first)


class TestRoundingErrors(unittest.TestCase):

    def test_non_optimal_relaxation_raises(self):
        for status in ("infeasible", "other"):
            with self.subTest(status=status):
                with self.assertRaises(OracleError):
                    solve_rounding([[1]], [1], lp([[1]], [2], status=status))

    def test_shape_mismatch_raises(self):
        with self.assertRaises(OracleError):
            solve_rounding([[1, 2]], [1, 1], lp([[1]], [2]))
        with self.assertRaises(OracleError):
            solve_rounding([[1, 2]], [1, 1], lp([[1, 0]], [2, 2]))

    def test_invalid_instance_raises(self):
        with self.assertRaises(InvalidInstanceError):
            solve_rounding([[1, 2]], [1, 1, 1], lp([[1, 0]], [2]))


if __name__ == "__main__":
    unittest.main()
