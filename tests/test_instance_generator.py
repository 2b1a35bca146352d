import unittest

import numpy as np

from exceptions import InvalidInstanceError
from instance_generator import generate_instance


class TestGenerateInstance(unittest.TestCase):

    def test_shapes_and_ranges(self):
        inst, clients, sites = generate_instance(12, 5, seed=7, grid=50.0, opening_scale=20.0)
        self.assertEqual(inst.costs.shape, (12, 5))
        self.assertEqual(clients.shape, (12, 2))
        self.assertEqual(sites.shape, (5, 2))
        self.assertTrue(((clients >= 0) & (clients <= 50.0)).all())
        self.assertTrue(((inst.opening_costs >= 0) & (inst.opening_costs < 20.0)).all())

    def test_same_seed_same_instance(self):
        a, _, _ = generate_instance(6, 4, seed=11)
        b, _, _ = generate_instance(6, 4, seed=11)
        np.testing.assert_array_equal(a.costs, b.costs)
        np.testing.assert_array_equal(a.opening_costs, b.opening_costs)

    def test_coinciding_sites(self):
        inst, clients, sites = generate_instance(5, seed=2)
        self.assertEqual(inst.costs.shape, (5, 5))
        np.testing.assert_array_equal(clients, sites)
        np.testing.assert_array_equal(np.diag(inst.costs), np.zeros(5))

    def test_rounding_switch(self):
        rounded, _, _ = generate_instance(6, 3, seed=4, round_costs=True)
        exact, _, _ = generate_instance(6, 3, seed=4, round_costs=False)
        np.testing.assert_array_equal(rounded.costs, np.round(rounded.costs))
        np.testing.assert_array_equal(rounded.costs, np.round(exact.costs))
        self.assertTrue(exact.is_metric())

    def test_empty_sizes_rejected(self):
        with self.assertRaises(InvalidInstanceError):
            generate_instance(0, 3)
        with self.assertRaises(InvalidInstanceError):
            generate_instance(3, 0)


if __name__ == "__main__":
    unittest.main()
