import os
import tempfile
import unittest

import numpy as np

from data_loader import instance_paths, load_instance, load_instance_dir, save_instance
from exceptions import DataLoadError
from instance_generator import generate_instance


class TestInstanceFiles(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _path(self, name):
        return os.path.join(self.dir, name)

    def test_save_then_load(self):
        inst, _, _ = generate_instance(7, 4, seed=5, round_costs=False)
        save_instance(inst, self._path("C.txt"), self._path("f.txt"))
        loaded = load_instance(self._path("C.txt"), self._path("f.txt"))
        np.testing.assert_allclose(loaded.costs, inst.costs, rtol=1e-12)
        np.testing.assert_allclose(loaded.opening_costs, inst.opening_costs, rtol=1e-12)

    def test_reads_whitespace_tables(self):
        with open(self._path("C.txt"), "w") as fh:
            fh.write("0.0  10.0\n10.0\t0.0\n")
        with open(self._path("f.txt"), "w") as fh:
            fh.write("1.0 1.0\n")
        inst = load_instance(self._path("C.txt"), self._path("f.txt"))
        np.testing.assert_array_equal(inst.costs, [[0, 10], [10, 0]])
        np.testing.assert_array_equal(inst.opening_costs, [1, 1])

    def test_missing_file(self):
        with self.assertRaises(DataLoadError):
            load_instance(self._path("nope.txt"), self._path("f.txt"))

    def test_invalid_content(self):
        with open(self._path("C.txt"), "w") as fh:
            fh.write("1 -2\n")
        with open(self._path("f.txt"), "w") as fh:
            fh.write("1\n1\n")
        with self.assertRaises(DataLoadError):
            load_instance(self._path("C.txt"), self._path("f.txt"))

    def test_load_instance_dir_pairs_tables_by_name(self):
        for name, seed in (("second", 2), ("first", 1)):
            inst, _, _ = generate_instance(4, 3, seed=seed)
            save_instance(inst, *instance_paths(self.dir, name))
        # a costs table without its opening-cost partner is skipped
        with open(self._path("C_orphan.txt"), "w") as fh:
            fh.write("1 2\n")

        loaded = load_instance_dir(self.dir)
        self.assertEqual([name for name, _ in loaded], ["first", "second"])
        expected, _, _ = generate_instance(4, 3, seed=1)
        np.testing.assert_allclose(loaded[0][1].costs, expected.costs)

    def test_load_instance_dir_missing_directory(self):
        with self.assertRaises(DataLoadError):
            load_instance_dir(self._path("absent"))


if __name__ == "__main__":
    unittest.main()
