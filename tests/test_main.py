import logging
import os
import tempfile
import unittest

import pandas as pd

import main
from config import SETTINGS
from data_loader import instance_paths, save_instance
from exceptions import DataLoadError
from instance_generator import generate_instance


class TestPipeline(unittest.TestCase):

    def setUp(self):
        self._saved = SETTINGS.as_dict()
        self._tmp = tempfile.TemporaryDirectory()
        self._root = logging.getLogger()
        self._handlers = list(self._root.handlers)
        self._level = self._root.level
        self._initialized = getattr(self._root, "_uflp_local_logging_initialized", False)
        self._root._uflp_local_logging_initialized = False
        SETTINGS.update(LogDir=os.path.join(self._tmp.name, "logs"), Workers=1, TimeoutSeconds=120)

    def tearDown(self):
        for handler in self._root.handlers:
            if handler not in self._handlers:
                self._root.removeHandler(handler)
                handler.close()
        self._root.setLevel(self._level)
        self._root._uflp_local_logging_initialized = self._initialized
        SETTINGS.update(**self._saved)
        self._tmp.cleanup()

    def test_scenario_file_pipeline(self):
        scenario_file = os.path.join(self._tmp.name, "scenarios.csv")
        pd.DataFrame([
            {"SCENARIO_ID": "tiny", "N_CLIENTS": 5, "N_FACILITIES": 3, "N_INSTANCES": 2, "SEED": 1},
            {"SCENARIO_ID": "small", "N_CLIENTS": 7, "N_FACILITIES": 4, "N_INSTANCES": 1, "SEED": 9},
        ]).to_csv(scenario_file, index=False)

        results, summary = main.run_pipeline(scenario_file, output_root=self._tmp.name)

        self.assertEqual(len(results), 3 * 3)
        self.assertTrue((results["outcome"] == "ok").all())
        self.assertEqual(len(summary), 2 * 3)
        self.assertTrue(os.path.exists(os.path.join(self._tmp.name, "logs", "app.log")))
        folders = [d for d in os.listdir(self._tmp.name) if d.startswith("reports_")]
        self.assertEqual(len(folders), 1)
        written = pd.read_csv(os.path.join(self._tmp.name, folders[0], "results.csv"))
        self.assertEqual(len(written), 9)

    def test_saved_instance_pipeline(self):
        saved_dir = os.path.join(self._tmp.name, "saved")
        for name, seed in (("gap_a", 3), ("gap_b", 4)):
            inst, _, _ = generate_instance(5, 3, seed=seed)
            save_instance(inst, *instance_paths(saved_dir, name))

        results, summary = main.run_pipeline(instance_dir=saved_dir, output_root=self._tmp.name)

        self.assertEqual(set(results["instance_id"]), {"gap_a", "gap_b"})
        self.assertEqual(len(results), 2 * 3)
        self.assertTrue((results["outcome"] == "ok").all())
        self.assertTrue(results["gap_lp"].notna().all())
        self.assertEqual(len(summary), 3)

    def test_default_scenario_comes_from_settings(self):
        SETTINGS.update(NumClients=4, NumFacilities=2, NumInstances=3, Seed=5)
        df = main.load_scenarios()
        self.assertEqual(len(df), 1)
        self.assertEqual(df.loc[0, "N_INSTANCES"], 3)

    def test_scenario_file_missing_columns(self):
        scenario_file = os.path.join(self._tmp.name, "bad.csv")
        pd.DataFrame([{"SCENARIO_ID": "x", "N_CLIENTS": 3}]).to_csv(scenario_file, index=False)
        with self.assertRaises(DataLoadError):
            main.load_scenarios(scenario_file)


if __name__ == "__main__":
    unittest.main()
