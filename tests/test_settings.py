import os
import sys
import unittest

import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository
from settings_schema import EngineSettings, validate_settings


class SettingsSchemaTestCase(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = EngineSettings()
        self.assertEqual(settings.time_budget, 120.0)
        self.assertEqual(settings.max_exercises, 12)
        self.assertFalse(settings.balance_enabled)
        self.assertEqual(settings.plate_increment, 2.5)
        self.assertEqual(settings.gamma, 0.95)

    def test_validation_errors(self) -> None:
        with self.assertRaises(ValueError):
            validate_settings({"gamma": 1.5})
        with self.assertRaises(ValueError):
            validate_settings({"plate_increment": 0})
        with self.assertRaises(ValueError):
            validate_settings({"balance_max_share": 0})
        self.assertIsNone(validate_settings({"max_exercises": None}).max_exercises)


class SettingsRepositoryTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_settings.db"
        self.yaml_path = "test_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_defaults_written_to_yaml(self) -> None:
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        self.assertEqual(data["max_exercises"], 12)
        self.assertEqual(data["time_budget"], 120.0)
        self.assertIs(data["balance_enabled"], False)
        self.assertEqual(self.settings.engine_settings(), EngineSettings())

    def test_update_round_trips_through_yaml(self) -> None:
        updated = self.settings.update({"time_budget": 45, "balance_enabled": True, "max_exercises": None})
        self.assertEqual(updated.time_budget, 45.0)
        data = YamlConfig(self.yaml_path).load()
        self.assertEqual(data["time_budget"], 45.0)
        self.assertIs(data["balance_enabled"], True)
        self.assertIsNone(data["max_exercises"])
        reopened = SettingsRepository(self.db_path, self.yaml_path)
        self.assertIsNone(reopened.engine_settings().max_exercises)
        self.assertTrue(reopened.engine_settings().balance_enabled)

    def test_yaml_edits_are_picked_up(self) -> None:
        data = YamlConfig(self.yaml_path).load()
        data["gamma"] = 0.9
        YamlConfig(self.yaml_path).save(data)
        self.assertEqual(self.settings.engine_settings().gamma, 0.9)

    def test_update_rejects_unknown_and_invalid(self) -> None:
        with self.assertRaises(ValueError):
            self.settings.update({"colour": "red"})
        with self.assertRaises(ValueError):
            self.settings.update({"gamma": 2})
        self.assertEqual(self.settings.engine_settings().gamma, 0.95)

    def test_non_mapping_yaml(self) -> None:
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            f.write("- a\n- b\n")
        with self.assertRaises(ValueError):
            YamlConfig(self.yaml_path).load()


if __name__ == "__main__":
    unittest.main()
