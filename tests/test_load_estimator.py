import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.load_estimator import LoadEstimator
from models import ExerciseHistoryEntry, Tier


def entry(exercise_id, weight, reps, day, estimated_1rm=None):
    return ExerciseHistoryEntry(
        exercise_id=exercise_id,
        weight=weight,
        reps=reps,
        date=datetime.date(2024, 1, day),
        estimated_1rm=estimated_1rm,
    )


class LoadEstimatorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.estimator = LoadEstimator()

    def test_no_history_uses_exploratory_weight(self) -> None:
        self.assertEqual(self.estimator.estimate_1rm([], "0001"), (20.0, True))
        history = [entry("0002", 100, 5, 1)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (20.0, True))

    def test_epley_from_latest_entry(self) -> None:
        history = [entry("0001", 80, 5, 2), entry("0001", 100, 10, 1)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (93.3, False))
        history = [entry("0001", 100, 10, 3)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (133.3, False))

    def test_single_rep_returns_weight(self) -> None:
        history = [entry("0001", 142.5, 1, 1)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (142.5, False))

    def test_same_day_later_entry_wins(self) -> None:
        history = [entry("0001", 100, 10, 5), entry("0001", 90, 1, 5)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (90, False))

    def test_stored_one_rep_max_used_verbatim(self) -> None:
        history = [entry("0001", 100, 10, 1, estimated_1rm=150.0)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (150.0, False))
        history = [entry("0001", 100, 10, 1, estimated_1rm=0)]
        self.assertEqual(self.estimator.estimate_1rm(history, "0001"), (133.3, False))

    def test_negative_stored_one_rep_max_falls_back_to_epley(self) -> None:
        history = [entry("0001", 100, 10, 1, estimated_1rm=-50)]
        one_rm, exploratory = self.estimator.estimate_1rm(history, "0001")
        self.assertEqual((one_rm, exploratory), (133.3, False))
        self.assertEqual(self.estimator.prescribe(one_rm, "Intermedio"), (107.5, 2))

    def test_prescribe_per_tier(self) -> None:
        self.assertEqual(self.estimator.prescribe(133.3, Tier.INTERMEDIO), (107.5, 2))
        self.assertEqual(self.estimator.prescribe(133.3, "Básico"), (92.5, 3))
        self.assertEqual(self.estimator.prescribe(133.3, "Avanzado"), (120.0, 1))
        self.assertEqual(self.estimator.prescribe(20.0, "Intermedio"), (15.0, 2))

    def test_prescribe_tier_names_are_accent_insensitive(self) -> None:
        self.assertEqual(self.estimator.prescribe(100, "basico"), (70.0, 3))
        self.assertEqual(self.estimator.prescribe(100, "AVANZADO"), (90.0, 1))

    def test_unknown_tier_falls_back_to_intermedio(self) -> None:
        with self.assertLogs("models", level="WARNING"):
            result = self.estimator.prescribe(133.3, "Elite")
        self.assertEqual(result, (107.5, 2))

    def test_rep_target(self) -> None:
        self.assertEqual(self.estimator.target_reps, 10)
        self.assertEqual(self.estimator.reps_range, "8-12")

    def test_custom_increment(self) -> None:
        estimator = LoadEstimator(exploratory_weight=10, plate_increment=5)
        self.assertEqual(estimator.estimate_1rm([], "0001"), (10.0, True))
        self.assertEqual(estimator.prescribe(133.3, "Intermedio"), (105, 2))
        with self.assertRaises(ValueError):
            LoadEstimator(plate_increment=0)

    def test_session_note(self) -> None:
        note = self.estimator.session_note(15.0, "Intermedio", True)
        self.assertIn("exploratory test with 15kg", note)
        note = self.estimator.session_note(107.5, "Intermedio", False)
        self.assertEqual(note, "107.5kg @ RIR 2 (80% 1RM) - Hypertrophy")


if __name__ == "__main__":
    unittest.main()
