import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.exercise_graph import build_graph
from errors import DataIntegrityError, NotFoundError


def rule(external_id, level=1, xp=100, fatigue=10, time=3, prereqs=(), unlocks=(), targets=None):
    return {
        "external_id": external_id,
        "level_required": level,
        "base_xp": xp,
        "fatigue_cost": fatigue,
        "execution_time": time,
        "muscle_targets": targets or {"STR": 0.5, "END": 0.5},
        "prerequisites": list(prereqs),
        "unlocks": list(unlocks),
    }


def sample_rules():
    return [
        rule("A"),
        rule("B"),
        rule("C", level=2, prereqs=["A"]),
        rule("D", level=2, prereqs=["A", "B"]),
        rule("E", level=3, prereqs=["C"]),
    ]


class ExerciseGraphTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.graph = build_graph(sample_rules(), {"A": {"name": "Bench Press", "body_part": "chest"}})

    def test_prerequisites_and_unlocks_are_consistent(self) -> None:
        for node in self.graph:
            for prereq in node.prerequisites:
                self.assertIn(node.id, self.graph.node(prereq).unlocks)
            for target in node.unlocks:
                self.assertIn(node.id, self.graph.node(target).prerequisites)
        self.assertEqual(self.graph.unlocks("A"), frozenset({"C", "D"}))
        self.assertEqual(self.graph.prerequisites("D"), frozenset({"A", "B"}))

    def test_unlocked_for(self) -> None:
        self.assertEqual(self.graph.unlocked_for(1, set()), {"A", "B"})
        self.assertEqual(self.graph.unlocked_for(2, {"A"}), {"A", "B", "C"})
        self.assertEqual(self.graph.unlocked_for(2, {"A", "B"}), {"A", "B", "C", "D"})
        self.assertEqual(self.graph.unlocked_for(3, {"A"}), {"A", "B", "C"})
        self.assertEqual(self.graph.unlocked_for(0, {"A", "B", "C"}), set())

    def test_unlocked_never_violates_gates(self) -> None:
        for level in range(0, 5):
            for completed in (set(), {"A"}, {"A", "C"}, {"A", "B", "C"}):
                for node_id in self.graph.unlocked_for(level, completed):
                    node = self.graph.node(node_id)
                    self.assertLessEqual(node.level_required, level)
                    self.assertTrue(node.prerequisites <= completed)

    def test_locked_for_reasons(self) -> None:
        locked = self.graph.locked_for(2, {"A"})
        self.assertEqual(locked["D"], {"reason": "prerequisites", "missing_prerequisites": ["B"]})
        self.assertEqual(locked["E"], {"reason": "level", "level_required": 3})
        self.assertNotIn("C", locked)

    def test_reachable_from(self) -> None:
        self.assertEqual(self.graph.reachable_from("A"), {"C", "D", "E"})
        self.assertEqual(self.graph.reachable_from("B"), {"D"})
        self.assertEqual(self.graph.reachable_from("E"), set())
        with self.assertRaises(NotFoundError):
            self.graph.reachable_from("Z")

    def test_topological_order(self) -> None:
        order = self.graph.topological_order()
        self.assertEqual(sorted(order), ["A", "B", "C", "D", "E"])
        for src, dst in self.graph.edges():
            self.assertLess(order.index(src), order.index(dst))

    def test_container_protocol(self) -> None:
        self.assertEqual(len(self.graph), 5)
        self.assertIn("C", self.graph)
        self.assertNotIn("Z", self.graph)
        self.assertEqual([n.id for n in self.graph], self.graph.topological_order())
        with self.assertRaises(NotFoundError):
            self.graph.node("Z")

    def test_metadata_merge_and_fallback(self) -> None:
        a = self.graph.node("A")
        self.assertEqual(a.name, "Bench Press")
        self.assertEqual(a.body_part, "chest")
        self.assertEqual(a.equipment, "unknown")
        b = self.graph.node("B")
        self.assertEqual(b.target_muscle, "unknown")
        self.assertEqual(b.muscle_target_map()["STR"], 0.5)
        self.assertEqual(b.muscle_target_map()["AGI"], 0.0)

    def test_metadata_as_records(self) -> None:
        graph = build_graph([rule("A")], [{"external_id": "A", "name": "Squat", "instructions": "Sit\nStand"}])
        self.assertEqual(graph.node("A").name, "Squat")
        self.assertEqual(graph.node("A").instructions, ("Sit", "Stand"))

    def test_summary(self) -> None:
        summary = self.graph.summary()
        self.assertEqual(summary["nodes"], 5)
        self.assertEqual(summary["edges"], 4)
        self.assertEqual(summary["levels"], {1: 2, 2: 2, 3: 1})
        self.assertAlmostEqual(summary["efficiency"]["mean"], 100 / 13)
        self.assertAlmostEqual(summary["stimulus"]["STR"], 2.5)

    def test_dangling_prerequisite(self) -> None:
        with self.assertRaises(DataIntegrityError):
            build_graph([rule("A", prereqs=["missing"])])

    def test_duplicate_id(self) -> None:
        with self.assertRaises(DataIntegrityError):
            build_graph([rule("A"), rule("A")])

    def test_cycle_is_rejected(self) -> None:
        with self.assertRaises(DataIntegrityError):
            build_graph([rule("A", prereqs=["B"]), rule("B", prereqs=["C"]), rule("C", prereqs=["A"])])
        with self.assertRaises(DataIntegrityError):
            build_graph([rule("A", prereqs=["A"])])

    def test_declared_unlock_to_unknown_id(self) -> None:
        with self.assertRaises(DataIntegrityError):
            build_graph([rule("A", unlocks=["missing"])])

    def test_declared_unlock_without_prerequisite_is_ignored(self) -> None:
        with self.assertLogs("algorithms.exercise_graph", level="WARNING"):
            graph = build_graph([rule("A", unlocks=["B"]), rule("B")])
        self.assertEqual(graph.node("A").unlocks, frozenset())
        self.assertEqual(graph.unlocked_for(1, set()), {"A", "B"})

    def test_muscle_vector_length(self) -> None:
        graph = build_graph([rule("A", targets=[1, 0, 0, 0, 0, 0])])
        self.assertEqual(graph.node("A").muscle_targets, (1.0, 0.0, 0.0, 0.0, 0.0, 0.0))
        with self.assertRaises(DataIntegrityError):
            build_graph([rule("A", targets=[1, 0])])


if __name__ == "__main__":
    unittest.main()
