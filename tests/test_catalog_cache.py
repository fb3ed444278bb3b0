import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.exercise_graph import build_graph
from catalog_cache import CatalogCache
from errors import DataIntegrityError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CatalogCacheTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.calls = 0
        self.clock = FakeClock()

        def loader():
            self.calls += 1
            return build_graph(
                [{"external_id": "A", "level_required": 1, "base_xp": 10, "fatigue_cost": 1, "execution_time": 1, "muscle_targets": {}}]
            )

        self.cache = CatalogCache(loader, ttl_seconds=60, clock=self.clock)

    def test_loads_once_within_ttl(self) -> None:
        first = self.cache.get()
        self.clock.now += 59
        self.assertIs(self.cache.get(), first)
        self.assertEqual(self.calls, 1)
        self.assertTrue(self.cache.is_fresh())

    def test_reloads_after_ttl(self) -> None:
        self.cache.get()
        self.clock.now += 60
        self.assertFalse(self.cache.is_fresh())
        self.cache.get()
        self.assertEqual(self.calls, 2)

    def test_invalidate(self) -> None:
        self.cache.get()
        self.cache.invalidate()
        self.assertFalse(self.cache.is_fresh())
        self.assertEqual(len(self.cache.get()), 1)
        self.assertEqual(self.calls, 2)

    def test_loader_errors_propagate(self) -> None:
        def broken():
            raise DataIntegrityError("cycle")

        cache = CatalogCache(broken)
        with self.assertRaises(DataIntegrityError):
            cache.get()
        self.assertFalse(cache.is_fresh())

    def test_negative_ttl(self) -> None:
        with self.assertRaises(ValueError):
            CatalogCache(lambda: None, ttl_seconds=-1)


if __name__ == "__main__":
    unittest.main()
