import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import MuscleRPMClient


def response(payload, status=200):
    resp = MagicMock()
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return resp


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = MuscleRPMClient(base_url="http://testserver/")

    @patch("client.requests.post")
    def test_create_user(self, post) -> None:
        post.return_value = response({"id": 7})
        self.assertEqual(self.client.create_user("alice", level=2), 7)
        post.assert_called_once_with(
            "http://testserver/users",
            params={"username": "alice", "level": 2, "stamina": None},
        )

    @patch("client.requests.get")
    def test_daily_session(self, get) -> None:
        get.return_value = response({"exercises": [], "total_xp": 0})
        data = self.client.daily_session(3, time_budget=45)
        self.assertEqual(data["total_xp"], 0)
        get.assert_called_once_with(
            "http://testserver/users/3/session",
            params={"time_budget": 45, "fatigue_budget": None},
        )

    @patch("client.requests.post")
    def test_complete_exercise(self, post) -> None:
        post.return_value = response({"completed": ["0001"]})
        self.assertEqual(self.client.complete_exercise(1, "0001"), ["0001"])

    @patch("client.requests.post")
    def test_plan_cycle(self, post) -> None:
        post.return_value = response({"id": 1, "end_date": "2024-03-25"})
        self.assertEqual(self.client.plan_cycle(1, "2024-01-01")["end_date"], "2024-03-25")
        post.assert_called_once_with(
            "http://testserver/users/1/cycle", params={"start_date": "2024-01-01"}
        )

    @patch("client.requests.put")
    def test_update_settings_sends_json_body(self, put) -> None:
        put.return_value = response({"time_budget": 45.0})
        self.assertEqual(self.client.update_settings({"time_budget": 45})["time_budget"], 45.0)
        put.assert_called_once_with("http://testserver/settings", json={"time_budget": 45})

    @patch("client.requests.put")
    def test_update_user(self, put) -> None:
        put.return_value = response({"id": 3, "level": 4})
        self.assertEqual(self.client.update_user(3, level=4)["level"], 4)
        put.assert_called_once_with(
            "http://testserver/users/3",
            params={"level": 4, "stamina": None, "experience": None},
        )

    @patch("client.requests.get")
    def test_read_routes(self, get) -> None:
        get.return_value = response(["0001", "0002"])
        self.assertEqual(self.client.get_completed(2), ["0001", "0002"])
        get.assert_called_with("http://testserver/users/2/completed")
        self.client.get_history(2, exercise_id="0001")
        get.assert_called_with(
            "http://testserver/users/2/history", params={"exercise_id": "0001"}
        )
        self.client.get_exercise("0001")
        get.assert_called_with("http://testserver/exercises/0001")
        self.client.graph_summary()
        get.assert_called_with("http://testserver/exercises/summary")
        self.client.get_settings()
        get.assert_called_with("http://testserver/settings")

    @patch("client.requests.post")
    def test_evaluate_cycle(self, post) -> None:
        post.return_value = response({"promoted": True, "new_tier": "Avanzado"})
        self.assertTrue(self.client.evaluate_cycle(1, 0.9, 6000)["promoted"])
        post.assert_called_once_with(
            "http://testserver/users/1/cycle/evaluate",
            params={"adherence": 0.9, "xp_gained": 6000},
        )

    @patch("client.requests.post")
    def test_reload_catalog(self, post) -> None:
        post.return_value = response({"exercises": 20})
        self.assertEqual(self.client.reload_catalog()["exercises"], 20)
        post.assert_called_once_with("http://testserver/catalog/reload")

    @patch("client.requests.get")
    def test_errors_raise(self, get) -> None:
        get.return_value = response({"detail": "missing"}, status=404)
        with self.assertRaises(requests.HTTPError):
            self.client.unlocks("9999")


if __name__ == "__main__":
    unittest.main()
