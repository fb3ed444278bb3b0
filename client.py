import requests
from typing import Optional


class MuscleRPMClient:
    """Simple REST client for the training API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def health(self) -> dict:
        resp = requests.get(f"{self.base_url}/health")
        resp.raise_for_status()
        return resp.json()

    def get_settings(self) -> dict:
        resp = requests.get(f"{self.base_url}/settings")
        resp.raise_for_status()
        return resp.json()

    def update_settings(self, values: dict) -> dict:
        resp = requests.put(f"{self.base_url}/settings", json=values)
        resp.raise_for_status()
        return resp.json()

    def reload_catalog(self) -> dict:
        resp = requests.post(f"{self.base_url}/catalog/reload")
        resp.raise_for_status()
        return resp.json()

    def list_exercises(self, **params):
        resp = requests.get(f"{self.base_url}/exercises", params=params)
        resp.raise_for_status()
        return resp.json()

    def graph_summary(self) -> dict:
        resp = requests.get(f"{self.base_url}/exercises/summary")
        resp.raise_for_status()
        return resp.json()

    def get_exercise(self, exercise_id: str) -> dict:
        resp = requests.get(f"{self.base_url}/exercises/{exercise_id}")
        resp.raise_for_status()
        return resp.json()

    def unlocks(self, exercise_id: str) -> dict:
        resp = requests.get(f"{self.base_url}/exercises/{exercise_id}/unlocks")
        resp.raise_for_status()
        return resp.json()

    def create_user(self, username: str, level: int = 1, stamina: Optional[float] = None) -> int:
        resp = requests.post(
            f"{self.base_url}/users",
            params={"username": username, "level": level, "stamina": stamina},
        )
        resp.raise_for_status()
        return resp.json()["id"]

    def get_user(self, user_id: int) -> dict:
        resp = requests.get(f"{self.base_url}/users/{user_id}")
        resp.raise_for_status()
        return resp.json()

    def update_user(
        self,
        user_id: int,
        level: Optional[int] = None,
        stamina: Optional[float] = None,
        experience: Optional[float] = None,
    ) -> dict:
        resp = requests.put(
            f"{self.base_url}/users/{user_id}",
            params={"level": level, "stamina": stamina, "experience": experience},
        )
        resp.raise_for_status()
        return resp.json()

    def create_profile(self, user_id: int, **metrics) -> dict:
        resp = requests.post(f"{self.base_url}/users/{user_id}/profile", params=metrics)
        resp.raise_for_status()
        return resp.json()

    def get_profile(self, user_id: int) -> dict:
        resp = requests.get(f"{self.base_url}/users/{user_id}/profile")
        resp.raise_for_status()
        return resp.json()

    def add_history(
        self,
        user_id: int,
        exercise_id: str,
        weight: float,
        reps: int,
        date: Optional[str] = None,
        estimated_1rm: Optional[float] = None,
    ) -> int:
        resp = requests.post(
            f"{self.base_url}/users/{user_id}/history",
            params={
                "exercise_id": exercise_id,
                "weight": weight,
                "reps": reps,
                "date": date,
                "estimated_1rm": estimated_1rm,
            },
        )
        resp.raise_for_status()
        return resp.json()["id"]

    def get_history(self, user_id: int, exercise_id: Optional[str] = None) -> list:
        resp = requests.get(
            f"{self.base_url}/users/{user_id}/history",
            params={"exercise_id": exercise_id},
        )
        resp.raise_for_status()
        return resp.json()

    def complete_exercise(self, user_id: int, exercise_id: str) -> list:
        resp = requests.post(
            f"{self.base_url}/users/{user_id}/completed",
            params={"exercise_id": exercise_id},
        )
        resp.raise_for_status()
        return resp.json()["completed"]

    def get_completed(self, user_id: int) -> list:
        resp = requests.get(f"{self.base_url}/users/{user_id}/completed")
        resp.raise_for_status()
        return resp.json()

    def user_graph(self, user_id: int) -> dict:
        resp = requests.get(f"{self.base_url}/users/{user_id}/graph")
        resp.raise_for_status()
        return resp.json()

    def daily_session(
        self,
        user_id: int,
        time_budget: Optional[float] = None,
        fatigue_budget: Optional[float] = None,
    ) -> dict:
        resp = requests.get(
            f"{self.base_url}/users/{user_id}/session",
            params={"time_budget": time_budget, "fatigue_budget": fatigue_budget},
        )
        resp.raise_for_status()
        return resp.json()

    def plan_cycle(self, user_id: int, start_date: Optional[str] = None) -> dict:
        resp = requests.post(
            f"{self.base_url}/users/{user_id}/cycle",
            params={"start_date": start_date},
        )
        resp.raise_for_status()
        return resp.json()

    def latest_cycle(self, user_id: int) -> dict:
        resp = requests.get(f"{self.base_url}/users/{user_id}/cycle")
        resp.raise_for_status()
        return resp.json()

    def evaluate_cycle(
        self, user_id: int, adherence: float, xp_gained: Optional[float] = None
    ) -> dict:
        resp = requests.post(
            f"{self.base_url}/users/{user_id}/cycle/evaluate",
            params={"adherence": adherence, "xp_gained": xp_gained},
        )
        resp.raise_for_status()
        return resp.json()
