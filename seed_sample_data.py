import datetime

from rest_api import TrainingAPI


def seed(db_path: str = "musclerpm.db", yaml_path: str = "settings.yaml") -> int:
    """Create a demo user with a profile, some history and completed exercises."""
    api = TrainingAPI(db_path=db_path, yaml_path=yaml_path)
    for user in api.users.fetch_all_users():
        if user["username"] == "demo":
            print("Database already contains the demo user")
            return user["id"]

    uid = api.users.create("demo", level=2, stamina=100.0, experience=1200.0)
    metrics = {
        "age": 28,
        "gender": "male",
        "experience_months": 10,
        "weight": 78.0,
        "height": 1.78,
        "activity_level": "active",
        "medical_condition": False,
        "known_body_fat": None,
    }
    api.profiles.save(uid, api.profiling.calculate(**metrics), metrics)

    today = datetime.date.today()
    api.history.add(uid, "0001", 60.0, 10, (today - datetime.timedelta(days=7)).isoformat())
    api.history.add(uid, "0001", 62.5, 8, (today - datetime.timedelta(days=3)).isoformat())
    api.history.add(uid, "0002", 80.0, 5, (today - datetime.timedelta(days=3)).isoformat())
    api.history.add(uid, "0004", 50.0, 10, (today - datetime.timedelta(days=2)).isoformat())
    for exercise_id in ("0001", "0002", "0004"):
        api.users.mark_completed(uid, exercise_id)
    print("Seed data inserted")
    return uid


if __name__ == "__main__":
    seed()
