import argparse
import datetime
import json
import logging
from typing import Optional

from models import PlannerState
from rest_api import TrainingAPI
from seed_sample_data import seed


def print_session(db_path: str, yaml_path: str, user_id: int, time_budget: Optional[float], fatigue_budget: Optional[float], as_json: bool = False) -> None:
    api = TrainingAPI(db_path=db_path, yaml_path=yaml_path)
    user = api.users.fetch(user_id)
    profile = api.profiles.fetch(user_id)
    engine = api.settings.engine_settings()
    sessions = api.assembler().prepare(
        api.catalog_cache.get(),
        profile,
        api.history.fetch_for_user(user_id),
        user["level"],
        api.users.completed(user_id),
        engine.time_budget if time_budget is None else time_budget,
        user["stamina"] if fatigue_budget is None else fatigue_budget,
    )
    if as_json:
        print(json.dumps([s.to_dict() for s in sessions], indent=2))
        return
    if not sessions:
        print("Rest day: no exercise fits the budgets")
        return
    for s in sessions:
        print(f"{s.exercise_id} {s.name}: {s.sets}x{s.target_reps} @ {s.target_weight:g}kg RIR {s.rir}")
        print(f"    {s.notes}")


def print_cycle(db_path: str, yaml_path: str, user_id: int, start: Optional[str], volume: Optional[float] = None, fatigue: Optional[float] = None, as_json: bool = False) -> None:
    api = TrainingAPI(db_path=db_path, yaml_path=yaml_path)
    profile = api.profiles.fetch(user_id)
    planner = api.planner()
    initial = None
    if volume is not None or fatigue is not None:
        landmarks = planner.landmarks_for(profile.tier, profile.composition_multiplier)
        initial = PlannerState(
            landmarks.mev if volume is None else volume,
            planner.INITIAL_FATIGUE if fatigue is None else fatigue,
        )
    start_date = datetime.date.fromisoformat(start) if start else None
    cycle = planner.plan(profile, start_date, initial)
    api.cycles.save(user_id, cycle)
    if as_json:
        print(json.dumps(cycle.to_dict(), indent=2))
        return
    mev, mav, mrv = cycle.landmarks
    print(f"{cycle.start_date} - {cycle.end_date}  MEV {mev:g} MAV {mav:g} MRV {mrv:g}")
    for d in cycle.decisions:
        flag = " (mandatory deload)" if d.forced_deload else ""
        print(f"week {d.week:2d}: {d.action.kind:8s} volume {d.state.volume:5.1f} fatigue {d.state.fatigue:.2f}{flag}")
    print(f"projected xp {cycle.total_xp:.1f}")


def print_graph(db_path: str, yaml_path: str, user_id: Optional[int] = None) -> None:
    api = TrainingAPI(db_path=db_path, yaml_path=yaml_path)
    graph = api.catalog_cache.get()
    if user_id is None:
        print(json.dumps(graph.summary(), indent=2))
        return
    user = api.users.fetch(user_id)
    completed = api.users.completed(user_id)
    unlocked = graph.unlocked_for(user["level"], completed)
    for node in graph:
        state = "done" if node.id in completed else "open" if node.id in unlocked else "locked"
        print(f"{node.id} [{state:6s}] L{node.level_required} {node.name}")


def save_profile(db_path: str, yaml_path: str, user_id: int, metrics: dict) -> None:
    api = TrainingAPI(db_path=db_path, yaml_path=yaml_path)
    api.users.fetch(user_id)
    profile = api.profiling.calculate(**metrics)
    api.profiles.save(user_id, profile, metrics)
    print(json.dumps(profile.to_dict(), indent=2))


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="MuscleRPM utilities")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd")

    def add_paths(p: argparse.ArgumentParser) -> None:
        p.add_argument("--db", default="musclerpm.db")
        p.add_argument("--yaml", default="settings.yaml")

    sd = sub.add_parser("seed")
    add_paths(sd)

    ses = sub.add_parser("session")
    add_paths(ses)
    ses.add_argument("--user", type=int, required=True)
    ses.add_argument("--time", type=float)
    ses.add_argument("--fatigue", type=float)
    ses.add_argument("--json", action="store_true")

    cyc = sub.add_parser("cycle")
    add_paths(cyc)
    cyc.add_argument("--user", type=int, required=True)
    cyc.add_argument("--start")
    cyc.add_argument("--volume", type=float)
    cyc.add_argument("--fatigue", type=float)
    cyc.add_argument("--json", action="store_true")

    gr = sub.add_parser("graph")
    add_paths(gr)
    gr.add_argument("--user", type=int)

    prof = sub.add_parser("profile")
    add_paths(prof)
    prof.add_argument("--user", type=int, required=True)
    prof.add_argument("--age", type=float, required=True)
    prof.add_argument("--gender", choices=["male", "female"], required=True)
    prof.add_argument("--months", type=float, required=True)
    prof.add_argument("--weight", type=float, required=True)
    prof.add_argument("--height", type=float, required=True)
    prof.add_argument("--activity", choices=["sedentary", "active", "sport"], required=True)
    prof.add_argument("--medical", action="store_true")
    prof.add_argument("--body-fat", type=float)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.cmd == "seed":
        uid = seed(args.db, args.yaml)
        print(f"demo user id {uid}")
    elif args.cmd == "session":
        print_session(args.db, args.yaml, args.user, args.time, args.fatigue, args.json)
    elif args.cmd == "cycle":
        print_cycle(args.db, args.yaml, args.user, args.start, args.volume, args.fatigue, args.json)
    elif args.cmd == "graph":
        print_graph(args.db, args.yaml, args.user)
    elif args.cmd == "profile":
        save_profile(
            args.db,
            args.yaml,
            args.user,
            {
                "age": args.age,
                "gender": args.gender,
                "experience_months": args.months,
                "weight": args.weight,
                "height": args.height,
                "activity_level": args.activity,
                "medical_condition": args.medical,
                "known_body_fat": args.body_fat,
            },
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
