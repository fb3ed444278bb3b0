import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException

from algorithms.daily_selector import DailySelector, MuscleBalancePolicy
from algorithms.exercise_graph import ExerciseGraph
from algorithms.load_estimator import LoadEstimator
from algorithms.quarterly_planner import QuarterlyPlanner
from catalog_cache import CatalogCache
from db import (
    ExerciseCatalogRepository,
    ExerciseHistoryRepository,
    ExerciseRuleRepository,
    ProfileRepository,
    QuarterlyCycleRepository,
    SettingsRepository,
    UserRepository,
    load_exercise_catalog,
)
from errors import DataIntegrityError, NotFoundError
from models import PlannerState, UserCapabilityProfile
from profiling_service import ProfilingService
from session_service import SessionAssembler

logger = logging.getLogger(__name__)


class TrainingAPI:
    """Provides REST endpoints for session and cycle planning."""

    def __init__(
        self,
        db_path: str = "musclerpm.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.rules = ExerciseRuleRepository(db_path)
        self.catalog = ExerciseCatalogRepository(db_path)
        self.users = UserRepository(db_path)
        self.profiles = ProfileRepository(db_path)
        self.history = ExerciseHistoryRepository(db_path)
        self.cycles = QuarterlyCycleRepository(db_path)
        self.profiling = ProfilingService()
        engine = self.settings.engine_settings()
        self.catalog_cache = CatalogCache(
            lambda: load_exercise_catalog(self.rules, self.catalog),
            ttl_seconds=engine.catalog_ttl_seconds,
        )
        self.app = FastAPI(
            title="MuscleRPM API",
            description="REST API for daily sessions and quarterly training cycles",
        )
        self._setup_routes()

    def graph(self) -> ExerciseGraph:
        try:
            return self.catalog_cache.get()
        except DataIntegrityError as e:
            logger.error("Exercise catalog is inconsistent: %s", e)
            raise HTTPException(status_code=500, detail=str(e))

    def assembler(self) -> SessionAssembler:
        engine = self.settings.engine_settings()
        balance = None
        if engine.balance_enabled:
            balance = MuscleBalancePolicy(
                max_share=engine.balance_max_share,
                min_selected=engine.balance_min_selected,
            )
        selector = DailySelector(
            time_weight=engine.time_weight,
            fatigue_weight=engine.fatigue_weight,
            max_exercises=engine.max_exercises,
            balance=balance,
        )
        estimator = LoadEstimator(
            exploratory_weight=engine.exploratory_weight,
            plate_increment=engine.plate_increment,
        )
        return SessionAssembler(selector, estimator)

    def planner(self) -> QuarterlyPlanner:
        return QuarterlyPlanner(gamma=self.settings.engine_settings().gamma)

    def _setup_routes(self) -> None:
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        users_router = APIRouter(prefix="/users", tags=["Users"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            self.users.fetch_all("SELECT 1;")
            return {"status": "ok"}

        @self.app.get("/settings")
        def get_settings():
            return self.settings.engine_settings().model_dump()

        @self.app.put("/settings")
        def update_settings(values: dict = Body(...)):
            try:
                updated = self.settings.update(values)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.catalog_cache.ttl_seconds = updated.catalog_ttl_seconds
            return updated.model_dump()

        @self.app.post("/catalog/reload")
        def reload_catalog():
            self.catalog_cache.invalidate()
            return {"exercises": len(self.graph())}

        @exercises_router.get("")
        def list_exercises(level: Optional[int] = None, body_part: Optional[str] = None):
            nodes = list(self.graph())
            if level is not None:
                nodes = [n for n in nodes if n.level_required <= level]
            if body_part:
                nodes = [n for n in nodes if n.body_part == body_part]
            return [n.to_dict() for n in nodes]

        @exercises_router.get("/summary")
        def graph_summary():
            return self.graph().summary()

        @exercises_router.get("/{exercise_id}")
        def get_exercise(exercise_id: str):
            try:
                return self.graph().node(exercise_id).to_dict()
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @exercises_router.get("/{exercise_id}/unlocks")
        def get_unlocks(exercise_id: str):
            graph = self.graph()
            try:
                direct = graph.unlocks(exercise_id)
                reachable = graph.reachable_from(exercise_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {
                "exercise_id": exercise_id,
                "unlocks": sorted(direct),
                "reachable": sorted(reachable),
            }

        @users_router.post("")
        def create_user(username: str, level: int = 1, stamina: Optional[float] = None):
            if stamina is None:
                stamina = self.settings.engine_settings().default_stamina
            try:
                uid = self.users.create(username, level, stamina)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": uid}

        @users_router.get("")
        def list_users():
            return self.users.fetch_all_users()

        @users_router.get("/{user_id}")
        def get_user(user_id: int):
            try:
                return self.users.fetch(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.put("/{user_id}")
        def update_user(
            user_id: int,
            level: Optional[int] = None,
            stamina: Optional[float] = None,
            experience: Optional[float] = None,
        ):
            try:
                self.users.update(user_id, level, stamina, experience)
                return self.users.fetch(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @users_router.post("/{user_id}/profile")
        def create_profile(
            user_id: int,
            age: float,
            gender: str,
            experience_months: float,
            weight: float,
            height: float,
            activity_level: str,
            medical_condition: bool = False,
            known_body_fat: Optional[float] = None,
        ):
            metrics = {
                "age": age,
                "gender": gender,
                "experience_months": experience_months,
                "weight": weight,
                "height": height,
                "activity_level": activity_level,
                "medical_condition": medical_condition,
                "known_body_fat": known_body_fat,
            }
            try:
                self.users.fetch(user_id)
                profile = self.profiling.calculate(**metrics)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.profiles.save(user_id, profile, metrics)
            return profile.to_dict()

        @users_router.get("/{user_id}/profile")
        def get_profile(user_id: int):
            try:
                return self.profiles.fetch(user_id).to_dict()
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.post("/{user_id}/history")
        def add_history(
            user_id: int,
            exercise_id: str,
            weight: float,
            reps: int,
            date: Optional[str] = None,
            estimated_1rm: Optional[float] = None,
        ):
            try:
                self.users.fetch(user_id)
                self.graph().node(exercise_id)
                hid = self.history.add(user_id, exercise_id, weight, reps, date, estimated_1rm)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": hid}

        @users_router.get("/{user_id}/history")
        def get_history(user_id: int, exercise_id: Optional[str] = None):
            try:
                self.users.fetch(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            entries = self.history.fetch_for_user(user_id)
            if exercise_id:
                entries = [e for e in entries if e.exercise_id == exercise_id]
            return [
                {
                    "exercise_id": e.exercise_id,
                    "weight": e.weight,
                    "reps": e.reps,
                    "date": e.date.isoformat(),
                    "estimated_1rm": e.estimated_1rm,
                }
                for e in entries
            ]

        @users_router.post("/{user_id}/completed")
        def mark_completed(user_id: int, exercise_id: str):
            try:
                self.graph().node(exercise_id)
                self.users.mark_completed(user_id, exercise_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"completed": sorted(self.users.completed(user_id))}

        @users_router.get("/{user_id}/completed")
        def get_completed(user_id: int):
            try:
                self.users.fetch(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return sorted(self.users.completed(user_id))

        @users_router.get("/{user_id}/graph")
        def user_graph(user_id: int):
            try:
                user = self.users.fetch(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            graph = self.graph()
            completed = self.users.completed(user_id)
            return {
                "level": user["level"],
                "completed": sorted(completed),
                "unlocked": sorted(graph.unlocked_for(user["level"], completed)),
                "locked": graph.locked_for(user["level"], completed),
                "edges": [list(edge) for edge in graph.edges()],
            }

        @users_router.get("/{user_id}/session")
        def daily_session(
            user_id: int,
            time_budget: Optional[float] = None,
            fatigue_budget: Optional[float] = None,
        ):
            try:
                user = self.users.fetch(user_id)
                profile = self.profiles.fetch(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            if time_budget is None:
                time_budget = self.settings.engine_settings().time_budget
            if fatigue_budget is None:
                fatigue_budget = user["stamina"]
            graph = self.graph()
            sessions = self.assembler().prepare(
                graph,
                profile,
                self.history.fetch_for_user(user_id),
                user["level"],
                self.users.completed(user_id),
                time_budget,
                fatigue_budget,
            )
            nodes = [graph.node(s.exercise_id) for s in sessions]
            return {
                "date": datetime.date.today().isoformat(),
                "tier": profile.tier.value,
                "exercises": [s.to_dict() for s in sessions],
                "total_xp": sum(n.base_xp for n in nodes),
                "total_time": sum(n.execution_time for n in nodes),
                "total_fatigue": sum(n.fatigue_cost for n in nodes),
            }

        @users_router.post("/{user_id}/cycle")
        def plan_cycle(
            user_id: int,
            start_date: Optional[str] = None,
            volume: Optional[float] = None,
            fatigue: Optional[float] = None,
        ):
            try:
                profile = self.profiles.fetch(user_id)
                start = datetime.date.fromisoformat(start_date) if start_date else None
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            planner = self.planner()
            initial = None
            if volume is not None or fatigue is not None:
                landmarks = planner.landmarks_for(profile.tier, profile.composition_multiplier)
                initial = PlannerState(
                    volume if volume is not None else landmarks.mev,
                    fatigue if fatigue is not None else planner.INITIAL_FATIGUE,
                )
            cycle = planner.plan(profile, start, initial)
            cid = self.cycles.save(user_id, cycle)
            return {"id": cid, **cycle.to_dict()}

        @users_router.get("/{user_id}/cycle")
        def latest_cycle(user_id: int):
            try:
                return self.cycles.fetch_latest(user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.post("/{user_id}/cycle/evaluate")
        def evaluate_cycle(user_id: int, adherence: float, xp_gained: Optional[float] = None):
            try:
                user = self.users.fetch(user_id)
                profile = self.profiles.fetch(user_id)
                result = self.planner().evaluate_cycle(
                    profile,
                    adherence,
                    user["experience"] if xp_gained is None else xp_gained,
                )
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            if result["promoted"]:
                promoted = UserCapabilityProfile.for_tier(
                    result["new_tier"],
                    s_rpg=profile.s_rpg,
                    composition_multiplier=profile.composition_multiplier,
                    estimated_body_fat=profile.estimated_body_fat,
                )
                self.profiles.save(user_id, promoted, self.profiles.fetch_metrics(user_id))
            return result

        self.app.include_router(exercises_router)
        self.app.include_router(users_router)


api = TrainingAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
