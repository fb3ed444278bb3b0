import csv
import datetime
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import List, Optional, Set, Tuple

from algorithms.exercise_graph import ExerciseGraph, build_graph
from config import YamlConfig
from errors import NotFoundError
from models import (
    ATTRIBUTE_AXES,
    ExerciseHistoryEntry,
    QuarterlyCycle,
    UserCapabilityProfile,
    resolve_tier,
)
from settings_schema import EngineSettings, validate_settings

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "|"


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(LIST_SEPARATOR) if v.strip()]


def _join(values) -> str:
    return LIST_SEPARATOR.join(str(v) for v in values or [])


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercise_rules": (
            """CREATE TABLE exercise_rules (
                    external_id TEXT PRIMARY KEY,
                    level_required INTEGER NOT NULL DEFAULT 1,
                    base_xp REAL NOT NULL,
                    fatigue_cost REAL NOT NULL,
                    execution_time REAL NOT NULL,
                    m_str REAL NOT NULL DEFAULT 0,
                    m_agi REAL NOT NULL DEFAULT 0,
                    m_sta REAL NOT NULL DEFAULT 0,
                    m_int REAL NOT NULL DEFAULT 0,
                    m_dex REAL NOT NULL DEFAULT 0,
                    m_end REAL NOT NULL DEFAULT 0,
                    prerequisites TEXT NOT NULL DEFAULT '',
                    unlocks TEXT NOT NULL DEFAULT ''
                );""",
            [
                "external_id",
                "level_required",
                "base_xp",
                "fatigue_cost",
                "execution_time",
                "m_str",
                "m_agi",
                "m_sta",
                "m_int",
                "m_dex",
                "m_end",
                "prerequisites",
                "unlocks",
            ],
        ),
        "exercise_catalog": (
            """CREATE TABLE exercise_catalog (
                    external_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    gif_url TEXT,
                    target_muscle TEXT,
                    equipment TEXT,
                    body_part TEXT,
                    secondary_muscles TEXT,
                    instructions TEXT
                );""",
            [
                "external_id",
                "name",
                "gif_url",
                "target_muscle",
                "equipment",
                "body_part",
                "secondary_muscles",
                "instructions",
            ],
        ),
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    level INTEGER NOT NULL DEFAULT 1,
                    stamina REAL NOT NULL DEFAULT 100,
                    experience REAL NOT NULL DEFAULT 0
                );""",
            ["id", "username", "level", "stamina", "experience"],
        ),
        "completed_exercises": (
            """CREATE TABLE completed_exercises (
                    user_id INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    completed_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, exercise_id),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["user_id", "exercise_id", "completed_at"],
        ),
        "profiles": (
            """CREATE TABLE profiles (
                    user_id INTEGER PRIMARY KEY,
                    s_rpg REAL NOT NULL,
                    tier TEXT NOT NULL,
                    composition_multiplier REAL NOT NULL DEFAULT 1.0,
                    estimated_body_fat REAL,
                    metrics TEXT,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "user_id",
                "s_rpg",
                "tier",
                "composition_multiplier",
                "estimated_body_fat",
                "metrics",
                "updated_at",
            ],
        ),
        "exercise_history": (
            """CREATE TABLE exercise_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    estimated_1rm REAL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "exercise_id", "weight", "reps", "date", "estimated_1rm"],
        ),
        "quarterly_cycles": (
            """CREATE TABLE quarterly_cycles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT NOT NULL,
                    data TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "created_at", "start_date", "end_date", "data"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "musclerpm.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._import_exercise_rules()
        self._import_exercise_catalog_data()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("Migrating table %s", table)
        conn.execute("PRAGMA foreign_keys=off;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")
        conn.execute("PRAGMA foreign_keys=on;")

    def _import_exercise_rules(self) -> None:
        csv_path = os.path.join(os.path.dirname(__file__), "exercise_rules.csv")
        if not os.path.exists(csv_path):
            return
        with open(csv_path, newline="", encoding="utf-8") as csvfile:
            reader = csv.DictReader(csvfile)
            records = [
                (
                    row["external_id"],
                    int(row["level_required"]),
                    float(row["base_xp"]),
                    float(row["fatigue_cost"]),
                    float(row["execution_time"]),
                    *(float(row.get(axis) or 0) for axis in ATTRIBUTE_AXES),
                    row.get("prerequisites", ""),
                    row.get("unlocks", ""),
                )
                for row in reader
            ]
        with self._connection() as conn:
            conn.executemany(
                "INSERT INTO exercise_rules (external_id, level_required, base_xp, fatigue_cost, execution_time, m_str, m_agi, m_sta, m_int, m_dex, m_end, prerequisites, unlocks) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(external_id) DO UPDATE SET level_required=excluded.level_required, base_xp=excluded.base_xp, fatigue_cost=excluded.fatigue_cost, execution_time=excluded.execution_time, m_str=excluded.m_str, m_agi=excluded.m_agi, m_sta=excluded.m_sta, m_int=excluded.m_int, m_dex=excluded.m_dex, m_end=excluded.m_end, prerequisites=excluded.prerequisites, unlocks=excluded.unlocks;",
                records,
            )

    def _import_exercise_catalog_data(self) -> None:
        csv_path = os.path.join(os.path.dirname(__file__), "exercise_catalog.csv")
        if not os.path.exists(csv_path):
            return
        with open(csv_path, newline="", encoding="utf-8") as csvfile:
            reader = csv.DictReader(csvfile)
            records = [
                (
                    row["external_id"],
                    row["name"],
                    row.get("gif_url", ""),
                    row.get("target_muscle", ""),
                    row.get("equipment", ""),
                    row.get("body_part", ""),
                    row.get("secondary_muscles", ""),
                    row.get("instructions", ""),
                )
                for row in reader
            ]
        with self._connection() as conn:
            conn.executemany(
                "INSERT INTO exercise_catalog (external_id, name, gif_url, target_muscle, equipment, body_part, secondary_muscles, instructions) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(external_id) DO UPDATE SET name=excluded.name, gif_url=excluded.gif_url, target_muscle=excluded.target_muscle, equipment=excluded.equipment, body_part=excluded.body_part, secondary_muscles=excluded.secondary_muscles, instructions=excluded.instructions;",
                records,
            )

    def _init_settings(self) -> None:
        defaults = EngineSettings().model_dump()
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, SettingsRepository.encode(value)),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class ExerciseRuleRepository(BaseRepository):
    """Repository for per-exercise progression rules."""

    def upsert(
        self,
        external_id: str,
        level_required: int,
        base_xp: float,
        fatigue_cost: float,
        execution_time: float,
        muscle_targets: dict,
        prerequisites: List[str] | None = None,
        unlocks: List[str] | None = None,
    ) -> None:
        if base_xp < 0 or fatigue_cost < 0 or execution_time < 0:
            raise ValueError("costs must be non-negative")
        self.execute(
            "INSERT INTO exercise_rules (external_id, level_required, base_xp, fatigue_cost, execution_time, m_str, m_agi, m_sta, m_int, m_dex, m_end, prerequisites, unlocks) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(external_id) DO UPDATE SET level_required=excluded.level_required, base_xp=excluded.base_xp, fatigue_cost=excluded.fatigue_cost, execution_time=excluded.execution_time, m_str=excluded.m_str, m_agi=excluded.m_agi, m_sta=excluded.m_sta, m_int=excluded.m_int, m_dex=excluded.m_dex, m_end=excluded.m_end, prerequisites=excluded.prerequisites, unlocks=excluded.unlocks;",
            (
                external_id,
                level_required,
                base_xp,
                fatigue_cost,
                execution_time,
                *(float(muscle_targets.get(axis, 0.0)) for axis in ATTRIBUTE_AXES),
                _join(prerequisites),
                _join(unlocks),
            ),
        )

    def load_rules(self) -> List[dict]:
        rows = self.fetch_all(
            "SELECT external_id, level_required, base_xp, fatigue_cost, execution_time, m_str, m_agi, m_sta, m_int, m_dex, m_end, prerequisites, unlocks "
            "FROM exercise_rules ORDER BY external_id;"
        )
        return [
            {
                "external_id": row[0],
                "level_required": int(row[1]),
                "base_xp": float(row[2]),
                "fatigue_cost": float(row[3]),
                "execution_time": float(row[4]),
                "muscle_targets": dict(zip(ATTRIBUTE_AXES, (float(v) for v in row[5:11]))),
                "prerequisites": _split(row[11]),
                "unlocks": _split(row[12]),
            }
            for row in rows
        ]


class ExerciseCatalogRepository(BaseRepository):
    """Repository for exercise names and media metadata."""

    def upsert(
        self,
        external_id: str,
        name: str,
        gif_url: str = "",
        target_muscle: str = "",
        equipment: str = "",
        body_part: str = "",
        secondary_muscles: List[str] | None = None,
        instructions: List[str] | None = None,
    ) -> None:
        self.execute(
            "INSERT INTO exercise_catalog (external_id, name, gif_url, target_muscle, equipment, body_part, secondary_muscles, instructions) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(external_id) DO UPDATE SET name=excluded.name, gif_url=excluded.gif_url, target_muscle=excluded.target_muscle, equipment=excluded.equipment, body_part=excluded.body_part, secondary_muscles=excluded.secondary_muscles, instructions=excluded.instructions;",
            (
                external_id,
                name,
                gif_url,
                target_muscle,
                equipment,
                body_part,
                _join(secondary_muscles),
                _join(instructions),
            ),
        )

    def load_metadata(self) -> dict[str, dict]:
        rows = self.fetch_all(
            "SELECT external_id, name, gif_url, target_muscle, equipment, body_part, secondary_muscles, instructions "
            "FROM exercise_catalog ORDER BY external_id;"
        )
        return {
            row[0]: {
                "name": row[1],
                "gif_url": row[2] or "",
                "target_muscle": row[3] or "",
                "equipment": row[4] or "",
                "body_part": row[5] or "",
                "secondary_muscles": _split(row[6]),
                "instructions": _split(row[7]),
            }
            for row in rows
        }


def load_exercise_catalog(
    rules: ExerciseRuleRepository, catalog: ExerciseCatalogRepository
) -> ExerciseGraph:
    """Read rules and metadata from the store and build the exercise graph."""
    return build_graph(rules.load_rules(), catalog.load_metadata())


class UserRepository(BaseRepository):
    """Repository for users, their level and their completed exercises."""

    def create(
        self,
        username: str,
        level: int = 1,
        stamina: float = 100.0,
        experience: float = 0.0,
    ) -> int:
        if level < 1:
            raise ValueError("level must be at least 1")
        if stamina < 0:
            raise ValueError("stamina must be non-negative")
        try:
            return self.execute(
                "INSERT INTO users (username, level, stamina, experience) VALUES (?, ?, ?, ?);",
                (username, level, stamina, experience),
            )
        except sqlite3.IntegrityError:
            raise ValueError(f"username {username} already exists") from None

    def fetch(self, user_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, username, level, stamina, experience FROM users WHERE id = ?;",
            (user_id,),
        )
        if not rows:
            raise NotFoundError(f"user {user_id} not found")
        uid, username, level, stamina, experience = rows[0]
        return {
            "id": uid,
            "username": username,
            "level": level,
            "stamina": stamina,
            "experience": experience,
        }

    def fetch_all_users(self) -> List[dict]:
        rows = self.fetch_all("SELECT id FROM users ORDER BY id;")
        return [self.fetch(r[0]) for r in rows]

    def update(
        self,
        user_id: int,
        level: Optional[int] = None,
        stamina: Optional[float] = None,
        experience: Optional[float] = None,
    ) -> None:
        self.fetch(user_id)
        updates = []
        params: list = []
        if level is not None:
            if level < 1:
                raise ValueError("level must be at least 1")
            updates.append("level = ?")
            params.append(level)
        if stamina is not None:
            if stamina < 0:
                raise ValueError("stamina must be non-negative")
            updates.append("stamina = ?")
            params.append(stamina)
        if experience is not None:
            updates.append("experience = ?")
            params.append(experience)
        if not updates:
            return
        params.append(user_id)
        self.execute(f"UPDATE users SET {', '.join(updates)} WHERE id = ?;", tuple(params))

    def mark_completed(self, user_id: int, exercise_id: str) -> None:
        self.fetch(user_id)
        self.execute(
            "INSERT OR IGNORE INTO completed_exercises (user_id, exercise_id, completed_at) VALUES (?, ?, ?);",
            (user_id, exercise_id, datetime.datetime.now().isoformat(timespec="seconds")),
        )

    def completed(self, user_id: int) -> Set[str]:
        rows = self.fetch_all(
            "SELECT exercise_id FROM completed_exercises WHERE user_id = ?;",
            (user_id,),
        )
        return {r[0] for r in rows}


class ProfileRepository(BaseRepository):
    """Repository storing each user's capability profile."""

    def save(
        self,
        user_id: int,
        profile: UserCapabilityProfile,
        metrics: Optional[dict] = None,
    ) -> None:
        self.execute(
            "INSERT INTO profiles (user_id, s_rpg, tier, composition_multiplier, estimated_body_fat, metrics, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET s_rpg=excluded.s_rpg, tier=excluded.tier, composition_multiplier=excluded.composition_multiplier, estimated_body_fat=excluded.estimated_body_fat, metrics=excluded.metrics, updated_at=excluded.updated_at;",
            (
                user_id,
                profile.s_rpg,
                resolve_tier(profile.tier).value,
                profile.composition_multiplier,
                profile.estimated_body_fat,
                json.dumps(metrics) if metrics is not None else None,
                datetime.datetime.now().isoformat(timespec="seconds"),
            ),
        )

    def fetch(self, user_id: int) -> UserCapabilityProfile:
        rows = self.fetch_all(
            "SELECT s_rpg, tier, composition_multiplier, estimated_body_fat FROM profiles WHERE user_id = ?;",
            (user_id,),
        )
        if not rows:
            raise NotFoundError(f"profile for user {user_id} not found")
        s_rpg, tier, mult, body_fat = rows[0]
        return UserCapabilityProfile.for_tier(
            tier,
            s_rpg=s_rpg,
            composition_multiplier=mult,
            estimated_body_fat=body_fat,
        )

    def fetch_metrics(self, user_id: int) -> dict:
        rows = self.fetch_all("SELECT metrics FROM profiles WHERE user_id = ?;", (user_id,))
        if not rows:
            raise NotFoundError(f"profile for user {user_id} not found")
        return json.loads(rows[0][0]) if rows[0][0] else {}


class ExerciseHistoryRepository(BaseRepository):
    """Append-only log of completed sets."""

    def add(
        self,
        user_id: int,
        exercise_id: str,
        weight: float,
        reps: int,
        date: str | None = None,
        estimated_1rm: Optional[float] = None,
    ) -> int:
        if weight < 0:
            raise ValueError("weight must be non-negative")
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if estimated_1rm is not None and estimated_1rm < 0:
            raise ValueError("estimated_1rm must be non-negative")
        day = date or datetime.date.today().isoformat()
        datetime.date.fromisoformat(day)
        return self.execute(
            "INSERT INTO exercise_history (user_id, exercise_id, weight, reps, date, estimated_1rm) VALUES (?, ?, ?, ?, ?, ?);",
            (user_id, exercise_id, weight, reps, day, estimated_1rm),
        )

    def fetch_for_user(self, user_id: int) -> List[ExerciseHistoryEntry]:
        rows = self.fetch_all(
            "SELECT exercise_id, weight, reps, date, estimated_1rm FROM exercise_history WHERE user_id = ? ORDER BY id;",
            (user_id,),
        )
        return [
            ExerciseHistoryEntry(
                exercise_id=ex_id,
                weight=float(weight),
                reps=int(reps),
                date=datetime.date.fromisoformat(day),
                estimated_1rm=est,
            )
            for ex_id, weight, reps, day, est in rows
        ]


class QuarterlyCycleRepository(BaseRepository):
    """Stores planned quarterly cycles as JSON documents."""

    def save(self, user_id: int, cycle: QuarterlyCycle) -> int:
        return self.execute(
            "INSERT INTO quarterly_cycles (user_id, created_at, start_date, end_date, data) VALUES (?, ?, ?, ?, ?);",
            (
                user_id,
                datetime.datetime.now().isoformat(timespec="seconds"),
                cycle.start_date.isoformat(),
                cycle.end_date.isoformat(),
                json.dumps(cycle.to_dict()),
            ),
        )

    def fetch_latest(self, user_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, data FROM quarterly_cycles WHERE user_id = ? ORDER BY id DESC LIMIT 1;",
            (user_id,),
        )
        if not rows:
            raise NotFoundError(f"no cycle planned for user {user_id}")
        cycle_id, data = rows[0]
        return {"id": cycle_id, **json.loads(data)}

    def fetch_for_user(self, user_id: int) -> List[dict]:
        rows = self.fetch_all(
            "SELECT id, data FROM quarterly_cycles WHERE user_id = ? ORDER BY id;",
            (user_id,),
        )
        return [{"id": cid, **json.loads(data)} for cid, data in rows]


class SettingsRepository(BaseRepository):
    """Repository for engine settings synchronized with YAML."""

    BOOL_KEYS = {"balance_enabled"}
    OPTIONAL_KEYS = {"max_exercises"}

    def __init__(
        self, db_path: str = "musclerpm.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    @staticmethod
    def encode(value) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "1" if value else "0"
        return str(value)

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict = {}
        for k, v in rows:
            if k in self.BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in self.OPTIONAL_KEYS and v == "":
                result[k] = None
                continue
            try:
                number = float(v)
            except ValueError:
                result[k] = v
                continue
            result[k] = int(number) if number.is_integer() and "." not in v else number
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, self.encode(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()

    def engine_settings(self) -> EngineSettings:
        known = set(EngineSettings.model_fields)
        return validate_settings(
            {k: v for k, v in self.all_settings().items() if k in known}
        )

    def update(self, values: dict) -> EngineSettings:
        """Validate ``values`` merged over current settings and store them."""
        known = set(EngineSettings.model_fields)
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(unknown)}")
        merged = self.engine_settings().model_dump()
        merged.update(values)
        settings = validate_settings(merged)
        with self._connection() as conn:
            for key, value in values.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, self.encode(getattr(settings, key))),
                )
        self._sync_to_yaml()
        return settings
