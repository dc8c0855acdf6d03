import sqlite3
import datetime
import json
import logging
import uuid
from contextlib import contextmanager
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from models import (
    REQUIRED_TABLES,
    BodyWeightLog,
    DBState,
    Exercise,
    ExerciseEntry,
    ExerciseKind,
    FoodLog,
    LastPerformance,
    MealSlot,
    Routine,
    RunningInput,
    RunningLog,
    SetInput,
    Workout,
    WorkoutExercise,
    WorkoutExerciseView,
    WorkoutInput,
    WorkoutSet,
    WorkoutView,
    coerce_number,
)

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "miprogreso_db"


def seed_state(now: str | None = None) -> DBState:
    """Return the data a fresh installation starts with."""
    created = now or datetime.datetime.now().isoformat(timespec="seconds")
    return DBState(
        exercises=[
            Exercise(id="e1", name="Bench Press", kind=ExerciseKind.STRENGTH, created_at=created),
            Exercise(id="e2", name="Squat", kind=ExerciseKind.STRENGTH, created_at=created),
            Exercise(id="e3", name="Outdoor Run", kind=ExerciseKind.ENDURANCE, created_at=created),
        ],
        routines=[
            Routine(id="r1", name="Strength Routine A", exercise_ids=["e1", "e2"], created_at=created),
        ],
    )


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "kv_store": (
            """CREATE TABLE kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "tracker.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
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
        if existing_cols != columns:
            raise ValueError(f"unexpected layout for table {table}: {existing_cols}")

    @property
    def db_path(self) -> str:
        return self._db_path


class BlobStore(Database):
    """Holds the whole tracker state as one JSON blob under a single key."""

    def __init__(
        self,
        db_path: str = "tracker.db",
        storage_key: str = DEFAULT_STORAGE_KEY,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ) -> None:
        super().__init__(db_path)
        self.storage_key = storage_key
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._clock = clock or datetime.datetime.now

    def new_id(self) -> str:
        return self._id_factory()

    def now(self) -> str:
        return self._clock().isoformat(timespec="seconds")

    def today(self) -> str:
        return self._clock().date().isoformat()

    def read_raw(self) -> str | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?;", (self.storage_key,)
            ).fetchone()
        return row[0] if row else None

    def write_raw(self, text: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                (self.storage_key, text),
            )

    def load(self) -> DBState:
        """Return the stored state, or the seed state when nothing is stored."""
        raw = self.read_raw()
        if raw is None:
            logger.debug("no snapshot under %s, using seed state", self.storage_key)
            return seed_state(self.now())
        try:
            return DBState.model_validate_json(raw)
        except ValidationError as e:
            raise ValueError(f"stored snapshot is corrupt: {e}") from e

    def save(self, state: DBState) -> None:
        """Overwrite the stored snapshot with ``state``."""
        self.write_raw(state.model_dump_json())
        logger.debug(
            "saved snapshot: %d workouts, %d sets",
            len(state.workouts),
            len(state.sets),
        )


class BaseRepository:
    """Base repository bound to a shared store handle."""

    def __init__(self, store: BlobStore) -> None:
        self.store = store

    def _load(self) -> DBState:
        return self.store.load()

    def _save(self, state: DBState) -> None:
        self.store.save(state)


def parse_date(value: str | None) -> datetime.date:
    try:
        return datetime.date.fromisoformat((value or "")[:10])
    except ValueError:
        return datetime.date.min


def _group_by(rows: Iterable, attr: str) -> dict:
    index: dict = {}
    for row in rows:
        index.setdefault(getattr(row, attr), []).append(row)
    return index


def compose_workouts(state: DBState) -> List[WorkoutView]:
    """Join the flat tables into nested workout views, newest first."""
    exercises = {e.id: e for e in state.exercises}
    by_workout = _group_by(state.workout_exercises, "workout_id")
    sets_by_we = _group_by(state.sets, "workout_exercise_id")
    runs_by_we = {r.workout_exercise_id: r for r in reversed(state.running_logs)}

    views: list[WorkoutView] = []
    for workout in state.workouts:
        children = sorted(by_workout.get(workout.id, []), key=lambda we: we.order_index)
        views.append(
            WorkoutView(
                **workout.model_dump(),
                workout_exercises=[
                    WorkoutExerciseView(
                        **we.model_dump(),
                        exercise=exercises.get(we.exercise_id),
                        sets=sorted(
                            sets_by_we.get(we.id, []), key=lambda s: s.set_index
                        ),
                        running_log=runs_by_we.get(we.id),
                    )
                    for we in children
                ],
            )
        )
    # equal dates keep insertion order
    return sorted(views, key=lambda w: parse_date(w.date), reverse=True)


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog."""

    def add(self, name: str, kind: ExerciseKind | str) -> Exercise:
        if not name or not name.strip():
            raise ValueError("exercise name required")
        try:
            kind = ExerciseKind(kind)
        except ValueError:
            raise ValueError(f"unknown exercise kind: {kind}")
        state = self._load()
        exercise = Exercise(
            id=self.store.new_id(),
            name=name.strip(),
            kind=kind,
            created_at=self.store.now(),
        )
        state.exercises.append(exercise)
        self._save(state)
        return exercise

    def fetch_all(self) -> list[Exercise]:
        return self._load().exercises

    def fetch(self, exercise_id: str) -> Exercise | None:
        for exercise in self._load().exercises:
            if exercise.id == exercise_id:
                return exercise
        return None

    def delete(self, exercise_id: str) -> bool:
        """Remove the exercise row only; history and routines keep the id."""
        state = self._load()
        remaining = [e for e in state.exercises if e.id != exercise_id]
        removed = len(remaining) != len(state.exercises)
        state.exercises = remaining
        self._save(state)
        return removed


class RoutineRepository(BaseRepository):
    """Repository for named exercise lists."""

    def add(self, name: str, exercise_ids: list[str]) -> Routine:
        if not exercise_ids:
            raise ValueError("routine needs at least one exercise")
        state = self._load()
        routine = Routine(
            id=self.store.new_id(),
            name=name,
            exercise_ids=list(exercise_ids),
            created_at=self.store.now(),
        )
        state.routines.append(routine)
        self._save(state)
        return routine

    def fetch_all(self) -> list[Routine]:
        return self._load().routines

    def fetch(self, routine_id: str) -> Routine | None:
        for routine in self._load().routines:
            if routine.id == routine_id:
                return routine
        return None

    def delete(self, routine_id: str) -> bool:
        """Remove the routine row only; workouts keep their ``routine_id``."""
        state = self._load()
        remaining = [r for r in state.routines if r.id != routine_id]
        removed = len(remaining) != len(state.routines)
        state.routines = remaining
        self._save(state)
        return removed


class WorkoutRepository(BaseRepository):
    """Repository for workouts and the rows they own."""

    def fetch_all_workouts(self, routine_id: str | None = None) -> List[WorkoutView]:
        """Return composed workouts, optionally only those started from ``routine_id``."""
        views = compose_workouts(self._load())
        if routine_id is None:
            return views
        return [v for v in views if v.routine_id == routine_id]

    def fetch_workout(self, workout_id: str) -> WorkoutView | None:
        for view in self.fetch_all_workouts():
            if view.id == workout_id:
                return view
        return None

    @staticmethod
    def _drop_children(state: DBState, workout_id: str) -> None:
        owned = {we.id for we in state.workout_exercises if we.workout_id == workout_id}
        state.workout_exercises = [
            we for we in state.workout_exercises if we.workout_id != workout_id
        ]
        state.sets = [s for s in state.sets if s.workout_exercise_id not in owned]
        state.running_logs = [
            r for r in state.running_logs if r.workout_exercise_id not in owned
        ]

    def save_workout(
        self,
        workout: WorkoutInput | dict,
        entries: Iterable[ExerciseEntry | dict] = (),
    ) -> Workout:
        """Upsert ``workout`` and replace all of its exercises, sets and runs.

        Child rows are always deleted and recreated with fresh ids, so the
        stored workout mirrors ``entries`` exactly.
        """
        data = WorkoutInput.model_validate(workout)
        items = [ExerciseEntry.model_validate(e) for e in entries]
        state = self._load()
        workout_id = data.id or self.store.new_id()

        existing_index = next(
            (i for i, w in enumerate(state.workouts) if w.id == workout_id), None
        )
        created_at = data.created_at
        if created_at is None and existing_index is not None:
            created_at = state.workouts[existing_index].created_at
        row = Workout(
            id=workout_id,
            routine_id=data.routine_id,
            date=data.date or self.store.today(),
            notes=data.notes or "",
            created_at=created_at or self.store.now(),
        )
        if existing_index is not None:
            state.workouts[existing_index] = row
        else:
            state.workouts.append(row)

        self._drop_children(state, workout_id)

        kinds = {e.id: e.kind for e in state.exercises}
        for order_index, entry in enumerate(items):
            we_id = self.store.new_id()
            state.workout_exercises.append(
                WorkoutExercise(
                    id=we_id,
                    workout_id=workout_id,
                    exercise_id=entry.exercise_id,
                    order_index=order_index,
                )
            )
            kind = kinds.get(entry.exercise_id)
            if kind in (ExerciseKind.STRENGTH, None):
                for set_index, set_data in enumerate(entry.sets):
                    state.sets.append(
                        WorkoutSet(
                            id=self.store.new_id(),
                            workout_exercise_id=we_id,
                            set_index=set_index,
                            reps=set_data.reps,
                            weight_kg=set_data.weight_kg,
                        )
                    )
            if kind in (ExerciseKind.ENDURANCE, None) and entry.running_log is not None:
                run = entry.running_log
                state.running_logs.append(
                    RunningLog(
                        id=self.store.new_id(),
                        workout_exercise_id=we_id,
                        distance_km=run.distance_km,
                        time_minutes=run.time_minutes,
                        avg_heart_rate=run.avg_heart_rate,
                    )
                )

        self._save(state)
        return row

    def delete(self, workout_id: str) -> bool:
        state = self._load()
        remaining = [w for w in state.workouts if w.id != workout_id]
        removed = len(remaining) != len(state.workouts)
        state.workouts = remaining
        self._drop_children(state, workout_id)
        self._save(state)
        return removed

    def last_performance(
        self, exercise_id: str, exclude_workout_id: str | None = None
    ) -> LastPerformance:
        """Return the sets/run of the latest workout that included ``exercise_id``.

        Among workouts sharing the latest date the row stored last wins.
        """
        state = self._load()
        workouts = {w.id: w for w in state.workouts}
        best: WorkoutExercise | None = None
        best_key = datetime.date.min
        for we in state.workout_exercises:
            if we.exercise_id != exercise_id or we.workout_id == exclude_workout_id:
                continue
            owner = workouts.get(we.workout_id)
            key = parse_date(owner.date if owner else None)
            if best is None or key >= best_key:
                best, best_key = we, key
        if best is None:
            return LastPerformance()
        owner = workouts.get(best.workout_id)
        return LastPerformance(
            workout_id=best.workout_id,
            date=owner.date if owner else None,
            sets=sorted(
                (s for s in state.sets if s.workout_exercise_id == best.id),
                key=lambda s: s.set_index,
            ),
            running_log=next(
                (r for r in state.running_logs if r.workout_exercise_id == best.id),
                None,
            ),
        )

    def draft_from_routine(self, routine_id: str) -> list[ExerciseEntry]:
        """Build pre-filled entries for a new workout from a routine."""
        state = self._load()
        routine = next((r for r in state.routines if r.id == routine_id), None)
        if routine is None:
            return []
        exercises = {e.id: e for e in state.exercises}
        entries: list[ExerciseEntry] = []
        for exercise_id in routine.exercise_ids:
            exercise = exercises.get(exercise_id)
            if exercise is None:
                continue
            last = self.last_performance(exercise_id)
            if exercise.kind == ExerciseKind.STRENGTH:
                sets = [SetInput(reps=s.reps, weight_kg=s.weight_kg) for s in last.sets]
                entries.append(
                    ExerciseEntry(exercise_id=exercise_id, sets=sets or [SetInput()])
                )
            else:
                run = last.running_log
                entries.append(
                    ExerciseEntry(
                        exercise_id=exercise_id,
                        running_log=RunningInput(
                            distance_km=run.distance_km,
                            time_minutes=run.time_minutes,
                            avg_heart_rate=run.avg_heart_rate,
                        )
                        if run is not None
                        else RunningInput(),
                    )
                )
        return entries


class BodyWeightRepository(BaseRepository):
    """Repository for body weight logs."""

    def log(self, weight_kg: float, date: str, notes: str | None = None) -> BodyWeightLog:
        weight = coerce_number(weight_kg)
        if weight <= 0:
            raise ValueError("weight must be positive")
        state = self._load()
        entry = BodyWeightLog(
            id=self.store.new_id(),
            date=date,
            weight_kg=weight,
            notes=notes,
            created_at=self.store.now(),
        )
        state.body_weight_logs.append(entry)
        self._save(state)
        return entry

    def fetch_history(self) -> list[BodyWeightLog]:
        logs = self._load().body_weight_logs
        return sorted(logs, key=lambda entry: parse_date(entry.date), reverse=True)

    def fetch_latest_weight(self) -> float | None:
        """Return the most recent logged body weight if available."""
        history = self.fetch_history()
        if history:
            return history[0].weight_kg
        return None

    def delete(self, entry_id: str) -> bool:
        state = self._load()
        remaining = [b for b in state.body_weight_logs if b.id != entry_id]
        removed = len(remaining) != len(state.body_weight_logs)
        state.body_weight_logs = remaining
        self._save(state)
        return removed


class FoodLogRepository(BaseRepository):
    """Repository for meal entries."""

    def add(
        self,
        date: str,
        name: str,
        calories: float,
        protein_g: float = 0.0,
        carbs_g: float = 0.0,
        fats_g: float = 0.0,
        meal_slot: MealSlot | str = MealSlot.BREAKFAST,
    ) -> FoodLog:
        kcal = coerce_number(calories)
        if kcal < 0:
            raise ValueError("calories must not be negative")
        try:
            meal_slot = MealSlot(meal_slot)
        except ValueError:
            raise ValueError(f"unknown meal slot: {meal_slot}")
        state = self._load()
        entry = FoodLog(
            id=self.store.new_id(),
            date=date,
            name=name,
            calories=kcal,
            protein_g=coerce_number(protein_g),
            carbs_g=coerce_number(carbs_g),
            fats_g=coerce_number(fats_g),
            meal_slot=meal_slot,
            created_at=self.store.now(),
        )
        state.food_logs.append(entry)
        self._save(state)
        return entry

    def fetch_all(self) -> list[FoodLog]:
        return self._load().food_logs

    def fetch_for_date(self, date: str) -> list[FoodLog]:
        return [f for f in self._load().food_logs if f.date == date]

    def delete(self, entry_id: str) -> bool:
        state = self._load()
        remaining = [f for f in state.food_logs if f.id != entry_id]
        removed = len(remaining) != len(state.food_logs)
        state.food_logs = remaining
        self._save(state)
        return removed


class SnapshotRepository(BaseRepository):
    """Whole-store export, import and reset."""

    def __init__(self, store: BlobStore, indent: int = 2) -> None:
        super().__init__(store)
        self.indent = indent

    def export_data(self) -> str:
        return self._load().model_dump_json(indent=self.indent)

    def import_data(self, text: str) -> bool:
        """Replace the store with ``text``; return ``False`` and keep it on bad input."""
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            logger.warning("import failed: %s", e)
            return False
        if not isinstance(data, dict):
            logger.warning("import failed: snapshot is not an object")
            return False
        missing = [t for t in REQUIRED_TABLES if data.get(t) is None]
        if missing:
            logger.warning("import failed: missing tables %s", ", ".join(missing))
            return False
        try:
            state = DBState.model_validate(data)
        except ValidationError as e:
            logger.warning("import failed: %s", e)
            return False
        self._save(state)
        return True

    def reset_data(self) -> None:
        logger.info("resetting store %s to seed data", self.store.storage_key)
        self._save(seed_state(self.store.now()))
