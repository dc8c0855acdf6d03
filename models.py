from __future__ import annotations

import math
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ExerciseKind(str, Enum):
    STRENGTH = "strength"
    ENDURANCE = "endurance"


class MealSlot(str, Enum):
    BREAKFAST = "breakfast"
    BRUNCH = "brunch"
    LUNCH = "lunch"
    SNACK = "snack"
    DINNER = "dinner"


# Field values written by the first (Spanish) release of the app.
LEGACY_EXERCISE_TYPES = {"gym": ExerciseKind.STRENGTH, "running": ExerciseKind.ENDURANCE}
LEGACY_MEAL_TYPES = {
    "desayuno": MealSlot.BREAKFAST,
    "almuerzo": MealSlot.BRUNCH,
    "comida": MealSlot.LUNCH,
    "merienda": MealSlot.SNACK,
    "cena": MealSlot.DINNER,
}

REQUIRED_TABLES = ("exercises", "workouts", "routines")
OPTIONAL_TABLES = (
    "workout_exercises",
    "sets",
    "running_logs",
    "body_weight_logs",
    "food_logs",
)


def coerce_number(value: Any) -> float:
    """Return ``value`` as a float, or ``0.0`` when it is not numeric."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def coerce_int(value: Any) -> int:
    return int(coerce_number(value))


class Record(BaseModel):
    """Base for flat table rows."""

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)


class Exercise(Record):
    id: str
    name: str
    kind: ExerciseKind
    created_at: str

    @model_validator(mode="before")
    @classmethod
    def _legacy_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "kind" not in data and "type" in data:
            data = dict(data)
            data["kind"] = LEGACY_EXERCISE_TYPES.get(data["type"], data["type"])
        return data


class Routine(Record):
    id: str
    name: str
    exercise_ids: List[str] = Field(default_factory=list)
    created_at: str


class Workout(Record):
    id: str
    routine_id: Optional[str] = None
    date: str
    notes: Optional[str] = None
    created_at: str


class WorkoutExercise(Record):
    id: str
    workout_id: str
    exercise_id: str
    order_index: int


class WorkoutSet(Record):
    id: str
    workout_exercise_id: str
    set_index: int
    reps: int
    weight_kg: float


class RunningLog(Record):
    id: str
    workout_exercise_id: str
    distance_km: float
    time_minutes: float
    avg_heart_rate: Optional[float] = None


class BodyWeightLog(Record):
    id: str
    date: str
    weight_kg: float
    notes: Optional[str] = None
    created_at: str


class FoodLog(Record):
    id: str
    date: str
    name: str
    calories: float
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fats_g: float = 0.0
    meal_slot: MealSlot
    created_at: str

    @model_validator(mode="before")
    @classmethod
    def _legacy_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "meal_slot" not in data and "type" in data:
            data = dict(data)
            data["meal_slot"] = LEGACY_MEAL_TYPES.get(data["type"], data["type"])
        return data


class DBState(BaseModel):
    """Every table of the store, in serialization order."""

    exercises: List[Exercise] = Field(default_factory=list)
    workouts: List[Workout] = Field(default_factory=list)
    workout_exercises: List[WorkoutExercise] = Field(default_factory=list)
    sets: List[WorkoutSet] = Field(default_factory=list)
    running_logs: List[RunningLog] = Field(default_factory=list)
    body_weight_logs: List[BodyWeightLog] = Field(default_factory=list)
    routines: List[Routine] = Field(default_factory=list)
    food_logs: List[FoodLog] = Field(default_factory=list)

    @field_validator(*OPTIONAL_TABLES, mode="before")
    @classmethod
    def _missing_table(cls, value: Any) -> Any:
        return [] if value is None else value


# ---- read side -------------------------------------------------------------


class WorkoutExerciseView(WorkoutExercise):
    exercise: Optional[Exercise] = None
    sets: List[WorkoutSet] = Field(default_factory=list)
    running_log: Optional[RunningLog] = None

    @property
    def exercise_name(self) -> str:
        return self.exercise.name if self.exercise is not None else "deleted"


class WorkoutView(Workout):
    workout_exercises: List[WorkoutExerciseView] = Field(default_factory=list)


class LastPerformance(BaseModel):
    """Most recent performance of one exercise, used to pre-fill a new entry."""

    workout_id: Optional[str] = None
    date: Optional[str] = None
    sets: List[WorkoutSet] = Field(default_factory=list)
    running_log: Optional[RunningLog] = None

    @property
    def is_empty(self) -> bool:
        return self.workout_id is None


# ---- write side ------------------------------------------------------------


class SetInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reps: int = 0
    weight_kg: float = 0.0

    @field_validator("reps", mode="before")
    @classmethod
    def _reps(cls, value: Any) -> int:
        return max(0, coerce_int(value))

    @field_validator("weight_kg", mode="before")
    @classmethod
    def _weight(cls, value: Any) -> float:
        return max(0.0, coerce_number(value))


class RunningInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    distance_km: float = 0.0
    time_minutes: float = 0.0
    avg_heart_rate: Optional[float] = None

    @field_validator("distance_km", "time_minutes", mode="before")
    @classmethod
    def _number(cls, value: Any) -> float:
        return coerce_number(value)

    @field_validator("avg_heart_rate", mode="before")
    @classmethod
    def _heart_rate(cls, value: Any) -> Optional[float]:
        number = coerce_number(value)
        return number or None


class ExerciseEntry(BaseModel):
    """One exercise of a workout as submitted by the caller."""

    model_config = ConfigDict(extra="ignore")

    exercise_id: str
    sets: List[SetInput] = Field(default_factory=list)
    running_log: Optional[RunningInput] = None

    @field_validator("sets", mode="before")
    @classmethod
    def _no_sets(cls, value: Any) -> Any:
        return [] if value is None else value


class WorkoutInput(BaseModel):
    """Partial workout record; ``id`` present means update."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    routine_id: Optional[str] = None
    date: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
