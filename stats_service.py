from __future__ import annotations
from typing import Dict, List, Optional
from db import BodyWeightRepository, FoodLogRepository, WorkoutRepository, parse_date
from models import ExerciseKind, MealSlot
from tools import MathTools


class StatisticsService:
    """Compute display statistics from the composed workout history."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        body_weight_repo: BodyWeightRepository | None = None,
        food_repo: FoodLogRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.body_weights = body_weight_repo
        self.food_logs = food_repo

    def personal_records(self, limit: int = 3) -> List[Dict[str, object]]:
        """Return the best estimated 1RM per strength exercise, highest first."""
        records: Dict[str, Dict[str, object]] = {}
        for workout in self.workouts.fetch_all_workouts():
            for we in workout.workout_exercises:
                if we.exercise is None or we.exercise.kind != ExerciseKind.STRENGTH:
                    continue
                for s in we.sets:
                    if s.reps < 0:
                        continue
                    est = round(MathTools.epley_1rm(s.weight_kg, s.reps), 2)
                    current = records.get(we.exercise_id)
                    if current is None or est > current["est_1rm"]:
                        records[we.exercise_id] = {
                            "exercise_id": we.exercise_id,
                            "exercise": we.exercise_name,
                            "est_1rm": est,
                            "date": workout.date,
                        }
        result = sorted(records.values(), key=lambda r: r["est_1rm"], reverse=True)
        return result[:limit]

    def exercise_progress(self, exercise_id: str) -> List[Dict[str, float]]:
        """Per-session series for one exercise, oldest first.

        Strength sessions report the best rounded 1RM, endurance sessions the
        distance covered.
        """
        series = []
        for workout in reversed(self.workouts.fetch_all_workouts()):
            we = next(
                (x for x in workout.workout_exercises if x.exercise_id == exercise_id),
                None,
            )
            if we is None or we.exercise is None:
                continue
            if we.exercise.kind == ExerciseKind.STRENGTH:
                best = MathTools.best_1rm(
                    [(s.reps, s.weight_kg) for s in we.sets if s.reps >= 0]
                )
                series.append({"date": workout.date, "value": round(best)})
            elif we.running_log is not None:
                series.append(
                    {"date": workout.date, "value": we.running_log.distance_km}
                )
        return series

    @staticmethod
    def _macro_totals(logs) -> Dict[str, float]:
        totals = {"calories": 0.0, "protein_g": 0.0, "carbs_g": 0.0, "fats_g": 0.0}
        for log in logs:
            totals["calories"] += log.calories
            totals["protein_g"] += log.protein_g
            totals["carbs_g"] += log.carbs_g
            totals["fats_g"] += log.fats_g
        return {k: round(v, 1) for k, v in totals.items()}

    def daily_nutrition(self, date: str) -> Dict[str, float]:
        logs = self.food_logs.fetch_for_date(date) if self.food_logs is not None else []
        return self._macro_totals(logs)

    def nutrition_by_slot(self, date: str) -> Dict[MealSlot, Dict[str, float]]:
        """Macro totals for ``date`` per meal slot, every slot present."""
        logs = self.food_logs.fetch_for_date(date) if self.food_logs is not None else []
        return {
            slot: self._macro_totals(log for log in logs if log.meal_slot == slot)
            for slot in MealSlot
        }

    def workouts_in_month(self, year: int, month: int) -> int:
        count = 0
        for workout in self.workouts.fetch_all_workouts():
            day = parse_date(workout.date)
            if day.year == year and day.month == month:
                count += 1
        return count

    def latest_body_weight(self) -> Optional[float]:
        if self.body_weights is None:
            return None
        return self.body_weights.fetch_latest_weight()
