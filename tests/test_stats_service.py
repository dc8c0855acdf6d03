import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    BlobStore,
    BodyWeightRepository,
    ExerciseRepository,
    FoodLogRepository,
    WorkoutRepository,
)
from models import MealSlot
from stats_service import StatisticsService


class StatisticsServiceTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_stats_service.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.store = BlobStore(self.db_path)
        self.workouts = WorkoutRepository(self.store)
        self.body_weights = BodyWeightRepository(self.store)
        self.food = FoodLogRepository(self.store)
        self.stats = StatisticsService(self.workouts, self.body_weights, self.food)
        self.workouts.save_workout(
            {"date": "2024-01-01"},
            [
                {"exercise_id": "e1", "sets": [{"reps": 5, "weight_kg": 100}, {"reps": 1, "weight_kg": 110}]},
                {"exercise_id": "e2", "sets": [{"reps": 8, "weight_kg": 120}]},
                {"exercise_id": "e3", "running_log": {"distance_km": 5, "time_minutes": 27}},
            ],
        )
        self.workouts.save_workout(
            {"date": "2024-02-01"},
            [
                {"exercise_id": "e1", "sets": [{"reps": 3, "weight_kg": 110}]},
                {"exercise_id": "e3", "running_log": {"distance_km": 7.5, "time_minutes": 40}},
            ],
        )

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_personal_records(self) -> None:
        records = self.stats.personal_records()
        self.assertEqual([r["exercise_id"] for r in records], ["e2", "e1"])
        self.assertEqual(records[0]["est_1rm"], 152.0)
        self.assertEqual(records[1]["est_1rm"], 121.0)
        self.assertEqual(records[1]["date"], "2024-02-01")
        self.assertEqual(records[1]["exercise"], "Bench Press")
        self.assertEqual(len(self.stats.personal_records(limit=1)), 1)

    def test_exercise_progress(self) -> None:
        self.assertEqual(
            self.stats.exercise_progress("e1"),
            [{"date": "2024-01-01", "value": 117}, {"date": "2024-02-01", "value": 121}],
        )
        self.assertEqual(
            self.stats.exercise_progress("e3"),
            [{"date": "2024-01-01", "value": 5.0}, {"date": "2024-02-01", "value": 7.5}],
        )

    def test_deleted_exercise_is_skipped(self) -> None:
        ExerciseRepository(self.store).delete("e2")
        self.assertEqual(self.stats.exercise_progress("e2"), [])
        self.assertEqual([r["exercise_id"] for r in self.stats.personal_records()], ["e1"])

    def test_daily_nutrition(self) -> None:
        self.food.add("2024-01-01", "Oats", 300, 20, 50, 5)
        self.food.add("2024-01-01", "Salmon", 450.5, 30.2, 0, 25, meal_slot="dinner")
        self.food.add("2024-01-02", "Toast", 150)
        totals = self.stats.daily_nutrition("2024-01-01")
        self.assertEqual(totals["calories"], 750.5)
        self.assertAlmostEqual(totals["protein_g"], 50.2)
        self.assertEqual(totals["carbs_g"], 50.0)
        self.assertEqual(totals["fats_g"], 30.0)
        self.assertEqual(self.stats.daily_nutrition("2023-12-31")["calories"], 0.0)

    def test_negative_reps_from_import_are_ignored(self) -> None:
        state = self.store.load()
        for s in state.sets:
            s.reps = -3
        self.store.save(state)
        self.assertEqual(self.stats.personal_records(), [])
        self.assertEqual(
            self.stats.exercise_progress("e1"),
            [{"date": "2024-01-01", "value": 0}, {"date": "2024-02-01", "value": 0}],
        )

    def test_workouts_in_month(self) -> None:
        self.workouts.save_workout({"date": "2024-02-20"})
        self.workouts.save_workout({"date": "2025-02-03"})
        self.assertEqual(self.stats.workouts_in_month(2024, 2), 2)
        self.assertEqual(self.stats.workouts_in_month(2024, 1), 1)
        self.assertEqual(self.stats.workouts_in_month(2025, 2), 1)
        self.assertEqual(self.stats.workouts_in_month(2024, 3), 0)

    def test_nutrition_by_slot(self) -> None:
        self.food.add("2024-01-01", "Oats", 300, 20, 50, 5)
        self.food.add("2024-01-01", "Coffee", 40, meal_slot="breakfast")
        self.food.add("2024-01-01", "Salmon", 450, 30, 0, 25, meal_slot="dinner")
        self.food.add("2024-01-02", "Toast", 150, meal_slot="dinner")
        by_slot = self.stats.nutrition_by_slot("2024-01-01")
        self.assertEqual(list(by_slot), list(MealSlot))
        self.assertEqual(by_slot[MealSlot.BREAKFAST]["calories"], 340.0)
        self.assertEqual(by_slot[MealSlot.DINNER]["fats_g"], 25.0)
        self.assertEqual(by_slot[MealSlot.LUNCH]["calories"], 0.0)

    def test_latest_body_weight(self) -> None:
        self.assertIsNone(self.stats.latest_body_weight())
        self.body_weights.log(82.0, "2024-01-01")
        self.body_weights.log(81.5, "2024-01-05")
        self.assertEqual(self.stats.latest_body_weight(), 81.5)
        self.assertIsNone(StatisticsService(self.workouts).latest_body_weight())


if __name__ == "__main__":
    unittest.main()
