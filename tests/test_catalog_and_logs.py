import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    BlobStore,
    BodyWeightRepository,
    ExerciseRepository,
    FoodLogRepository,
    RoutineRepository,
)
from models import ExerciseKind, MealSlot


class CatalogAndLogsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_catalog_and_logs.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.store = BlobStore(self.db_path)
        self.exercises = ExerciseRepository(self.store)
        self.routines = RoutineRepository(self.store)
        self.body_weights = BodyWeightRepository(self.store)
        self.food = FoodLogRepository(self.store)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_exercise_crud(self) -> None:
        added = self.exercises.add("  Deadlift ", "strength")
        self.assertEqual(added.name, "Deadlift")
        self.assertEqual(added.kind, ExerciseKind.STRENGTH)
        self.assertEqual(len(self.exercises.fetch_all()), 4)
        self.assertEqual(self.exercises.fetch(added.id), added)
        self.assertTrue(self.exercises.delete(added.id))
        self.assertIsNone(self.exercises.fetch(added.id))
        self.assertFalse(self.exercises.delete(added.id))

    def test_exercise_validation(self) -> None:
        with self.assertRaises(ValueError):
            self.exercises.add("", ExerciseKind.STRENGTH)
        with self.assertRaises(ValueError):
            self.exercises.add("   ", ExerciseKind.STRENGTH)
        with self.assertRaises(ValueError):
            self.exercises.add("Swim", "swimming")
        self.assertIsNone(self.store.read_raw())

    def test_routine_crud(self) -> None:
        routine = self.routines.add("Legs", ["e2", "e3"])
        self.assertEqual(self.routines.fetch(routine.id).exercise_ids, ["e2", "e3"])
        self.assertEqual([r.id for r in self.routines.fetch_all()], ["r1", routine.id])
        self.assertTrue(self.routines.delete(routine.id))
        self.assertIsNone(self.routines.fetch(routine.id))
        with self.assertRaises(ValueError):
            self.routines.add("Empty", [])

    def test_body_weight_history(self) -> None:
        self.assertIsNone(self.body_weights.fetch_latest_weight())
        self.body_weights.log(80.0, "2024-01-01")
        latest = self.body_weights.log("79.4", "2024-01-15", notes="morning")
        self.body_weights.log(80.6, "2024-01-08")
        history = self.body_weights.fetch_history()
        self.assertEqual([h.date for h in history], ["2024-01-15", "2024-01-08", "2024-01-01"])
        self.assertEqual(self.body_weights.fetch_latest_weight(), 79.4)
        self.assertTrue(self.body_weights.delete(latest.id))
        self.assertEqual(self.body_weights.fetch_latest_weight(), 80.6)

    def test_body_weight_must_be_positive(self) -> None:
        for value in (0, -3, "heavy"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    self.body_weights.log(value, "2024-01-01")

    def test_food_logs(self) -> None:
        first = self.food.add("2024-01-01", "Oats", 350, 12, 60, 6)
        self.food.add("2024-01-01", "Chicken", "520", 45, 10, 20, meal_slot="dinner")
        self.food.add("2024-01-02", "Eggs", 200, meal_slot=MealSlot.BREAKFAST)
        self.assertEqual(first.meal_slot, MealSlot.BREAKFAST)
        day = self.food.fetch_for_date("2024-01-01")
        self.assertEqual([f.name for f in day], ["Oats", "Chicken"])
        self.assertEqual(day[1].calories, 520.0)
        self.assertEqual(len(self.food.fetch_all()), 3)
        self.assertTrue(self.food.delete(first.id))
        self.assertEqual(len(self.food.fetch_for_date("2024-01-01")), 1)

    def test_food_log_validation(self) -> None:
        with self.assertRaises(ValueError):
            self.food.add("2024-01-01", "Debt", -10)
        with self.assertRaises(ValueError):
            self.food.add("2024-01-01", "Tapas", 100, meal_slot="elevenses")


if __name__ == "__main__":
    unittest.main()
