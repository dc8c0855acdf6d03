import argparse
import datetime
import logging
import shutil
import sys

from config import YamlConfig
from db import (
    DEFAULT_STORAGE_KEY,
    BlobStore,
    BodyWeightRepository,
    FoodLogRepository,
    SnapshotRepository,
    WorkoutRepository,
)
from stats_service import StatisticsService
from tools import MathTools, WeightConverter


def export_snapshot(
    db_path: str,
    out_path: str,
    indent: int = 2,
    storage_key: str = DEFAULT_STORAGE_KEY,
) -> None:
    snapshots = SnapshotRepository(BlobStore(db_path, storage_key), indent=indent)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(snapshots.export_data())


def import_snapshot(
    db_path: str, in_path: str, storage_key: str = DEFAULT_STORAGE_KEY
) -> bool:
    with open(in_path, "r", encoding="utf-8") as f:
        text = f.read()
    return SnapshotRepository(BlobStore(db_path, storage_key)).import_data(text)


def reset_store(db_path: str, storage_key: str = DEFAULT_STORAGE_KEY) -> None:
    SnapshotRepository(BlobStore(db_path, storage_key)).reset_data()


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(db_path: str, storage_key: str = DEFAULT_STORAGE_KEY) -> bool:
    """Populate the store with a demo workout if it has none."""
    workouts = WorkoutRepository(BlobStore(db_path, storage_key))
    if workouts.fetch_all_workouts():
        print("Store already contains workouts")
        return False
    today = datetime.date.today().isoformat()
    workouts.save_workout(
        {"date": today, "routine_id": "r1", "notes": "Demo session"},
        [
            {
                "exercise_id": "e1",
                "sets": [
                    {"reps": 5, "weight_kg": 100},
                    {"reps": 5, "weight_kg": 105},
                ],
            },
            {"exercise_id": "e2", "sets": [{"reps": 8, "weight_kg": 120}]},
            {
                "exercise_id": "e3",
                "running_log": {"distance_km": 5, "time_minutes": 27.5},
            },
        ],
    )
    print("Demo data inserted")
    return True


def format_history(
    db_path: str,
    unit: str = "kg",
    storage_key: str = DEFAULT_STORAGE_KEY,
    routine_id: str | None = None,
) -> list[str]:
    lines: list[str] = []
    workouts = WorkoutRepository(BlobStore(db_path, storage_key))
    for workout in workouts.fetch_all_workouts(routine_id):
        header = f"{workout.date}  {workout.id}"
        if workout.notes:
            header += f"  {workout.notes}"
        lines.append(header)
        for we in workout.workout_exercises:
            if we.running_log is not None:
                run = we.running_log
                pace = MathTools.pace(run.distance_km, run.time_minutes)
                detail = f"{run.distance_km} km in {run.time_minutes} min"
                if pace is not None:
                    detail += f" ({pace:.2f} min/km)"
            else:
                detail = ", ".join(
                    f"{s.reps}x{WeightConverter.display(s.weight_kg, unit)}"
                    for s in we.sets
                )
                volume = MathTools.volume([(s.reps, s.weight_kg) for s in we.sets])
                if volume:
                    detail += f" (volume {WeightConverter.display(volume, unit)})"
            lines.append(f"  {we.exercise_name}: {detail}")
    return lines


def format_last_performance(
    db_path: str,
    exercise_id: str,
    unit: str = "kg",
    storage_key: str = DEFAULT_STORAGE_KEY,
) -> list[str]:
    last = WorkoutRepository(BlobStore(db_path, storage_key)).last_performance(exercise_id)
    if last.is_empty:
        return [f"No previous session for {exercise_id}"]
    lines = [f"Last session {last.date}"]
    for s in last.sets:
        lines.append(f"  set {s.set_index + 1}: {s.reps}x{WeightConverter.display(s.weight_kg, unit)}")
    if last.running_log is not None:
        lines.append(
            f"  {last.running_log.distance_km} km in {last.running_log.time_minutes} min"
        )
    return lines


def _statistics(db_path: str, storage_key: str) -> StatisticsService:
    store = BlobStore(db_path, storage_key)
    return StatisticsService(
        WorkoutRepository(store),
        BodyWeightRepository(store),
        FoodLogRepository(store),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Tracker data utilities")
    parser.add_argument("--config", default="settings.yaml")
    parser.add_argument("--db", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--out", required=True)

    imp = sub.add_parser("import")
    imp.add_argument("--in", dest="src", required=True)

    rst = sub.add_parser("reset")
    rst.add_argument("--yes", action="store_true")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rsto = sub.add_parser("restore")
    rsto.add_argument("--in", dest="src", default="backup.db")

    sub.add_parser("demo")
    hist = sub.add_parser("history")
    hist.add_argument("--routine", default=None)

    sub.add_parser("summary")

    last = sub.add_parser("last")
    last.add_argument("--exercise", required=True)

    rec = sub.add_parser("records")
    rec.add_argument("--limit", type=int, default=3)

    nut = sub.add_parser("nutrition")
    nut.add_argument("--date", default=datetime.date.today().isoformat())

    args = parser.parse_args(argv)
    settings = YamlConfig(args.config).settings()
    logging.basicConfig(level=settings.log_level)
    db_path = args.db or settings.db_path
    key = settings.storage_key

    if args.cmd == "export":
        export_snapshot(db_path, args.out, settings.export_indent, key)
    elif args.cmd == "import":
        if not import_snapshot(db_path, args.src, key):
            print("Import failed: not a valid snapshot", file=sys.stderr)
            return 1
        print("Import complete")
    elif args.cmd == "reset":
        if not args.yes:
            print("Refusing to erase all data without --yes", file=sys.stderr)
            return 1
        reset_store(db_path, key)
    elif args.cmd == "backup":
        backup_db(db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, db_path)
    elif args.cmd == "demo":
        demo_data(db_path, key)
    elif args.cmd == "history":
        print("\n".join(format_history(db_path, settings.weight_unit, key, args.routine)))
    elif args.cmd == "last":
        print(
            "\n".join(
                format_last_performance(db_path, args.exercise, settings.weight_unit, key)
            )
        )
    elif args.cmd == "records":
        for rec_row in _statistics(db_path, key).personal_records(args.limit):
            est = WeightConverter.display(rec_row["est_1rm"], settings.weight_unit)
            print(f"{rec_row['exercise']}: {est} ({rec_row['date']})")
    elif args.cmd == "nutrition":
        stats = _statistics(db_path, key)
        totals = stats.daily_nutrition(args.date)
        print(
            f"{args.date}: {totals['calories']} kcal, P {totals['protein_g']} g, "
            f"C {totals['carbs_g']} g, F {totals['fats_g']} g"
        )
        for slot, slot_totals in stats.nutrition_by_slot(args.date).items():
            if slot_totals["calories"]:
                print(f"  {slot.value}: {slot_totals['calories']} kcal")
    elif args.cmd == "summary":
        stats = _statistics(db_path, key)
        today = datetime.date.today()
        weight = stats.latest_body_weight()
        print(f"Workouts: {len(stats.workouts.fetch_all_workouts())}")
        print(f"This month: {stats.workouts_in_month(today.year, today.month)}")
        if weight is not None:
            print(f"Body weight: {WeightConverter.display(weight, settings.weight_unit)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
