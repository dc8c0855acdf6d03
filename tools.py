class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPLEY_DIVISOR: float = 30.0

    @classmethod
    def epley_1rm(cls, weight: float, reps: int) -> float:
        """Return the estimated one-rep max using the Epley formula."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if reps == 1:
            return weight
        return weight * (1 + reps / cls.EPLEY_DIVISOR)

    @classmethod
    def best_1rm(cls, sets: list[tuple[int, float]]) -> float:
        """Return the highest estimated 1RM over ``(reps, weight)`` pairs."""
        best = 0.0
        for reps, weight in sets:
            best = max(best, cls.epley_1rm(weight, reps))
        return best

    @staticmethod
    def volume(sets: list[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def pace(distance_km: float, time_minutes: float) -> float | None:
        """Return minutes per kilometre, or ``None`` without distance."""
        if distance_km <= 0:
            return None
        return time_minutes / distance_km


class WeightConverter:
    """Utility for converting between kg and lb."""

    KG_TO_LB = 2.20462

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @classmethod
    def display(cls, kg: float, unit: str = "kg") -> str:
        if unit == "lb":
            return f"{cls.kg_to_lb(kg)} lb"
        return f"{round(kg, 2)} kg"
