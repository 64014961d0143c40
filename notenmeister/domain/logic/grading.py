from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable

from notenmeister.domain.models.entities import Grade, GradeType, Subject


class GradeBand(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    SATISFACTORY = "satisfactory"
    SUFFICIENT = "sufficient"
    POOR = "poor"
    INSUFFICIENT = "insufficient"


GRADE_BANDS: list[tuple[float, GradeBand]] = [
    (1.5, GradeBand.EXCELLENT),
    (2.5, GradeBand.GOOD),
    (3.5, GradeBand.SATISFACTORY),
    (4.5, GradeBand.SUFFICIENT),
    (5.5, GradeBand.POOR),
]


def weighted_average(grades: Iterable[Grade]) -> float:
    weighted = 0.0
    total_weight = 0.0
    for g in grades:
        weighted += g.value * g.weight
        total_weight += g.weight
    if total_weight <= 0:
        return 0.0
    return weighted / total_weight


def calc_subject_grade(subject: Subject) -> float:
    """Bavarian subject grade.

    Main subjects count the Schulaufgaben average twice against the average of
    all other grades. Other subjects weight both groups equally. A missing
    group falls back to the group that exists. ``final_grade`` is never read.
    """
    grades = subject.grades
    if not grades:
        return 0.0

    sa_grades = [g for g in grades if g.type == GradeType.SA]
    other_grades = [g for g in grades if g.type != GradeType.SA]

    if not sa_grades:
        return weighted_average(other_grades)

    sa_avg = weighted_average(sa_grades)
    if subject.is_main_subject:
        other_avg = weighted_average(other_grades) if other_grades else sa_avg
        return (sa_avg * 2 + other_avg) / 3

    if not other_grades:
        return sa_avg
    return (sa_avg + weighted_average(other_grades)) / 2


def calc_overall_average(subjects: Iterable[Subject]) -> float:
    results = [calc_subject_grade(s) for s in subjects if s.grades]
    if not results:
        return 0.0
    return sum(results) / len(results)


def round_half_up(value: float, places: int = 2) -> Decimal:
    # repr() gives the shortest round-tripping literal, so 2.345 rounds as written.
    quantum = Decimal(1).scaleb(-places)
    return Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)


def format_grade(value: float) -> str:
    return f"{round_half_up(value, 2):.2f}"


def grade_band(value: float) -> GradeBand:
    for upper, band in GRADE_BANDS:
        if value <= upper:
            return band
    return GradeBand.INSUFFICIENT
