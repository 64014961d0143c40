from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, NamedTuple, Sequence

from notenmeister.domain.logic.grading import calc_overall_average, calc_subject_grade
from notenmeister.domain.models.entities import Grade, GradeType, Subject

TREND_THRESHOLD = 0.3


class SubjectResult(NamedTuple):
    subject: Subject
    grade: float


class TrendPoint(NamedTuple):
    index: int
    value: float
    date: date
    type: GradeType


class Trend(Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class OverallStats:
    overall_average: float
    main_average: float
    other_average: float
    best: SubjectResult | None
    worst: SubjectResult | None
    total_grades: int
    subjects_with_grades: int


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def subject_results(subjects: Iterable[Subject]) -> list[SubjectResult]:
    return [SubjectResult(s, calc_subject_grade(s)) for s in subjects if s.grades]


def ranked_subjects(subjects: Iterable[Subject]) -> list[SubjectResult]:
    return sorted(subject_results(subjects), key=lambda r: r.grade)


def calc_overall_stats(subjects: Iterable[Subject]) -> OverallStats:
    subjects = list(subjects)
    results = subject_results(subjects)

    best: SubjectResult | None = None
    worst: SubjectResult | None = None
    for r in results:
        if best is None or r.grade < best.grade:
            best = r
        if worst is None or r.grade > worst.grade:
            worst = r

    return OverallStats(
        overall_average=calc_overall_average(subjects),
        main_average=_mean([r.grade for r in results if r.subject.is_main_subject]),
        other_average=_mean([r.grade for r in results if not r.subject.is_main_subject]),
        best=best,
        worst=worst,
        total_grades=sum(len(s.grades) for s in subjects),
        subjects_with_grades=len(results),
    )


def chronological(grades: Iterable[Grade]) -> list[Grade]:
    return sorted(grades, key=lambda g: g.date)


def trend_points(grades: Iterable[Grade]) -> list[TrendPoint]:
    return [
        TrendPoint(index, g.value, g.date, g.type)
        for index, g in enumerate(chronological(grades), start=1)
    ]


def split_halves(grades: Iterable[Grade]) -> tuple[list[Grade], list[Grade]]:
    ordered = chronological(grades)
    middle = len(ordered) // 2
    return ordered[:middle], ordered[middle:]


def grade_trend(grades: Iterable[Grade]) -> Trend:
    first, second = split_halves(grades)
    if not first:
        return Trend.STABLE
    first_avg = _mean([g.value for g in first])
    second_avg = _mean([g.value for g in second])
    if second_avg < first_avg - TREND_THRESHOLD:
        return Trend.IMPROVING
    if second_avg > first_avg + TREND_THRESHOLD:
        return Trend.DECLINING
    return Trend.STABLE
