from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Sequence

from notenmeister.domain.logic.grading import calc_overall_average, calc_subject_grade, round_half_up
from notenmeister.domain.logic.stats import split_halves
from notenmeister.domain.models.entities import MAIN_SUBJECTS, Grade, Subject

WORST_GRADE = 6.0


@dataclass(frozen=True)
class Goal:
    id: str
    title: str
    subject_id: str
    target_grade: float
    target_date: date
    created_at: datetime


@dataclass(frozen=True)
class GoalStatus:
    goal: Goal
    current_grade: float | None
    progress: float
    achieved: bool
    days_left: int


def current_grade(goal: Goal, subjects: Iterable[Subject]) -> float | None:
    subject = next((s for s in subjects if s.id == goal.subject_id), None)
    if subject is None or not subject.grades:
        return None
    return float(round_half_up(calc_subject_grade(subject), 1))


def goal_progress(current: float | None, target: float) -> float:
    """Share of the way from the worst grade (6) to the target, in percent."""
    if current is None:
        return 0.0
    if target >= WORST_GRADE:
        return 100.0
    progress = (WORST_GRADE - current) / (WORST_GRADE - target) * 100
    return min(max(progress, 0.0), 100.0)


def is_goal_achieved(current: float | None, target: float) -> bool:
    return current is not None and current <= target


def days_left(target_date: date, today: date) -> int:
    return (target_date - today).days


def evaluate_goal(goal: Goal, subjects: Iterable[Subject], today: date) -> GoalStatus:
    current = current_grade(goal, subjects)
    return GoalStatus(
        goal=goal,
        current_grade=current,
        progress=goal_progress(current, goal.target_grade),
        achieved=is_goal_achieved(current, goal.target_grade),
        days_left=days_left(goal.target_date, today),
    )


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    max_progress: int
    progress: int

    @property
    def unlocked(self) -> bool:
        return self.progress >= self.max_progress


def _all_grades(subjects: Sequence[Subject]) -> list[Grade]:
    return [g for s in subjects for g in s.grades]


def _longest_day_streak(grades: Sequence[Grade]) -> int:
    days = sorted({g.date for g in grades})
    longest = 0
    run = 0
    previous: date | None = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day
    return longest


def _improved(grades: Sequence[Grade]) -> bool:
    first, second = split_halves(grades)
    if not first:
        return False
    first_avg = sum(g.value for g in first) / len(first)
    second_avg = sum(g.value for g in second) / len(second)
    return first_avg - second_avg >= 0.5


def _main_subject_count(subjects: Sequence[Subject]) -> int:
    names = [m.lower() for m in MAIN_SUBJECTS]
    return sum(1 for s in subjects if any(m in s.name.lower() for m in names))


def _excellent(subjects: Sequence[Subject]) -> int:
    average = calc_overall_average(subjects)
    return 1 if 0 < average <= 1.5 else 0


# (id, title, description, max_progress, progress function)
ACHIEVEMENTS: list[tuple[str, str, str, int, Callable[[Sequence[Subject], Sequence[Grade]], int]]] = [
    ("first_grade", "Erste Note!", "Deine erste Note eingetragen", 1,
     lambda subjects, grades: 1 if grades else 0),
    ("excellent_student", "Musterschüler", "Durchschnitt von 1.5 oder besser erreicht", 1,
     lambda subjects, grades: _excellent(subjects)),
    ("grade_collector", "Notensammler", "25 Noten eingetragen", 25,
     lambda subjects, grades: len(grades)),
    ("improvement_master", "Verbesserungsmeister", "Durchschnitt um 0.5 Punkte verbessert", 1,
     lambda subjects, grades: 1 if _improved(grades) else 0),
    ("consistent_student", "Beständiger Schüler", "7 Tage in Folge Noten eingetragen", 7,
     lambda subjects, grades: _longest_day_streak(grades)),
    ("speed_demon", "Blitzschnell", "5 Noten an einem Tag eingetragen", 5,
     lambda subjects, grades: max(Counter(g.date for g in grades).values(), default=0)),
    ("subject_master", "Fächermeister", "Alle Hauptfächer erfasst", 5,
     lambda subjects, grades: _main_subject_count(subjects)),
    ("perfectionist", "Perfektionist", "Mindestens 3 Einsen erreicht", 3,
     lambda subjects, grades: sum(1 for g in grades if g.value <= 1.0)),
]


def evaluate_achievements(subjects: Iterable[Subject]) -> list[Achievement]:
    subjects = list(subjects)
    grades = _all_grades(subjects)
    return [
        Achievement(
            id=achievement_id,
            title=title,
            description=description,
            max_progress=max_progress,
            progress=min(progress(subjects, grades), max_progress),
        )
        for achievement_id, title, description, max_progress, progress in ACHIEVEMENTS
    ]
