from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping


class GradeType(str, Enum):
    SA = "SA"
    EX = "Ex"
    MUE = "MÜ"
    M = "M"
    E = "E"


GRADE_TYPE_LABELS: dict[GradeType, str] = {
    GradeType.SA: "Schulaufgaben",
    GradeType.EX: "Extemporale",
    GradeType.MUE: "Mündlich",
    GradeType.M: "Mitarbeit",
    GradeType.E: "Ergebnisse",
}

MAIN_SUBJECTS: tuple[str, ...] = (
    "Deutsch",
    "Mathematik",
    "Englisch",
    "Französisch",
    "Latein",
)

COMMON_SUBJECTS: tuple[str, ...] = MAIN_SUBJECTS + (
    "Physik",
    "Chemie",
    "Biologie",
    "Geschichte",
    "Sozialkunde",
    "Erdkunde",
    "Wirtschaft",
    "Religion",
    "Ethik",
    "Kunst",
    "Musik",
    "Sport",
    "Informatik",
)

BAVARIAN_GRADES: tuple[int, ...] = (1, 2, 3, 4, 5, 6)


def new_id() -> str:
    return str(uuid.uuid4())


def is_main_subject_name(name: str) -> bool:
    return name.strip() in MAIN_SUBJECTS


def validate_grade_input(value: float, weight: float) -> None:
    """Input-entry check for a new grade. The calculator never calls this."""
    if value not in BAVARIAN_GRADES:
        raise ValueError(f"Grade value must be one of {BAVARIAN_GRADES}, got {value}")
    if weight <= 0:
        raise ValueError("Grade weight must be greater than 0")


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            if "T" in text:
                return datetime.fromisoformat(text).date()
            return date.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid date: {value!r}") from exc
    raise ValueError(f"Invalid date: {value!r}")


def _require(data: Mapping[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"Missing required field: {key}")
    return data[key]


def _as_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _as_float(value: Any, field: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field} must be a number, got {value!r}") from exc


@dataclass(frozen=True)
class Grade:
    id: str
    type: GradeType
    value: float
    weight: float
    date: date
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Grade":
        data = _as_mapping(data, "Grade")
        try:
            grade_type = GradeType(_require(data, "type"))
        except ValueError as exc:
            raise ValueError(f"Unknown grade type: {data.get('type')!r}") from exc
        description = data.get("description") or None
        return cls(
            id=str(_require(data, "id")),
            type=grade_type,
            value=_as_float(_require(data, "value"), "value"),
            weight=_as_float(1 if data.get("weight") is None else data["weight"], "weight"),
            date=parse_date(_require(data, "date")),
            description=description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "value": self.value,
            "weight": self.weight,
            "description": self.description,
            "date": self.date.isoformat(),
        }


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    is_main_subject: bool
    grades: tuple[Grade, ...] = ()
    final_grade: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Subject":
        data = _as_mapping(data, "Subject")
        final_grade = data.get("finalGrade")
        grades = data.get("grades") or ()
        if not isinstance(grades, (list, tuple)):
            raise ValueError("Subject grades must be a list")
        return cls(
            id=str(_require(data, "id")),
            name=str(_require(data, "name")),
            is_main_subject=bool(data.get("isMainSubject", False)),
            grades=tuple(Grade.from_dict(g) for g in grades),
            final_grade=_as_float(final_grade, "finalGrade") if final_grade is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isMainSubject": self.is_main_subject,
            "finalGrade": self.final_grade,
            "grades": [g.to_dict() for g in self.grades],
        }
