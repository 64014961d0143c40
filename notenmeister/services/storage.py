from __future__ import annotations

import logging
import re
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Iterable

from notenmeister.domain.logic.goals import Goal
from notenmeister.domain.models.entities import (
    Grade,
    GradeType,
    Subject,
    is_main_subject_name,
    new_id,
    validate_grade_input,
)

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def account_db_path(db_path: str, uid: str | None) -> str:
    """Database file for a signed-in account, next to the local-mode file."""
    if not uid:
        return db_path
    path = Path(db_path)
    safe_uid = re.sub(r"[^A-Za-z0-9_-]", "_", uid)
    return str(path.with_name(f"{path.stem}_{safe_uid}{path.suffix}"))


class Storage:
    def __init__(self, db_path: str = "notenmeister.db") -> None:
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.executescript(
            """
            CREATE TABLE IF NOT EXISTS subjects (
              id TEXT PRIMARY KEY,
              name TEXT NOT NULL,
              is_main_subject INTEGER NOT NULL DEFAULT 0,
              final_grade REAL,
              created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS grades (
              id TEXT PRIMARY KEY,
              subject_id TEXT NOT NULL,
              type TEXT NOT NULL,
              value REAL NOT NULL,
              weight REAL NOT NULL DEFAULT 1,
              description TEXT,
              date TEXT NOT NULL,
              FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS goals (
              id TEXT PRIMARY KEY,
              title TEXT NOT NULL,
              subject_id TEXT NOT NULL,
              target_grade REAL NOT NULL,
              target_date TEXT NOT NULL,
              created_at TEXT NOT NULL
            );
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    @staticmethod
    def _to_grade(row: sqlite3.Row) -> Grade:
        return Grade(
            id=row["id"],
            type=GradeType(row["type"]),
            value=float(row["value"]),
            weight=float(row["weight"]),
            date=date.fromisoformat(row["date"]),
            description=row["description"],
        )

    @staticmethod
    def _to_goal(row: sqlite3.Row) -> Goal:
        return Goal(
            id=row["id"],
            title=row["title"],
            subject_id=row["subject_id"],
            target_grade=float(row["target_grade"]),
            target_date=date.fromisoformat(row["target_date"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _insert_subject(self, subject: Subject, created_at: str) -> None:
        self.conn.execute(
            "INSERT INTO subjects(id, name, is_main_subject, final_grade, created_at) VALUES(?,?,?,?,?)",
            (subject.id, subject.name, 1 if subject.is_main_subject else 0, subject.final_grade, created_at),
        )

    def _insert_grade(self, subject_id: str, grade: Grade) -> None:
        self.conn.execute(
            """INSERT INTO grades(id, subject_id, type, value, weight, description, date)
               VALUES(?,?,?,?,?,?,?)""",
            (
                grade.id,
                subject_id,
                grade.type.value,
                grade.value,
                grade.weight,
                grade.description,
                grade.date.isoformat(),
            ),
        )

    def add_subject(self, name: str, is_main_subject: bool | None = None) -> Subject:
        name = (name or "").strip()
        if not name:
            raise ValueError("Subject name is required")
        if is_main_subject is None:
            is_main_subject = is_main_subject_name(name)
        subject = Subject(id=new_id(), name=name, is_main_subject=is_main_subject)
        self._insert_subject(subject, datetime.now().isoformat())
        self.conn.commit()
        logger.debug("Added subject %s (%s)", subject.name, subject.id)
        return subject

    def list_subjects(self) -> list[Subject]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM grades ORDER BY date, rowid")
        grades_by_subject: dict[str, list[Grade]] = {}
        for row in cur.fetchall():
            grades_by_subject.setdefault(row["subject_id"], []).append(self._to_grade(row))

        cur.execute("SELECT * FROM subjects ORDER BY created_at, rowid")
        return [
            Subject(
                id=row["id"],
                name=row["name"],
                is_main_subject=bool(row["is_main_subject"]),
                grades=tuple(grades_by_subject.get(row["id"], ())),
                final_grade=row["final_grade"],
            )
            for row in cur.fetchall()
        ]

    def get_subject(self, subject_id: str) -> Subject | None:
        return next((s for s in self.list_subjects() if s.id == subject_id), None)

    def delete_subject(self, subject_id: str) -> None:
        self.conn.execute("DELETE FROM subjects WHERE id=?", (subject_id,))
        self.conn.execute("DELETE FROM goals WHERE subject_id=?", (subject_id,))
        self.conn.commit()
        logger.debug("Deleted subject %s", subject_id)

    def set_final_grade(self, subject_id: str, final_grade: float | None) -> None:
        self.conn.execute("UPDATE subjects SET final_grade=? WHERE id=?", (final_grade, subject_id))
        self.conn.commit()

    def add_grade(
        self,
        subject_id: str,
        grade_type: GradeType | str,
        value: float,
        weight: float = 1.0,
        on: date | None = None,
        description: str | None = None,
    ) -> Grade:
        validate_grade_input(value, weight)
        row = self.conn.execute("SELECT id FROM subjects WHERE id=?", (subject_id,)).fetchone()
        if not row:
            raise StorageError(f"Unknown subject: {subject_id}")
        grade = Grade(
            id=new_id(),
            type=GradeType(grade_type),
            value=float(value),
            weight=float(weight),
            date=on or date.today(),
            description=(description or "").strip() or None,
        )
        self._insert_grade(subject_id, grade)
        self.conn.commit()
        logger.debug("Added grade %s to subject %s", grade.value, subject_id)
        return grade

    def delete_grade(self, grade_id: str) -> None:
        self.conn.execute("DELETE FROM grades WHERE id=?", (grade_id,))
        self.conn.commit()

    def replace_subjects(self, subjects: Iterable[Subject]) -> None:
        subjects = list(subjects)
        now = datetime.now().isoformat()
        try:
            with self.conn:
                self.conn.execute("DELETE FROM grades")
                self.conn.execute("DELETE FROM subjects")
                for subject in subjects:
                    self._insert_subject(subject, now)
                    for grade in subject.grades:
                        self._insert_grade(subject.id, grade)
                kept = [s.id for s in subjects]
                self.conn.execute(
                    f"DELETE FROM goals WHERE subject_id NOT IN ({','.join('?' * len(kept))})",
                    kept,
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Could not replace subjects: {exc}") from exc
        logger.info("Replaced local data with %d subjects", len(subjects))

    def add_goal(self, title: str, subject_id: str, target_grade: float, target_date: date) -> Goal:
        title = (title or "").strip()
        if not title:
            raise ValueError("Goal title is required")
        if not 1 <= target_grade <= 6:
            raise ValueError("Target grade must be between 1 and 6")
        goal = Goal(
            id=new_id(),
            title=title,
            subject_id=subject_id,
            target_grade=float(target_grade),
            target_date=target_date,
            created_at=datetime.now(),
        )
        self.conn.execute(
            """INSERT INTO goals(id, title, subject_id, target_grade, target_date, created_at)
               VALUES(?,?,?,?,?,?)""",
            (goal.id, goal.title, goal.subject_id, goal.target_grade, goal.target_date.isoformat(), goal.created_at.isoformat()),
        )
        self.conn.commit()
        return goal

    def update_goal(self, goal: Goal) -> None:
        self.conn.execute(
            """UPDATE goals SET title=?, subject_id=?, target_grade=?, target_date=?
               WHERE id=?""",
            (goal.title, goal.subject_id, goal.target_grade, goal.target_date.isoformat(), goal.id),
        )
        self.conn.commit()

    def list_goals(self) -> list[Goal]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM goals ORDER BY created_at, rowid")
        return [self._to_goal(row) for row in cur.fetchall()]

    def delete_goal(self, goal_id: str) -> None:
        self.conn.execute("DELETE FROM goals WHERE id=?", (goal_id,))
        self.conn.commit()
