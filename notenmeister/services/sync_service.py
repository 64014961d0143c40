from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from requests import RequestException

from notenmeister.config.settings import settings
from notenmeister.domain.models.entities import Grade, GradeType, Subject, parse_date
from notenmeister.state.session_state import SessionState

logger = logging.getLogger(__name__)


class SyncServiceError(Exception):
    pass


class SupabaseSyncService:
    """Mirrors local subjects and grades into the Supabase ``subjects`` and ``grades`` tables."""

    SUBJECTS_PATH = "/rest/v1/subjects"
    GRADES_PATH = "/rest/v1/grades"

    def __init__(self, url: str, anon_key: str, access_token: str, user_id: str) -> None:
        if not url:
            raise SyncServiceError("Missing SUPABASE_URL in environment")
        if not anon_key:
            raise SyncServiceError("Missing SUPABASE_ANON_KEY in environment")
        if not access_token or not user_id:
            raise SyncServiceError("User not authenticated")
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token
        self.user_id = user_id

    @classmethod
    def from_session(cls, session: SessionState) -> "SupabaseSyncService":
        return cls(settings.supabase_url, settings.supabase_anon_key, session.id_token or "", session.uid or "")

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        try:
            res = requests.request(
                method,
                f"{self.url}{path}",
                headers=self._headers(prefer),
                params=params,
                json=payload,
                timeout=15,
            )
        except RequestException as exc:
            raise SyncServiceError("SYNC_SERVICE_UNAVAILABLE") from exc

        if res.status_code >= 400:
            try:
                message = res.json().get("message") or res.text
            except ValueError:
                message = res.text
            raise SyncServiceError(f"{method} {path} failed ({res.status_code}): {message}")
        if not res.content:
            return None
        try:
            return res.json()
        except ValueError as exc:
            raise SyncServiceError(f"Invalid response from {path}") from exc

    def sync_subjects(self, subjects: Iterable[Subject]) -> None:
        subjects = list(subjects)
        owner = {"user_id": f"eq.{self.user_id}"}
        self._request("DELETE", self.SUBJECTS_PATH, params=owner)

        for subject in subjects:
            inserted = self._request(
                "POST",
                self.SUBJECTS_PATH,
                payload={
                    "user_id": self.user_id,
                    "name": subject.name,
                    "is_main_subject": subject.is_main_subject,
                    "final_grade": subject.final_grade,
                },
                prefer="return=representation",
            )
            if not inserted:
                raise SyncServiceError(f"Subject {subject.name!r} was not created")
            remote_id = inserted[0]["id"] if isinstance(inserted, list) else inserted["id"]

            if subject.grades:
                self._request(
                    "POST",
                    self.GRADES_PATH,
                    payload=[
                        {
                            "subject_id": remote_id,
                            "user_id": self.user_id,
                            "type": grade.type.value,
                            "value": grade.value,
                            "weight": grade.weight,
                            "description": grade.description,
                            "date": grade.date.isoformat(),
                        }
                        for grade in subject.grades
                    ],
                )
        logger.info("Synced %d subjects for user %s", len(subjects), self.user_id)

    def load_subjects(self) -> List[Subject]:
        owner = f"eq.{self.user_id}"
        subject_rows = self._request(
            "GET", self.SUBJECTS_PATH, params={"select": "*", "user_id": owner, "order": "created_at.asc"}
        ) or []
        grade_rows = self._request(
            "GET", self.GRADES_PATH, params={"select": "*", "user_id": owner, "order": "date.asc"}
        ) or []

        grades_by_subject: Dict[str, List[Grade]] = {}
        for row in grade_rows:
            try:
                grade = Grade(
                    id=str(row["id"]),
                    type=GradeType(row["type"]),
                    value=float(row["value"]),
                    weight=float(row["weight"]),
                    date=parse_date(row["date"]),
                    description=row.get("description") or None,
                )
            except (KeyError, ValueError) as exc:
                raise SyncServiceError(f"Malformed grade row: {row!r}") from exc
            grades_by_subject.setdefault(str(row["subject_id"]), []).append(grade)

        subjects = [
            Subject(
                id=str(row["id"]),
                name=row["name"],
                is_main_subject=bool(row.get("is_main_subject")),
                grades=tuple(grades_by_subject.get(str(row["id"]), ())),
                final_grade=float(row["final_grade"]) if row.get("final_grade") is not None else None,
            )
            for row in subject_rows
        ]
        logger.info("Loaded %d subjects for user %s", len(subjects), self.user_id)
        return subjects
