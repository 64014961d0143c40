from __future__ import annotations

import csv
import io
import json
import logging
from datetime import date, datetime, timezone
from html import escape
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from notenmeister.domain.logic.grading import calc_overall_average, calc_subject_grade, format_grade
from notenmeister.domain.models.entities import GRADE_TYPE_LABELS, Subject

logger = logging.getLogger(__name__)

DEFAULT_STUDENT_NAME = "Schüler"
CSV_HEADERS = ["Fach", "Typ", "Note", "Gewicht", "Datum", "Beschreibung", "Fachnote"]


def _german_date(value: date) -> str:
    return f"{value.day}.{value.month}.{value.year}"


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def export_json(
    subjects: Iterable[Subject],
    student_name: Optional[str] = None,
    exported_at: Optional[datetime] = None,
) -> str:
    subjects = list(subjects)
    payload: Dict = {
        "studentName": student_name or DEFAULT_STUDENT_NAME,
        "exportDate": (exported_at or _now()).isoformat(),
        "overallGPA": calc_overall_average(subjects),
        "subjects": [],
    }
    for subject in subjects:
        grade = calc_subject_grade(subject)
        data = subject.to_dict()
        data["calculatedGrade"] = grade
        data["formattedGrade"] = format_grade(grade)
        payload["subjects"].append(data)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def import_json(text: str) -> List[Subject]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid export file: {exc}") from exc
    if isinstance(payload, dict):
        items = payload.get("subjects")
    else:
        items = payload
    if not isinstance(items, list):
        raise ValueError("Export file must contain a list of subjects")
    return [Subject.from_dict(item) for item in items]


def export_csv(subjects: Iterable[Subject]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for subject in subjects:
        subject_grade = format_grade(calc_subject_grade(subject))
        for grade in subject.grades:
            writer.writerow(
                [
                    subject.name,
                    GRADE_TYPE_LABELS[grade.type],
                    _number(grade.value),
                    _number(grade.weight),
                    _german_date(grade.date),
                    grade.description or "",
                    subject_grade,
                ]
            )
    return buffer.getvalue()


HTML_STYLE = """
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 20px; background: #eef1fb; }
        .container { max-width: 800px; margin: 0 auto; background: white; border-radius: 20px; overflow: hidden; }
        .header { background: #667eea; color: white; padding: 30px; text-align: center; }
        .header h1 { margin: 0; font-size: 2.5em; }
        .content { padding: 30px; }
        .gpa-card { background: #11998e; color: white; padding: 20px; border-radius: 15px; text-align: center; margin-bottom: 30px; }
        .subject { background: #f8fafc; border-radius: 15px; padding: 20px; margin-bottom: 20px; border-left: 4px solid #667eea; }
        .grade-table { width: 100%; border-collapse: collapse; margin-top: 10px; }
        .grade-table th, .grade-table td { padding: 10px; text-align: left; border-bottom: 1px solid #e2e8f0; }
        .grade-highlight { font-weight: bold; color: #667eea; }
        .footer { text-align: center; padding: 20px; color: #718096; font-size: 0.9em; }
"""


def _html_subject(subject: Subject) -> str:
    kind = "Hauptfach" if subject.is_main_subject else "Nebenfach"
    rows = "".join(
        "<tr>"
        f"<td>{escape(GRADE_TYPE_LABELS[g.type])}</td>"
        f"<td>{_number(g.value)}</td>"
        f"<td>{_number(g.weight)}</td>"
        f"<td>{_german_date(g.date)}</td>"
        f"<td>{escape(g.description or '-')}</td>"
        "</tr>"
        for g in subject.grades
    )
    return (
        '<div class="subject">'
        f"<h3>{escape(subject.name)} ({kind}) - "
        f'<span class="grade-highlight">{format_grade(calc_subject_grade(subject))}</span></h3>'
        '<table class="grade-table"><thead><tr>'
        "<th>Typ</th><th>Note</th><th>Gewicht</th><th>Datum</th><th>Beschreibung</th>"
        f"</tr></thead><tbody>{rows}</tbody></table></div>"
    )


def export_html(
    subjects: Iterable[Subject],
    student_name: Optional[str] = None,
    exported_at: Optional[datetime] = None,
) -> str:
    subjects = list(subjects)
    name = escape(student_name or DEFAULT_STUDENT_NAME)
    created = _german_date((exported_at or _now()).date())
    body = "".join(_html_subject(s) for s in subjects if s.grades)
    return f"""<!DOCTYPE html>
<html lang="de">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Notenübersicht - {name}</title>
    <style>{HTML_STYLE}    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Notenübersicht</h1>
            <p>Erstellt am {created} &bull; {name}</p>
        </div>
        <div class="content">
            <div class="gpa-card">
                <h2>{format_grade(calc_overall_average(subjects))}</h2>
                <p>Gesamtdurchschnitt</p>
            </div>
            {body}
        </div>
        <div class="footer">
            <p>Erstellt mit Bayernnotenmeister Pro</p>
        </div>
    </div>
</body>
</html>
"""


def export_filename(kind: str, student_name: Optional[str] = None, on: Optional[date] = None) -> str:
    name = student_name or DEFAULT_STUDENT_NAME.lower()
    return f"notenübersicht_{name}_{(on or date.today()).isoformat()}.{kind}"


EXPORTERS: Dict[str, Callable[[List[Subject], Optional[str], Optional[datetime]], str]] = {
    "json": export_json,
    "csv": lambda subjects, student_name, exported_at: export_csv(subjects),
    "html": export_html,
}


def write_export(
    kind: str,
    subjects: Iterable[Subject],
    directory: str | Path,
    student_name: Optional[str] = None,
    exported_at: Optional[datetime] = None,
) -> Path:
    if kind not in EXPORTERS:
        raise ValueError(f"Unsupported export format: {kind}. Use json, csv or html.")
    exported_at = exported_at or _now()
    content = EXPORTERS[kind](list(subjects), student_name, exported_at)
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / export_filename(kind, student_name, exported_at.date())
    path.write_text(content, encoding="utf-8")
    logger.info("Wrote %s export to %s", kind, path)
    return path
