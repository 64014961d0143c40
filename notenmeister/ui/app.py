from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import flet as ft

from notenmeister.config.settings import settings
from notenmeister.domain.logic.goals import evaluate_achievements, evaluate_goal
from notenmeister.domain.logic.grading import (
    GradeBand,
    calc_overall_average,
    calc_subject_grade,
    format_grade,
    grade_band,
)
from notenmeister.domain.logic.stats import Trend, calc_overall_stats, grade_trend, ranked_subjects
from notenmeister.domain.models.entities import (
    BAVARIAN_GRADES,
    COMMON_SUBJECTS,
    GRADE_TYPE_LABELS,
    GradeType,
    is_main_subject_name,
)
from notenmeister.services.auth_service import AuthServiceError, SupabaseAuthService
from notenmeister.services.export import import_json, write_export
from notenmeister.services.storage import Storage, StorageError, account_db_path
from notenmeister.services.sync_service import SupabaseSyncService, SyncServiceError
from notenmeister.state.session_state import SessionState

logger = logging.getLogger(__name__)

BAND_COLORS = {
    GradeBand.EXCELLENT: ft.Colors.GREEN_600,
    GradeBand.GOOD: ft.Colors.LIGHT_GREEN_600,
    GradeBand.SATISFACTORY: ft.Colors.AMBER_600,
    GradeBand.SUFFICIENT: ft.Colors.ORANGE_600,
    GradeBand.POOR: ft.Colors.RED_600,
    GradeBand.INSUFFICIENT: ft.Colors.RED_900,
}

TREND_LABELS = {
    Trend.IMPROVING: "Verbessert sich",
    Trend.DECLINING: "Verschlechtert sich",
    Trend.STABLE: "Stabil",
}


def grade_text(value: float, size: int = 14) -> ft.Text:
    if value <= 0:
        return ft.Text("-", size=size)
    return ft.Text(format_grade(value), size=size, weight=ft.FontWeight.BOLD, color=BAND_COLORS[grade_band(value)])


class NotenmeisterApp:
    def __init__(self, page: ft.Page) -> None:
        self.page = page
        self.page.title = "Bayernnotenmeister Pro"
        self.page.scroll = ft.ScrollMode.AUTO
        self.local_store = Storage(settings.db_path)
        self.store = self.local_store
        self.session = SessionState()
        self.auth_error = ft.Text(color=ft.Colors.RED)

        self.email = ft.TextField(label="E-Mail", width=300)
        self.password = ft.TextField(label="Passwort", width=300, password=True, can_reveal_password=True)

    def run(self) -> None:
        self.show_start_view()

    def show_start_view(self) -> None:
        self.page.clean()
        cloud_controls: list[ft.Control] = []
        if settings.cloud_enabled:
            cloud_controls = [
                ft.Divider(),
                ft.Text("Mit Cloud-Synchronisation"),
                self.email,
                self.password,
                ft.Row(
                    [
                        ft.ElevatedButton("Anmelden", on_click=self.handle_login),
                        ft.OutlinedButton("Registrieren", on_click=self.handle_signup),
                    ]
                ),
                self.auth_error,
            ]
        self.page.add(
            ft.Column(
                [
                    ft.Text("Bayernnotenmeister Pro", size=32, weight=ft.FontWeight.BOLD),
                    ft.Text("Deine Noten nach bayerischem Schema"),
                    ft.ElevatedButton("Lokal fortfahren", on_click=self.handle_local),
                    *cloud_controls,
                ],
                tight=True,
                horizontal_alignment=ft.CrossAxisAlignment.CENTER,
            )
        )

    def use_local_store(self) -> None:
        if self.store is not self.local_store:
            self.store.close()
            self.store = self.local_store

    def handle_local(self, _: ft.ControlEvent) -> None:
        self.session.clear()
        self.use_local_store()
        self.show_main_app()

    def _authenticate(self, sign_up: bool) -> None:
        if not self.email.value or not self.password.value:
            self.auth_error.value = "E-Mail und Passwort sind erforderlich."
            self.page.update()
            return
        try:
            auth = SupabaseAuthService.from_settings()
            if sign_up:
                result = auth.sign_up(self.email.value.strip(), self.password.value)
            else:
                result = auth.sign_in(self.email.value.strip(), self.password.value)
            self.session.sign_in(result.uid, result.email, result.id_token, result.refresh_token)
            subjects = SupabaseSyncService.from_session(self.session).load_subjects()
            self.use_local_store()
            self.store = Storage(account_db_path(settings.db_path, result.uid))
            self.store.replace_subjects(subjects)
        except (AuthServiceError, SyncServiceError, StorageError) as exc:
            self.session.clear()
            self.use_local_store()
            self.auth_error.value = f"Anmeldung fehlgeschlagen: {exc}"
            self.page.update()
            return
        self.show_main_app()

    def handle_login(self, _: ft.ControlEvent) -> None:
        self._authenticate(sign_up=False)

    def handle_signup(self, _: ft.ControlEvent) -> None:
        self._authenticate(sign_up=True)

    def handle_logout(self, _: ft.ControlEvent) -> None:
        if self.session.is_authenticated:
            try:
                SupabaseAuthService.from_settings().sign_out(self.session.id_token or "")
            except AuthServiceError as exc:
                logger.warning("Sign out failed: %s", exc)
        self.session.clear()
        self.use_local_store()
        self.show_start_view()

    def sync(self) -> None:
        if not self.session.is_authenticated:
            return
        try:
            SupabaseSyncService.from_session(self.session).sync_subjects(self.store.list_subjects())
        except SyncServiceError as exc:
            logger.error("Sync failed: %s", exc)
            self.page.open(ft.SnackBar(ft.Text(f"Synchronisation fehlgeschlagen: {exc}")))

    def show_main_app(self) -> None:
        self.page.clean()

        subjects_container = ft.Container()
        stats_container = ft.Container()
        goals_container = ft.Container()
        export_container = ft.Container()
        average_text = ft.Row()

        def refresh_all(changed: bool = False) -> None:
            if changed:
                self.sync()
            average_text.controls = [
                ft.Text("Gesamtdurchschnitt:"),
                grade_text(calc_overall_average(self.store.list_subjects()), size=20),
            ]
            subjects_container.content = self.subjects_view(refresh_all)
            stats_container.content = self.stats_view()
            goals_container.content = self.goals_view(refresh_all)
            export_container.content = self.export_view(refresh_all)
            self.page.update()

        tabs = ft.Tabs(
            selected_index=0,
            tabs=[
                ft.Tab(text="Fächer & Noten", content=subjects_container),
                ft.Tab(text="Statistiken", content=stats_container),
                ft.Tab(text="Ziele", content=goals_container),
                ft.Tab(text="Export", content=export_container),
            ],
            expand=1,
        )

        mode = self.session.email if self.session.is_authenticated else "Lokaler Modus"
        self.page.add(
            ft.Row(
                [
                    ft.Text("Bayernnotenmeister Pro", size=28, weight=ft.FontWeight.BOLD),
                    ft.Row([ft.Text(mode), ft.TextButton("Abmelden", on_click=self.handle_logout)]),
                ],
                alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
            ),
            average_text,
            tabs,
        )
        refresh_all()

    def subjects_view(self, refresh_all) -> ft.Control:
        preset = ft.Dropdown(
            label="Fach",
            options=[ft.dropdown.Option(n, f"{n} *" if is_main_subject_name(n) else n) for n in COMMON_SUBJECTS],
        )
        custom = ft.TextField(label="Eigenes Fach")
        main_flag = ft.Checkbox(label="Hauptfach", value=False)

        def update_main_flag(_: ft.ControlEvent) -> None:
            name = (custom.value or "").strip() or (preset.value or "")
            main_flag.value = is_main_subject_name(name)
            self.page.update()

        preset.on_change = update_main_flag
        custom.on_change = update_main_flag
        error = ft.Text(color=ft.Colors.RED)

        def add_subject(_: ft.ControlEvent) -> None:
            name = (custom.value or "").strip() or (preset.value or "")
            try:
                self.store.add_subject(name, bool(main_flag.value))
                refresh_all(changed=True)
            except (ValueError, StorageError) as exc:
                error.value = str(exc)
                self.page.update()

        cards = [self.subject_card(s, refresh_all) for s in self.store.list_subjects()]
        return ft.Column(
            [
                ft.Row([preset, custom, main_flag]),
                ft.ElevatedButton("Fach hinzufügen", on_click=add_subject),
                error,
                ft.Divider(),
                *(cards or [ft.Text("Noch keine Fächer angelegt")]),
            ]
        )

    def subject_card(self, subject, refresh_all) -> ft.Control:
        grade_type = ft.Dropdown(
            label="Typ",
            width=180,
            options=[ft.dropdown.Option(t.value, f"{GRADE_TYPE_LABELS[t]} ({t.value})") for t in GradeType],
            value=GradeType.SA.value,
        )
        value = ft.Dropdown(label="Note", width=90, options=[ft.dropdown.Option(str(g)) for g in BAVARIAN_GRADES], value="2")
        weight = ft.TextField(label="Gewichtung", width=110, value="1")
        on = ft.TextField(label="Datum (JJJJ-MM-TT)", width=170, value=date.today().isoformat())
        description = ft.TextField(label="Beschreibung", width=220)
        error = ft.Text(color=ft.Colors.RED)

        def add_grade(_: ft.ControlEvent) -> None:
            try:
                self.store.add_grade(
                    subject.id,
                    grade_type.value,
                    int(value.value),
                    float(weight.value),
                    date.fromisoformat(on.value.strip()),
                    description.value,
                )
                refresh_all(changed=True)
            except (ValueError, StorageError) as exc:
                error.value = str(exc)
                self.page.update()

        def delete_subject(_: ft.ControlEvent) -> None:
            self.store.delete_subject(subject.id)
            refresh_all(changed=True)

        grade_rows = [
            ft.Row(
                [
                    ft.Text(f"{g.date.strftime('%d.%m.%Y')} {GRADE_TYPE_LABELS[g.type]}: {g.value:g} (x{g.weight:g}) {g.description or ''}"),
                    ft.IconButton(
                        icon=ft.Icons.DELETE,
                        on_click=lambda _, gid=g.id: (self.store.delete_grade(gid), refresh_all(changed=True)),
                    ),
                ],
                alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
            )
            for g in subject.grades
        ]
        kind = "Hauptfach" if subject.is_main_subject else "Nebenfach"
        return ft.Card(
            content=ft.Container(
                padding=12,
                content=ft.Column(
                    [
                        ft.Row(
                            [
                                ft.Text(f"{subject.name} ({kind})", size=18, weight=ft.FontWeight.BOLD),
                                ft.Row([grade_text(calc_subject_grade(subject), size=18), ft.IconButton(icon=ft.Icons.DELETE, on_click=delete_subject)]),
                            ],
                            alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                        ),
                        *grade_rows,
                        ft.Row([grade_type, value, weight, on], wrap=True),
                        ft.Row([description, ft.ElevatedButton("Note hinzufügen", on_click=add_grade)], wrap=True),
                        error,
                    ]
                ),
            )
        )

    def stats_view(self) -> ft.Control:
        subjects = self.store.list_subjects()
        stats = calc_overall_stats(subjects)
        if not stats.subjects_with_grades:
            return ft.Text("Füge Noten hinzu, um deine Statistiken zu sehen")

        lines: list[ft.Control] = [
            ft.Row([ft.Text("Gesamtdurchschnitt:"), grade_text(stats.overall_average)]),
            ft.Row([ft.Text("Hauptfächer:"), grade_text(stats.main_average)]),
            ft.Row([ft.Text("Nebenfächer:"), grade_text(stats.other_average)]),
            ft.Text(f"Noten insgesamt: {stats.total_grades}"),
        ]
        if stats.best and stats.worst:
            lines.append(ft.Row([ft.Text(f"Bestes Fach: {stats.best.subject.name}"), grade_text(stats.best.grade)]))
            lines.append(ft.Row([ft.Text(f"Schwächstes Fach: {stats.worst.subject.name}"), grade_text(stats.worst.grade)]))

        ranking = [
            ft.Row([ft.Text(f"{idx}. {r.subject.name}"), grade_text(r.grade), ft.Text(TREND_LABELS[grade_trend(r.subject.grades)])])
            for idx, r in enumerate(ranked_subjects(subjects), start=1)
        ]
        return ft.Column([*lines, ft.Divider(), ft.Text("Rangliste", size=20, weight=ft.FontWeight.BOLD), *ranking])

    def goals_view(self, refresh_all) -> ft.Control:
        subjects = self.store.list_subjects()
        today = date.today()
        error = ft.Text(color=ft.Colors.RED)

        achievements = evaluate_achievements(subjects)
        unlocked = sum(1 for a in achievements if a.unlocked)
        achievement_lines = [
            ft.Text(
                f"{'✓' if a.unlocked else '○'} {a.title} - {a.description} ({a.progress}/{a.max_progress})",
                color=None if a.unlocked else ft.Colors.GREY,
            )
            for a in achievements
        ]

        goal_lines: list[ft.Control] = []
        names = {s.id: s.name for s in subjects}
        for goal in self.store.list_goals():
            status = evaluate_goal(goal, subjects, today)
            current = "-" if status.current_grade is None else f"{status.current_grade:.1f}"
            goal_lines.append(
                ft.Row(
                    [
                        ft.Column(
                            [
                                ft.Text(f"{goal.title} ({names.get(goal.subject_id, 'Unbekanntes Fach')})"),
                                ft.Text(f"Ziel {goal.target_grade:.1f}, aktuell {current}, noch {status.days_left} Tage"
                                        + (" - erreicht!" if status.achieved else "")),
                                ft.ProgressBar(value=status.progress / 100, width=300),
                            ]
                        ),
                        ft.IconButton(
                            icon=ft.Icons.DELETE,
                            on_click=lambda _, gid=goal.id: (self.store.delete_goal(gid), refresh_all()),
                        ),
                    ],
                    alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                )
            )

        if not subjects:
            goal_form: list[ft.Control] = [ft.Text("Lege zuerst Fächer an")]
        else:
            title = ft.TextField(label="Ziel", width=220)
            subject_dd = ft.Dropdown(label="Fach", options=[ft.dropdown.Option(s.id, s.name) for s in subjects], value=subjects[0].id)
            target = ft.TextField(label="Zielnote", width=100, value="2.0")
            target_date = ft.TextField(label="Bis (JJJJ-MM-TT)", width=170)

            def add_goal(_: ft.ControlEvent) -> None:
                try:
                    self.store.add_goal(title.value, subject_dd.value, float(target.value), date.fromisoformat(target_date.value.strip()))
                    refresh_all()
                except ValueError as exc:
                    error.value = str(exc)
                    self.page.update()

            goal_form = [ft.Row([title, subject_dd, target, target_date], wrap=True), ft.ElevatedButton("Ziel speichern", on_click=add_goal)]

        return ft.Column(
            [
                ft.Text(f"Erfolge ({unlocked}/{len(achievements)})", size=20, weight=ft.FontWeight.BOLD),
                *achievement_lines,
                ft.Divider(),
                ft.Text("Ziel-Tracker", size=20, weight=ft.FontWeight.BOLD),
                *goal_form,
                error,
                *goal_lines,
            ]
        )

    def export_view(self, refresh_all) -> ft.Control:
        student = ft.TextField(label="Name", value=settings.student_name or "")
        import_path = ft.TextField(label="JSON-Datei importieren", width=360)
        status = ft.Text()

        def export(kind: str) -> None:
            try:
                path = write_export(kind, self.store.list_subjects(), settings.export_dir, student.value or None)
                status.value = f"Gespeichert: {path}"
                status.color = ft.Colors.GREEN
            except (OSError, ValueError) as exc:
                status.value = f"Export fehlgeschlagen: {exc}"
                status.color = ft.Colors.RED
            self.page.update()

        def do_import(_: ft.ControlEvent) -> None:
            try:
                subjects = import_json(Path(import_path.value.strip()).read_text(encoding="utf-8"))
                self.store.replace_subjects(subjects)
                refresh_all(changed=True)
            except (OSError, ValueError, StorageError) as exc:
                status.value = f"Import fehlgeschlagen: {exc}"
                status.color = ft.Colors.RED
                self.page.update()

        controls: list[ft.Control] = [
            student,
            ft.Row([ft.ElevatedButton(f"Als {kind.upper()} exportieren", on_click=lambda _, k=kind: export(k)) for kind in ("json", "csv", "html")]),
            ft.Row([import_path, ft.OutlinedButton("Importieren", on_click=do_import)]),
        ]
        if self.session.is_authenticated:
            controls.append(ft.ElevatedButton("Jetzt synchronisieren", on_click=lambda _: refresh_all(changed=True)))
        controls.append(status)
        return ft.Column(controls)


def main(page: ft.Page) -> None:
    NotenmeisterApp(page).run()
