import unittest
from datetime import date
from unittest import mock

from requests import Timeout

from notenmeister.domain.models.entities import Grade, GradeType, Subject
from notenmeister.services.sync_service import SupabaseSyncService, SyncServiceError
from notenmeister.state.session_state import SessionState


def response(status_code=200, payload=None):
    res = mock.Mock()
    res.status_code = status_code
    res.content = b"" if payload is None else b"[]"
    res.json.return_value = payload
    res.text = ""
    return res


class SupabaseSyncServiceTests(unittest.TestCase):
    def setUp(self):
        self.service = SupabaseSyncService("https://demo.supabase.co", "anon", "jwt", "user-1")

    def test_requires_session(self):
        with self.assertRaises(SyncServiceError):
            SupabaseSyncService("https://demo.supabase.co", "anon", "", "user-1")
        with self.assertRaises(SyncServiceError):
            SupabaseSyncService.from_session(SessionState())

    @mock.patch("notenmeister.services.sync_service.requests.request")
    def test_sync_replaces_remote_rows(self, request):
        request.side_effect = [
            response(204),
            response(201, [{"id": "remote-1"}]),
            response(201),
            response(201, [{"id": "remote-2"}]),
        ]
        subjects = [
            Subject("d", "Deutsch", True, (Grade("g1", GradeType.SA, 2.0, 1.0, date(2024, 3, 5), "Aufsatz"),), 2.0),
            Subject("k", "Kunst", False, ()),
        ]
        self.service.sync_subjects(subjects)

        calls = request.call_args_list
        self.assertEqual(len(calls), 4)
        self.assertEqual(calls[0].args, ("DELETE", "https://demo.supabase.co/rest/v1/subjects"))
        self.assertEqual(calls[0].kwargs["params"], {"user_id": "eq.user-1"})
        self.assertEqual(
            calls[1].kwargs["json"],
            {"user_id": "user-1", "name": "Deutsch", "is_main_subject": True, "final_grade": 2.0},
        )
        self.assertEqual(calls[1].kwargs["headers"]["Prefer"], "return=representation")
        self.assertEqual(
            calls[2].kwargs["json"],
            [
                {
                    "subject_id": "remote-1",
                    "user_id": "user-1",
                    "type": "SA",
                    "value": 2.0,
                    "weight": 1.0,
                    "description": "Aufsatz",
                    "date": "2024-03-05",
                }
            ],
        )
        self.assertEqual(calls[3].kwargs["json"]["name"], "Kunst")

    @mock.patch("notenmeister.services.sync_service.requests.request")
    def test_load_joins_grades(self, request):
        request.side_effect = [
            response(200, [
                {"id": "s1", "name": "Mathematik", "is_main_subject": True, "final_grade": None},
                {"id": "s2", "name": "Sport", "is_main_subject": False, "final_grade": "1.5"},
            ]),
            response(200, [
                {"id": "g1", "subject_id": "s1", "type": "Ex", "value": "3", "weight": "1", "description": None, "date": "2024-02-01"},
                {"id": "g2", "subject_id": "s1", "type": "SA", "value": 2, "weight": 2, "description": "SA 1", "date": "2024-03-01"},
            ]),
        ]
        subjects = self.service.load_subjects()
        self.assertEqual([s.name for s in subjects], ["Mathematik", "Sport"])
        self.assertEqual([g.id for g in subjects[0].grades], ["g1", "g2"])
        self.assertEqual(subjects[0].grades[0].value, 3.0)
        self.assertEqual(subjects[0].grades[1].date, date(2024, 3, 1))
        self.assertEqual(subjects[1].grades, ())
        self.assertEqual(subjects[1].final_grade, 1.5)
        self.assertEqual(request.call_args_list[1].kwargs["params"]["order"], "date.asc")

    @mock.patch("notenmeister.services.sync_service.requests.request")
    def test_http_error(self, request):
        res = response(401, {"message": "JWT expired"})
        res.content = b"{}"
        request.return_value = res
        with self.assertRaisesRegex(SyncServiceError, "JWT expired"):
            self.service.load_subjects()

    @mock.patch("notenmeister.services.sync_service.requests.request")
    def test_network_failure(self, request):
        request.side_effect = Timeout("slow")
        with self.assertRaisesRegex(SyncServiceError, "SYNC_SERVICE_UNAVAILABLE"):
            self.service.sync_subjects([])

    @mock.patch("notenmeister.services.sync_service.requests.request")
    def test_malformed_grade_row(self, request):
        request.side_effect = [
            response(200, [{"id": "s1", "name": "Latein", "is_main_subject": True}]),
            response(200, [{"id": "g1", "subject_id": "s1", "type": "??", "value": 2, "weight": 1, "date": "2024-01-01"}]),
        ]
        with self.assertRaises(SyncServiceError):
            self.service.load_subjects()


if __name__ == "__main__":
    unittest.main()
