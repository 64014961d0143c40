import unittest
from unittest import mock

from requests import ConnectionError as RequestsConnectionError

from notenmeister.services.auth_service import AuthServiceError, SupabaseAuthService


def response(status_code, payload):
    res = mock.Mock()
    res.status_code = status_code
    res.content = b"{}"
    res.json.return_value = payload
    return res


SESSION = {
    "access_token": "jwt",
    "refresh_token": "refresh",
    "user": {"id": "user-1", "email": "anna@example.com"},
}


class SupabaseAuthServiceTests(unittest.TestCase):
    def setUp(self):
        self.auth = SupabaseAuthService("https://demo.supabase.co/", "anon")

    def test_requires_configuration(self):
        with self.assertRaises(AuthServiceError):
            SupabaseAuthService("", "anon")
        with self.assertRaises(AuthServiceError):
            SupabaseAuthService("https://demo.supabase.co", "")

    @mock.patch("notenmeister.services.auth_service.requests.post")
    def test_sign_in(self, post):
        post.return_value = response(200, SESSION)
        result = self.auth.sign_in("anna@example.com", "geheim")
        self.assertEqual(result.uid, "user-1")
        self.assertEqual(result.id_token, "jwt")
        self.assertEqual(result.refresh_token, "refresh")
        url = post.call_args.args[0]
        self.assertEqual(url, "https://demo.supabase.co/auth/v1/token?grant_type=password")
        self.assertEqual(post.call_args.kwargs["headers"]["apikey"], "anon")
        self.assertEqual(post.call_args.kwargs["timeout"], 15)

    @mock.patch("notenmeister.services.auth_service.requests.post")
    def test_sign_up_then_sign_in(self, post):
        post.side_effect = [response(200, {"id": "user-1"}), response(200, SESSION)]
        result = self.auth.sign_up("anna@example.com", "geheim", name="Anna")
        self.assertEqual(result.email, "anna@example.com")
        first_payload = post.call_args_list[0].kwargs["json"]
        self.assertEqual(first_payload["data"], {"name": "Anna"})

    @mock.patch("notenmeister.services.auth_service.requests.post")
    def test_error_message_is_raised(self, post):
        post.return_value = response(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})
        with self.assertRaisesRegex(AuthServiceError, "Invalid login credentials"):
            self.auth.sign_in("anna@example.com", "falsch")

    @mock.patch("notenmeister.services.auth_service.requests.post")
    def test_network_failure(self, post):
        post.side_effect = RequestsConnectionError("down")
        with self.assertRaisesRegex(AuthServiceError, "AUTH_SERVICE_UNAVAILABLE"):
            self.auth.sign_in("anna@example.com", "geheim")

    @mock.patch("notenmeister.services.auth_service.requests.post")
    def test_incomplete_session(self, post):
        post.return_value = response(200, {"access_token": "jwt"})
        with self.assertRaises(AuthServiceError):
            self.auth.sign_in("anna@example.com", "geheim")

    @mock.patch("notenmeister.services.auth_service.requests.post")
    def test_sign_out_uses_access_token(self, post):
        res = response(204, None)
        res.content = b""
        post.return_value = res
        self.auth.sign_out("jwt")
        self.assertEqual(post.call_args.kwargs["headers"]["Authorization"], "Bearer jwt")


if __name__ == "__main__":
    unittest.main()
