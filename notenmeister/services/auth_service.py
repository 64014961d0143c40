from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional
import requests
from requests import RequestException

from notenmeister.config.settings import settings

logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    pass


@dataclass
class AuthResult:
    uid: str
    email: str
    id_token: str
    refresh_token: str


class SupabaseAuthService:
    SIGN_UP_PATH = "/auth/v1/signup"
    LOGIN_PATH = "/auth/v1/token?grant_type=password"
    LOGOUT_PATH = "/auth/v1/logout"

    def __init__(self, url: str, anon_key: str) -> None:
        if not url:
            raise AuthServiceError("Missing SUPABASE_URL in environment")
        if not anon_key:
            raise AuthServiceError("Missing SUPABASE_ANON_KEY in environment")
        self.url = url.rstrip("/")
        self.anon_key = anon_key

    @classmethod
    def from_settings(cls) -> "SupabaseAuthService":
        return cls(settings.supabase_url, settings.supabase_anon_key)

    def sign_up(self, email: str, password: str, name: Optional[str] = None) -> AuthResult:
        payload: Dict[str, Any] = {
            "email": email,
            "password": password,
        }
        if name and name.strip():
            payload["data"] = {"name": name.strip()}
        self._post(self.SIGN_UP_PATH, payload)
        return self.sign_in(email, password)

    def sign_in(self, email: str, password: str) -> AuthResult:
        payload = {
            "email": email,
            "password": password,
        }
        response = self._post(self.LOGIN_PATH, payload)
        logger.info("Signed in %s", email)
        return self._to_result(response, email)

    def sign_out(self, access_token: str) -> None:
        self._post(self.LOGOUT_PATH, {}, access_token=access_token)

    def _post(self, path: str, payload: Dict[str, Any], access_token: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self.url}{path}"
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
        }
        try:
            res = requests.post(url, headers=headers, json=payload, timeout=15)
        except RequestException as exc:
            raise AuthServiceError("AUTH_SERVICE_UNAVAILABLE") from exc
        if res.status_code == 204 or not res.content:
            if res.status_code >= 400:
                raise AuthServiceError("AUTH_ERROR")
            return {}
        try:
            data = res.json()
        except ValueError as exc:
            raise AuthServiceError("AUTH_SERVICE_UNAVAILABLE") from exc

        if res.status_code >= 400:
            error_key = str(
                data.get("error_description") or data.get("msg") or data.get("message") or data.get("error") or "AUTH_ERROR"
            )
            raise AuthServiceError(error_key)

        return data

    @staticmethod
    def _to_result(data: Dict[str, Any], email: str) -> AuthResult:
        user = data.get("user") or {}
        uid = str(user.get("id") or "")
        access_token = str(data.get("access_token") or "")
        if not uid or not access_token:
            raise AuthServiceError("INVALID_SUPABASE_SESSION")
        return AuthResult(
            uid=uid,
            email=str(user.get("email") or email),
            id_token=access_token,
            refresh_token=str(data.get("refresh_token") or ""),
        )
