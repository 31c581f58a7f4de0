from __future__ import annotations

from typing import Any

import httpx


class ApiError(Exception):
    """Non-2xx response or transport failure talking to the Quizdeck API."""

    def __init__(self, status_code: int | None, message: str, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


def _error_message(resp: httpx.Response) -> tuple[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return (resp.text or resp.reason_phrase or "request failed"), None
    if isinstance(data, dict):
        msg = data.get("message") or data.get("error_message") or data.get("detail") or "request failed"
        return str(msg), data
    return "request failed", data


class QuizdeckClient:
    """Thin wrapper over the REST API.

    ``http`` may be any ``httpx.Client`` (tests pass FastAPI's TestClient);
    otherwise one is created for ``base_url``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        token: str | None = None,
        http: httpx.Client | None = None,
        timeout: httpx.Timeout | None = None,
    ):
        self.token = token
        self._owns_http = http is None
        self._http = http or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout or httpx.Timeout(connect=3.0, read=15.0, write=15.0, pool=3.0),
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "QuizdeckClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        params = kwargs.pop("params", None)
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            resp = self._http.request(method, path, headers=headers, params=params, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(None, f"network error: {e}") from e

        if resp.status_code >= 400:
            message, payload = _error_message(resp)
            raise ApiError(resp.status_code, message, payload)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(resp.status_code, "malformed response from server", resp.text) from e

    # -- auth --------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> str:
        data = self._request("POST", "/auth/register", json={"username": username, "email": email, "password": password})
        self.token = data["access_token"]
        return self.token

    def login(self, username: str, password: str) -> str:
        data = self._request("POST", "/auth/token", data={"username": username, "password": password})
        self.token = data["access_token"]
        return self.token

    def me(self) -> dict:
        return self._request("GET", "/auth/me")

    # -- quizzes -----------------------------------------------------------

    def list_quizzes(self, page: int = 1, limit: int = 10, *, search: str | None = None, category: str | None = None) -> dict:
        return self._request(
            "GET", "/quizzes", params={"page": page, "limit": limit, "search": search, "category": category}
        )

    def list_my_quizzes(self, page: int = 1, limit: int = 10, *, search: str | None = None, category: str | None = None) -> dict:
        return self._request(
            "GET", "/quizzes/user", params={"page": page, "limit": limit, "search": search, "category": category}
        )

    def get_quiz(self, quiz_id: str) -> dict:
        return self._request("GET", f"/quizzes/{quiz_id}")

    def create_quiz(self, quiz: dict) -> dict:
        return self._request("POST", "/quizzes", json=quiz)

    def update_quiz(self, quiz_id: str, changes: dict) -> dict:
        return self._request("PUT", f"/quizzes/{quiz_id}", json=changes)

    def delete_quiz(self, quiz_id: str) -> dict:
        return self._request("DELETE", f"/quizzes/{quiz_id}")

    def quiz_analytics(self, quiz_id: str) -> dict:
        return self._request("GET", f"/quizzes/{quiz_id}/analytics")

    # -- attempts ----------------------------------------------------------

    def submit_attempt(self, quiz_id: str, attempt: dict) -> dict:
        return self._request("POST", f"/attempts/{quiz_id}", json=attempt)

    def list_my_attempts(self, quiz_id: str, page: int = 1, limit: int = 10) -> dict:
        return self._request("GET", f"/attempts/user/{quiz_id}", params={"page": page, "limit": limit})

    def list_quiz_attempts(self, quiz_id: str, page: int = 1, limit: int = 10) -> dict:
        return self._request("GET", f"/attempts/quiz/{quiz_id}", params={"page": page, "limit": limit})

    def get_attempt(self, attempt_id: str) -> dict:
        return self._request("GET", f"/attempts/{attempt_id}")
