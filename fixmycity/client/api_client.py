"""HTTP client for the FixMyCity API.

The access token lives only in this object's memory. The refresh token is
an httpOnly cookie kept in the ``requests.Session`` cookie jar, so after a
restart ``restore_session()`` can trade it for a new access token without
asking the user to log in again.
"""
import logging
import time
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY = 1.0 # seconds, multiplied by the attempt number


class ApiClientError(Exception):
    """Terminal failure of an API call.

    ``status`` is the HTTP status, or 0 when the server could not be reached.
    ``data`` is the decoded error body when there was one.
    """

    def __init__(self, message: str, status: int, data: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data

    def __repr__(self):
        return f"ApiClientError(status={self.status}, message={self.message!r})"


class ApiClient:
    def __init__(
        self,
        base_url: str,
        session: requests.Session = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        timeout: float = 30,
        on_session_expired: Callable[[], None] = None,
        sleep: Callable[[float], None] = time.sleep,
        refresh_cookie_name: str = "refresh_token",
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.on_session_expired = on_session_expired
        self.sleep = sleep
        self.refresh_cookie_name = refresh_cookie_name
        self.access_token: Optional[str] = None
        self.user: Optional[dict] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # -- session lifecycle -------------------------------------------------

    def refresh_access_token(self) -> Optional[str]:
        """Exchange the refresh cookie for a new access token; None on any failure."""
        try:
            response = self.session.post(
                self._url("/auth/refresh"),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Token refresh error", extra={"reason": str(exc)})
            return None

        if not response.ok:
            logger.warning("Token refresh failed", extra={"status": response.status_code})
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        if body.get("success") and body.get("token"):
            self.access_token = body["token"]
            return self.access_token
        return None

    def restore_session(self) -> bool:
        """Silently re-establish a session on startup. Never raises."""
        return self.refresh_access_token() is not None

    def clear_credentials(self):
        self.access_token = None
        self.user = None

    def _expire_session(self):
        self.clear_credentials()
        logger.warning("Session expired. Please log in again.")
        if self.on_session_expired is not None:
            self.on_session_expired()

    def _start_session(self, response: requests.Response) -> dict:
        body = response.json()
        self.access_token = body.get("token")
        self.user = body.get("user")
        return body

    def login(self, email: str, password: str, role: str) -> dict:
        response = self.request(
            "POST", "/auth/login", json={"email": email, "password": password, "role": role}, public=True
        )
        return self._start_session(response)

    def register(self, **fields) -> dict:
        response = self.request("POST", "/auth/register", json=fields, public=True)
        return self._start_session(response)

    def logout(self):
        try:
            self.request("POST", "/auth/logout", public=True)
        finally:
            self.clear_credentials()
            self.session.cookies.set(self.refresh_cookie_name, None)

    # -- requests ----------------------------------------------------------

    def _send(self, method, url, token, json=None, files=None, data=None, params=None, headers=None):
        merged = dict(headers or {})
        # Multipart bodies need the transport to pick the boundary
        if files is None and method.upper() != "GET" and "Content-Type" not in merged:
            merged["Content-Type"] = "application/json"
        if token:
            merged["Authorization"] = f"Bearer {token}"
        return self.session.request(
            method,
            url,
            json=json,
            files=files,
            data=data,
            params=params,
            headers=merged,
            timeout=self.timeout,
        )

    @staticmethod
    def _error_from(response: requests.Response) -> ApiClientError:
        try:
            data = response.json()
        except ValueError:
            data = {"error": f"HTTP {response.status_code}: {response.reason}"}
        if not isinstance(data, dict):
            data = {"error": str(data)}
        message = data.get("error") or f"Request failed with status {response.status_code}"
        return ApiClientError(message, response.status_code, data)

    def request(
        self,
        method: str,
        path: str,
        json=None,
        files=None,
        data=None,
        params=None,
        headers=None,
        public: bool = False,
    ) -> requests.Response:
        """Send one API call.

        A 401 on the first attempt triggers one refresh and one retry. 5xx
        responses and network failures are retried up to ``max_retries``
        times with a linearly growing delay. Every other failure is raised
        as ``ApiClientError``.
        """
        url = self._url(path)
        attempt = 0
        while True:
            try:
                token = None if public else self.access_token
                response = self._send(method, url, token, json, files, data, params, headers)

                if response.status_code == 401 and attempt == 0 and not public:
                    new_token = self.refresh_access_token()
                    if not new_token:
                        self._expire_session()
                        raise ApiClientError("Authentication failed", 401)
                    response = self._send(method, url, new_token, json, files, data, params, headers)

                if response.status_code >= 500 and attempt < self.max_retries:
                    attempt += 1
                    self.sleep(self.retry_delay * attempt)
                    continue

                if not response.ok:
                    raise self._error_from(response)
                return response
            except ApiClientError:
                raise
            except requests.RequestException as exc:
                if attempt < self.max_retries:
                    attempt += 1
                    logger.info("Network error, retrying", extra={"attempt": attempt, "url": url})
                    self.sleep(self.retry_delay * attempt)
                    continue
                raise ApiClientError("Network error occurred", 0, {"error": str(exc)}) from exc

    def get(self, path: str, **kwargs) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, json=None, **kwargs) -> requests.Response:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json=None, **kwargs) -> requests.Response:
        return self.request("PUT", path, json=json, **kwargs)

    def patch(self, path: str, json=None, **kwargs) -> requests.Response:
        return self.request("PATCH", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self.request("DELETE", path, **kwargs)

    def upload(self, file_name: str, content: bytes, content_type: str, folder: str = "complaints") -> dict:
        response = self.request(
            "POST",
            "/upload",
            files={"file": (file_name, content, content_type)},
            data={"folder": folder},
        )
        return response.json()
