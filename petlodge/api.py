"""
Client for the alternate PetLodge REST backend.

Every call returns the decoded JSON body. Non-2xx answers and bodies that
aren't JSON raise ApiError; transport timeouts raise RequestTimeoutError.

Usage:
    with PetLodgeApiClient("https://api.petlodge.example") as api:
        api.login("mia", "secret")
        posts = api.search_posts("cat", city="Berlin")
"""

import base64
import json
from dataclasses import dataclass
from typing import Any

import httpx

from ._logging import logger
from .config import ApiOptions
from .exceptions import ApiError, RequestTimeoutError


@dataclass
class CurrentUser:
    user_id: str | None
    username: str | None


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """Decodes the (unverified) payload segment of a JWT."""
    payload = token.split(".")[1]
    padded = payload + "=" * (-len(payload) % 4)
    decoded = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    if not isinstance(decoded, dict):
        raise ValueError("JWT payload is not an object")
    return decoded


class PetLodgeApiClient:
    """
    Client for the PetLodge REST backend.

    Every call returns the decoded JSON body. Failed calls raise ApiError
    (RequestTimeoutError on timeouts). After login() the bearer token is
    attached to every request except register and login.

    Usage:
        with PetLodgeApiClient("https://api.petlodge.app") as api:
            api.login("mia", "secret")
            posts = api.search_posts("cat", city="Berlin")
    """

    def __init__(
        self,
        base_url: str = "",
        token: str | None = None,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.token = token
        self._user_id: str | None = None
        self._username: str | None = None
        self._http = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_options(
        cls, options: ApiOptions, transport: httpx.BaseTransport | None = None
    ) -> "PetLodgeApiClient":
        """Builds a client from ApiOptions."""
        return cls(base_url=options.base_url, timeout=options.timeout, transport=transport)

    def close(self) -> None:
        """Closes the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self) -> "PetLodgeApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        *,
        json_body: Any | None = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Any:
        headers: dict[str, str] = {}
        # register/login go out without the bearer token
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        clean_params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        logger.debug(
            "API request",
            extra={"method": method, "url": url, "has_auth": "Authorization" in headers},
        )
        try:
            response = self._http.request(
                method,
                url,
                json=json_body,
                params=clean_params or None,
                files=files,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{method} {url} timed out", original_error=e) from e
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {url} failed: {e}", original_error=e) from e

        logger.debug(
            "API response", extra={"method": method, "url": url, "status": response.status_code}
        )

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(
                "Invalid response format", status_code=response.status_code, original_error=e
            ) from e

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(
                "API error", extra={"method": method, "url": url, "status": response.status_code}
            )
            raise ApiError(
                message
                or f"Request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return data

    # --- AUTH & PROFILE ---

    def register(self, username: str, password: str) -> Any:
        """POST /api/register. Creates an account; sent without a token."""
        return self._request(
            "POST",
            "/api/register",
            json_body={"username": username, "password": password},
            auth=False,
        )

    def login(self, username: str, password: str) -> Any:
        """Logs in and keeps the issued token for later calls."""
        response = self._request(
            "POST",
            "/api/login",
            json_body={"username": username, "password": password},
            auth=False,
        )
        data = response.get("data") if isinstance(response, dict) else None
        if isinstance(data, dict) and data.get("token"):
            self.token = data["token"]
            self._user_id = data.get("userid")
            self._username = data.get("username")
            logger.info("Logged in", extra={"operation": "login"})
        return response

    def logout(self) -> None:
        """Forgets the token and login details. No request is made."""
        self.token = None
        self._user_id = None
        self._username = None

    def current_user(self) -> CurrentUser | None:
        """
        Identity from the token payload, falling back to what login returned.
        None when not logged in.
        """
        if not self.token:
            return None
        try:
            payload = decode_jwt_payload(self.token)
        except (IndexError, ValueError, UnicodeError):
            logger.warning("Failed to decode token, using login response values")
            return CurrentUser(user_id=self._user_id, username=self._username)
        return CurrentUser(
            user_id=payload.get("userId") or self._user_id,
            username=payload.get("username") or self._username,
        )

    def get_profile(self) -> Any:
        """GET /api/user/profile. Profile of the logged-in user."""
        return self._request("GET", "/api/user/profile")

    def update_profile(self, modified: dict[str, Any]) -> Any:
        """PUT /api/user/profile with the changed fields under "modified"."""
        return self._request("PUT", "/api/user/profile", json_body={"modified": modified})

    def change_password(self, new_password: str) -> Any:
        """PUT /api/change/password for the logged-in user."""
        return self._request("PUT", "/api/change/password", json_body={"password": new_password})

    # --- POSTS ---

    def upload_image(
        self, body: bytes, filename: str, content_type: str = "application/octet-stream"
    ) -> Any:
        """POST /api/upload/image as multipart field "image". Returns the key and URL."""
        return self._request(
            "POST", "/api/upload/image", files={"image": (filename, body, content_type)}
        )

    def create_post(self, post: dict[str, Any]) -> Any:
        """POST /api/posts. Returns the created post."""
        return self._request("POST", "/api/posts", json_body=post)

    def get_post(self, post_id: str) -> Any:
        """GET /api/posts/{id}. A single post."""
        return self._request("GET", f"/api/posts/{post_id}")

    def update_post(self, post_id: str, modified: dict[str, Any]) -> Any:
        """PUT /api/posts/{id} with the changed fields under "modified"."""
        return self._request("PUT", f"/api/posts/{post_id}", json_body={"modified": modified})

    def delete_post(self, post_id: str) -> Any:
        """DELETE /api/posts/{id}."""
        return self._request("DELETE", f"/api/posts/{post_id}")

    def list_posts(self) -> Any:
        """GET /api/posts. Every post."""
        return self._request("GET", "/api/posts")

    def carousel_posts(self, limit: int = 4) -> Any:
        """GET /api/posts/carousel. The latest `limit` posts for the home carousel."""
        return self._request("GET", "/api/posts/carousel", params={"limit": limit})

    def search_posts(
        self, query: str | None = None, city: str | None = None, pet_type: str | None = None
    ) -> Any:
        """GET /api/posts/search. Empty filters are left out of the query string."""
        return self._request(
            "GET", "/api/posts/search", params={"q": query, "city": city, "petType": pet_type}
        )

    def user_posts(self) -> Any:
        """GET /api/user/posts. Posts owned by the logged-in user."""
        return self._request("GET", "/api/user/posts")

    # --- FAVORITES & REPLIES ---

    def favorite_post(self, post_id: str) -> Any:
        """POST /api/posts/{id}/favorite. Marks a post as a favorite."""
        return self._request("POST", f"/api/posts/{post_id}/favorite")

    def unfavorite_post(self, post_id: str) -> Any:
        """DELETE /api/posts/{id}/favorite."""
        return self._request("DELETE", f"/api/posts/{post_id}/favorite")

    def favorites(self) -> Any:
        """GET /api/user/favorites. The logged-in user's favorite posts."""
        return self._request("GET", "/api/user/favorites")

    def add_reply(self, post_id: str, content: str, reply_time: str | None = None) -> Any:
        """POST /api/addreply. Adds a reply under a post."""
        return self._request(
            "POST",
            "/api/addreply",
            params={"post_id": post_id, "reply_content": content, "reply_time": reply_time},
        )
