"""Password protection for configured drive directories.

A directory listed in ``protected_routes`` is protected by a ``.password`` file
stored inside it. Clients send the SHA-256 hex digest of that password, either
in the ``od-protected-token`` header or the ``odpt`` query parameter, and the
request proceeds only when it matches the digest of the stored password.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

import httpx

from odindex.core.config import Settings
from odindex.services.graph import DOWNLOAD_URL, GraphAPIError, GraphClient
from odindex.services.paths import encode_path

PASSWORD_FILE_NAME = ".password"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a protected route check.

    A code other than 200 must be returned to the client as is. A 200 with a
    non-empty message means the route is protected and the caller proved the
    password, so the response must not be cached.
    """

    code: int
    message: str

    @property
    def ok(self) -> bool:
        return self.code == 200

    @property
    def protected(self) -> bool:
        return self.message != ""


class TokenComparator(Protocol):
    def __call__(self, supplied_token: str | None, secret: str) -> bool:
        ...


def hash_password(password: str) -> str:
    """Return the token a client sends for ``password``."""

    return hashlib.sha256(password.strip().encode("utf-8")).hexdigest()


class HashedTokenComparator:
    """Accept the supplied token when it equals the hash of the stored password."""

    def __call__(self, supplied_token: str | None, secret: str) -> bool:
        if not supplied_token:
            return False
        return hmac.compare_digest(supplied_token.encode("utf-8"), hash_password(secret).encode("utf-8"))


def get_auth_token_path(path: str, protected_routes: Iterable[object]) -> str:
    """Return the path of the password file guarding ``path``, or ``""``.

    Matching is case-insensitive and compares whole path components. Routes are
    tried in configuration order and the first match wins.
    """

    candidate = path.lower() + "/"
    for route in protected_routes:
        if not isinstance(route, str):
            continue
        prefix = route.lower()
        if prefix.endswith("/"):
            prefix = prefix[:-1]
        prefix += "/"
        if candidate.startswith(prefix):
            return f"{prefix}{PASSWORD_FILE_NAME}"
    return ""


class ProtectedRouteAuthenticator:
    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        comparator: TokenComparator | None = None,
    ):
        self.settings = settings
        self._transport = transport
        self._comparator = comparator or HashedTokenComparator()

    async def check_auth_route(
        self, path: str, access_token: str, supplied_token: str | None
    ) -> AuthResult:
        auth_token_path = get_auth_token_path(path, self.settings.protected_routes)
        if auth_token_path == "":
            return AuthResult(200, "")

        graph = GraphClient(self.settings, access_token, transport=self._transport)
        try:
            metadata = await graph.get_item(
                encode_path(auth_token_path, self.settings.base_directory),
                select=f"{DOWNLOAD_URL},file",
            )
            download_url = metadata.get(DOWNLOAD_URL)
            if not download_url:
                logger.error("Password file has no download URL", extra={"path": auth_token_path})
                return AuthResult(500, "Internal server error.")
            secret = await graph.fetch_text(download_url)
        except GraphAPIError as exc:
            if exc.status_code == 404:
                logger.warning("Protected route has no password file", extra={"path": auth_token_path})
                return AuthResult(404, "You didn't set a password.")
            return AuthResult(500, "Internal server error.")

        if not self._comparator(supplied_token, secret):
            logger.info("Rejected request to protected route", extra={"path": path})
            return AuthResult(401, "Password required.")
        return AuthResult(200, "Authenticated.")
