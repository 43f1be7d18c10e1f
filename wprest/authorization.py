"""Authorization handlers for WordPress REST requests.

Supports HTTP Basic authentication (application passwords or the
``WP-API/Basic-Auth`` plugin) and JWT authentication as provided by the
``jwt-auth`` plugin.  A handler mutates only its own cached token; all
mutation happens under an instance lock so one handler can back many
concurrent requests.
"""
from __future__ import annotations

import base64
import enum
import logging
import threading
from typing import TYPE_CHECKING, Optional
from urllib.parse import urljoin

import requests

from .models import JwtToken, JwtValidation

if TYPE_CHECKING:  # pragma: no cover
    from .request import Callback

logger = logging.getLogger(__name__)

JWT_TOKEN_PATH = "jwt-auth/v1/token"
JWT_VALIDATE_PATH = "jwt-auth/v1/token/validate"


class AuthorizationType(enum.Enum):
    BASIC = "basic"
    JWT = "jwt"
    NO_AUTH = "noauth"


def _join(base_url: str, path: str) -> str:
    return urljoin(base_url.rstrip("/") + "/", path)


class WordPressAuthorization:
    """Credential material plus the logic to attach it to a request.

    Parameters
    ----------
    username, password: str
        Credentials. Empty values produce a *default* handler which never
        attaches a header.
    auth_type: AuthorizationType
        Authentication scheme to use.
    jwt_token: str, optional
        A token obtained earlier; when given, login is skipped if the
        server confirms it is still valid.
    """

    def __init__(
        self,
        username: str,
        password: str,
        auth_type: AuthorizationType = AuthorizationType.BASIC,
        jwt_token: Optional[str] = None,
    ) -> None:
        if username is None or password is None:
            raise ValueError("username and password can't be None")
        self.username = username
        self.password = password
        self.auth_type = auth_type
        self.scheme = ""
        self._access_token = ""
        self._validated = False
        self._lock = threading.RLock()

        if not self.is_default:
            if auth_type is AuthorizationType.BASIC:
                self.scheme = "Basic"
                self._access_token = base64.b64encode(
                    f"{username}:{password}".encode("utf-8")
                ).decode("ascii")
            elif auth_type is AuthorizationType.JWT:
                self.scheme = "Bearer"
                self._access_token = jwt_token or ""

    @classmethod
    def default(cls) -> "WordPressAuthorization":
        return cls("", "", auth_type=AuthorizationType.NO_AUTH)

    def __repr__(self) -> str:
        return f"WordPressAuthorization(username={self.username!r}, auth_type={self.auth_type.value})"

    @property
    def is_default(self) -> bool:
        return self.auth_type is AuthorizationType.NO_AUTH or not self.username or not self.password

    @property
    def is_valid(self) -> bool:
        """True when a header value is available without a network call."""
        if self.is_default:
            return False
        if self.auth_type is AuthorizationType.JWT:
            return self._validated and bool(self._access_token)
        return bool(self._access_token)

    @property
    def access_token(self) -> str:
        return self._access_token

    @property
    def header_value(self) -> Optional[str]:
        if self.is_default or not self._access_token:
            return None
        return f"{self.scheme} {self._access_token}"

    # Public API -----------------------------------------------------------
    def authorize(
        self,
        request: requests.Request,
        session: requests.Session,
        base_url: str,
        callback: Optional["Callback"] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Attach an ``Authorization`` header to ``request``.

        Returns ``False`` when credentials could not be obtained. Never
        raises; transport errors are reported through
        ``callback.on_exception`` and converted to ``False``.
        """
        if self.is_default:
            return True

        with self._lock:
            if self.auth_type is AuthorizationType.JWT and not self.authenticate(
                session, base_url, callback, timeout
            ):
                return False
            value = self.header_value
        if value is None:
            return False
        request.headers["Authorization"] = value
        return True

    def authenticate(
        self,
        session: requests.Session,
        base_url: str,
        callback: Optional["Callback"] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Make sure a validated JWT token is cached, logging in if needed."""
        if self.auth_type is not AuthorizationType.JWT or session is None or not base_url:
            return False

        with self._lock:
            if self._validated and self._access_token:
                return True

            if self._access_token and self._validate_token(session, base_url, timeout):
                return True

            try:
                response = session.post(
                    _join(base_url, JWT_TOKEN_PATH),
                    data={"username": self.username, "password": self.password},
                    # Drop any session-wide Authorization header.
                    headers={"Authorization": None},
                    timeout=timeout,
                )
                if not response.ok:
                    logger.warning("JWT login rejected with HTTP %s", response.status_code)
                    return False
                token = JwtToken.from_dict(response.json())
            except (requests.RequestException, ValueError, TypeError, AttributeError) as exc:
                logger.warning("JWT login failed: %s", exc)
                if callback is not None:
                    callback.exception(exc)
                return False

            if not token.token:
                logger.warning("JWT login response did not contain a token")
                return False

            self._access_token = token.token
            # Tokens issued by the server count as validated.
            self._validated = True
            logger.info("Obtained JWT token for %s", self.username)
            return True

    def _validate_token(
        self, session: requests.Session, base_url: str, timeout: Optional[float]
    ) -> bool:
        try:
            response = session.post(
                _join(base_url, JWT_VALIDATE_PATH),
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=timeout,
            )
            if not response.ok:
                return False
            validation = JwtValidation.from_dict(response.json())
        except (requests.RequestException, ValueError, TypeError, AttributeError) as exc:
            logger.debug("JWT token validation failed: %s", exc)
            return False

        self._validated = validation.success
        return validation.success

    def logout(self) -> None:
        """Forget the cached token and validation state."""
        with self._lock:
            self._validated = False
            if self.auth_type is AuthorizationType.JWT:
                self._access_token = ""
