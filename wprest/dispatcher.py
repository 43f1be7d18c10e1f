"""Execution pipeline shared by every request the client sends.

Each call moves through the same steps: admission through the
concurrency gate, authorization, transmission, classification of the
response, statistics, global and per-request validation, and finally
deserialisation. Every failure is converted into a failed
:class:`~wprest.response.Response`; nothing raised inside the pipeline
reaches the caller.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from .activity import ActivityNotifier, ActivityStatus
from .authorization import WordPressAuthorization
from .cancellation import CancellationToken
from .errors import (
    AuthorizationFailedError,
    ErrorKind,
    RequestCancelledError,
    ResponseRejectedError,
    WordPressError,
)
from .request import Callback, Request
from .response import SEPARATOR, RequestStatus, Response
from .statistics import EndpointStatistics

logger = logging.getLogger(__name__)

# Bodies this short ("[]", "{}", "null") are treated as empty.
MIN_BODY_LENGTH = 4
CHUNK_SIZE = 8192
TIMEOUT_MESSAGE = "Operation cancelled. (exceeded timeout limit)"

Parser = Callable[[Any], Any]


def _body_encoding(response: requests.Response) -> str:
    # requests falls back to ISO-8859-1 for text/* without a charset.
    content_type = response.headers.get("Content-Type", "")
    if "charset=" in content_type.lower() and response.encoding:
        return response.encoding
    return "utf-8"


@dataclass
class _CallState:
    """What is known about a call so far, for building its response."""

    status_code: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    duration: dt.timedelta = dt.timedelta(0)

    def response(
        self,
        messages: Tuple[str, ...],
        *,
        value: Any = None,
        error: Optional[BaseException] = None,
        kind: Optional[ErrorKind] = None,
    ) -> Response:
        return Response(
            status=kind is None,
            status_code=self.status_code,
            duration=self.duration,
            headers=dict(self.headers),
            messages=messages,
            error=error,
            error_kind=kind,
            value=value if kind is None else None,
        )


class RequestDispatcher:
    """Turns :class:`Request` descriptors into HTTP calls.

    Parameters
    ----------
    session: requests.Session
        Shared transport. ``requests`` sessions are safe to share between
        threads for sending.
    base_url: str
        Site API root, used for JWT endpoints.
    timeout: float
        Seconds allowed per call when the request carries no token.
    max_concurrent_requests: int
        Size of the admission gate. ``0`` disables throttling.
    """

    def __init__(
        self,
        session: requests.Session,
        base_url: str,
        timeout: float = 60.0,
        max_concurrent_requests: int = 10,
        statistics: Optional[EndpointStatistics] = None,
        activity: Optional[ActivityNotifier] = None,
    ) -> None:
        self.session = session
        self.base_url = base_url
        self.timeout = timeout
        self.max_concurrent_requests = max_concurrent_requests
        self._gate = (
            threading.BoundedSemaphore(max_concurrent_requests)
            if max_concurrent_requests > 0
            else None
        )
        self.statistics = statistics if statistics is not None else EndpointStatistics()
        self.activity = activity if activity is not None else ActivityNotifier()
        self.response_preprocessor: Optional[Callable[[str], bool]] = None
        self.default_authorization: Optional[WordPressAuthorization] = None

    @property
    def throttled(self) -> bool:
        return self._gate is not None

    # Public API -----------------------------------------------------------
    def execute(self, request: Optional[Request], parser: Optional[Parser] = None) -> Response:
        """Route ``request`` to the entry point for its method."""
        method = request.method if request is not None else "GET"
        if method == "POST":
            return self.post(request, parser)
        if method == "PUT":
            return self.put(request, parser)
        if method == "DELETE":
            return self.delete(request)
        return self.get(request, parser)

    def get(self, request: Optional[Request], parser: Optional[Parser] = None) -> Response:
        return self._dispatch("GET", request, parser)

    def post(self, request: Optional[Request], parser: Optional[Parser] = None) -> Response:
        return self._dispatch("POST", request, parser)

    def put(self, request: Optional[Request], parser: Optional[Parser] = None) -> Response:
        return self._dispatch("PUT", request, parser)

    def delete(self, request: Optional[Request]) -> Response:
        """Send a DELETE; the response value is ``True`` on success."""
        return self._dispatch("DELETE", request, None, boolean=True)

    # Pipeline -------------------------------------------------------------
    def _dispatch(
        self,
        method: str,
        request: Optional[Request],
        parser: Optional[Parser],
        boolean: bool = False,
    ) -> Response:
        self.activity.notify(ActivityStatus.STARTED)

        if request is None or not request.is_executable or request.method != method:
            self.activity.notify(ActivityStatus.FINISHED)
            return Response(
                messages=("Request is not executable.",),
                error=WordPressError("Request is not executable."),
                error_kind=ErrorKind.PRECONDITION,
            )

        state = _CallState()
        callback = request.callback
        acquired = False
        try:
            if self._gate is not None:
                self._gate.acquire()
                acquired = True

            self.activity.notify(ActivityStatus.RUNNING)
            token = request.token or CancellationToken.with_timeout(self.timeout)
            response = self._run(request, token, state, parser, boolean)
            callback.request_status(RequestStatus(response.status, response.messages[0]))
            return response
        except (RequestCancelledError, requests.Timeout) as exc:
            self.activity.notify(ActivityStatus.ABORTED)
            error = exc
            if not isinstance(exc, RequestCancelledError):
                error = RequestCancelledError(TIMEOUT_MESSAGE, timeout=self.timeout)
                error.__cause__ = exc
            logger.warning("%s %s cancelled: %s", method, request.uri, exc)
            callback.exception(error)
            callback.request_status(RequestStatus(False, TIMEOUT_MESSAGE))
            return state.response(
                ("Request cancelled. [Exceeded timeout limit]", SEPARATOR, str(exc), SEPARATOR),
                error=error,
                kind=ErrorKind.CANCELLED,
            )
        except Exception as exc:
            self.activity.notify(ActivityStatus.ABORTED)
            logger.exception("%s %s failed", method, request.uri)
            callback.exception(exc)
            callback.request_status(RequestStatus(False, str(exc)))
            return state.response(
                (f"Request exception occurred. [{exc}]", SEPARATOR, repr(exc), SEPARATOR),
                error=exc,
                kind=ErrorKind.UNHANDLED,
            )
        finally:
            if acquired:
                self._gate.release()
            self.activity.notify(ActivityStatus.FINISHED)

    def _run(
        self,
        request: Request,
        token: CancellationToken,
        state: _CallState,
        parser: Optional[Parser],
        boolean: bool,
    ) -> Response:
        http_request = requests.Request(
            request.method,
            request.uri,
            headers=request.headers,
            data=request.form or None,
            files=dict(request.files) or None,
        )

        if request.requires_authorization:
            token.raise_if_cancelled()
            authorization = request.authorization or self.default_authorization
            if authorization is None or not authorization.authorize(
                http_request, self.session, self.base_url, request.callback, self._transport_timeout(token)
            ):
                logger.warning("Authorization failed for %s %s", request.method, request.uri)
                return state.response(
                    ("Authorization failed.",),
                    error=AuthorizationFailedError("Authorization failed."),
                    kind=ErrorKind.AUTHORIZATION,
                )

        token.raise_if_cancelled()
        prepared = self.session.prepare_request(http_request)
        logger.debug("Sending %s %s", request.method, request.uri)

        settings = self.session.merge_environment_settings(prepared.url, {}, None, None, None)
        settings["stream"] = True

        started = time.perf_counter()
        http_response = self.session.send(
            prepared, timeout=self._transport_timeout(token), allow_redirects=True, **settings
        )
        state.duration = dt.timedelta(seconds=time.perf_counter() - started)
        state.status_code = http_response.status_code
        state.headers = dict(http_response.headers)

        try:
            text = self._read_body(http_response, request.callback, token)
        except requests.ConnectionError:
            # Read timeouts while streaming arrive as connection errors.
            token.raise_if_cancelled()
            raise
        finally:
            http_response.close()
        token.raise_if_cancelled()

        code = http_response.status_code
        reason = http_response.reason or ""
        logger.debug("%s %s -> %s in %s", request.method, request.uri, code, state.duration)

        if not 200 <= code < 300 or not text or len(text) <= MIN_BODY_LENGTH:
            message = f"Request failed with ({code}) [{reason}] status."
            logger.warning("%s %s: %s", request.method, request.uri, message)
            return state.response(
                (message, SEPARATOR, text, SEPARATOR),
                error=ResponseRejectedError(message, code, text),
                kind=ErrorKind.TRANSPORT,
            )

        self.statistics.record(request.endpoint_key)

        preprocessor = self.response_preprocessor
        if preprocessor is not None and not preprocessor(text):
            message = f"Request aborted with ({code}) [Globally defined validation restricted] status."
            return state.response(
                (message, SEPARATOR, text, SEPARATOR),
                error=ResponseRejectedError(message, code, text),
                kind=ErrorKind.POLICY,
            )

        request.callback.response(text)

        if request.validator is not None and not request.validator(text):
            message = f"Request aborted with ({code}) [User defined validation restricted] status."
            return state.response(
                (message, SEPARATOR, text, SEPARATOR),
                error=ResponseRejectedError(message, code, text),
                kind=ErrorKind.POLICY,
            )

        value = True if boolean else self._deserialize(text, parser)
        return state.response(
            (f"Request success with ({code}) [{reason}] status.", SEPARATOR, text, SEPARATOR),
            value=value,
        )

    def _transport_timeout(self, token: CancellationToken) -> float:
        remaining = token.remaining()
        if remaining is None:
            return self.timeout
        return max(remaining, 0.001)

    @staticmethod
    def _read_body(response: requests.Response, callback: Callback, token: CancellationToken) -> str:
        """Stream the body, checking ``token`` after every chunk."""
        total = int(response.headers.get("Content-Length") or 0)
        chunks = []
        received = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            chunks.append(chunk)
            received += len(chunk)
            if total:
                callback.progress(min(1.0, received / total))
            token.raise_if_cancelled()
        callback.progress(1.0)
        return b"".join(chunks).decode(_body_encoding(response), errors="replace")

    @staticmethod
    def _deserialize(text: str, parser: Optional[Parser]) -> Any:
        data = json.loads(text)
        return parser(data) if parser is not None else data
