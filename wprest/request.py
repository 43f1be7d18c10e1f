"""Request descriptors and the builder used to configure them.

Resource operations on :class:`~wprest.client.WordPressClient` start a
:class:`RequestBuilder` preset with base URL, endpoint and method, let
the caller customise it, then :meth:`RequestBuilder.build` freezes the
result into a :class:`Request` consumed once by the dispatcher.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlencode, urlparse

from .authorization import WordPressAuthorization
from .cancellation import CancellationToken
from .errors import ConfigurationError
from .response import RequestStatus

logger = logging.getLogger(__name__)

METHODS = ("GET", "POST", "PUT", "DELETE")

Pairs = Tuple[Tuple[str, str], ...]


class Order(enum.Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class Scope(enum.Enum):
    VIEW = "view"
    EMBED = "embed"
    EDIT = "edit"


class Status(enum.Enum):
    PUBLISHED = "publish"
    FUTURE = "future"
    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"
    TRASH = "trash"


@dataclass(frozen=True)
class Callback:
    """Observer hooks for a single request.

    Hooks are side channels only: an exception raised inside one is
    logged and never changes the outcome of the request.
    """

    on_exception: Optional[Callable[[BaseException], Any]] = None
    on_response: Optional[Callable[[str], Any]] = None
    on_request_status: Optional[Callable[[RequestStatus], Any]] = None
    on_progress: Optional[Callable[[float], Any]] = None

    def _invoke(self, hook: Optional[Callable[..., Any]], *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Request callback %r raised", hook)

    def exception(self, exc: BaseException) -> None:
        self._invoke(self.on_exception, exc)

    def response(self, text: str) -> None:
        self._invoke(self.on_response, text)

    def request_status(self, status: RequestStatus) -> None:
        self._invoke(self.on_request_status, status)

    def progress(self, fraction: float) -> None:
        self._invoke(self.on_progress, fraction)


def _pairs(items: Mapping[str, Any]) -> Pairs:
    return tuple((str(k), str(v)) for k, v in items.items())


@dataclass(frozen=True)
class Request:
    """Immutable description of one HTTP call."""

    method: str
    base_url: str
    endpoint: str = ""
    query: Pairs = ()
    header_pairs: Pairs = ()
    form_pairs: Pairs = ()
    files: Tuple[Tuple[str, Tuple[str, bytes, str]], ...] = ()
    authorization: Optional[WordPressAuthorization] = None
    requires_authorization: bool = False
    validator: Optional[Callable[[str], bool]] = None
    token: Optional[CancellationToken] = None
    callback: Callback = field(default_factory=Callback)

    @property
    def uri(self) -> str:
        url = self.base_url
        if self.endpoint:
            url = url.rstrip("/") + "/" + self.endpoint.lstrip("/")
        if self.query:
            url = f"{url}?{urlencode(self.query)}"
        return url

    @property
    def endpoint_key(self) -> str:
        """First path segment of the endpoint, used for statistics."""
        return self.endpoint.strip("/").split("/")[0]

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self.header_pairs)

    @property
    def form(self) -> Dict[str, str]:
        return dict(self.form_pairs)

    @property
    def has_body(self) -> bool:
        return bool(self.form_pairs or self.files)

    @property
    def is_executable(self) -> bool:
        if self.method not in METHODS:
            return False
        parsed = urlparse(self.uri)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class RequestBuilder:
    """Accumulates request settings; ``build`` validates and freezes them."""

    def __init__(self) -> None:
        self._method = "GET"
        self._base_url = ""
        self._endpoint = ""
        self._query: Dict[str, str] = {}
        self._headers: Dict[str, str] = {}
        self._form: Dict[str, str] = {}
        self._files: Dict[str, Tuple[str, bytes, str]] = {}
        self._authorization: Optional[WordPressAuthorization] = None
        self._requires_authorization = False
        self._validator: Optional[Callable[[str], bool]] = None
        self._token: Optional[CancellationToken] = None
        self._callback = Callback()

    # Target ---------------------------------------------------------------
    def with_base_and_endpoint(self, base_url: str, endpoint: str) -> "RequestBuilder":
        self._base_url = base_url
        self._endpoint = endpoint
        return self

    def with_method(self, method: str) -> "RequestBuilder":
        self._method = method.upper()
        return self

    # Content --------------------------------------------------------------
    def with_header(self, name: str, value: str) -> "RequestBuilder":
        self._headers[name] = value
        return self

    def with_headers(self, headers: Mapping[str, str]) -> "RequestBuilder":
        self._headers.update(headers)
        return self

    def with_body(self, body: Any) -> "RequestBuilder":
        """Set form fields from a mapping or a body builder with ``create()``."""
        if hasattr(body, "create_files"):
            self._files.update(body.create_files())
        if hasattr(body, "create"):
            body = body.create()
        self._form.update({k: str(v) for k, v in dict(body).items()})
        return self

    def with_files(self, files: Mapping[str, Tuple[str, bytes, str]]) -> "RequestBuilder":
        self._files.update(files)
        return self

    # Authorization and validation -----------------------------------------
    def with_authorization(self, authorization: WordPressAuthorization) -> "RequestBuilder":
        self._authorization = authorization
        self._requires_authorization = authorization is not None
        return self

    def with_authorization_required(self, required: bool = True) -> "RequestBuilder":
        self._requires_authorization = required
        return self

    def with_response_validation(self, validator: Callable[[str], bool]) -> "RequestBuilder":
        self._validator = validator
        return self

    def with_cancellation_token(self, token: CancellationToken) -> "RequestBuilder":
        self._token = token
        return self

    def with_callback(
        self,
        callback: Optional[Callback] = None,
        *,
        on_exception: Optional[Callable[[BaseException], Any]] = None,
        on_response: Optional[Callable[[str], Any]] = None,
        on_request_status: Optional[Callable[[RequestStatus], Any]] = None,
        on_progress: Optional[Callable[[float], Any]] = None,
    ) -> "RequestBuilder":
        self._callback = callback or Callback(
            on_exception=on_exception,
            on_response=on_response,
            on_request_status=on_request_status,
            on_progress=on_progress,
        )
        return self

    # Query parameters -----------------------------------------------------
    def with_query(self, name: str, value: Any) -> "RequestBuilder":
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            value = ",".join(str(v) for v in value)
        self._query[name] = str(value)
        return self

    def with_page(self, page: int) -> "RequestBuilder":
        if page < 1:
            raise ConfigurationError("page must be >= 1")
        return self.with_query("page", page)

    def with_per_page(self, per_page: int) -> "RequestBuilder":
        if not 1 <= per_page <= 100:
            raise ConfigurationError("per_page must be between 1 and 100")
        return self.with_query("per_page", per_page)

    def order_by(self, order: Order) -> "RequestBuilder":
        return self.with_query("order", order.value)

    def order_by_field(self, name: str) -> "RequestBuilder":
        return self.with_query("orderby", name)

    def with_embed(self, embed: bool = True) -> "RequestBuilder":
        if embed:
            self._query["_embed"] = "1"
        else:
            self._query.pop("_embed", None)
        return self

    def with_scope(self, scope: Scope) -> "RequestBuilder":
        return self.with_query("context", scope.value)

    def with_allowed_status(self, *statuses: Status) -> "RequestBuilder":
        return self.with_query("status", [s.value for s in statuses])

    def allow_categories(self, *category_ids: int) -> "RequestBuilder":
        return self.with_query("categories", category_ids)

    def allow_authors(self, *author_ids: int) -> "RequestBuilder":
        return self.with_query("author", author_ids)

    def with_search(self, term: str) -> "RequestBuilder":
        return self.with_query("search", term)

    # Build ----------------------------------------------------------------
    def build(self) -> Request:
        if not self._base_url:
            raise ConfigurationError("request base url is required")
        if self._method not in METHODS:
            raise ConfigurationError(f"unsupported HTTP method {self._method!r}")
        return Request(
            method=self._method,
            base_url=self._base_url,
            endpoint=self._endpoint,
            query=_pairs(self._query),
            header_pairs=_pairs(self._headers),
            form_pairs=_pairs(self._form),
            files=tuple(self._files.items()),
            authorization=self._authorization,
            requires_authorization=self._requires_authorization,
            validator=self._validator,
            token=self._token,
            callback=self._callback,
        )


def build_request(
    method: str,
    base_url: str,
    endpoint: str,
    configure: Optional[Callable[[RequestBuilder], Optional[RequestBuilder]]] = None,
) -> Request:
    """Preset a builder, apply ``configure`` and build the request."""
    builder = RequestBuilder().with_base_and_endpoint(base_url, endpoint).with_method(method)
    if configure is not None:
        builder = configure(builder) or builder
    return builder.build()