"""Client for the WordPress REST API of a single site.

All operations return a :class:`~wprest.response.Response` and never
raise for network or server problems; inspect ``response.status`` before
touching ``response.value``.

Example
-------
>>> client = WordPressClient("https://example.com/wp-json/")
>>> posts = client.get_posts(lambda b: b.with_per_page(5).order_by(Order.DESCENDING))
>>> if posts:
...     print([p.title.rendered for p in posts.value])
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Type, Union

import requests
from requests.adapters import HTTPAdapter

from .activity import ActivityCallback, ActivityNotifier
from .authorization import AuthorizationType, WordPressAuthorization
from .config import DEFAULT_MAX_CONCURRENT_REQUESTS, ClientConfig
from .dispatcher import Parser, RequestDispatcher
from .models import Category, Comment, Media, Post, Tag, User
from .request import Callback, RequestBuilder, build_request
from .response import Response
from .statistics import EndpointStatistics, StatisticCallback

logger = logging.getLogger(__name__)

Configure = Optional[Callable[[RequestBuilder], Optional[RequestBuilder]]]

POPULAR_POSTS_BASE = "wordpress-popular-posts/v1/"


class WordPressClient:
    """Entry point for talking to one WordPress site.

    Parameters
    ----------
    config: ClientConfig or str, optional
        Full configuration, or just the base url of the REST API.
    session: requests.Session, optional
        Transport to use instead of a new session.
    **overrides
        Field values applied on top of ``config``.
    """

    def __init__(
        self,
        config: Union[ClientConfig, str, None] = None,
        session: Optional[requests.Session] = None,
        **overrides: Any,
    ) -> None:
        if isinstance(config, str):
            config = ClientConfig(base_url=config, **overrides)
        elif config is None:
            config = ClientConfig(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config
        self.session = session if session is not None else requests.Session()
        self._configure_session()

        self.statistics = EndpointStatistics()
        self.activity = ActivityNotifier()
        self.html_cleaner: Optional[Callable[[str], str]] = None
        self.default_authorization: Optional[WordPressAuthorization] = None
        self._dispatcher = RequestDispatcher(
            self.session,
            config.base_url,
            timeout=config.timeout,
            max_concurrent_requests=config.max_concurrent_requests,
            statistics=self.statistics,
            activity=self.activity,
        )

    def _configure_session(self) -> None:
        pool_size = self.config.max_concurrent_requests or DEFAULT_MAX_CONCURRENT_REQUESTS
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers["Cache-Control"] = "no-cache, max-age=60"
        if self.config.user_agent:
            self.session.headers["User-Agent"] = self.config.user_agent
        self.session.headers.update(self.config.default_headers)

    def __enter__(self) -> "WordPressClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport and wait for pending notifications."""
        self.session.close()
        self.statistics.close()
        self.activity.close()

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    @property
    def endpoint_statistics(self) -> Dict[str, int]:
        return self.statistics.snapshot()

    # Configuration hooks --------------------------------------------------
    def with_default_authorization(self, authorization: WordPressAuthorization) -> "WordPressClient":
        """Authorize every request from this client with ``authorization``.

        Ignored for default (credential-less) handlers or when a real
        default authorization is already installed. JWT handlers log in
        immediately.
        """
        if authorization is None or authorization.is_default:
            return self
        if self.default_authorization is not None and not self.default_authorization.is_default:
            return self

        self.default_authorization = authorization
        self._dispatcher.default_authorization = authorization

        if (
            authorization.auth_type is AuthorizationType.JWT
            and not authorization.is_valid
            and not authorization.authenticate(self.session, self.config.base_url, timeout=self.config.timeout)
        ):
            logger.warning("Default JWT authorization for %s failed", authorization.username)
            return self

        value = authorization.header_value
        if value is not None:
            self.session.headers["Authorization"] = value
        return self

    def with_global_response_processor(self, processor: Optional[Callable[[str], bool]]) -> "WordPressClient":
        """Run ``processor`` on every response body; ``False`` rejects it."""
        self._dispatcher.response_preprocessor = processor
        return self

    def with_activity_callback(self, callback: ActivityCallback) -> "WordPressClient":
        if callback is None:
            raise ValueError("callback can't be None")
        self.activity.set_callback(callback)
        return self

    def with_endpoint_statistic_callback(self, callback: Optional[StatisticCallback]) -> "WordPressClient":
        self.statistics.set_callback(callback)
        return self

    def with_html_response_cleaner(self, cleaner: Optional[Callable[[str], str]]) -> "WordPressClient":
        """Apply ``cleaner`` to rendered fields such as titles and content."""
        self.html_cleaner = cleaner
        return self

    def with_default_user_agent(self, user_agent: str) -> "WordPressClient":
        self.session.headers["User-Agent"] = user_agent
        return self

    def with_default_request_headers(self, headers: Dict[str, str]) -> "WordPressClient":
        self.session.headers.update(headers)
        return self

    # Session --------------------------------------------------------------
    def is_logged_in(self, callback: Optional[Callback] = None) -> bool:
        response = self.get_current_user(lambda b: b.with_callback(callback) if callback else b)
        if response.status:
            return True
        return self.default_authorization is not None and self.default_authorization.is_valid

    def login(
        self,
        authorization: WordPressAuthorization,
        set_default: bool = True,
        callback: Optional[Callback] = None,
    ) -> bool:
        """Check ``authorization`` against ``users/me``.

        On success the handler becomes the default authorization unless
        ``set_default`` is false.
        """
        if authorization is None:
            return False

        def configure(builder: RequestBuilder) -> RequestBuilder:
            builder.with_authorization(authorization)
            return builder.with_callback(callback) if callback else builder

        response = self.get_current_user(configure)
        if response.status and response.value is not None and response.value.slug:
            logger.info("Logged in as %s", response.value.slug)
            if set_default:
                self.with_default_authorization(authorization)
            return True
        return False

    def logout(self) -> None:
        """Stop authorizing requests from this client."""
        if self.default_authorization is not None:
            self.default_authorization.logout()
        self.default_authorization = None
        self._dispatcher.default_authorization = None
        self.session.headers.pop("Authorization", None)
        logger.info("Logged out")

    # Reads ----------------------------------------------------------------
    def get_posts(self, configure: Configure = None) -> Response[List[Post]]:
        return self._execute("GET", "posts", self._list_parser(Post), configure)

    def get_post(self, post_id: int, configure: Configure = None) -> Response[Post]:
        return self._execute("GET", f"posts/{post_id}", self._parser(Post), configure)

    def get_popular_posts(self, configure: Configure = None) -> Response[List[Post]]:
        """Requires the WordPress Popular Posts plugin."""
        return self._execute(
            "GET", "popular-posts", self._list_parser(Post), configure,
            base=self.config.base_url + POPULAR_POSTS_BASE,
        )

    def get_users(self, configure: Configure = None) -> Response[List[User]]:
        return self._execute("GET", "users", self._list_parser(User), configure)

    def get_user(self, user_id: int, configure: Configure = None) -> Response[User]:
        return self._execute("GET", f"users/{user_id}", self._parser(User), configure)

    def get_current_user(self, configure: Configure = None) -> Response[User]:
        return self._execute("GET", "users/me", self._parser(User), configure)

    def get_comments(self, configure: Configure = None) -> Response[List[Comment]]:
        return self._execute("GET", "comments", self._list_parser(Comment), configure)

    def get_comment(self, comment_id: int, configure: Configure = None) -> Response[Comment]:
        return self._execute("GET", f"comments/{comment_id}", self._parser(Comment), configure)

    def get_medias(self, configure: Configure = None) -> Response[List[Media]]:
        return self._execute("GET", "media", self._list_parser(Media), configure)

    def get_media(self, media_id: int, configure: Configure = None) -> Response[Media]:
        return self._execute("GET", f"media/{media_id}", self._parser(Media), configure)

    def get_tags(self, configure: Configure = None) -> Response[List[Tag]]:
        return self._execute("GET", "tags", self._list_parser(Tag), configure)

    def get_tag(self, tag_id: int, configure: Configure = None) -> Response[Tag]:
        return self._execute("GET", f"tags/{tag_id}", self._parser(Tag), configure)

    def get_categories(self, configure: Configure = None) -> Response[List[Category]]:
        return self._execute("GET", "categories", self._list_parser(Category), configure)

    def get_category(self, category_id: int, configure: Configure = None) -> Response[Category]:
        return self._execute("GET", f"categories/{category_id}", self._parser(Category), configure)

    # Writes ---------------------------------------------------------------
    def create_post(self, configure: Configure = None) -> Response[Post]:
        return self._execute("POST", "posts", self._parser(Post), configure)

    def update_post(self, post_id: int, configure: Configure = None) -> Response[Post]:
        return self._execute("PUT", f"posts/{post_id}", self._parser(Post), configure)

    def create_media(self, configure: Configure = None) -> Response[Media]:
        return self._execute("POST", "media", self._parser(Media), configure)

    def create_tag(self, configure: Configure = None) -> Response[Tag]:
        return self._execute("POST", "tags", self._parser(Tag), configure)

    def create_comment(self, configure: Configure = None) -> Response[Comment]:
        return self._execute("POST", "comments", self._parser(Comment), configure)

    def create_user(self, configure: Configure = None) -> Response[User]:
        return self._execute("POST", "users", self._parser(User), configure)

    def create_category(self, configure: Configure = None) -> Response[Category]:
        return self._execute("POST", "categories", self._parser(Category), configure)

    def delete_object(self, endpoint: str, force: bool = False, configure: Configure = None) -> Response[bool]:
        """Delete the object at ``endpoint``, e.g. ``posts/42``.

        ``force`` skips the trash for resources that support it.
        """
        def apply(builder: RequestBuilder) -> RequestBuilder:
            if force:
                builder.with_query("force", True)
            if configure is not None:
                builder = configure(builder) or builder
            return builder

        return self._execute("DELETE", endpoint, None, apply)

    def execute_custom_request(
        self,
        base: str,
        endpoint: str,
        method: str = "GET",
        parser: Optional[Parser] = None,
        configure: Configure = None,
    ) -> Response[Any]:
        """Send a request to any namespace, e.g. a plugin's REST routes."""
        return self._execute(method, endpoint, parser, configure, base=base)

    # Helpers --------------------------------------------------------------
    def _execute(
        self,
        method: str,
        endpoint: str,
        parser: Optional[Parser],
        configure: Configure,
        base: Optional[str] = None,
    ) -> Response:
        request = build_request(method, base or self.config.api_url, endpoint, configure)
        return self._dispatcher.execute(request, parser)

    def _parser(self, model: Type[Any]) -> Parser:
        return lambda data: model.from_dict(data, self.html_cleaner)

    def _list_parser(self, model: Type[Any]) -> Parser:
        return lambda data: model.from_list(data, self.html_cleaner)
