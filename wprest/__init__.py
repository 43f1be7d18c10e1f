"""Client SDK for the WordPress REST API.

Builds requests for posts, users, comments, media, tags and categories,
handles Basic and JWT authentication, and returns every result as a
:class:`Response` envelope instead of raising.
"""

__all__ = [
    "ActivityStatus",
    "AuthorizationType",
    "Callback",
    "CancellationToken",
    "ClientConfig",
    "ConfigurationError",
    "ErrorKind",
    "Order",
    "RequestBuilder",
    "RequestStatus",
    "Response",
    "Scope",
    "Status",
    "WordPressAuthorization",
    "WordPressClient",
    "WordPressError",
]

__version__ = "0.1.0"

from .activity import ActivityStatus
from .authorization import AuthorizationType, WordPressAuthorization
from .cancellation import CancellationToken
from .client import WordPressClient
from .config import ClientConfig
from .errors import ConfigurationError, ErrorKind, WordPressError
from .request import Callback, Order, RequestBuilder, Scope, Status
from .response import RequestStatus, Response
