"""Client configuration."""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

from .errors import ConfigurationError

DEFAULT_BASE_URL = "http://demo.wp-api.org/wp-json/"
DEFAULT_PATH = "wp/v2"
DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_CONCURRENT_REQUESTS = 10


@dataclass
class ClientConfig:
    """Settings for one :class:`~wprest.client.WordPressClient`.

    Parameters
    ----------
    base_url: str
        REST API root of the site, e.g. ``https://example.com/wp-json/``.
    path: str
        Namespace of the core endpoints below ``base_url``.
    max_concurrent_requests: int
        Requests allowed in flight at once. ``0`` disables throttling.
    timeout: float
        Seconds before a request without its own cancellation token is
        cancelled.
    """

    base_url: str = DEFAULT_BASE_URL
    path: str = DEFAULT_PATH
    max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS
    timeout: float = DEFAULT_TIMEOUT
    user_agent: Optional[str] = None
    default_headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigurationError("base_url is required")
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"base_url {self.base_url!r} is not a valid http(s) url")
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        if self.path is None:
            raise ConfigurationError("path can't be None")
        self.path = self.path.strip("/")
        self.max_concurrent_requests = int(self.max_concurrent_requests)
        if self.max_concurrent_requests < 0:
            raise ConfigurationError("max_concurrent_requests can't be negative")
        self.timeout = float(self.timeout)
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

    @property
    def api_url(self) -> str:
        """Base of the core endpoints, always ending with ``/``."""
        if not self.path:
            return self.base_url
        return f"{self.base_url}{self.path}/"

    # Loading --------------------------------------------------------------
    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClientConfig":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ClientConfig":
        path = Path(path)
        try:
            with path.open() as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise ConfigurationError(f"config file {path} not found") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"config file {path} is not valid JSON: {exc}") from exc
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, prefix: str = "WPREST_", environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for name in ("base_url", "path", "max_concurrent_requests", "timeout", "user_agent"):
            key = prefix + name.upper()
            if key in environ:
                data[name] = environ[key]
        try:
            return cls.from_mapping(data)
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(f"invalid environment configuration: {exc}") from exc

    def to_file(self, path: Union[str, Path]) -> None:
        with Path(path).open("w") as f:
            json.dump(asdict(self), f, indent=2)
