"""Uniform result wrapper returned for every request."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Generic, Mapping, Optional, Tuple, TypeVar

from .errors import ErrorKind

T = TypeVar("T")

SEPARATOR = "----------------------------"


@dataclass(frozen=True)
class RequestStatus:
    """Terminal outcome passed to ``Callback.on_request_status``."""

    success: bool
    message: str


@dataclass(frozen=True)
class Response(Generic[T]):
    """Outcome of one request.

    ``value`` is only set when ``status`` is true. ``duration`` and
    ``headers`` are populated whenever the call reached the network, even
    if the response was later rejected. ``headers`` is a read-only view.
    """

    status: bool = False
    status_code: Optional[int] = None
    duration: dt.timedelta = dt.timedelta(0)
    headers: Mapping[str, str] = field(default_factory=dict)
    messages: Tuple[str, ...] = ()
    error: Optional[BaseException] = None
    error_kind: Optional[ErrorKind] = None
    value: Optional[T] = None

    def __post_init__(self) -> None:
        if not self.status and self.value is not None:
            raise ValueError("a failed response cannot carry a value")
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def __bool__(self) -> bool:
        return self.status

    @property
    def message(self) -> str:
        return "\n".join(self.messages)

    @property
    def cancelled(self) -> bool:
        return self.error_kind is ErrorKind.CANCELLED
