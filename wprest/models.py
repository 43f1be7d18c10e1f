"""Records for the WordPress entities returned by the REST API.

Every record is built with ``from_dict`` which ignores keys the record
does not declare and falls back to defaults for missing ones, so newer
server versions and plugins adding fields never break deserialisation.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

Cleaner = Optional[Callable[[str], str]]
M = TypeVar("M")


def _known_fields(cls: type, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in dataclasses.fields(cls)}
    return {key: value for key, value in data.items() if key in names}


@dataclass
class Rendered:
    """A field WordPress returns as ``{"rendered": ..., "raw": ...}``."""

    rendered: str = ""
    raw: Optional[str] = None
    protected: bool = False

    @classmethod
    def from_value(cls, value: Any, cleaner: Cleaner = None) -> "Rendered":
        if isinstance(value, dict):
            item = cls(**_known_fields(cls, value))
        elif value is None:
            item = cls()
        else:
            item = cls(rendered=str(value))
        if cleaner is not None and item.rendered:
            item.rendered = cleaner(item.rendered)
        return item


class _Record:
    """Mixin providing tolerant construction from decoded JSON."""

    _rendered_fields: tuple = ()

    @classmethod
    def from_dict(cls: Type[M], data: Dict[str, Any], cleaner: Cleaner = None) -> M:
        values = _known_fields(cls, data or {})
        for name in cls._rendered_fields:  # type: ignore[attr-defined]
            if name in values:
                values[name] = Rendered.from_value(values[name], cleaner)
        return cls(**values)

    @classmethod
    def from_list(cls: Type[M], data: List[Dict[str, Any]], cleaner: Cleaner = None) -> List[M]:
        return [cls.from_dict(item, cleaner) for item in data or []]  # type: ignore[attr-defined]


@dataclass
class Post(_Record):
    _rendered_fields = ("title", "content", "excerpt", "guid")

    id: int = 0
    date: Optional[str] = None
    date_gmt: Optional[str] = None
    modified: Optional[str] = None
    slug: str = ""
    status: str = ""
    type: str = ""
    link: str = ""
    guid: Rendered = field(default_factory=Rendered)
    title: Rendered = field(default_factory=Rendered)
    content: Rendered = field(default_factory=Rendered)
    excerpt: Rendered = field(default_factory=Rendered)
    author: int = 0
    featured_media: int = 0
    comment_status: str = ""
    ping_status: str = ""
    sticky: bool = False
    format: str = ""
    categories: List[int] = field(default_factory=list)
    tags: List[int] = field(default_factory=list)
    _embedded: Dict[str, Any] = field(default_factory=dict)


@dataclass
class User(_Record):
    _rendered_fields = ()

    id: int = 0
    name: str = ""
    username: Optional[str] = None
    email: Optional[str] = None
    url: str = ""
    description: str = ""
    link: str = ""
    slug: str = ""
    roles: List[str] = field(default_factory=list)
    avatar_urls: Dict[str, str] = field(default_factory=dict)


@dataclass
class Comment(_Record):
    _rendered_fields = ("content",)

    id: int = 0
    post: int = 0
    parent: int = 0
    author: int = 0
    author_name: str = ""
    author_url: str = ""
    date: Optional[str] = None
    content: Rendered = field(default_factory=Rendered)
    link: str = ""
    status: str = ""
    type: str = ""


@dataclass
class Media(_Record):
    _rendered_fields = ("title", "caption", "description", "guid")

    id: int = 0
    date: Optional[str] = None
    slug: str = ""
    status: str = ""
    link: str = ""
    guid: Rendered = field(default_factory=Rendered)
    title: Rendered = field(default_factory=Rendered)
    caption: Rendered = field(default_factory=Rendered)
    description: Rendered = field(default_factory=Rendered)
    author: int = 0
    alt_text: str = ""
    media_type: str = ""
    mime_type: str = ""
    post: Optional[int] = None
    source_url: str = ""
    media_details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Tag(_Record):
    _rendered_fields = ()

    id: int = 0
    count: int = 0
    description: str = ""
    link: str = ""
    name: str = ""
    slug: str = ""
    taxonomy: str = "post_tag"


@dataclass
class Category(_Record):
    _rendered_fields = ()

    id: int = 0
    count: int = 0
    description: str = ""
    link: str = ""
    name: str = ""
    slug: str = ""
    taxonomy: str = "category"
    parent: int = 0


@dataclass
class JwtToken:
    """Token payload returned by ``jwt-auth/v1/token``."""

    token: str = ""
    user_email: str = ""
    user_nicename: str = ""
    user_display_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JwtToken":
        # Newer plugin versions nest the token under "data".
        payload = data.get("data") if isinstance(data.get("data"), dict) else data
        return cls(**_known_fields(cls, payload))


@dataclass
class JwtValidation:
    """Payload returned by ``jwt-auth/v1/token/validate``."""

    success: bool = False
    code: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JwtValidation":
        values = _known_fields(cls, data)
        if "success" not in values and data.get("code") == "jwt_auth_valid_token":
            values["success"] = True
        return cls(**values)
