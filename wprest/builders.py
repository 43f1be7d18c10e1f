"""Form body builders for the write endpoints.

Each builder collects the fields of one resource and ``create()``
returns the form fields WordPress expects. Pass a builder straight to
:meth:`wprest.request.RequestBuilder.with_body`.
"""
from __future__ import annotations

import datetime as dt
import enum
import mimetypes
import re
import secrets
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import ConfigurationError

_SLUG = re.compile(r"^[A-Za-z0-9-]+$")


class PostStatus(enum.Enum):
    PUBLISH = "publish"
    FUTURE = "future"
    DRAFT = "draft"
    PENDING = "pending"
    PRIVATE = "private"


class CommentStatus(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class PingStatus(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class PostFormat(enum.Enum):
    STANDARD = "standard"
    ASIDE = "aside"
    CHAT = "chat"
    GALLERY = "gallery"
    LINK = "link"
    IMAGE = "image"
    QUOTE = "quote"
    STATUS = "status"
    VIDEO = "video"
    AUDIO = "audio"


def _join_ids(ids: Iterable[int]) -> str:
    return ",".join(str(int(i)) for i in ids)


def _check_slug(slug: str) -> str:
    if not _SLUG.match(slug):
        raise ConfigurationError("slug can only contain alphanumeric characters and '-'")
    return slug


class PostBuilder:
    """Fields for creating or updating a post."""

    def __init__(self) -> None:
        self.title: Optional[str] = None
        self.content: Optional[str] = None
        self.slug: Optional[str] = None
        self.password: Optional[str] = None
        self.excerpt: Optional[str] = None
        self.author: int = 0
        self.featured_media: int = 0
        self.sticky = False
        self.categories: List[int] = []
        self.tags: List[int] = []
        self.date: Optional[dt.datetime] = None
        self.status = PostStatus.PENDING
        self.comment_status = CommentStatus.OPEN
        self.ping_status = PingStatus.OPEN
        self.format = PostFormat.STANDARD

    def with_title(self, title: str) -> "PostBuilder":
        self.title = title
        return self

    def with_content(self, content: str) -> "PostBuilder":
        self.content = content
        return self

    def with_slug(self, slug: str) -> "PostBuilder":
        self.slug = _check_slug(slug)
        return self

    def with_status(self, status: PostStatus) -> "PostBuilder":
        self.status = status
        return self

    def with_password(self, password: Optional[str] = None, length: int = 13) -> "PostBuilder":
        """Protect the post; without ``password`` a random one is generated.

        The password in use is available as :attr:`password` afterwards.
        """
        self.password = password or secrets.token_urlsafe(length)[:length]
        return self

    def with_author(self, author_id: int) -> "PostBuilder":
        self.author = author_id
        return self

    def with_excerpt(self, excerpt: str) -> "PostBuilder":
        self.excerpt = excerpt
        return self

    def with_featured_image(self, media_id: int) -> "PostBuilder":
        self.featured_media = media_id
        return self

    def with_comment_status(self, status: CommentStatus) -> "PostBuilder":
        self.comment_status = status
        return self

    def with_ping_status(self, status: PingStatus) -> "PostBuilder":
        self.ping_status = status
        return self

    def with_format(self, post_format: PostFormat) -> "PostBuilder":
        self.format = post_format
        return self

    def with_sticky(self, sticky: bool = True) -> "PostBuilder":
        self.sticky = sticky
        return self

    def with_categories(self, *category_ids: int) -> "PostBuilder":
        self.categories = list(category_ids)
        return self

    def with_tags(self, *tag_ids: int) -> "PostBuilder":
        self.tags = list(tag_ids)
        return self

    def with_date(self, publish_at: dt.datetime) -> "PostBuilder":
        self.date = publish_at
        return self

    def create(self) -> Dict[str, str]:
        form: Dict[str, str] = {}
        for name in ("content", "title", "slug", "password", "excerpt"):
            value = getattr(self, name)
            if value:
                form[name] = value
        if self.author > 0:
            form["author"] = str(self.author)
        if self.featured_media > 0:
            form["featured_media"] = str(self.featured_media)
        if self.sticky:
            form["sticky"] = "1"
        if self.categories:
            form["categories"] = _join_ids(self.categories)
        if self.tags:
            form["tags"] = _join_ids(self.tags)
        if self.date is not None:
            form["date"] = self.date.isoformat()
        form["comment_status"] = self.comment_status.value
        form["ping_status"] = self.ping_status.value
        form["format"] = self.format.value
        form["status"] = self.status.value
        return form


class MediaBuilder:
    """Upload of a single file to the media library."""

    def __init__(self) -> None:
        self.filename: Optional[str] = None
        self.data: Optional[bytes] = None
        self.mime_type = "application/octet-stream"
        self.title: Optional[str] = None
        self.alt_text: Optional[str] = None
        self.caption: Optional[str] = None
        self.description: Optional[str] = None
        self.post: int = 0

    def with_file(self, path: Union[str, Path]) -> "MediaBuilder":
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"media file {path} does not exist")
        return self.with_bytes(path.read_bytes(), path.name)

    def with_bytes(self, data: bytes, filename: str, mime_type: Optional[str] = None) -> "MediaBuilder":
        self.data = data
        self.filename = filename
        self.mime_type = mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return self

    def with_title(self, title: str) -> "MediaBuilder":
        self.title = title
        return self

    def with_alt_text(self, alt_text: str) -> "MediaBuilder":
        self.alt_text = alt_text
        return self

    def with_caption(self, caption: str) -> "MediaBuilder":
        self.caption = caption
        return self

    def with_description(self, description: str) -> "MediaBuilder":
        self.description = description
        return self

    def attached_to(self, post_id: int) -> "MediaBuilder":
        self.post = post_id
        return self

    def create(self) -> Dict[str, str]:
        form: Dict[str, str] = {}
        for name in ("title", "alt_text", "caption", "description"):
            value = getattr(self, name)
            if value:
                form[name] = value
        if self.post > 0:
            form["post"] = str(self.post)
        return form

    def create_files(self) -> Dict[str, Tuple[str, bytes, str]]:
        if self.data is None or not self.filename:
            raise ConfigurationError("media upload requires a file")
        return {"file": (self.filename, self.data, self.mime_type)}


class TagBuilder:
    def __init__(self, name: str = "") -> None:
        self.name = name
        self.description: Optional[str] = None
        self.slug: Optional[str] = None

    def with_name(self, name: str) -> "TagBuilder":
        self.name = name
        return self

    def with_description(self, description: str) -> "TagBuilder":
        self.description = description
        return self

    def with_slug(self, slug: str) -> "TagBuilder":
        self.slug = _check_slug(slug)
        return self

    def create(self) -> Dict[str, str]:
        if not self.name:
            raise ConfigurationError("name is required")
        form = {"name": self.name}
        if self.description:
            form["description"] = self.description
        if self.slug:
            form["slug"] = self.slug
        return form


class CategoryBuilder(TagBuilder):
    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.parent = 0

    def with_parent(self, parent_id: int) -> "CategoryBuilder":
        self.parent = parent_id
        return self

    def create(self) -> Dict[str, str]:
        form = super().create()
        if self.parent > 0:
            form["parent"] = str(self.parent)
        return form


class CommentBuilder:
    def __init__(self, post_id: int = 0, content: str = "") -> None:
        self.post = post_id
        self.content = content
        self.parent = 0
        self.author_name: Optional[str] = None
        self.author_email: Optional[str] = None
        self.author_url: Optional[str] = None

    def on_post(self, post_id: int) -> "CommentBuilder":
        self.post = post_id
        return self

    def with_content(self, content: str) -> "CommentBuilder":
        self.content = content
        return self

    def in_reply_to(self, comment_id: int) -> "CommentBuilder":
        self.parent = comment_id
        return self

    def with_author(self, name: str, email: Optional[str] = None, url: Optional[str] = None) -> "CommentBuilder":
        self.author_name = name
        self.author_email = email
        self.author_url = url
        return self

    def create(self) -> Dict[str, str]:
        if self.post <= 0 or not self.content:
            raise ConfigurationError("a comment needs a post id and content")
        form = {"post": str(self.post), "content": self.content}
        if self.parent > 0:
            form["parent"] = str(self.parent)
        for name in ("author_name", "author_email", "author_url"):
            value = getattr(self, name)
            if value:
                form[name] = value
        return form


class UserBuilder:
    def __init__(self, username: str = "", email: str = "", password: str = "") -> None:
        self.username = username
        self.email = email
        self.password = password
        self.name: Optional[str] = None
        self.first_name: Optional[str] = None
        self.last_name: Optional[str] = None
        self.description: Optional[str] = None
        self.roles: List[str] = []

    def with_credentials(self, username: str, email: str, password: str) -> "UserBuilder":
        self.username, self.email, self.password = username, email, password
        return self

    def with_name(self, display_name: str, first_name: Optional[str] = None, last_name: Optional[str] = None) -> "UserBuilder":
        self.name = display_name
        self.first_name = first_name
        self.last_name = last_name
        return self

    def with_description(self, description: str) -> "UserBuilder":
        self.description = description
        return self

    def with_roles(self, *roles: str) -> "UserBuilder":
        self.roles = list(roles)
        return self

    def create(self) -> Dict[str, str]:
        if not (self.username and self.email and self.password):
            raise ConfigurationError("username, email and password are required")
        form = {"username": self.username, "email": self.email, "password": self.password}
        for name in ("name", "first_name", "last_name", "description"):
            value = getattr(self, name)
            if value:
                form[name] = value
        if self.roles:
            form["roles"] = ",".join(self.roles)
        return form
