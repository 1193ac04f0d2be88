# pressdesk/publishing/models.py
"""
Publishing records as plain dataclasses.

Rows come out of PublishingDatabaseManager already decrypted; the
to_public_dict() helpers are what the API returns and never include
passwords or tokens.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from pressdesk.integrations.wordpress import WpCredentials

__all__ = [
    'ArticleStatus',
    'PublishingStatus',
    'Site',
    'UserSiteCredential',
    'PublishingProfile',
    'Article',
    'ArticlePublishing',
    'TagRef',
    'parse_tags',
]


class ArticleStatus:
    DRAFT = "draft"
    PUBLISHED = "published"


class PublishingStatus:
    PUBLISHED = "published"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Site:
    id: str
    name: str
    url: str
    api_url: str
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    api_token: Optional[str] = None
    seo_plugin: Optional[str] = None
    is_connected: bool = False
    created_at: Optional[datetime] = None

    def admin_fallback_credentials(self) -> Optional[WpCredentials]:
        """Admin username with the API token, else the admin password"""
        if not self.admin_username:
            return None
        secret = self.api_token or self.admin_password
        if not secret:
            return None
        return WpCredentials(self.admin_username, secret)

    def media_credentials(self) -> Optional[WpCredentials]:
        """Admin credentials used for media library uploads"""
        return self.admin_fallback_credentials()

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "apiUrl": self.api_url,
            "adminUsername": self.admin_username,
            "hasAdminPassword": bool(self.admin_password),
            "hasApiToken": bool(self.api_token),
            "seoPlugin": self.seo_plugin,
            "isConnected": self.is_connected,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class UserSiteCredential:
    id: str
    user_id: str
    site_id: str
    wp_username: str
    wp_password: str
    wp_user_id: Optional[str] = None
    is_verified: bool = False
    created_at: Optional[datetime] = None

    def credentials(self) -> WpCredentials:
        return WpCredentials(self.wp_username, self.wp_password)

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "siteId": self.site_id,
            "wpUsername": self.wp_username,
            "wpUserId": self.wp_user_id,
            "isVerified": self.is_verified,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class PublishingProfile:
    id: str
    user_id: str
    site_id: str
    credential_id: str
    created_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "siteId": self.site_id,
            "credentialId": self.credential_id,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class Article:
    id: str
    user_id: str
    title: str
    content: str
    site_id: Optional[str] = None
    featured_image_url: Optional[str] = None
    image_caption: Optional[str] = None
    categories: List[int] = field(default_factory=list)
    tags: List[Union[int, str]] = field(default_factory=list)
    seo: Dict[str, Any] = field(default_factory=dict)
    status: str = ArticleStatus.DRAFT
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_published(self) -> bool:
        return self.status == ArticleStatus.PUBLISHED

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "siteId": self.site_id,
            "title": self.title,
            "content": self.content,
            "featuredImageUrl": self.featured_image_url,
            "imageCaption": self.image_caption,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "seo": dict(self.seo),
            "status": self.status,
            "publishedAt": _iso(self.published_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class ArticlePublishing:
    id: str
    article_id: str
    site_id: str
    wp_post_id: str
    status: str = PublishingStatus.PUBLISHED
    published_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "articleId": self.article_id,
            "siteId": self.site_id,
            "wpPostId": self.wp_post_id,
            "status": self.status,
            "publishedAt": _iso(self.published_at),
        }


# ============================================================================
# Tags
# ============================================================================

@dataclass(frozen=True)
class TagRef:
    """A tag the site already knows (existing id) or one to create (new name)"""
    kind: str
    id: Optional[int] = None
    name: Optional[str] = None

    EXISTING = "existing"
    NEW = "new"

    @classmethod
    def existing(cls, tag_id: int) -> "TagRef":
        return cls(kind=cls.EXISTING, id=int(tag_id))

    @classmethod
    def new(cls, name: str) -> "TagRef":
        return cls(kind=cls.NEW, name=name)

    @property
    def is_existing(self) -> bool:
        return self.kind == self.EXISTING

    @classmethod
    def parse(cls, raw: Any) -> Optional["TagRef"]:
        """
        Parse one editor tag entry.

        ints and numeric strings are existing ids; other strings are new
        names; blank strings yield None.
        """
        if isinstance(raw, bool):
            raise ValueError(f"Invalid tag: {raw!r}")
        if isinstance(raw, int):
            return cls.existing(raw)
        if isinstance(raw, str):
            text = raw.strip()
            if not text:
                return None
            if text.isascii() and text.isdecimal():
                return cls.existing(int(text))
            return cls.new(text)
        if isinstance(raw, dict):
            if raw.get("id") is not None:
                return cls.parse(raw["id"])
            if raw.get("name"):
                return cls.parse(str(raw["name"]))
        raise ValueError(f"Invalid tag: {raw!r}")


def parse_tags(raw_tags: Optional[Iterable[Any]]) -> List[TagRef]:
    """Parse the mixed editor tag list, dropping blanks and duplicates."""
    refs: List[TagRef] = []
    for raw in raw_tags or []:
        ref = TagRef.parse(raw)
        if ref is not None and ref not in refs:
            refs.append(ref)
    return refs
