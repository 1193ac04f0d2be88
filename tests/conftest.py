"""
Shared fixtures for the PressDesk test suite.

Provides an in-memory storage that honours the PublishingDatabaseManager
contract, a scripted WordPress client that records every call, and mock
aiohttp helpers so that all tests run WITHOUT Postgres or WordPress.
"""

import copy
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from pressdesk.integrations.wordpress import (
    MediaRef,
    PostLookup,
    RemotePost,
    RemoteTerm,
    RemoteUser,
)
from pressdesk.publishing.models import (
    Article,
    ArticlePublishing,
    ArticleStatus,
    PublishingProfile,
    PublishingStatus,
    Site,
    UserSiteCredential,
)
from pressdesk.publishing.runtime import PublishingRuntime


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------

class InMemoryStorage:
    """Dict-backed stand-in for PublishingDatabaseManager."""

    def __init__(self):
        self.sites: Dict[str, Site] = {}
        self.credentials: Dict[str, UserSiteCredential] = {}
        self.profiles: Dict[str, PublishingProfile] = {}
        self.articles: Dict[str, Article] = {}
        self.records: Dict[str, ArticlePublishing] = {}
        self.writes: List[str] = []
        self.fail_record_publication: Optional[Exception] = None
        self.fail_delete_for: Dict[str, Exception] = {}
        self._clock = itertools.count()
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        return self._epoch + timedelta(seconds=next(self._clock))

    @staticmethod
    def _id() -> str:
        return str(uuid.uuid4())

    # -- seeding helpers (sync) ---------------------------------------------

    def add_site(self, site_id: str = "S1", is_connected: bool = False, **overrides) -> Site:
        fields = dict(
            id=site_id,
            name=f"Site {site_id}",
            url=f"https://{site_id.lower()}.example.com",
            api_url=f"https://{site_id.lower()}.example.com/wp-json",
            admin_username="admin",
            admin_password="admin-pw",
            api_token="admin-token",
            is_connected=is_connected,
            created_at=self._now(),
        )
        fields.update(overrides)
        site = Site(**fields)
        self.sites[site.id] = site
        return site

    def add_credential(self, user_id: str = "U1", site_id: str = "S1", verified: bool = True,
                       wp_username: str = "bob", wp_password: str = "bob-pw") -> UserSiteCredential:
        credential = UserSiteCredential(
            id=self._id(), user_id=user_id, site_id=site_id,
            wp_username=wp_username, wp_password=wp_password,
            wp_user_id="7" if verified else None, is_verified=verified,
            created_at=self._now(),
        )
        self.credentials[credential.id] = credential
        return credential

    def add_article(self, article_id: str = "A1", user_id: str = "U1", **overrides) -> Article:
        fields = dict(id=article_id, user_id=user_id, title="Draft", content="<p>draft</p>",
                      created_at=self._now(), updated_at=self._now())
        fields.update(overrides)
        article = Article(**fields)
        self.articles[article.id] = article
        return article

    def add_publishing(self, article_id: str, site_id: str, wp_post_id: str) -> ArticlePublishing:
        record = ArticlePublishing(id=self._id(), article_id=article_id, site_id=site_id,
                                   wp_post_id=wp_post_id, status=PublishingStatus.PUBLISHED,
                                   published_at=self._now())
        self.records[record.id] = record
        return record

    def add_published_article(self, article_id: str, site_id: str, wp_post_id: str,
                              user_id: str = "U1") -> Article:
        article = self.add_article(article_id, user_id=user_id, site_id=site_id,
                                   status=ArticleStatus.PUBLISHED, published_at=self._now())
        self.add_publishing(article_id, site_id, wp_post_id)
        return article

    def records_for(self, article_id: str) -> List[ArticlePublishing]:
        return [r for r in self.records.values() if r.article_id == article_id]

    # -- sites ------------------------------------------------------------------

    async def create_site(self, name, url, api_url, admin_username=None, admin_password=None,
                          api_token=None, seo_plugin=None) -> Site:
        self.writes.append("create_site")
        site = Site(id=self._id(), name=name, url=url, api_url=api_url,
                    admin_username=admin_username, admin_password=admin_password,
                    api_token=api_token, seo_plugin=seo_plugin, is_connected=False,
                    created_at=self._now())
        self.sites[site.id] = site
        return copy.deepcopy(site)

    async def get_site(self, site_id):
        site = self.sites.get(site_id)
        return copy.deepcopy(site) if site else None

    async def list_sites(self):
        return [copy.deepcopy(s) for s in sorted(self.sites.values(), key=lambda s: s.created_at)]

    async def set_site_connected(self, site_id, is_connected=True):
        self.writes.append("set_site_connected")
        site = self.sites.get(site_id)
        if site is None:
            return None
        site.is_connected = is_connected
        return copy.deepcopy(site)

    async def update_site_admin_credentials(self, site_id, admin_username=None,
                                            admin_password=None, api_token=None):
        self.writes.append("update_site_admin_credentials")
        site = self.sites.get(site_id)
        if site is None:
            return None
        if admin_username is not None:
            site.admin_username = admin_username
        if admin_password is not None:
            site.admin_password = admin_password
        if api_token is not None:
            site.api_token = api_token
        return copy.deepcopy(site)

    async def delete_site(self, site_id):
        self.writes.append("delete_site")
        if self.sites.pop(site_id, None) is None:
            return False
        for store in (self.credentials, self.profiles, self.articles):
            for key in [k for k, v in store.items() if v.site_id == site_id]:
                del store[key]
        for key in [k for k, r in self.records.items() if r.site_id == site_id]:
            del self.records[key]
        return True

    # -- credentials ------------------------------------------------------------

    async def get_credential(self, user_id, site_id):
        for credential in self.credentials.values():
            if credential.user_id == user_id and credential.site_id == site_id:
                return copy.deepcopy(credential)
        return None

    async def list_credentials_for_user(self, user_id):
        found = [c for c in self.credentials.values() if c.user_id == user_id]
        return [copy.deepcopy(c) for c in sorted(found, key=lambda c: c.created_at)]

    async def list_credentials_for_users(self, user_ids, site_id):
        found = [c for c in self.credentials.values() if c.user_id in user_ids and c.site_id == site_id]
        return [copy.deepcopy(c) for c in sorted(found, key=lambda c: c.created_at)]

    async def replace_credential(self, user_id, site_id, wp_username, wp_password, wp_user_id):
        self.writes.append("replace_credential")
        for key in [k for k, c in self.credentials.items() if c.user_id == user_id and c.site_id == site_id]:
            del self.credentials[key]
        credential = UserSiteCredential(id=self._id(), user_id=user_id, site_id=site_id,
                                        wp_username=wp_username, wp_password=wp_password,
                                        wp_user_id=wp_user_id, is_verified=True,
                                        created_at=self._now())
        self.credentials[credential.id] = credential
        for profile in self.profiles.values():
            if profile.user_id == user_id and profile.site_id == site_id:
                profile.credential_id = credential.id
        return copy.deepcopy(credential)

    async def delete_credential(self, credential_id):
        self.writes.append("delete_credential")
        return self.credentials.pop(credential_id, None) is not None

    # -- profiles ---------------------------------------------------------------

    async def get_profile(self, user_id, site_id):
        for profile in self.profiles.values():
            if profile.user_id == user_id and profile.site_id == site_id:
                return copy.deepcopy(profile)
        return None

    async def create_profile(self, user_id, site_id, credential_id):
        self.writes.append("create_profile")
        existing = await self.get_profile(user_id, site_id)
        if existing:
            return existing
        profile = PublishingProfile(id=self._id(), user_id=user_id, site_id=site_id,
                                    credential_id=credential_id, created_at=self._now())
        self.profiles[profile.id] = profile
        return copy.deepcopy(profile)

    # -- articles ---------------------------------------------------------------

    async def create_article(self, user_id, title, content="", site_id=None, featured_image_url=None,
                             image_caption=None, categories=None, tags=None, seo=None):
        self.writes.append("create_article")
        article = Article(id=self._id(), user_id=user_id, site_id=site_id, title=title, content=content,
                          featured_image_url=featured_image_url, image_caption=image_caption,
                          categories=list(categories or []), tags=list(tags or []), seo=dict(seo or {}),
                          created_at=self._now(), updated_at=self._now())
        self.articles[article.id] = article
        return copy.deepcopy(article)

    async def get_article(self, article_id):
        article = self.articles.get(article_id)
        return copy.deepcopy(article) if article else None

    async def list_articles_for_user(self, user_id):
        return [copy.deepcopy(a) for a in self.articles.values() if a.user_id == user_id]

    async def list_articles(self):
        return [copy.deepcopy(a) for a in self.articles.values()]

    async def list_published_articles(self):
        return [copy.deepcopy(a) for a in self.articles.values() if a.status == ArticleStatus.PUBLISHED]

    async def update_article(self, article_id, **fields):
        self.writes.append("update_article")
        article = self.articles.get(article_id)
        if article is None:
            return None
        for name, value in fields.items():
            setattr(article, name, value)
        article.updated_at = self._now()
        return copy.deepcopy(article)

    async def delete_article(self, article_id):
        return await self.delete_article_with_records(article_id)

    # -- publishing records -----------------------------------------------------

    async def list_publishing_records(self):
        return [copy.deepcopy(r) for r in self.records.values()]

    async def get_publishing_record(self, article_id, site_id):
        matches = [r for r in self.records.values() if r.article_id == article_id and r.site_id == site_id]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda r: r.published_at))

    async def record_publication(self, article_id, site_id, wp_post_id, article_updates):
        if self.fail_record_publication is not None:
            raise self.fail_record_publication
        if article_id not in self.articles:
            raise LookupError(article_id)
        self.writes.append("record_publication")
        record = ArticlePublishing(id=self._id(), article_id=article_id, site_id=site_id,
                                   wp_post_id=str(wp_post_id), status=PublishingStatus.PUBLISHED,
                                   published_at=article_updates.get("published_at") or self._now())
        self.records[record.id] = record
        article = self.articles[article_id]
        for name, value in article_updates.items():
            setattr(article, name, value)
        return copy.deepcopy(record), copy.deepcopy(article)

    async def delete_article_with_records(self, article_id):
        if article_id in self.fail_delete_for:
            raise self.fail_delete_for[article_id]
        self.writes.append("delete_article_with_records")
        for key in [k for k, r in self.records.items() if r.article_id == article_id]:
            del self.records[key]
        return self.articles.pop(article_id, None) is not None


# ---------------------------------------------------------------------------
# Scripted WordPress client
# ---------------------------------------------------------------------------

class FakeWordPressClient:
    """
    Records every call as (method, args). Each method answers from
    ``outcomes[method]``: a value is returned, an exception instance is
    raised, a callable is called with the method's arguments.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.is_open = False
        self.outcomes: Dict[str, Any] = {
            "verify_identity": lambda api, creds: RemoteUser(id=7, name=creds.username),
            "update_user": lambda api, creds, wp_user_id, fields: RemoteUser(
                id=int(wp_user_id or 7), name=fields.get("name", creds.username)
            ),
            "upload_media": MediaRef(id=55, source_url="https://s1.example.com/img.png"),
            "fetch_media": "https://s1.example.com/wp-content/uploads/featured-image.png",
            "create_post": RemotePost(id=900, link="http://x/900", status="publish"),
            "fetch_post": lambda api, creds, post_id: PostLookup(200, {"id": int(post_id)}),
            "create_tag": lambda api, creds, name: RemoteTerm(id=42, name=name),
            "list_categories": [RemoteTerm(id=5, name="News")],
            "list_tags": [RemoteTerm(id=7, name="python")],
        }

    async def open(self):
        self.is_open = True

    async def close(self):
        self.is_open = False

    def calls_to(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    async def _respond(self, method: str, *args):
        self.calls.append((method, args))
        outcome = self.outcomes[method]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            outcome = outcome(*args)
            if isinstance(outcome, BaseException):
                raise outcome
        return outcome

    async def verify_identity(self, api_base_url, credentials):
        return await self._respond("verify_identity", api_base_url, credentials)

    async def update_user(self, api_base_url, credentials, wp_user_id, fields):
        return await self._respond("update_user", api_base_url, credentials, wp_user_id, fields)

    async def upload_media(self, api_base_url, credentials, image_bytes, content_type, filename):
        return await self._respond("upload_media", api_base_url, credentials, image_bytes, content_type, filename)

    async def fetch_media(self, api_base_url, credentials, media_id):
        return await self._respond("fetch_media", api_base_url, credentials, media_id)

    async def create_post(self, api_base_url, credentials, post_fields):
        return await self._respond("create_post", api_base_url, credentials, post_fields)

    async def fetch_post(self, api_base_url, credentials, post_id):
        return await self._respond("fetch_post", api_base_url, credentials, post_id)

    async def create_tag(self, api_base_url, credentials, name):
        return await self._respond("create_tag", api_base_url, credentials, name)

    async def list_categories(self, api_base_url, credentials):
        return await self._respond("list_categories", api_base_url, credentials)

    async def list_tags(self, api_base_url, credentials):
        return await self._respond("list_tags", api_base_url, credentials)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def wp_client():
    return FakeWordPressClient()


@pytest.fixture
def runtime(storage, wp_client):
    """Runtime over the fakes (no database, no network); call ``await runtime.init()``."""
    return PublishingRuntime(storage=storage, client=wp_client)


# ---------------------------------------------------------------------------
# aiohttp mocks
# ---------------------------------------------------------------------------

def make_response(status: int = 200, body: Any = None, text: Optional[str] = None):
    """Mock aiohttp response; ``body`` is JSON-encoded unless ``text`` is given."""
    import json

    resp = MagicMock()
    resp.status = status
    if text is None:
        text = json.dumps(body) if body is not None else ""
    resp.text = AsyncMock(return_value=text)
    return resp


def make_session(*responses):
    """
    Mock aiohttp session whose .request() yields the given responses in order.
    An exception instance in the list is raised instead of yielding.
    """
    session = MagicMock()
    contexts = []
    for response in responses:
        ctx = MagicMock()
        if isinstance(response, BaseException):
            ctx.__aenter__ = AsyncMock(side_effect=response)
        else:
            ctx.__aenter__ = AsyncMock(return_value=response)
        ctx.__aexit__ = AsyncMock(return_value=False)
        contexts.append(ctx)
    session.request = MagicMock(side_effect=contexts)
    session.close = AsyncMock()
    return session
