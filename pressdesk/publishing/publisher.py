# pressdesk/publishing/publisher.py
"""
Publish workflow.

    Drafted → ImageUploading (optional) → Posting → Recorded
            ↘ Failed (any step before Recorded)

Only post creation can fail the publish once the entry guard has passed.
Featured-image upload, tag creation and the media URL lookup degrade
quietly (no image, tag omitted, no URL). Nothing is written locally until
WordPress has accepted the post, and the two local writes share one
transaction.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pressdesk.integrations.wordpress import (
    WordPressRejectedError,
    WordPressRemoteClient,
    WordPressTransportError,
    WpCredentials,
    decode_data_url,
)

from .errors import ArticleNotFound, PublishInProgress, RemoteRejected, RemoteTransient, ValidationFailed
from .models import ArticleStatus, Site, TagRef, parse_tags
from .site_auth import require_publishing_access

logger = logging.getLogger(__name__)

__all__ = ['PublishWorkflow', 'PublishRequest', 'ArticleLockRegistry']


# ============================================================================
# PER-ARTICLE LOCKS
# ============================================================================

class ArticleLockRegistry:
    """
    In-process at-most-once guard: one publish per article at a time.
    A second attempt while one is running fails fast instead of queueing.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_locked(self, article_id: str) -> bool:
        lock = self._locks.get(article_id)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, article_id: str):
        lock = self._locks.setdefault(article_id, asyncio.Lock())
        if lock.locked():
            raise PublishInProgress()
        # An unheld asyncio.Lock is acquired without yielding to the loop
        async with lock:
            try:
                yield
            finally:
                if self._locks.get(article_id) is lock:
                    del self._locks[article_id]

    def __len__(self) -> int:
        return len(self._locks)


# ============================================================================
# REQUEST
# ============================================================================

@dataclass
class PublishRequest:
    article_id: str
    site_id: str
    user_id: str
    title: str
    content: str
    categories: List[Any] = field(default_factory=list)
    tags: List[Any] = field(default_factory=list)
    featured_image: Optional[str] = None


def _parse_categories(raw: List[Any]) -> List[int]:
    categories = []
    for value in raw or []:
        if isinstance(value, bool):
            raise ValidationFailed(f"Invalid category id: {value!r}")
        try:
            category_id = int(value)
        except (TypeError, ValueError):
            raise ValidationFailed(f"Invalid category id: {value!r}")
        if category_id not in categories:
            categories.append(category_id)
    return categories


# ============================================================================
# WORKFLOW
# ============================================================================

class PublishWorkflow:
    """Publishes a local article to a WordPress site as the requesting user"""

    def __init__(self, storage, client: WordPressRemoteClient,
                 locks: Optional[ArticleLockRegistry] = None):
        self.storage = storage
        self.client = client
        self.locks = locks if locks is not None else ArticleLockRegistry()

    async def publish(self, request: PublishRequest) -> Dict[str, Any]:
        async with self.locks.hold(request.article_id):
            return await self._publish(request)

    async def _publish(self, request: PublishRequest) -> Dict[str, Any]:
        # 1. Entry guard: no remote call and no write before this passes
        site, credential = await require_publishing_access(self.storage, request.user_id, request.site_id)

        article = await self.storage.get_article(request.article_id)
        if article is None or article.user_id != request.user_id:
            raise ArticleNotFound()

        if not request.title or not request.title.strip():
            raise ValidationFailed("Title is required")
        categories = _parse_categories(request.categories)
        try:
            tag_refs = parse_tags(request.tags)
        except ValueError as e:
            raise ValidationFailed(str(e))

        user_credentials = credential.credentials()

        # 2. Optional featured image (admin credentials)
        featured_media_id = None
        if request.featured_image:
            featured_media_id = await self._upload_featured_image(site, request.featured_image)

        # 3. Tags
        tag_ids = await self._resolve_tags(site, user_credentials, tag_refs)

        # 4. Post creation: the only fatal remote step
        post_fields: Dict[str, Any] = {
            "title": request.title,
            "content": request.content or "",
            "status": "publish",
            "categories": categories,
            "tags": tag_ids,
        }
        if featured_media_id is not None:
            post_fields["featured_media"] = featured_media_id

        try:
            post = await self.client.create_post(site.api_url, user_credentials, post_fields)
        except WordPressRejectedError as e:
            logger.error(f"❌ Publish of article {request.article_id} rejected by site {site.id} ({e.status})")
            raise RemoteRejected(
                "WordPress rejected the post",
                remote_status=e.status,
                remote_body=e.body,
            ) from e
        except WordPressTransportError as e:
            logger.error(f"❌ Publish of article {request.article_id} could not reach site {site.id}: {e}")
            raise RemoteTransient(hint="WordPress did not answer; the post may or may not exist") from e

        # 5. Featured image URL (best effort)
        featured_image_url = None
        if featured_media_id is not None:
            featured_image_url = await self._lookup_media_url(site, user_credentials, featured_media_id)

        # 6. Durable recording in one transaction
        article_updates: Dict[str, Any] = {
            "status": ArticleStatus.PUBLISHED,
            "published_at": datetime.now(timezone.utc),
            "site_id": site.id,
            "categories": categories,
            "tags": tag_ids,
        }
        if request.featured_image:
            article_updates["featured_image_url"] = featured_image_url

        try:
            record, updated = await self.storage.record_publication(
                article_id=request.article_id,
                site_id=site.id,
                wp_post_id=str(post.id),
                article_updates=article_updates,
            )
        except Exception:
            logger.error(
                f"❌ Post {post.id} exists on site {site.id} but recording article "
                f"{request.article_id} failed; the local article is unchanged"
            )
            raise

        logger.info(f"✅ Article {request.article_id} published to site {site.id} as post {post.id}")
        return {
            "success": True,
            "wpPostId": post.id,
            "url": post.link or f"{site.url.rstrip('/')}/?p={post.id}",
            "featuredImageUrl": featured_image_url,
            "publishing": record.to_public_dict(),
            "article": updated.to_public_dict(),
        }

    # ------------------------------------------------------------------
    # Degradable steps
    # ------------------------------------------------------------------

    async def _upload_featured_image(self, site: Site, data_url: str) -> Optional[int]:
        """Returns the media id, or None when anything goes wrong"""
        admin_credentials = site.media_credentials()
        if admin_credentials is None:
            logger.warning(f"⚠️ Site {site.id} has no admin credentials; publishing without featured image")
            return None
        try:
            image = decode_data_url(data_url)
            media = await self.client.upload_media(
                site.api_url,
                admin_credentials,
                image.data,
                image.content_type,
                image.filename,
            )
            return media.id
        except Exception as e:
            logger.warning(f"⚠️ Featured image upload failed for site {site.id}, continuing without it: {e}")
            return None

    async def _resolve_tags(self, site: Site, credentials: WpCredentials,
                            tag_refs: List[TagRef]) -> List[int]:
        tag_ids: List[int] = []
        for ref in tag_refs:
            if ref.is_existing:
                tag_id = ref.id
            else:
                try:
                    tag = await self.client.create_tag(site.api_url, credentials, ref.name)
                except Exception as e:
                    logger.warning(f"⚠️ Could not create tag '{ref.name}' on site {site.id}, omitting it: {e}")
                    continue
                logger.info(f"🏷️ Created tag '{ref.name}' as {tag.id} on site {site.id}")
                tag_id = tag.id
            if tag_id not in tag_ids:
                tag_ids.append(tag_id)
        return tag_ids

    async def _lookup_media_url(self, site: Site, credentials: WpCredentials, media_id: int) -> Optional[str]:
        try:
            return await self.client.fetch_media(site.api_url, credentials, media_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not resolve URL of media {media_id} on site {site.id}: {e}")
            return None
