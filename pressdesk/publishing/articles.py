# pressdesk/publishing/articles.py
"""
Article drafts owned by a creator.
Drafts can be edited freely; once published an article is read-only here
and only changes again through publishing or reconciliation.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import ArticleNotFound, RecordNotFound, ValidationFailed
from .models import Article, ArticlePublishing, ArticleStatus

logger = logging.getLogger(__name__)

__all__ = ['ArticleService', 'DRAFT_EDITABLE_FIELDS']

DRAFT_EDITABLE_FIELDS = (
    'title', 'content', 'site_id', 'featured_image_url', 'image_caption',
    'categories', 'tags', 'seo',
)


class ArticleService:

    def __init__(self, storage):
        self.storage = storage

    async def get_owned(self, article_id: str, user_id: str) -> Article:
        """Fetch an article, hiding other users' articles as not found"""
        article = await self.storage.get_article(article_id)
        if article is None or article.user_id != user_id:
            raise ArticleNotFound()
        return article

    async def create_draft(self, user_id: str, title: str, content: str = "", **fields) -> Article:
        if not user_id:
            raise ValidationFailed("User id is required")
        if not title or not title.strip():
            raise ValidationFailed("Title is required")
        unknown = set(fields) - set(DRAFT_EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Unknown article fields: {', '.join(sorted(unknown))}")
        article = await self.storage.create_article(user_id=user_id, title=title.strip(),
                                                    content=content or "", **fields)
        logger.info(f"📝 Draft {article.id} created for user {user_id}")
        return article

    async def list_for_user(self, user_id: str) -> List[Article]:
        return await self.storage.list_articles_for_user(user_id)

    async def update_draft(self, article_id: str, user_id: str, **changes) -> Article:
        article = await self.get_owned(article_id, user_id)
        if article.status != ArticleStatus.DRAFT:
            raise ValidationFailed("Published articles cannot be edited")

        updates: Dict[str, Any] = {k: v for k, v in changes.items() if v is not None}
        unknown = set(updates) - set(DRAFT_EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Unknown article fields: {', '.join(sorted(unknown))}")
        if 'title' in updates and not str(updates['title']).strip():
            raise ValidationFailed("Title is required")

        updated = await self.storage.update_article(article_id, **updates)
        if updated is None:
            raise ArticleNotFound()
        return updated

    async def delete(self, article_id: str, user_id: str) -> Dict[str, Any]:
        await self.get_owned(article_id, user_id)
        await self.storage.delete_article_with_records(article_id)
        logger.info(f"🗑️ Article {article_id} deleted by user {user_id}")
        return {"success": True}

    async def get_publishing_info(self, article_id: str, site_id: str,
                                  user_id: Optional[str] = None) -> ArticlePublishing:
        if user_id is not None:
            await self.get_owned(article_id, user_id)
        record = await self.storage.get_publishing_record(article_id, site_id)
        if record is None:
            raise RecordNotFound()
        return record
