# pressdesk/publishing/database_manager.py
"""
Publishing Database Manager
Handles all PostgreSQL operations for sites, credentials, profiles, articles
and publishing records.

Database Tables:
- wordpress_sites: admin-registered WordPress sites (admin secrets encrypted)
- user_site_credentials: one verified WordPress login per (user, site)
- publishing_profiles: marker that a user may publish to a site
- articles: drafts and published articles
- article_publishing: one row per successful publish (remote post id)

Secrets (admin password, API token, credential passwords) are encrypted with
CryptoManager on write and decrypted on read; callers only ever see plaintext
dataclasses and never SQL rows.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pressdesk.core.crypto import CryptoManager
from pressdesk.core.database import DatabaseManager

from .models import (
    Article,
    ArticlePublishing,
    ArticleStatus,
    PublishingProfile,
    PublishingStatus,
    Site,
    UserSiteCredential,
)

logger = logging.getLogger(__name__)

__all__ = ['PublishingDatabaseManager', 'SCHEMA_STATEMENTS', 'ARTICLE_UPDATABLE_FIELDS']


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS wordpress_sites (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        url TEXT NOT NULL,
        api_url TEXT NOT NULL,
        admin_username TEXT,
        admin_password TEXT,
        api_token TEXT,
        seo_plugin TEXT,
        is_connected BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_site_credentials (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        site_id TEXT NOT NULL REFERENCES wordpress_sites(id) ON DELETE CASCADE,
        wp_username TEXT NOT NULL,
        wp_password TEXT NOT NULL,
        wp_user_id TEXT,
        is_verified BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (user_id, site_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS publishing_profiles (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        site_id TEXT NOT NULL REFERENCES wordpress_sites(id) ON DELETE CASCADE,
        credential_id TEXT REFERENCES user_site_credentials(id) ON DELETE SET NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (user_id, site_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        site_id TEXT REFERENCES wordpress_sites(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        content TEXT NOT NULL DEFAULT '',
        featured_image_url TEXT,
        image_caption TEXT,
        categories JSONB NOT NULL DEFAULT '[]'::jsonb,
        tags JSONB NOT NULL DEFAULT '[]'::jsonb,
        seo JSONB NOT NULL DEFAULT '{}'::jsonb,
        status TEXT NOT NULL DEFAULT 'draft',
        published_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS article_publishing (
        id TEXT PRIMARY KEY,
        article_id TEXT NOT NULL REFERENCES articles(id) ON DELETE CASCADE,
        site_id TEXT NOT NULL REFERENCES wordpress_sites(id) ON DELETE CASCADE,
        wp_post_id TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'published',
        published_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_user ON articles(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_articles_status ON articles(status)",
    "CREATE INDEX IF NOT EXISTS idx_article_publishing_article ON article_publishing(article_id)",
)

# Article attributes that update_article / record_publication may change
ARTICLE_UPDATABLE_FIELDS = (
    'title', 'content', 'site_id', 'featured_image_url', 'image_caption',
    'categories', 'tags', 'seo', 'status', 'published_at',
)
JSON_FIELDS = ('categories', 'tags', 'seo')


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _load_json(value: Any, default: Any) -> Any:
    """asyncpg hands JSONB back as text unless a codec is registered"""
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class PublishingDatabaseManager:
    """
    Manages all database operations for the publishing workflows.
    """

    def __init__(self, db: DatabaseManager, crypto: CryptoManager):
        self.db = db
        self.crypto = crypto

    async def ensure_schema(self) -> None:
        """Create publishing tables if they don't exist"""
        async with self.db.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("✅ Publishing schema ready")

    # ============================================================================
    # ROW MAPPING
    # ============================================================================

    def _row_to_site(self, row) -> Site:
        return Site(
            id=row['id'],
            name=row['name'],
            url=row['url'],
            api_url=row['api_url'],
            admin_username=row['admin_username'],
            admin_password=self.crypto.decrypt_optional(row['admin_password']),
            api_token=self.crypto.decrypt_optional(row['api_token']),
            seo_plugin=row['seo_plugin'],
            is_connected=row['is_connected'],
            created_at=row['created_at'],
        )

    def _row_to_credential(self, row) -> UserSiteCredential:
        return UserSiteCredential(
            id=row['id'],
            user_id=row['user_id'],
            site_id=row['site_id'],
            wp_username=row['wp_username'],
            wp_password=self.crypto.decrypt_secret(row['wp_password']),
            wp_user_id=row['wp_user_id'],
            is_verified=row['is_verified'],
            created_at=row['created_at'],
        )

    @staticmethod
    def _row_to_profile(row) -> PublishingProfile:
        return PublishingProfile(
            id=row['id'],
            user_id=row['user_id'],
            site_id=row['site_id'],
            credential_id=row['credential_id'],
            created_at=row['created_at'],
        )

    @staticmethod
    def _row_to_article(row) -> Article:
        return Article(
            id=row['id'],
            user_id=row['user_id'],
            site_id=row['site_id'],
            title=row['title'],
            content=row['content'],
            featured_image_url=row['featured_image_url'],
            image_caption=row['image_caption'],
            categories=_load_json(row['categories'], []),
            tags=_load_json(row['tags'], []),
            seo=_load_json(row['seo'], {}),
            status=row['status'],
            published_at=row['published_at'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    @staticmethod
    def _row_to_publishing(row) -> ArticlePublishing:
        return ArticlePublishing(
            id=row['id'],
            article_id=row['article_id'],
            site_id=row['site_id'],
            wp_post_id=row['wp_post_id'],
            status=row['status'],
            published_at=row['published_at'],
        )

    # ============================================================================
    # SITES
    # ============================================================================

    async def create_site(self, name: str, url: str, api_url: str,
                          admin_username: Optional[str] = None,
                          admin_password: Optional[str] = None,
                          api_token: Optional[str] = None,
                          seo_plugin: Optional[str] = None) -> Site:
        row = await self.db.fetch_one(
            """
            INSERT INTO wordpress_sites
                (id, name, url, api_url, admin_username, admin_password, api_token, seo_plugin, is_connected)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, FALSE)
            RETURNING *
            """,
            _new_id(), name, url, api_url, admin_username,
            self.crypto.encrypt_optional(admin_password),
            self.crypto.encrypt_optional(api_token),
            seo_plugin,
        )
        logger.info(f"✅ Registered WordPress site {row['id']} ({url})")
        return self._row_to_site(row)

    async def get_site(self, site_id: str) -> Optional[Site]:
        row = await self.db.fetch_one("SELECT * FROM wordpress_sites WHERE id = $1", site_id)
        return self._row_to_site(row) if row else None

    async def list_sites(self) -> List[Site]:
        rows = await self.db.fetch_all("SELECT * FROM wordpress_sites ORDER BY created_at")
        return [self._row_to_site(row) for row in rows]

    async def set_site_connected(self, site_id: str, is_connected: bool = True) -> Optional[Site]:
        row = await self.db.fetch_one(
            "UPDATE wordpress_sites SET is_connected = $2 WHERE id = $1 RETURNING *",
            site_id, is_connected,
        )
        return self._row_to_site(row) if row else None

    async def update_site_admin_credentials(self, site_id: str,
                                            admin_username: Optional[str] = None,
                                            admin_password: Optional[str] = None,
                                            api_token: Optional[str] = None) -> Optional[Site]:
        """Rotate admin credentials; any field left as None keeps its stored value"""
        row = await self.db.fetch_one(
            """
            UPDATE wordpress_sites SET
                admin_username = COALESCE($2, admin_username),
                admin_password = COALESCE($3, admin_password),
                api_token = COALESCE($4, api_token)
            WHERE id = $1
            RETURNING *
            """,
            site_id,
            admin_username or None,
            self.crypto.encrypt_optional(admin_password),
            self.crypto.encrypt_optional(api_token),
        )
        return self._row_to_site(row) if row else None

    async def delete_site(self, site_id: str) -> bool:
        result = await self.db.execute("DELETE FROM wordpress_sites WHERE id = $1", site_id)
        return result.endswith(" 1")

    # ============================================================================
    # CREDENTIALS
    # ============================================================================

    async def get_credential(self, user_id: str, site_id: str) -> Optional[UserSiteCredential]:
        row = await self.db.fetch_one(
            "SELECT * FROM user_site_credentials WHERE user_id = $1 AND site_id = $2",
            user_id, site_id,
        )
        return self._row_to_credential(row) if row else None

    async def list_credentials_for_user(self, user_id: str) -> List[UserSiteCredential]:
        rows = await self.db.fetch_all(
            "SELECT * FROM user_site_credentials WHERE user_id = $1 ORDER BY created_at",
            user_id,
        )
        return [self._row_to_credential(row) for row in rows]

    async def list_credentials_for_users(self, user_ids: Sequence[str],
                                         site_id: str) -> List[UserSiteCredential]:
        if not user_ids:
            return []
        rows = await self.db.fetch_all(
            """
            SELECT * FROM user_site_credentials
            WHERE user_id = ANY($1::text[]) AND site_id = $2
            ORDER BY created_at
            """,
            list(user_ids), site_id,
        )
        return [self._row_to_credential(row) for row in rows]

    async def replace_credential(self, user_id: str, site_id: str, wp_username: str,
                                 wp_password: str, wp_user_id: Optional[str]) -> UserSiteCredential:
        """
        Delete any prior (user, site) credential and insert a verified one.
        Existing publishing profiles are re-pointed at the new credential.
        """
        credential_id = _new_id()
        async with self.db.transaction() as conn:
            await conn.execute(
                "DELETE FROM user_site_credentials WHERE user_id = $1 AND site_id = $2",
                user_id, site_id,
            )
            row = await conn.fetchrow(
                """
                INSERT INTO user_site_credentials
                    (id, user_id, site_id, wp_username, wp_password, wp_user_id, is_verified)
                VALUES ($1, $2, $3, $4, $5, $6, TRUE)
                RETURNING *
                """,
                credential_id, user_id, site_id, wp_username,
                self.crypto.encrypt_secret(wp_password), wp_user_id,
            )
            await conn.execute(
                "UPDATE publishing_profiles SET credential_id = $3 WHERE user_id = $1 AND site_id = $2",
                user_id, site_id, credential_id,
            )
        return self._row_to_credential(row)

    async def delete_credential(self, credential_id: str) -> bool:
        result = await self.db.execute("DELETE FROM user_site_credentials WHERE id = $1", credential_id)
        return result.endswith(" 1")

    # ============================================================================
    # PUBLISHING PROFILES
    # ============================================================================

    async def get_profile(self, user_id: str, site_id: str) -> Optional[PublishingProfile]:
        row = await self.db.fetch_one(
            "SELECT * FROM publishing_profiles WHERE user_id = $1 AND site_id = $2",
            user_id, site_id,
        )
        return self._row_to_profile(row) if row else None

    async def create_profile(self, user_id: str, site_id: str, credential_id: str) -> PublishingProfile:
        """Insert a profile; a concurrent insert for the same pair returns the existing row"""
        row = await self.db.fetch_one(
            """
            INSERT INTO publishing_profiles (id, user_id, site_id, credential_id)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (user_id, site_id) DO NOTHING
            RETURNING *
            """,
            _new_id(), user_id, site_id, credential_id,
        )
        if row is None:
            return await self.get_profile(user_id, site_id)
        return self._row_to_profile(row)

    # ============================================================================
    # ARTICLES
    # ============================================================================

    async def create_article(self, user_id: str, title: str, content: str = "",
                             site_id: Optional[str] = None,
                             featured_image_url: Optional[str] = None,
                             image_caption: Optional[str] = None,
                             categories: Optional[List[int]] = None,
                             tags: Optional[List[Any]] = None,
                             seo: Optional[Dict[str, Any]] = None) -> Article:
        row = await self.db.fetch_one(
            """
            INSERT INTO articles
                (id, user_id, site_id, title, content, featured_image_url, image_caption,
                 categories, tags, seo, status)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9::jsonb, $10::jsonb, $11)
            RETURNING *
            """,
            _new_id(), user_id, site_id, title, content, featured_image_url, image_caption,
            json.dumps(categories or []), json.dumps(tags or []), json.dumps(seo or {}),
            ArticleStatus.DRAFT,
        )
        return self._row_to_article(row)

    async def get_article(self, article_id: str) -> Optional[Article]:
        row = await self.db.fetch_one("SELECT * FROM articles WHERE id = $1", article_id)
        return self._row_to_article(row) if row else None

    async def list_articles_for_user(self, user_id: str) -> List[Article]:
        rows = await self.db.fetch_all(
            "SELECT * FROM articles WHERE user_id = $1 ORDER BY updated_at DESC",
            user_id,
        )
        return [self._row_to_article(row) for row in rows]

    async def list_articles(self) -> List[Article]:
        rows = await self.db.fetch_all("SELECT * FROM articles ORDER BY updated_at DESC")
        return [self._row_to_article(row) for row in rows]

    async def list_published_articles(self) -> List[Article]:
        rows = await self.db.fetch_all(
            "SELECT * FROM articles WHERE status = $1 ORDER BY published_at",
            ArticleStatus.PUBLISHED,
        )
        return [self._row_to_article(row) for row in rows]

    @staticmethod
    def _article_update_clause(fields: Dict[str, Any], first_param: int) -> tuple:
        """Build 'col = $n, ...' for an article update; unknown fields raise"""
        assignments = []
        args = []
        for position, (name, value) in enumerate(fields.items(), start=first_param):
            if name not in ARTICLE_UPDATABLE_FIELDS:
                raise ValueError(f"Unknown article field: {name}")
            if name in JSON_FIELDS:
                assignments.append(f"{name} = ${position}::jsonb")
                args.append(json.dumps(value if value is not None else ([] if name != 'seo' else {})))
            else:
                assignments.append(f"{name} = ${position}")
                args.append(value)
        assignments.append("updated_at = NOW()")
        return ", ".join(assignments), args

    async def update_article(self, article_id: str, **fields) -> Optional[Article]:
        if not fields:
            return await self.get_article(article_id)
        clause, args = self._article_update_clause(fields, first_param=2)
        row = await self.db.fetch_one(
            f"UPDATE articles SET {clause} WHERE id = $1 RETURNING *",
            article_id, *args,
        )
        return self._row_to_article(row) if row else None

    async def delete_article(self, article_id: str) -> bool:
        return await self.delete_article_with_records(article_id)

    # ============================================================================
    # PUBLISHING RECORDS
    # ============================================================================

    async def list_publishing_records(self) -> List[ArticlePublishing]:
        rows = await self.db.fetch_all("SELECT * FROM article_publishing ORDER BY published_at")
        return [self._row_to_publishing(row) for row in rows]

    async def get_publishing_record(self, article_id: str, site_id: str) -> Optional[ArticlePublishing]:
        row = await self.db.fetch_one(
            """
            SELECT * FROM article_publishing
            WHERE article_id = $1 AND site_id = $2
            ORDER BY published_at DESC
            LIMIT 1
            """,
            article_id, site_id,
        )
        return self._row_to_publishing(row) if row else None

    async def record_publication(self, article_id: str, site_id: str, wp_post_id: str,
                                 article_updates: Dict[str, Any]) -> tuple:
        """
        Insert the publishing record and update the article in one transaction.

        Returns:
            (ArticlePublishing, Article)
        """
        published_at = article_updates.get('published_at') or _utcnow()
        clause, args = self._article_update_clause(article_updates, first_param=2)

        async with self.db.transaction() as conn:
            record_row = await conn.fetchrow(
                """
                INSERT INTO article_publishing (id, article_id, site_id, wp_post_id, status, published_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                _new_id(), article_id, site_id, str(wp_post_id),
                PublishingStatus.PUBLISHED, published_at,
            )
            article_row = await conn.fetchrow(
                f"UPDATE articles SET {clause} WHERE id = $1 RETURNING *",
                article_id, *args,
            )
            if article_row is None:
                # Raising rolls back the publishing row too
                raise LookupError(f"Article {article_id} disappeared while recording publication")

        logger.info(f"✅ Recorded publication of article {article_id} as post {wp_post_id}")
        return self._row_to_publishing(record_row), self._row_to_article(article_row)

    async def delete_article_with_records(self, article_id: str) -> bool:
        async with self.db.transaction() as conn:
            await conn.execute("DELETE FROM article_publishing WHERE article_id = $1", article_id)
            result = await conn.execute("DELETE FROM articles WHERE id = $1", article_id)
        return result.endswith(" 1")
