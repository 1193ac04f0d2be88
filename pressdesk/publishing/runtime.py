# pressdesk/publishing/runtime.py
"""
PublishingRuntime: the one object that owns process-wide resources.

    runtime = PublishingRuntime(get_settings())
    await runtime.init()        # pool + schema + HTTP session + workflows
    ...
    await runtime.shutdown()

Tests hand in their own storage and client and skip the database entirely:

    runtime = PublishingRuntime(storage=fake_storage, client=fake_client)
    await runtime.init()
"""

import logging
from typing import Any, Dict, Optional

from pressdesk.core.crypto import CryptoManager
from pressdesk.core.database import DatabaseManager
from pressdesk.core.health import get_health_status
from pressdesk.core.safe_logger import init_safe_logging
from pressdesk.integrations.wordpress import WordPressRemoteClient, check_module_health

from .articles import ArticleService
from .database_manager import PublishingDatabaseManager
from .profiles import ProfileService
from .publisher import ArticleLockRegistry, PublishWorkflow
from .reconciliation import ReconciliationJob
from .site_auth import SiteAuthenticationWorkflow
from .site_verification import SiteVerificationWorkflow
from .taxonomy import TaxonomyService

logger = logging.getLogger(__name__)

__all__ = ['PublishingRuntime']


class PublishingRuntime:
    """Explicit lifecycle for the database pool, HTTP session and workflows"""

    def __init__(self, settings=None, *, storage=None, client: Optional[WordPressRemoteClient] = None,
                 db: Optional[DatabaseManager] = None, crypto: Optional[CryptoManager] = None):
        self.settings = settings
        self.db = db
        self.crypto = crypto
        self.storage = storage
        self.client = client
        self.locks = ArticleLockRegistry()
        self._owns_db = False
        self._owns_client = False
        self._initialized = False

        self.site_verification: Optional[SiteVerificationWorkflow] = None
        self.site_auth: Optional[SiteAuthenticationWorkflow] = None
        self.publisher: Optional[PublishWorkflow] = None
        self.taxonomy: Optional[TaxonomyService] = None
        self.articles: Optional[ArticleService] = None
        self.profiles: Optional[ProfileService] = None
        self.reconciliation: Optional[ReconciliationJob] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def init(self) -> "PublishingRuntime":
        if self._initialized:
            return self

        if self.settings is not None:
            init_safe_logging(
                level="DEBUG" if self.settings.debug else self.settings.log_level,
                use_structured=self.settings.structured_logs,
            )

        if self.storage is None:
            if self.settings is None:
                raise RuntimeError("PublishingRuntime needs settings or an injected storage")
            if self.db is None:
                self.db = DatabaseManager(
                    self.settings.database_url,
                    min_size=self.settings.db_pool_min,
                    max_size=self.settings.db_pool_max,
                )
                self._owns_db = True
            await self.db.connect()
            if self.crypto is None:
                self.crypto = CryptoManager(self.settings.encryption_key)
            self.storage = PublishingDatabaseManager(self.db, self.crypto)
            await self.storage.ensure_schema()

        if self.client is None:
            if self.settings is not None:
                self.client = WordPressRemoteClient(
                    timeout=self.settings.wp_request_timeout,
                    user_agent=self.settings.wp_user_agent,
                )
            else:
                self.client = WordPressRemoteClient()
            self._owns_client = True
        await self.client.open()

        self.site_verification = SiteVerificationWorkflow(self.storage, self.client)
        self.site_auth = SiteAuthenticationWorkflow(self.storage, self.client)
        self.publisher = PublishWorkflow(self.storage, self.client, self.locks)
        self.taxonomy = TaxonomyService(self.storage, self.client)
        self.articles = ArticleService(self.storage)
        self.profiles = ProfileService(self.storage, self.client)
        self.reconciliation = ReconciliationJob(self.storage, self.client)

        self._initialized = True
        environment = self.settings.environment if self.settings is not None else "injected"
        logger.info(f"✅ Publishing runtime initialized ({environment})")
        return self

    async def shutdown(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.close()
        if self.db is not None and self._owns_db:
            await self.db.disconnect()
        self._initialized = False
        logger.info("🔌 Publishing runtime shut down")

    async def health(self) -> Dict[str, Any]:
        wordpress = check_module_health()
        services: Dict[str, Dict[str, Any]] = {
            "wordpress": {
                "status": "healthy" if wordpress["healthy"] and self._initialized else "unhealthy",
                "http_session_open": bool(getattr(self.client, "is_open", False)),
                "publishes_in_progress": len(self.locks),
            }
        }
        if self.crypto is not None:
            encryption = self.crypto.get_encryption_info()
            services["secrets"] = {
                "status": "healthy" if encryption["initialized"] else "unhealthy",
                **encryption,
            }

        status = await get_health_status(self.db, extra_services=services)
        if self.settings is not None:
            status["environment"] = self.settings.environment
        return status
