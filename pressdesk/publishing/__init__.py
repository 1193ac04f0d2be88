"""
WordPress Publishing Module
Site verification, creator authentication, publishing and reconciliation

Module Structure:
- errors.py: error taxonomy mapped to HTTP answers
- models.py: Site, UserSiteCredential, PublishingProfile, Article, ArticlePublishing, TagRef
- database_manager.py: PostgreSQL storage (secrets encrypted)
- site_verification.py: admin site registry and verification
- site_auth.py: creator credential verification and the publishing entry guard
- publisher.py: publish workflow and per-article locks
- taxonomy.py: remote categories and tags
- articles.py: draft management
- profiles.py: WordPress author profile read and sync
- reconciliation.py: published-post drift sweep
- runtime.py: process lifecycle (pool, HTTP session, workflows)
- router.py: FastAPI endpoints under /api
"""

import logging

logger = logging.getLogger(__name__)

#-- Section 1: Module Exports & Public API
from .errors import ErrorKind, PublishingError
from .models import Article, ArticlePublishing, PublishingProfile, Site, TagRef, UserSiteCredential
from .profiles import ProfileService
from .publisher import ArticleLockRegistry, PublishRequest, PublishWorkflow
from .reconciliation import ReconciliationJob, ReconciliationReport, classify_lookup
from .runtime import PublishingRuntime
from .router import register_exception_handlers, router

__all__ = [
    'ErrorKind',
    'PublishingError',
    'Article',
    'ArticlePublishing',
    'PublishingProfile',
    'Site',
    'TagRef',
    'UserSiteCredential',
    'ProfileService',
    'ArticleLockRegistry',
    'PublishRequest',
    'PublishWorkflow',
    'ReconciliationJob',
    'ReconciliationReport',
    'classify_lookup',
    'PublishingRuntime',
    'register_with_app',
    'router',
]

#-- Section 2: Module Metadata
__version__ = '1.0.0'
MODULE_NAME = 'wordpress_publishing'
ROUTER_PREFIX = '/api'


#-- Section 3: Module Registration
def register_with_app(app):
    """Register routes and error mapping with the main FastAPI app"""
    app.include_router(router)
    register_exception_handlers(app)
    logger.info(f"✅ {MODULE_NAME} routes registered under {ROUTER_PREFIX}")

    return {
        'module': MODULE_NAME,
        'router_prefix': ROUTER_PREFIX,
        'status': 'registered'
    }
