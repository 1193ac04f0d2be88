# pressdesk/integrations/wordpress/integration_info.py
"""
WordPress Integration Info and Health Checks
"""

import os
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


def get_integration_info() -> Dict[str, Any]:
    """Get information about the WordPress publishing integration"""
    return {
        "name": "WordPress Publishing",
        "version": "1.0.0",
        "description": "Publish articles to admin-registered WordPress sites over the REST API",
        "api": "WordPress REST API v2 (/wp-json/wp/v2)",
        "authentication": "HTTP Basic Auth (Application Passwords or a Basic Auth plugin)",
        "endpoints_used": [
            "GET /users/me",
            "PUT /users/{id}",
            "POST /media",
            "GET /media/{id}",
            "POST /posts",
            "GET /posts/{id}",
            "POST /tags",
            "GET /tags",
            "GET /categories",
        ],
        "features": [
            "Admin site verification",
            "Per-user credential verification",
            "Featured image upload",
            "Tag creation on publish",
            "Published-post reconciliation",
            "Author profile read and sync",
        ],
        "workflow": "Draft → (Featured image upload) → WordPress post → Local publishing record"
    }


def check_module_health() -> Dict[str, Any]:
    """Check the configuration the WordPress integration depends on"""
    missing_vars = []
    warnings = []

    if not os.getenv("DATABASE_URL"):
        missing_vars.append("DATABASE_URL")

    has_encryption_key = bool(os.getenv("ENCRYPTION_KEY"))
    if not has_encryption_key:
        warnings.append("ENCRYPTION_KEY not set; stored WordPress passwords will not survive a restart")

    is_healthy = not missing_vars

    return {
        "healthy": is_healthy,
        "missing_vars": missing_vars,
        "warnings": warnings,
        "functionality_status": {
            "site_verification": is_healthy,
            "publishing": is_healthy,
            "reconciliation": is_healthy,
            "persistent_secrets": has_encryption_key,
        },
        "deployment_status": "ready" if is_healthy else "needs_configuration"
    }
