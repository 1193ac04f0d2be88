# pressdesk/publishing/taxonomy.py
"""
Category and tag lookups for the editor, made as the requesting user.
Same entry guard as publishing; unlike publishing, a refused tag creation
is reported to the caller.
"""

import logging
from typing import Dict, List

from pressdesk.integrations.wordpress import (
    WordPressRejectedError,
    WordPressRemoteClient,
    WordPressTransportError,
)

from .errors import RemoteRejected, RemoteTransient, ValidationFailed
from .site_auth import require_publishing_access

logger = logging.getLogger(__name__)

__all__ = ['TaxonomyService']


class TaxonomyService:

    def __init__(self, storage, client: WordPressRemoteClient):
        self.storage = storage
        self.client = client

    async def _call(self, user_id: str, site_id: str, operation: str, *args):
        site, credential = await require_publishing_access(self.storage, user_id, site_id)
        method = getattr(self.client, operation)
        try:
            return await method(site.api_url, credential.credentials(), *args)
        except WordPressRejectedError as e:
            raise RemoteRejected(remote_status=e.status, remote_body=e.body) from e
        except WordPressTransportError as e:
            raise RemoteTransient() from e

    async def list_categories(self, user_id: str, site_id: str) -> List[Dict]:
        terms = await self._call(user_id, site_id, "list_categories")
        return [{"id": t.id, "name": t.name} for t in terms]

    async def list_tags(self, user_id: str, site_id: str) -> List[Dict]:
        terms = await self._call(user_id, site_id, "list_tags")
        return [{"id": t.id, "name": t.name} for t in terms]

    async def create_tag(self, user_id: str, site_id: str, name: str) -> Dict:
        if not name or not name.strip():
            raise ValidationFailed("Tag name is required")
        tag = await self._call(user_id, site_id, "create_tag", name.strip())
        logger.info(f"🏷️ User {user_id} created tag '{tag.name}' ({tag.id}) on site {site_id}")
        return {"id": tag.id, "name": tag.name}
