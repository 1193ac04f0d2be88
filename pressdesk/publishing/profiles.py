# pressdesk/publishing/profiles.py
"""
WordPress author profiles for a creator.

Reads the display name and avatar from the creator's first connected site,
and pushes a new display name / profile picture URL to every site the
creator has credentials for. One site failing never stops the others.
"""

import logging
from typing import Any, Dict, List, Optional

from pressdesk.integrations.wordpress import (
    WordPressAuthError,
    WordPressError,
    WordPressRejectedError,
    WordPressRemoteClient,
    WordPressTransportError,
)

from .errors import CredentialNotFound, RemoteRejected, RemoteTransient, SiteNotFound, ValidationFailed

logger = logging.getLogger(__name__)

__all__ = ['ProfileService', 'DEFAULT_DISPLAY_NAME']

DEFAULT_DISPLAY_NAME = "Content Creator"
NO_SITES_MESSAGE = "No WordPress sites connected"


class ProfileService:
    """Creator profile read/sync against connected WordPress sites"""

    def __init__(self, storage, client: WordPressRemoteClient):
        self.storage = storage
        self.client = client

    async def get_wp_profile(self, user_id: str) -> Dict[str, Any]:
        """
        Display name and avatar as WordPress knows them, from the first
        site the creator connected.
        """
        if not user_id:
            raise ValidationFailed("User id is required")

        credentials = await self.storage.list_credentials_for_user(user_id)
        if not credentials:
            raise CredentialNotFound(NO_SITES_MESSAGE)
        credential = credentials[0]

        site = await self.storage.get_site(credential.site_id)
        if site is None:
            raise SiteNotFound()

        try:
            remote_user = await self.client.verify_identity(site.api_url, credential.credentials())
        except (WordPressAuthError, WordPressRejectedError) as e:
            raise RemoteRejected("Failed to fetch WordPress user", remote_status=e.status) from e
        except WordPressTransportError as e:
            raise RemoteTransient(hint=f"Could not reach {site.api_url}") from e

        return {
            "displayName": remote_user.name or DEFAULT_DISPLAY_NAME,
            "profilePicture": remote_user.avatar_url,
        }

    async def sync_profile(self, user_id: str, display_name: Optional[str] = None,
                           profile_picture_url: Optional[str] = None) -> Dict[str, Any]:
        """Push display name and/or profile picture URL to every connected site"""
        if not user_id:
            raise ValidationFailed("User id is required")

        fields: Dict[str, Any] = {}
        if display_name and display_name.strip():
            fields["name"] = display_name.strip()
        if profile_picture_url and profile_picture_url.strip():
            fields["meta"] = {"profile_picture_url": profile_picture_url.strip()}
        if not fields:
            raise ValidationFailed("Display name or profile picture URL is required")

        credentials = await self.storage.list_credentials_for_user(user_id)
        if not credentials:
            return {"success": True, "message": NO_SITES_MESSAGE, "synced": []}

        results: List[Dict[str, Any]] = []
        for credential in credentials:
            site = await self.storage.get_site(credential.site_id)
            if site is None:
                continue
            try:
                await self.client.update_user(site.api_url, credential.credentials(),
                                              credential.wp_user_id, fields)
                results.append({"siteId": site.id, "success": True})
            except WordPressError as e:
                logger.warning(f"⚠️ Profile sync to site {site.id} failed for user {user_id}: {e}")
                entry: Dict[str, Any] = {"siteId": site.id, "success": False, "error": str(e)}
                if e.status is not None:
                    entry["status"] = e.status
                results.append(entry)

        synced = sum(1 for r in results if r["success"])
        logger.info(f"👤 Profile synced for user {user_id}: {synced}/{len(results)} sites")
        return {"success": True, "synced": results}
