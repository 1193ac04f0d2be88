# pressdesk/publishing/site_auth.py
"""
Creator-side site authentication.

A creator proves their own WordPress login against a site an admin has
already verified. Re-authenticating replaces the stored credential
(delete-and-replace), so rotated passwords just work.
"""

import logging
from typing import Any, Dict, List, Tuple

from pressdesk.integrations.wordpress import WordPressRemoteClient, WpCredentials

from .errors import NotAuthenticated, PublishingError, SiteNotFound, SiteNotVerified, ValidationFailed
from .models import Site, UserSiteCredential
from .site_verification import verify_credentials_remotely

logger = logging.getLogger(__name__)

__all__ = ['SiteAuthenticationWorkflow', 'require_publishing_access']

AUTH_SUCCESS_MESSAGE = "Authenticated successfully. You can now publish to this site."
DISCONNECT_MESSAGE = "Disconnected from site"


async def require_publishing_access(storage, user_id: str, site_id: str) -> Tuple[Site, UserSiteCredential]:
    """
    Entry guard for anything that calls WordPress as the user.

    Raises:
        SiteNotFound: no such site
        NotAuthenticated: the user has no verified credential for the site
    """
    site = await storage.get_site(site_id)
    if site is None:
        raise SiteNotFound()
    credential = await storage.get_credential(user_id, site_id)
    if credential is None or not credential.is_verified:
        raise NotAuthenticated()
    return site, credential


class SiteAuthenticationWorkflow:
    """Per-user WordPress credential verification"""

    def __init__(self, storage, client: WordPressRemoteClient):
        self.storage = storage
        self.client = client

    async def authenticate(self, user_id: str, site_id: str,
                           wp_username: str, wp_password: str) -> Dict[str, Any]:
        """
        Verify a creator's credentials and store them.

        The site's connected flag is checked before any remote call.
        """
        site = await self.storage.get_site(site_id)
        if site is None:
            raise SiteNotFound()
        if not site.is_connected:
            raise SiteNotVerified()

        if not user_id:
            raise ValidationFailed("User id is required")
        if not wp_username or not wp_username.strip() or not wp_password:
            raise ValidationFailed("WordPress username and password are required")
        wp_username = wp_username.strip()

        try:
            remote_user = await verify_credentials_remotely(
                self.client, site, WpCredentials(wp_username, wp_password)
            )
        except PublishingError as e:
            logger.warning(f"⚠️ User {user_id} failed to authenticate to site {site_id}: {e.kind.value}")
            raise

        credential = await self.storage.replace_credential(
            user_id=user_id,
            site_id=site_id,
            wp_username=wp_username,
            wp_password=wp_password,
            wp_user_id=str(remote_user.id),
        )

        profile = await self.storage.get_profile(user_id, site_id)
        if profile is None:
            profile = await self.storage.create_profile(user_id, site_id, credential.id)
            logger.info(f"✅ Publishing profile created for user {user_id} on site {site_id}")

        logger.info(f"✅ User {user_id} authenticated to site {site_id} as {wp_username}")
        return {
            "success": True,
            "message": AUTH_SUCCESS_MESSAGE,
            "profile": profile.to_public_dict(),
            "credential": credential.to_public_dict(),
        }

    async def disconnect(self, user_id: str, site_id: str) -> Dict[str, Any]:
        """Forget the user's credential for a site. Safe to repeat."""
        credential = await self.storage.get_credential(user_id, site_id)
        if credential is not None:
            await self.storage.delete_credential(credential.id)
            logger.info(f"🔌 User {user_id} disconnected from site {site_id}")
        return {"success": True, "message": DISCONNECT_MESSAGE}

    async def list_sites_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Every site, flagged with whether this user can publish to it"""
        sites = await self.storage.list_sites()
        credentials = {c.site_id: c for c in await self.storage.list_credentials_for_user(user_id)}

        overview = []
        for site in sites:
            credential = credentials.get(site.id)
            entry = site.to_public_dict()
            entry.pop("adminUsername", None)
            entry["hasCredentials"] = credential is not None
            entry["userIsConnected"] = bool(credential and credential.is_verified)
            entry["wpUsername"] = credential.wp_username if credential else None
            overview.append(entry)
        return overview
