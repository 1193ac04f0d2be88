# pressdesk/publishing/site_verification.py
"""
Admin-side site management.

verify_site() proves that a set of admin credentials works against a site's
REST API and flips the site's connected flag. It never stores the credentials
it was given; rotating stored admin credentials is update_admin_credentials().
"""

import logging
from typing import Any, Dict, List, Optional

from pressdesk.integrations.wordpress import (
    RemoteUser,
    WordPressAuthError,
    WordPressRejectedError,
    WordPressRemoteClient,
    WordPressTransportError,
    WpCredentials,
)

from .errors import (
    AuthFailed,
    InvalidCredentials,
    PublishingError,
    RemoteRejected,
    RemoteTransient,
    SiteNotFound,
    ValidationFailed,
)
from .models import Site

logger = logging.getLogger(__name__)

__all__ = ['SiteVerificationWorkflow', 'verify_credentials_remotely']


async def verify_credentials_remotely(client: WordPressRemoteClient, site: Site,
                                      credentials: WpCredentials) -> RemoteUser:
    """
    Identity check shared by admin verification and user authentication.

    401 means the site is not accepting Basic Auth (plugin missing); any other
    refusal means the username or password is wrong.
    """
    try:
        return await client.verify_identity(site.api_url, credentials)
    except WordPressAuthError as e:
        if e.status == 401:
            raise AuthFailed(remote_status=e.status) from e
        raise InvalidCredentials(remote_status=e.status) from e
    except WordPressTransportError as e:
        raise RemoteTransient(hint=f"Could not reach {site.api_url}") from e
    except WordPressRejectedError as e:
        raise RemoteRejected(
            "WordPress returned an unexpected identity response",
            remote_status=e.status,
            remote_body=e.body,
        ) from e


def _require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationFailed(f"{field} is required")
    return str(value).strip()


class SiteVerificationWorkflow:
    """Site registry administration and connection verification"""

    def __init__(self, storage, client: WordPressRemoteClient):
        self.storage = storage
        self.client = client

    async def _get_site(self, site_id: str) -> Site:
        site = await self.storage.get_site(site_id)
        if site is None:
            raise SiteNotFound()
        return site

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_site(self, site_id: str, admin_username: str, admin_password: str) -> Dict[str, Any]:
        """Check admin credentials against the site and mark it connected."""
        site = await self._get_site(site_id)
        username = _require(admin_username, "Admin username")
        password = _require(admin_password, "Admin password")

        try:
            remote_user = await verify_credentials_remotely(self.client, site, WpCredentials(username, password))
        except PublishingError as e:
            logger.warning(f"⚠️ Site {site_id} verification failed: {e.kind.value}")
            raise

        await self.storage.set_site_connected(site_id, True)
        logger.info(f"✅ Site {site_id} verified as {remote_user.name}")

        return {
            "success": True,
            "message": f"Connected to {site.name} as {remote_user.name}",
            "displayName": remote_user.name,
        }

    # ------------------------------------------------------------------
    # Registry administration
    # ------------------------------------------------------------------

    async def register_site(self, name: str, url: str, api_url: str,
                            admin_username: Optional[str] = None,
                            admin_password: Optional[str] = None,
                            api_token: Optional[str] = None,
                            seo_plugin: Optional[str] = None) -> Site:
        """New sites always start disconnected until verify_site succeeds"""
        return await self.storage.create_site(
            name=_require(name, "Site name"),
            url=_require(url, "Site URL").rstrip('/'),
            api_url=_require(api_url, "API URL").rstrip('/'),
            admin_username=admin_username or None,
            admin_password=admin_password or None,
            api_token=api_token or None,
            seo_plugin=seo_plugin or None,
        )

    async def list_sites(self) -> List[Site]:
        return await self.storage.list_sites()

    async def update_admin_credentials(self, site_id: str,
                                       admin_username: Optional[str] = None,
                                       admin_password: Optional[str] = None,
                                       api_token: Optional[str] = None) -> Site:
        """Rotate stored admin credentials, keeping any field not supplied."""
        await self._get_site(site_id)
        site = await self.storage.update_site_admin_credentials(
            site_id,
            admin_username=admin_username or None,
            admin_password=admin_password or None,
            api_token=api_token or None,
        )
        if site is None:
            raise SiteNotFound()
        logger.info(f"🔄 Admin credentials updated for site {site_id}")
        return site

    async def delete_site(self, site_id: str) -> Dict[str, Any]:
        if not await self.storage.delete_site(site_id):
            raise SiteNotFound()
        logger.info(f"🗑️ Site {site_id} deleted")
        return {"success": True, "message": "Site deleted"}
