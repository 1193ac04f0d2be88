# pressdesk/integrations/wordpress/wordpress_client.py
"""
WordPress REST API v2 Client
Talks to any number of admin-registered WordPress sites under HTTP Basic Auth.

Every call takes the site's REST API base URL (e.g. https://example.com/wp-json)
and the credentials to use, so one client instance serves every site and every
user. Calls are attempted exactly once: there is no retry here.

Outcomes are normalized:
- success returns a small dataclass (RemoteUser, MediaRef, RemotePost, RemoteTerm)
- a non-2xx answer raises WordPressAuthError / WordPressRejectedError
- network errors and timeouts raise WordPressTransportError
- fetch_post never raises for HTTP answers; it returns a PostLookup for
  the reconciliation sweep to classify
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from pressdesk.core.safe_logger import single_line

logger = logging.getLogger(__name__)

__all__ = [
    'WordPressRemoteClient',
    'WpCredentials',
    'RemoteUser',
    'MediaRef',
    'RemotePost',
    'RemoteTerm',
    'PostLookup',
    'WordPressError',
    'WordPressAuthError',
    'WordPressRejectedError',
    'WordPressTransportError',
    'AUTH_FAILURE_CODES',
]

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = "PressDesk/1.0"
TAXONOMY_PAGE_SIZE = 100

# Payload markers WordPress (and common Basic Auth plugins) use for bad credentials
AUTH_FAILURE_CODES = ("rest_authentication_failed",)
AUTH_FAILURE_ERRORS = ("INVALID_PASSWORD",)


# ============================================================================
# ERRORS
# ============================================================================

class WordPressError(Exception):
    """Base error for outbound WordPress calls"""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class WordPressAuthError(WordPressError):
    """The site refused the supplied credentials (non-2xx on an identity check)"""


class WordPressRejectedError(WordPressError):
    """The site answered with a non-2xx status or an unusable body"""


class WordPressTransportError(WordPressError):
    """Network error or timeout; the site never gave an answer"""


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass(frozen=True)
class WpCredentials:
    username: str
    password: str

    def auth_header(self) -> str:
        """Basic Auth header value; WordPress Application Passwords use the same scheme"""
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return f"Basic {token}"

    def __repr__(self) -> str:
        return f"WpCredentials(username={self.username!r}, password='***')"


@dataclass
class RemoteUser:
    id: int
    name: str
    slug: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], fallback_name: str) -> "RemoteUser":
        avatars = payload.get("avatar_urls") or {}
        return cls(
            id=int(payload["id"]),
            name=payload.get("name") or fallback_name,
            slug=payload.get("slug"),
            avatar_url=avatars.get("96") if isinstance(avatars, dict) else None,
        )


@dataclass
class MediaRef:
    id: int
    source_url: Optional[str] = None


@dataclass
class RemotePost:
    id: int
    link: Optional[str] = None
    status: Optional[str] = None


@dataclass
class RemoteTerm:
    id: int
    name: str


@dataclass
class PostLookup:
    """Raw outcome of GET /wp/v2/posts/{id}"""
    status_code: int
    payload: Any = None
    decodable: bool = True
    body: str = ""

    @property
    def auth_failed(self) -> bool:
        if isinstance(self.payload, dict):
            if self.payload.get("code") in AUTH_FAILURE_CODES:
                return True
            if self.payload.get("error") in AUTH_FAILURE_ERRORS:
                return True
        return self.status_code in (401, 403)

    @property
    def post(self) -> Optional[RemotePost]:
        if 200 <= self.status_code < 300 and isinstance(self.payload, dict) and self.payload.get("id"):
            return RemotePost(
                id=int(self.payload["id"]),
                link=self.payload.get("link"),
                status=self.payload.get("status"),
            )
        return None


# ============================================================================
# CLIENT
# ============================================================================

class WordPressRemoteClient:
    """Single-shot WordPress REST API client shared by every workflow"""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        self._session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.user_agent = user_agent

    async def open(self) -> None:
        """Create the shared HTTP session (no-op when one was injected)"""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent}
            )
            self._owns_session = True
            logger.info("🌐 WordPress HTTP session opened")

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.info("🔌 WordPress HTTP session closed")
        self._session = None

    @property
    def is_open(self) -> bool:
        return self._session is not None

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @staticmethod
    def endpoint(api_base_url: str, path: str) -> str:
        return f"{api_base_url.rstrip('/')}/wp/v2/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        url: str,
        credentials: WpCredentials,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> tuple:
        """
        Perform one HTTP call.

        Returns:
            (status, raw_text, decoded_json_or_None, decodable)

        Raises:
            WordPressTransportError: network failure or timeout
        """
        if self._session is None:
            raise RuntimeError("WordPressRemoteClient.open() has not been called")

        request_headers = {"Authorization": credentials.auth_header(), "Accept": "application/json"}
        if headers:
            request_headers.update(headers)

        try:
            async with self._session.request(
                method,
                url,
                json=json_body,
                data=data,
                headers=request_headers,
                params=params,
                timeout=self.timeout
            ) as response:
                status = response.status
                text = await response.text()
        except asyncio.TimeoutError as e:
            logger.warning(f"⚠️ WordPress {method} {url} timed out")
            raise WordPressTransportError(f"Timed out calling {url}") from e
        except aiohttp.ClientError as e:
            logger.warning(f"⚠️ WordPress connection error on {method} {url}: {e}")
            raise WordPressTransportError(f"Connection error: {e}") from e

        # An empty body is a valid (if bare) answer; only garbage is undecodable
        try:
            payload = json.loads(text) if text and text.strip() else None
            decodable = True
        except ValueError:
            payload, decodable = None, False

        return status, text, payload, decodable

    @staticmethod
    def _ok(status: int) -> bool:
        return 200 <= status < 300

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def verify_identity(self, api_base_url: str, credentials: WpCredentials) -> RemoteUser:
        """
        GET /wp/v2/users/me

        Raises:
            WordPressAuthError: any non-2xx; .status tells 401 (plugin) from the rest
        """
        url = self.endpoint(api_base_url, "users/me")
        status, text, payload, decodable = await self._request("GET", url, credentials)

        if not self._ok(status):
            logger.warning(
                f"⚠️ WordPress identity check failed for {credentials.username} "
                f"({status}): {single_line(text, 200)}"
            )
            raise WordPressAuthError(f"Identity check failed with HTTP {status}", status, text)

        if not decodable or not isinstance(payload, dict) or payload.get("id") is None:
            raise WordPressRejectedError("Identity check returned an unusable body", status, text)

        user = RemoteUser.from_payload(payload, credentials.username)
        logger.info(f"✅ WordPress identity confirmed: {credentials.username} → user {user.id}")
        return user

    async def update_user(self, api_base_url: str, credentials: WpCredentials,
                          wp_user_id: Optional[str], fields: Dict[str, Any]) -> RemoteUser:
        """
        PUT /wp/v2/users/{id}, or users/me when the remote id is unknown.

        Raises:
            WordPressRejectedError: non-2xx or unusable body
        """
        url = self.endpoint(api_base_url, f"users/{wp_user_id or 'me'}")
        status, text, payload, decodable = await self._request("PUT", url, credentials, json_body=fields)

        if not self._ok(status) or not isinstance(payload, dict) or payload.get("id") is None:
            logger.warning(
                f"⚠️ WordPress user update failed for {credentials.username} "
                f"({status}): {single_line(text, 200)}"
            )
            raise WordPressRejectedError(f"User update failed with HTTP {status}", status, text)

        logger.info(f"✅ WordPress user {payload['id']} updated ({', '.join(sorted(fields))})")
        return RemoteUser.from_payload(payload, credentials.username)

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def upload_media(
        self,
        api_base_url: str,
        credentials: WpCredentials,
        image_bytes: bytes,
        content_type: str,
        filename: str
    ) -> MediaRef:
        """POST /wp/v2/media with the raw image as body"""
        url = self.endpoint(api_base_url, "media")
        headers = {
            "Content-Type": content_type,
            "Content-Disposition": f'attachment; filename="{filename}"',
        }
        status, text, payload, decodable = await self._request(
            "POST", url, credentials, data=image_bytes, headers=headers
        )

        if not self._ok(status) or not isinstance(payload, dict) or payload.get("id") is None:
            raise WordPressRejectedError(f"Media upload failed with HTTP {status}", status, text)

        media = MediaRef(id=int(payload["id"]), source_url=payload.get("source_url"))
        logger.info(f"🖼️ Uploaded media {media.id} ({filename}, {len(image_bytes)} bytes)")
        return media

    async def fetch_media(
        self,
        api_base_url: str,
        credentials: WpCredentials,
        media_id: int
    ) -> Optional[str]:
        """GET /wp/v2/media/{id} → source_url, or None when WordPress won't say"""
        url = self.endpoint(api_base_url, f"media/{media_id}")
        status, text, payload, decodable = await self._request("GET", url, credentials)
        if not self._ok(status) or not isinstance(payload, dict):
            logger.warning(f"⚠️ Media {media_id} lookup returned HTTP {status}")
            return None
        return payload.get("source_url")

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    async def create_post(
        self,
        api_base_url: str,
        credentials: WpCredentials,
        post_fields: Dict[str, Any]
    ) -> RemotePost:
        """
        POST /wp/v2/posts

        Raises:
            WordPressRejectedError: non-2xx, carrying the status and body
        """
        url = self.endpoint(api_base_url, "posts")
        status, text, payload, decodable = await self._request(
            "POST", url, credentials, json_body=post_fields
        )

        if not self._ok(status):
            logger.error(f"❌ WordPress API error ({status}): {single_line(text, 200)}")
            raise WordPressRejectedError(f"Post creation failed with HTTP {status}", status, text)

        if not isinstance(payload, dict) or payload.get("id") is None:
            raise WordPressRejectedError("Post creation returned an unusable body", status, text)

        post = RemotePost(id=int(payload["id"]), link=payload.get("link"), status=payload.get("status"))
        logger.info(f"✅ Created WordPress post {post.id}: {str(post_fields.get('title', ''))[:50]}")
        return post

    async def fetch_post(
        self,
        api_base_url: str,
        credentials: WpCredentials,
        post_id: str
    ) -> PostLookup:
        """GET /wp/v2/posts/{id}; only transport failures raise"""
        url = self.endpoint(api_base_url, f"posts/{post_id}")
        status, text, payload, decodable = await self._request("GET", url, credentials)
        return PostLookup(status_code=status, payload=payload, decodable=decodable, body=text)

    # ------------------------------------------------------------------
    # Taxonomies
    # ------------------------------------------------------------------

    async def create_tag(self, api_base_url: str, credentials: WpCredentials, name: str) -> RemoteTerm:
        """
        POST /wp/v2/tags

        A tag that already exists comes back as 400 term_exists with its id,
        which is treated as success.
        """
        url = self.endpoint(api_base_url, "tags")
        status, text, payload, decodable = await self._request(
            "POST", url, credentials, json_body={"name": name}
        )

        if self._ok(status) and isinstance(payload, dict) and payload.get("id") is not None:
            return RemoteTerm(id=int(payload["id"]), name=payload.get("name", name))

        if isinstance(payload, dict) and payload.get("code") == "term_exists":
            term_id = (payload.get("data") or {}).get("term_id")
            if term_id is not None:
                logger.info(f"🏷️ Tag '{name}' already exists as {term_id}")
                return RemoteTerm(id=int(term_id), name=name)

        raise WordPressRejectedError(f"Tag creation failed with HTTP {status}", status, text)

    async def _list_terms(self, api_base_url: str, credentials: WpCredentials, taxonomy: str) -> List[RemoteTerm]:
        url = self.endpoint(api_base_url, taxonomy)
        status, text, payload, decodable = await self._request(
            "GET", url, credentials, params={"per_page": TAXONOMY_PAGE_SIZE}
        )
        if not self._ok(status) or not isinstance(payload, list):
            raise WordPressRejectedError(f"Listing {taxonomy} failed with HTTP {status}", status, text)
        return [
            RemoteTerm(id=int(item["id"]), name=item.get("name", ""))
            for item in payload
            if isinstance(item, dict) and item.get("id") is not None
        ]

    async def list_categories(self, api_base_url: str, credentials: WpCredentials) -> List[RemoteTerm]:
        return await self._list_terms(api_base_url, credentials, "categories")

    async def list_tags(self, api_base_url: str, credentials: WpCredentials) -> List[RemoteTerm]:
        return await self._list_terms(api_base_url, credentials, "tags")
