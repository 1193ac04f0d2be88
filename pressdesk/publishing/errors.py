# pressdesk/publishing/errors.py
"""
Publishing error taxonomy.

Every failure that reaches the HTTP boundary is a PublishingError carrying a
machine-readable kind, the HTTP status to answer with, an optional hint for
the UI, and the WordPress status/body when the failure came from the site.
"""

from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    'ErrorKind',
    'PublishingError',
    'SiteNotFound',
    'ArticleNotFound',
    'CredentialNotFound',
    'RecordNotFound',
    'AuthFailed',
    'InvalidCredentials',
    'NotAuthenticated',
    'SiteNotVerified',
    'RemoteTransient',
    'RemoteRejected',
    'PublishInProgress',
    'ValidationFailed',
    'BASIC_AUTH_PLUGIN_HINT',
]

BASIC_AUTH_PLUGIN_HINT = (
    "Admin needs to install a Basic Authentication plugin. Try 'REST API Authentication "
    "for WP' by miniOrange or 'Basic Authentication (REST API)' by Alain Schlesser, then "
    "activate it and try again."
)
WRONG_CREDENTIALS_HINT = "Your WordPress username or password is incorrect"
SITE_NOT_VERIFIED_HINT = "Admin must verify the WordPress site connection first"
NOT_AUTHENTICATED_HINT = "Connect your WordPress account to this site before publishing"

MAX_DETAIL_CHARS = 2000


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    SITE_NOT_FOUND = "site_not_found"
    ARTICLE_NOT_FOUND = "article_not_found"
    AUTH_FAILED = "auth_failed"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_AUTHENTICATED = "not_authenticated"
    SITE_NOT_VERIFIED = "site_not_verified"
    REMOTE_TRANSIENT = "remote_transient"
    REMOTE_REJECTED = "remote_rejected"
    PUBLISH_IN_PROGRESS = "publish_in_progress"
    VALIDATION = "validation"


class PublishingError(Exception):
    """Base class for every error the publishing workflows surface"""

    kind: ErrorKind = ErrorKind.NOT_FOUND
    status_code: int = 400
    default_message: str = "Publishing error"
    default_hint: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        hint: Optional[str] = None,
        remote_status: Optional[int] = None,
        remote_body: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.hint = hint if hint is not None else self.default_hint
        self.remote_status = remote_status
        self.remote_body = remote_body
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "kind": self.kind.value}
        if self.hint:
            body["hint"] = self.hint
        if self.remote_status is not None:
            body["remoteStatus"] = self.remote_status
        if self.remote_body:
            body["details"] = self.remote_body[:MAX_DETAIL_CHARS]
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, kind={self.kind.value})"


# ============================================================================
# Not found
# ============================================================================

class SiteNotFound(PublishingError):
    kind = ErrorKind.SITE_NOT_FOUND
    status_code = 404
    default_message = "Site not found"


class ArticleNotFound(PublishingError):
    kind = ErrorKind.ARTICLE_NOT_FOUND
    status_code = 404
    default_message = "Article not found"


class CredentialNotFound(PublishingError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Credentials not found"


class RecordNotFound(PublishingError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Publishing record not found"


# ============================================================================
# Remote identity failures
# ============================================================================

class AuthFailed(PublishingError):
    """WordPress answered 401: usually the Basic Auth plugin is missing"""
    kind = ErrorKind.AUTH_FAILED
    status_code = 401
    default_message = "Authentication failed"
    default_hint = BASIC_AUTH_PLUGIN_HINT


class InvalidCredentials(PublishingError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid WordPress credentials"
    default_hint = WRONG_CREDENTIALS_HINT


# ============================================================================
# Preconditions
# ============================================================================

class NotAuthenticated(PublishingError):
    kind = ErrorKind.NOT_AUTHENTICATED
    status_code = 403
    default_message = "Not authenticated to this site"
    default_hint = NOT_AUTHENTICATED_HINT


class SiteNotVerified(PublishingError):
    kind = ErrorKind.SITE_NOT_VERIFIED
    status_code = 403
    default_message = "Site not verified"
    default_hint = SITE_NOT_VERIFIED_HINT


class PublishInProgress(PublishingError):
    kind = ErrorKind.PUBLISH_IN_PROGRESS
    status_code = 409
    default_message = "Article is already being published"


class ValidationFailed(PublishingError):
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "Invalid request"


# ============================================================================
# Remote call failures
# ============================================================================

class RemoteTransient(PublishingError):
    kind = ErrorKind.REMOTE_TRANSIENT
    status_code = 502
    default_message = "Could not reach WordPress"


class RemoteRejected(PublishingError):
    """WordPress answered non-2xx; the remote status is passed through"""
    kind = ErrorKind.REMOTE_REJECTED
    status_code = 502
    default_message = "WordPress rejected the request"

    def __init__(self, message: Optional[str] = None, **kwargs):
        remote_status = kwargs.get("remote_status")
        if kwargs.get("status_code") is None and remote_status and 400 <= remote_status < 600:
            kwargs["status_code"] = remote_status
        super().__init__(message, **kwargs)
