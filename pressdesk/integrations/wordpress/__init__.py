"""
WordPress Integration
REST API v2 client, featured-image decoding and health info
"""

from .wordpress_client import (
    WordPressRemoteClient,
    WpCredentials,
    RemoteUser,
    MediaRef,
    RemotePost,
    RemoteTerm,
    PostLookup,
    WordPressError,
    WordPressAuthError,
    WordPressRejectedError,
    WordPressTransportError,
)
from .media import FeaturedImage, decode_data_url
from .integration_info import get_integration_info, check_module_health

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
    'FeaturedImage',
    'decode_data_url',
    'get_integration_info',
    'check_module_health',
]
