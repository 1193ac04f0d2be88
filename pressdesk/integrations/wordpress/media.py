# pressdesk/integrations/wordpress/media.py
"""
Featured image decoding.
The editor sends the featured image as a base64 data URL; WordPress wants the
raw bytes with a matching Content-Type and file extension.
"""

import base64
import binascii
from dataclasses import dataclass

__all__ = ['FeaturedImage', 'decode_data_url', 'detect_image_type']

# (data-URL prefix, content type, extension); JPEG is the fallback
IMAGE_TYPES = (
    ("data:image/png", "image/png", "png"),
    ("data:image/webp", "image/webp", "webp"),
    ("data:image/gif", "image/gif", "gif"),
)
DEFAULT_IMAGE_TYPE = ("image/jpeg", "jpg")

FILENAME_STEM = "featured-image"


@dataclass
class FeaturedImage:
    data: bytes
    content_type: str
    extension: str

    @property
    def filename(self) -> str:
        return f"{FILENAME_STEM}.{self.extension}"


def detect_image_type(data_url: str) -> tuple:
    """Return (content_type, extension) from the data-URL prefix."""
    for prefix, content_type, extension in IMAGE_TYPES:
        if data_url.startswith(prefix):
            return content_type, extension
    return DEFAULT_IMAGE_TYPE


def decode_data_url(data_url: str) -> FeaturedImage:
    """
    Decode a base64 data URL (or bare base64) into image bytes.

    Raises:
        ValueError: empty input or invalid base64
    """
    if not data_url or not data_url.strip():
        raise ValueError("Featured image is empty")

    content_type, extension = detect_image_type(data_url)
    encoded = data_url.split(",", 1)[1] if "," in data_url else data_url

    try:
        data = base64.b64decode(encoded, validate=False)
    except binascii.Error as e:
        raise ValueError(f"Featured image is not valid base64: {e}") from e

    if not data:
        raise ValueError("Featured image decoded to zero bytes")

    return FeaturedImage(data=data, content_type=content_type, extension=extension)
