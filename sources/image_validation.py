"""Image sniffing helpers for uploaded search images.

Maps the Pillow-detected format of a buffer to a temp-file suffix.
"""

import io
from typing import Optional
from PIL import Image, UnidentifiedImageError


FORMAT_EXTENSIONS = {
    'JPEG': '.jpg',
    'PNG': '.png',
    'GIF': '.gif',
    'WEBP': '.webp',
    'BMP': '.bmp',
}


def get_image_format(data: bytes) -> Optional[str]:
    """Get image format (JPEG, PNG, GIF, etc).

    Returns:
        Format string or None if invalid
    """
    if not data:
        return None
    try:
        img = Image.open(io.BytesIO(data))
        return img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def guess_extension(data: bytes, default: str = '.png') -> str:
    """Pick a temp-file suffix from the sniffed image format."""
    return FORMAT_EXTENSIONS.get(get_image_format(data) or '', default)
