"""Lightweight request validation helpers."""

from typing import Any, Dict, List, Tuple, Optional


Rule = Tuple[str, type, Optional[int]]

IMAGE_FIELDS = ('imageUrl', 'imageBuffer', 'imageDir', 'imagePath')

# ~20 MB of image once base64 encoded
MAX_BUFFER_LENGTH = 28 * 1024 * 1024
MAX_NAME_LENGTH = 500


def validate_fields(payload: Dict[str, Any], rules: List[Rule]) -> Optional[str]:
    """
    Validate required fields with optional max length.

    Args:
        payload: Incoming JSON dict.
        rules: List of (field, type, max_length or None).

    Returns:
        None if valid, or error message string.
    """
    for field, expected_type, max_len in rules:
        if field not in payload:
            return f"Missing required field: {field}"
        value = payload.get(field)
        if not isinstance(value, expected_type):
            return f"Field '{field}' must be {expected_type.__name__}"
        if max_len is not None and len(str(value)) > max_len:
            return f"Field '{field}' exceeds max length {max_len}"
    return None


def validate_image_fields(payload: Dict[str, Any]) -> Optional[str]:
    """
    Check the image arguments of an image search request.

    imageDir may be an empty string ("use the default cache directory"),
    every other image field must be a non-empty string when present.
    """
    present = [f for f in IMAGE_FIELDS if payload.get(f) is not None]
    if not present:
        return "Either imageUrl or imageBuffer must be provided."

    for field in present:
        value = payload[field]
        if not isinstance(value, str):
            return f"Field '{field}' must be str"
        if field != 'imageDir' and not value:
            return f"Field '{field}' must not be empty"

    if len(payload.get('imageBuffer') or '') > MAX_BUFFER_LENGTH:
        return f"Field 'imageBuffer' exceeds max length {MAX_BUFFER_LENGTH}"
    return None


def sanitize_string(value: str, max_length: int = 500, allow_newlines: bool = False) -> str:
    """
    Sanitize a string by removing control characters and limiting length.

    Args:
        value: String to sanitize
        max_length: Maximum allowed length
        allow_newlines: Whether to allow newlines

    Returns:
        Sanitized string
    """
    if not isinstance(value, str):
        return ""

    # Remove control characters (except newlines if allowed)
    if allow_newlines:
        result = ''.join(c for c in value if c >= ' ' or c in '\n\r\t')
    else:
        result = ''.join(c for c in value if c >= ' ')

    # Limit length
    return result[:max_length]
