"""
================================================================================
SauceSearch v1.0 - Image Input Resolver
================================================================================
Turns whatever the caller handed us into an Image handle the connectors can
send over HTTP:

  url        -> RemoteUrl                         (http/https only)
  data       -> LocalMaterialized(owns_temp_file=True)   temp file upload
  directory  -> LocalMaterialized(owns_temp_file=False)  newest image in dir
  path       -> LocalMaterialized(owns_temp_file=False)  file used as-is

Resolution happens once, before any connector runs. Temp files are removed
by materialize() on every exit path.

NEWEST-FILE HEURISTIC:
  Picking "the most recently modified image" is best-effort. Another process
  writing into the directory at the same moment can change the answer.
================================================================================
"""

import base64
import binascii
import os
import re
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from .base import (
    Image, RemoteUrl, LocalMaterialized, InvalidInput, NoImageFound, source_log
)
from .image_validation import guess_extension


URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)

IMAGE_EXTENSIONS = frozenset({'.jpg', '.jpeg', '.png', '.gif', '.webp', '.bmp'})


@dataclass
class ImageSpec:
    """
    Raw caller input for an image search.

    directory uses None for "not given" and "" for "use the default cache
    directory".
    """
    url: Optional[str] = None
    data: Optional[bytes] = None
    directory: Optional[str] = None
    path: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ImageSpec":
        """Build a spec from a JSON request body (imageUrl / imageBuffer / ...)."""
        buffer = payload.get('imageBuffer')
        return cls(
            url=payload.get('imageUrl') or None,
            data=decode_image_buffer(buffer) if buffer else None,
            directory=payload.get('imageDir'),
            path=payload.get('imagePath') or None,
        )


def decode_image_buffer(encoded: str) -> bytes:
    """Decode a base64 image buffer, tolerating data: URL prefixes."""
    if not isinstance(encoded, str):
        raise InvalidInput("imageBuffer must be a base64 string")
    if encoded.startswith('data:') and ',' in encoded:
        encoded = encoded.split(',', 1)[1]
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput(f"imageBuffer is not valid base64: {exc}") from exc
    if not data:
        raise InvalidInput("imageBuffer is empty")
    return data


def is_valid_url(url: Optional[str]) -> bool:
    return bool(url) and bool(URL_PATTERN.match(url))


def find_latest_image(directory: str) -> str:
    """
    Return the image file in directory with the newest modification time.

    Raises:
        InvalidInput: directory cannot be read
        NoImageFound: no entry with an image extension
    """
    try:
        entries = list(os.scandir(directory))
    except OSError as exc:
        raise InvalidInput(f"Cannot read image directory {directory!r}: {exc}") from exc

    latest_path = None
    latest_mtime = None
    for entry in entries:
        if os.path.splitext(entry.name)[1].lower() not in IMAGE_EXTENSIONS:
            continue
        try:
            if not entry.is_file():
                continue
            mtime = entry.stat().st_mtime
        except OSError:
            # Removed between listing and stat
            continue
        if latest_mtime is None or mtime > latest_mtime:
            latest_path, latest_mtime = entry.path, mtime

    if latest_path is None:
        raise NoImageFound(f"No image found in {directory}")
    return latest_path


class ImageResolver:
    """Resolves an ImageSpec into exactly one Image variant."""

    def __init__(self, default_dir: Optional[str] = None, temp_dir: Optional[str] = None):
        self.default_dir = default_dir or None
        self.temp_dir = temp_dir or tempfile.gettempdir()

    def resolve(self, spec: ImageSpec) -> Image:
        if is_valid_url(spec.url):
            return RemoteUrl(spec.url)

        if spec.data:
            return self._materialize_bytes(spec.data)

        if spec.directory is not None:
            directory = spec.directory or self.default_dir
            if not directory:
                raise InvalidInput("No image directory given and no default cache directory configured")
            path = find_latest_image(directory)
            source_log(f"🖼️ Using newest image {os.path.basename(path)}")
            return LocalMaterialized(path, owns_temp_file=False)

        if spec.path:
            if not os.path.isfile(spec.path):
                raise InvalidInput(f"Image file not found: {spec.path}")
            return LocalMaterialized(spec.path, owns_temp_file=False)

        if spec.url:
            raise InvalidInput(f"Invalid image URL: {spec.url}")
        raise InvalidInput("Either imageUrl or imageBuffer must be provided.")

    def _materialize_bytes(self, data: bytes) -> LocalMaterialized:
        fd, path = tempfile.mkstemp(prefix='upload_', suffix=guess_extension(data), dir=self.temp_dir)
        try:
            with os.fdopen(fd, 'wb') as handle:
                handle.write(data)
        except OSError:
            os.remove(path)
            raise
        return LocalMaterialized(path, owns_temp_file=True)

    @contextmanager
    def materialize(self, spec: ImageSpec) -> Iterator[Image]:
        """Resolve spec and release any temp file when the block exits."""
        image = self.resolve(spec)
        try:
            yield image
        finally:
            if isinstance(image, LocalMaterialized):
                image.release()
