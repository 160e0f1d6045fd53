"""
================================================================================
SauceSearch v1.0 - Base Connector
================================================================================
Abstract base class and shared models for all search backends.

Every backend implements the same two-step interface:
  1. search(query) -> RawProviderResponse (backend-specific request)
  2. extract(raw)  -> List[NormalizedResult]

No matter if we're talking to the SauceNAO JSON API or scraping ascii2d,
callers always receive NormalizedResult records.

STATUS TRACKING:
  - Each connector remembers its last error and consecutive failures
  - Cloudflare challenges put the connector in CLOUDFLARE state
  - Health info is exposed through the app's /api/sources/health route
================================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Dict, Any, Callable, Tuple, Union
from enum import Enum
import os
import time
import threading


# =============================================================================
# LOGGING CALLBACK (avoids circular imports)
# =============================================================================

# Global logger callback - set by the app factory on startup
_log_callback: Optional[Callable[[str], None]] = None


def set_log_callback(callback: Callable[[str], None]) -> None:
    """Set the logging callback function. Called by create_app() on startup."""
    global _log_callback
    _log_callback = callback


def source_log(msg: str) -> None:
    """Log a message using the registered callback or fallback to print."""
    if _log_callback:
        _log_callback(msg)
    else:
        print(msg)


# =============================================================================
# ERRORS
# =============================================================================

class SearchError(Exception):
    """Base class for every failure surfaced by the search core."""
    code = "search_error"


class InvalidInput(SearchError):
    """Malformed or missing caller arguments."""
    code = "invalid_input"


class NoImageFound(SearchError):
    """A directory scan found nothing usable."""
    code = "no_image_found"


class UnexpectedResponseShape(SearchError):
    """The backend returned a page or payload we cannot recognize."""
    code = "unexpected_response"


class UpstreamRequestFailed(SearchError):
    """Network or HTTP-layer failure talking to a backend."""
    code = "upstream_failed"

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        self.message = message
        if status is not None:
            message = f"HTTP {status}: {message}"
        super().__init__(message)


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class SourceStatus(Enum):
    """Current operational status of a backend."""
    ONLINE = "online"
    CLOUDFLARE = "cloudflare"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


# Symbolic SauceNAO database names. "doujin" and "anime" are a logical OR
# across two physical sub-databases.
DATABASES: Dict[str, int] = {
    "all": 999,
    "pixiv": 5,
    "danbooru": 9,
    "book": 18,
    "doujin": 18,
    "anime": 21,
    "原图": 10000,
}

DATABASE_PAIRS: Dict[str, Tuple[int, int]] = {
    "doujin": (18, 38),
    "anime": (21, 22),
}


@dataclass(frozen=True)
class DatabaseSelector:
    """A symbolic database name resolved to its backend codes."""
    name: str
    codes: Tuple[int, ...]

    @classmethod
    def resolve(cls, name: Optional[str]) -> "DatabaseSelector":
        name = name or "all"
        if name in DATABASE_PAIRS:
            return cls(name, DATABASE_PAIRS[name])
        if name not in DATABASES:
            raise InvalidInput(f"Invalid database specified: {name}")
        return cls(name, (DATABASES[name],))

    @property
    def is_pair(self) -> bool:
        return len(self.codes) == 2


@dataclass(frozen=True)
class RemoteUrl:
    """Image addressed by an http(s) URL."""
    url: str


class LocalMaterialized:
    """
    Image available as a file on disk.

    When owns_temp_file is True the file was created for this request and
    must be removed exactly once; release() is safe to call repeatedly.
    """

    def __init__(self, path: str, owns_temp_file: bool = False):
        self.path = path
        self.owns_temp_file = owns_temp_file
        self._released = False
        self._lock = threading.Lock()

    def read_bytes(self) -> bytes:
        with open(self.path, "rb") as handle:
            return handle.read()

    def release(self) -> bool:
        """Delete the owned temp file. Returns True only on the deleting call."""
        if not self.owns_temp_file:
            return False
        with self._lock:
            if self._released:
                return False
            self._released = True
        try:
            os.remove(self.path)
        except OSError as exc:
            source_log(f"⚠️ Failed to remove temp image {self.path}: {exc}")
            return False
        return True

    @property
    def released(self) -> bool:
        return self._released

    def __repr__(self) -> str:
        return f"<LocalMaterialized path='{self.path}' owns_temp_file={self.owns_temp_file}>"


Image = Union[RemoteUrl, LocalMaterialized]


@dataclass(frozen=True)
class ImageQuery:
    """Query for the two image-similarity backends."""
    image: Image
    database: DatabaseSelector = DatabaseSelector("all", (999,))


@dataclass(frozen=True)
class TextQuery:
    """Query for the catalog backend. refined appends a locale qualifier."""
    name: str
    refined: bool = False
    qualifier: str = "chinese"

    @property
    def text(self) -> str:
        if self.refined:
            return f"{self.name} {self.qualifier}"
        return self.name


@dataclass
class RawProviderResponse:
    """Unparsed backend response plus where it came from."""
    payload: Any                     # Parsed JSON or HTML text
    host: str                        # Host the request went to
    status: int = 200                # HTTP status
    url: str = ""                    # Final URL after redirects


@dataclass
class NormalizedResult:
    """
    Standardized search hit shared by every backend.

    SauceNAO fills the similarity/title/author fields, nhentai fills
    source_url and thumbnail_url, ascii2d details map onto title/author.
    """
    similarity: Optional[float] = None
    title: Optional[str] = None
    author: Optional[str] = None
    source_url: Optional[str] = None
    author_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    index_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary for API responses."""
        return {
            "similarity": format_similarity(self.similarity),
            "title": self.title or "",
            "author": self.author or "",
            "url": self.source_url or "",
            "author_url": self.author_url,
            "thumbnail": self.thumbnail_url,
            "index_id": self.index_id,
        }


@dataclass
class DetailRecord:
    """One ascii2d item box, as scraped from a result page."""
    title: Optional[str] = None
    url: Optional[str] = None
    author: Optional[str] = None
    author_url: Optional[str] = None
    thumbnail: Optional[str] = None

    def to_result(self) -> NormalizedResult:
        return NormalizedResult(
            title=self.title,
            author=self.author,
            source_url=self.url,
            author_url=self.author_url,
            thumbnail_url=self.thumbnail,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "author": self.author,
            "author_url": self.author_url,
            "thumbnail": self.thumbnail,
        }


def parse_similarity(raw: Any) -> Optional[float]:
    """Parse a percentage string like "87.654" into 87.65."""
    if raw is None or raw == "":
        return None
    try:
        return round(float(raw), 2)
    except (TypeError, ValueError):
        return None


def format_similarity(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    return f"{value:.2f}"


# =============================================================================
# BASE CONNECTOR CLASS
# =============================================================================

class BaseConnector(ABC):
    """
    Abstract base class for search backends.

    INHERITANCE:
        SauceNAO, ascii2d and nhentai inherit from this class and implement
        search() and extract().

    STATUS:
        Each request outcome is recorded so the manager can report health.
        Nothing here retries; retry/fallback policy lives in the cascade.
    """

    # =========================================================================
    # SOURCE CONFIGURATION (Override in subclass)
    # =========================================================================

    id: str = "base"                 # Unique identifier
    name: str = "Base Source"        # Display name
    base_url: str = ""               # Root URL
    icon: str = "🔎"                 # Emoji for UI

    requires_cloudflare: bool = False
    # False: never replay a request through the Cloudflare fallback clients
    cloudflare_fallback: bool = True

    MAX_FAILURES = 5

    USER_AGENT = "SauceSearch/1.0 (+https://github.com/saucesearch/saucesearch)"

    def __init__(self, session=None):
        self._status = SourceStatus.UNKNOWN
        self._last_error: Optional[str] = None
        self._failure_count = 0
        self._last_success = 0.0
        self._lock = threading.Lock()

        # Session is normally injected by the SearchManager
        self.session = session

    # =========================================================================
    # STATUS MANAGEMENT
    # =========================================================================

    def _handle_cloudflare(self) -> None:
        with self._lock:
            self._status = SourceStatus.CLOUDFLARE
            self._failure_count += 1
            self._last_error = "Cloudflare challenge"
            if self._failure_count >= self.MAX_FAILURES:
                self._status = SourceStatus.OFFLINE

    def _handle_success(self) -> None:
        """Reset counters on successful request."""
        with self._lock:
            self._status = SourceStatus.ONLINE
            self._failure_count = 0
            self._last_success = time.time()

    def _handle_error(self, error: str) -> None:
        """Track errors for health reporting."""
        with self._lock:
            self._last_error = error
            self._failure_count += 1
            if self._failure_count >= self.MAX_FAILURES:
                self._status = SourceStatus.OFFLINE

    @property
    def status(self) -> SourceStatus:
        return self._status

    @property
    def is_available(self) -> bool:
        return self._status in (SourceStatus.ONLINE, SourceStatus.UNKNOWN)

    def get_health_info(self) -> Dict[str, Any]:
        """Get health info for status display."""
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "status": self.status.value,
            "is_available": self.is_available,
            "failure_count": self._failure_count,
            "last_error": self._last_error,
            "last_success": self._last_success or None,
        }

    def reset(self) -> None:
        """Reset all error states."""
        with self._lock:
            self._status = SourceStatus.UNKNOWN
            self._failure_count = 0
            self._last_error = None

    # =========================================================================
    # REQUEST HELPERS
    # =========================================================================

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        return {
            "User-Agent": self.USER_AGENT,
            "Accept": accept,
        }

    def _send(self, method: str, url: str, **kwargs):
        """
        Issue a request through the shared session.

        Transport errors and non-2xx responses become UpstreamRequestFailed;
        the response object is returned otherwise.
        Connectors with cloudflare_fallback = False ask the session not to
        replay the request through its fallback clients.
        """
        if self.session is None:
            raise UpstreamRequestFailed(f"{self.name}: no HTTP session configured")

        if not self.cloudflare_fallback:
            kwargs["cloudflare_fallback"] = False

        try:
            response = self.session.request(method, url, **kwargs)
        except Exception as exc:
            self._handle_error(str(exc))
            raise UpstreamRequestFailed(f"{self.name} request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            message = self._error_message(response)
            if response.status_code == 403 and self.requires_cloudflare:
                self._handle_cloudflare()
            else:
                self._handle_error(f"HTTP {response.status_code}")
            raise UpstreamRequestFailed(message, status=response.status_code)

        self._handle_success()
        return response

    def _error_message(self, response) -> str:
        """Best-effort upstream error message."""
        try:
            data = response.json()
        except Exception:
            data = None
        if isinstance(data, dict):
            header = data.get("header")
            if isinstance(header, dict) and header.get("message"):
                return str(header["message"])
            if data.get("message"):
                return str(data["message"])
            if data.get("error"):
                return str(data["error"])
        return getattr(response, "reason", None) or "request failed"

    def _log(self, msg: str) -> None:
        source_log(msg)

    # =========================================================================
    # ABSTRACT METHODS (Must implement in subclass)
    # =========================================================================

    @abstractmethod
    def search(self, query) -> RawProviderResponse:
        """Issue the backend-specific request."""
        pass

    @abstractmethod
    def extract(self, raw: RawProviderResponse) -> List[NormalizedResult]:
        """Turn a raw response into normalized records."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id='{self.id}' status={self.status.value}>"
