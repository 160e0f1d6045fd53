"""
================================================================================
SauceSearch v1.0 - Search Manager
================================================================================
Central manager for the three search backends.

THIS IS THE BRAIN OF THE MULTI-BACKEND SYSTEM:
  - Builds one shared HTTP session for all connectors
  - Owns the ascii2d HostRotator (the only cross-request state)
  - Resolves caller image input before any connector runs
  - Drives each backend's fallback order
  - Formats results for the Flask routes

OPERATIONS:
  saucenao_search(spec, db)  -> {text, results}
  ascii2d_search(spec)       -> {text, color, feature, success}
  nhentai_search(name)       -> {text, found, url, thumbnail}

HOW NHENTAI FALLBACK WORKS:
  1. API with "<name> chinese"
  2. API with "<name>"
  3. Mirror website with "<name> chinese"   (only if a mirror is configured)
  4. Mirror website with "<name>"
  The first hit wins; later steps never run.
================================================================================
"""

import threading
from typing import Any, Dict, List, Optional

from .base import (
    BaseConnector, DatabaseSelector, ImageQuery, InvalidInput, SearchError,
    source_log
)
from .ascii2d import Ascii2dConnector
from .cascade import Cascade
from .config import SearchConfig
from .formatter import format_ascii2d, format_catalog, format_similarity_results
from .host_rotator import HostRotator
from .http_client import SmartSession
from .image_input import ImageResolver, ImageSpec
from .nhentai import NHentaiConnector
from .saucenao import SauceNAOConnector


class SearchManager:
    """
    Central manager for search connectors.

    Usage:
        manager = SearchManager(SearchConfig.from_env())
        manager.saucenao_search(ImageSpec(url="https://x/y.jpg"), "pixiv")
        manager.nhentai_search("some title")
    """

    def __init__(self, config: Optional[SearchConfig] = None, session=None):
        self.config = config or SearchConfig.from_env()

        # Shared HTTP session
        self._session = session if session is not None else SmartSession(timeout=self.config.timeout)

        self.rotator = HostRotator(self.config.ascii2d_hosts)
        self.resolver = ImageResolver(default_dir=self.config.image_cache_dir)

        self.saucenao = SauceNAOConnector(
            self._session,
            host=self.config.saucenao_host,
            api_key=self.config.saucenao_api_key,
        )
        self.ascii2d = Ascii2dConnector(self._session, rotator=self.rotator)
        self.nhentai = NHentaiConnector(self._session, mirror_site=self.config.nhentai_mirror_site)

        self._sources: Dict[str, BaseConnector] = {
            c.id: c for c in (self.saucenao, self.ascii2d, self.nhentai)
        }

        if not self.config.saucenao_api_key:
            self._log("⚠️ SAUCENAO_API_KEY is not set; SauceNAO requests go out without a key")

    # =========================================================================
    # SOURCE ACCESS
    # =========================================================================

    @property
    def sources(self) -> Dict[str, BaseConnector]:
        return self._sources

    def get_source(self, source_id: str) -> Optional[BaseConnector]:
        return self._sources.get(source_id)

    def _log(self, msg: str) -> None:
        source_log(msg)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def saucenao_search(self, spec: ImageSpec, db: Optional[str] = "all") -> Dict[str, Any]:
        """SauceNAO lookup. No retry; failures propagate."""
        database = DatabaseSelector.resolve(db)

        with self.resolver.materialize(spec) as image:
            raw = self.saucenao.search(ImageQuery(image=image, database=database))
            results = self.saucenao.extract(raw)

        formatted = format_similarity_results(results)
        return {"text": formatted.text, **formatted.structured}

    def ascii2d_search(self, spec: ImageSpec) -> Dict[str, Any]:
        """ascii2d color + feature lookup on the next mirror."""
        with self.resolver.materialize(spec) as image:
            color, feature = self.ascii2d.search_color_and_feature(ImageQuery(image=image))

        formatted = format_ascii2d(color, feature)
        return {"text": formatted.text, **formatted.structured}

    def nhentai_search(self, name: str) -> Dict[str, Any]:
        """nhentai lookup through the API-then-website cascade."""
        name = (name or "").strip()
        if not name:
            raise InvalidInput("Name parameter is required for nhentai search.")

        cascade = self.build_nhentai_cascade(name)
        result = cascade.run()

        formatted = format_catalog(name, result)
        return {"text": formatted.text, **formatted.structured}

    def build_nhentai_cascade(self, name: str) -> Cascade:
        nh = self.nhentai
        refined, raw = nh.query(name, refined=True), nh.query(name, refined=False)

        attempts = [
            ("api:refined", lambda: nh.search_api(refined)),
            ("api:raw", lambda: nh.search_api(raw)),
        ]
        if nh.mirror_site:
            attempts += [
                ("website:refined", lambda: nh.search_website(refined)),
                ("website:raw", lambda: nh.search_website(raw)),
            ]
        return Cascade("nhentai", attempts)

    # =========================================================================
    # HEALTH & STATUS
    # =========================================================================

    def get_health_report(self) -> Dict[str, Any]:
        return {
            "sources": [s.get_health_info() for s in self._sources.values()],
            "available_count": sum(1 for s in self._sources.values() if s.is_available),
            "total_count": len(self._sources),
            "ascii2d_hosts": self.rotator.hosts,
        }

    def reset_source(self, source_id: str) -> bool:
        source = self._sources.get(source_id)
        if source:
            source.reset()
            return True
        return False

    def close(self) -> None:
        close = getattr(self._session, "close", None)
        if close:
            close()


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_manager: Optional[SearchManager] = None
_manager_lock = threading.Lock()


def get_search_manager() -> SearchManager:
    """Get or create the global SearchManager instance."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = SearchManager()
    return _manager


def set_search_manager(manager: Optional[SearchManager]) -> None:
    """Replace the global instance (app factory and tests)."""
    global _manager
    with _manager_lock:
        _manager = manager


__all__ = [
    "SearchManager", "SearchConfig", "ImageSpec", "SearchError",
    "get_search_manager", "set_search_manager",
]
