"""
================================================================================
SauceSearch v1.0 - nhentai Connector
================================================================================
Title lookup against nhentai's gallery search.

Two surfaces:
  - JSON API  https://nhentai.net/api/galleries/search?query=...
  - Optional mirror website, scraped from /search/?q=...

Each surface is queried with the locale-qualified name first ("<name>
chinese") and then with the bare name. The attempt order itself lives in
SearchManager.nhentai_search() as a Cascade.
================================================================================
"""

from typing import Any, Dict, List, Optional

from .base import (
    BaseConnector, NormalizedResult, RawProviderResponse, TextQuery,
    UnexpectedResponseShape
)
from .extractors import extract_gallery
from .host_rotator import normalize_host


# One-letter image type codes used by the gallery API
THUMBNAIL_EXTENSIONS = {
    "j": "jpg",
    "p": "png",
    "g": "gif",
    "w": "webp",
}


class NHentaiConnector(BaseConnector):
    """nhentai API + mirror website connector."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    id = "nhentai"
    name = "nhentai"
    base_url = "https://nhentai.net"
    icon = "📕"

    requires_cloudflare = True

    API_SEARCH_PATH = "/api/galleries/search"
    GALLERY_URL = "https://nhentai.net/g/{id}/"
    THUMBNAIL_URL = "https://t.nhentai.net/galleries/{media_id}/cover.{ext}"

    def __init__(self, session=None, mirror_site: Optional[str] = None, qualifier: str = "chinese"):
        super().__init__(session)
        self.mirror_site = normalize_host(mirror_site) if mirror_site else None
        self.qualifier = qualifier

    def query(self, name: str, refined: bool) -> TextQuery:
        return TextQuery(name=name, refined=refined, qualifier=self.qualifier)

    # =========================================================================
    # JSON API
    # =========================================================================

    def search(self, query: TextQuery) -> RawProviderResponse:
        """Query the gallery search API."""
        self._log(f"🔍 Searching nhentai API: {query.text}")
        response = self._send(
            "GET",
            f"{self.base_url}{self.API_SEARCH_PATH}",
            params={"query": query.text, "page": 1},
            headers=self._headers(),
        )
        try:
            payload = response.json()
        except ValueError as exc:
            self._log(f"❌ nhentai API returned non-JSON: {response.text[:200]!r}")
            raise UnexpectedResponseShape("nhentai API returned a non-JSON response") from exc

        return RawProviderResponse(payload=payload, host=self.base_url,
                                   status=response.status_code, url=str(response.url))

    def extract(self, raw: RawProviderResponse) -> List[NormalizedResult]:
        data = raw.payload
        if not isinstance(data, dict) or not isinstance(data.get("result"), list):
            raise UnexpectedResponseShape("nhentai API response has no result list")

        results = []
        for gallery in data["result"]:
            result = self._parse_gallery(gallery)
            if result:
                results.append(result)
        return results

    def _parse_gallery(self, gallery: Dict[str, Any]) -> Optional[NormalizedResult]:
        if not isinstance(gallery, dict) or gallery.get("id") is None:
            return None

        thumb_type = ((gallery.get("images") or {}).get("thumbnail") or {}).get("t")
        ext = THUMBNAIL_EXTENSIONS.get(thumb_type, "jpg")

        try:
            index_id = int(gallery["id"])
        except (TypeError, ValueError):
            index_id = None

        return NormalizedResult(
            source_url=self.GALLERY_URL.format(id=gallery["id"]),
            thumbnail_url=self.THUMBNAIL_URL.format(media_id=gallery.get("media_id"), ext=ext),
            index_id=index_id,
        )

    def search_api(self, query: TextQuery) -> Optional[NormalizedResult]:
        """First gallery from the API, or None when the search is empty."""
        results = self.extract(self.search(query))
        return results[0] if results else None

    # =========================================================================
    # MIRROR WEBSITE
    # =========================================================================

    def search_website(self, query: TextQuery) -> Optional[NormalizedResult]:
        """First gallery from the mirror's HTML search page."""
        if not self.mirror_site:
            return None

        self._log(f"🔍 Searching nhentai mirror {self.mirror_site}: {query.text}")
        response = self._send(
            "GET",
            f"{self.mirror_site}/search/",
            params={"q": query.text},
            headers=self._headers("text/html,application/xhtml+xml,*/*;q=0.8"),
        )

        found = extract_gallery(response.text)
        if not found:
            return None

        href, thumb = found
        return NormalizedResult(
            source_url=f"{self.base_url}{href}",
            thumbnail_url=thumb,
        )
