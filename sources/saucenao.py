"""
================================================================================
SauceSearch v1.0 - SauceNAO Connector
================================================================================
SauceNAO JSON API connector (output_type=2).

REQUEST:
  - Remote images go out as GET ?url=..., local files as multipart POST
    (field "file"). The URL wins when both would be possible.
  - "doujin" and "anime" select two sub-databases at once via dbs[].
  - numres is fixed at 3.

NO RETRY:
  A network error or non-2xx answer is raised as UpstreamRequestFailed
  straight to the caller.
================================================================================
"""

from typing import Any, Dict, List, Optional

from .base import (
    BaseConnector, ImageQuery, LocalMaterialized, NormalizedResult,
    RawProviderResponse, RemoteUrl, InvalidInput, UnexpectedResponseShape,
    parse_similarity
)
from .host_rotator import normalize_host


class SauceNAOConnector(BaseConnector):
    """SauceNAO similarity search API."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    id = "saucenao"
    name = "SauceNAO"
    base_url = "https://saucenao.com"
    icon = "🍝"

    # One request per search, even when Cloudflare answers
    cloudflare_fallback = False

    OUTPUT_TYPE = 2                  # JSON
    NUM_RESULTS = 3

    TITLE_FIELDS = ("title", "source")
    AUTHOR_FIELDS = ("member_name", "author", "artist")

    def __init__(self, session=None, host: Optional[str] = None, api_key: Optional[str] = None):
        super().__init__(session)
        if host:
            self.base_url = normalize_host(host)
        self.api_key = api_key or None

    # =========================================================================
    # REQUEST HELPERS
    # =========================================================================

    def _params(self, query: ImageQuery) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if self.api_key:
            params["api_key"] = self.api_key
        if query.database.is_pair:
            params["dbs[]"] = list(query.database.codes)
        else:
            params["db"] = query.database.codes[0]
        params["output_type"] = self.OUTPUT_TYPE
        params["numres"] = self.NUM_RESULTS
        return params

    # =========================================================================
    # PUBLIC API METHODS
    # =========================================================================

    def search(self, query: ImageQuery) -> RawProviderResponse:
        url = f"{self.base_url}/search.php"
        params = self._params(query)
        image = query.image

        self._log(f"🔍 Searching SauceNAO (db={query.database.name})")

        if isinstance(image, RemoteUrl):
            params["url"] = image.url
            response = self._send("GET", url, params=params, headers=self._headers())
        elif isinstance(image, LocalMaterialized):
            files = {"file": ("image", image.read_bytes())}
            response = self._send("POST", url, params=params, files=files, headers=self._headers())
        else:
            raise InvalidInput("Invalid image input: URL or local path required.")

        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        return RawProviderResponse(
            payload=payload,
            host=self.base_url,
            status=response.status_code,
            url=response.url,
        )

    def extract(self, raw: RawProviderResponse) -> List[NormalizedResult]:
        data = raw.payload
        if not isinstance(data, dict):
            if isinstance(data, str) and data.strip():
                self._log(f"❌ SauceNAO returned a non-JSON page: {data[:200]!r}")
                raise UnexpectedResponseShape("SauceNAO returned a non-JSON response")
            return []

        items = data.get("results") or []
        results = []
        for item in items:
            if not isinstance(item, dict):
                continue
            results.append(self._parse_item(item))

        self._log(f"✅ Found {len(results)} results")
        return results

    # =========================================================================
    # PARSING HELPERS
    # =========================================================================

    @staticmethod
    def _first(data: Dict[str, Any], fields) -> str:
        for key in fields:
            value = data.get(key)
            if value:
                return str(value)
        return ""

    def _parse_item(self, item: Dict[str, Any]) -> NormalizedResult:
        header = item.get("header") or {}
        data = item.get("data") or {}
        ext_urls = data.get("ext_urls") or []

        index_id = header.get("index_id")
        try:
            index_id = int(index_id) if index_id is not None else None
        except (TypeError, ValueError):
            index_id = None

        return NormalizedResult(
            similarity=parse_similarity(header.get("similarity")),
            title=self._first(data, self.TITLE_FIELDS),
            author=self._first(data, self.AUTHOR_FIELDS),
            source_url=ext_urls[0] if ext_urls else "",
            thumbnail_url=header.get("thumbnail"),
            index_id=index_id,
        )
