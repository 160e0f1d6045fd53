"""
================================================================================
SauceSearch v1.0 - ascii2d Connector
================================================================================
ascii2d has no API, so both of its result pages are scraped.

TWO-STAGE SEARCH:
  1. Submit the image to /search/url/<url> or /search/file. ascii2d redirects
     to /search/color/<hash>; anything else means the search failed.
  2. Swap /color/ for /bovw/ in that address and fetch the feature page.
  Stage 2 depends on stage 1's final URL, so the two never run in parallel.

MIRRORS:
  One host is picked per call from the shared HostRotator. A dead mirror is
  not retried within the call; the next call moves on to the next mirror.
================================================================================
"""

from typing import List, Optional, Tuple

from .base import (
    BaseConnector, DetailRecord, ImageQuery, LocalMaterialized,
    NormalizedResult, RawProviderResponse, RemoteUrl, InvalidInput,
    UnexpectedResponseShape, UpstreamRequestFailed
)
from .extractors import extract_detail
from .host_rotator import HostRotator, normalize_host


COLOR_SEGMENT = "/color/"
FEATURE_SEGMENT = "/bovw/"


class Ascii2dConnector(BaseConnector):
    """ascii2d color + feature (bovw) scraper."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    id = "ascii2d"
    name = "ascii2d"
    base_url = "https://ascii2d.net"
    icon = "🎨"

    requires_cloudflare = True

    def __init__(self, session=None, rotator: Optional[HostRotator] = None):
        super().__init__(session)
        self.rotator = rotator or HostRotator([self.base_url])

    def _html_headers(self):
        return self._headers("text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8")

    def _to_raw(self, response, host: str) -> RawProviderResponse:
        return RawProviderResponse(
            payload=response.text,
            host=host,
            status=response.status_code,
            url=str(response.url),
        )

    # =========================================================================
    # PUBLIC API METHODS
    # =========================================================================

    def search(self, query: ImageQuery) -> RawProviderResponse:
        """Stage 1: submit the image and return the color result page."""
        host = normalize_host(self.rotator.next_host())
        image = query.image

        self._log(f"🔍 Searching ascii2d via {host}")

        if isinstance(image, RemoteUrl):
            response = self._send("GET", f"{host}/search/url/{image.url}", headers=self._html_headers())
        elif isinstance(image, LocalMaterialized):
            files = {"file": ("image", image.read_bytes())}
            response = self._send("POST", f"{host}/search/file", files=files, headers=self._html_headers())
        else:
            raise InvalidInput("Invalid image input for ascii2d: URL or local path required.")

        raw = self._to_raw(response, host)
        if COLOR_SEGMENT not in raw.url:
            self._log(f"❌ ascii2d: unexpected result address {raw.url} (HTTP {raw.status})")
            self._log(f"   page head: {(raw.payload or '')[:300]!r}")
            self._handle_error("no color result URL")
            raise UnexpectedResponseShape("ascii2d search failed to return color URL.")
        return raw

    def fetch_feature(self, color: RawProviderResponse) -> RawProviderResponse:
        """Stage 2: fetch the bovw page matching a color result page."""
        feature_url = color.url.replace(COLOR_SEGMENT, FEATURE_SEGMENT)
        response = self._send("GET", feature_url, headers=self._html_headers())
        return self._to_raw(response, color.host)

    def extract_detail(self, raw: RawProviderResponse) -> Optional[DetailRecord]:
        detail = extract_detail(raw.payload, raw.host)
        if detail is None:
            self._log(f"   page: {raw.url} (HTTP {raw.status})")
        return detail

    def extract(self, raw: RawProviderResponse) -> List[NormalizedResult]:
        detail = self.extract_detail(raw)
        return [detail.to_result()] if detail else []

    def search_color_and_feature(
        self,
        query: ImageQuery
    ) -> Tuple[Optional[DetailRecord], Optional[DetailRecord]]:
        """
        Run both stages against one host.

        A color-stage failure propagates. A feature-stage transport failure
        is logged and reported as a missing feature record so the color
        result still reaches the caller.
        """
        color_raw = self.search(query)
        color = self.extract_detail(color_raw)

        try:
            feature_raw = self.fetch_feature(color_raw)
        except UpstreamRequestFailed as exc:
            self._log(f"⚠️ ascii2d feature search failed: {exc}")
            return color, None

        return color, self.extract_detail(feature_raw)
