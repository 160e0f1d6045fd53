import os
import random
from typing import Optional, Dict

import requests
import cloudscraper
from curl_cffi import requests as curl_requests


class SmartSession:
    """Requests-compatible session with Cloudflare-aware fallbacks.

    ascii2d.net and nhentai sit behind Cloudflare. A plain requests call is
    tried first; when the answer looks like a challenge page the same request
    is replayed through curl_cffi (browser TLS fingerprint) and then
    cloudscraper. Redirects are always followed so callers can inspect the
    final ``response.url``.
    """

    def __init__(self, timeout: Optional[float] = None):
        # No default timeout: callers apply their own policy.
        self._timeout = timeout
        self._fallback_enabled = os.environ.get("SCRAPER_CLOUDFLARE_FALLBACK", "1").lower() in {"1", "true", "yes", "on"}
        self._session = requests.Session()
        self._session.headers.update({
            "Accept": "application/json, text/html, */*",
            "Accept-Language": "en-US,en;q=0.9,ja;q=0.8",
        })
        self._curl_session = None
        self._cloud_session = None
        self._user_agents = [
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        ]
        self._last_user_agent = random.choice(self._user_agents)

    def _get_curl_session(self):
        if self._curl_session is None:
            self._curl_session = curl_requests.Session(impersonate="chrome120")
        return self._curl_session

    def _get_cloud_session(self):
        if self._cloud_session is None:
            self._cloud_session = cloudscraper.create_scraper()
        return self._cloud_session

    def _merge_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = dict(self._session.headers)
        if headers:
            merged.update(headers)
        if not any(k.lower() == "user-agent" for k in merged.keys()):
            merged["User-Agent"] = self._last_user_agent
        return merged

    def _looks_like_cloudflare(self, response) -> bool:
        try:
            server = (response.headers.get("server") or "").lower()
            if response.status_code in (403, 503) and "cloudflare" in server:
                return True
            if "cf-mitigated" in response.headers:
                return True
            text = (response.text or "").lower()
            if "cloudflare" in text and "attention required" in text:
                return True
            if "just a moment" in text and "challenge-platform" in text:
                return True
        except Exception:
            return False
        return False

    def _should_fallback(self, response) -> bool:
        if not self._fallback_enabled or response is None:
            return False
        return self._looks_like_cloudflare(response)

    def _fallback_request(self, method: str, url: str, **kwargs):
        sessions = []
        # curl_cffi has no requests-style ``files`` support
        if "files" not in kwargs:
            sessions.append(self._get_curl_session)
        sessions.append(self._get_cloud_session)

        last_error = None
        for factory in sessions:
            try:
                response = factory().request(method, url, **kwargs)
            except Exception as exc:
                last_error = exc
                continue
            if not self._looks_like_cloudflare(response):
                return response
        if last_error:
            raise last_error
        return None

    def request(self, method: str, url: str, cloudflare_fallback: bool = True, **kwargs):
        """Send through requests; replay a Cloudflare challenge unless cloudflare_fallback is False."""
        headers = self._merge_headers(kwargs.pop("headers", None))
        kwargs["headers"] = headers
        kwargs.setdefault("allow_redirects", True)
        if self._timeout is not None:
            kwargs.setdefault("timeout", self._timeout)

        response = self._session.request(method, url, **kwargs)

        if cloudflare_fallback and self._should_fallback(response):
            try:
                fallback = self._fallback_request(method, url, **kwargs)
            except Exception:
                fallback = None
            if fallback is not None:
                response = fallback

        return response

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        for session in (self._session, self._curl_session, self._cloud_session):
            if session is None:
                continue
            try:
                session.close()
            except Exception:
                pass
