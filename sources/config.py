"""Environment-driven settings for the search backends."""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .host_rotator import parse_hosts


DEFAULT_SAUCENAO_HOST = "saucenao.com"
DEFAULT_ASCII2D_HOSTS = ["https://ascii2d.net"]


@dataclass
class SearchConfig:
    saucenao_api_key: Optional[str] = None
    saucenao_host: str = DEFAULT_SAUCENAO_HOST
    ascii2d_hosts: List[str] = field(default_factory=lambda: list(DEFAULT_ASCII2D_HOSTS))
    nhentai_mirror_site: Optional[str] = None
    image_cache_dir: Optional[str] = None
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SearchConfig":
        env = os.environ if environ is None else environ

        timeout = None
        raw_timeout = (env.get("SEARCH_TIMEOUT") or "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                timeout = None

        return cls(
            saucenao_api_key=(env.get("SAUCENAO_API_KEY") or "").strip() or None,
            saucenao_host=(env.get("SAUCENAO_HOST") or "").strip() or DEFAULT_SAUCENAO_HOST,
            ascii2d_hosts=parse_hosts(env.get("ASCII2D_HOSTS", "")) or list(DEFAULT_ASCII2D_HOSTS),
            nhentai_mirror_site=(env.get("NHENTAI_MIRROR_SITE") or "").strip() or None,
            image_cache_dir=(env.get("IMAGE_CACHE_DIR") or "").strip() or None,
            timeout=timeout,
        )
