"""
Round-robin selection over mirror hosts.

ascii2d runs several mirrors with identical HTML. Each search picks the
next host in turn; a failing host is not retried within the same call, the
next call simply lands on the next mirror.

Usage:
    rotator = HostRotator(["https://ascii2d.net", "ascii2d.obfs.dev"])
    host = normalize_host(rotator.next_host())
"""

import re
import threading
from typing import List, Sequence

DEFAULT_SCHEME = "https://"

_SCHEME_RE = re.compile(r'^https?://', re.IGNORECASE)


def normalize_host(host: str) -> str:
    """Prefix the default secure scheme when the host has none."""
    host = host.strip()
    if not _SCHEME_RE.match(host):
        host = f"{DEFAULT_SCHEME}{host}"
    return host.rstrip("/")


def parse_hosts(raw: str) -> List[str]:
    """Split a comma-separated host list, dropping blanks."""
    return [entry.strip() for entry in (raw or "").split(",") if entry.strip()]


class HostRotator:
    """
    Process-wide round-robin cursor over a fixed host list.

    The cursor is read and advanced under a lock so concurrent callers never
    see a torn value. It lives only as long as the process.
    """

    def __init__(self, hosts: Sequence[str]):
        hosts = list(hosts)
        if not hosts:
            raise ValueError("HostRotator needs at least one host")
        self._hosts = hosts
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def hosts(self) -> List[str]:
        return list(self._hosts)

    def next_host(self) -> str:
        """Return hosts[cursor mod n] and advance the cursor."""
        with self._lock:
            host = self._hosts[self._cursor % len(self._hosts)]
            self._cursor = (self._cursor + 1) % len(self._hosts)
        return host

    def __repr__(self) -> str:
        return f"<HostRotator hosts={len(self._hosts)} cursor={self._cursor}>"
