"""
Ordered fallback over alternative attempts.

Each attempt is a (label, callable) pair. Callables return a result or None
for "nothing here"; the first non-empty result wins and later attempts are
never called.

    cascade = Cascade("nhentai", [
        ("api:refined", lambda: api(refined)),
        ("api:raw", lambda: api(raw)),
    ])
    result = cascade.run()
    cascade.tried  # ["api:refined"] if the first attempt hit
"""

from typing import Any, Callable, List, Optional, Sequence, Tuple

from .base import SearchError, source_log


Attempt = Tuple[str, Callable[[], Any]]


class Cascade:
    """Runs attempts in order, short-circuiting on the first hit."""

    def __init__(self, name: str, attempts: Sequence[Attempt]):
        self.name = name
        self.attempts: List[Attempt] = list(attempts)
        self.tried: List[str] = []
        self.errors: List[Tuple[str, SearchError]] = []

    def run(self) -> Optional[Any]:
        """
        Evaluate attempts until one returns a non-empty result.

        A SearchError from an attempt counts as "no result" and the next
        attempt runs. If every attempt came back empty and at least one of
        them failed, the last failure is raised; otherwise None.
        """
        self.tried = []
        self.errors = []

        for label, attempt in self.attempts:
            self.tried.append(label)
            try:
                result = attempt()
            except SearchError as exc:
                source_log(f"⚠️ {self.name} {label} failed: {exc}")
                self.errors.append((label, exc))
                continue

            if result is not None and result != []:
                source_log(f"✅ {self.name} hit on {label}")
                return result

        if self.errors:
            source_log(f"❌ All {self.name} attempts failed")
            raise self.errors[-1][1]
        return None
