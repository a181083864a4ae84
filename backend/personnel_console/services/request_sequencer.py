"""Request tokens for discarding out-of-order responses."""

from __future__ import annotations

import itertools


class RequestSequencer:
    """Issues monotonically increasing tokens; only the latest one is current."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest = 0

    def issue(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def invalidate(self) -> None:
        """Make every token issued so far stale."""
        self._latest = next(self._counter)

    @property
    def latest(self) -> int:
        return self._latest
