"""Ruleset cache with fetch coalescing (core domain)."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pushrules.core.models import Ruleset
from pushrules.core.ports import RulesetSourcePort

LOGGER = logging.getLogger(__name__)


class RulesetCache:
    """Holds the last fetched ruleset and allows at most one fetch in flight.

    State changes around a fetch (start, store, clear) happen without an
    await in between, so synchronous readers never see a half-updated cache.
    """

    def __init__(self, source: RulesetSourcePort) -> None:
        self._source = source
        self._ruleset: Optional[Ruleset] = None
        self._current = False
        self._inflight: Optional[asyncio.Task] = None

    @property
    def is_current(self) -> bool:
        return self._current

    @property
    def has_value(self) -> bool:
        return self._ruleset is not None

    def invalidate(self) -> None:
        """Mark the cache stale; the last value stays readable via get_now()."""

        self._current = False

    def get_now(self) -> Ruleset:
        """Return the last known ruleset without fetching (empty before the first fetch)."""

        if self._ruleset is None:
            return Ruleset.empty()
        return self._ruleset

    async def get(self) -> Ruleset:
        """Return a current ruleset, joining the in-flight fetch if there is one."""

        if self._current and self._ruleset is not None:
            return self._ruleset
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._fetch())
        # A cancelled waiter must not cancel the fetch other waiters share.
        return await asyncio.shield(self._inflight)

    async def _fetch(self) -> Ruleset:
        try:
            ruleset = await self._source.fetch_rules()
        except Exception:
            LOGGER.warning("Ruleset fetch failed; keeping the previous ruleset")
            raise
        else:
            self._ruleset = ruleset
            self._current = True
            LOGGER.debug("Ruleset cache refreshed")
            return ruleset
        finally:
            self._inflight = None
