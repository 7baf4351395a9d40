"""Incremental multi-page accumulation for search results."""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable

from .aggregation import QualityThresholds, accept_keys, filter_items, normalize_items, rank_items
from .config import Settings
from .models import CatalogItem, DedupKey, ResultPage
from .services.tmdb import FetchFailure

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str, int], Awaitable[ResultPage]]


class AccumulationStatus(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class AccumulationLimits:
    """How many results a pass aims for and how many pages it may request."""

    initial_target: int = 20
    load_more_target: int = 10
    max_pages_per_pass: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccumulationLimits":
        return cls(
            initial_target=settings.search_initial_target,
            load_more_target=settings.search_load_more_target,
            max_pages_per_pass=settings.search_max_pages_per_pass,
        )


@dataclass(slots=True)
class AccumulationState:
    """Results gathered so far for one query."""

    query: str = ""
    status: AccumulationStatus = AccumulationStatus.IDLE
    last_fetched_page: int = 0
    # Starts at one so the first page is always attempted.
    total_pages: int = 1
    results: list[CatalogItem] = field(default_factory=list)
    accepted: set[DedupKey] = field(default_factory=set)
    error: str | None = None

    @classmethod
    def fresh(cls, query: str) -> "AccumulationState":
        return cls(query=query)

    @property
    def has_more(self) -> bool:
        return (
            self.status is not AccumulationStatus.EXHAUSTED
            and self.last_fetched_page < self.total_pages
        )

    def copy(self) -> "AccumulationState":
        return replace(self, results=list(self.results), accepted=set(self.accepted))

    def to_payload(self) -> dict[str, object]:
        return {
            "query": self.query,
            "status": self.status.value,
            "results": [item.to_payload() for item in self.results],
            "error": self.error,
            "hasMore": self.has_more,
            "lastFetchedPage": self.last_fetched_page,
            "totalPages": self.total_pages,
        }


async def accumulate(
    state: AccumulationState,
    fetch: PageFetcher,
    *,
    load_more: bool = False,
    limits: AccumulationLimits | None = None,
    thresholds: QualityThresholds | None = None,
) -> AccumulationState:
    """Run one accumulation pass and return the updated state.

    A fresh pass starts over from page one; ``load_more`` resumes after the
    last fetched page. The input state is left untouched. Fetch failures stop
    the pass and are recorded on the returned state along with everything
    gathered before the failure.
    """

    limits = limits or AccumulationLimits()
    if load_more:
        if state.status is AccumulationStatus.EXHAUSTED:
            return state
        working = state.copy()
        target = limits.load_more_target
    else:
        working = AccumulationState.fresh(state.query)
        target = limits.initial_target

    if not working.query:
        working.status = AccumulationStatus.EXHAUSTED
        working.total_pages = 0
        return working

    working.error = None
    next_page = working.last_fetched_page + 1
    gathered = 0
    pages_fetched = 0

    while (
        gathered < target
        and next_page <= working.total_pages
        and pages_fetched < limits.max_pages_per_pass
    ):
        try:
            page = await fetch(working.query, next_page)
        except FetchFailure as exc:
            logger.warning(
                "Search for %r stopped at page %s: %s", working.query, next_page, exc
            )
            working.error = exc.message
            working.status = AccumulationStatus.IDLE
            return working

        working.total_pages = page.total_pages
        batch = rank_items(
            filter_items(
                normalize_items(page.results, page.category),
                working.accepted,
                thresholds,
            )
        )
        accept_keys(working.accepted, batch)
        working.results.extend(batch)
        working.last_fetched_page = next_page
        gathered += len(batch)
        next_page += 1
        pages_fetched += 1

    if next_page > working.total_pages:
        working.status = AccumulationStatus.EXHAUSTED
    else:
        working.status = AccumulationStatus.IDLE
    logger.debug(
        "Search %r gathered %s results over %s pages (%s)",
        working.query,
        gathered,
        pages_fetched,
        working.status.value,
    )
    return working


class SearchSession:
    """Owns the accumulation state for one client view.

    At most one pass runs at a time. A trigger for the current query arriving
    while a pass is in flight is dropped. A new query supersedes the in-flight
    pass, whose results are discarded when it resolves.
    """

    def __init__(
        self,
        fetch: PageFetcher,
        *,
        limits: AccumulationLimits | None = None,
        thresholds: QualityThresholds | None = None,
    ):
        self._fetch = fetch
        self._limits = limits or AccumulationLimits()
        self._thresholds = thresholds
        self._generation = 0
        self.state = AccumulationState()

    @property
    def busy(self) -> bool:
        return self.state.status is AccumulationStatus.ACCUMULATING

    async def search(self, query: str) -> AccumulationState:
        query = (query or "").strip()
        if self.busy and query == self.state.query:
            logger.debug("Dropping duplicate search trigger for %r", query)
            return self.state
        return await self._run(AccumulationState.fresh(query), load_more=False)

    async def load_more(self) -> AccumulationState:
        if self.busy:
            logger.debug("Dropping load-more while %r is in flight", self.state.query)
            return self.state
        if self.state.status is AccumulationStatus.EXHAUSTED or not self.state.query:
            return self.state
        return await self._run(self.state, load_more=True)

    def reset(self) -> None:
        """Forget the current query and ignore any in-flight pass."""

        self._generation += 1
        self.state = AccumulationState()

    async def _run(
        self, starting: AccumulationState, *, load_more: bool
    ) -> AccumulationState:
        self._generation += 1
        generation = self._generation
        self.state = starting.copy()
        self.state.status = AccumulationStatus.ACCUMULATING
        self.state.error = None

        try:
            result = await accumulate(
                starting,
                self._fetch,
                load_more=load_more,
                limits=self._limits,
                thresholds=self._thresholds,
            )
        except BaseException as exc:
            # Restore the pre-pass state so the session is not left busy.
            if generation == self._generation:
                restored = starting.copy()
                restored.status = AccumulationStatus.IDLE
                restored.error = str(exc) or exc.__class__.__name__
                self.state = restored
            logger.warning("Search pass for %r aborted: %r", starting.query, exc)
            raise
        if generation != self._generation:
            logger.debug("Discarding stale results for %r", starting.query)
            return self.state
        self.state = result
        return result


class SearchSessionRegistry:
    """Bounded map of client session ids to their search sessions."""

    def __init__(
        self,
        fetch: PageFetcher,
        *,
        limits: AccumulationLimits | None = None,
        thresholds: QualityThresholds | None = None,
        max_sessions: int = 1_000,
    ):
        self._fetch = fetch
        self._limits = limits
        self._thresholds = thresholds
        self._max_sessions = max(max_sessions, 1)
        self._sessions: OrderedDict[str, SearchSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SearchSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = SearchSession(
                self._fetch, limits=self._limits, thresholds=self._thresholds
            )
            self._sessions[session_id] = session
            while len(self._sessions) > self._max_sessions:
                evicted_id, evicted = self._sessions.popitem(last=False)
                evicted.reset()
                logger.debug("Evicted search session %s", evicted_id)
        else:
            self._sessions.move_to_end(session_id)
        return session

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.reset()
        return True
