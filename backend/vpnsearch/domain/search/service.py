"""Search view-state machine: query input, live catalog state and recents in one view."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Callable, Mapping, Optional

from vpnsearch.domain.catalog import models as catalog
from vpnsearch.domain.catalog.partnerships import EMPTY_SNAPSHOT
from vpnsearch.domain.search import matching, models, overlay, policy
from vpnsearch.domain.search.recents import RecentsStore, normalize_query
from vpnsearch.obs import metrics as obs_metrics
from vpnsearch.settings import settings

logger = logging.getLogger(__name__)

ViewStateListener = Callable[[models.ViewState], None]


class SearchEngine:
	"""Derives exactly one `ViewState` from the latest snapshot of every input.

	All commands and upstream feeds run through a single lock, so states are
	published in call order. Publishing is distinct-until-changed.

	Typed queries reach the recents store through a debounce: every non-empty
	`set_query` supersedes the pending timer, and a timer only commits while its
	generation token is still the current one.
	"""

	def __init__(
		self,
		recents: Optional[RecentsStore] = None,
		*,
		catalog_snapshot: Optional[catalog.CatalogSnapshot] = None,
		connection: Optional[models.ConnectionStatus] = None,
		tier: Optional[int] = None,
		debounce_seconds: Optional[float] = None,
		owner: str = "local",
	) -> None:
		snapshot = catalog_snapshot or catalog.CatalogSnapshot()
		self._recents = recents if recents is not None else RecentsStore()
		self._index: catalog.LocationIndex = snapshot.index
		self._partnerships: Mapping[str, tuple[catalog.Partner, ...]] = snapshot.partnerships or EMPTY_SNAPSHOT
		self._connection = connection or models.ConnectionStatus.disconnected()
		self._tier = policy.normalise_tier(tier)
		self._debounce_seconds = max(
			0.0,
			float(debounce_seconds if debounce_seconds is not None else settings.search_recents_debounce_seconds),
		)
		self._owner = owner
		self._lock = asyncio.Lock()
		self._query = ""
		self._state: models.ViewState = models.Empty()
		self._listeners: list[ViewStateListener] = []
		self._debounce_task: Optional[asyncio.Task] = None
		self._debounce_token = 0
		self._pending_query: Optional[str] = None
		self._committed_query: Optional[str] = None
		self._closed = False

	# ------------------------------------------------------------------
	# Observation
	# ------------------------------------------------------------------

	@property
	def view_state(self) -> models.ViewState:
		return self._state

	@property
	def query(self) -> str:
		return self._query

	@property
	def recents(self) -> RecentsStore:
		return self._recents

	@property
	def debounce_seconds(self) -> float:
		return self._debounce_seconds

	@property
	def pending_commit(self) -> Optional[str]:
		return self._pending_query

	@property
	def closed(self) -> bool:
		return self._closed

	def subscribe(self, listener: ViewStateListener, *, replay: bool = True) -> Callable[[], None]:
		"""Register `listener` for every published state; returns an unsubscribe callable."""

		self._listeners.append(listener)
		if replay:
			listener(self._state)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	async def start(self) -> models.ViewState:
		"""Hydrate recents and publish the initial state."""

		async with self._lock:
			self._ensure_open()
			await self._recents.load()
			self._publish(self._derive())
			return self._state

	async def close(self) -> None:
		"""Cancel any pending commit without running it."""

		async with self._lock:
			if self._closed:
				return
			self._closed = True
			task = self._debounce_task
			self._cancel_debounce()
			self._listeners.clear()
		if task is not None:
			with suppress(asyncio.CancelledError):
				await task

	# ------------------------------------------------------------------
	# Commands
	# ------------------------------------------------------------------

	async def set_query(self, query: str) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			previous = self._query
			self._query = query or ""
			self._cancel_debounce()
			if self._has_query():
				self._committed_query = None
				self._arm_debounce(self._query)
				self._count_query()
				self._publish(self._search_results())
			else:
				if normalize_query(previous) and normalize_query(previous) != normalize_query(self._committed_query or ""):
					self._arm_debounce(previous)
				self._publish(self._history_state())
			return self._state

	async def set_query_from_recents(self, query: str) -> models.ViewState:
		"""Replay a recent query: it is committed at once and shown as results."""

		async with self._lock:
			self._ensure_open()
			self._cancel_debounce()
			self._query = query or ""
			if not self._has_query():
				self._publish(self._history_state())
				return self._state
			self._count_query()
			await self._commit(self._query, source="recents")
			self._publish(self._search_results())
			return self._state

	async def clear_recent_history(self) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			if not self._has_query():
				self._cancel_debounce()
			await self._recents.clear()
			self._committed_query = None
			logger.info("search recents cleared", extra={"owner": self._owner})
			if not self._has_query():
				self._publish(self._history_state())
			return self._state

	async def remove_recent(self, query: str) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			key = normalize_query(query)
			if not self._has_query() and self._pending_query is not None and normalize_query(self._pending_query) == key:
				self._cancel_debounce()
			await self._recents.remove(query)
			if not self._has_query():
				self._publish(self._history_state())
			return self._state

	# ------------------------------------------------------------------
	# Upstream snapshots (last value wins)
	# ------------------------------------------------------------------

	async def set_catalog(self, snapshot: catalog.CatalogSnapshot) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			self._index = snapshot.index
			self._partnerships = snapshot.partnerships or EMPTY_SNAPSHOT
			return self._refresh_results()

	async def set_partnerships(self, partnerships: Mapping[str, tuple[catalog.Partner, ...]]) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			self._partnerships = partnerships or EMPTY_SNAPSHOT
			return self._refresh_results()

	async def set_connection_status(self, status: Optional[models.ConnectionStatus]) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			self._connection = status or models.ConnectionStatus.disconnected()
			return self._refresh_results()

	async def set_user_tier(self, tier: Optional[int]) -> models.ViewState:
		async with self._lock:
			self._ensure_open()
			self._tier = policy.normalise_tier(tier)
			return self._refresh_results()

	# ------------------------------------------------------------------
	# Internals (callers hold the lock)
	# ------------------------------------------------------------------

	def _ensure_open(self) -> None:
		if self._closed:
			raise policy.SearchSessionClosedError()

	def _has_query(self) -> bool:
		return bool(self._query.strip())

	def _derive(self) -> models.ViewState:
		if self._has_query():
			return self._search_results()
		return self._history_state()

	def _history_state(self) -> models.ViewState:
		queries = self._recents.queries()
		if not queries:
			return models.Empty()
		return models.SearchHistory(queries=tuple(queries))

	def _search_results(self) -> models.SearchResults:
		matches = matching.match(self._query, self._index, self._partnerships)
		countries, cities, servers = overlay.enrich_all(
			matches,
			self._connection,
			self._tier,
			self._partnerships,
			index=self._index,
		)
		obs_metrics.observe_search_results(len(countries), len(cities), len(servers))
		return models.SearchResults(query=self._query, countries=countries, cities=cities, servers=servers)

	def _count_query(self) -> None:
		parsed = matching.parse_query(self._query)
		obs_metrics.inc_search_query(partner_only=parsed.partner_only)

	def _refresh_results(self) -> models.ViewState:
		if self._has_query():
			self._publish(self._search_results())
		return self._state

	def _publish(self, state: models.ViewState) -> None:
		if state == self._state:
			return
		self._state = state
		for listener in list(self._listeners):
			try:
				listener(state)
			except Exception:
				logger.exception("view state listener failed", extra={"owner": self._owner})

	async def _commit(self, query: str, *, source: str) -> None:
		stored = await self._recents.commit(query)
		obs_metrics.inc_recents_commit(source, "stored" if stored else "ignored")
		logger.debug("recents commit", extra={"owner": self._owner, "source": source, "stored": stored, "query": query})
		if stored:
			self._committed_query = query
		if not self._has_query():
			self._publish(self._history_state())

	def _arm_debounce(self, query: str) -> None:
		self._debounce_token += 1
		token = self._debounce_token
		self._pending_query = query
		self._debounce_task = asyncio.create_task(
			self._debounce_commit(token, query),
			name=f"search-recents-debounce:{self._owner}",
		)

	def _cancel_debounce(self) -> None:
		self._debounce_token += 1
		self._pending_query = None
		task = self._debounce_task
		self._debounce_task = None
		if task is not None and not task.done():
			task.cancel()

	async def _debounce_commit(self, token: int, query: str) -> None:
		try:
			await asyncio.sleep(self._debounce_seconds)
			async with self._lock:
				if token != self._debounce_token or self._closed:
					return
				self._debounce_task = None
				self._pending_query = None
				await self._commit(query, source="debounce")
		except asyncio.CancelledError:
			raise
		except Exception:  # pragma: no cover
			logger.exception("debounced recents commit failed", extra={"owner": self._owner})


__all__ = ["SearchEngine", "ViewStateListener"]
