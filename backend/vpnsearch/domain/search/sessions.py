"""Per-user search engines sharing one catalog snapshot."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Iterable, Optional

from vpnsearch.domain.catalog import models as catalog
from vpnsearch.domain.catalog.indexing import build_index
from vpnsearch.domain.catalog.partnerships import PartnershipsRepository, PartnershipsSnapshot
from vpnsearch.domain.search import policy
from vpnsearch.domain.search.recents import (
	MemoryRecentsBackend,
	RecentsBackend,
	RecentsStore,
	RedisRecentsBackend,
)
from vpnsearch.domain.search.service import SearchEngine
from vpnsearch.obs import metrics as obs_metrics
from vpnsearch.settings import settings

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str], RecentsBackend]


class SearchSessions:
	"""Registry of one `SearchEngine` per owner.

	Server list updates rebuild the index once and hand the same snapshot to every
	engine; a partnership refresh does the same for the partner lookup. Engines
	not fetched for `idle_seconds` are closed by `reap_idle`; recents survive in
	their backend and the next `get` starts a fresh engine.
	"""

	def __init__(
		self,
		*,
		backend_factory: Optional[BackendFactory] = None,
		partnerships: Optional[PartnershipsRepository] = None,
		debounce_seconds: Optional[float] = None,
		idle_seconds: Optional[float] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self._lock = asyncio.Lock()
		self._engines: Dict[str, SearchEngine] = {}
		self._last_used: Dict[str, float] = {}
		self._memory_backends: Dict[str, MemoryRecentsBackend] = {}
		self._backend_factory = backend_factory or self._default_backend
		self._debounce_seconds = debounce_seconds
		self._idle_seconds = idle_seconds
		self._clock = clock
		self._catalog = catalog.CatalogSnapshot()
		self._partnerships = partnerships or PartnershipsRepository()
		self._unsubscribe = self._partnerships.subscribe(self._on_partnerships)

	@property
	def catalog(self) -> catalog.CatalogSnapshot:
		return self._catalog

	@property
	def partnerships(self) -> PartnershipsRepository:
		return self._partnerships

	@property
	def idle_seconds(self) -> float:
		if self._idle_seconds is not None:
			return self._idle_seconds
		return float(settings.search_session_idle_seconds)

	def __len__(self) -> int:
		return len(self._engines)

	def _default_backend(self, owner: str) -> RecentsBackend:
		if settings.search_recents_backend == "memory":
			return self._memory_backends.setdefault(owner, MemoryRecentsBackend())
		return RedisRecentsBackend(owner)

	async def get(self, owner: str) -> SearchEngine:
		"""Return the owner's engine, creating and starting it on first use."""

		async with self._lock:
			self._last_used[owner] = self._clock()
			engine = self._engines.get(owner)
			if engine is not None and not engine.closed:
				return engine
			engine = SearchEngine(
				RecentsStore(self._backend_factory(owner)),
				catalog_snapshot=self._catalog,
				debounce_seconds=self._debounce_seconds,
				owner=owner,
			)
			self._engines[owner] = engine
		await engine.start()
		obs_metrics.inc_search_session("opened")
		return engine

	async def close(self, owner: str) -> bool:
		async with self._lock:
			engine = self._engines.pop(owner, None)
			self._last_used.pop(owner, None)
		if engine is None:
			return False
		await engine.close()
		obs_metrics.inc_search_session("closed")
		return True

	async def reap_idle(self) -> int:
		"""Close engines whose owner has not fetched them within `idle_seconds`."""

		idle = self.idle_seconds
		if idle <= 0:
			return 0
		now = self._clock()
		async with self._lock:
			expired = [owner for owner, used in self._last_used.items() if now - used > idle]
			engines = [self._engines.pop(owner) for owner in expired if owner in self._engines]
			for owner in expired:
				self._last_used.pop(owner, None)
		for engine in engines:
			await engine.close()
			obs_metrics.inc_search_session("expired")
		if engines:
			logger.info("expired idle search sessions", extra={"sessions": len(engines)})
		return len(engines)

	async def shutdown(self) -> None:
		"""Close every engine (application shutdown/tests)."""

		async with self._lock:
			engines = list(self._engines.values())
			self._engines.clear()
			self._last_used.clear()
		for engine in engines:
			await engine.close()
			obs_metrics.inc_search_session("closed")
		self._unsubscribe()

	async def update_servers(self, servers: Iterable[catalog.Server]) -> catalog.LocationIndex:
		index = build_index(servers)
		async with self._lock:
			self._catalog = catalog.CatalogSnapshot(index=index, partnerships=self._catalog.partnerships)
			snapshot = self._catalog
		logger.info("server catalog updated", extra={"servers": len(index), "countries": len(index.countries)})
		await self._broadcast(snapshot)
		return index

	async def replace_partnerships(self, partner_types: Iterable[catalog.PartnerType]) -> PartnershipsSnapshot:
		return await self._partnerships.replace(partner_types)

	async def _on_partnerships(self, partnerships: PartnershipsSnapshot) -> None:
		async with self._lock:
			self._catalog = catalog.CatalogSnapshot(index=self._catalog.index, partnerships=partnerships)
			snapshot = self._catalog
		await self._broadcast(snapshot)

	async def _broadcast(self, snapshot: catalog.CatalogSnapshot) -> None:
		async with self._lock:
			engines = list(self._engines.values())
		for engine in engines:
			try:
				await engine.set_catalog(snapshot)
			except policy.SearchSessionClosedError:
				continue


sessions = SearchSessions()


async def reset_sessions(*, debounce_seconds: Optional[float] = None) -> SearchSessions:
	"""Replace the module registry with a fresh one (used by tests)."""

	global sessions
	await sessions.shutdown()
	sessions = SearchSessions(debounce_seconds=debounce_seconds)
	return sessions


def get_sessions() -> SearchSessions:
	return sessions


async def run_idle_sweeper(interval_s: Optional[int] = None) -> None:
	"""Periodically close search engines that went idle."""
	interval = max(1, int(interval_s if interval_s is not None else settings.search_session_sweep_interval_seconds))
	try:
		while True:
			await asyncio.sleep(interval)
			await get_sessions().reap_idle()
	except asyncio.CancelledError:
		raise
	except Exception:  # pragma: no cover
		logger.exception("search session sweeper iteration failed")
