"""Bounded, deduplicated history of committed search queries."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Callable, Optional, Protocol, Sequence

from vpnsearch.domain.search import models
from vpnsearch.infra.redis import redis_client
from vpnsearch.obs import metrics as obs_metrics
from vpnsearch.settings import settings

logger = logging.getLogger(__name__)

RECENTS_KEY_PREFIX = "search:recents"


def normalize_query(query: str) -> str:
	"""Identity key for recents: case-folded with whitespace collapsed."""

	return " ".join((query or "").casefold().split())


class RecentsBackend(Protocol):
	async def load(self) -> list[str]: ...

	async def save(self, queries: Sequence[str]) -> None: ...


class MemoryRecentsBackend:
	"""Process-local backend; also used by tests to simulate storage outages."""

	def __init__(self, queries: Optional[Sequence[str]] = None) -> None:
		self.queries: list[str] = list(queries or [])

	async def load(self) -> list[str]:
		return list(self.queries)

	async def save(self, queries: Sequence[str]) -> None:
		self.queries = list(queries)


class RedisRecentsBackend:
	"""Stores the ordered query list as a JSON array under one key per owner."""

	def __init__(self, owner: str, *, client=redis_client, key_prefix: str = RECENTS_KEY_PREFIX) -> None:
		self._client = client
		self.key = f"{key_prefix}:{owner}"

	async def load(self) -> list[str]:
		raw = await self._client.get(self.key)
		if not raw:
			return []
		data = json.loads(raw)
		if not isinstance(data, list):
			raise ValueError(f"unexpected recents payload under {self.key}")
		return [str(item) for item in data if isinstance(item, str)]

	async def save(self, queries: Sequence[str]) -> None:
		await self._client.set(self.key, json.dumps(list(queries), separators=(",", ":")))


class RecentsStore:
	"""In-memory recents list, authoritative for the session.

	The backend is read once, lazily, and written after every mutation. Backend
	failures are logged and counted but never raised to callers.
	"""

	def __init__(
		self,
		backend: Optional[RecentsBackend] = None,
		*,
		max_entries: Optional[int] = None,
		clock: Callable[[], float] = time.time,
	) -> None:
		self._backend: RecentsBackend = backend if backend is not None else MemoryRecentsBackend()
		self._max_entries = max(1, int(max_entries if max_entries is not None else settings.search_recents_max_entries))
		self._clock = clock
		self._entries: list[models.RecentEntry] = []
		self._loaded = False
		self._lock = asyncio.Lock()

	@property
	def max_entries(self) -> int:
		return self._max_entries

	def entries(self) -> tuple[models.RecentEntry, ...]:
		return tuple(self._entries)

	def queries(self) -> list[str]:
		"""Committed queries, most recent first."""

		return [entry.query for entry in self._entries]

	def __len__(self) -> int:
		return len(self._entries)

	async def load(self) -> list[str]:
		async with self._lock:
			await self._ensure_loaded()
			return self.queries()

	async def commit(self, query: str) -> bool:
		"""Insert `query` at the front, or move an existing equivalent entry there.

		Returns False for blank input, which is never stored.
		"""

		text = (query or "").strip()
		key = normalize_query(text)
		if not key:
			return False
		async with self._lock:
			await self._ensure_loaded()
			now = self._clock()
			if self._entries and now <= self._entries[0].last_used_at:
				now = self._entries[0].last_used_at + 1e-6
			remaining = [entry for entry in self._entries if normalize_query(entry.query) != key]
			remaining.insert(0, models.RecentEntry(query=text, last_used_at=now))
			evicted = len(remaining) - self._max_entries
			if evicted > 0:
				logger.debug("evicting %d least recently used recents", evicted)
			self._entries = remaining[: self._max_entries]
			await self._persist()
			return True

	async def remove(self, query: str) -> bool:
		key = normalize_query(query)
		async with self._lock:
			await self._ensure_loaded()
			remaining = [entry for entry in self._entries if normalize_query(entry.query) != key]
			if len(remaining) == len(self._entries):
				return False
			self._entries = remaining
			await self._persist()
			return True

	async def clear(self) -> bool:
		async with self._lock:
			await self._ensure_loaded()
			had_entries = bool(self._entries)
			self._entries = []
			await self._persist()
			return had_entries

	async def _ensure_loaded(self) -> None:
		if self._loaded:
			return
		self._loaded = True
		try:
			stored = await self._backend.load()
		except Exception:
			obs_metrics.inc_recents_storage_failure("load")
			logger.warning("recents backend load failed; starting empty", exc_info=True)
			return
		entries: list[models.RecentEntry] = []
		seen: set[str] = set()
		now = self._clock()
		for position, query in enumerate(stored):
			text = (query or "").strip()
			key = normalize_query(text)
			if not key or key in seen:
				continue
			seen.add(key)
			# Stored order is authoritative; timestamps only need to preserve it.
			entries.append(models.RecentEntry(query=text, last_used_at=now - position * 1e-3))
		self._entries = entries[: self._max_entries]

	async def _persist(self) -> None:
		try:
			await self._backend.save(self.queries())
		except Exception:
			obs_metrics.inc_recents_storage_failure("save")
			logger.warning("recents backend save failed; keeping in-memory list", exc_info=True)
