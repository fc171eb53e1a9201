"""Snapshot repository for server partnership metadata."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping, Optional

from vpnsearch.domain.catalog import models
from vpnsearch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

PartnershipsSnapshot = Mapping[str, tuple[models.Partner, ...]]
PartnerFetcher = Callable[[], Awaitable[Iterable[models.PartnerType]]]
SnapshotListener = Callable[[PartnershipsSnapshot], Awaitable[None]]

EMPTY_SNAPSHOT: PartnershipsSnapshot = MappingProxyType({})


def snapshot_from_types(partner_types: Iterable[models.PartnerType]) -> PartnershipsSnapshot:
	"""Invert partner descriptors into a server id -> partners lookup."""

	grouped: dict[str, list[models.Partner]] = {}
	for partner_type in partner_types:
		for partner in partner_type.partners:
			for logical_id in partner.logical_ids:
				if not logical_id:
					continue
				bucket = grouped.setdefault(logical_id, [])
				if partner not in bucket:
					bucket.append(partner)
	return MappingProxyType({server_id: tuple(partners) for server_id, partners in grouped.items()})


class PartnershipsRepository:
	"""Holds the latest partnership snapshot.

	Refreshing is always an explicit call; the repository never polls. A failed
	refresh keeps whatever snapshot was already installed.
	"""

	def __init__(self, fetcher: Optional[PartnerFetcher] = None) -> None:
		self._fetcher = fetcher
		self._snapshot: PartnershipsSnapshot = EMPTY_SNAPSHOT
		self._listeners: list[SnapshotListener] = []
		self._lock = asyncio.Lock()

	@property
	def snapshot(self) -> PartnershipsSnapshot:
		return self._snapshot

	def partners_for(self, server_id: str) -> tuple[models.Partner, ...]:
		return self._snapshot.get(server_id, ())

	def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	async def refresh(self) -> bool:
		"""Fetch partner types and install them; returns False when the fetch failed."""

		if self._fetcher is None:
			return False
		async with self._lock:
			try:
				partner_types = list(await self._fetcher())
			except Exception:
				obs_metrics.inc_partnerships_refresh("error")
				logger.warning("partnership refresh failed; keeping previous snapshot", exc_info=True)
				return False
			snapshot = snapshot_from_types(partner_types)
			self._snapshot = snapshot
			obs_metrics.inc_partnerships_refresh("ok")
		await self._notify(snapshot)
		return True

	async def replace(self, partner_types: Iterable[models.PartnerType]) -> PartnershipsSnapshot:
		async with self._lock:
			snapshot = snapshot_from_types(partner_types)
			self._snapshot = snapshot
		await self._notify(snapshot)
		return snapshot

	async def _notify(self, snapshot: PartnershipsSnapshot) -> None:
		for listener in list(self._listeners):
			await listener(snapshot)
