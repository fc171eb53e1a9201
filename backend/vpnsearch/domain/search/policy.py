"""Entitlement guards and error types for location search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from vpnsearch.domain.catalog import models as catalog
from vpnsearch.domain.search import models

MAX_QUERY_LEN = 120


@dataclass(slots=True)
class SearchPolicyError(Exception):
	detail: str
	status_code: int = 400

	def __str__(self) -> str:  # pragma: no cover - debugging aid
		return self.detail


class SearchSessionClosedError(SearchPolicyError):
	def __init__(self) -> None:
		super().__init__(detail="session_closed", status_code=409)


def normalise_tier(tier: Optional[int]) -> models.UserTier:
	"""Map a raw plan level onto a known tier; unknown users are free users."""

	if tier is None:
		return models.UserTier.FREE
	try:
		value = int(tier)
	except (TypeError, ValueError):
		return models.UserTier.FREE
	if value <= models.UserTier.FREE:
		return models.UserTier.FREE
	if value >= models.UserTier.VISIONARY:
		return models.UserTier.VISIONARY
	return models.UserTier(value)


def server_accessible(server: catalog.Server, tier: Optional[int]) -> bool:
	return server.tier <= normalise_tier(tier)


def any_accessible(servers: Iterable[catalog.Server], tier: Optional[int]) -> bool:
	return any(server_accessible(server, tier) for server in servers)


def any_online(servers: Iterable[catalog.Server]) -> bool:
	"""True unless every server is in maintenance. An empty group counts as offline."""

	return any(server.is_online for server in servers)
