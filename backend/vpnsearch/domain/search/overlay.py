"""Live status enrichment for matches: connection, entitlement, maintenance, partners."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from vpnsearch.domain.catalog import models as catalog
from vpnsearch.domain.search import models, policy, ranking


@dataclass(frozen=True, slots=True)
class ConnectedIdentity:
	server_id: str
	country_code: str
	city_key: Optional[tuple[str, str]]


def resolve_connection(
	status: Optional[models.ConnectionStatus],
	index: catalog.LocationIndex,
) -> Optional[ConnectedIdentity]:
	"""Map the active server onto the identities a result can be compared with."""

	if status is None or not status.is_connected:
		return None
	server = index.server(status.server_id)
	if server is None:
		return None
	return ConnectedIdentity(server.server_id, server.country_code, server.city_key())


def _is_connected(value: object, connected: Optional[ConnectedIdentity]) -> bool:
	if connected is None:
		return False
	if isinstance(value, catalog.Server):
		return value.server_id == connected.server_id
	if isinstance(value, catalog.City):
		return value.key == connected.city_key
	if isinstance(value, catalog.Country):
		return value.code == connected.country_code
	return False


def _servers_of(value: object) -> tuple[catalog.Server, ...]:
	if isinstance(value, catalog.Server):
		return (value,)
	return tuple(getattr(value, "servers", ()))


def enrich(
	match: models.Match,
	status: Optional[models.ConnectionStatus],
	tier: Optional[int],
	partnerships: Optional[Mapping[str, tuple[catalog.Partner, ...]]],
	*,
	index: catalog.LocationIndex,
) -> models.RankedResult:
	connected = resolve_connection(status, index)
	return _enrich(match, connected, tier, partnerships or {})


def _enrich(
	match: models.Match,
	connected: Optional[ConnectedIdentity],
	tier: Optional[int],
	partnerships: Mapping[str, tuple[catalog.Partner, ...]],
) -> models.RankedResult:
	value = match.value
	servers = _servers_of(value)
	partners: tuple[catalog.Partner, ...] = ()
	if isinstance(value, catalog.Server):
		partners = tuple(partnerships.get(value.server_id, ()))
	return models.RankedResult(
		match=match,
		is_online=policy.any_online(servers),
		is_connected=_is_connected(value, connected),
		is_accessible=policy.any_accessible(servers, tier),
		partnerships=partners,
	)


def enrich_all(
	matches: models.MatchSet,
	status: Optional[models.ConnectionStatus],
	tier: Optional[int],
	partnerships: Optional[Mapping[str, tuple[catalog.Partner, ...]]],
	*,
	index: catalog.LocationIndex,
) -> tuple[
	tuple[models.RankedResult[catalog.Country], ...],
	tuple[models.RankedResult[catalog.City], ...],
	tuple[models.RankedResult[catalog.Server], ...],
]:
	"""Enrich a match set; accessible results move ahead of the matcher's ordering."""

	connected = resolve_connection(status, index)
	lookup = partnerships or {}

	def _ranked(items):
		return tuple(ranking.accessible_first(_enrich(item, connected, tier, lookup) for item in items))

	return _ranked(matches.countries), _ranked(matches.cities), _ranked(matches.servers)
