"""Location index construction from flat server list snapshots."""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterable, Optional

from vpnsearch.domain.catalog import countries, models
from vpnsearch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> str:
	return (value or "").strip()


def _normalise(server: models.Server) -> tuple[Optional[models.Server], Optional[str]]:
	"""Return the normalised server, or the reason it cannot be indexed."""

	server_id = _clean(server.server_id)
	if not server_id:
		return None, "missing_server_id"
	server_name = _clean(server.server_name)
	if not server_name:
		return None, "missing_server_name"
	country_code = _clean(server.country_code).upper()
	if not country_code:
		return None, "missing_country_code"
	try:
		tier = int(server.tier or 0)
	except (TypeError, ValueError):
		return None, "invalid_tier"
	entry_code = _clean(server.entry_country_code).upper() or country_code
	city_name = _clean(server.city_name) or None
	return (
		dataclasses.replace(
			server,
			server_id=server_id,
			server_name=server_name,
			country_code=country_code,
			entry_country_code=entry_code,
			city_name=city_name,
			tier=tier,
			is_online=bool(server.is_online),
			features=frozenset(server.features or ()),
		),
		None,
	)


def build_index(servers: Iterable[models.Server]) -> models.LocationIndex:
	"""Group a server list into countries and cities.

	Malformed records are dropped individually; the build itself never fails on them.
	The first record wins when a server id repeats.
	"""

	kept: list[models.Server] = []
	seen: set[str] = set()
	by_country: dict[str, list[models.Server]] = {}
	by_city: dict[tuple[str, str], list[models.Server]] = {}
	city_names: dict[tuple[str, str], str] = {}

	for raw in servers:
		server, reason = _normalise(raw)
		if server is None:
			obs_metrics.inc_index_skipped(reason or "unknown")
			logger.warning("skipping malformed server record", extra={"reason": reason, "server_id": raw.server_id})
			continue
		if server.server_id in seen:
			obs_metrics.inc_index_skipped("duplicate_server_id")
			logger.debug("duplicate server id %s ignored", server.server_id)
			continue
		seen.add(server.server_id)
		kept.append(server)
		by_country.setdefault(server.country_code, []).append(server)
		city_key = server.city_key()
		if city_key is not None:
			by_city.setdefault(city_key, []).append(server)
			city_names.setdefault(city_key, server.city_name or "")

	cities = [
		models.City(name=city_names[key], country_code=key[0], servers=frozenset(members))
		for key, members in by_city.items()
	]
	cities_by_country: dict[str, list[models.City]] = {}
	for city in cities:
		cities_by_country.setdefault(city.country_code, []).append(city)

	country_list = [
		models.Country(
			code=code,
			name=countries.country_name(code),
			cities=frozenset(cities_by_country.get(code, ())),
			servers=frozenset(members),
		)
		for code, members in by_country.items()
	]

	obs_metrics.inc_index_rebuild()
	index = models.LocationIndex(countries=country_list, cities=cities, servers=kept)
	logger.debug("location index rebuilt: %r", index)
	return index
