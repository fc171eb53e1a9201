"""Prefix matching of free-text queries against the location index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from vpnsearch.domain.catalog import models as catalog
from vpnsearch.domain.search import models, ranking
from vpnsearch.settings import settings


@dataclass(frozen=True, slots=True)
class ParsedQuery:
	tokens: tuple[str, ...]
	partner_only: bool = False

	@property
	def is_empty(self) -> bool:
		return not self.tokens and not self.partner_only


def tokenize(text: str) -> tuple[str, ...]:
	return tuple((text or "").casefold().split())


def parse_query(query: str, *, marker: Optional[str] = None) -> ParsedQuery:
	"""Normalise a raw query; a trailing partnership marker becomes a server filter."""

	normalized = (query or "").strip().casefold()
	marker_text = (marker if marker is not None else settings.search_partner_marker).strip().casefold()
	partner_only = False
	if marker_text and normalized.endswith(marker_text):
		partner_only = True
		normalized = normalized[: -len(marker_text)]
	return ParsedQuery(tokens=tuple(normalized.split()), partner_only=partner_only)


def match_words(tokens: tuple[str, ...], text: str) -> Optional[frozenset[int]]:
	"""Return the word positions hit when every token prefixes some word, else None."""

	words = tokenize(text)
	hits: set[int] = set()
	for token in tokens:
		token_hit = False
		for position, word in enumerate(words):
			if word.startswith(token):
				hits.add(position)
				token_hit = True
		if not token_hit:
			return None
	return frozenset(hits)


def _match_servers(
	parsed: ParsedQuery,
	index: catalog.LocationIndex,
	partnerships: Mapping[str, tuple[catalog.Partner, ...]],
	marker: str,
) -> list[models.Match[catalog.Server]]:
	matches: dict[str, models.Match[catalog.Server]] = {}
	for server in index.servers:
		partnered = bool(partnerships.get(server.server_id))
		partner_text = f"{server.server_name}{marker}"
		if parsed.partner_only:
			if not partnered:
				continue
			hits = match_words(parsed.tokens, server.server_name) if parsed.tokens else frozenset()
			if hits is not None:
				matches[server.server_id] = models.Match(server, partner_text, hits)
			continue
		hits = match_words(parsed.tokens, server.server_name)
		text = server.server_name
		if hits is None and partnered:
			hits = match_words(parsed.tokens, partner_text)
			text = partner_text
		if hits is not None and server.server_id not in matches:
			matches[server.server_id] = models.Match(server, text, hits)
	return sorted(matches.values(), key=ranking.server_sort_key)


def match(
	query: str,
	index: catalog.LocationIndex,
	partnerships: Optional[Mapping[str, tuple[catalog.Partner, ...]]] = None,
	*,
	marker: Optional[str] = None,
) -> models.MatchSet:
	"""Match `query` against countries, cities and servers of `index`.

	Every query token must be a prefix of some word of the candidate text. Each
	category comes back ordered by `ranking`; countries and cities are unique by
	code and (code, city name).
	"""

	marker_text = marker if marker is not None else settings.search_partner_marker
	parsed = parse_query(query, marker=marker_text)
	if parsed.is_empty:
		return models.MatchSet()
	partnerships = partnerships or {}

	countries: dict[str, models.Match[catalog.Country]] = {}
	cities: dict[tuple[str, str], models.Match[catalog.City]] = {}
	if parsed.tokens:
		for country in index.countries:
			hits = match_words(parsed.tokens, country.name)
			if hits is not None and country.code not in countries:
				countries[country.code] = models.Match(country, country.name, hits)
		for city in index.cities:
			hits = match_words(parsed.tokens, city.name)
			if hits is not None and city.key not in cities:
				cities[city.key] = models.Match(city, city.name, hits)

	return models.MatchSet(
		countries=tuple(sorted(countries.values(), key=ranking.location_sort_key)),
		cities=tuple(sorted(cities.values(), key=ranking.location_sort_key)),
		servers=tuple(_match_servers(parsed, index, partnerships, marker_text)),
	)
