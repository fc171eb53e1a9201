"""Catalog snapshot types: servers, their cities and countries, and partners."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional


@dataclass(frozen=True, slots=True)
class Server:
	"""A single logical server as published by the server list."""

	server_id: str
	server_name: str
	city_name: Optional[str]
	country_code: str
	entry_country_code: Optional[str] = None
	tier: int = 0
	is_online: bool = True
	features: frozenset[str] = frozenset()

	@property
	def is_secure_core(self) -> bool:
		return bool(self.entry_country_code) and self.entry_country_code != self.country_code

	def city_key(self) -> Optional[tuple[str, str]]:
		if not self.city_name:
			return None
		return (self.country_code, self.city_name.casefold())


@dataclass(frozen=True, slots=True)
class City:
	name: str
	country_code: str
	servers: frozenset[Server] = frozenset()

	@property
	def key(self) -> tuple[str, str]:
		return (self.country_code, self.name.casefold())


@dataclass(frozen=True, slots=True)
class Country:
	code: str
	name: str
	cities: frozenset[City] = frozenset()
	servers: frozenset[Server] = frozenset()


@dataclass(frozen=True, slots=True)
class Partner:
	"""Third party a server is provided in cooperation with."""

	name: str
	description: str = ""
	icon_url: Optional[str] = None
	logical_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PartnerType:
	type: str = ""
	description: str = ""
	partners: tuple[Partner, ...] = ()


class LocationIndex:
	"""Immutable countries -> cities -> servers catalog for one server list snapshot.

	Instances are produced by :func:`vpnsearch.domain.catalog.indexing.build_index`
	and swapped by reference; nothing mutates an index after construction.
	"""

	__slots__ = ("_countries", "_cities", "_servers", "_servers_by_id", "_countries_by_code", "_cities_by_key")

	def __init__(
		self,
		countries: Iterable[Country] = (),
		cities: Iterable[City] = (),
		servers: Iterable[Server] = (),
	) -> None:
		self._countries: tuple[Country, ...] = tuple(sorted(countries, key=lambda c: c.code))
		self._cities: tuple[City, ...] = tuple(sorted(cities, key=lambda c: c.key))
		self._servers: tuple[Server, ...] = tuple(servers)
		self._servers_by_id: Mapping[str, Server] = MappingProxyType({s.server_id: s for s in self._servers})
		self._countries_by_code: Mapping[str, Country] = MappingProxyType({c.code: c for c in self._countries})
		self._cities_by_key: Mapping[tuple[str, str], City] = MappingProxyType({c.key: c for c in self._cities})

	@classmethod
	def empty(cls) -> "LocationIndex":
		return cls()

	@property
	def countries(self) -> tuple[Country, ...]:
		return self._countries

	@property
	def cities(self) -> tuple[City, ...]:
		return self._cities

	@property
	def servers(self) -> tuple[Server, ...]:
		return self._servers

	def server(self, server_id: Optional[str]) -> Optional[Server]:
		if not server_id:
			return None
		return self._servers_by_id.get(server_id)

	def country(self, code: Optional[str]) -> Optional[Country]:
		if not code:
			return None
		return self._countries_by_code.get(code.strip().upper())

	def city(self, country_code: Optional[str], name: Optional[str]) -> Optional[City]:
		if not country_code or not name:
			return None
		return self._cities_by_key.get((country_code.strip().upper(), name.strip().casefold()))

	def __len__(self) -> int:
		return len(self._servers)

	def __iter__(self) -> Iterator[Server]:
		return iter(self._servers)

	def __repr__(self) -> str:  # pragma: no cover - debugging aid
		return (
			f"LocationIndex(countries={len(self._countries)}, cities={len(self._cities)}, "
			f"servers={len(self._servers)})"
		)


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
	"""Index and partnerships published together to every search session."""

	index: LocationIndex = field(default_factory=LocationIndex.empty)
	partnerships: Mapping[str, tuple[Partner, ...]] = field(default_factory=lambda: MappingProxyType({}))
