"""Pydantic schemas for the search session APIs."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from vpnsearch.domain.catalog import models as catalog
from vpnsearch.domain.search import models, policy


class QueryIn(BaseModel):
	q: str = Field(default="", max_length=policy.MAX_QUERY_LEN, description="Raw user input; empty shows recents")


class RecentQueryIn(BaseModel):
	q: str = Field(..., min_length=1, max_length=policy.MAX_QUERY_LEN)


class ConnectionStatusIn(BaseModel):
	phase: models.ConnectionPhase = models.ConnectionPhase.DISCONNECTED
	server_id: Optional[str] = None

	def to_domain(self) -> models.ConnectionStatus:
		return models.ConnectionStatus(phase=self.phase, server_id=self.server_id)


class UserTierIn(BaseModel):
	tier: int = Field(..., ge=0)


class ServerIn(BaseModel):
	server_id: str = ""
	server_name: str = ""
	city_name: Optional[str] = None
	country_code: str = ""
	entry_country_code: Optional[str] = None
	tier: int = Field(default=0, ge=0)
	is_online: bool = True
	features: list[str] = Field(default_factory=list)

	def to_domain(self) -> catalog.Server:
		return catalog.Server(
			server_id=self.server_id,
			server_name=self.server_name,
			city_name=self.city_name,
			country_code=self.country_code,
			entry_country_code=self.entry_country_code,
			tier=self.tier,
			is_online=self.is_online,
			features=frozenset(self.features),
		)


class ServerListIn(BaseModel):
	servers: list[ServerIn]


class PartnerIn(BaseModel):
	name: str
	description: str = ""
	icon_url: Optional[str] = None
	logical_ids: list[str] = Field(default_factory=list)

	def to_domain(self) -> catalog.Partner:
		return catalog.Partner(
			name=self.name,
			description=self.description,
			icon_url=self.icon_url,
			logical_ids=tuple(self.logical_ids),
		)


class PartnerTypeIn(BaseModel):
	type: str = ""
	description: str = ""
	partners: list[PartnerIn] = Field(default_factory=list)

	def to_domain(self) -> catalog.PartnerType:
		return catalog.PartnerType(
			type=self.type,
			description=self.description,
			partners=tuple(partner.to_domain() for partner in self.partners),
		)


class PartnershipsIn(BaseModel):
	partner_types: list[PartnerTypeIn]


class PartnerOut(BaseModel):
	name: str
	description: str = ""
	icon_url: Optional[str] = None


class ResultOut(BaseModel):
	text: str
	matched_token_indexes: list[int]
	is_online: bool
	is_connected: bool
	is_accessible: bool
	availability: models.Availability


class CountryResultOut(ResultOut):
	country_code: str
	country_name: str


class CityResultOut(ResultOut):
	city_name: str
	country_code: str


class ServerResultOut(ResultOut):
	server_id: str
	server_name: str
	city_name: Optional[str] = None
	country_code: str
	tier: int
	partnerships: list[PartnerOut] = Field(default_factory=list)


class ViewStateOut(BaseModel):
	kind: Literal["empty", "history", "results"]
	query: str = ""
	queries: list[str] = Field(default_factory=list)
	countries: list[CountryResultOut] = Field(default_factory=list)
	cities: list[CityResultOut] = Field(default_factory=list)
	servers: list[ServerResultOut] = Field(default_factory=list)


class CatalogOut(BaseModel):
	countries: int
	cities: int
	servers: int


class PartnershipsOut(BaseModel):
	servers: int


def _base(result: models.RankedResult) -> dict:
	return {
		"text": result.text,
		"matched_token_indexes": sorted(result.match.matched_token_indexes),
		"is_online": result.is_online,
		"is_connected": result.is_connected,
		"is_accessible": result.is_accessible,
		"availability": result.availability,
	}


def country_out(result: models.RankedResult[catalog.Country]) -> CountryResultOut:
	country = result.match.value
	return CountryResultOut(country_code=country.code, country_name=country.name, **_base(result))


def city_out(result: models.RankedResult[catalog.City]) -> CityResultOut:
	city = result.match.value
	return CityResultOut(city_name=city.name, country_code=city.country_code, **_base(result))


def server_out(result: models.RankedResult[catalog.Server]) -> ServerResultOut:
	server = result.match.value
	return ServerResultOut(
		server_id=server.server_id,
		server_name=server.server_name,
		city_name=server.city_name,
		country_code=server.country_code,
		tier=server.tier,
		partnerships=[
			PartnerOut(name=p.name, description=p.description, icon_url=p.icon_url) for p in result.partnerships
		],
		**_base(result),
	)


def view_state_out(state: models.ViewState) -> ViewStateOut:
	if isinstance(state, models.SearchResults):
		return ViewStateOut(
			kind="results",
			query=state.query,
			countries=[country_out(item) for item in state.countries],
			cities=[city_out(item) for item in state.cities],
			servers=[server_out(item) for item in state.servers],
		)
	if isinstance(state, models.SearchHistory):
		return ViewStateOut(kind="history", queries=list(state.queries))
	return ViewStateOut(kind="empty")
