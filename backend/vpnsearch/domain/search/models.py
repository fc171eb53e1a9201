"""Domain models backing location search results, recents and view states."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ClassVar, Generic, Optional, TypeVar, Union

from vpnsearch.domain.catalog.models import City, Country, Partner, Server

T = TypeVar("T")


class ConnectionPhase(str, Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
	"""Live connection status as reported by the tunnel state machine."""

	phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
	server_id: Optional[str] = None

	@classmethod
	def disconnected(cls) -> "ConnectionStatus":
		return cls()

	@property
	def is_connected(self) -> bool:
		return self.phase is ConnectionPhase.CONNECTED and bool(self.server_id)


class UserTier(IntEnum):
	FREE = 0
	BASIC = 1
	PLUS = 2
	VISIONARY = 3


class Availability(str, Enum):
	ONLINE = "online"
	AVAILABLE_OFFLINE = "available_offline"
	UNAVAILABLE_PLAN = "unavailable_plan"


@dataclass(frozen=True, slots=True)
class Match(Generic[T]):
	"""A candidate whose display text satisfied every query token.

	`matched_token_indexes` are the positions of the words in `text` that a query
	token was a prefix of.
	"""

	value: T
	text: str
	matched_token_indexes: frozenset[int] = frozenset()

	@property
	def on_first_word(self) -> bool:
		return 0 in self.matched_token_indexes


@dataclass(frozen=True, slots=True)
class MatchSet:
	countries: tuple[Match[Country], ...] = ()
	cities: tuple[Match[City], ...] = ()
	servers: tuple[Match[Server], ...] = ()

	def is_empty(self) -> bool:
		return not (self.countries or self.cities or self.servers)


@dataclass(frozen=True, slots=True)
class RankedResult(Generic[T]):
	match: Match[T]
	is_online: bool
	is_connected: bool
	is_accessible: bool
	partnerships: tuple[Partner, ...] = ()

	@property
	def text(self) -> str:
		return self.match.text

	@property
	def availability(self) -> Availability:
		if not self.is_accessible:
			return Availability.UNAVAILABLE_PLAN
		if not self.is_online:
			return Availability.AVAILABLE_OFFLINE
		return Availability.ONLINE


@dataclass(frozen=True, slots=True)
class RecentEntry:
	query: str
	last_used_at: float


@dataclass(frozen=True, slots=True)
class Empty:
	"""No query and no recents."""

	kind: ClassVar[str] = "empty"


@dataclass(frozen=True, slots=True)
class SearchHistory:
	"""No query; recents are listed most recent first."""

	queries: tuple[str, ...]
	kind: ClassVar[str] = "history"


@dataclass(frozen=True, slots=True)
class SearchResults:
	query: str
	countries: tuple[RankedResult[Country], ...] = ()
	cities: tuple[RankedResult[City], ...] = ()
	servers: tuple[RankedResult[Server], ...] = ()
	kind: ClassVar[str] = "results"


ViewState = Union[Empty, SearchHistory, SearchResults]
