"""Search domain exports."""

from .models import ConnectionPhase, ConnectionStatus, Empty, SearchHistory, SearchResults, UserTier, ViewState
from .recents import MemoryRecentsBackend, RecentsStore, RedisRecentsBackend
from .service import SearchEngine
from .sessions import SearchSessions, get_sessions, reset_sessions

__all__ = [
	"ConnectionPhase",
	"ConnectionStatus",
	"Empty",
	"MemoryRecentsBackend",
	"RecentsStore",
	"RedisRecentsBackend",
	"SearchEngine",
	"SearchHistory",
	"SearchResults",
	"SearchSessions",
	"UserTier",
	"ViewState",
	"get_sessions",
	"reset_sessions",
]
