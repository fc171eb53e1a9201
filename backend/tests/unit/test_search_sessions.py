import pytest
import pytest_asyncio

from conftest import PARTNER_SERVER_ID
from vpnsearch.domain.catalog import Partner, PartnershipsRepository, PartnerType
from vpnsearch.domain.search import MemoryRecentsBackend, SearchResults, SearchSessions
from vpnsearch.domain.search.recents import RedisRecentsBackend
from vpnsearch.settings import settings


@pytest_asyncio.fixture
async def registry():
	backends: dict[str, MemoryRecentsBackend] = {}
	sessions = SearchSessions(
		backend_factory=lambda owner: backends.setdefault(owner, MemoryRecentsBackend()),
		debounce_seconds=0.05,
	)
	try:
		yield sessions
	finally:
		await sessions.shutdown()


@pytest.mark.asyncio
async def test_get_returns_one_engine_per_owner(registry):
	first = await registry.get("user-a")
	again = await registry.get("user-a")
	other = await registry.get("user-b")

	assert first is again
	assert first is not other
	assert len(registry) == 2
	assert first.debounce_seconds == 0.05


@pytest.mark.asyncio
async def test_server_updates_reach_open_engines(registry, servers):
	engine = await registry.get("user-a")
	await engine.set_query("ca")
	assert engine.view_state.countries == ()

	index = await registry.update_servers(servers)

	assert len(index) == len(servers)
	assert registry.catalog.index is index
	assert [result.text for result in engine.view_state.countries] == ["Canada"]


@pytest.mark.asyncio
async def test_new_engines_start_from_current_catalog(registry, servers):
	await registry.update_servers(servers)

	engine = await registry.get("late-user")
	state = await engine.set_query("kyiv")

	assert isinstance(state, SearchResults)
	assert [result.text for result in state.cities] == ["Kyiv"]


@pytest.mark.asyncio
async def test_partnership_updates_reach_open_engines(registry, servers):
	await registry.update_servers(servers)
	engine = await registry.get("user-a")
	await engine.set_query("CH#301#PARTNER")
	assert engine.view_state.servers == ()

	partner = Partner(name="Partner", logical_ids=(PARTNER_SERVER_ID,))
	await registry.replace_partnerships([PartnerType(type="news", partners=(partner,))])

	assert [result.text for result in engine.view_state.servers] == ["CH#301#PARTNER"]
	assert registry.catalog.partnerships[PARTNER_SERVER_ID] == (partner,)


@pytest.mark.asyncio
async def test_close_discards_engine_and_next_get_starts_fresh(registry):
	engine = await registry.get("user-a")

	assert await registry.close("user-a") is True
	assert await registry.close("user-a") is False
	assert engine.closed is True

	replacement = await registry.get("user-a")
	assert replacement is not engine
	assert replacement.closed is False


@pytest.mark.asyncio
async def test_default_backend_follows_settings():
	sessions = SearchSessions()
	try:
		settings.search_recents_backend = "memory"
		assert isinstance(sessions._default_backend("u"), MemoryRecentsBackend)
		assert sessions._default_backend("u") is sessions._default_backend("u")

		settings.search_recents_backend = "redis"
		backend = sessions._default_backend("u")
		assert isinstance(backend, RedisRecentsBackend)
		assert backend.key == "search:recents:u"
	finally:
		await sessions.shutdown()


class ManualClock:
	def __init__(self) -> None:
		self.now = 100.0

	def __call__(self) -> float:
		return self.now


@pytest.mark.asyncio
async def test_partnership_refresh_fans_out_through_injected_fetcher(servers):
	partner = Partner(name="Partner", logical_ids=(PARTNER_SERVER_ID,))

	async def fetch():
		return [PartnerType(type="news", partners=(partner,))]

	sessions = SearchSessions(
		backend_factory=lambda owner: MemoryRecentsBackend(),
		partnerships=PartnershipsRepository(fetch),
		debounce_seconds=0.05,
	)
	try:
		await sessions.update_servers(servers)
		engine = await sessions.get("user-a")
		await engine.set_query("#partner")
		assert engine.view_state.servers == ()

		assert await sessions.partnerships.refresh() is True

		assert [result.match.value.server_id for result in engine.view_state.servers] == [PARTNER_SERVER_ID]
	finally:
		await sessions.shutdown()


@pytest.mark.asyncio
async def test_idle_engines_are_reaped_and_recents_survive():
	clock = ManualClock()
	backends: dict[str, MemoryRecentsBackend] = {}
	sessions = SearchSessions(
		backend_factory=lambda owner: backends.setdefault(owner, MemoryRecentsBackend()),
		debounce_seconds=0.05,
		idle_seconds=60,
		clock=clock,
	)
	try:
		idle = await sessions.get("idle-user")
		await idle.set_query_from_recents("kyiv")
		clock.now += 30
		active = await sessions.get("active-user")
		clock.now += 45

		assert await sessions.reap_idle() == 1
		assert idle.closed is True
		assert active.closed is False
		assert len(sessions) == 1

		fresh = await sessions.get("idle-user")
		assert fresh is not idle
		assert fresh.recents.queries() == ["kyiv"]
	finally:
		await sessions.shutdown()


@pytest.mark.asyncio
async def test_fetching_an_engine_keeps_it_alive():
	clock = ManualClock()
	sessions = SearchSessions(
		backend_factory=lambda owner: MemoryRecentsBackend(),
		idle_seconds=60,
		clock=clock,
	)
	try:
		engine = await sessions.get("user-a")
		for _ in range(3):
			clock.now += 50
			assert await sessions.get("user-a") is engine
			assert await sessions.reap_idle() == 0
	finally:
		await sessions.shutdown()


@pytest.mark.asyncio
async def test_zero_idle_timeout_disables_reaping():
	clock = ManualClock()
	sessions = SearchSessions(backend_factory=lambda owner: MemoryRecentsBackend(), idle_seconds=0, clock=clock)
	try:
		engine = await sessions.get("user-a")
		clock.now += 10_000

		assert await sessions.reap_idle() == 0
		assert engine.closed is False
	finally:
		await sessions.shutdown()
