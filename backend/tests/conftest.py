import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from vpnsearch.domain.catalog import Server
from vpnsearch.settings import settings


PARTNER_SERVER_ID = "TlhSsVFg4dZ3_axHBlM_KWl7H4XLReby3-lr56MfzJOSrzt1VWmDBHy7-37zaxNQrE-l54lk8K0Lpd3EgLxOPw=="


def mocked_servers() -> list[Server]:
	"""A small server list covering the ordering and status cases used across tests."""
	return [
		Server("ca-1", "CA#1", "Toronto", "CA", tier=0),
		Server("ca-2", "CA#2", "Montreal", "CA", tier=0),
		Server("eg-1", "EG#1", "Cairo", "EG", tier=1),
		Server("se-1", "SE#1", "Stockholm", "SE", tier=0),
		Server("se-3", "SE#3", "Gothenburg", "SE", tier=1, is_online=False),
		Server("ch-1", "CH#1", "Zurich", "CH", tier=2),
		Server(PARTNER_SERVER_ID, "CH#301", "Geneva", "CH", tier=2),
		Server("hk-1", "HK#1", "Hong Kong", "HK", tier=2),
		Server("ua-9", "UA#9", "Kyiv", "UA", tier=1),
		Server("ua-10", "UA#10", "Kyiv", "UA", tier=0),
		Server("us-ny-1", "US-NY#1", "New York", "US", tier=2),
		Server("is-ch-1", "IS-CH#1", "Zurich", "CH", entry_country_code="IS", tier=2, features=frozenset({"SECURE_CORE"})),
	]


@pytest.fixture
def servers() -> list[Server]:
	return mocked_servers()


@pytest_asyncio.fixture
async def fake_redis():
	from vpnsearch.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via the X-User-Id header, which is only accepted in dev
	mode. Debounce is shortened so tests do not wait seconds per commit.
	"""
	original_env = settings.environment
	original_debounce = settings.search_recents_debounce_seconds
	original_admin = settings.obs_admin_token
	original_backend = settings.search_recents_backend
	original_max = settings.search_recents_max_entries
	settings.environment = "dev"
	settings.search_recents_debounce_seconds = 0.05
	settings.obs_admin_token = "test-admin-token"
	settings.search_recents_backend = "redis"
	settings.search_recents_max_entries = 20
	try:
		yield
	finally:
		settings.environment = original_env
		settings.search_recents_debounce_seconds = original_debounce
		settings.obs_admin_token = original_admin
		settings.search_recents_backend = original_backend
		settings.search_recents_max_entries = original_max


@pytest_asyncio.fixture
async def api_client(fake_redis):
	from vpnsearch.domain.search import reset_sessions
	from vpnsearch.main import app

	await reset_sessions()
	transport = ASGITransport(app=app)
	try:
		async with AsyncClient(transport=transport, base_url="http://testserver") as client:
			yield client
	finally:
		await reset_sessions()
