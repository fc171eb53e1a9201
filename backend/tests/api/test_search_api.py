import asyncio
import json

import pytest

from conftest import PARTNER_SERVER_ID, mocked_servers
from vpnsearch.infra import jwt as jwt_helper
from vpnsearch.settings import settings

USER_ME = "00000000-0000-0000-0000-000000000001"
USER_EVE = "00000000-0000-0000-0000-000000000002"
ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}
ME = {"X-User-Id": USER_ME}


def _server_payload() -> list[dict]:
	return [
		{
			"server_id": server.server_id,
			"server_name": server.server_name,
			"city_name": server.city_name,
			"country_code": server.country_code,
			"entry_country_code": server.entry_country_code,
			"tier": server.tier,
			"is_online": server.is_online,
			"features": sorted(server.features),
		}
		for server in mocked_servers()
	]


async def _publish_catalog(api_client) -> None:
	response = await api_client.put("/search/catalog/servers", json={"servers": _server_payload()}, headers=ADMIN_HEADERS)
	assert response.status_code == 200


@pytest.mark.asyncio
async def test_catalog_upload_reports_counts(api_client):
	response = await api_client.put("/search/catalog/servers", json={"servers": _server_payload()}, headers=ADMIN_HEADERS)

	assert response.status_code == 200
	assert response.json() == {"countries": 7, "cities": 10, "servers": 12}


@pytest.mark.asyncio
async def test_catalog_upload_requires_admin_token(api_client):
	response = await api_client.put(
		"/search/catalog/servers",
		json={"servers": []},
		headers={"X-Admin-Token": "wrong", "X-Request-Id": "req-123"},
	)

	assert response.status_code == 403
	assert response.json() == {"detail": "forbidden", "request_id": "req-123"}


@pytest.mark.asyncio
async def test_state_requires_authentication(api_client):
	response = await api_client.get("/search/state")

	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_dev_user_header_rejected_outside_dev(api_client):
	settings.environment = "production"

	response = await api_client.get("/search/state", headers=ME)

	assert response.status_code == 401


@pytest.mark.asyncio
async def test_bearer_token_opens_session(api_client):
	token = jwt_helper.encode_access({"sub": USER_EVE})

	response = await api_client.get("/search/state", headers={"Authorization": f"Bearer {token}"})

	assert response.status_code == 200
	assert response.json()["kind"] == "empty"


@pytest.mark.asyncio
async def test_query_returns_ranked_results(api_client):
	await _publish_catalog(api_client)

	response = await api_client.post("/search/query", json={"q": "ca"}, headers=ME)

	assert response.status_code == 200
	payload = response.json()
	assert payload["kind"] == "results"
	assert payload["query"] == "ca"
	assert [item["country_name"] for item in payload["countries"]] == ["Canada"]
	assert [item["city_name"] for item in payload["cities"]] == ["Cairo"]
	assert [item["server_name"] for item in payload["servers"]] == ["CA#1", "CA#2"]
	assert payload["countries"][0]["matched_token_indexes"] == [0]
	assert payload["countries"][0]["availability"] == "online"


@pytest.mark.asyncio
async def test_query_too_long_is_rejected(api_client):
	response = await api_client.post("/search/query", json={"q": "x" * 121}, headers=ME)

	assert response.status_code == 422
	assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_debounced_query_lands_in_recents(api_client, fake_redis):
	await _publish_catalog(api_client)

	await api_client.post("/search/query", json={"q": "kyi"}, headers=ME)
	await api_client.post("/search/query", json={"q": "kyiv"}, headers=ME)
	await asyncio.sleep(0.15)

	response = await api_client.get("/search/recents", headers=ME)
	assert response.json() == ["kyiv"]
	assert json.loads(await fake_redis.get(f"search:recents:{USER_ME}")) == ["kyiv"]

	cleared = await api_client.post("/search/query", json={"q": ""}, headers=ME)
	assert cleared.json() == {
		"kind": "history",
		"query": "",
		"queries": ["kyiv"],
		"countries": [],
		"cities": [],
		"servers": [],
	}


@pytest.mark.asyncio
async def test_recents_select_remove_and_clear(api_client):
	await _publish_catalog(api_client)

	selected = await api_client.post("/search/recents/select", json={"q": "canada"}, headers=ME)
	assert selected.json()["kind"] == "results"
	await api_client.post("/search/recents/select", json={"q": "kyiv"}, headers=ME)
	assert (await api_client.get("/search/recents", headers=ME)).json() == ["kyiv", "canada"]

	await api_client.post("/search/query", json={"q": ""}, headers=ME)
	removed = await api_client.delete("/search/recents/KYIV", headers=ME)
	assert removed.json()["queries"] == ["canada"]

	cleared = await api_client.delete("/search/recents", headers=ME)
	assert cleared.json()["kind"] == "empty"


@pytest.mark.asyncio
async def test_recents_are_per_user(api_client):
	await api_client.post("/search/recents/select", json={"q": "sweden"}, headers=ME)

	response = await api_client.get("/search/recents", headers={"X-User-Id": USER_EVE})

	assert response.json() == []


@pytest.mark.asyncio
async def test_connection_and_tier_feed_the_overlay(api_client):
	await _publish_catalog(api_client)
	await api_client.post("/search/query", json={"q": "UA"}, headers=ME)

	free = await api_client.put("/search/session/tier", json={"tier": 0}, headers=ME)
	assert [item["server_name"] for item in free.json()["servers"]] == ["UA#10", "UA#9"]
	assert free.json()["servers"][1]["availability"] == "unavailable_plan"

	plus = await api_client.put("/search/session/tier", json={"tier": 2}, headers=ME)
	assert [item["server_name"] for item in plus.json()["servers"]] == ["UA#9", "UA#10"]

	connected = await api_client.put(
		"/search/session/connection",
		json={"phase": "connected", "server_id": "ua-10"},
		headers=ME,
	)
	assert [item["is_connected"] for item in connected.json()["servers"]] == [False, True]


@pytest.mark.asyncio
async def test_negative_tier_is_rejected(api_client):
	response = await api_client.put("/search/session/tier", json={"tier": -1}, headers=ME)

	assert response.status_code == 422


@pytest.mark.asyncio
async def test_partnerships_upload_enables_partner_queries(api_client):
	await _publish_catalog(api_client)
	response = await api_client.put(
		"/search/catalog/partnerships",
		json={
			"partner_types": [
				{
					"type": "news",
					"description": "Independent media",
					"partners": [{"name": "Daily Paper", "logical_ids": [PARTNER_SERVER_ID]}],
				}
			]
		},
		headers=ADMIN_HEADERS,
	)
	assert response.json() == {"servers": 1}

	result = await api_client.post("/search/query", json={"q": "CH#301#PARTNER"}, headers=ME)

	servers = result.json()["servers"]
	assert len(servers) == 1
	assert servers[0]["text"] == "CH#301#PARTNER"
	assert servers[0]["partnerships"] == [{"name": "Daily Paper", "description": "", "icon_url": None}]


@pytest.mark.asyncio
async def test_close_session(api_client):
	await api_client.post("/search/query", json={"q": "ca"}, headers=ME)

	response = await api_client.delete("/search/session", headers=ME)
	assert response.status_code == 204

	state = await api_client.get("/search/state", headers=ME)
	assert state.json()["kind"] == "empty"


@pytest.mark.asyncio
async def test_health_and_metrics(api_client):
	live = await api_client.get("/health/live")
	assert live.json() == {"status": "ok"}

	ready = await api_client.get("/health/ready")
	assert ready.status_code == 200
	assert ready.json()["checks"]["redis"]["ok"] is True

	await api_client.post("/search/query", json={"q": "ca"}, headers=ME)
	denied = await api_client.get("/metrics")
	assert denied.status_code == 403
	metrics = await api_client.get("/metrics", headers=ADMIN_HEADERS)
	assert metrics.status_code == 200
	assert "vpnsearch_search_queries_total" in metrics.text
