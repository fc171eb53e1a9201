import json
import logging

from vpnsearch.obs import logging as obs_logging
from vpnsearch.settings import settings


def _record(name: str = "vpnsearch.domain.search.service", level: int = logging.INFO, **extra) -> logging.LogRecord:
	record = logging.LogRecord(name, level, __file__, 1, "recents commit", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def _format(record: logging.LogRecord) -> dict:
	return json.loads(obs_logging.JSONLogFormatter().format(record))


def test_query_text_is_reduced_to_its_shape():
	payload = _format(_record(query="  new york ", queries=["kyiv", "oslo"], source="debounce"))

	assert payload["query"] == {"chars": 8, "words": 2}
	assert payload["queries"] == {"count": 2}
	assert payload["source"] == "debounce"
	assert "new york" not in json.dumps(payload)


def test_secrets_are_redacted():
	payload = _format(_record(admin_token="test-admin-token", authorization="Bearer abc"))

	assert payload["admin_token"] == "[redacted]"
	assert payload["authorization"] == "[redacted]"


def test_bound_request_and_owner_context_is_emitted():
	tokens = obs_logging.bind_context(request_id="req-1", route="/search/query")
	owner_token = obs_logging.bind_owner("user-7")
	try:
		payload = _format(_record())
	finally:
		obs_logging._SEARCH_OWNER.reset(owner_token)
		obs_logging.reset_context(tokens)

	assert payload["request_id"] == "req-1"
	assert payload["route"] == "/search/query"
	assert payload["owner"] == "user-7"
	assert payload["msg"] == "recents commit"
	assert "request_id" not in _format(_record())


def test_record_owner_wins_over_bound_owner():
	owner_token = obs_logging.bind_owner("request-user")
	try:
		payload = _format(_record(owner="engine-owner"))
	finally:
		obs_logging._SEARCH_OWNER.reset(owner_token)

	assert payload["owner"] == "engine-owner"


def test_sampling_applies_to_access_logs_only():
	original = settings.obs_log_sampling_rate_info
	settings.obs_log_sampling_rate_info = 0.0
	try:
		sampler = obs_logging.AccessLogSamplingFilter()
		assert sampler.filter(_record(name=obs_logging.ACCESS_LOGGER_NAME)) is False
		assert sampler.filter(_record(name=obs_logging.ACCESS_LOGGER_NAME, level=logging.WARNING)) is True
		assert sampler.filter(_record()) is True
	finally:
		settings.obs_log_sampling_rate_info = original
