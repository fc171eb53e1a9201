"""Structured JSON logging for search sessions.

Every record carries the request id, the route and the search owner the request
is acting for. Raw search text is user input and never reaches the log: fields
holding queries are reduced to their shape (word and character counts).
"""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from vpnsearch.settings import settings

_REQUEST_ID: ContextVar[Optional[str]] = ContextVar("obs_request_id", default=None)
_ROUTE: ContextVar[Optional[str]] = ContextVar("obs_route", default=None)
_SEARCH_OWNER: ContextVar[Optional[str]] = ContextVar("obs_search_owner", default=None)

_LOGGER_NAME = "vpnsearch"
ACCESS_LOGGER_NAME = "vpnsearch.http"

_SECRET_KEYWORDS = ("token", "secret", "authorization", "password")
_QUERY_FIELDS = frozenset({"q", "query", "queries", "pending_query"})

_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def bind_context(*, request_id: Optional[str] = None, route: Optional[str] = None) -> Dict[str, Token]:
	"""Bind request fields for the current task and return reset tokens."""
	tokens: Dict[str, Token] = {}
	if request_id is not None:
		tokens["request_id"] = _REQUEST_ID.set(request_id)
	if route is not None:
		tokens["route"] = _ROUTE.set(route)
	return tokens


def bind_owner(owner: str) -> Token:
	"""Attach the authenticated search owner to records logged by this request."""
	return _SEARCH_OWNER.set(owner)


def reset_context(tokens: Dict[str, Token]) -> None:
	for key, token in tokens.items():
		if key == "request_id":
			_REQUEST_ID.reset(token)
		elif key == "route":
			_ROUTE.reset(token)


def describe_query(value: Any) -> Dict[str, int]:
	"""Shape of a query (or list of queries) that is safe to log."""
	if isinstance(value, str):
		return {"chars": len(value.strip()), "words": len(value.split())}
	if isinstance(value, (list, tuple)):
		return {"count": len(value)}
	return {}


def _sanitize_field(key: str, value: Any) -> Any:
	lowered = key.lower()
	if lowered in _QUERY_FIELDS:
		return describe_query(value)
	if any(keyword in lowered for keyword in _SECRET_KEYWORDS):
		return "[redacted]"
	return value


class JSONLogFormatter(logging.Formatter):
	"""Emit logs as single-line JSON objects."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, object] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		request_id = _REQUEST_ID.get()
		if request_id:
			payload["request_id"] = request_id
		route = _ROUTE.get()
		if route:
			payload["route"] = route
		owner = getattr(record, "owner", None) or _SEARCH_OWNER.get()
		if owner:
			payload["owner"] = owner
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key in _RESERVED_ATTRS or key == "owner":
				continue
			payload[key] = _sanitize_field(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class AccessLogSamplingFilter(logging.Filter):
	"""Sample INFO access logs; domain events and warnings always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or record.name != ACCESS_LOGGER_NAME:
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		if rate >= 1.0:
			return True
		return random.random() < rate


def configure_logging() -> logging.Logger:
	"""Configure the root logger with JSON formatting and access-log sampling."""
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(AccessLogSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
