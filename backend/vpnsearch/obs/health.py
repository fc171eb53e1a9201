"""Health check helpers for liveness and readiness endpoints."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Tuple

from vpnsearch.domain.search import sessions as search_sessions
from vpnsearch.infra.redis import redis_client
from vpnsearch.settings import settings

LOGGER = logging.getLogger(__name__)


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
		latency = perf_counter() - start
		return {"ok": True, "latency_ms": round(latency * 1000, 2)}
	except Exception as exc:  # pragma: no cover - depends on runtime
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def liveness() -> Dict[str, str]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	registry = search_sessions.get_sessions()
	index = registry.catalog.index
	checks: Dict[str, Any] = {
		"catalog": {"ok": True, "servers": len(index), "sessions": len(registry)},
	}
	if settings.search_recents_backend == "redis":
		checks["redis"] = await _redis_status()
	ok = all(check.get("ok") for check in checks.values())
	return (200 if ok else 503), {"status": "ok" if ok else "degraded", "checks": checks}
