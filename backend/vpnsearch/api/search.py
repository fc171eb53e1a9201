"""REST endpoints driving a user's search session."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from vpnsearch.domain.search import policy, schemas
from vpnsearch.domain.search import sessions as search_sessions
from vpnsearch.domain.search.service import SearchEngine
from vpnsearch.infra.auth import AuthenticatedUser, get_current_user
from vpnsearch.obs import logging as obs_logging

router = APIRouter(prefix="/search", tags=["search"])


def _as_http_error(exc: policy.SearchPolicyError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.detail)


async def _engine(auth_user: AuthenticatedUser = Depends(get_current_user)) -> SearchEngine:
	obs_logging.bind_owner(auth_user.id)
	return await search_sessions.get_sessions().get(auth_user.id)


@router.get("/state", response_model=schemas.ViewStateOut)
async def get_state_endpoint(engine: SearchEngine = Depends(_engine)) -> schemas.ViewStateOut:
	return schemas.view_state_out(engine.view_state)


@router.post("/query", response_model=schemas.ViewStateOut)
async def set_query_endpoint(
	payload: schemas.QueryIn,
	engine: SearchEngine = Depends(_engine),
) -> schemas.ViewStateOut:
	try:
		state = await engine.set_query(payload.q)
	except policy.SearchPolicyError as exc:
		raise _as_http_error(exc) from exc
	return schemas.view_state_out(state)


@router.post("/recents/select", response_model=schemas.ViewStateOut)
async def select_recent_endpoint(
	payload: schemas.RecentQueryIn,
	engine: SearchEngine = Depends(_engine),
) -> schemas.ViewStateOut:
	try:
		state = await engine.set_query_from_recents(payload.q)
	except policy.SearchPolicyError as exc:
		raise _as_http_error(exc) from exc
	return schemas.view_state_out(state)


@router.get("/recents", response_model=list[str])
async def list_recents_endpoint(engine: SearchEngine = Depends(_engine)) -> list[str]:
	return engine.recents.queries()


@router.delete("/recents", response_model=schemas.ViewStateOut)
async def clear_recents_endpoint(engine: SearchEngine = Depends(_engine)) -> schemas.ViewStateOut:
	try:
		state = await engine.clear_recent_history()
	except policy.SearchPolicyError as exc:
		raise _as_http_error(exc) from exc
	return schemas.view_state_out(state)


@router.delete("/recents/{query}", response_model=schemas.ViewStateOut)
async def remove_recent_endpoint(query: str, engine: SearchEngine = Depends(_engine)) -> schemas.ViewStateOut:
	try:
		state = await engine.remove_recent(query)
	except policy.SearchPolicyError as exc:
		raise _as_http_error(exc) from exc
	return schemas.view_state_out(state)


@router.put("/session/connection", response_model=schemas.ViewStateOut)
async def set_connection_endpoint(
	payload: schemas.ConnectionStatusIn,
	engine: SearchEngine = Depends(_engine),
) -> schemas.ViewStateOut:
	try:
		state = await engine.set_connection_status(payload.to_domain())
	except policy.SearchPolicyError as exc:
		raise _as_http_error(exc) from exc
	return schemas.view_state_out(state)


@router.put("/session/tier", response_model=schemas.ViewStateOut)
async def set_tier_endpoint(
	payload: schemas.UserTierIn,
	engine: SearchEngine = Depends(_engine),
) -> schemas.ViewStateOut:
	try:
		state = await engine.set_user_tier(payload.tier)
	except policy.SearchPolicyError as exc:
		raise _as_http_error(exc) from exc
	return schemas.view_state_out(state)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def close_session_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> None:
	obs_logging.bind_owner(auth_user.id)
	await search_sessions.get_sessions().close(auth_user.id)
