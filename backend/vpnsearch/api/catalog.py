"""Admin endpoints publishing server list and partnership snapshots."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vpnsearch.domain.search import schemas
from vpnsearch.domain.search import sessions as search_sessions
from vpnsearch.infra.auth import require_admin

router = APIRouter(prefix="/search/catalog", tags=["catalog"], dependencies=[Depends(require_admin)])


@router.put("/servers", response_model=schemas.CatalogOut)
async def replace_servers_endpoint(payload: schemas.ServerListIn) -> schemas.CatalogOut:
	index = await search_sessions.get_sessions().update_servers(server.to_domain() for server in payload.servers)
	return schemas.CatalogOut(countries=len(index.countries), cities=len(index.cities), servers=len(index))


@router.put("/partnerships", response_model=schemas.PartnershipsOut)
async def replace_partnerships_endpoint(payload: schemas.PartnershipsIn) -> schemas.PartnershipsOut:
	snapshot = await search_sessions.get_sessions().replace_partnerships(
		partner_type.to_domain() for partner_type in payload.partner_types
	)
	return schemas.PartnershipsOut(servers=len(snapshot))
