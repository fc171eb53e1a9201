"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vpnsearch.api import catalog, ops, search
from vpnsearch.api.errors import install_error_handlers
from vpnsearch.domain.search import sessions as search_sessions
from vpnsearch.obs import init as obs_init
from vpnsearch.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	sweeper = asyncio.create_task(search_sessions.run_idle_sweeper(), name="search-session-sweeper")
	try:
		yield
	finally:
		sweeper.cancel()
		with suppress(asyncio.CancelledError):
			await sweeper
		await search_sessions.get_sessions().shutdown()


app = FastAPI(title="vpnsearch", lifespan=lifespan)
obs_init(app)
install_error_handlers(app)

if settings.cors_allow_origins:
	app.add_middleware(
		CORSMiddleware,
		allow_origins=list(settings.cors_allow_origins),
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

app.include_router(ops.router)
app.include_router(search.router)
app.include_router(catalog.router)
