"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reportdesk import obs
from reportdesk.api import ops
from reportdesk.api.errors import install_error_handlers
from reportdesk.infra import postgres
from reportdesk.infra.redis import redis_client
from reportdesk.moderation import configure_postgres as configure_moderation
from reportdesk.moderation import router as moderation_router
from reportdesk.moderation.infra.postgres_repo import ensure_schema
from reportdesk.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.uses_postgres():
		pool = await postgres.init_pool()
		await ensure_schema(pool)
		configure_moderation(pool, redis_client)
		logger.info("moderation storage ready", extra={"storage": "postgres"})
	try:
		yield
	finally:
		if settings.uses_postgres():
			await postgres.close_pool()


def create_app() -> FastAPI:
	application = FastAPI(title="reportdesk", lifespan=lifespan)
	obs.init(application)
	install_error_handlers(application)
	application.include_router(ops.router)
	application.include_router(moderation_router)
	return application


app = create_app()
