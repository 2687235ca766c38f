"""Operational endpoints: liveness and Prometheus exposition."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["ops"])


@router.get("/health/live")
async def live() -> dict[str, str]:
	return {"status": "ok"}


@router.get("/metrics")
async def metrics_endpoint() -> Response:
	payload = generate_latest()
	return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
