"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reportdesk.moderation.domain.exceptions import (
	ModerationError,
	PersistenceFailure,
	ReportNotFound,
	Unauthorized,
	ValidationFailure,
)
from reportdesk.obs import logging as obs_logging

logger = logging.getLogger(__name__)

_MODERATION_STATUS = {
	Unauthorized: status.HTTP_401_UNAUTHORIZED,
	ValidationFailure: 422,
	ReportNotFound: status.HTTP_404_NOT_FOUND,
	PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_request_id(request: Request, default: str = "unknown") -> str:
	rid = getattr(request.state, "request_id", None) or obs_logging.current_request_id()
	return rid or default


def _status_for(exc: ModerationError) -> int:
	for error_type, code in _MODERATION_STATUS.items():
		if isinstance(exc, error_type):
			return code
	return status.HTTP_400_BAD_REQUEST


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {
			"detail": "validation_error",
			"errors": [{"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")} for err in exc.errors()],
			"request_id": get_request_id(request),
		}
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(ModerationError)
	async def moderation_exc_handler(request: Request, exc: ModerationError):  # type: ignore[override]
		code = _status_for(exc)
		if code >= 500:
			logger.error("moderation request failed", exc_info=exc, extra={"error": exc.detail})
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=code, content=payload)
