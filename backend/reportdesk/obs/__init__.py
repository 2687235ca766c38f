"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from reportdesk.obs import logging as obs_logging
from reportdesk.obs import middleware
from reportdesk.settings import settings

_initialised = False


def init(app: FastAPI) -> None:
	global _initialised
	if not settings.obs_enabled:
		return
	middleware.install(app)
	if _initialised:
		return
	obs_logging.configure_logging()
	_initialised = True


__all__ = ["init"]
