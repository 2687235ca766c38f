"""Moderation package integration helpers exposed to the application."""

from reportdesk.moderation.api import router
from reportdesk.moderation.domain.container import configure, configure_postgres

__all__ = ["router", "configure", "configure_postgres"]
