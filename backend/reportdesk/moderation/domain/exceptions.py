"""Error taxonomy for the moderation reporting workflow."""

from __future__ import annotations


class ModerationError(Exception):
    """Base class for moderation workflow failures."""

    detail = "moderation_error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class Unauthorized(ModerationError):
    """Caller is anonymous or lacks the role required for the operation."""

    detail = "not_authorised"


class ValidationFailure(ModerationError):
    """Reason category or description rejected before reaching the aggregator."""

    detail = "validation_failed"


class PersistenceFailure(ModerationError):
    """Backing store unavailable or the atomic create/append failed."""

    detail = "persistence_unavailable"


class ReportNotFound(ModerationError):
    detail = "report_not_found"
