"""Lightweight service container shared by moderation modules."""

from __future__ import annotations

from typing import Optional

import asyncpg

from reportdesk.infra.redis import RedisProxy, redis_client
from reportdesk.moderation.domain.decisions import DecisionEngine, DecisionRule, filing_threshold_rule
from reportdesk.moderation.domain.rbac import AccessGate
from reportdesk.moderation.domain.reasons import ReasonCatalog
from reportdesk.moderation.domain.reports import InMemoryReportRepository, ReportRepository
from reportdesk.moderation.domain.reports_service import ReportService
from reportdesk.moderation.domain.resources import (
    InMemoryResourceDirectory,
    ResourceDirectory,
    ResourceLocator,
)
from reportdesk.moderation.infra.postgres_repo import PostgresReportRepository
from reportdesk.moderation.infra.resource_directory import PostgresResourceDirectory
from reportdesk.settings import settings


def _default_rules() -> list[DecisionRule]:
    rules: list[DecisionRule] = []
    if settings.moderation_auto_close_filings:
        rules.append(filing_threshold_rule(settings.moderation_auto_close_filings))
    return rules


def _default_catalog() -> ReasonCatalog:
    return ReasonCatalog.from_names(
        settings.moderation_reason_categories,
        max_description_length=settings.moderation_description_max_length,
    )


_repository: ReportRepository = InMemoryReportRepository()
_directory: ResourceDirectory = InMemoryResourceDirectory()
_decisions = DecisionEngine(_default_rules())
_reasons: ReasonCatalog = _default_catalog()
_gate = AccessGate.from_roles(settings.moderation_reviewer_roles)
_redis_proxy: Optional[RedisProxy] = redis_client


def _build_service() -> ReportService:
    return ReportService(
        repository=_repository,
        locator=ResourceLocator(_directory),
        decisions=_decisions,
        reasons=_reasons,
        gate=_gate,
        redis=_redis_proxy,
        report_stream=settings.moderation_report_stream,
        report_stream_maxlen=settings.moderation_report_stream_maxlen,
        max_page_size=settings.moderation_list_max_limit,
    )


_report_service = _build_service()


def configure(
    *,
    repository: Optional[ReportRepository] = None,
    directory: Optional[ResourceDirectory] = None,
    decisions: Optional[DecisionEngine] = None,
    reasons: Optional[ReasonCatalog] = None,
    gate: Optional[AccessGate] = None,
    redis_proxy: Optional[RedisProxy] = None,
) -> None:
    global _repository, _directory, _decisions, _reasons, _gate, _redis_proxy, _report_service
    if repository is not None:
        _repository = repository
    if directory is not None:
        _directory = directory
    if decisions is not None:
        _decisions = decisions
    if reasons is not None:
        _reasons = reasons
    if gate is not None:
        _gate = gate
    if redis_proxy is not None:
        _redis_proxy = redis_proxy
    _report_service = _build_service()


def configure_postgres(pool: asyncpg.Pool, redis: Optional[RedisProxy] = None) -> None:
    configure(
        repository=PostgresReportRepository(pool),
        directory=PostgresResourceDirectory(pool),
        redis_proxy=redis,
    )


def reset() -> None:
    """Restore fresh in-memory collaborators built from current settings."""

    global _repository, _directory, _decisions, _reasons, _gate, _redis_proxy, _report_service
    _repository = InMemoryReportRepository()
    _directory = InMemoryResourceDirectory()
    _decisions = DecisionEngine(_default_rules())
    _reasons = _default_catalog()
    _gate = AccessGate.from_roles(settings.moderation_reviewer_roles)
    _redis_proxy = redis_client
    _report_service = _build_service()


def get_report_service() -> ReportService:
    return _report_service


def get_repository() -> ReportRepository:
    return _repository


def get_directory() -> ResourceDirectory:
    return _directory
