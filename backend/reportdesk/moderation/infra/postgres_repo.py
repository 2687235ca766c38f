"""PostgreSQL-backed repository for moderation reports."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

import asyncpg

from reportdesk.moderation.domain.exceptions import PersistenceFailure
from reportdesk.moderation.domain.reports import (
    Decide,
    Filing,
    Report,
    ReportOrder,
    ReportRepository,
    Review,
)
from reportdesk.moderation.domain.resources import ResourceKind, ResourceRef

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS mod_report (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        resource_kind text NOT NULL,
        resource_id text NOT NULL,
        closed boolean NOT NULL DEFAULT false,
        rule text NOT NULL DEFAULT '',
        created_at timestamptz NOT NULL,
        updated_at timestamptz NOT NULL,
        UNIQUE (resource_kind, resource_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mod_report_filing (
        seq bigserial PRIMARY KEY,
        id uuid NOT NULL UNIQUE,
        report_id uuid NOT NULL REFERENCES mod_report(id),
        submitter_id text NOT NULL,
        reason_category text NOT NULL,
        reason_description text NOT NULL,
        created_at timestamptz NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mod_report_review (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        report_id uuid NOT NULL REFERENCES mod_report(id),
        reviewer_id text NOT NULL,
        closed boolean NOT NULL,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS mod_report_created_idx ON mod_report (created_at DESC)",
    "CREATE INDEX IF NOT EXISTS mod_report_filing_report_idx ON mod_report_filing (report_id, seq)",
)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_ORDER_SQL = {
    ReportOrder.CREATED_AT_DESC: "created_at DESC, id DESC",
    ReportOrder.CREATED_AT_ASC: "created_at ASC, id ASC",
    ReportOrder.UPDATED_AT_DESC: "updated_at DESC, id DESC",
    ReportOrder.UPDATED_AT_ASC: "updated_at ASC, id ASC",
}

_REPORT_COLUMNS = "id, resource_kind, resource_id, closed, rule, created_at, updated_at"


async def ensure_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)


class PostgresReportRepository(ReportRepository):
    """Persists reports using asyncpg.

    Creation and append share one transaction. The ``ON CONFLICT`` upsert takes
    the row lock for the resource, so concurrent filings on the same resource
    queue behind each other until commit.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def file(self, ref: ResourceRef, filing: Filing, decide: Decide) -> Report:
        upsert = f"""
        INSERT INTO mod_report (resource_kind, resource_id, created_at, updated_at)
        VALUES ($1, $2, $3, $3)
        ON CONFLICT (resource_kind, resource_id)
        DO UPDATE SET updated_at = GREATEST(mod_report.updated_at, EXCLUDED.updated_at)
        RETURNING {_REPORT_COLUMNS}
        """
        insert_filing = """
        INSERT INTO mod_report_filing (id, report_id, submitter_id, reason_category, reason_description, created_at)
        VALUES ($1, $2, $3, $4, $5, $6)
        """
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    record = await conn.fetchrow(
                        upsert,
                        ref.kind.value,
                        ref.resource_id,
                        filing.created_at,
                    )
                    if record is None:
                        raise PersistenceFailure()
                    await conn.execute(
                        insert_filing,
                        filing.filing_id,
                        record["id"],
                        filing.submitter_id,
                        filing.reason_category,
                        filing.reason_description,
                        filing.created_at,
                    )
                    report = await self._hydrate(conn, record)
                    decision = decide(report)
                    await conn.execute(
                        "UPDATE mod_report SET closed = $2, rule = $3 WHERE id = $1",
                        record["id"],
                        decision.closed,
                        decision.rule,
                    )
                    report.apply(decision)
                    return report
        except _STORE_ERRORS as exc:
            raise PersistenceFailure() from exc

    async def get_report(self, report_id: str) -> Report | None:
        query = f"SELECT {_REPORT_COLUMNS} FROM mod_report WHERE id::text = $1"
        try:
            async with self.pool.acquire() as conn:
                record = await conn.fetchrow(query, report_id)
                if record is None:
                    return None
                return await self._hydrate(conn, record)
        except _STORE_ERRORS as exc:
            raise PersistenceFailure() from exc

    async def list_reports(
        self,
        *,
        order: ReportOrder = ReportOrder.CREATED_AT_DESC,
        closed: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Report]:
        query = f"""
        SELECT {_REPORT_COLUMNS}
        FROM mod_report
        WHERE ($1::boolean IS NULL OR closed = $1)
        ORDER BY {_ORDER_SQL[order]}
        LIMIT $2 OFFSET $3
        """
        try:
            async with self.pool.acquire() as conn:
                records = await conn.fetch(query, closed, limit, offset)
                if not records:
                    return []
                ids = [record["id"] for record in records]
                filings = await conn.fetch(
                    """
                    SELECT id, report_id, submitter_id, reason_category, reason_description, created_at
                    FROM mod_report_filing
                    WHERE report_id = ANY($1::uuid[])
                    ORDER BY seq ASC
                    """,
                    ids,
                )
                reviews = await conn.fetch(
                    """
                    SELECT report_id, reviewer_id, closed, created_at, updated_at
                    FROM mod_report_review
                    WHERE report_id = ANY($1::uuid[])
                    ORDER BY created_at ASC
                    """,
                    ids,
                )
        except _STORE_ERRORS as exc:
            raise PersistenceFailure() from exc
        return _assemble(records, filings, reviews)

    async def _hydrate(self, conn: asyncpg.Connection, record: Mapping[str, Any]) -> Report:
        filings = await conn.fetch(
            """
            SELECT id, report_id, submitter_id, reason_category, reason_description, created_at
            FROM mod_report_filing
            WHERE report_id = $1
            ORDER BY seq ASC
            """,
            record["id"],
        )
        reviews = await conn.fetch(
            """
            SELECT report_id, reviewer_id, closed, created_at, updated_at
            FROM mod_report_review
            WHERE report_id = $1
            ORDER BY created_at ASC
            """,
            record["id"],
        )
        return _assemble([record], filings, reviews)[0]


def _assemble(
    records: Sequence[Mapping[str, Any]],
    filings: Sequence[Mapping[str, Any]],
    reviews: Sequence[Mapping[str, Any]],
) -> list[Report]:
    reports = [_report_from_record(record) for record in records]
    by_id = {report.report_id: report for report in reports}
    for row in filings:
        report = by_id.get(str(row["report_id"]))
        if report is not None:
            report.filings.append(_filing_from_record(row))
    for row in reviews:
        report = by_id.get(str(row["report_id"]))
        if report is not None:
            report.reviews.append(_review_from_record(row))
    return reports


def _report_from_record(record: Mapping[str, Any]) -> Report:
    return Report(
        report_id=str(record["id"]),
        resource_ref=ResourceRef(ResourceKind(record["resource_kind"]), str(record["resource_id"])),
        created_at=record["created_at"],
        updated_at=record["updated_at"],
        closed=bool(record["closed"]),
        rule=str(record["rule"] or ""),
    )


def _filing_from_record(record: Mapping[str, Any]) -> Filing:
    return Filing(
        filing_id=str(record["id"]),
        submitter_id=str(record["submitter_id"]),
        reason_category=str(record["reason_category"]),
        reason_description=str(record["reason_description"]),
        created_at=record["created_at"],
    )


def _review_from_record(record: Mapping[str, Any]) -> Review:
    return Review(
        reviewer_id=str(record["reviewer_id"]),
        closed=bool(record["closed"]),
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )
