"""Resolve reportable resources from the member, post and comment tables."""

from __future__ import annotations

from typing import Optional

import asyncpg

from reportdesk.moderation.domain.exceptions import PersistenceFailure
from reportdesk.moderation.domain.resources import (
    CommentResource,
    MemberResource,
    PostResource,
    ResourceDirectory,
)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresResourceDirectory(ResourceDirectory):
    """Projection lookups against the platform tables; soft-deleted rows are absent."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def _fetchrow(self, query: str, resource_id: str) -> Optional[asyncpg.Record]:
        try:
            return await self.pool.fetchrow(query, resource_id)
        except _STORE_ERRORS as exc:
            raise PersistenceFailure() from exc

    async def fetch_member(self, member_id: str) -> Optional[MemberResource]:
        record = await self._fetchrow(
            """
            SELECT id, COALESCE(display_name, handle, '') AS name
            FROM users
            WHERE id::text = $1 AND deleted_at IS NULL
            """,
            member_id,
        )
        if record is None:
            return None
        return MemberResource(id=str(record["id"]), name=str(record["name"]))

    async def fetch_post(self, post_id: str) -> Optional[PostResource]:
        record = await self._fetchrow(
            "SELECT id, COALESCE(title, '') AS title FROM post WHERE id::text = $1 AND deleted_at IS NULL",
            post_id,
        )
        if record is None:
            return None
        return PostResource(id=str(record["id"]), title=str(record["title"]))

    async def fetch_comment(self, comment_id: str) -> Optional[CommentResource]:
        record = await self._fetchrow(
            "SELECT id, body FROM comment WHERE id::text = $1 AND deleted_at IS NULL",
            comment_id,
        )
        if record is None:
            return None
        return CommentResource(id=str(record["id"]), content=str(record["body"]))
