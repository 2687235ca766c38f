"""Reportable resources and the locator that classifies raw identifiers.

A resource id is opaque to the caller. The locator asks every resource kind in
parallel whether it owns the id and returns a small projection of whichever one
does. Ids that no kind claims (tags, categories, typos) come back as
``UnsupportedResource`` rather than an error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Protocol, Union


class ResourceKind(str, Enum):
    MEMBER = "Member"
    POST = "Post"
    COMMENT = "Comment"
    UNSUPPORTED = "Unsupported"


@dataclass(frozen=True, slots=True)
class ResourceRef:
    kind: ResourceKind
    resource_id: str

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.resource_id}"


@dataclass(frozen=True, slots=True)
class MemberResource:
    id: str
    name: str
    kind: ClassVar[ResourceKind] = ResourceKind.MEMBER

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.kind, self.id)


@dataclass(frozen=True, slots=True)
class PostResource:
    id: str
    title: str
    kind: ClassVar[ResourceKind] = ResourceKind.POST

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.kind, self.id)


@dataclass(frozen=True, slots=True)
class CommentResource:
    id: str
    content: str
    kind: ClassVar[ResourceKind] = ResourceKind.COMMENT

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.kind, self.id)


@dataclass(frozen=True, slots=True)
class UnsupportedResource:
    id: str
    kind: ClassVar[ResourceKind] = ResourceKind.UNSUPPORTED

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.kind, self.id)


ReportableResource = Union[MemberResource, PostResource, CommentResource]
Resource = Union[MemberResource, PostResource, CommentResource, UnsupportedResource]


class ResourceDirectory(Protocol):
    """Read-only projection lookups owned by the member/post/comment subsystems."""

    async def fetch_member(self, member_id: str) -> Optional[MemberResource]:
        ...

    async def fetch_post(self, post_id: str) -> Optional[PostResource]:
        ...

    async def fetch_comment(self, comment_id: str) -> Optional[CommentResource]:
        ...


class ResourceLocator:
    """Classifies resource ids and re-resolves projections for stored refs."""

    def __init__(self, directory: ResourceDirectory) -> None:
        self.directory = directory

    async def locate(self, resource_id: str) -> Resource:
        resource_id = (resource_id or "").strip()
        if not resource_id:
            return UnsupportedResource(id=resource_id)
        # Precedence when ids collide across kinds: member, post, comment.
        candidates = await asyncio.gather(
            self.directory.fetch_member(resource_id),
            self.directory.fetch_post(resource_id),
            self.directory.fetch_comment(resource_id),
        )
        for candidate in candidates:
            if candidate is not None:
                return candidate
        return UnsupportedResource(id=resource_id)

    async def resolve(self, ref: ResourceRef) -> Optional[ReportableResource]:
        """Fetch the current projection for ``ref``; ``None`` once the resource is gone."""

        if ref.kind is ResourceKind.MEMBER:
            return await self.directory.fetch_member(ref.resource_id)
        if ref.kind is ResourceKind.POST:
            return await self.directory.fetch_post(ref.resource_id)
        if ref.kind is ResourceKind.COMMENT:
            return await self.directory.fetch_comment(ref.resource_id)
        raise ValueError(f"unsupported resource kind: {ref.kind}")


class InMemoryResourceDirectory(ResourceDirectory):
    """Dictionary-backed directory for local development and tests."""

    def __init__(self) -> None:
        self.members: dict[str, MemberResource] = {}
        self.posts: dict[str, PostResource] = {}
        self.comments: dict[str, CommentResource] = {}

    def add_member(self, member_id: str, name: str) -> MemberResource:
        member = MemberResource(id=member_id, name=name)
        self.members[member_id] = member
        return member

    def add_post(self, post_id: str, title: str) -> PostResource:
        post = PostResource(id=post_id, title=title)
        self.posts[post_id] = post
        return post

    def add_comment(self, comment_id: str, content: str) -> CommentResource:
        comment = CommentResource(id=comment_id, content=content)
        self.comments[comment_id] = comment
        return comment

    def remove(self, resource_id: str) -> None:
        self.members.pop(resource_id, None)
        self.posts.pop(resource_id, None)
        self.comments.pop(resource_id, None)

    async def fetch_member(self, member_id: str) -> Optional[MemberResource]:
        return self.members.get(member_id)

    async def fetch_post(self, post_id: str) -> Optional[PostResource]:
        return self.posts.get(post_id)

    async def fetch_comment(self, comment_id: str) -> Optional[CommentResource]:
        return self.comments.get(comment_id)
