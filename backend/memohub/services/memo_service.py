"""
MemoHub Backend — Memo Service (Personal + Team Memos)
=======================================================

What:  CRUD for memos, tag linking, and the shared list query
       (search, tag filter, date range, sort, pagination).
Who:   Memo routes, team memo routes, tag routes (memos-by-tag).

Visibility:
    Personal memo (team_id NULL) → its creator only. Anyone else gets a
    NotFoundError, so the id is not confirmed to exist.
    Team memo → any member of the team; editing and deleting follow
    `can_edit_memo` / `can_delete_memo` (creator, or admin/owner).

Tag linking:
    A memo's tag set is replaced wholesale on update: the memo_tags rows
    are deleted and re-inserted inside the request transaction. Every tag
    id must belong to the caller.

Loading:
    Responses are built from a fresh SELECT with populate_existing, which
    also runs the `tags`/`author` selectin loaders. Relationship attributes
    are never touched on objects that have not been loaded that way.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import Select, delete, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.enums import MemoSortField, SortOrder
from memohub.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from memohub.models.ai_suggestion import AISuggestion
from memohub.models.common import utc_now
from memohub.models.memo import Memo, memo_tags
from memohub.models.tag import Tag
from memohub.schemas.common import PaginationMeta
from memohub.schemas.memo import MemoListResponse, MemoResponse
from memohub.services.base import db_errors
from memohub.services.permissions import can_delete_memo, can_edit_memo
from memohub.services.team_service import team_service

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    MemoSortField.CREATED_AT: Memo.created_at,
    MemoSortField.UPDATED_AT: Memo.updated_at,
    MemoSortField.TITLE: Memo.title,
}


def day_start(value: date) -> datetime:
    """UTC midnight at the start of `value`."""
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def apply_memo_filters(
    query: Select,
    search: Optional[str] = None,
    tag_ids: Sequence[uuid.UUID] = (),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    author_id: Optional[uuid.UUID] = None,
) -> Select:
    """
    Narrow a memo SELECT.

    search     case-insensitive substring of title or content
    tag_ids    the memo must carry every listed tag
    start/end  inclusive UTC calendar days on created_at
    """
    search = (search or "").strip()
    if search:
        query = query.where(
            or_(
                Memo.title.icontains(search, autoescape=True),
                Memo.content.icontains(search, autoescape=True),
            )
        )
    for tag_id in dict.fromkeys(tag_ids):
        query = query.where(
            Memo.id.in_(select(memo_tags.c.memo_id).where(memo_tags.c.tag_id == tag_id))
        )
    if start_date is not None:
        query = query.where(Memo.created_at >= day_start(start_date))
    if end_date is not None:
        query = query.where(Memo.created_at < day_start(end_date) + timedelta(days=1))
    if author_id is not None:
        query = query.where(Memo.user_id == author_id)
    return query


def _validate_text(title: str, content: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError(message="Title is required", field="title")
    if not (content or "").strip():
        raise ValidationError(message="Content is required", field="content")
    return title


class MemoService:
    """Memo persistence and visibility rules."""

    # ── Internals ─────────────────────────────────────────────────────────

    async def _validate_tags(
        self, db: AsyncSession, user_id: uuid.UUID, tag_ids: Iterable[uuid.UUID]
    ) -> List[uuid.UUID]:
        wanted = list(dict.fromkeys(tag_ids))
        if not wanted:
            return []
        result = await db.execute(
            select(Tag.id).where(Tag.id.in_(wanted), Tag.user_id == user_id)
        )
        found = set(result.scalars().all())
        missing = [str(t) for t in wanted if t not in found]
        if missing:
            raise ValidationError(
                message="One or more tags do not exist or belong to another user",
                field="tag_ids",
                context={"invalid_tag_ids": missing},
            )
        return wanted

    async def _relink_tags(
        self, db: AsyncSession, memo_id: uuid.UUID, tag_ids: List[uuid.UUID]
    ) -> None:
        await db.execute(delete(memo_tags).where(memo_tags.c.memo_id == memo_id))
        if tag_ids:
            await db.execute(
                insert(memo_tags),
                [{"memo_id": memo_id, "tag_id": tag_id} for tag_id in tag_ids],
            )

    async def _fetch(self, db: AsyncSession, memo_id: uuid.UUID) -> Optional[Memo]:
        result = await db.execute(
            select(Memo)
            .where(Memo.id == memo_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _page(
        self,
        db: AsyncSession,
        query: Select,
        sort_by: MemoSortField,
        sort_order: SortOrder,
        page: int,
        limit: int,
    ) -> MemoListResponse:
        total = (
            await db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()

        column = _SORT_COLUMNS[sort_by]
        ordering = column.asc() if sort_order is SortOrder.ASC else column.desc()
        result = await db.execute(
            query.order_by(ordering, Memo.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        memos = [MemoResponse.model_validate(m) for m in result.scalars().all()]
        return MemoListResponse(memos=memos, pagination=PaginationMeta.build(page, limit, total))

    async def _insert(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool,
        tag_ids: Iterable[uuid.UUID],
        team_id: Optional[uuid.UUID] = None,
    ) -> MemoResponse:
        title = _validate_text(title, content)
        tag_ids = await self._validate_tags(db, user_id, tag_ids)

        memo = Memo(
            title=title,
            content=content,
            is_public=is_public,
            user_id=user_id,
            team_id=team_id,
        )
        db.add(memo)
        await db.flush()
        await self._relink_tags(db, memo.id, tag_ids)

        logger.info("Memo %s created by %s (team=%s)", memo.id, user_id, team_id)
        return MemoResponse.model_validate(await self._fetch(db, memo.id))

    async def _update(
        self,
        db: AsyncSession,
        memo: Memo,
        user_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool,
        tag_ids: Iterable[uuid.UUID],
    ) -> MemoResponse:
        """Full replacement of text and tags; tags must belong to the memo's author."""
        title = _validate_text(title, content)
        tag_ids = await self._validate_tags(db, memo.user_id, tag_ids)

        memo.title = title
        memo.content = content
        memo.is_public = is_public
        memo.updated_at = utc_now()
        await db.flush()
        await self._relink_tags(db, memo.id, tag_ids)

        logger.info("Memo %s updated by %s", memo.id, user_id)
        return MemoResponse.model_validate(await self._fetch(db, memo.id))

    async def _delete(self, db: AsyncSession, memo_id: uuid.UUID) -> None:
        await db.execute(delete(memo_tags).where(memo_tags.c.memo_id == memo_id))
        await db.execute(delete(AISuggestion).where(AISuggestion.memo_id == memo_id))
        await db.execute(delete(Memo).where(Memo.id == memo_id))

    async def _get_personal(self, db: AsyncSession, user_id: uuid.UUID, memo_id: uuid.UUID) -> Memo:
        memo = await self._fetch(db, memo_id)
        if memo is None or memo.user_id != user_id or memo.team_id is not None:
            raise NotFoundError(resource="memo", resource_id=str(memo_id))
        return memo

    async def _get_team_memo(self, db: AsyncSession, team_id: uuid.UUID, memo_id: uuid.UUID) -> Memo:
        memo = await self._fetch(db, memo_id)
        if memo is None or memo.team_id != team_id:
            raise NotFoundError(resource="memo", resource_id=str(memo_id))
        return memo

    # ── Personal memos ────────────────────────────────────────────────────

    @db_errors("list memos")
    async def list_memos(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        search: Optional[str] = None,
        tag_ids: Sequence[uuid.UUID] = (),
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        sort_by: MemoSortField = MemoSortField.UPDATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        limit: int = 20,
    ) -> MemoListResponse:
        query = select(Memo).where(Memo.user_id == user_id, Memo.team_id.is_(None))
        query = apply_memo_filters(query, search, tag_ids, start_date, end_date)
        return await self._page(db, query, sort_by, sort_order, page, limit)

    @db_errors("list memos for the tag")
    async def list_memos_with_tag(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        tag_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
    ) -> MemoListResponse:
        """Every memo the caller created that carries `tag_id`, team memos included."""
        query = apply_memo_filters(select(Memo).where(Memo.user_id == user_id), tag_ids=[tag_id])
        return await self._page(db, query, MemoSortField.UPDATED_AT, SortOrder.DESC, page, limit)

    @db_errors("load the memo")
    async def get_memo(self, db: AsyncSession, user_id: uuid.UUID, memo_id: uuid.UUID) -> MemoResponse:
        return MemoResponse.model_validate(await self._get_personal(db, user_id, memo_id))

    @db_errors("create the memo")
    async def create_memo(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool = False,
        tag_ids: Iterable[uuid.UUID] = (),
    ) -> MemoResponse:
        return await self._insert(db, user_id, title, content, is_public, tag_ids)

    @db_errors("update the memo")
    async def update_memo(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        memo_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool = False,
        tag_ids: Iterable[uuid.UUID] = (),
    ) -> MemoResponse:
        memo = await self._get_personal(db, user_id, memo_id)
        return await self._update(db, memo, user_id, title, content, is_public, tag_ids)

    @db_errors("delete the memo")
    async def delete_memo(self, db: AsyncSession, user_id: uuid.UUID, memo_id: uuid.UUID) -> None:
        await self._get_personal(db, user_id, memo_id)
        await self._delete(db, memo_id)
        logger.info("Memo %s deleted by %s", memo_id, user_id)

    # ── Team memos ────────────────────────────────────────────────────────

    @db_errors("list team memos")
    async def list_team_memos(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        search: Optional[str] = None,
        tag_ids: Sequence[uuid.UUID] = (),
        author_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        sort_by: MemoSortField = MemoSortField.UPDATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
        page: int = 1,
        limit: int = 20,
    ) -> MemoListResponse:
        await team_service.require(db, team_id, user_id, "can_view_team")
        query = select(Memo).where(Memo.team_id == team_id)
        query = apply_memo_filters(query, search, tag_ids, start_date, end_date, author_id)
        return await self._page(db, query, sort_by, sort_order, page, limit)

    @db_errors("load the team memo")
    async def get_team_memo(
        self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID, memo_id: uuid.UUID
    ) -> MemoResponse:
        await team_service.require(db, team_id, user_id, "can_view_team")
        return MemoResponse.model_validate(await self._get_team_memo(db, team_id, memo_id))

    @db_errors("create the team memo")
    async def create_team_memo(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool = False,
        tag_ids: Iterable[uuid.UUID] = (),
    ) -> MemoResponse:
        await team_service.require(db, team_id, user_id, "can_create_memos")
        return await self._insert(db, user_id, title, content, is_public, tag_ids, team_id=team_id)

    @db_errors("update the team memo")
    async def update_team_memo(
        self,
        db: AsyncSession,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        memo_id: uuid.UUID,
        title: str,
        content: str,
        is_public: bool = False,
        tag_ids: Iterable[uuid.UUID] = (),
    ) -> MemoResponse:
        access = await team_service.require(db, team_id, user_id, "can_view_team")
        memo = await self._get_team_memo(db, team_id, memo_id)
        if not can_edit_memo(access.role, is_creator=memo.user_id == user_id):
            raise PermissionDeniedError(
                message="You can only edit your own memos in this team",
                action="can_edit_memos",
            )
        return await self._update(db, memo, user_id, title, content, is_public, tag_ids)

    @db_errors("delete the team memo")
    async def delete_team_memo(
        self, db: AsyncSession, team_id: uuid.UUID, user_id: uuid.UUID, memo_id: uuid.UUID
    ) -> None:
        access = await team_service.require(db, team_id, user_id, "can_view_team")
        memo = await self._get_team_memo(db, team_id, memo_id)
        if not can_delete_memo(access.role, is_creator=memo.user_id == user_id):
            raise PermissionDeniedError(
                message="You can only delete your own memos in this team",
                action="can_delete_memos",
            )
        await self._delete(db, memo_id)
        logger.info("Team %s memo %s deleted by %s", team_id, memo_id, user_id)

    # ── Visibility for other services ─────────────────────────────────────

    async def get_visible_memo(self, db: AsyncSession, user_id: uuid.UUID, memo_id: uuid.UUID) -> Memo:
        """The memo if the caller created it or belongs to its team; NotFoundError otherwise."""
        memo = await self._fetch(db, memo_id)
        if memo is None:
            raise NotFoundError(resource="memo", resource_id=str(memo_id))
        if memo.user_id == user_id:
            return memo
        if memo.team_id is not None and await team_service.get_membership(db, memo.team_id, user_id):
            return memo
        raise NotFoundError(resource="memo", resource_id=str(memo_id))


memo_service = MemoService()
