"""
MemoHub Backend — Tag Service
==============================

Per-user tags. Names are unique per owner (case-sensitive, matching the
uq_tags_user_name constraint); colours are #RRGGBB.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.exceptions import DuplicateNameError, NotFoundError, ValidationError
from memohub.models.memo import memo_tags
from memohub.models.tag import DEFAULT_TAG_COLOR, Tag
from memohub.schemas.tag import TagResponse, TagWithCountResponse
from memohub.services.base import db_errors

logger = logging.getLogger(__name__)


class TagService:

    async def _get_owned(self, db: AsyncSession, user_id: uuid.UUID, tag_id: uuid.UUID) -> Tag:
        tag = await db.get(Tag, tag_id)
        if tag is None or tag.user_id != user_id:
            raise NotFoundError(resource="tag", resource_id=str(tag_id))
        return tag

    async def _ensure_unique(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        name: str,
        exclude_tag_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Tag.id).where(Tag.user_id == user_id, Tag.name == name)
        if exclude_tag_id is not None:
            query = query.where(Tag.id != exclude_tag_id)
        if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
            raise DuplicateNameError(resource="tag", name=name)

    @db_errors("list tags")
    async def list_tags(self, db: AsyncSession, user_id: uuid.UUID) -> List[TagWithCountResponse]:
        """The caller's tags, alphabetical, each with the number of memos using it."""
        result = await db.execute(
            select(Tag, func.count(memo_tags.c.memo_id))
            .outerjoin(memo_tags, memo_tags.c.tag_id == Tag.id)
            .where(Tag.user_id == user_id)
            .group_by(Tag.id)
            .order_by(Tag.name.asc())
        )
        return [
            TagWithCountResponse(
                id=tag.id,
                name=tag.name,
                color=tag.color,
                created_at=tag.created_at,
                memo_count=count,
            )
            for tag, count in result.all()
        ]

    @db_errors("create the tag")
    async def create_tag(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        name: str,
        color: Optional[str] = None,
    ) -> TagResponse:
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Tag name is required", field="name")
        await self._ensure_unique(db, user_id, name)

        tag = Tag(name=name, color=color or DEFAULT_TAG_COLOR, user_id=user_id)
        try:
            async with db.begin_nested():
                db.add(tag)
                await db.flush()
        except IntegrityError:
            raise DuplicateNameError(resource="tag", name=name)

        logger.info("Tag %s created by %s", tag.id, user_id)
        return TagResponse.model_validate(tag)

    @db_errors("update the tag")
    async def update_tag(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        tag_id: uuid.UUID,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> TagResponse:
        tag = await self._get_owned(db, user_id, tag_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError(message="Tag name is required", field="name")
            if name != tag.name:
                await self._ensure_unique(db, user_id, name, exclude_tag_id=tag.id)
                tag.name = name
        if color is not None:
            tag.color = color

        await db.flush()
        return TagResponse.model_validate(tag)

    @db_errors("delete the tag")
    async def delete_tag(self, db: AsyncSession, user_id: uuid.UUID, tag_id: uuid.UUID) -> None:
        await self._get_owned(db, user_id, tag_id)
        await db.execute(delete(memo_tags).where(memo_tags.c.tag_id == tag_id))
        await db.execute(delete(Tag).where(Tag.id == tag_id))
        logger.info("Tag %s deleted by %s", tag_id, user_id)

    async def ensure_owned(self, db: AsyncSession, user_id: uuid.UUID, tag_id: uuid.UUID) -> None:
        """NotFoundError unless the caller owns the tag."""
        await self._get_owned(db, user_id, tag_id)


tag_service = TagService()
