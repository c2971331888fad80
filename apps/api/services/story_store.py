"""Story persistence behind one interface with memory and database backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from database import DATABASE_ERRORS
from models.story import Story
from services.errors import InvalidTransitionError, NotFoundError, StorageError
from services.records import StoryRecord, parse_datetime
from services.snapshot import snapshot_for

logger = logging.getLogger(__name__)

MUTABLE_STORY_COLUMNS = ("title", "content", "category", "status", "reviewed_at")


class StoryStore(ABC):
    """Canonical owner of submitted stories. ``list`` carries no ordering."""

    @abstractmethod
    async def save(self, story: StoryRecord) -> StoryRecord:
        ...

    @abstractmethod
    async def get(self, story_id: str) -> Optional[StoryRecord]:
        ...

    @abstractmethod
    async def list(self) -> List[StoryRecord]:
        ...

    @abstractmethod
    async def update_status(
        self,
        story_id: str,
        status: str,
        reviewed_at: datetime,
        from_statuses: Optional[Iterable[str]] = None,
    ) -> StoryRecord:
        """Transition one story or raise ``NotFoundError``; never a partial write.

        With ``from_statuses`` the check and the write are one atomic step:
        a story whose current status is not listed is left untouched and
        ``InvalidTransitionError`` is raised.
        """


def _transition_error(story_id: str, current: str, requested: str) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Story {story_id} was already {current}; it cannot be changed to {requested}.",
        details={"current_status": current, "requested_status": requested},
    )


class MemoryStoryStore(StoryStore):
    """Per-process stories, optionally shadowed by a JSON snapshot file."""

    def __init__(self, snapshot_path: Optional[Union[str, Path]] = None):
        self._stories: Dict[str, StoryRecord] = {}
        self._snapshot = snapshot_for(snapshot_path)

    def hydrate(self) -> int:
        """Load the snapshot left by a previous process, if any."""
        if self._snapshot is None:
            return 0
        loaded = 0
        for item in self._snapshot.load():
            try:
                story = StoryRecord.from_dict(item)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed story in snapshot: %s", exc)
                continue
            self._stories[story.id] = story
            loaded += 1
        return loaded

    def _persist(self) -> None:
        if self._snapshot is not None:
            self._snapshot.write([story.to_dict() for story in self._stories.values()])

    async def save(self, story: StoryRecord) -> StoryRecord:
        self._stories[story.id] = replace(story)
        self._persist()
        return replace(story)

    async def get(self, story_id: str) -> Optional[StoryRecord]:
        story = self._stories.get(story_id)
        return replace(story) if story else None

    async def list(self) -> List[StoryRecord]:
        return [replace(story) for story in self._stories.values()]

    async def update_status(
        self,
        story_id: str,
        status: str,
        reviewed_at: datetime,
        from_statuses: Optional[Iterable[str]] = None,
    ) -> StoryRecord:
        # No await between the check and the write, so this is atomic on the event loop.
        story = self._stories.get(story_id)
        if story is None:
            raise NotFoundError(f"Story {story_id} not found.")
        if from_statuses is not None and story.status not in set(from_statuses):
            raise _transition_error(story_id, story.status, status)
        updated = replace(story, status=status, reviewed_at=reviewed_at)
        self._stories[story_id] = updated
        self._persist()
        return replace(updated)


def _row_to_record(row: Story) -> StoryRecord:
    return StoryRecord(
        id=row.id,
        title=row.title,
        content=row.content,
        category=row.category,
        status=row.status,
        timestamp=parse_datetime(row.timestamp),
        reviewed_at=parse_datetime(row.reviewed_at),
    )


class DatabaseStoryStore(StoryStore):
    """Durable stories in the ``stories`` table, upserted by id."""

    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    @staticmethod
    def _upsert_statement(session: AsyncSession, values: Dict[str, object]):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(Story).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite_insert(Story).values(**values)
        else:
            return None
        return stmt.on_conflict_do_update(
            index_elements=[Story.id],
            set_={column: stmt.excluded[column] for column in MUTABLE_STORY_COLUMNS},
        )

    async def save(self, story: StoryRecord) -> StoryRecord:
        values = {
            "id": story.id,
            "title": story.title,
            "content": story.content,
            "category": story.category,
            "status": story.status,
            "timestamp": story.timestamp,
            "reviewed_at": story.reviewed_at,
        }
        try:
            async with self._session_maker() as session:
                stmt = self._upsert_statement(session, values)
                if stmt is not None:
                    await session.execute(stmt)
                else:
                    await session.merge(Story(**values))
                await session.commit()
        except DATABASE_ERRORS as exc:
            logger.exception("Story %s could not be saved", story.id)
            raise StorageError("Story storage is unavailable. Please try again later.") from exc
        return replace(story)

    async def get(self, story_id: str) -> Optional[StoryRecord]:
        try:
            async with self._session_maker() as session:
                row = await session.get(Story, story_id)
                return _row_to_record(row) if row else None
        except DATABASE_ERRORS as exc:
            raise StorageError("Story storage is unavailable.") from exc

    async def list(self) -> List[StoryRecord]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(Story))
                return [_row_to_record(row) for row in result.scalars().all()]
        except DATABASE_ERRORS as exc:
            raise StorageError("Story storage is unavailable.") from exc

    async def update_status(
        self,
        story_id: str,
        status: str,
        reviewed_at: datetime,
        from_statuses: Optional[Iterable[str]] = None,
    ) -> StoryRecord:
        stmt = update(Story).where(Story.id == story_id)
        if from_statuses is not None:
            stmt = stmt.where(Story.status.in_(list(from_statuses)))
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt.values(status=status, reviewed_at=reviewed_at))
                if result.rowcount == 0:
                    await session.rollback()
                    current = await session.get(Story, story_id)
                    if current is None:
                        raise NotFoundError(f"Story {story_id} not found.")
                    raise _transition_error(story_id, current.status, status)
                await session.commit()
                row = await session.get(Story, story_id)
                return _row_to_record(row)
        except DATABASE_ERRORS as exc:
            logger.exception("Story %s status update failed", story_id)
            raise StorageError("Story storage is unavailable. Please try again later.") from exc
