"""Story image metadata persistence.

``upsert_by_key`` is insert-first: the partial unique indexes on
``story_images`` decide whether a row for the key already exists, so two
concurrent writers for the same key end with one row instead of two.
"""

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Literal

from sqlalchemy import ColumnElement, and_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storybook_images.artifacts import ArtifactKey, ImageType
from storybook_images.errors import PersistenceError
from storybook_images.gateway.db.models import StoryImage
from storybook_images.gateway.log_config import logger

IntegrityViolation = Literal["unique", "foreign_key", "other"]

_KEY_COLUMNS = frozenset({"id", "story_id", "chapter_id", "image_type", "created_at", "updated_at"})

# SQLSTATE codes (PostgreSQL) and extended result names (SQLite, Python 3.11+).
_UNIQUE_CODES = frozenset({"23505", "SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})
_FOREIGN_KEY_CODES = frozenset({"23503", "SQLITE_CONSTRAINT_FOREIGNKEY"})


def classify_integrity_error(exc: IntegrityError) -> IntegrityViolation:
    """Tell unique violations from foreign-key violations using driver error codes."""
    orig = exc.orig
    code = (
        getattr(orig, "sqlstate", None)
        or getattr(orig, "pgcode", None)
        or getattr(orig, "sqlite_errorname", None)
    )
    if code in _UNIQUE_CODES:
        return "unique"
    if code in _FOREIGN_KEY_CODES:
        return "foreign_key"
    return "other"


class _ForeignKeyViolation(Exception):
    pass


def _key_filter(key: ArtifactKey) -> ColumnElement[bool]:
    chapter_clause = StoryImage.chapter_id.is_(None) if key.chapter_id is None else StoryImage.chapter_id == key.chapter_id
    return and_(
        StoryImage.story_id == key.story_id,
        StoryImage.image_type == key.image_type.value,
        chapter_clause,
    )


class StoryImageRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def upsert_by_key(self, key: ArtifactKey, values: dict[str, Any]) -> StoryImage:
        """Insert the row for ``key`` or update the existing one in place.

        A chapter id that does not exist is dropped and the row is written at
        story level instead.
        """
        columns = {name: value for name, value in values.items() if name not in _KEY_COLUMNS}
        try:
            return self._insert_or_update(key, columns)
        except _ForeignKeyViolation as exc:
            if key.chapter_id is None:
                raise PersistenceError(f"Foreign key violation writing story image for {key.story_id}") from exc
            logger.warning(
                "Chapter %s not found for story %s; storing %s at story level",
                key.chapter_id,
                key.story_id,
                key.image_type.value,
            )

        try:
            return self._insert_or_update(key.story_level(), columns)
        except _ForeignKeyViolation as exc:
            raise PersistenceError(f"Foreign key violation writing story image for {key.story_id}") from exc

    def _insert_or_update(self, key: ArtifactKey, columns: dict[str, Any]) -> StoryImage:
        row = StoryImage(
            id=str(uuid.uuid4()),
            story_id=key.story_id,
            chapter_id=key.chapter_id,
            image_type=key.image_type.value,
            **columns,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            violation = classify_integrity_error(exc)
            if violation == "foreign_key":
                raise _ForeignKeyViolation from exc
            if violation != "unique":
                raise PersistenceError(f"Failed to write story image metadata: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to write story image metadata: {exc}") from exc
        else:
            logger.info("Inserted story image %s for %s", row.id, key)
            return row

        return self._update_existing(key, columns)

    def _update_existing(self, key: ArtifactKey, columns: dict[str, Any]) -> StoryImage:
        stmt = (
            update(StoryImage)
            .where(_key_filter(key))
            .values(**columns, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if classify_integrity_error(exc) == "foreign_key":
                raise _ForeignKeyViolation from exc
            raise PersistenceError(f"Failed to update story image metadata: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to update story image metadata: {exc}") from exc

        if result.rowcount == 0:
            raise PersistenceError(f"Story image row for {key} conflicted on insert but was not found for update")

        row = self.db.scalars(select(StoryImage).where(_key_filter(key))).one()
        self.db.refresh(row)
        logger.info("Updated story image %s for %s", row.id, key)
        return row

    def get_by_key(self, key: ArtifactKey) -> StoryImage | None:
        return self.db.scalars(select(StoryImage).where(_key_filter(key))).first()

    def find_for_artifact(self, story_id: str, chapter_id: str | None, image_type: ImageType | str) -> StoryImage | None:
        """Exact chapter row first, story-level row otherwise."""
        key = ArtifactKey.build(story_id, chapter_id, image_type)
        story_level = self.get_by_key(key.story_level())
        if key.chapter_id is None:
            return story_level

        exact = self.get_by_key(key)
        if exact is not None and story_level is not None:
            logger.warning(
                "Story %s has both chapter-level and story-level %s images; using chapter %s",
                key.story_id,
                key.image_type.value,
                key.chapter_id,
            )
        return exact or story_level

    def list_for_story(self, story_id: str, image_types: Iterable[ImageType | str] | None = None) -> list[StoryImage]:
        stmt = select(StoryImage).where(StoryImage.story_id == story_id)
        if image_types:
            stmt = stmt.where(StoryImage.image_type.in_([ImageType(value).value for value in image_types]))
        stmt = stmt.order_by(StoryImage.image_type, StoryImage.chapter_id, StoryImage.created_at)
        return list(self.db.scalars(stmt))
