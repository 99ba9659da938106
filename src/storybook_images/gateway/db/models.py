import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Story(Base):
    """Story owned by a user. Only the columns the image pipeline reads."""

    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str | None] = mapped_column(String, index=True)
    title: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    chapters = relationship("StoryChapter", back_populates="story", cascade="all, delete-orphan")


class StoryChapter(Base):
    __tablename__ = "story_chapters"

    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: str(uuid.uuid4()))
    story_id: Mapped[str] = mapped_column(ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    story = relationship("Story", back_populates="chapters")


class StoryImage(Base):
    """Metadata of one normalized image; one row per (story, chapter or none, image type)."""

    __tablename__ = "story_images"
    __table_args__ = (
        Index(
            "uq_story_images_story_level",
            "story_id",
            "image_type",
            unique=True,
            sqlite_where=text("chapter_id IS NULL"),
            postgresql_where=text("chapter_id IS NULL"),
        ),
        Index(
            "uq_story_images_chapter_level",
            "story_id",
            "chapter_id",
            "image_type",
            unique=True,
            sqlite_where=text("chapter_id IS NOT NULL"),
            postgresql_where=text("chapter_id IS NOT NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: str(uuid.uuid4()))
    # Stories may live in another service's database, so no foreign key here.
    story_id: Mapped[str] = mapped_column(String, index=True)
    chapter_id: Mapped[str | None] = mapped_column(
        ForeignKey("story_chapters.id", ondelete="SET NULL"), nullable=True, index=True
    )
    image_type: Mapped[str] = mapped_column(String)
    storage_path: Mapped[str | None] = mapped_column(String)
    storage_bucket: Mapped[str | None] = mapped_column(String)
    provider: Mapped[str] = mapped_column(String)
    fallback_used: Mapped[bool] = mapped_column(Boolean, default=False)
    mime_type: Mapped[str] = mapped_column(String)
    original_resolution: Mapped[str | None] = mapped_column(String)
    final_resolution: Mapped[str | None] = mapped_column(String)
    resized_from: Mapped[str | None] = mapped_column(String)
    resized_to: Mapped[str | None] = mapped_column(String)
    latency_ms: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String, default="uploaded")
    style_id: Mapped[str | None] = mapped_column(String)
    openai_style: Mapped[str | None] = mapped_column(String)
    user_id: Mapped[str | None] = mapped_column(String, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "story_id": self.story_id,
            "chapter_id": self.chapter_id,
            "image_type": self.image_type,
            "storage_path": self.storage_path,
            "storage_bucket": self.storage_bucket,
            "provider": self.provider,
            "fallback_used": self.fallback_used,
            "mime_type": self.mime_type,
            "original_resolution": self.original_resolution,
            "final_resolution": self.final_resolution,
            "resized_from": self.resized_from,
            "resized_to": self.resized_to,
            "latency_ms": self.latency_ms,
            "status": self.status,
            "style_id": self.style_id,
            "openai_style": self.openai_style,
            "user_id": self.user_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
