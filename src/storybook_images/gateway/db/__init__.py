from storybook_images.gateway.db.models import Base, Story, StoryChapter, StoryImage
from storybook_images.gateway.db.session import get_db, get_session_factory, init_db

__all__ = [
    "Base",
    "Story",
    "StoryChapter",
    "StoryImage",
    "get_db",
    "get_session_factory",
    "init_db",
]
