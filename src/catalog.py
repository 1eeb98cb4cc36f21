"""
In-memory video catalog: profiles, channels, categories and videos.

Stands in for the application's database. Handlers run on the event loop, so
the store is only touched from one thread.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    "Mathematics",
    "Science",
    "Computer Science",
    "History",
    "Languages",
    "Engineering",
]

ALL_CATEGORIES = "All"
HANDLE_MAX_LENGTH = 50

STATUS_READY = "ready"
STATUS_PROCESSING = "processing"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Profile:
    id: str
    user_id: str
    username: str


@dataclass
class Channel:
    id: str
    name: str
    handle: str
    avatar: Optional[str] = None
    profile_id: Optional[str] = None


@dataclass
class Category:
    id: str
    name: str
    slug: str


@dataclass
class Video:
    id: str
    title: str
    channel_id: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    youtube_url: Optional[str] = None
    duration: Optional[int] = None  # seconds
    views: int = 0
    status: str = STATUS_READY
    category_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


def sanitize_handle(name: str) -> str:
    """'Khan Academy!' -> 'khan-academy'"""
    sanitized = re.sub(r"[^a-z0-9\s]", "", name.lower())
    sanitized = re.sub(r"\s+", "-", sanitized)
    return sanitized[:HANDLE_MAX_LENGTH]


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class Catalog:
    def __init__(self, categories: Optional[List[str]] = None):
        self.profiles: Dict[str, Profile] = {}
        self.channels: Dict[str, Channel] = {}
        self.categories: Dict[str, Category] = {}
        self.videos: Dict[str, Video] = {}

        for name in DEFAULT_CATEGORIES if categories is None else categories:
            self.add_category(name)

    # --- profiles ---

    def find_profile_by_user(self, user_id: str) -> Optional[Profile]:
        return next((p for p in self.profiles.values() if p.user_id == user_id), None)

    def _username_taken(self, username: str) -> bool:
        return any(p.username == username for p in self.profiles.values())

    def get_or_create_profile(self, user_id: str, email: Optional[str] = None) -> Profile:
        profile = self.find_profile_by_user(user_id)
        if profile:
            return profile

        base = email.split("@")[0] if email else f"user_{user_id[:8]}"
        username = base
        counter = 1
        while self._username_taken(username):
            username = f"{base}_{counter}"
            counter += 1

        profile = Profile(id=_new_id(), user_id=user_id, username=username)
        self.profiles[profile.id] = profile
        logger.info(f"Created profile {username!r} for user {user_id}")
        return profile

    # --- channels ---

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        return self.channels.get(channel_id)

    def _handle_taken(self, handle: str) -> bool:
        return any(c.handle == handle for c in self.channels.values())

    def _unique_handle(self, base: str) -> str:
        handle = f"@{base}"
        counter = 1
        while self._handle_taken(handle):
            handle = f"@{base}_{counter}"
            counter += 1
        return handle

    def get_or_create_youtube_channel(self, name: str, avatar: Optional[str] = None) -> Channel:
        """
        Finds a YouTube channel by exact name or creates it. An existing
        channel that has no avatar yet picks up the one supplied.
        """
        channel = next((c for c in self.channels.values() if c.name == name), None)
        if channel is None:
            channel = Channel(
                id=_new_id(),
                name=name,
                handle=self._unique_handle(sanitize_handle(name)),
                avatar=avatar or None,
            )
            self.channels[channel.id] = channel
            logger.info(f"Created channel {channel.handle} for {name!r}")
        elif not channel.avatar and avatar:
            channel.avatar = avatar
            logger.info(f"Backfilled avatar for channel {channel.handle}")
        return channel

    def get_or_create_default_channel(self, profile: Profile) -> Channel:
        """The channel file uploads land in: the profile's first channel."""
        channel = next((c for c in self.channels.values() if c.profile_id == profile.id), None)
        if channel is None:
            channel = Channel(
                id=_new_id(),
                name=f"{profile.username}'s Channel",
                handle=self._unique_handle(profile.username),
                profile_id=profile.id,
            )
            self.channels[channel.id] = channel
        return channel

    # --- categories ---

    def add_category(self, name: str) -> Category:
        slug = slugify(name)
        existing = self.find_category(slug)
        if existing:
            return existing
        category = Category(id=_new_id(), name=name, slug=slug)
        self.categories[category.id] = category
        return category

    def find_category(self, slug: str) -> Optional[Category]:
        return next((c for c in self.categories.values() if c.slug == slug), None)

    def list_categories(self) -> List[Category]:
        return list(self.categories.values())

    # --- videos ---

    def add_video(self, title: str, channel: Channel, **fields) -> Video:
        video = Video(id=_new_id(), title=title, channel_id=channel.id, **fields)
        self.videos[video.id] = video
        logger.info(f"Stored video {video.id} ({video.status}) on channel {channel.handle}")
        return video

    def get_video(self, video_id: str) -> Optional[Video]:
        return self.videos.get(video_id)

    def list_videos(self, category_slug: Optional[str] = None) -> List[Video]:
        """Newest first. None or 'All' lists every category."""
        videos = list(self.videos.values())
        if category_slug and category_slug != ALL_CATEGORIES:
            category = self.find_category(category_slug)
            if category is None:
                return []
            videos = [v for v in videos if v.category_id == category.id]
        return sorted(videos, key=lambda v: v.created_at, reverse=True)
