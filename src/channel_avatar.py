"""
Channel avatar resolution.

Turns a YouTube channel URL (plus, when known, one of the channel's video ids)
into the URL of the channel's avatar image. Every step is best effort: a step
that fails or finds nothing hands over to the next one, and the only outcomes
a caller ever sees are an avatar URL or None.

Keyed chain (YouTube Data API, needs an API key):
    video metadata -> URL pattern -> forHandle -> forUsername -> search
    -> channels.list thumbnails (high > medium > default)

Unkeyed fallback (HTML scraping):
    /channel/<id>/about page -> original channel URL
"""

import enum
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

import httplib2
import requests
from googleapiclient.errors import Error as GoogleApiError
from googleapiclient.errors import HttpError

from config import Settings
from youtube import build_youtube_service

logger = logging.getLogger(__name__)

STRONG_ID_PREFIX = "UC"

QUOTA_REASONS = {
    "quotaExceeded",
    "dailyLimitExceeded",
    "rateLimitExceeded",
    "userRateLimitExceeded",
}

THUMBNAIL_PREFERENCE = ("high", "medium", "default")

# A matched avatar containing this marker is YouTube's grey placeholder.
PLACEHOLDER_MARKER = "default"

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Referer": "https://www.youtube.com/",
}

DOCUMENT_CHUNK_SIZE = 64 * 1024

STRONG_CHANNEL_PATTERN = re.compile(r"youtube\.com/channel/(UC[a-zA-Z0-9_-]+)")
CUSTOM_NAME_PATTERN = re.compile(r"youtube\.com/c/([a-zA-Z0-9_-]+)")
USERNAME_PATTERN = re.compile(r"youtube\.com/user/([a-zA-Z0-9_-]+)")
HANDLE_PATTERN = re.compile(r"youtube\.com/@([a-zA-Z0-9_.-]+)")

OG_IMAGE_PATTERN = re.compile(r'<meta\s+property="og:image"\s+content="([^"]+)"', re.IGNORECASE)
EMBEDDED_AVATAR_PATTERNS = [
    re.compile(r"https://yt3\.(?:ggpht\.com|googleusercontent\.com)/[^\"'\s<>]+=s\d+-c-k-c0x00ffffff-no-rj", re.IGNORECASE),
    re.compile(r'"avatar":\s*{\s*"thumbnails":\s*\[\s*{\s*"url":\s*"([^"]+)"', re.IGNORECASE),
    re.compile(r'"channelAvatar":\s*{\s*"thumbnails":\s*\[\s*{\s*"url":\s*"([^"]+)"', re.IGNORECASE),
]


class Strategy(str, enum.Enum):
    VIDEO_METADATA = "video_metadata"
    URL_PATTERN = "url_pattern"
    HANDLE = "handle"
    USERNAME = "username"
    SEARCH = "search"
    SCRAPE_ABOUT = "scrape_about"
    SCRAPE_ORIGINAL = "scrape_original"


class KeyedStatus(str, enum.Enum):
    # No API key configured, keyed strategies never ran.
    UNAVAILABLE = "unavailable"
    # Keyed strategies ran and none produced an avatar.
    EXHAUSTED = "exhausted"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class ChannelReference:
    """A channel named by a URL, either by strong id (UC...) or by a weak name."""

    id: str
    is_channel_id: bool

    @property
    def is_strong(self) -> bool:
        return self.is_channel_id and is_strong_channel_id(self.id)


@dataclass
class AvatarResolution:
    avatar_url: Optional[str] = None
    channel_id: Optional[str] = None
    strategy: Optional[Strategy] = None
    keyed_status: KeyedStatus = KeyedStatus.UNAVAILABLE
    attempted: List[Strategy] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.avatar_url is not None


def first_result(steps: Iterable[Callable[[], Optional[str]]]) -> Optional[str]:
    """Runs each step in order and returns the first non-empty result."""
    for step in steps:
        result = step()
        if result:
            return result
    return None


def is_strong_channel_id(channel_id: Optional[str]) -> bool:
    return bool(channel_id) and channel_id.startswith(STRONG_ID_PREFIX)


def extract_channel_reference(url: Optional[str]) -> Optional[ChannelReference]:
    """
    Reads a channel reference out of a channel URL.

    /channel/UC... is always a channel id. /c/<name> is a channel id only when
    it carries the UC prefix. /user/<name> and /@<handle> are weak names.
    """
    if not url:
        return None

    match = STRONG_CHANNEL_PATTERN.search(url)
    if match:
        return ChannelReference(match.group(1), True)

    match = CUSTOM_NAME_PATTERN.search(url)
    if match:
        name = match.group(1)
        return ChannelReference(name, is_strong_channel_id(name))

    match = USERNAME_PATTERN.search(url)
    if match:
        return ChannelReference(match.group(1), False)

    match = HANDLE_PATTERN.search(url)
    if match:
        return ChannelReference(match.group(1), False)

    return None


# --- Keyed lookups (YouTube Data API) ---


def _is_quota_error(error: HttpError) -> bool:
    if error.resp.status != 403:
        return False
    try:
        content = error.content.decode("utf-8") if isinstance(error.content, bytes) else error.content
        reason = json.loads(content)["error"]["errors"][0]["reason"]
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return False
    return reason in QUOTA_REASONS


def _execute(request, description: str) -> Optional[dict]:
    """Executes one API request. Any failure is logged and reported as None."""
    try:
        response = request.execute()
    except HttpError as e:
        if _is_quota_error(e):
            logger.warning(f"YouTube API quota or rate limit hit during {description}: {e}")
        else:
            logger.info(f"YouTube API error during {description}: status={e.resp.status}")
        return None
    except (GoogleApiError, httplib2.HttpLib2Error, OSError, ValueError) as e:
        logger.info(f"YouTube API request failed during {description}: {e}")
        return None

    if not isinstance(response, dict):
        logger.info(f"Malformed YouTube API response during {description}")
        return None
    return response


def _first_item(response: Optional[dict]) -> Optional[dict]:
    if not response:
        return None
    items = response.get("items")
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return None
    return items[0]


def channel_id_from_video(service, video_id: str) -> Optional[str]:
    """The owning channel of a video, read from videos.list."""
    item = _first_item(
        _execute(service.videos().list(part="snippet", id=video_id), f"video lookup {video_id}")
    )
    if not item:
        return None
    snippet = item.get("snippet")
    if not isinstance(snippet, dict):
        return None
    return snippet.get("channelId") or None


def channel_id_for_handle(service, handle: str) -> Optional[str]:
    item = _first_item(
        _execute(service.channels().list(part="snippet", forHandle=handle), f"handle lookup {handle}")
    )
    return (item or {}).get("id") or None


def channel_id_for_username(service, username: str) -> Optional[str]:
    # forUsername is deprecated upstream but still answers for old /user/ channels
    item = _first_item(
        _execute(
            service.channels().list(part="snippet", forUsername=username),
            f"username lookup {username}",
        )
    )
    return (item or {}).get("id") or None


def channel_id_from_search(service, name: str) -> Optional[str]:
    """Top channel search hit for @<name>."""
    item = _first_item(
        _execute(
            service.search().list(part="snippet", q=f"@{name}", type="channel", maxResults=1),
            f"channel search {name}",
        )
    )
    if not item:
        return None
    item_id = item.get("id")
    if not isinstance(item_id, dict):
        return None
    return item_id.get("channelId") or None


def select_thumbnail(thumbnails) -> Optional[str]:
    """Picks the best offered thumbnail url: high, then medium, then default."""
    if not isinstance(thumbnails, dict):
        return None
    for quality in THUMBNAIL_PREFERENCE:
        variant = thumbnails.get(quality)
        if isinstance(variant, dict) and variant.get("url"):
            return variant["url"]
    return None


def fetch_channel_avatar(service, channel_id: str) -> Optional[str]:
    item = _first_item(
        _execute(service.channels().list(part="snippet", id=channel_id), f"avatar lookup {channel_id}")
    )
    if not item:
        logger.info(f"No channel record returned for {channel_id}")
        return None
    snippet = item.get("snippet")
    if not isinstance(snippet, dict):
        return None
    return select_thumbnail(snippet.get("thumbnails"))


# --- Unkeyed fallback (HTML scraping) ---


def find_avatar_in_html(html: str) -> Optional[str]:
    """
    Searches channel page markup for an avatar url: og:image first, then the
    embedded yt3 / JSON avatar patterns. Placeholder images are skipped.
    """
    match = OG_IMAGE_PATTERN.search(html)
    if match and PLACEHOLDER_MARKER not in match.group(1):
        return match.group(1)

    for pattern in EMBEDDED_AVATAR_PATTERNS:
        match = pattern.search(html)
        if not match:
            continue
        candidate = match.group(1) if pattern.groups else match.group(0)
        if candidate and PLACEHOLDER_MARKER not in candidate:
            return candidate
    return None


def fetch_document(session: requests.Session, url: str, timeout: float) -> Optional[str]:
    """
    Fetches a page as text, or None on any failure.

    The requests timeout only bounds each socket wait, so a server trickling
    bytes could hold the call open indefinitely. The body is streamed instead
    and abandoned once `timeout` seconds have passed in total.
    """
    deadline = time.monotonic() + timeout
    try:
        response = session.get(url, headers=BROWSER_HEADERS, timeout=timeout, stream=True)
    except requests.RequestException as e:
        logger.info(f"Fetching {url} failed: {e}")
        return None

    try:
        if not response.ok:
            logger.info(f"Fetching {url} returned status {response.status_code}")
            return None

        body = bytearray()
        for chunk in response.iter_content(chunk_size=DOCUMENT_CHUNK_SIZE):
            if time.monotonic() > deadline:
                logger.info(f"Fetching {url} exceeded {timeout}s, giving up")
                return None
            body.extend(chunk)
        return body.decode(response.encoding or "utf-8", errors="replace")
    except requests.RequestException as e:
        logger.info(f"Reading {url} failed: {e}")
        return None
    finally:
        response.close()


def about_page_url(channel_id: str) -> str:
    return f"https://www.youtube.com/channel/{channel_id}/about"


# --- Resolver ---


class ChannelAvatarResolver:
    """
    Resolves channel avatars. Holds configuration only; nothing is kept
    between calls.

    Args:
        settings: supplies the API key and scraping behaviour.
        service_factory: builds a YouTube Data API resource from an API key.
            Called lazily, and never when no key is configured.
        session: requests session used for scraping.
    """

    def __init__(
        self,
        settings: Settings,
        service_factory: Callable[[str], object] = build_youtube_service,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings
        self.service_factory = service_factory
        self.session = session or requests.Session()

    def resolve(
        self,
        channel_url: Optional[str],
        author_url: Optional[str] = None,
        video_id: Optional[str] = None,
    ) -> Optional[str]:
        return self.resolve_with_details(channel_url, author_url, video_id).avatar_url

    def resolve_with_details(
        self,
        channel_url: Optional[str],
        author_url: Optional[str] = None,
        video_id: Optional[str] = None,
    ) -> AvatarResolution:
        resolution = AvatarResolution()
        try:
            reference = extract_channel_reference(channel_url) or extract_channel_reference(author_url)

            if self.settings.youtube_available:
                self._resolve_keyed(resolution, reference, video_id)
            else:
                logger.info("YOUTUBE_API_KEY not set, channel avatar lookup falls back to scraping")

            if self._should_scrape(resolution):
                self._resolve_scraped(resolution, reference, channel_url, author_url)
        except Exception as e:
            # Unexpected bugs still must not break video ingestion
            logger.exception(f"Channel avatar resolution crashed for {channel_url}: {e}")
            resolution.avatar_url = None

        # A step that found a channel id but no avatar does not name the outcome
        if not resolution.resolved:
            resolution.strategy = None

        logger.info(
            f"Avatar resolution for {channel_url}: "
            f"{'found via ' + resolution.strategy.value if resolution.resolved else 'not found'} "
            f"(keyed={resolution.keyed_status.value}, attempted={[s.value for s in resolution.attempted]})"
        )
        return resolution

    def _should_scrape(self, resolution: AvatarResolution) -> bool:
        if resolution.keyed_status == KeyedStatus.UNAVAILABLE:
            return True
        if resolution.keyed_status == KeyedStatus.EXHAUSTED:
            return self.settings.scrape_when_exhausted
        return False

    def _attempt(self, resolution: AvatarResolution, strategy: Strategy, lookup: Callable[[], Optional[str]]):
        def step() -> Optional[str]:
            resolution.attempted.append(strategy)
            result = lookup()
            if result:
                resolution.strategy = strategy
            return result

        return step

    def _resolve_keyed(
        self,
        resolution: AvatarResolution,
        reference: Optional[ChannelReference],
        video_id: Optional[str],
    ) -> None:
        resolution.keyed_status = KeyedStatus.EXHAUSTED
        service = self.service_factory(self.settings.youtube_api_key)

        steps = []
        if video_id:
            steps.append(
                self._attempt(resolution, Strategy.VIDEO_METADATA, lambda: channel_id_from_video(service, video_id))
            )
        if reference is not None:
            if reference.is_strong:
                steps.append(self._attempt(resolution, Strategy.URL_PATTERN, lambda: reference.id))
            else:
                steps.extend(
                    [
                        self._attempt(resolution, Strategy.HANDLE, lambda: channel_id_for_handle(service, reference.id)),
                        self._attempt(resolution, Strategy.USERNAME, lambda: channel_id_for_username(service, reference.id)),
                        self._attempt(resolution, Strategy.SEARCH, lambda: channel_id_from_search(service, reference.id)),
                    ]
                )

        channel_id = first_result(steps)
        if not channel_id:
            logger.info("Could not determine channel ID from video or URL")
            return

        if not is_strong_channel_id(channel_id):
            logger.info(f"Channel ID {channel_id!r} lacks the {STRONG_ID_PREFIX} prefix, retrying via search")
            weak_id = channel_id
            channel_id = first_result(
                [self._attempt(resolution, Strategy.SEARCH, lambda: channel_id_from_search(service, weak_id))]
            )
            if not channel_id:
                return

        resolution.channel_id = channel_id
        avatar_url = fetch_channel_avatar(service, channel_id)
        if avatar_url:
            resolution.avatar_url = avatar_url
            resolution.keyed_status = KeyedStatus.RESOLVED

    def _resolve_scraped(
        self,
        resolution: AvatarResolution,
        reference: Optional[ChannelReference],
        channel_url: Optional[str],
        author_url: Optional[str],
    ) -> None:
        timeout = self.settings.scrape_timeout_seconds
        original_url = author_url or channel_url

        strong_id = resolution.channel_id
        if not strong_id and reference is not None and reference.is_strong:
            strong_id = reference.id

        def scrape(url: str) -> Optional[str]:
            html = fetch_document(self.session, url, timeout)
            return find_avatar_in_html(html) if html else None

        steps = []
        if strong_id:
            steps.append(self._attempt(resolution, Strategy.SCRAPE_ABOUT, lambda: scrape(about_page_url(strong_id))))
        if original_url:
            steps.append(self._attempt(resolution, Strategy.SCRAPE_ORIGINAL, lambda: scrape(original_url)))

        avatar_url = first_result(steps)
        if avatar_url:
            resolution.avatar_url = avatar_url
            if strong_id and not resolution.channel_id:
                resolution.channel_id = strong_id


def resolve(
    channel_url: Optional[str],
    author_url: Optional[str] = None,
    video_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """Resolves a channel avatar URL with settings read from the environment."""
    return ChannelAvatarResolver(settings or Settings.from_env()).resolve(channel_url, author_url, video_id)
