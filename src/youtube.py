import logging
import re
import threading
from typing import Optional

import requests
from cachetools import TTLCache, cached
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

OEMBED_ENDPOINT = "https://www.youtube.com/oembed"
OEMBED_TIMEOUT_SECONDS = 10

OEMBED_CACHE_MAX_SIZE = 128
OEMBED_CACHE_TTL_SECONDS = 60 * 60  # an hour

# Validate and create both hit oEmbed for the same URL, usually seconds apart.
oembed_cache = TTLCache(maxsize=OEMBED_CACHE_MAX_SIZE, ttl=OEMBED_CACHE_TTL_SECONDS)
# Lookups run on executor threads and TTLCache is not thread-safe.
oembed_cache_lock = threading.Lock()

# Order matters: first match wins.
VIDEO_ID_PATTERNS = [
    re.compile(r"youtube\.com/watch\?v=([^&\n?#]+)"),
    re.compile(r"youtu\.be/([^&\n?#]+)"),
    re.compile(r"youtube\.com/embed/([^&\n?#]+)"),
    re.compile(r"youtube\.com/v/([^&\n?#]+)"),
    re.compile(r"youtube\.com/watch\?.*&v=([^&\n?#]+)"),
]


class VideoNotFoundError(Exception):
    """Raised when oEmbed reports the video missing, private or not embeddable."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Video not found or embedding is disabled: {url}")


class OEmbedError(Exception):
    """Raised when the oEmbed lookup fails for any other reason."""

    def __init__(self, url: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"oEmbed lookup failed for {url} (status={status_code})")


def extract_video_id(url: str) -> Optional[str]:
    """
    Returns the video id embedded in a YouTube URL, or None when no known
    URL shape matches.
    """
    if not url or not isinstance(url, str):
        return None

    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match and match.group(1):
            return match.group(1)
    return None


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def embed_url(video_id: str) -> str:
    return f"https://www.youtube.com/embed/{video_id}"


@cached(cache=oembed_cache, lock=oembed_cache_lock)
def fetch_oembed(url: str) -> dict:
    """
    Looks up embed metadata (title, author_name, author_url, thumbnail_url)
    for a video URL.

    Raises:
        VideoNotFoundError: the video does not exist or cannot be embedded.
        OEmbedError: transport failure or any other non-success answer.
    """
    try:
        response = requests.get(
            OEMBED_ENDPOINT,
            params={"url": url, "format": "json"},
            headers={"Accept": "application/json"},
            timeout=OEMBED_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error(f"oEmbed request failed for {url}: {e}")
        raise OEmbedError(url) from e

    # YouTube answers 401/403 for private videos and videos with embedding disabled
    if response.status_code in (401, 403, 404):
        raise VideoNotFoundError(url)
    if not response.ok:
        logger.warning(f"oEmbed returned {response.status_code} for {url}")
        raise OEmbedError(url, response.status_code)

    try:
        data = response.json()
    except ValueError as e:
        raise OEmbedError(url, response.status_code) from e
    if not isinstance(data, dict):
        raise OEmbedError(url, response.status_code)
    return data


def build_youtube_service(api_key: str):
    """Builds a YouTube Data API v3 resource for the given developer key."""
    return build("youtube", "v3", developerKey=api_key, cache_discovery=False)
