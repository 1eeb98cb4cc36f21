import json
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

# Modules live flat under src/ and import each other by bare name
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

# Keep the import-time app free of real credentials
for name in ("YOUTUBE_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY"):
    os.environ.pop(name, None)

from config import Settings  # noqa: E402


class FakeRequest:
    def __init__(self, result):
        self.result = result

    def execute(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeResource:
    def __init__(self, service, name):
        self.service = service
        self.name = name

    def list(self, **params):
        self.service.calls.append((self.name, params))
        return FakeRequest(self.service.respond(self.name, params))


class FakeYouTubeService:
    """
    Stands in for a googleapiclient YouTube resource. Responses are routed by
    resource name and matching list() parameters; anything unrouted gets an
    empty item list.
    """

    def __init__(self):
        self.calls = []
        self.routes = []

    def on(self, resource, result, **match):
        self.routes.append((resource, match, result))
        return self

    def respond(self, resource, params):
        for name, match, result in self.routes:
            if name == resource and all(params.get(k) == v for k, v in match.items()):
                return result
        return {"items": []}

    def videos(self):
        return FakeResource(self, "videos")

    def channels(self):
        return FakeResource(self, "channels")

    def search(self):
        return FakeResource(self, "search")


def make_http_error(status, reason=None):
    content = {
        "error": {
            "code": status,
            "message": "request failed",
            "errors": [{"reason": reason}] if reason else [],
        }
    }
    return HttpError(httplib2.Response({"status": status}), json.dumps(content).encode("utf-8"))


def channel_item(channel_id, **thumbnails):
    return {
        "items": [
            {
                "id": channel_id,
                "snippet": {"thumbnails": {q: {"url": url} for q, url in thumbnails.items()}},
            }
        ]
    }


class FakePage:
    """A streamed requests response serving `chunks` of utf-8 text."""

    encoding = "utf-8"

    def __init__(self, chunks, status=200):
        self.chunks = chunks
        self.status_code = status
        self.ok = 200 <= status < 300
        self.closed = False

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            yield chunk.encode(self.encoding)

    def close(self):
        self.closed = True


def html_response(text="", status=200):
    return FakePage([text], status)


@pytest.fixture
def youtube_service():
    return FakeYouTubeService()


@pytest.fixture
def service_factory(youtube_service):
    return MagicMock(return_value=youtube_service)


@pytest.fixture
def keyed_settings():
    return Settings(youtube_api_key="test-youtube-key")


@pytest.fixture
def unkeyed_settings():
    return Settings(youtube_api_key=None)


@pytest.fixture
def pages():
    """url -> response; unknown urls answer 404."""
    return {}


@pytest.fixture
def scrape_session(pages):
    session = MagicMock()
    session.get.side_effect = lambda url, **kwargs: pages.get(url, html_response("", 404))
    return session
