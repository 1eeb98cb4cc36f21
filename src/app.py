import asyncio
import functools
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from quart import Blueprint, Quart, current_app, jsonify, request

from assistant import answer_question, build_video_context
from catalog import STATUS_PROCESSING, STATUS_READY, Catalog, Video
from channel_avatar import ChannelAvatarResolver
from config import Settings
from formatting import format_duration, format_relative_time, format_view_count
from llm_providers import get_llm_provider
from transcription import Transcriber
from youtube import OEmbedError, VideoNotFoundError, embed_url, extract_video_id, fetch_oembed

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s"

_logging_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Sends every module's log records to stdout, once per process."""
    global _logging_configured
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if _logging_configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    _logging_configured = True


async def run_blocking(func, *args, **kwargs):
    """Runs a blocking call (HTTP client, SDK) in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def current_user() -> Optional[dict]:
    """The signed-in user, as forwarded by the auth layer in front of the API."""
    user_id = request.headers.get("X-User-Id")
    if not user_id:
        return None
    return {"id": user_id, "email": request.headers.get("X-User-Email")}


def unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def _catalog() -> Catalog:
    return current_app.config["CATALOG"]


def _settings() -> Settings:
    return current_app.config["SETTINGS"]


def _llm_provider():
    """Built on first use so the API still serves catalog routes without LLM credentials."""
    if current_app.config.get("LLM_PROVIDER") is None:
        current_app.config["LLM_PROVIDER"] = get_llm_provider(_settings())
    return current_app.config["LLM_PROVIDER"]


def _transcriber() -> Transcriber:
    if current_app.config.get("TRANSCRIBER") is None:
        current_app.config["TRANSCRIBER"] = Transcriber(_settings())
    return current_app.config["TRANSCRIBER"]


def video_card(video: Video, now: Optional[datetime] = None) -> dict:
    channel = _catalog().get_channel(video.channel_id)
    return {
        "id": video.id,
        "title": video.title,
        "channel": channel.name if channel else "Unknown Channel",
        "channelAvatar": channel.avatar if channel else None,
        "thumbnail": video.thumbnail,
        "duration": format_duration(video.duration),
        "views": video.views,
        "viewsLabel": format_view_count(video.views),
        "uploadedAt": format_relative_time(video.created_at, now),
        "status": video.status,
    }


api = Blueprint("api", __name__)


@api.route("/")
async def hello():
    return "Hello World - PhewTube API"


@api.route("/api/categories", methods=["GET"])
async def list_categories():
    categories = [{"id": c.id, "name": c.name, "slug": c.slug} for c in _catalog().list_categories()]
    return jsonify({"categories": categories})


@api.route("/api/videos", methods=["GET"])
async def list_videos():
    category = request.args.get("category")
    now = datetime.now(timezone.utc)
    videos = [video_card(v, now) for v in _catalog().list_videos(category)]
    return jsonify({"videos": videos})


@api.route("/api/videos/<video_id>", methods=["GET"])
async def get_video(video_id):
    video = _catalog().get_video(video_id)
    if video is None:
        return jsonify({"error": "Video not found"}), 404

    payload = video_card(video)
    youtube_id = extract_video_id(video.youtube_url) if video.youtube_url else None
    payload.update(
        {
            "description": video.description,
            "youtubeUrl": video.youtube_url,
            "youtubeId": youtube_id,
            "embedUrl": embed_url(youtube_id) if youtube_id else None,
        }
    )
    return jsonify(payload)


@api.route("/api/videos/validate-youtube", methods=["POST"])
async def validate_youtube():
    """
    Checks that a YouTube URL points at a video that exists and can be
    embedded, using oEmbed (which answers 404 otherwise).
    """
    try:
        data = await request.get_json(silent=True)
        url = data.get("url") if isinstance(data, dict) else None

        if not url or not isinstance(url, str):
            return jsonify({"error": "URL is required"}), 400

        video_id = extract_video_id(url)
        if not video_id:
            return jsonify({"error": "Invalid YouTube URL format"}), 400

        try:
            oembed = await run_blocking(fetch_oembed, url)
        except VideoNotFoundError:
            return jsonify({"error": "Video not found or embedding is disabled", "valid": False}), 404
        except OEmbedError as e:
            if e.status_code:
                return jsonify({"error": "Failed to validate video", "valid": False}), e.status_code
            return jsonify({"error": "Failed to validate video. Please try again.", "valid": False}), 500

        return jsonify(
            {
                "valid": True,
                "videoId": video_id,
                "title": oembed.get("title"),
                "thumbnail": oembed.get("thumbnail_url"),
                "author": oembed.get("author_name"),
            }
        )
    except Exception as e:
        logger.exception(f"Error in validate-youtube route: {e}")
        return jsonify({"error": "Internal server error"}), 500


@api.route("/api/videos/create", methods=["POST"])
async def create_video():
    user = current_user()
    if not user:
        return unauthorized()

    try:
        body = await request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        youtube_url = body.get("youtubeUrl")
        file_name = body.get("fileName")

        if not youtube_url and not file_name:
            return jsonify({"error": "Either YouTube URL or file is required"}), 400

        catalog = _catalog()
        category = catalog.find_category(body["category"]) if body.get("category") else None
        category_id = category.id if category else None

        if youtube_url:
            video_id = extract_video_id(youtube_url)
            if not video_id:
                return jsonify({"error": "Invalid YouTube URL format"}), 400

            try:
                oembed = await run_blocking(fetch_oembed, youtube_url)
            except (VideoNotFoundError, OEmbedError) as e:
                logger.info(f"oEmbed lookup failed for {youtube_url}: {e}")
                return jsonify({"error": "Video not found or embedding is disabled"}), 404

            channel_name = oembed.get("author_name") or "Unknown Channel"
            author_url = oembed.get("author_url")

            avatar = None
            if author_url:
                resolver: ChannelAvatarResolver = current_app.config["AVATAR_RESOLVER"]
                avatar = await run_blocking(resolver.resolve, author_url, video_id=video_id)
            else:
                logger.info(f"No author_url in oEmbed data for {youtube_url}")

            channel = catalog.get_or_create_youtube_channel(channel_name, avatar)
            video = catalog.add_video(
                oembed.get("title") or "Untitled Video",
                channel,
                thumbnail=oembed.get("thumbnail_url"),
                youtube_url=youtube_url,
                status=STATUS_READY,
                category_id=category_id,
            )
            return jsonify({"success": True, "video": {"id": video.id, "title": video.title}})

        # File uploads land on the uploader's own channel; processing happens elsewhere
        profile = catalog.get_or_create_profile(user["id"], user.get("email"))
        channel = catalog.get_or_create_default_channel(profile)
        video = catalog.add_video(
            file_name or "Untitled Video",
            channel,
            status=STATUS_PROCESSING,
            category_id=category_id,
        )
        return jsonify(
            {
                "success": True,
                "video": {"id": video.id, "title": video.title},
                "message": "File upload will be processed. Video ID saved.",
            }
        )
    except Exception as e:
        logger.exception(f"Error creating video: {e}")
        return jsonify({"error": "Failed to create video"}), 500


@api.route("/api/ai/ask", methods=["POST"])
async def ask_question():
    user = current_user()
    if not user:
        return unauthorized()

    try:
        data = await request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        question = data.get("question")
        if not question or not isinstance(question, str) or not question.strip():
            return jsonify({"error": "Question is required"}), 400

        video_context = ""
        video_id = data.get("videoId")
        if video_id:
            video = _catalog().get_video(video_id)
            if video:
                video_context = build_video_context(video, _catalog().get_channel(video.channel_id))
            else:
                logger.info(f"Ask for unknown video {video_id}, answering without context")

        try:
            provider = _llm_provider()
        except ValueError as e:
            logger.error(f"LLM provider not configured: {e}")
            return jsonify({"error": "LLM provider not configured"}), 500

        try:
            answer = await run_blocking(answer_question, provider, question.strip(), video_context)
        except Exception as e:
            logger.error(f"LLM error answering question: {e}")
            return jsonify({"error": "Failed to get AI response"}), 502

        return jsonify({"answer": answer})
    except Exception as e:
        logger.exception(f"Error in AI ask route: {e}")
        return jsonify({"error": "Internal server error"}), 500


@api.route("/api/transcribe", methods=["POST"])
async def transcribe():
    try:
        transcriber = _transcriber()
    except ValueError:
        return jsonify({"error": "OpenAI API key is not configured"}), 500

    try:
        files = await request.files
        audio_file = files.get("audio")
        if not audio_file:
            return jsonify({"error": "No audio file provided"}), 400

        audio = audio_file.read()
        transcript = await run_blocking(
            transcriber.transcribe, audio, audio_file.filename, audio_file.mimetype
        )
        return jsonify({"transcript": transcript})
    except Exception as e:
        logger.error(f"Transcription error: {e}")
        return jsonify({"error": "Failed to transcribe audio", "details": str(e) or "Unknown error"}), 500


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[Catalog] = None,
    avatar_resolver: Optional[ChannelAvatarResolver] = None,
    llm_provider=None,
    transcriber: Optional[Transcriber] = None,
) -> Quart:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Quart(__name__)
    app.config["SETTINGS"] = settings
    app.config["CATALOG"] = catalog or Catalog()
    app.config["AVATAR_RESOLVER"] = avatar_resolver or ChannelAvatarResolver(settings)
    app.config["LLM_PROVIDER"] = llm_provider
    app.config["TRANSCRIBER"] = transcriber
    app.register_blueprint(api)

    logger.info(f"Created app with {settings!r}")
    return app


app = create_app()


if __name__ == "__main__":
    logger.info("Starting Quart app...")
    app.run(host="0.0.0.0", port=5000)
