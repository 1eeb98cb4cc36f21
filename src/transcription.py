import logging
from typing import Optional

from openai import OpenAI

from config import Settings

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "recording.webm"
DEFAULT_CONTENT_TYPE = "audio/webm"


class Transcriber:
    """Speech-to-text for recorded voice questions, backed by OpenAI Whisper."""

    def __init__(self, settings: Settings):
        if not settings.openai_api_key:
            logger.error("OPENAI_API_KEY environment variable not set.")
            raise ValueError("OpenAI API key is not configured")

        self.model_name = settings.whisper_model
        self.client = OpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)

    def transcribe(
        self,
        audio: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        language: str = "en",
    ) -> str:
        # The API infers the audio format from the file name
        upload = (filename or DEFAULT_FILENAME, audio, content_type or DEFAULT_CONTENT_TYPE)
        logger.info(f"Transcribing {len(audio)} bytes of {upload[2]} with {self.model_name}")
        transcription = self.client.audio.transcriptions.create(
            file=upload,
            model=self.model_name,
            language=language,
        )
        return transcription.text
