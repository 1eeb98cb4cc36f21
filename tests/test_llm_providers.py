from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from assistant import FALLBACK_ANSWER, answer_question, build_system_prompt, build_video_context
from catalog import Channel, Video
from config import Settings
from llm_providers import OpenAIProvider, get_llm_provider
from transcription import Transcriber


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_openai_provider_requires_key():
    with pytest.raises(ValueError):
        OpenAIProvider(Settings(openai_api_key=None))


def test_unsupported_provider():
    with pytest.raises(ValueError):
        get_llm_provider(Settings(llm_provider="llama"))


def test_gemini_provider_requires_model():
    with pytest.raises(ValueError):
        get_llm_provider(Settings(llm_provider="gemini", gemini_api_key="key", gemini_model=None))


def test_openai_provider_generate_content():
    with patch("llm_providers.OpenAI") as mock_openai:
        client = mock_openai.return_value
        client.chat.completions.create.return_value = _completion("Forty-two.")
        provider = get_llm_provider(Settings(openai_api_key="test-openai"))

        answer = provider.generate_content("system", "question", max_tokens=300, temperature=0.7)

    assert answer == "Forty-two."
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "question"},
    ]
    assert kwargs["max_tokens"] == 300
    assert kwargs["temperature"] == 0.7


def test_openai_provider_empty_choices():
    with patch("llm_providers.OpenAI") as mock_openai:
        mock_openai.return_value.chat.completions.create.return_value = SimpleNamespace(choices=[])
        provider = OpenAIProvider(Settings(openai_api_key="test-openai"))
        assert provider.generate_content("system", "question") == ""


def test_build_video_context_truncates_description():
    video = Video(id="v1", title="Fourier Series", channel_id="c1", description="x" * 800)
    channel = Channel(id="c1", name="Prof", handle="@prof")

    context = build_video_context(video, channel)

    assert context.startswith("Video Title: Fourier Series. Channel: Prof. Description: ")
    assert context.endswith("x" * 500)
    assert "x" * 501 not in context


def test_build_system_prompt_with_and_without_context():
    assert "Context about the current video: Video Title: T." in build_system_prompt("Video Title: T.")
    assert "Context about the current video" not in build_system_prompt("")
    assert "suitable for voice output" in build_system_prompt()


def test_answer_question_passes_context_and_limits():
    provider = MagicMock()
    provider.generate_content.return_value = "  It is about waves.  "

    answer = answer_question(provider, "What is this about?", "Video Title: Waves.")

    assert answer == "It is about waves."
    prompt, question = provider.generate_content.call_args.args
    assert "Video Title: Waves." in prompt
    assert question == "What is this about?"
    assert provider.generate_content.call_args.kwargs == {"max_tokens": 300, "temperature": 0.7}


def test_answer_question_empty_completion():
    provider = MagicMock()
    provider.generate_content.return_value = ""
    assert answer_question(provider, "Hello?") == FALLBACK_ANSWER


def test_transcriber_requires_key():
    with pytest.raises(ValueError):
        Transcriber(Settings(openai_api_key=None))


def test_transcriber_sends_audio_to_whisper():
    with patch("transcription.OpenAI") as mock_openai:
        client = mock_openai.return_value
        client.audio.transcriptions.create.return_value = SimpleNamespace(text="what is a derivative")
        transcriber = Transcriber(Settings(openai_api_key="test-openai"))

        text = transcriber.transcribe(b"\x00\x01", filename=None, content_type=None)

    assert text == "what is a derivative"
    kwargs = client.audio.transcriptions.create.call_args.kwargs
    assert kwargs["file"] == ("recording.webm", b"\x00\x01", "audio/webm")
    assert kwargs["model"] == "whisper-1"
    assert kwargs["language"] == "en"
