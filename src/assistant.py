from typing import Optional

from catalog import Channel, Video
from llm_providers import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, LLMProvider

ASK_SYSTEM_PROMPT = """You are a helpful AI assistant that answers questions about educational videos.
You provide clear, concise, and accurate answers.
{context}
Keep your responses brief and conversational, suitable for voice output."""

DESCRIPTION_CONTEXT_CHARS = 500

FALLBACK_ANSWER = "I couldn't generate a response."


def build_video_context(video: Video, channel: Optional[Channel]) -> str:
    channel_name = channel.name if channel else "Unknown Channel"
    context = f"Video Title: {video.title}. Channel: {channel_name}."
    if video.description:
        context += f" Description: {video.description[:DESCRIPTION_CONTEXT_CHARS]}"
    return context


def build_system_prompt(video_context: str = "") -> str:
    context_line = f"Context about the current video: {video_context}" if video_context else ""
    return ASK_SYSTEM_PROMPT.format(context=context_line)


def answer_question(
    provider: LLMProvider,
    question: str,
    video_context: str = "",
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> str:
    answer = provider.generate_content(
        build_system_prompt(video_context),
        question,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    if not answer or not answer.strip():
        return FALLBACK_ANSWER
    return answer.strip()
