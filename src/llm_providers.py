from abc import ABC, abstractmethod
import logging

import google.generativeai as genai
from google.generativeai.types import HarmCategory, HarmBlockThreshold  # For safety settings
from openai import OpenAI

from config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 300  # answers are read aloud, keep them short
DEFAULT_TEMPERATURE = 0.7


class LLMProvider(ABC):
    @abstractmethod
    def generate_content(
        self,
        prompt: str,
        content: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """
        Generate content based on system prompt and input content.
        Args:
            prompt: System prompt/instructions
            content: Input content to process
            max_tokens: Upper bound on the answer length
            temperature: Sampling temperature
        Returns:
            Generated content from LLM (may be empty)
        """
        pass


class GeminiProvider(LLMProvider):
    def __init__(self, settings: Settings) -> None:
        self.model_name = settings.gemini_model
        if not self.model_name:
            logger.error("GEMINI_MODEL environment variable not set.")
            raise ValueError("GEMINI_MODEL environment variable not set.")

        if not settings.gemini_api_key:
            logger.error("GEMINI_API_KEY environment variable not set.")
            raise ValueError("GEMINI_API_KEY environment variable not set.")

        genai.configure(api_key=settings.gemini_api_key)
        self.model = genai.GenerativeModel(self.model_name)

        # Lecture topics such as history or medicine trip the default filters.
        self.safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
        }

    def generate_content(
        self,
        prompt: str,
        content: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        try:
            full_prompt = f"{prompt}\n\n{content}"
            response = self.model.generate_content(
                full_prompt,
                generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
                safety_settings=self.safety_settings,
            )
            return response.text
        except Exception as e:
            logger.error(f"Gemini error: {e}")
            if hasattr(e, "response") and hasattr(e.response, "prompt_feedback"):
                if e.response.prompt_feedback.block_reason:
                    raise ValueError(
                        f"Content generation blocked. Reason: {e.response.prompt_feedback.block_reason.name}"
                    ) from e
            raise


class OpenAIProvider(LLMProvider):
    def __init__(self, settings: Settings):
        self.api_key = settings.openai_api_key
        self.base_url = settings.openai_base_url
        self.model_name = settings.openai_model

        if not self.api_key:
            logger.error("OPENAI_API_KEY environment variable not set.")
            raise ValueError("OPENAI_API_KEY environment variable not set.")
        if not self.model_name:
            logger.error("OPENAI_MODEL environment variable not set.")
            raise ValueError("OPENAI_MODEL environment variable not set.")

        self.llm = OpenAI(api_key=self.api_key, base_url=self.base_url)

    def generate_content(
        self,
        prompt: str,
        content: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        try:
            response = self.llm.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": prompt},
                    {"role": "user", "content": content},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
            if not response.choices:
                return ""
            return response.choices[0].message.content or ""
        except Exception as e:
            logger.error(f"OpenAI error: {e}")
            raise


def get_llm_provider(settings: Settings) -> LLMProvider:
    provider_name = settings.llm_provider
    logger.info(f"Attempting to initialize LLM provider: {provider_name}")
    if provider_name == "gemini":
        return GeminiProvider(settings)
    elif provider_name == "openai":
        return OpenAIProvider(settings)
    else:
        logger.error(f"Unsupported LLM provider: {provider_name}")
        raise ValueError(f"Unsupported LLM provider: {provider_name}")
