"""
AI card generation client.

Talks to an OpenAI-compatible HTTP API to help author cards:
- generate_sentence: one ESL-level English sentence about a topic
- translate: English -> target language (Traditional Chinese by default)
- synthesize_speech: text-to-speech, returned as an mp3 data URI

All calls are best-effort. Timeouts and 5xx responses are retried with
exponential backoff; anything else surfaces as GenerationError so the
user can finish the card by hand.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from .config import Settings
from .errors import GenerationError

# =============================================================================
# Prompts
# =============================================================================

SENTENCE_SYSTEM_PROMPT = (
    "You are an assistant who creates single medium-length English sentences "
    "suitable for ESL learners."
)

SENTENCE_USER_TEMPLATE = (
    'Create one medium-length English sentence (15-20 words) based on: "{topic}". '
    "Do NOT include translations. Do NOT wrap in quotes."
)

TRANSLATE_SYSTEM_TEMPLATE = "You translate English to {language}."

TRANSLATE_USER_TEMPLATE = (
    'Translate the following sentence into {language} only (no romanization): \n"{text}"'
)


@dataclass
class AssistResult:
    """Outcome of translating and voicing one sentence."""

    translation: str | None = None
    audio: str | None = None  # data: URI
    translation_error: str | None = None
    audio_error: str | None = None

    @property
    def complete(self) -> bool:
        return self.translation is not None and self.audio is not None


class CardGenerator:
    """HTTP client for sentence, translation and speech generation."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        chat_model: str = "gpt-3.5-turbo",
        tts_model: str = "tts-1",
        tts_voice: str = "alloy",
        target_language: str = "Traditional Chinese",
        timeout_seconds: float = 30.0,
        retry_attempts: int = 3,
        backoff_seconds: float = 1.0,
    ):
        """
        Initialize the generator.

        Args:
            api_key: Bearer token for the API
            base_url: API root, e.g. https://api.openai.com/v1
            chat_model: Model for sentences and translations
            tts_model: Speech model
            tts_voice: Speech voice
            target_language: Language answers are translated into
            timeout_seconds: Per-request timeout
            retry_attempts: Attempts for timeouts and 5xx responses
            backoff_seconds: Base delay between attempts (doubles each time)

        Raises:
            GenerationError: If no API key is configured
        """
        if not api_key:
            raise GenerationError(
                "No API key configured. Set OPENAI_API_KEY or FLASHDECK_OPENAI_API_KEY."
            )

        self.chat_model = chat_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice
        self.target_language = target_language
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_seconds = backoff_seconds
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(timeout_seconds),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> CardGenerator:
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            chat_model=settings.chat_model,
            tts_model=settings.tts_model,
            tts_voice=settings.tts_voice,
            target_language=settings.target_language,
            timeout_seconds=settings.request_timeout_seconds,
            retry_attempts=settings.retry_attempts,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> CardGenerator:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        """
        POST with retry logic.

        Raises:
            GenerationError: On 4xx, or once all attempts are used up
        """
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await self.client.post(path, json=payload)
                response.raise_for_status()
                return response

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    f"Timeout calling {path} on attempt {attempt + 1}/{self.retry_attempts}"
                )

            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status < 500:
                    # Don't retry on 4xx client errors
                    logger.error(f"Generation request to {path} rejected: {status}")
                    raise GenerationError(
                        f"Request to {path} failed with {status}: {e.response.text[:200]}"
                    ) from e
                logger.warning(
                    f"Server error {status} from {path} on attempt "
                    f"{attempt + 1}/{self.retry_attempts}"
                )

            except httpx.RequestError as e:
                last_error = e
                logger.warning(
                    f"Request error calling {path} on attempt "
                    f"{attempt + 1}/{self.retry_attempts}: {e}"
                )

            if attempt < self.retry_attempts - 1:
                await asyncio.sleep(self.backoff_seconds * 2**attempt)

        logger.error(f"{path} failed after {self.retry_attempts} attempts: {last_error}")
        raise GenerationError(
            f"Generation service unavailable after {self.retry_attempts} attempts: {last_error}"
        ) from last_error

    async def _chat(
        self,
        system: str,
        user: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        payload = {
            "model": self.chat_model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        response = await self._post("/chat/completions", payload)

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError(f"Malformed completion response: {e!r}") from e

        if not isinstance(content, str) or not content.strip():
            raise GenerationError("Completion response was empty")
        return content.strip()

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate_sentence(self, topic: str) -> str:
        """Create one English study sentence about a topic."""
        sentence = await self._chat(
            SENTENCE_SYSTEM_PROMPT,
            SENTENCE_USER_TEMPLATE.format(topic=topic),
            max_tokens=60,
            temperature=0.7,
        )
        logger.debug(f"Generated sentence for '{topic}': {sentence}")
        return sentence

    async def translate(self, text: str) -> str:
        """Translate English text into the target language."""
        return await self._chat(
            TRANSLATE_SYSTEM_TEMPLATE.format(language=self.target_language),
            TRANSLATE_USER_TEMPLATE.format(language=self.target_language, text=text),
            max_tokens=90,
            temperature=0.3,
        )

    async def synthesize_speech(self, text: str) -> str:
        """
        Voice the text.

        Returns:
            data:audio/mp3;base64,... URI
        """
        payload = {
            "model": self.tts_model,
            "input": text,
            "voice": self.tts_voice,
            "response_format": "mp3",
        }
        response = await self._post("/audio/speech", payload)
        if not response.content:
            raise GenerationError("Speech response was empty")

        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:audio/mp3;base64,{encoded}"

    async def assist(self, text: str, speak: bool = True) -> AssistResult:
        """
        Translate and voice a sentence concurrently.

        One step failing never cancels the other; errors are reported per
        field in the result.
        """
        result = AssistResult()
        steps = [self.translate(text)]
        if speak:
            steps.append(self.synthesize_speech(text))

        outcomes = await asyncio.gather(*steps, return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, GenerationError):
                raise outcome

        translation = outcomes[0]
        if isinstance(translation, GenerationError):
            result.translation_error = str(translation)
        else:
            result.translation = translation

        if speak:
            audio = outcomes[1]
            if isinstance(audio, GenerationError):
                result.audio_error = str(audio)
            else:
                result.audio = audio

        return result
