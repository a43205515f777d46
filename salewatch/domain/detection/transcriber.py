"""
Whisper Transcriber - voice notes to text (Groq whisper-large-v3)

Failures never stop the pipeline: the caller gets an empty string and the
message is evaluated with its raw body.
"""
from pathlib import Path
from typing import Optional

import structlog
from openai import AsyncOpenAI, OpenAIError

from salewatch.common.errors import TranscriptionFailure

logger = structlog.get_logger()


class WhisperTranscriber:
    """Speech-to-text through Groq's OpenAI-compatible audio endpoint"""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "whisper-large-v3",
        base_url: str = "https://api.groq.com/openai/v1",
        language: str = "es",
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.language = language
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        else:
            self.client = None
            logger.warning("transcriber_disabled", message="GROQ_API_KEY not set, audio will not be transcribed")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def transcribe(self, file_path: Path) -> str:
        """
        Transcribe an audio file.

        Returns:
            Transcribed text, or "" when disabled or on any failure
        """
        if self.client is None:
            return ""

        try:
            text = await self._request(file_path)
        except TranscriptionFailure as e:
            logger.error("transcription_failed", file=str(file_path), error=str(e))
            return ""

        logger.info("transcription_complete", file=str(file_path), chars=len(text))
        return text

    async def _request(self, file_path: Path) -> str:
        try:
            with open(file_path, "rb") as audio:
                transcription = await self.client.audio.transcriptions.create(
                    file=audio,
                    model=self.model,
                    language=self.language,
                    response_format="text",
                )
        except (OSError, OpenAIError) as e:
            raise TranscriptionFailure(f"{self.model}: {e}") from e

        text = transcription if isinstance(transcription, str) else getattr(transcription, "text", "")
        return (text or "").strip()
