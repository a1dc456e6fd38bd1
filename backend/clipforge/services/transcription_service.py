"""Speech-to-text through Groq's OpenAI-compatible transcription API."""
import logging

import httpx

from clipforge.config import Settings

logger = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """Raised when the speech-to-text service fails or is unreachable."""


class GroqTranscriber:
    """Transcribes short audio clips with Whisper on Groq."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.groq.com/openai/v1",
        model: str = "whisper-large-v3",
        language: str = "ja",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.language = language
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings) -> "GroqTranscriber":
        return cls(
            api_key=config.groq_api_key,
            base_url=config.groq_base_url,
            model=config.transcription_model,
            language=config.transcription_language,
            timeout=config.transcription_timeout_seconds,
        )

    async def transcribe(self, audio: bytes, filename: str = "audio.mp3") -> str:
        """Return the plain-text transcription of an mp3 payload."""
        if not self.api_key:
            raise TranscriptionError("Speech-to-text is not configured (missing API key)")

        files = {"file": (filename, audio, "audio/mpeg")}
        data = {
            "model": self.model,
            "language": self.language,
            "response_format": "text",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data=data,
                    files=files,
                )
        except httpx.TimeoutException as exc:
            raise TranscriptionError("Transcription request timed out") from exc
        except httpx.RequestError as exc:
            raise TranscriptionError(f"Transcription service unreachable: {exc}") from exc

        if response.status_code != 200:
            raise TranscriptionError(
                f"Transcription failed with status {response.status_code}: {response.text[:500]}"
            )

        text = response.text.strip()
        logger.debug(f"Transcription ({len(text)} chars): {text[:100]}")
        return text
