"""
OpenAI adapter for the Synthesizer contract.

Turns a summary prompt into text with a single chat completion. Every
failure (timeout, rate limit, API error, empty response) is reported in the
returned SynthesisResult instead of being raised.
"""

import asyncio

import openai
from openai import AsyncOpenAI

from syncbot.features.weekly_sync.domain import SynthesisResult
from syncbot.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SYSTEM_MESSAGE = """You write concise pre-meeting summaries for a weekly team sync.

- Use Slack mrkdwn (bold with *text*, bullets with •)
- Group points under: Highlights, Blockers, Next steps
- Attribute points to people by first name
- Do not invent work that is not in the updates
- Keep it under 250 words"""


class OpenAISynthesizer:
    """Synthesizer backed by the OpenAI chat completions API."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        max_tokens: int = 1500,
        temperature: float = 0.3,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings) -> "OpenAISynthesizer":
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.SUMMARY_TIMEOUT_SECONDS)
        logger.info("OpenAI client initialized", model=settings.OPENAI_MODEL)
        return cls(
            client,
            model=settings.OPENAI_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            temperature=settings.OPENAI_TEMPERATURE,
        )

    async def synthesize(self, prompt: str, timeout: float) -> SynthesisResult:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_MESSAGE},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                timeout=timeout,
            )
        except (TimeoutError, openai.APITimeoutError):
            logger.warning("OpenAI synthesis timed out", timeout=timeout, model=self.model)
            return SynthesisResult(success=False, error=f"Synthesis timed out after {timeout:g}s")
        except openai.RateLimitError as e:
            logger.warning("OpenAI rate limit hit", error=str(e))
            return SynthesisResult(success=False, error=f"Rate limited: {e}")
        except openai.APIError as e:
            logger.error("OpenAI API error", error=str(e), error_type=type(e).__name__)
            return SynthesisResult(success=False, error=f"OpenAI API error: {e}")

        if not response.choices or not response.choices[0].message.content:
            return SynthesisResult(success=False, error="Empty response from OpenAI API")

        text = response.choices[0].message.content.strip()
        logger.info(
            "OpenAI synthesis successful",
            response_length=len(text),
            usage_tokens=response.usage.total_tokens if response.usage else 0,
        )
        return SynthesisResult(success=True, text=text)
