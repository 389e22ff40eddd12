import asyncio
import json
import logging
import re
from typing import Callable

import openai

from quickworksheet.core.config import Settings, get_settings
from quickworksheet.core.deps import get_openai_client
from quickworksheet.models.worksheet import LessonRequest
from quickworksheet.prompts.worksheet_generation import (
    WORKSHEET_GENERATION_SYSTEM_PROMPT,
    build_prompt,
)
from quickworksheet.services.errors import (
    GenerationEndpointError,
    InvalidOutputError,
    MissingCredentialError,
)
from quickworksheet.services.rate_limiter import RateLimiter

logger = logging.getLogger("quickworksheet.requester")

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_payload(text: str) -> dict:
    """Pull the structured worksheet payload out of a completion.

    Uses the first fenced block when there is one, otherwise the whole
    response. Anything that is not a JSON object is invalid output.
    """
    match = _FENCE_RE.search(text or "")
    raw = match.group(1) if match else (text or "")
    try:
        payload = json.loads(raw.strip())
    except (json.JSONDecodeError, ValueError) as e:
        raise InvalidOutputError("invalid output") from e
    if not isinstance(payload, dict):
        raise InvalidOutputError("invalid output")
    return payload


class AIService:
    """Client for the hosted chat-completion endpoint.

    One instance per session: the limiter and the credential both belong
    to the session that created it.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        api_key: str | None = None,
        settings: Settings | None = None,
        client_factory: Callable[[str], object] = get_openai_client,
    ):
        self.limiter = limiter
        self.api_key = api_key
        self.settings = settings or get_settings()
        self._client_factory = client_factory

    async def generate_completion(
        self,
        prompt: str,
        system_prompt: str | None = None,
    ) -> str:
        if not self.api_key:
            raise MissingCredentialError(
                "No API key found. Please provide an OpenAI API key in the settings."
            )

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        client = self._client_factory(self.api_key)
        try:
            response = await asyncio.to_thread(
                client.chat.completions.create,
                model=self.settings.openai_model,
                messages=messages,
                temperature=self.settings.openai_temperature,
                max_tokens=self.settings.openai_max_tokens,
            )
        except openai.APIStatusError as e:
            logger.error("Completion endpoint returned %s: %s", e.status_code, e.message)
            raise GenerationEndpointError(e.message or f"API error: {e.status_code}") from e
        except openai.APIError as e:
            logger.error("Completion endpoint request failed: %s", e)
            raise GenerationEndpointError(str(e)) from e

        if not response.choices or not response.choices[0].message:
            raise GenerationEndpointError("Invalid response from AI service")
        content = response.choices[0].message.content
        if not content:
            raise GenerationEndpointError("No content received from AI service")
        return content

    async def request_worksheet(self, lesson: LessonRequest) -> dict:
        """Admit, call the endpoint once and return the parsed payload.

        Raises AdmissionError before any network call when a limit is hit;
        the attempt is counted as soon as it is admitted.
        """
        self.limiter.admit()
        logger.info(
            "Requesting worksheet: duration=%s topic=%.60s (call %d/%d)",
            lesson.duration, lesson.topic,
            self.limiter.call_count, self.limiter.max_calls,
        )
        content = await self.generate_completion(
            build_prompt(lesson),
            system_prompt=WORKSHEET_GENERATION_SYSTEM_PROMPT,
        )
        return extract_payload(content)
