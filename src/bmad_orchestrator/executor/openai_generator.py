"""
OpenAI chat completions TextGenerator.
"""
from typing import Any, Dict, Optional
import logging

from openai import AsyncOpenAI, OpenAIError, RateLimitError

from ..core.exceptions import GenerationError

DEFAULT_SYSTEM_PROMPT = "You are a member of an agile delivery team. Answer in markdown."


class OpenAITextGenerator:
    """
    TextGenerator backed by ``AsyncOpenAI``.

    The client is created on first use so that a missing API key only
    matters when a generative step actually runs.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client = client
        self.logger = logging.getLogger("agent.executor.openai")

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def generate(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Send a chat completion request.

        Raises:
            GenerationError: API failure or empty completion
        """
        context = context or {}
        agent_id = context.get("agent_id")
        messages = [
            {"role": "system", "content": context.get("system_prompt") or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except RateLimitError as e:
            self.logger.warning(f"Rate limit hit for {agent_id}: {e}")
            raise GenerationError("OpenAI rate limit exceeded", agent_id, e) from e
        except OpenAIError as e:
            self.logger.error(f"Error in OpenAI request: {type(e).__name__}: {e}")
            raise GenerationError(f"OpenAI request failed: {e}", agent_id, e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("OpenAI returned an empty completion", agent_id)
        return content
