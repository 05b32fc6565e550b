"""
Generative Model Client - Protocol plus the Anthropic implementation.

The orchestrator owns the timeout; implementations just make the call and
let provider exceptions propagate. The SDK's own retries are disabled so that
one request maps to one provider call.
"""

from typing import Protocol

import anthropic

from app.models.domain import ModelRequest, ModelResponse


class GenerativeModel(Protocol):
    """Anything that turns a prompt into text."""

    async def invoke(self, request: ModelRequest) -> ModelResponse: ...


class AnthropicModel:
    """GenerativeModel backed by the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    async def invoke(self, request: ModelRequest) -> ModelResponse:
        """
        Send one Messages API request.

        Raises:
            anthropic.APIError: Provider failure (caller maps it)
        """
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            system=request.system_prompt,
            messages=[{"role": "user", "content": request.user_prompt}],
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        return ModelResponse(
            text=text,
            provider=self.provider,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
