"""Port interfaces for the model gateway. The orchestrator depends on these, not on implementations."""
from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from contractscope.llm.types import ChatMessage, LLMResponse, ModelConfig


@runtime_checkable
class ModelGatewayPort(Protocol):
    """Chat round-trip against the configured model endpoint."""

    async def send_chat(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        *,
        stream: bool = False,
    ) -> LLMResponse:
        """Execute one chat request. Raises LLMError on failure."""
        ...

    async def test_connection(self, config: ModelConfig) -> None:
        """Cheap reachability probe. Raises LLMConnectionError when the endpoint is unusable."""
        ...
