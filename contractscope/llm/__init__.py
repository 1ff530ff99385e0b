"""
Model gateway: single typed async interface for chat calls to local and online endpoints.
Public API: ModelGateway, ModelConfig, ChatMessage, LLMResponse, LLMProvider, LLMSettings.
Other modules must not talk HTTP to model endpoints directly.
"""
from contractscope.llm.errors import (
    LLMClientError,
    LLMConfigurationError,
    LLMConnectionError,
    LLMEmptyResponse,
    LLMError,
    LLMParseError,
    LLMServerError,
    LLMTimeout,
    LLMTransportError,
)
from contractscope.llm.gateway import ModelGateway
from contractscope.llm.ports import ModelGatewayPort
from contractscope.llm.settings import LLMSettings
from contractscope.llm.types import (
    ChatMessage,
    LLMProvider,
    LLMResponse,
    LocalEndpoint,
    ModelConfig,
    OnlineEndpoint,
)

__all__ = [
    "ModelGateway",
    "ModelGatewayPort",
    "ModelConfig",
    "LocalEndpoint",
    "OnlineEndpoint",
    "ChatMessage",
    "LLMResponse",
    "LLMProvider",
    "LLMSettings",
    "LLMError",
    "LLMConfigurationError",
    "LLMConnectionError",
    "LLMTimeout",
    "LLMTransportError",
    "LLMServerError",
    "LLMClientError",
    "LLMParseError",
    "LLMEmptyResponse",
]
