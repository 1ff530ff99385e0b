"""Adaptive request timeouts derived from the expected output size."""
from __future__ import annotations

import logging

from contractscope.llm.settings import LLMSettings
from contractscope.llm.types import LLMProvider

logger = logging.getLogger(__name__)


def base_timeout(settings: LLMSettings, provider: LLMProvider) -> float:
    if provider == LLMProvider.ONLINE:
        return settings.online_timeout_s
    return settings.local_timeout_s


def dynamic_timeout(settings: LLMSettings, provider: LLMProvider, expected_tokens: int) -> float:
    """(expected / tps) truncated to whole seconds, times margin, plus network overhead."""
    if provider == LLMProvider.ONLINE:
        tps, margin = settings.online_tokens_per_second, settings.online_margin
    else:
        tps, margin = settings.local_tokens_per_second, settings.local_margin
    estimated_s = int(max(expected_tokens, 0) / tps)
    return estimated_s * margin + settings.network_overhead_s


def request_timeout(settings: LLMSettings, provider: LLMProvider, expected_tokens: int) -> float:
    """Effective timeout: the larger of the provider base and the dynamic estimate."""
    base = base_timeout(settings, provider)
    dynamic = dynamic_timeout(settings, provider, expected_tokens)
    if dynamic > base:
        logger.debug(
            "Dynamic timeout %.0fs (expected ~%d tokens, provider=%s)",
            dynamic,
            expected_tokens,
            provider.value,
        )
        return dynamic
    return base
