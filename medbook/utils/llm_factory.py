"""LLM Factory - Multi-provider abstraction for language models.

Creates chat models for Groq (default), Anthropic and OpenAI. Groq is
reached through its OpenAI-compatible endpoint.
"""

import logging
import os
import threading
from typing import Literal

from langchain_core.language_models.chat_models import BaseChatModel

from medbook.config import DEFAULT_MAX_TOKENS, DEFAULT_MODELS, GROQ_BASE_URL

logger = logging.getLogger(__name__)

# Type alias for supported providers
ProviderType = Literal["anthropic", "groq", "openai"]

# Thread-safe cache for LLM instances
_llm_cache: dict[tuple, BaseChatModel] = {}
_cache_lock = threading.Lock()


def create_llm(
    provider: ProviderType | None = None,
    model: str | None = None,
    temperature: float = 0.7,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> BaseChatModel:
    """Create an LLM instance with multi-provider support.

    Provider can be specified via parameter or PROVIDER environment variable.
    Model can be specified via parameter or {PROVIDER}_MODEL environment variable.

    LLM instances are cached by (provider, model, temperature, max_tokens).

    Args:
        provider: LLM provider ("groq", "anthropic", "openai").
                 Defaults to PROVIDER env var or "groq".
        model: Model name. Defaults to {PROVIDER}_MODEL env var or provider default.
        temperature: Temperature for generation (0.0-1.0).
        max_tokens: Upper bound on response length.

    Returns:
        Configured LLM instance.

    Raises:
        ValueError: If provider is invalid.

    Examples:
        >>> llm = create_llm(temperature=0.3)

        >>> llm = create_llm(provider="anthropic", temperature=0.1)
    """
    selected_provider = provider or os.getenv("PROVIDER") or "groq"

    if selected_provider not in DEFAULT_MODELS:
        raise ValueError(
            f"Invalid provider: {selected_provider}. "
            f"Must be one of: {', '.join(DEFAULT_MODELS.keys())}"
        )

    selected_model = model or DEFAULT_MODELS[selected_provider]

    cache_key = (selected_provider, selected_model, temperature, max_tokens)

    with _cache_lock:
        if cache_key in _llm_cache:
            logger.debug(
                f"Using cached LLM: {selected_provider}/{selected_model} (temp={temperature})"
            )
            return _llm_cache[cache_key]

        logger.info(
            f"Creating LLM: {selected_provider}/{selected_model} (temp={temperature})"
        )

        if selected_provider == "openai":
            from langchain_openai import ChatOpenAI

            llm = ChatOpenAI(
                model=selected_model, temperature=temperature, max_tokens=max_tokens
            )
        elif selected_provider == "anthropic":
            from langchain_anthropic import ChatAnthropic

            llm = ChatAnthropic(
                model=selected_model, temperature=temperature, max_tokens=max_tokens
            )
        else:  # groq (default)
            from langchain_openai import ChatOpenAI

            llm = ChatOpenAI(
                model=selected_model,
                temperature=temperature,
                max_tokens=max_tokens,
                base_url=GROQ_BASE_URL,
                api_key=os.getenv("GROQ_API_KEY"),
            )

        _llm_cache[cache_key] = llm

        return llm


def clear_cache() -> None:
    """Clear the LLM instance cache.

    Useful for testing or when you want to force recreation of LLM instances.
    """
    with _cache_lock:
        _llm_cache.clear()
    logger.debug("LLM cache cleared")
