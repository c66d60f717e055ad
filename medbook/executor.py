"""YAML Prompt Executor - Unified interface for LLM calls.

Loads a prompt, renders it with the caller's variables, and invokes the
configured chat model with exponential-backoff retry for transient errors.
"""

import logging
import time
from pathlib import Path

from jinja2 import StrictUndefined, Template
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from medbook.config import (
    DEFAULT_TEMPERATURE,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from medbook.utils.llm_factory import create_llm
from medbook.utils.prompts import load_prompt

logger = logging.getLogger(__name__)

__all__ = ["execute_prompt", "format_prompt", "is_retryable", "prepare_messages"]

# Exceptions that are retryable
RETRYABLE_EXCEPTIONS = (
    "RateLimitError",
    "APIConnectionError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
)


def is_retryable(exception: Exception) -> bool:
    """Check if an exception is retryable.

    Args:
        exception: The exception to check

    Returns:
        True if the exception should be retried
    """
    exc_name = type(exception).__name__
    return exc_name in RETRYABLE_EXCEPTIONS or "rate" in exc_name.lower()


def format_prompt(template: str, variables: dict) -> str:
    """Format a prompt template with variables.

    Uses Jinja2 when the template contains Jinja2 syntax ({%, {{),
    otherwise plain ``str.format`` placeholders.

    Examples:
        >>> format_prompt("Hello {name}", {"name": "World"})
        'Hello World'

        >>> format_prompt("{% for d in days %}{{ d }} {% endfor %}", {"days": ["Mon"]})
        'Mon '
    """
    if "{%" in template or "{{" in template:
        return Template(template, undefined=StrictUndefined).render(**variables)

    safe_vars = {
        k: (", ".join(map(str, v)) if isinstance(v, list) else v)
        for k, v in variables.items()
    }
    return template.format(**safe_vars)


def prepare_messages(
    prompt_name: str,
    variables: dict | None = None,
    prompts_dir: Path | None = None,
) -> list:
    """Load prompt, format, and build LangChain messages."""
    variables = variables or {}
    prompt_config = load_prompt(prompt_name, prompts_dir=prompts_dir)

    system_text = format_prompt(prompt_config.get("system", ""), variables)
    user_text = format_prompt(prompt_config["user"], variables)

    messages = []
    if system_text:
        messages.append(SystemMessage(content=system_text))
    messages.append(HumanMessage(content=user_text))
    return messages


def _invoke_with_retry(llm: BaseChatModel, messages: list, max_retries: int) -> str:
    """Invoke LLM with exponential backoff retry.

    Raises:
        Last exception if all retries fail
    """
    last_exception = None

    for attempt in range(max_retries):
        try:
            response = llm.invoke(messages)
            return response.content

        except Exception as e:
            last_exception = e

            if not is_retryable(e) or attempt == max_retries - 1:
                raise

            delay = min(RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY)
            logger.warning(
                f"LLM call failed (attempt {attempt + 1}/{max_retries}): {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            time.sleep(delay)

    raise last_exception


def execute_prompt(
    prompt_name: str,
    variables: dict | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    provider: str | None = None,
    prompts_dir: Path | None = None,
    max_retries: int = MAX_RETRIES,
) -> str:
    """Execute a YAML prompt and return the raw response text.

    Args:
        prompt_name: Name of the prompt file (without .yaml)
        variables: Variables to substitute in the template
        temperature: LLM temperature setting
        provider: LLM provider ("groq", "anthropic", "openai")
        prompts_dir: Prompts directory override
        max_retries: Attempts for retryable failures

    Example:
        >>> text = execute_prompt(
        ...     "extract_appointment",
        ...     variables={"text": "Book Dr. Smith tomorrow at 2pm",
        ...                "today": "2024-03-04", "tomorrow": "2024-03-05"},
        ...     temperature=0.3,
        ... )
    """
    messages = prepare_messages(prompt_name, variables, prompts_dir=prompts_dir)
    llm = create_llm(provider=provider, temperature=temperature)
    return _invoke_with_retry(llm, messages, max_retries)
