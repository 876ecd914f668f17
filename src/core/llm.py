"""
Homebase Assistant - LLM Provider Abstraction.

Single public function `complete()` that routes to the configured provider.
Provider is selected at first use via the LLM_PROVIDER env var.
Supports: gemini (default), anthropic, openai, cohere.

The router treats the model as a black-box text-completion service: no schema
is enforced here, callers parse and validate whatever text comes back.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# A conversation turn: {"role": "user" | "assistant", "content": "..."}
Turn = dict[str, str]

# Type alias for provider implementations
_ProviderFn = Callable[[str, str, str, str, list[Turn], int], Awaitable[str]]


class LLMUnavailableError(Exception):
    """Raised when no language model is configured for this deployment."""


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


def _chat_messages(system: str | None, history: list[Turn], user_message: str) -> list[dict]:
    """Build an OpenAI-style message list: [system], history..., user."""
    messages: list[dict] = []
    if system is not None:
        messages.append({"role": "system", "content": system})
    messages.extend({"role": t["role"], "content": t["content"]} for t in history)
    messages.append({"role": "user", "content": user_message})
    return messages


async def _complete_gemini(
    api_key: str, model: str, system: str, user_message: str, history: list[Turn], max_tokens: int,
) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    contents = [
        {"role": "model" if t["role"] == "assistant" else "user", "parts": [t["content"]]}
        for t in history
    ]
    contents.append({"role": "user", "parts": [user_message]})
    response = await gm.generate_content_async(
        contents,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )
    return response.text


async def _complete_anthropic(
    api_key: str, model: str, system: str, user_message: str, history: list[Turn], max_tokens: int,
) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=_chat_messages(None, history, user_message),
    )
    return response.content[0].text


async def _complete_openai(
    api_key: str, model: str, system: str, user_message: str, history: list[Turn], max_tokens: int,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=_chat_messages(system, history, user_message),
    )
    return response.choices[0].message.content


async def _complete_cohere(
    api_key: str, model: str, system: str, user_message: str, history: list[Turn], max_tokens: int,
) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=_chat_messages(system, history, user_message),
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read settings and return (provider_fn, model, api_key)."""
    from src.config import settings

    if not settings.LLM_API_KEY:
        raise LLMUnavailableError("LLM_API_KEY is not configured")

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, settings.LLM_API_KEY


def is_configured() -> bool:
    """True when an API key is present, i.e. complete() can reach a provider."""
    from src.config import settings

    return bool(settings.LLM_API_KEY)


def trim_history(history: list[Turn] | None, max_turns: int) -> list[Turn]:
    """Keep only the last `max_turns` well-formed turns of a conversation."""
    if not history or max_turns <= 0:
        return []
    turns = [
        {"role": t["role"], "content": str(t["content"])}
        for t in history
        if isinstance(t, dict)
        and t.get("role") in ("user", "assistant")
        and t.get("content")
    ]
    return turns[-max_turns:]


# Lazy singleton - populated on first call to complete()
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    user_message: str,
    max_tokens: int = 256,
    history: list[Turn] | None = None,
) -> str:
    """Send a prompt to the configured LLM provider and return the response text.

    `history` is capped to the last HISTORY_MAX_TURNS turns before it is
    forwarded. Raises LLMUnavailableError when no key is configured, and
    whatever the provider SDK raises on API errors; callers handle both.
    """
    global _provider_fn, _model, _api_key
    from src.config import settings

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    turns = trim_history(history, settings.HISTORY_MAX_TURNS)
    return await _provider_fn(_api_key, _model, system, user_message, turns, max_tokens)
