"""LiteLLM calls behind the memlayer capabilities.

Every model call memlayer makes is a single prompt (summary or URL ranking)
or a single-text embedding, so this module exposes exactly those two shapes
plus the provider API-key check used by the CLI before any network call.
Retries and backoff are LiteLLM's own (``num_retries``).
"""

from __future__ import annotations

import math
import os

import litellm

litellm.suppress_debug_info = True

_KEYLESS_PROVIDERS = frozenset({"ollama", "ollama_chat"})
_DEFAULT_PROVIDER = "openai"


def provider_of(model: str) -> str:
    """Provider prefix of a LiteLLM model string; bare names are OpenAI models."""
    return model.split("/", 1)[0].lower() if "/" in model else _DEFAULT_PROVIDER


def api_key_env(model: str) -> str | None:
    """Environment variable holding the key for *model*'s provider, or None if keyless."""
    provider = provider_of(model)
    if provider in _KEYLESS_PROVIDERS:
        return None
    return f"{provider.upper()}_API_KEY"


def validate_api_key(model: str) -> None:
    """Raise EnvironmentError if *model*'s provider key is not set."""
    env_var = api_key_env(model)
    if env_var is not None and not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider_of(model)}'. "
            f"Set the {env_var} environment variable."
        )


def ask(model: str, prompt: str, *, max_tokens: int, num_retries: int = 3) -> str:
    """Send *prompt* as one user message and return the stripped reply text."""
    response = litellm.completion(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        temperature=0.0,
        num_retries=num_retries,
    )
    return (response.choices[0].message.content or "").strip()


def embed(
    model: str,
    text: str,
    *,
    dimensions: int | None = None,
    num_retries: int = 3,
) -> list[float]:
    """Embed *text* and return the vector as plain floats ready for float32 storage.

    Raises:
        ValueError: If *text* is blank, the vector is empty or non-finite, or
            its length differs from *dimensions*.
    """
    if not text.strip():
        raise ValueError("Cannot embed empty text")
    response = litellm.embedding(model=model, input=[text], num_retries=num_retries)
    vector = [float(x) for x in response.data[0]["embedding"]]
    if not vector:
        raise ValueError(f"{model} returned an empty embedding")
    if dimensions is not None and len(vector) != dimensions:
        raise ValueError(
            f"{model} returned {len(vector)} dimensions, expected {dimensions}"
        )
    if not all(math.isfinite(x) for x in vector):
        raise ValueError(f"{model} returned a non-finite embedding value")
    return vector
