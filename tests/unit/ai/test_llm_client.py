"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from memlayer.ai.llm_client import api_key_env, ask, embed, provider_of, validate_api_key


def _embedding_response(vector: list) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


# ------------------------------------------------------------------
# Provider / API key
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    ("model", "provider", "env_var"),
    [
        ("openai/gpt-4o-mini", "openai", "OPENAI_API_KEY"),
        ("gpt-4o-mini", "openai", "OPENAI_API_KEY"),
        ("Anthropic/claude-3-haiku", "anthropic", "ANTHROPIC_API_KEY"),
        ("mistral/mistral-embed", "mistral", "MISTRAL_API_KEY"),
        ("ollama/llama3", "ollama", None),
    ],
)
def test_provider_and_env_var(model, provider, env_var):
    assert provider_of(model) == provider
    assert api_key_env(model) == env_var


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/gpt-4o-mini")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o-mini")


def test_validate_api_key_keyless_provider():
    validate_api_key("ollama/llama3")


# ------------------------------------------------------------------
# ask()
# ------------------------------------------------------------------


def test_ask_sends_single_user_message_and_strips_reply():
    response = MagicMock()
    response.choices[0].message.content = "  A summary.\n"

    with patch("memlayer.ai.llm_client.litellm.completion", return_value=response) as mock_c:
        assert ask("openai/gpt-4o-mini", "Summarise this", max_tokens=300, num_retries=2) == "A summary."

    kwargs = mock_c.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "Summarise this"}]
    assert kwargs["max_tokens"] == 300
    assert kwargs["temperature"] == 0.0
    assert kwargs["num_retries"] == 2


def test_ask_none_content_is_empty_string():
    response = MagicMock()
    response.choices[0].message.content = None

    with patch("memlayer.ai.llm_client.litellm.completion", return_value=response):
        assert ask("openai/gpt-4o-mini", "Hi", max_tokens=10) == ""


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


def test_embed_returns_float_vector():
    with patch(
        "memlayer.ai.llm_client.litellm.embedding", return_value=_embedding_response([1, 0.5, -2])
    ) as mock_e:
        result = embed("openai/text-embedding-3-small", "hello")

    assert result == [1.0, 0.5, -2.0]
    assert all(isinstance(x, float) for x in result)
    assert mock_e.call_args.kwargs["input"] == ["hello"]


def test_embed_checks_dimensions():
    with patch(
        "memlayer.ai.llm_client.litellm.embedding", return_value=_embedding_response([0.1, 0.2])
    ):
        with pytest.raises(ValueError, match="expected 3"):
            embed("openai/text-embedding-3-small", "hello", dimensions=3)


def test_embed_rejects_empty_vector():
    with patch("memlayer.ai.llm_client.litellm.embedding", return_value=_embedding_response([])):
        with pytest.raises(ValueError, match="empty embedding"):
            embed("openai/text-embedding-3-small", "hello")


def test_embed_rejects_non_finite_values():
    with patch(
        "memlayer.ai.llm_client.litellm.embedding",
        return_value=_embedding_response([0.1, float("nan")]),
    ):
        with pytest.raises(ValueError, match="non-finite"):
            embed("openai/text-embedding-3-small", "hello")


def test_embed_blank_text_skips_call():
    with patch("memlayer.ai.llm_client.litellm.embedding") as mock_e:
        with pytest.raises(ValueError):
            embed("openai/text-embedding-3-small", "   ")
    mock_e.assert_not_called()
