"""External AI capabilities consumed by the pipeline.

The pipeline only ever sees the :class:`AICapabilities` protocol. Production
binds it to :class:`LiteLLMCapabilities`; tests bind a deterministic stub.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from typing import Protocol

from memlayer.ai import llm_client
from memlayer.config import AiCfg
from memlayer.ingest.base import HistoryEntry

_SUMMARY_PROMPT = """\
You are a personal knowledge assistant. Write a concise summary (max {max_tokens} tokens) \
of the following web page so it can be recalled later by semantic search. Focus on the \
key topics, claims, and facts; do not mention the website itself.

Page text:
{document_text}

Summary:"""

_RANKING_PROMPT = """\
You are curating a user's browsing history into a personal knowledge base. \
From the candidate pages below, pick the {target} pages most likely to contain \
substantial, reusable reading material (articles, essays, tutorials, research). \
Skip dashboards, shopping, account pages, and thin content.

Respond with ONLY a JSON array of the chosen URLs, best first.

Candidates (JSON):
{candidates}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class AICapabilities(Protocol):
    """Opaque summarisation / embedding / ranking capability."""

    def summarize(self, text: str) -> str: ...

    def embed(self, text: str) -> list[float]: ...

    def rank_top_urls(self, candidates: Sequence[HistoryEntry], target: int) -> list[str]: ...


class LiteLLMCapabilities:
    """:class:`AICapabilities` backed by LiteLLM models from *config*.

    Args:
        config: Model strings and retry count.
        summary_max_tokens: Maximum tokens in a generated summary.
    """

    def __init__(self, config: AiCfg | None = None, summary_max_tokens: int = 300) -> None:
        self._config = config or AiCfg()
        self._summary_max_tokens = summary_max_tokens

    def validate(self) -> None:
        """Raise EnvironmentError if any configured provider lacks an API key."""
        for model in {
            self._config.summary_model,
            self._config.embedding_model,
            self._config.ranking_model,
        }:
            llm_client.validate_api_key(model)

    def summarize(self, text: str) -> str:
        prompt = _SUMMARY_PROMPT.format(
            max_tokens=self._summary_max_tokens, document_text=text
        )
        return llm_client.ask(
            self._config.summary_model,
            prompt,
            max_tokens=self._summary_max_tokens,
            num_retries=self._config.num_retries,
        )

    def embed(self, text: str) -> list[float]:
        return llm_client.embed(
            self._config.embedding_model,
            text,
            dimensions=self._config.embedding_dimensions,
            num_retries=self._config.num_retries,
        )

    def rank_top_urls(self, candidates: Sequence[HistoryEntry], target: int) -> list[str]:
        """Ask the ranking model for the *target* best URLs among *candidates*.

        Raises:
            ValueError: If the model reply is not a JSON array of strings.
        """
        payload = [
            {"url": c.url, "title": c.title, "visitCount": c.visit_count} for c in candidates
        ]
        prompt = _RANKING_PROMPT.format(target=target, candidates=json.dumps(payload))
        reply = llm_client.ask(
            self._config.ranking_model,
            prompt,
            max_tokens=4096,
            num_retries=self._config.num_retries,
        )
        return parse_url_list(reply)


def parse_url_list(reply: str) -> list[str]:
    """Parse a model reply into a list of URLs, tolerating a Markdown code fence."""
    text = _FENCE_RE.sub("", reply.strip()).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Ranking reply is not valid JSON: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("urls", data.get("selected"))
    if not isinstance(data, list) or not all(isinstance(u, str) for u in data):
        raise ValueError("Ranking reply must be a JSON array of URL strings")
    return data
