"""Tests for MemoryWriter — clean, summarise, embed, persist."""

from __future__ import annotations

import pytest

from memlayer.config import WriterCfg
from memlayer.errors import PersistenceFailure
from memlayer.ingest.base import ProcessedEntry
from memlayer.ingest.memory_writer import MemoryWriter, clean_content, trim_for_processing


def _entry(url: str, content: str = "Some article body.") -> ProcessedEntry:
    return ProcessedEntry(
        url=url,
        title=f"Title {url}",
        content=content,
        content_length=len(content),
        word_count=len(content.split()),
        visit_count=1,
    )


# ------------------------------------------------------------------
# clean_content / trim_for_processing
# ------------------------------------------------------------------


def test_clean_collapses_whitespace():
    assert clean_content("a\n\n  b\t c ") == "a b c"


def test_clean_strips_boilerplate_from_first_occurrence():
    text = "Real content here. Subscribe to our newsletter for more! Also this."
    assert clean_content(text) == "Real content here."


def test_clean_strips_copyright_tail():
    assert clean_content("Body text.\n\nCopyright 2024 Example Inc.") == "Body text."


def test_trim_for_processing():
    assert trim_for_processing("abcdef", 4) == "abcd"
    assert trim_for_processing("abc", 4) == "abc"


# ------------------------------------------------------------------
# save()
# ------------------------------------------------------------------


def test_save_summarises_trimmed_text_and_embeds_summary(repo, stub_caps):
    writer = MemoryWriter(repo, stub_caps, WriterCfg(max_processing_length=10))
    memory = writer.save("u1", "https://Example.com/a/?utm_source=x", "T", "x" * 50, "manual")

    assert memory is not None
    assert stub_caps.summarize_calls == ["x" * 10]
    assert stub_caps.embed_calls == [memory.summary]
    assert memory.canonical_url == "https://example.com/a"
    assert memory.content == "x" * 50
    assert list(repo.get_memory(memory.id).vector) == stub_caps.default_vector


def test_save_duplicate_returns_none_without_ai_calls(repo, stub_caps):
    writer = MemoryWriter(repo, stub_caps)
    writer.save("u1", "https://example.com/a", "T", "body", "manual")
    stub_caps.summarize_calls.clear()

    assert writer.save("u1", "https://example.com/a/#frag", "T", "body", "manual") is None
    assert stub_caps.summarize_calls == []
    assert repo.count_memories("u1") == 1


def test_save_wraps_capability_error(repo, stub_caps):
    def failing(text: str) -> str:
        raise RuntimeError("quota")

    stub_caps.summarize = failing
    writer = MemoryWriter(repo, stub_caps)
    with pytest.raises(PersistenceFailure, match="quota"):
        writer.save("u1", "https://example.com/a", "T", "body", "manual")


# ------------------------------------------------------------------
# write_batch()
# ------------------------------------------------------------------


def test_write_batch_skips_failed_items(repo, stub_caps):
    original = stub_caps.summarize

    def flaky(text: str) -> str:
        if "poison" in text:
            raise RuntimeError("model refused")
        return original(text)

    stub_caps.summarize = flaky
    writer = MemoryWriter(repo, stub_caps)
    saved = writer.write_batch(
        "u1",
        [
            _entry("https://example.com/1"),
            _entry("https://example.com/2", content="poison pill"),
            _entry("https://example.com/3"),
        ],
    )

    assert [m.url for m in saved] == ["https://example.com/1", "https://example.com/3"]
    assert repo.count_memories("u1") == 2
    assert {m.source_type for m in repo.list_memories("u1")} == {"browser-history"}


def test_write_batch_never_creates_duplicate_rows(repo, stub_caps):
    writer = MemoryWriter(repo, stub_caps)
    saved = writer.write_batch(
        "u1", [_entry("https://example.com/a"), _entry("https://example.com/a?utm_medium=x")]
    )
    assert len(saved) == 1
    assert repo.count_memories("u1") == 1
