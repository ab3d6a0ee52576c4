"""Blocklist filter — admission check over candidate history entries.

An entry is rejected when its lower-cased URL contains any blocked domain
substring, or when its raw URL matches any blocked regex. Everything else
passes through unchanged, in input order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from memlayer.config import BlocklistCfg
from memlayer.ingest.base import HistoryEntry

BLOCKED_DOMAINS: tuple[str, ...] = (
    # Social media
    "twitter.com",
    "x.com",
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "reddit.com",
    "tiktok.com",
    "snapchat.com",
    "pinterest.com",
    # Video platforms
    "youtube.com",
    "youtu.be",
    "twitch.tv",
    "vimeo.com",
    # Email & communication
    "mail.google.com",
    "outlook.live.com",
    "outlook.office.com",
    "yahoo.com/mail",
    "slack.com",
    "discord.com",
    "teams.microsoft.com",
    "zoom.us",
    # Cloud storage
    "drive.google.com",
    "dropbox.com",
    "onedrive.live.com",
    "docs.google.com",
    # Package registries and CDNs
    "npmjs.com",
    "npm.io",
    "cdnjs.com",
    "unpkg.com",
    "jsdelivr.net",
    # Icon libraries
    "lucide.dev",
    "fontawesome.com",
    "heroicons.com",
    "flaticon.com",
    # Search result pages
    "google.com/search",
    "bing.com/search",
    "duckduckgo.com/",
    # Analytics
    "analytics.google.com",
    # Version control
    "github.com",
    "gitlab.com",
    "bitbucket.org",
)

BLOCKED_PATTERNS: tuple[str, ...] = (
    # Auth flows
    r"/(login|signin|sign-in|signup|sign-up|register|auth|oauth|sso|callback|logout)",
    # API endpoints
    r"/api/",
    r"/graphql",
    # Documentation
    r"/docs?/",
    r"/documentation/",
    r"/guide",
    r"/guides/",
    r"/reference",
    r"/getting-started",
    r"/quickstart",
    r"readthedocs\.io",
    # Downloads
    r"\.(pdf|zip|rar|tar|gz|exe|dmg|pkg|deb|rpm)$",
    # Media
    r"\.(jpg|jpeg|png|gif|svg|webp|mp4|mp3|wav|avi|mov)$",
    # Local development hosts
    r"localhost",
    r"127\.0\.0\.1",
    r"192\.168\.",
    r"\.local",
    r"^file://",
    # Redirect parameters
    r"[?&](redirect|return|returnUrl|next|continue|callback)=",
)


class BlocklistFilter:
    """Reject-if-any-match filter over domains (substring) and patterns (regex).

    Args:
        domains: Lower-case substrings checked against the lower-cased URL.
        patterns: Regular expressions searched (case-insensitively) in the raw URL.
    """

    def __init__(
        self,
        domains: Sequence[str] = BLOCKED_DOMAINS,
        patterns: Sequence[str] = BLOCKED_PATTERNS,
    ) -> None:
        self._domains = tuple(d.lower() for d in domains)
        self._patterns = tuple(re.compile(p, re.IGNORECASE) for p in patterns)

    @classmethod
    def from_config(cls, cfg: BlocklistCfg) -> BlocklistFilter:
        """Built-in tables plus the configured additions."""
        return cls(
            domains=BLOCKED_DOMAINS + tuple(cfg.extra_domains),
            patterns=BLOCKED_PATTERNS + tuple(cfg.extra_patterns),
        )

    def is_blocked(self, url: str) -> bool:
        lowered = url.lower()
        if any(domain in lowered for domain in self._domains):
            return True
        return any(pattern.search(url) for pattern in self._patterns)

    def apply(self, entries: Iterable[HistoryEntry]) -> list[HistoryEntry]:
        """Return the admitted entries, preserving input order."""
        return [entry for entry in entries if not self.is_blocked(entry.url)]
