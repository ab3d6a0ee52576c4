"""URL canonicalisation — stable comparison keys for stored pages.

Two keys exist on purpose:

* :func:`canonicalize` is the full normalisation used for the
  (user_id, canonical_url) uniqueness constraint.
* :func:`dedupe_key` is the looser key the history deduplicator groups by
  (lower-case, one trailing slash removed). It does not strip tracking
  parameters or fragments, so two history rows that differ only by
  ``utm_*`` survive deduplication and are collapsed later by the unique
  index instead.
"""

from __future__ import annotations

import re
import urllib.parse

_TRACKING_PREFIX = "utm_"
_TRACKING_KEYS = frozenset({"ref"})
_WWW_RE = re.compile(r"^(?:www\.)+")


def canonicalize(raw: str) -> str:
    """Normalise *raw* into a stable key. Never raises.

    Lower-cases the host and strips a leading ``www.``, drops the fragment,
    removes ``utm_*`` and ``ref`` query parameters, sorts the remaining
    ``key=value`` pairs and strips trailing slashes from the path. Input that
    is not an absolute URL is returned unchanged. Idempotent.
    """
    try:
        parts = urllib.parse.urlsplit(raw)
        if not parts.scheme or not parts.netloc:
            return raw
        host = parts.hostname or ""
        port = parts.port
    except ValueError:
        return raw

    host = host.lower()
    host = _WWW_RE.sub("", host)
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None:
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    pairs = [
        f"{urllib.parse.quote_plus(k)}={urllib.parse.quote_plus(v)}"
        for k, v in urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
        if not k.startswith(_TRACKING_PREFIX) and k not in _TRACKING_KEYS
    ]
    query = "&".join(sorted(pairs))

    path = parts.path.rstrip("/")
    return urllib.parse.urlunsplit((parts.scheme.lower(), netloc, path, query, ""))


def dedupe_key(url: str) -> str:
    """Loose grouping key for history deduplication: lower-case, one trailing slash removed."""
    return re.sub(r"/$", "", url.lower())
