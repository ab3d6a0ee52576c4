"""Page retrieval and readable-article extraction.

Per-request safeguards:
- Allowed URL schemes: https:// and http:// only.
- SSRF guard: the hostname is resolved and private/loopback/link-local
  ranges are rejected before any connection is made.
- Content-Type whitelist: HTML, XHTML and plain text.
- Response body size cap and per-request timeout (from FetchCfg).
- Max redirects: 3.
- Browser User-Agent, since many sites refuse unknown clients.
"""

from __future__ import annotations

import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request
from http.client import HTTPResponse

import html2text
from bs4 import BeautifulSoup

from memlayer.config import FetchCfg
from memlayer.errors import ExtractionFailure, NetworkFailure
from memlayer.ingest.base import Article

_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "application/xhtml+xml", "text/plain"}
_EXCERPT_CHARS = 300

# Non-content elements dropped before text conversion.
_STRIP_TAGS = ["script", "style", "noscript", "nav", "footer", "header", "aside", "form", "iframe", "svg"]

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.ignore_emphasis = True
_h2t.body_width = 0


class SsrfError(NetworkFailure):
    """Raised when a URL resolves to a private or reserved address."""


class ArticleFetcher:
    """Fetch a URL and extract its readable article.

    :meth:`fetch` raises :class:`NetworkFailure` when the page cannot be
    retrieved and :class:`ExtractionFailure` when it holds no article.
    """

    def __init__(self, config: FetchCfg | None = None) -> None:
        self._config = config or FetchCfg()

    def fetch(self, url: str) -> Article:
        self._validate_scheme(url)
        self._check_ssrf(url)
        body, content_type = self._fetch(url)
        if content_type == "text/plain":
            article = _plain_text_article(body)
        else:
            article = extract_article(body)
        if len(article.content) < self._config.min_content_length:
            raise ExtractionFailure(
                f"Extracted text too short ({len(article.content)} chars) for URL '{url}'."
            )
        return article

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise NetworkFailure(
                f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges.

        Raises SsrfError if any resolved address is private, loopback,
        link-local, or otherwise reserved.
        """
        parsed = urllib.parse.urlparse(url)
        hostname = parsed.hostname
        if not hostname:
            raise NetworkFailure(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise NetworkFailure(f"DNS resolution failed for '{hostname}': {exc}") from exc
        except (UnicodeError, ValueError) as exc:
            # IDNA encoding rejects empty or oversized labels, e.g. "a..example.com".
            raise NetworkFailure(f"Invalid hostname '{hostname}': {exc}") from exc

        for addrinfo in addrinfos:
            addr_str = addrinfo[4][0]
            try:
                ip = ipaddress.ip_address(addr_str)
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Access to internal network addresses is not allowed."
                )

    def _fetch(self, url: str) -> tuple[str, str]:
        """Fetch *url* with timeout, redirect limit, size cap, and Content-Type check.

        Returns (decoded_body, content_type_without_params).
        """
        request = urllib.request.Request(url, headers={"User-Agent": self._config.user_agent})
        opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

        try:
            response: HTTPResponse = opener.open(request, timeout=self._config.request_timeout)
        except (urllib.error.URLError, OSError) as exc:
            raise NetworkFailure(f"Failed to fetch URL '{url}': {exc}") from exc

        with response:
            raw_ct = response.headers.get("Content-Type", "text/html")
            ct = raw_ct.split(";")[0].strip().lower()
            if ct not in _ALLOWED_CONTENT_TYPES:
                raise ExtractionFailure(
                    f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                    f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
                )

            max_bytes = self._config.max_bytes
            try:
                body = response.read(max_bytes + 1)
            except OSError as exc:
                raise NetworkFailure(f"Failed to read URL '{url}': {exc}") from exc
            if len(body) > max_bytes:
                raise NetworkFailure(
                    f"Response body exceeds {max_bytes // (1024 * 1024)} MB limit for URL '{url}'."
                )
            charset = response.headers.get_content_charset() or "utf-8"

        try:
            return body.decode(charset, errors="replace"), ct
        except LookupError:
            return body.decode("utf-8", errors="replace"), ct


# ------------------------------------------------------------------
# Extraction
# ------------------------------------------------------------------


def extract_article(html: str) -> Article:
    """Extract title, byline, excerpt and main text from an HTML document.

    The main text comes from ``<article>``, then ``<main>``, then
    ``[role=main]``, then ``<body>``, after dropping navigation and other
    non-content elements.

    Raises:
        ExtractionFailure: If no readable text remains.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, "og:title") or _title_tag(soup)
    byline = _meta(soup, "author") or _meta(soup, "article:author")
    description = _meta(soup, "og:description") or _meta(soup, "description")
    if not title:
        heading = soup.find("h1")
        title = heading.get_text(" ", strip=True) if heading else ""

    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()

    node = (
        soup.find("article")
        or soup.find("main")
        or soup.find(attrs={"role": "main"})
        or soup.body
        or soup
    )
    text = _h2t.handle(str(node)).strip()
    if not text:
        raise ExtractionFailure("No readable article content found.")

    return Article(
        title=title,
        content=text,
        word_count=len(text.split()),
        excerpt=description or text[:_EXCERPT_CHARS],
        byline=byline or None,
    )


def _plain_text_article(body: str) -> Article:
    text = body.strip()
    if not text:
        raise ExtractionFailure("No readable article content found.")
    return Article(title="", content=text, word_count=len(text.split()), excerpt=text[:_EXCERPT_CHARS])


def _meta(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
    if tag is None:
        return ""
    return str(tag.get("content") or "").strip()


def _title_tag(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return ""


# ------------------------------------------------------------------
# Connectivity pre-flight
# ------------------------------------------------------------------


def check_connectivity(config: FetchCfg | None = None) -> bool:
    """Return True if ``config.connectivity_url`` answers with a non-error status."""
    cfg = config or FetchCfg()
    request = urllib.request.Request(cfg.connectivity_url, headers={"User-Agent": cfg.user_agent})
    try:
        with urllib.request.urlopen(request, timeout=cfg.connectivity_timeout) as response:
            return response.status < 400
    except (urllib.error.URLError, OSError):
        return False


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise NetworkFailure(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        return super().redirect_request(req, fp, code, msg, headers, newurl)
