"""Exception taxonomy for the ingestion and query pipelines.

Task-local failures (network, extraction, persistence) are absorbed by the
component that raised them and surface only as statistics or partial results.
Run-level failures (no connectivity, curation unavailable) abort the run.
"""

from __future__ import annotations


class MemlayerError(Exception):
    """Base class for all memlayer errors."""


class NetworkFailure(MemlayerError):
    """A page could not be retrieved (DNS, connection, HTTP status, size cap)."""


class FetchTimeout(NetworkFailure):
    """The single-URL fetch exceeded its wall-clock timeout."""


class ExtractionFailure(MemlayerError):
    """A page was fetched but yielded no readable article content."""


class CurationUnavailable(MemlayerError):
    """The external ranking capability failed; fatal for the ingestion run."""


class PersistenceFailure(MemlayerError):
    """A single memory could not be summarised, embedded, or stored."""


class NoConnectivity(MemlayerError):
    """Pre-flight connectivity check failed; no fetch work is started."""


class InvalidRequest(MemlayerError):
    """An IPC request was not valid JSON or lacked a string ``id``."""


class MessageTooLarge(MemlayerError):
    """Buffered IPC input exceeded the configured size guard."""
