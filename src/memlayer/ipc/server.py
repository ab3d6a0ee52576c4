"""Capture bridge: newline-delimited JSON over a local TCP stream.

Each line is one request object with a string ``id``; each request gets
exactly one response line carrying the same ``id``. Blank lines are ignored.
A line longer than ``max_request_bytes`` gets ``message_too_large`` and the
connection is closed.
"""

from __future__ import annotations

import json
import logging
import socketserver
from collections.abc import Callable
from typing import Any, BinaryIO

from memlayer.config import IpcCfg
from memlayer.errors import InvalidRequest, MessageTooLarge
from memlayer.ingest.capture import CaptureRequest

logger = logging.getLogger(__name__)

Handler = Callable[[CaptureRequest], dict[str, Any]]

INVALID_REQUEST = "invalid_request"
MESSAGE_TOO_LARGE = "message_too_large"
INTERNAL_ERROR = "internal_error"


def _write(wfile: BinaryIO, payload: dict[str, Any]) -> None:
    wfile.write(json.dumps(payload).encode("utf-8") + b"\n")
    wfile.flush()


def _failure(request_id: Any, reason: str) -> dict[str, Any]:
    return {"id": request_id, "ok": False, "reason": reason}


def _parse(raw: bytes) -> CaptureRequest:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise InvalidRequest("malformed JSON") from exc
    return CaptureRequest.from_dict(data)


def _provided_id(raw: bytes) -> Any:
    """Best-effort ``id`` from a request that failed validation."""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return "unknown"
    if isinstance(data, dict) and data.get("id"):
        return data["id"]
    return "unknown"


def handle_line(raw: bytes, handler: Handler) -> dict[str, Any]:
    """Answer one request line. Never raises."""
    try:
        request = _parse(raw)
    except InvalidRequest:
        return _failure(_provided_id(raw), INVALID_REQUEST)

    try:
        response = handler(request)
    except Exception:
        logger.exception("Capture handler failed for request %s", request.id)
        return _failure(request.id, INTERNAL_ERROR)
    if response is None:
        return _failure(request.id, INTERNAL_ERROR)
    return response


def serve_stream(
    rfile: BinaryIO,
    wfile: BinaryIO,
    handler: Handler,
    max_bytes: int = 12 * 1024 * 1024,
) -> None:
    """Serve requests from *rfile* until EOF or an oversized message.

    Raises:
        MessageTooLarge: After answering a line longer than *max_bytes*; the
            caller closes the connection.
    """
    while True:
        raw = rfile.readline(max_bytes + 1)
        if not raw:
            return
        if len(raw) > max_bytes and not raw.endswith(b"\n"):
            _write(wfile, _failure("unknown", MESSAGE_TOO_LARGE))
            raise MessageTooLarge(f"request exceeds {max_bytes} bytes")
        if not raw.strip():
            continue
        _write(wfile, handle_line(raw.rstrip(b"\r\n"), handler))


class CaptureServer(socketserver.ThreadingTCPServer):
    """Threaded TCP server; one thread per connection."""

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], handler: Handler, max_bytes: int) -> None:
        self.handler = handler
        self.max_bytes = max_bytes
        super().__init__(address, _ConnectionHandler)


class _ConnectionHandler(socketserver.StreamRequestHandler):
    server: CaptureServer

    def handle(self) -> None:
        peer = "%s:%s" % self.client_address[:2]
        logger.info("Capture connection opened from %s", peer)
        try:
            serve_stream(self.rfile, self.wfile, self.server.handler, self.server.max_bytes)
        except MessageTooLarge as exc:
            logger.warning("Closing connection from %s: %s", peer, exc)
        except OSError as exc:
            logger.warning("Connection error from %s: %s", peer, exc)
        finally:
            logger.info("Capture connection closed from %s", peer)


def make_server(config: IpcCfg, handler: Handler) -> CaptureServer:
    """Bind a :class:`CaptureServer` on ``config.host:config.port``."""
    return CaptureServer((config.host, config.port), handler, config.max_request_bytes)
