"""Executor - Sends one materialized request and captures the response.

The Executor picks the client (call, then base, then the process-wide
default), optionally logs a dump of the outgoing request, sends it
synchronously and buffers the whole response body before closing the
transport response. It never retries; that belongs to the client.
"""

from __future__ import annotations

import logging
from threading import Lock

import httpx

from webx.errors import BadRequestError, BadResponseError
from webx.options import HTTPClient
from webx.response import Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

_default_client: HTTPClient | None = None
_default_client_lock = Lock()


def default_client() -> HTTPClient:
    """Return the shared default client, creating it on first use."""
    global _default_client
    with _default_client_lock:
        if _default_client is None:
            _default_client = httpx.Client(timeout=DEFAULT_TIMEOUT, follow_redirects=True)
        return _default_client


def set_default_client(client: HTTPClient | None) -> None:
    """Replace the shared default client. None restores lazy creation."""
    global _default_client
    with _default_client_lock:
        _default_client = client


def select_client(call_client: HTTPClient | None, base_client: HTTPClient | None) -> HTTPClient:
    if call_client is not None:
        return call_client
    if base_client is not None:
        return base_client
    logger.debug("No client configured, using the default client")
    return default_client()


def dump_request(request: httpx.Request) -> str:
    """Render the request line, headers and body the way they go on the wire.

    The body must already be in memory (webx always builds bytes), so dumping
    never consumes anything the transport still needs.
    """
    target = request.url.raw_path.decode("ascii", errors="replace")
    lines = [f"{request.method} {target} HTTP/1.1"]
    for name, value in request.headers.multi_items():
        lines.append(f"{name}: {value}")
    text = "\r\n".join(lines) + "\r\n\r\n"
    if request.content:
        text += request.content.decode("utf-8", errors="replace")
    return text


def _log_dump(request: httpx.Request) -> None:
    try:
        dump = dump_request(request)
    except Exception:
        logger.exception("Cannot dump request %s %s", request.method, request.url)
        return
    logger.info("webx.Request = %s", dump)


def execute(client: HTTPClient, request: httpx.Request, debug: bool = False) -> Response:
    """Send request through client and return the buffered response.

    Args:
        client: Client that performs the transport round trip.
        request: Fully built request.
        debug: Log a dump of the request before sending.

    Returns:
        Response snapshot. Status codes are not checked here.

    Raises:
        BadRequestError: If the transport fails (connection, timeout, ...).
        BadResponseError: If the response body cannot be read.
    """
    if debug:
        _log_dump(request)

    # Requests built outside Client.build_request carry no timeout extension;
    # use the client's own setting.
    if "timeout" not in request.extensions and isinstance(client, httpx.Client):
        request.extensions["timeout"] = client.timeout.as_dict()

    try:
        raw = client.send(request)
    except httpx.RequestError as e:
        raise BadRequestError(
            f"request failed: {e}",
            debug={
                "URL": str(request.url),
                "Method": request.method,
                "Length": len(request.content) if request.content else 0,
            },
        ) from e

    try:
        content = raw.read()
    except (httpx.HTTPError, httpx.StreamError) as e:
        raise BadResponseError(
            f"cannot read response body: {e}",
            debug={"URL": str(request.url), "Code": raw.status_code},
        ) from e
    finally:
        raw.close()

    logger.debug("%s %s -> %d (%d bytes)", request.method, request.url, raw.status_code, len(content))

    return Response(
        url=str(request.url),
        status_code=raw.status_code,
        headers=raw.headers,
        content=content,
    )
