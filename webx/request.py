"""Request - Reusable base request and per-call request materialization.

A Request is anchored to an absolute base URL and holds a resolved
RequestConfig that never changes after construction, so one Request can be
shared by many threads issuing independent calls.

Each call resolves its own options and merges them with the base in four
stages (base additive, base replacing, call additive, call replacing) for
both query arguments and headers, so call replacing values win over
everything and additive values accumulate.

The target URL is a plain path join (base without trailing slash + "/" +
ref without leading slash). It is never RFC 3986 reference resolution, so ref
cannot change the scheme or host.
"""

from __future__ import annotations

import base64
import logging

import httpx

from webx.errors import BadBodyError, BadRequestError, BadURLError
from webx.executor import execute, select_client
from webx.form_encoder import encode_form
from webx.models import HEADER_AUTHORIZATION, HEADER_CONTENT_TYPE, MIME_UNKNOWN
from webx.options import Option, RequestConfig, resolve
from webx.response import Response

logger = logging.getLogger(__name__)

# Methods that never carry a request body.
BODYLESS_METHODS = frozenset({"GET", "HEAD"})


def parse_base_url(base_url: str) -> httpx.URL:
    """Parse and check that base_url is absolute (scheme and host).

    Raises:
        BadURLError: If the URL is malformed or relative.
    """
    try:
        url = httpx.URL(base_url.strip())
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise BadURLError(f"invalid base URL: {e}", debug={"URL": base_url}) from e

    if not url.scheme or not url.host:
        raise BadURLError("base URL must be absolute", debug={"URL": base_url})
    return url


def join_url(base_url: str, ref: str) -> str:
    """Join ref onto base_url as path segments with exactly one slash."""
    return base_url.rstrip("/") + "/" + ref.strip().lstrip("/")


def merge_query(
    params: httpx.QueryParams,
    base: RequestConfig,
    call: RequestConfig,
) -> httpx.QueryParams:
    for config in (base, call):
        for name, values in config.add_args.items():
            for value in values:
                params = params.add(name, value)
        for name, value in config.set_args.items():
            params = params.set(name, value)
    return params


def _set_header(headers: list[tuple[str, str]], name: str, value: str) -> list[tuple[str, str]]:
    lookup = name.lower()
    kept = [(key, val) for key, val in headers if key.lower() != lookup]
    kept.append((name, value))
    return kept


def merge_headers(
    base: RequestConfig,
    call: RequestConfig,
    call_overrides: dict[str, str] | None = None,
) -> list[tuple[str, str]]:
    """Merge headers of base and call; names compare case-insensitively.

    call_overrides are applied after the call's own replacing headers (the
    multipart Content-Type produced by the form encoder).
    """
    headers: list[tuple[str, str]] = []
    for replacing, config in ((None, base), (call_overrides, call)):
        for name, values in config.add_headers.items():
            for value in values:
                headers.append((name, value))
        for name, value in config.set_headers.items():
            headers = _set_header(headers, name, value)
        for name, value in (replacing or {}).items():
            headers = _set_header(headers, name, value)

    if not any(key.lower() == HEADER_CONTENT_TYPE.lower() for key, _ in headers):
        headers.append((HEADER_CONTENT_TYPE, MIME_UNKNOWN))

    user, password = (call.user, call.password) if call.user else (base.user, base.password)
    if user:
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        headers = _set_header(headers, HEADER_AUTHORIZATION, f"Basic {token}")

    return headers


def _read_body(source: object) -> bytes:
    if source is None:
        return b""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, str):
        return source.encode("utf-8")

    read = getattr(source, "read", None)
    if not callable(read):
        raise BadBodyError(f"body must be bytes, str or readable, got {type(source).__name__}")
    try:
        data = read()
    except (OSError, ValueError) as e:
        raise BadBodyError(f"cannot read request body: {e}") from e
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


class Request:
    """Immutable base request. Use make() to issue calls against it.

    Usage:
        api = Request("https://api.example.com/v1/", auth("svc", "secret"))
        response = api.make("items/", append_arg("limit", "10"))
        items = response.json()
    """

    def __init__(self, base_url: str, *options: Option) -> None:
        """Resolve base options and validate the base URL.

        Raises:
            BadOptionError: If an option rejects its arguments.
            BadURLError: If base_url is not a valid absolute URL.
        """
        self._config = resolve(options)
        self._base_url = parse_base_url(base_url)

    def __repr__(self) -> str:
        return f"<Request {self._base_url}>"

    @property
    def base_url(self) -> str:
        return str(self._base_url)

    def build(self, ref: str = "", *options: Option) -> httpx.Request:
        """Materialize the outgoing request for ref without sending it."""
        call = resolve(options)
        return self._build(ref, call)

    def make(self, ref: str = "", *options: Option) -> Response:
        """Build, send and buffer one call.

        Returns:
            The Response, when its status is a success code.

        Raises:
            BadOptionError: If a call option rejects its arguments (nothing is sent).
            BadURLError / BadBodyError / BadRequestError: If the request cannot be
                built or the transport fails.
            BadResponseError: If the response body cannot be read.
            ResponseError: For non-success statuses; the Response is on .response.
        """
        call = resolve(options)
        request = self._build(ref, call)
        client = select_client(call.client, self._config.client)
        response = execute(client, request, debug=self._config.debug or call.debug)
        return response.raise_for_status()

    def _build(self, ref: str, call: RequestConfig) -> httpx.Request:
        base = self._config
        overrides: dict[str, str] = {}

        content: bytes | None = None
        if call.method not in BODYLESS_METHODS:
            if call.body is not None:
                content = _read_body(call.body)
            elif call.has_form:
                form = encode_form(call.fields, call.files)
                content = form.content
                overrides[HEADER_CONTENT_TYPE] = form.content_type
        elif call.body is not None or call.has_form:
            logger.debug("Dropping body of %s call to %r", call.method, ref)

        address = join_url(str(self._base_url), ref)
        try:
            url = httpx.URL(address)
        except httpx.InvalidURL as e:
            raise BadURLError(f"invalid request URL: {e}", debug={"URL": address}) from e

        url = url.copy_with(params=merge_query(url.params, base, call))
        headers = merge_headers(base, call, overrides)

        extensions = {}
        request_timeout = call.timeout or base.timeout
        if request_timeout is not None:
            extensions["timeout"] = request_timeout.as_dict()

        try:
            return httpx.Request(
                call.method,
                url,
                headers=headers,
                content=content,
                extensions=extensions,
            )
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise BadRequestError(
                f"cannot build request: {e}",
                debug={"URL": str(url), "Method": call.method},
            ) from e


def new_request(base_url: str, *options: Option) -> Request:
    """Create a reusable base request anchored to base_url."""
    return Request(base_url, *options)
