"""Options - Composable configuration mutations for base requests and calls.

An option is a callable applied to a RequestConfig. Each option validates its
own arguments when applied and raises BadOptionError before touching the
record. resolve() folds a sequence of options left to right and stops at the
first failure, so nothing is ever sent with a half-valid configuration.

Additive fields (add_args, add_headers, fields, files) accumulate values.
Replacing fields (set_args, set_headers, method, auth, body) keep the last
writer per key.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Iterable, Protocol

import httpx
from pydantic import BaseModel

from webx.errors import BadOptionError
from webx.models import HEADER_CONTENT_TYPE, HEADER_X_API_KEY, MIME_JSON, File


class HTTPClient(Protocol):
    """Anything that sends an httpx.Request synchronously (httpx.Client does)."""

    def send(self, request: httpx.Request) -> httpx.Response: ...


# bytes, str, or any object with read()
BodySource = Any


@dataclass
class RequestConfig:
    """Resolved configuration of a base request or of a single call."""

    method: str = "GET"
    add_args: dict[str, list[str]] = dc_field(default_factory=dict)
    set_args: dict[str, str] = dc_field(default_factory=dict)
    add_headers: dict[str, list[str]] = dc_field(default_factory=dict)
    set_headers: dict[str, str] = dc_field(default_factory=dict)
    user: str = ""
    password: str = ""
    body: BodySource | None = None
    fields: dict[str, bytes] = dc_field(default_factory=dict)
    files: dict[str, list[File]] = dc_field(default_factory=dict)
    client: HTTPClient | None = None
    debug: bool = False
    timeout: httpx.Timeout | None = None

    @property
    def has_form(self) -> bool:
        return bool(self.fields or self.files)


Option = Callable[[RequestConfig], None]


def resolve(options: Iterable[Option]) -> RequestConfig:
    """Apply options in order to a fresh RequestConfig.

    Raises:
        BadOptionError: From the first option that rejects its arguments.
    """
    config = RequestConfig()
    for option in options:
        option(config)
    return config


def _require(value: Any, what: str) -> None:
    if not value:
        raise BadOptionError(f"{what} must not be empty")


def _marshal_json(value: Any) -> bytes:
    """Encode value as compact JSON. Pydantic models are dumped first."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise BadOptionError(f"cannot encode value as JSON: {e}") from e


# =============================================================================
# Query arguments and headers
# =============================================================================


def append_arg(name: str, value: str) -> Option:
    """Add one value for a query argument, keeping earlier values."""

    def apply(config: RequestConfig) -> None:
        _require(name, "argument name")
        config.add_args.setdefault(name, []).append(str(value))

    return apply


def replace_arg(name: str, value: str) -> Option:
    """Set a query argument, replacing every earlier value."""

    def apply(config: RequestConfig) -> None:
        _require(name, "argument name")
        config.set_args[name] = str(value)

    return apply


def append_header(name: str, value: str) -> Option:
    """Add one value for a header, keeping earlier values."""

    def apply(config: RequestConfig) -> None:
        _require(name, "header name")
        config.add_headers.setdefault(name, []).append(str(value))

    return apply


def replace_header(name: str, value: str) -> Option:
    """Set a header, replacing every earlier value."""

    def apply(config: RequestConfig) -> None:
        _require(name, "header name")
        config.set_headers[name] = str(value)

    return apply


def auth(user: str, password: str = "") -> Option:
    """Send basic-auth credentials. Call credentials win over base ones."""

    def apply(config: RequestConfig) -> None:
        _require(user, "user name")
        config.user = user
        config.password = password

    return apply


def api_key(key: str) -> Option:
    """Send key in the X-API-Key header."""

    def apply(config: RequestConfig) -> None:
        _require(key, "API key")
        config.set_headers[HEADER_X_API_KEY] = key

    return apply


# =============================================================================
# Method
# =============================================================================


def method(name: str) -> Option:
    def apply(config: RequestConfig) -> None:
        _require(name, "method")
        config.method = name.upper()

    return apply


def get() -> Option:
    return method("GET")


def put() -> Option:
    return method("PUT")


def head() -> Option:
    return method("HEAD")


def post() -> Option:
    return method("POST")


def patch() -> Option:
    return method("PATCH")


def delete() -> Option:
    return method("DELETE")


# =============================================================================
# Body and form
# =============================================================================


def body(mime: str, reader: BodySource | None) -> Option:
    """Send an explicit body with the given Content-Type.

    reader may be bytes, str (sent as UTF-8) or any object with read().
    It is read once, when the call is built.
    """

    def apply(config: RequestConfig) -> None:
        _require(mime, "body MIME type")
        config.body = reader
        config.set_headers[HEADER_CONTENT_TYPE] = mime

    return apply


def body_json(value: Any) -> Option:
    """Send value as a compact JSON body."""

    def apply(config: RequestConfig) -> None:
        config.body = _marshal_json(value)
        config.set_headers[HEADER_CONTENT_TYPE] = MIME_JSON

    return apply


def field(name: str, data: bytes | None) -> Option:
    """Add a plain multipart form field with raw bytes."""

    def apply(config: RequestConfig) -> None:
        _require(name, "field name")
        config.fields[name] = bytes(data or b"")

    return apply


def field_str(name: str, text: str) -> Option:
    def apply(config: RequestConfig) -> None:
        _require(name, "field name")
        config.fields[name] = text.encode("utf-8")

    return apply


def field_json(name: str, value: Any) -> Option:
    """Add a form field holding value encoded as compact JSON."""

    def apply(config: RequestConfig) -> None:
        _require(name, "field name")
        config.fields[name] = _marshal_json(value)

    return apply


def _attach(name: str, files: tuple[File, ...], escape: bool) -> Option:
    def apply(config: RequestConfig) -> None:
        _require(name, "file field name")
        if not files:
            raise BadOptionError(f"field {name!r} needs at least one file")
        for item in files:
            if not isinstance(item, File):
                raise BadOptionError(f"field {name!r} got {type(item).__name__}, expected File")
            if not item.name:
                raise BadOptionError(f"file in field {name!r} has no name")

        attached = [item.model_copy(update={"escape": True}) if escape else item for item in files]
        config.files.setdefault(name, []).extend(attached)

    return apply


def field_file(name: str, *files: File) -> Option:
    """Attach files to a multipart field, sent as-is."""
    return _attach(name, files, escape=False)


def field_file_as_base64(name: str, *files: File) -> Option:
    """Attach files to a multipart field, base64-transcoded on the wire."""
    return _attach(name, files, escape=True)


# =============================================================================
# Transport
# =============================================================================


def client(c: HTTPClient | None) -> Option:
    """Send through c instead of the base or default client."""

    def apply(config: RequestConfig) -> None:
        if c is None or not callable(getattr(c, "send", None)):
            raise BadOptionError("client must provide a send(request) method")
        config.client = c

    return apply


def debug() -> Option:
    """Log a full dump of the outgoing request before sending it."""

    def apply(config: RequestConfig) -> None:
        config.debug = True

    return apply


def timeout(value: float | httpx.Timeout) -> Option:
    """Bound the call by value seconds (or an explicit httpx.Timeout)."""

    def apply(config: RequestConfig) -> None:
        if isinstance(value, httpx.Timeout):
            config.timeout = value
            return
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise BadOptionError(f"timeout must be a positive number, got {value!r}")
        config.timeout = httpx.Timeout(float(value))

    return apply
