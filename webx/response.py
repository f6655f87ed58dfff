"""Response - Immutable snapshot of one finished call.

The body is fully buffered; the transport response is already closed by the
time a Response exists. Decoding helpers never mutate the snapshot.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, TypeVar, overload
from urllib.parse import unquote, urlsplit

import httpx
from pydantic import TypeAdapter, ValidationError

from webx.errors import BadResponseError, ResponseError, error_for_status
from webx.models import (
    ENCODING_BASE64,
    HEADER_CONTENT_DISP,
    HEADER_CONTENT_ENC,
    HEADER_CONTENT_TYPE,
    HEADER_LAST_MODIFIED,
    MIME_UNKNOWN,
    File,
)

T = TypeVar("T")


class Response:
    """Outgoing URL, status code, headers and body of a finished call."""

    __slots__ = ("_url", "_status_code", "_headers", "_content")

    def __init__(
        self,
        url: str,
        status_code: int,
        headers: Mapping[str, str] | httpx.Headers | None = None,
        content: bytes = b"",
    ) -> None:
        self._url = url
        self._status_code = status_code
        self._headers = httpx.Headers(headers or {})
        self._content = bytes(content)

    def __repr__(self) -> str:
        return f"<Response [{self._status_code}] {self._url}>"

    @property
    def url(self) -> str:
        return self._url

    @property
    def status_code(self) -> int:
        return self._status_code

    code = status_code

    @property
    def headers(self) -> httpx.Headers:
        # Copy so callers cannot change the snapshot.
        return httpx.Headers(self._headers)

    @property
    def content(self) -> bytes:
        return self._content

    def body(self) -> bytes:
        return self._content

    @property
    def text(self) -> str:
        return self._content.decode("utf-8", errors="replace")

    @property
    def last_modified(self) -> datetime | None:
        """Parsed Last-Modified header, or None if missing or malformed."""
        value = self._headers.get(HEADER_LAST_MODIFIED)
        if not value:
            return None
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None

    @overload
    def json(self) -> Any: ...

    @overload
    def json(self, model: type[T]) -> T: ...

    def json(self, model: Any = None) -> Any:
        """Decode the body as JSON.

        Args:
            model: Optional type (pydantic model, dataclass, typed dict, ...)
                   to validate the decoded value into.

        Raises:
            BadResponseError: If the body is not valid JSON or does not match model.
        """
        try:
            if model is None:
                return json.loads(self._content)
            return TypeAdapter(model).validate_json(self._content)
        except (ValueError, ValidationError) as e:
            raise BadResponseError(
                f"cannot decode JSON response: {e}",
                debug={"URL": self._url, "Body": self.text},
            ) from e

    def file(self) -> File:
        """Interpret the body as a downloaded attachment.

        The name comes from Content-Disposition (filename* or filename), or
        the last segment of the request URL when the header names no file. A body
        sent with Content-Transfer-Encoding: base64 is decoded.

        Raises:
            BadResponseError: If the disposition header or base64 payload is malformed.
        """
        name = None
        disposition = self._headers.get(HEADER_CONTENT_DISP)
        if disposition:
            name = _disposition_filename(disposition)
            if name is None and "filename" in disposition.lower():
                raise BadResponseError(
                    "cannot parse Content-Disposition header",
                    debug={"URL": self._url, HEADER_CONTENT_DISP: disposition},
                )
        if not name:
            name = _last_path_segment(self._url)

        data = self._content
        encoding = self._headers.get(HEADER_CONTENT_ENC, "")
        if encoding.strip().lower() == ENCODING_BASE64:
            try:
                data = base64.b64decode(b"".join(data.split()), validate=True)
            except (binascii.Error, ValueError) as e:
                raise BadResponseError(
                    f"cannot decode base64 attachment: {e}",
                    debug={"URL": self._url, "Body": self.text},
                ) from e

        return File(
            name=name,
            mime=self._headers.get(HEADER_CONTENT_TYPE) or MIME_UNKNOWN,
            data=data,
        )

    def error(self) -> ResponseError | None:
        """Return the error matching the status code, or None on success."""
        error_class = error_for_status(self._status_code)
        if error_class is None:
            return None
        return error_class(
            f"{error_class.default_message}: HTTP {self._status_code} from {self._url}",
            response=self,
            debug={"URL": self._url, "Code": self._status_code, "Body": self.text},
        )

    def raise_for_status(self) -> Response:
        """Raise the mapped ResponseError unless the status is a success code."""
        error = self.error()
        if error is not None:
            raise error
        return self


def _disposition_filename(value: str) -> str | None:
    """Extract the filename from a Content-Disposition value.

    Returns None when no filename parameter can be read.
    """
    message = Message()
    message[HEADER_CONTENT_DISP] = value
    # get_filename() decodes RFC 2231 filename* and falls back to filename.
    name = message.get_filename()
    if name is None:
        return None
    return unquote(name)


def _last_path_segment(url: str) -> str:
    path = urlsplit(url).path
    segments = [segment for segment in path.split("/") if segment]
    return unquote(segments[-1]) if segments else ""
