"""Form Encoder - Builds multipart/form-data bodies for calls with form fields.

The whole body is produced in memory so the same bytes can be dumped to the
debug log and then sent. File parts flagged with escape carry a base64
payload and a ``Content-Transfer-Encoding: base64`` part header, which the
response side recognises on the way back.
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass
from typing import Mapping, Sequence
from urllib.parse import quote

from webx.errors import BadBodyError
from webx.models import (
    ENCODING_BASE64,
    HEADER_CONTENT_DISP,
    HEADER_CONTENT_ENC,
    HEADER_CONTENT_TYPE,
    File,
)

_CRLF = b"\r\n"

# Printable ASCII minus "%" stays literal in filenames; everything else
# (control bytes, non-ASCII, "%") is percent-escaped as UTF-8.
_FILENAME_SAFE = " !\"#$&'()*+,-./:;<=>?@[\\]^_`{|}~"


@dataclass(frozen=True)
class EncodedForm:
    """A finished multipart body and the Content-Type announcing its boundary."""

    content: bytes
    content_type: str
    boundary: str


def escape_quotes(value: str) -> str:
    """Escape backslash and double quote for a quoted header parameter."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def escape_filename(name: str) -> str:
    """Percent-escape a filename as UTF-8, then quote-escape it."""
    return escape_quotes(quote(name, safe=_FILENAME_SAFE))


def new_boundary() -> str:
    return uuid.uuid4().hex + uuid.uuid4().hex[:14]


def _part(boundary: str, headers: list[tuple[str, str]], payload: bytes) -> bytes:
    lines = [f"--{boundary}".encode("ascii")]
    for name, value in headers:
        lines.append(f"{name}: {value}".encode("utf-8"))
    return _CRLF.join(lines) + _CRLF + _CRLF + payload + _CRLF


def _file_part(boundary: str, field_name: str, item: File) -> bytes:
    disposition = (
        f'form-data; name="{escape_quotes(field_name)}"; '
        f'filename="{escape_filename(item.name)}"'
    )
    headers = [
        (HEADER_CONTENT_DISP, disposition),
        (HEADER_CONTENT_TYPE, item.content_type),
    ]

    payload = item.data
    if item.escape:
        payload = base64.b64encode(item.data)
        headers.append((HEADER_CONTENT_ENC, ENCODING_BASE64))

    return _part(boundary, headers, payload)


def encode_form(
    fields: Mapping[str, bytes],
    files: Mapping[str, Sequence[File]],
    boundary: str | None = None,
) -> EncodedForm:
    """Encode plain fields and file attachments as multipart/form-data.

    Plain fields come first in insertion order, then every file of every
    file field in insertion order.

    Args:
        fields: Field name -> raw payload.
        files: Field name -> attachments for that field.
        boundary: Fixed boundary (tests); a random one is generated if None.

    Returns:
        EncodedForm with the complete body.

    Raises:
        BadBodyError: If a part cannot be encoded.
    """
    boundary = boundary or new_boundary()
    parts: list[bytes] = []

    try:
        for name, data in fields.items():
            disposition = f'form-data; name="{escape_quotes(name)}"'
            parts.append(_part(boundary, [(HEADER_CONTENT_DISP, disposition)], bytes(data)))

        for name, items in files.items():
            for item in items:
                parts.append(_file_part(boundary, name, item))
    except (TypeError, ValueError, UnicodeError) as e:
        raise BadBodyError(f"cannot encode multipart form: {e}") from e

    parts.append(f"--{boundary}--".encode("ascii") + _CRLF)

    return EncodedForm(
        content=b"".join(parts),
        content_type=f"multipart/form-data; boundary={boundary}",
        boundary=boundary,
    )
