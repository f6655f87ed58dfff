"""Data models and wire constants for webx.

Attachment and runtime-config models use Pydantic v2. Header names and MIME
strings must match byte-for-byte what the servers on the other side expect.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Wire Constants
# =============================================================================

HEADER_X_API_KEY = "X-API-Key"
HEADER_CONTENT_ENC = "Content-Transfer-Encoding"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONTENT_DISP = "Content-Disposition"
HEADER_LAST_MODIFIED = "Last-Modified"
HEADER_AUTHORIZATION = "Authorization"

MIME_XML = "text/xml; charset=utf-8"
MIME_ZIP = "application/zip; application/octet-stream"
MIME_TGZ = "application/tar+gzip; application/gzip; application/octet-stream"
MIME_JSON = "application/json; charset=utf-8"
MIME_TEXT = "text/html; charset=utf-8"
MIME_UNKNOWN = "application/octet-stream"

# Transfer encoding value written on base64 parts and recognised on responses.
ENCODING_BASE64 = "base64"


# =============================================================================
# Attachments
# =============================================================================


class File(BaseModel):
    """A named file payload, sent as a multipart part or read from a response.

    An empty mime means "generic binary". When escape is set the payload is
    base64-transcoded before transmission. The model accepts an empty name;
    the options that attach files reject it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(default="", description="File name sent in Content-Disposition")
    mime: str = Field(default="", description="MIME type; empty means application/octet-stream")
    data: bytes = Field(default=b"", description="Raw payload")
    escape: bool = Field(default=False, description="Base64-transcode before sending")

    @property
    def content_type(self) -> str:
        return self.mime or MIME_UNKNOWN


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class AuthConfig(BaseModel):
    """Basic-auth credentials for a profile."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(description="User name (must be non-empty)")
    password: str = Field(default="", description="Password (supports ${ENV_VAR} substitution)")

    @field_validator("username")
    @classmethod
    def check_username_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("username must not be empty")
        return v


class ProfileConfig(BaseModel):
    """Persistent configuration of one base request."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Absolute base URL every call is joined onto")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers to include (supports ${ENV_VAR} substitution)",
    )
    args: dict[str, str] = Field(
        default_factory=dict, description="Query parameters added to every call"
    )
    api_key: str | None = Field(default=None, description="Value for the X-API-Key header")
    auth: AuthConfig | None = Field(default=None, description="Basic-auth credentials")
    timeout: float | None = Field(default=None, description="Per-call timeout in seconds")
    debug: bool = Field(default=False, description="Log a dump of every outgoing request")

    @field_validator("timeout")
    @classmethod
    def check_timeout_positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v


class RuntimeConfig(BaseModel):
    """Top-level runtime configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    profiles: dict[str, ProfileConfig] = Field(description="Profile name -> base request config")
