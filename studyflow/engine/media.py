"""Data-URI references: the document payloads handed to document flows.

The engine never stores documents. It only reads a self-describing
``data:<mime>;base64,<payload>`` reference and its declared MIME type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

MAX_DOCUMENT_BYTES = 15 * 1024 * 1024

IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
TEXT_DOCUMENT_MIME_TYPES = (
    PDF_MIME_TYPE,
    "text/plain",
    "application/msword",
    DOCX_MIME_TYPE,
)
ALLOWED_MIME_TYPES = IMAGE_MIME_TYPES + TEXT_DOCUMENT_MIME_TYPES

_DATA_URI = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?:;[\w-]+=[\w.-]+)*;base64,(?P<data>.*)$",
    re.DOTALL,
)
_BASE64_CHARS = re.compile(r"^[A-Za-z0-9+/=\s]*$")


@dataclass(frozen=True)
class MediaRef:
    """A parsed data URI. ``data`` stays base64-encoded."""

    mime_type: str
    data: str

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def parse_data_uri(uri: str) -> MediaRef:
    """Split a base64 data URI into MIME type and payload.

    Raises ValueError when the URI is not base64-encoded, the payload holds
    non-base64 characters, or it decodes to more than MAX_DOCUMENT_BYTES.
    """
    match = _DATA_URI.match(uri.strip())
    if not match:
        raise ValueError("must be a base64 data URI ('data:<mimetype>;base64,<data>')")

    data = match.group("data").strip()
    # Four base64 characters carry three bytes.
    if len(data) * 3 // 4 > MAX_DOCUMENT_BYTES:
        raise ValueError(
            f"document must be smaller than {MAX_DOCUMENT_BYTES // (1024 * 1024)}MB"
        )
    if not _BASE64_CHARS.match(data):
        raise ValueError("data URI payload is not base64")

    return MediaRef(mime_type=match.group("mime").lower(), data=data)
