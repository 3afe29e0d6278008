"""Document text extraction for media the model cannot read natively.

Images and PDFs travel to the backend as-is. Plain text and Word
documents are decoded here and sent as text blocks.

Supported:
  - Text (text/plain)                      built-in
  - Word (.docx, application/msword)       via python-docx
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import zipfile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from studyflow.engine.media import DOCX_MIME_TYPE, MediaRef
from studyflow.errors import UnsupportedInput

logger = logging.getLogger(__name__)

MAX_TEXT = 200_000  # chars sent to the model

WORD_MIME_TYPES = (DOCX_MIME_TYPE, "application/msword")


def needs_extraction(ref: MediaRef) -> bool:
    return ref.mime_type == "text/plain" or ref.mime_type in WORD_MIME_TYPES


def _decode(ref: MediaRef) -> bytes:
    try:
        return base64.b64decode(ref.data)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedInput(f"Cannot decode {ref.mime_type} payload: {e}") from e


def _parse_docx(raw: bytes) -> str:
    try:
        doc = Document(io.BytesIO(raw))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        # Legacy binary .doc files land here too.
        raise UnsupportedInput(f"Cannot read Word document: {e}") from e
    parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            parts.append(" | ".join(c.text.strip() for c in row.cells))
    return "\n\n".join(parts)


def extract_text(ref: MediaRef) -> str:
    """Return the readable text of a text or Word document reference.

    Raises UnsupportedInput when the payload cannot be decoded or parsed.
    """
    raw = _decode(ref)
    if ref.mime_type in WORD_MIME_TYPES:
        text = _parse_docx(raw)
    else:
        text = raw.decode("utf-8", errors="replace")

    if len(text) > MAX_TEXT:
        logger.warning(f"Truncating {ref.mime_type} document from {len(text)} to {MAX_TEXT} chars")
        text = text[:MAX_TEXT]
    return text
