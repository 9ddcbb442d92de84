"""MIME helpers: locate the HTML body of a fetched invoice mail."""

from __future__ import annotations

from email import policy
from email.message import EmailMessage
from email.parser import BytesParser

from .errors import NotFound, ParseError


def parse_message(raw: bytes) -> EmailMessage:
    if not raw:
        raise ParseError("empty message body")
    try:
        return BytesParser(policy=policy.default).parsebytes(raw)
    except Exception as e:
        raise ParseError(f"parsing message: {e}") from e


def _decode_part(part) -> str:
    try:
        # handles quoted-printable, base64 and declared charsets
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def extract_html(raw: bytes) -> str:
    """Return the first inline text/html part of ``raw``.

    Attachment parts are skipped. Raises ``NotFound`` when the message has
    no such part and ``ParseError`` when it cannot be parsed at all.
    """
    msg = parse_message(raw)
    for part in msg.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue
        if part.get_content_type() == "text/html":
            return _decode_part(part)
    raise NotFound("no text/html part found")
