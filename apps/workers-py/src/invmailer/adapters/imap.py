"""
IMAP mailbox session used by the invoice scan.

The mailbox is always opened with EXAMINE (read-only) and bodies are read
with BODY.PEEK[], so scanning never sets \\Seen or changes any other flag.
"""

from __future__ import annotations

import imaplib
import logging
import re
import ssl
from email import policy
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from typing import Callable, Iterator, List, Optional, Tuple

from ..domain.errors import TransportError
from ..domain.models import MessageMeta
from ..domain.relevance import sender_domains

log = logging.getLogger(__name__)

META_ITEMS = "(UID BODY.PEEK[HEADER.FIELDS (SUBJECT FROM DATE)])"
BODY_ITEMS = "(BODY.PEEK[])"
DEFAULT_CHUNK = 200

_SEQ_RE = re.compile(rb"^\s*(\d+) \(")
_UID_RE = re.compile(rb"UID (\d+)")


def parse_fetch_response(data) -> List[Tuple[int, Optional[int], bytes]]:
    """Split raw FETCH data into ``(seq, uid, literal)`` triples.

    Servers may report UID before or after the literal, so the trailing
    bytes chunk is checked too.
    """
    out = []
    data = data or []
    for i, item in enumerate(data):
        if not isinstance(item, tuple) or len(item) < 2:
            continue
        head, literal = item[0], item[1]
        m_seq = _SEQ_RE.match(head or b"")
        m_uid = _UID_RE.search(head or b"")
        if m_uid is None and i + 1 < len(data) and isinstance(data[i + 1], bytes):
            m_uid = _UID_RE.search(data[i + 1])
        out.append(
            (
                int(m_seq.group(1)) if m_seq else 0,
                int(m_uid.group(1)) if m_uid else None,
                literal or b"",
            )
        )
    return out


def parse_meta(seq: int, uid: int, header_block: bytes) -> MessageMeta:
    msg = BytesParser(policy=policy.default).parsebytes(header_block, headersonly=True)
    received = None
    date_str = msg.get("Date")
    if date_str:
        try:
            received = parsedate_to_datetime(str(date_str))
        except (TypeError, ValueError):
            received = None
    return MessageMeta(
        uid=uid,
        seq=seq,
        subject=str(msg.get("Subject", "") or ""),
        sender_domains=sender_domains(str(msg.get("From", "") or "")),
        received=received,
    )


class ImapMailbox:
    """TLS IMAP session bound to one read-only mailbox."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = 993,
        mailbox: str = "INBOX",
        chunk_size: int = DEFAULT_CHUNK,
        imap_factory: Optional[Callable[..., imaplib.IMAP4]] = None,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.mailbox = mailbox
        self.chunk_size = max(1, chunk_size)
        self._factory = imap_factory or self._connect_tls
        self._conn: Optional[imaplib.IMAP4] = None
        self._count = 0

    def _connect_tls(self, host: str, port: int) -> imaplib.IMAP4:
        return imaplib.IMAP4_SSL(host, port, ssl_context=ssl.create_default_context())

    def open(self) -> "ImapMailbox":
        conn = None
        try:
            conn = self._factory(self.host, self.port)
            conn.login(self.user, self.password)
            typ, data = conn.select(self.mailbox, readonly=True)
            if typ != "OK":
                raise TransportError(f"selecting {self.mailbox}: {data!r}")
            self._count = int(data[0] or 0) if data else 0
        except (imaplib.IMAP4.error, OSError, ValueError) as e:
            self._logout(conn)
            raise TransportError(f"IMAP {self.host}:{self.port}: {e}") from e
        except TransportError:
            self._logout(conn)
            raise
        self._conn = conn
        log.info("Logged in to %s, %s has %d messages", self.host, self.mailbox, self._count)
        return self

    def close(self) -> None:
        self._logout(self._conn)
        self._conn = None

    @staticmethod
    def _logout(conn) -> None:
        if conn is None:
            return
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            log.debug("IMAP logout failed: %s", e)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _require(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise TransportError("not connected to IMAP server")
        return self._conn

    def message_count(self) -> int:
        self._require()
        return self._count

    def iter_metadata(self, first: int, last: int) -> Iterator[MessageMeta]:
        conn = self._require()
        for start in range(first, last + 1, self.chunk_size):
            stop = min(last, start + self.chunk_size - 1)
            try:
                typ, data = conn.fetch(f"{start}:{stop}", META_ITEMS)
            except (imaplib.IMAP4.error, OSError) as e:
                raise TransportError(f"fetching headers {start}:{stop}: {e}") from e
            if typ != "OK":
                raise TransportError(f"fetching headers {start}:{stop}: {data!r}")
            for seq, uid, block in parse_fetch_response(data):
                if uid is None:
                    log.debug("FETCH item %d without UID skipped", seq)
                    continue
                yield parse_meta(seq, uid, block)

    def fetch_body(self, uid: int) -> Optional[bytes]:
        conn = self._require()
        try:
            typ, data = conn.uid("FETCH", str(uid), BODY_ITEMS)
        except (imaplib.IMAP4.error, OSError) as e:
            raise TransportError(f"fetching body of UID {uid}: {e}") from e
        if typ != "OK":
            return None
        for _seq, _uid, literal in parse_fetch_response(data):
            if literal:
                return literal
        return None
