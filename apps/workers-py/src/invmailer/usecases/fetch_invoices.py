"""Two-pass mailbox scan: match on headers first, then fetch matching bodies.

Pass 1 reads only Subject/From/Date for the scan window and keeps the UIDs
that satisfy the filter. Pass 2 fetches full bodies for those UIDs alone.
In both passes the session is driven from a worker thread that streams
results through a bounded queue while the caller filters/extracts them.

The window is computed from one mailbox-size observation taken when the
session was opened; messages arriving mid-scan are not picked up.
"""

from __future__ import annotations

import datetime as dt
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar

from ..adapters.base import MailboxSession
from ..domain import mime
from ..domain.errors import NotFound, ParseError
from ..domain.events import EventSink, NullEventSink
from ..domain.models import FilterRule, MessageMeta, RawInvoiceDocument
from ..domain.relevance import matches

QUEUE_SIZE = 10

T = TypeVar("T")
_DONE = object()


def stream(items: Iterable[T], maxsize: int = QUEUE_SIZE) -> Iterator[T]:
    """Iterate ``items`` on a worker thread, handing results over a bounded queue.

    An exception raised by the producer is re-raised here once the items
    produced before it have been consumed.
    """
    q: "queue.Queue" = queue.Queue(maxsize=maxsize)
    cancelled = threading.Event()

    def pump() -> None:
        try:
            for item in items:
                if cancelled.is_set():
                    break
                q.put(item)
        finally:
            q.put(_DONE)

    pool = ThreadPoolExecutor(max_workers=1)
    fut = pool.submit(pump)
    try:
        while True:
            item = q.get()
            if item is _DONE:
                break
            yield item
        fut.result()
    finally:
        cancelled.set()
        while not fut.done():
            try:
                q.get(timeout=0.05)
            except queue.Empty:
                pass
        pool.shutdown(wait=True)


def scan_window(total: int, window: int) -> Optional[Tuple[int, int]]:
    """Sequence range ``(first, last)`` to scan, or None for an empty mailbox."""
    if total <= 0:
        return None
    first = 1
    if window > 0 and total > window:
        first = total - window + 1
    return first, total


def select_candidates(
    session: MailboxSession,
    rule: FilterRule,
    now: Optional[dt.datetime] = None,
    events: Optional[EventSink] = None,
) -> Dict[int, MessageMeta]:
    """Pass 1. Returns matching UIDs (insertion-ordered, unique) with their headers."""
    events = events or NullEventSink()
    now = now or dt.datetime.now()
    total = session.message_count()
    bounds = scan_window(total, rule.window)
    events.emit("scan_window", total=total, bounds=bounds)
    if bounds is None:
        return {}
    candidates: Dict[int, MessageMeta] = {}
    for meta in stream(session.iter_metadata(*bounds)):
        if meta.uid in candidates or not matches(meta, rule, now):
            continue
        candidates[meta.uid] = meta
        events.emit("candidate", uid=meta.uid, subject=meta.subject)
    return candidates


def _bodies(session: MailboxSession, uids: List[int]) -> Iterator[Tuple[int, Optional[bytes]]]:
    for uid in uids:
        yield uid, session.fetch_body(uid)


def fetch_bodies(
    session: MailboxSession,
    candidates: Dict[int, MessageMeta],
    events: Optional[EventSink] = None,
) -> List[RawInvoiceDocument]:
    """Pass 2. Candidates whose body or HTML part is missing are skipped."""
    events = events or NullEventSink()
    docs: List[RawInvoiceDocument] = []
    for uid, raw in stream(_bodies(session, list(candidates))):
        if raw is None:
            events.emit("body_missing", uid=uid)
            continue
        try:
            html = mime.extract_html(raw)
        except (NotFound, ParseError) as e:
            events.emit("html_missing", uid=uid, error=str(e))
            continue
        docs.append(RawInvoiceDocument(meta=candidates[uid], html=html))
    return docs


def fetch_invoices(
    session: MailboxSession,
    rule: FilterRule,
    now: Optional[dt.datetime] = None,
    events: Optional[EventSink] = None,
) -> List[RawInvoiceDocument]:
    """Scan ``session`` for invoices matching ``rule``.

    TransportError from the session propagates; per-message problems only
    drop that message.
    """
    events = events or NullEventSink()
    candidates = select_candidates(session, rule, now=now, events=events)
    if not candidates:
        events.emit("no_candidates")
        return []
    events.emit("fetching_bodies", count=len(candidates))
    return fetch_bodies(session, candidates, events=events)
