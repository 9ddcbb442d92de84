"""Run driver: scan -> transform -> render -> name -> deliver.

Items are processed one at a time in scan order. A transform or render
failure drops only that item; a transport failure while scanning and a
delivery failure end the run with the exception.
"""

from __future__ import annotations

import datetime as dt
import enum
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..adapters.base import Deliverer, Renderer
from ..domain.errors import ParseError, RenderError
from ..domain.events import EventSink, NullEventSink
from ..domain.files import artifact_name
from ..domain.invoice_html import ImageFetcher, transform_document
from ..domain.models import FilterRule, NamedArtifact, RawInvoiceDocument
from .fetch_invoices import fetch_invoices


class RunState(str, enum.Enum):
    """Run-level states. Per-item partial failures do not change the state;
    they are kept as ``ItemFailure`` records on ``RunResult.failures``.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    TRANSFORMING = "transforming"
    RENDERING = "rendering"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Outgoing:
    sender: str
    to: str
    subject: str
    body: str


@dataclass
class ItemFailure:
    stage: str
    subject: str
    error: str


@dataclass
class RunResult:
    state: RunState = RunState.IDLE
    scanned: int = 0
    artifacts: List[NamedArtifact] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)
    delivered: bool = False

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "scanned": self.scanned,
            "delivered": self.delivered,
            "artifacts": [
                {"filename": a.filename, "size": len(a.payload)} for a in self.artifacts
            ],
            "failures": [
                {"stage": f.stage, "subject": f.subject, "error": f.error}
                for f in self.failures
            ],
        }


MailboxOpener = Callable[[], AbstractContextManager]


class InvoicePipeline:
    def __init__(
        self,
        open_mailbox: MailboxOpener,
        rule: FilterRule,
        renderer: Renderer,
        deliverer: Deliverer,
        outgoing: Outgoing,
        fetch_image: Optional[ImageFetcher] = None,
        events: Optional[EventSink] = None,
        now: Optional[dt.datetime] = None,
    ):
        self.open_mailbox = open_mailbox
        self.rule = rule
        self.renderer = renderer
        self.deliverer = deliverer
        self.outgoing = outgoing
        self.fetch_image = fetch_image
        self.events = events or NullEventSink()
        self.now = now
        self.result = RunResult()

    def _enter(self, state: RunState) -> None:
        self.result.state = state
        self.events.emit("state", state=state.value)

    def scan(self) -> List[RawInvoiceDocument]:
        self._enter(RunState.SCANNING)
        with self.open_mailbox() as session:
            return fetch_invoices(session, self.rule, now=self.now, events=self.events)

    def _fail_item(self, stage: RunState, raw: RawInvoiceDocument, err: Exception) -> None:
        self.result.failures.append(
            ItemFailure(stage=stage.value, subject=raw.meta.subject, error=str(err))
        )
        self.events.emit("item_failed", stage=stage.value, uid=raw.meta.uid, error=str(err))

    def process(self, raw: RawInvoiceDocument, index: int, total: int) -> Optional[NamedArtifact]:
        """Transform, render and name one document; None if it was dropped."""
        self._enter(RunState.TRANSFORMING)
        try:
            doc = transform_document(raw, fetch=self.fetch_image, events=self.events)
        except ParseError as e:
            self._fail_item(RunState.TRANSFORMING, raw, e)
            return None
        self._enter(RunState.RENDERING)
        try:
            pdf = self.renderer.render(doc.html)
        except RenderError as e:
            self._fail_item(RunState.RENDERING, raw, e)
            return None
        name = artifact_name(doc, index, total)
        self.events.emit(
            "rendered", index=index + 1, total=total, filename=name, size=len(pdf),
            order_id=doc.order_id,
        )
        return NamedArtifact(filename=name, payload=pdf)

    def run(self, deliver: bool = True) -> RunResult:
        self.result = RunResult()
        try:
            docs = self.scan()
            self.result.scanned = len(docs)
            for i, raw in enumerate(docs):
                artifact = self.process(raw, i, len(docs))
                if artifact is not None:
                    self.result.artifacts.append(artifact)
            if self.result.artifacts and deliver:
                self._enter(RunState.DELIVERING)
                out = self.outgoing
                self.deliverer.deliver(
                    out.sender, out.to, out.subject, out.body, list(self.result.artifacts)
                )
                self.result.delivered = True
                self.events.emit("delivered", to=out.to, count=len(self.result.artifacts))
        except BaseException:
            self._enter(RunState.FAILED)
            raise
        self._enter(RunState.DONE)
        return self.result
