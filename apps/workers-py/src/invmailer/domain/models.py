"""Value types passed between the scan, transform and naming stages."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional, Tuple

from . import constants


@dataclass(frozen=True)
class MessageMeta:
    uid: int
    seq: int
    subject: str
    sender_domains: Tuple[str, ...] = ()
    received: Optional[dt.datetime] = None


@dataclass(frozen=True)
class FilterRule:
    subject: str
    sender_domain: str
    recency: str = constants.RECENCY_CURRENT_MONTH
    window: int = 0

    def __post_init__(self):
        if self.recency not in constants.RECENCY_CHOICES:
            raise ValueError(f"unknown recency window: {self.recency!r}")
        if self.window < 0:
            raise ValueError("window must be >= 0")


@dataclass(frozen=True)
class RawInvoiceDocument:
    meta: MessageMeta
    html: str


@dataclass(frozen=True)
class TransformedDocument:
    html: str
    order_id: Optional[str]
    source: RawInvoiceDocument


@dataclass(frozen=True)
class NamedArtifact:
    filename: str
    payload: bytes = field(repr=False)
