"""Message filter helpers used by the mailbox scan."""

from __future__ import annotations

import datetime as dt
from email.utils import getaddresses
from typing import Iterable, Optional, Tuple

from . import constants
from .models import FilterRule, MessageMeta


def sender_domains(from_header: str) -> Tuple[str, ...]:
    """Return the host part of every address in a From header, in order."""
    domains = []
    for _name, addr in getaddresses([from_header or ""]):
        if "@" not in addr:
            continue
        domains.append(addr.rsplit("@", 1)[1].strip().rstrip(">"))
    return tuple(domains)


def domain_matches(domains: Iterable[str], needle: str) -> bool:
    needle = (needle or "").lower()
    return any(needle in (d or "").lower() for d in domains)


def in_current_month(received: Optional[dt.datetime], now: dt.datetime) -> bool:
    if received is None:
        return False
    return (received.year, received.month) == (now.year, now.month)


def matches(meta: MessageMeta, rule: FilterRule, now: Optional[dt.datetime] = None) -> bool:
    """True iff subject, sender domain and recency all satisfy ``rule``."""
    if rule.recency == constants.RECENCY_CURRENT_MONTH:
        if not in_current_month(meta.received, now or dt.datetime.now()):
            return False
    if meta.subject != rule.subject:
        return False
    return domain_matches(meta.sender_domains, rule.sender_domain)
