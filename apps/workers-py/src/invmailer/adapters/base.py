from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..domain.models import MessageMeta, NamedArtifact


class MailboxSession(Protocol):
    """Read-only view of one selected mailbox."""

    def message_count(self) -> int: ...

    def iter_metadata(self, first: int, last: int) -> Iterable[MessageMeta]: ...

    def fetch_body(self, uid: int) -> Optional[bytes]: ...


class Renderer(Protocol):
    def render(self, html: str) -> bytes: ...


class Deliverer(Protocol):
    def deliver(
        self,
        sender: str,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[NamedArtifact],
    ) -> None: ...
