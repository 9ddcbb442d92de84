"""Outbound delivery of rendered invoices as one message."""

from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from typing import Sequence

from ..domain.errors import DeliveryError
from ..domain.models import NamedArtifact

IMPLICIT_TLS_PORT = 465


def build_message(
    sender: str,
    to: str,
    subject: str,
    body: str,
    attachments: Sequence[NamedArtifact],
) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    for att in attachments:
        msg.add_attachment(
            att.payload, maintype="application", subtype="pdf", filename=att.filename
        )
    return msg


class SmtpDeliverer:
    """Submits over implicit TLS on port 465, STARTTLS on any other port.

    A server that does not offer STARTTLS is refused before credentials
    are sent.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        timeout: float = 60,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        ctx = ssl.create_default_context()
        if self.port == IMPLICIT_TLS_PORT:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=ctx)
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            smtp.ehlo()
            if not smtp.has_extn("starttls"):
                raise DeliveryError(f"{self.host}:{self.port}: server does not offer STARTTLS")
            smtp.starttls(context=ctx)
            smtp.ehlo()
        except BaseException:
            smtp.close()
            raise
        return smtp

    def deliver(
        self,
        sender: str,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[NamedArtifact],
    ) -> None:
        msg = build_message(sender, to, subject, body, attachments)
        try:
            with self._connect() as smtp:
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"sending via {self.host}:{self.port}: {e}") from e
