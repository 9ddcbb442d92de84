"""Error taxonomy shared by the intake pipeline and its collaborators."""

from __future__ import annotations


class InvoiceMailerError(Exception):
    """Base class for every error raised by invmailer."""


class ConfigError(InvoiceMailerError):
    pass


class TransportError(InvoiceMailerError):
    """Connect/auth/protocol failure on a remote session. Fatal for the run."""


class NotFound(InvoiceMailerError):
    """No text/html part in a fetched message."""


class ParseError(InvoiceMailerError):
    """Message structure or markup could not be parsed."""


class FetchError(InvoiceMailerError):
    """A remote image could not be fetched for inlining."""


class RenderError(InvoiceMailerError):
    pass


class DeliveryError(InvoiceMailerError):
    """The batched outbound message could not be sent. Fatal for the run."""
