"""
config.yaml loading and defaults.

Example::

    imap: {host: imap.mail.me.com, port: 993}
    smtp: {host: smtp.mail.me.com, port: 587}
    user: me@icloud.com
    pass: app-specific-password
    email: {to: accounting@example.com}
    filter: {count: 50}
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .domain import constants
from .domain.errors import ConfigError
from .domain.models import FilterRule


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int


@dataclass(frozen=True)
class AppConfig:
    imap: ServerConfig
    smtp: ServerConfig
    user: str
    password: str
    mail_from: str
    mail_to: str
    subject: str
    body: str
    filter_subject: str
    filter_from: str
    filter_count: int = 0
    recency: str = constants.RECENCY_CURRENT_MONTH
    mailbox: str = "INBOX"
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    image_timeout: float = constants.DEFAULT_IMAGE_TIMEOUT

    def filter_rule(self, count: Optional[int] = None) -> FilterRule:
        return FilterRule(
            subject=self.filter_subject,
            sender_domain=self.filter_from,
            recency=self.recency,
            window=self.filter_count if count is None else count,
        )

    @property
    def smtp_credentials(self):
        return (self.smtp_user or self.user, self.smtp_password or self.password)


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _str(section: Dict[str, Any], key: str, default: str = "") -> str:
    value = section.get(key)
    if value is None or value == "":
        return default
    return str(value)


def _int(section: Dict[str, Any], key: str, default: int, name: str) -> int:
    value = section.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"'{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer") from e


def parse_config(raw: Any) -> AppConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")
    imap = _section(raw, "imap")
    smtp = _section(raw, "smtp")
    email = _section(raw, "email")
    flt = _section(raw, "filter")
    images = _section(raw, "images")

    user = _str(raw, "user")
    count = _int(flt, "count", 0, "filter.count")
    if count < 0:
        raise ConfigError("'filter.count' must be >= 0")
    recency = _str(flt, "recency", constants.RECENCY_CURRENT_MONTH)
    if recency not in constants.RECENCY_CHOICES:
        raise ConfigError(f"'filter.recency' must be one of {', '.join(constants.RECENCY_CHOICES)}")
    try:
        image_timeout = float(images.get("timeout", constants.DEFAULT_IMAGE_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ConfigError("'images.timeout' must be a number") from e

    cfg = AppConfig(
        imap=ServerConfig(_str(imap, "host"), _int(imap, "port", 993, "imap.port")),
        smtp=ServerConfig(_str(smtp, "host"), _int(smtp, "port", 587, "smtp.port")),
        user=user,
        password=_str(raw, "pass"),
        mail_from=_str(email, "from", user),
        mail_to=_str(email, "to"),
        subject=_str(email, "subject", constants.DEFAULT_OUT_SUBJECT),
        body=_str(email, "body", constants.DEFAULT_OUT_BODY),
        filter_subject=_str(flt, "subject", constants.DEFAULT_FILTER_SUBJECT),
        filter_from=_str(flt, "from", constants.DEFAULT_FILTER_FROM),
        filter_count=count,
        recency=recency,
        mailbox=_str(imap, "mailbox", "INBOX"),
        smtp_user=_str(smtp, "user") or None,
        smtp_password=_str(smtp, "pass") or None,
        image_timeout=image_timeout,
    )
    missing = [
        name
        for name, value in (
            ("imap.host", cfg.imap.host),
            ("smtp.host", cfg.smtp.host),
            ("user", cfg.user),
            ("pass", cfg.password),
            ("email.to", cfg.mail_to),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"missing required config: {', '.join(missing)}")
    return cfg


def load_config(path: str) -> AppConfig:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"reading config file: {e}") from e
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"parsing config file: {e}") from e
    return parse_config(raw)
