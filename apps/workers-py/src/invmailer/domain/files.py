"""File-name helpers for rendered invoice attachments."""

from __future__ import annotations

import os
import pathlib
import re

from . import constants
from .models import TransformedDocument

_UNSAFE = re.compile(r"[^a-zA-Z0-9äöüÄÖÜß\-_ ]+")


def ensure_dir(path: str) -> str:
    pathlib.Path(path).mkdir(parents=True, exist_ok=True)
    return path


def sanitize_filename(name: str, default: str = constants.DEFAULT_NAME) -> str:
    name = _UNSAFE.sub("_", name or "").strip()
    return name or default


def artifact_name(doc: TransformedDocument, index: int, total: int) -> str:
    """Attachment file name for ``doc``, the ``index``-th of ``total`` in a run."""
    if doc.order_id:
        received = doc.source.meta.received
        if received is not None:
            stem = (
                f"{received.month:02d}_{received.year:04d}"
                f"{constants.ORDER_NAME_TOKEN}{sanitize_filename(doc.order_id)}"
            )
            return stem + constants.ARTIFACT_EXT
    stem = sanitize_filename(doc.source.meta.subject)
    if total > 1:
        stem = f"{stem}_{index + 1}"
    return stem + constants.ARTIFACT_EXT


def ensure_unique_path(base_dir: str, wanted_name: str) -> str:
    stem, ext = os.path.splitext(wanted_name)
    if not ext:
        ext = constants.ARTIFACT_EXT
    candidate = os.path.join(base_dir, f"{stem}{ext}")
    i = 2
    while os.path.exists(candidate):
        candidate = os.path.join(base_dir, f"{stem}__{i}{ext}")
        i += 1
    return candidate
