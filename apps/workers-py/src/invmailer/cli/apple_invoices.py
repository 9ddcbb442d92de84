#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
apple_invoices.py
=================

Collect this month's Apple invoice mails from an IMAP inbox, turn each HTML
body into an A4 PDF and send all PDFs as attachments of a single mail.

Flow:
- Pass 1 reads Subject/From/Date of the last --count messages (read-only)
  and keeps the ones matching filter.subject / filter.from / current month.
- Pass 2 fetches full bodies of the matches only (BODY.PEEK, nothing is
  marked as read) and takes the first text/html part.
- Remote images are inlined as data URIs, the "open in App Store" button,
  help block and link bar are removed, the UID-Nr footer line is bolded.
- Each page is printed to PDF with headless Chromium and named
  MM_YYYY_Rechnung_Apple_<Bestellnummer>.pdf (or the subject as fallback).

Dependencies:
    pip install requests beautifulsoup4 lxml playwright pyyaml
    playwright install chromium

Examples:
    python -m invmailer.cli.apple_invoices --config config.yaml

    # render only, keep PDFs locally and write a run report
    python -m invmailer.cli.apple_invoices --config config.yaml \
      --dry-run --invoices-dir invoices_out --report run_report.json --debug
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from ..adapters.images import ImageFetcher
from ..adapters.imap import ImapMailbox
from ..adapters.render import PlaywrightRenderer
from ..adapters.smtp import SmtpDeliverer
from ..config import AppConfig, load_config
from ..domain import files as domain_files
from ..domain.errors import ConfigError, InvoiceMailerError
from ..domain.events import LoggingEventSink
from ..domain.models import NamedArtifact
from ..usecases.run_pipeline import InvoicePipeline, Outgoing, RunResult

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Apple invoice mails -> PDF attachments")
    ap.add_argument("--config", default="config.yaml", help="YAML config (default: config.yaml)")
    ap.add_argument(
        "--count",
        type=int,
        default=None,
        help="Scan only the last N messages (0 = whole mailbox); overrides filter.count",
    )
    ap.add_argument("--dry-run", action="store_true", help="Render PDFs but do not send them")
    ap.add_argument("--invoices-dir", default=None, help="Also save rendered PDFs here")
    ap.add_argument("--report", default=None, help="Write a JSON run summary to this path")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args(argv)
    if args.count is not None and args.count < 0:
        ap.error("--count must be >= 0")
    return args


def build_pipeline(cfg: AppConfig, count: Optional[int], renderer) -> InvoicePipeline:
    smtp_user, smtp_pass = cfg.smtp_credentials
    return InvoicePipeline(
        open_mailbox=lambda: ImapMailbox(
            cfg.imap.host, cfg.user, cfg.password, port=cfg.imap.port, mailbox=cfg.mailbox
        ),
        rule=cfg.filter_rule(count),
        renderer=renderer,
        deliverer=SmtpDeliverer(cfg.smtp.host, cfg.smtp.port, smtp_user, smtp_pass),
        outgoing=Outgoing(
            sender=cfg.mail_from, to=cfg.mail_to, subject=cfg.subject, body=cfg.body
        ),
        fetch_image=ImageFetcher(timeout=cfg.image_timeout),
        events=LoggingEventSink(),
    )


def save_artifacts(artifacts: List[NamedArtifact], out_dir: str) -> List[str]:
    domain_files.ensure_dir(out_dir)
    saved = []
    for art in artifacts:
        path = domain_files.ensure_unique_path(out_dir, art.filename)
        with open(path, "wb") as f:
            f.write(art.payload)
        saved.append(path)
        logging.info("Saved %s", path)
    return saved


def write_report(path: str, result: Optional[RunResult], error: Optional[str] = None) -> None:
    payload = result.to_dict() if result is not None else {"state": "failed"}
    if error:
        payload["error"] = error
    parent = os.path.dirname(path)
    if parent:
        domain_files.ensure_dir(parent)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logging.error("Failed to load config: %s", e)
        return EXIT_USAGE

    # chromium is launched on the first render only
    renderer = PlaywrightRenderer()
    pipeline = build_pipeline(cfg, args.count, renderer)
    try:
        result = pipeline.run(deliver=not args.dry_run)
    except InvoiceMailerError as e:
        logging.error("Run failed (%s): %s", type(e).__name__, e)
        if args.report:
            write_report(args.report, pipeline.result, error=str(e))
        return EXIT_FAILED
    finally:
        renderer.stop()

    if args.invoices_dir and result.artifacts:
        save_artifacts(result.artifacts, args.invoices_dir)
    if args.report:
        write_report(args.report, result)

    if not result.artifacts:
        logging.info("No PDFs generated (%d invoice mail(s) found)", result.scanned)
    elif result.delivered:
        logging.info("Mail with %d PDF(s) sent to %s", len(result.artifacts), cfg.mail_to)
    else:
        logging.info("Dry run: %d PDF(s) rendered, nothing sent", len(result.artifacts))
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
