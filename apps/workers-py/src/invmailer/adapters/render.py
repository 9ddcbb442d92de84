"""HTML -> A4 PDF rendering through headless Chromium (Playwright)."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.sync_api import Error as PWError
from playwright.sync_api import sync_playwright

from ..domain.errors import RenderError

log = logging.getLogger(__name__)

PAGE_FORMAT = "A4"


class PlaywrightRenderer:
    """One browser per run, a fresh page per document.

    Use as a context manager; ``render`` launches the browser lazily if the
    renderer was not entered.
    """

    def __init__(self, headless: bool = True, timeout_ms: int = 30_000):
        self.headless = headless
        self.timeout_ms = timeout_ms
        self._pw = None
        self._browser = None

    def start(self) -> "PlaywrightRenderer":
        if self._browser is not None:
            return self
        try:
            self._pw = sync_playwright().start()
            self._browser = self._pw.chromium.launch(headless=self.headless)
        except PWError as e:
            self.stop()
            raise RenderError(f"launching chromium: {e}") from e
        return self

    def stop(self) -> None:
        browser, pw = self._browser, self._pw
        self._browser = self._pw = None
        try:
            if browser is not None:
                browser.close()
        finally:
            if pw is not None:
                pw.stop()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def render(self, html: str) -> bytes:
        self.start()
        page = None
        try:
            page = self._browser.new_page()
            page.set_content(html, wait_until="load", timeout=self.timeout_ms)
            pdf: Optional[bytes] = page.pdf(format=PAGE_FORMAT, print_background=True)
        except PWError as e:
            raise RenderError(f"generating PDF: {e}") from e
        finally:
            if page is not None:
                try:
                    page.close()
                except PWError as e:
                    log.debug("closing page failed: %s", e)
        if not pdf:
            raise RenderError("generating PDF: empty output")
        return pdf
