"""Turn a vendor invoice mail body into a self-contained printable page.

The transform is a pure function of the input markup and whatever the
injected image fetcher returns: it parses its own private tree, mutates it
and hands back the serialized result. Every step is idempotent, so feeding
the output back in yields the same markup (remote images already became
``data:`` URIs and are not fetched again).
"""

from __future__ import annotations

import base64
from typing import Callable, Dict, Optional, Tuple

from bs4 import BeautifulSoup

from . import constants
from .errors import FetchError, ParseError
from .events import EventSink, NullEventSink
from .models import RawInvoiceDocument, TransformedDocument

# url -> (body, media type or None)
ImageFetcher = Callable[[str], Tuple[bytes, Optional[str]]]


def parse_html(html: str) -> BeautifulSoup:
    if not isinstance(html, str) or not html.strip():
        raise ParseError("empty or non-text HTML document")
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        raise ParseError(f"parsing HTML: {e}") from e


def data_uri(blob: bytes, media_type: Optional[str]) -> str:
    media_type = (media_type or "").split(";", 1)[0].strip() or constants.DEFAULT_IMAGE_TYPE
    return f"data:{media_type};base64,{base64.b64encode(blob).decode('ascii')}"


def inline_images(soup: BeautifulSoup, fetch: ImageFetcher, events: EventSink) -> int:
    """Replace remote ``img[src]`` with data URIs. Returns the count inlined."""
    cache: Dict[str, str] = {}
    inlined = 0
    for img in soup.find_all("img"):
        src = img.get("src")
        if not isinstance(src, str) or not src.startswith(constants.REMOTE_SRC_PREFIX):
            continue
        if src not in cache:
            try:
                blob, media_type = fetch(src)
            except FetchError as e:
                events.emit("image_fetch_failed", url=src, error=str(e))
                continue
            cache[src] = data_uri(blob, media_type)
        img["src"] = cache[src]
        inlined += 1
    return inlined


def strip_vendor_chrome(soup: BeautifulSoup) -> None:
    cta = soup.select(constants.CTA_SELECTOR)
    if cta:
        intro = soup.select_one(constants.CTA_INTRO_SELECTOR)
        if intro is not None:
            intro.decompose()
        for node in cta:
            node.decompose()
    for selector in (constants.HELP_BLOCK_SELECTOR, constants.LINK_BAR_SELECTOR):
        for node in soup.select(selector):
            node.decompose()


def emphasize_tax_id(soup: BeautifulSoup) -> None:
    for p in soup.select(constants.FOOTER_COPY_SELECTOR):
        if constants.TAX_ID_LABEL in p.get_text():
            p["style"] = constants.FOOTER_EMPHASIS_STYLE


def find_order_number(soup: BeautifulSoup, label: str = constants.ORDER_NUMBER_LABEL) -> Optional[str]:
    for el in soup.find_all(True):
        text = el.get_text().strip()
        if not text.startswith(label):
            continue
        value = text[len(label):].strip()
        for i, ch in enumerate(value):
            if ch in "\n\r\t":
                value = value[:i]
                break
        return value.strip()
    return None


def transform_html(
    html: str,
    fetch: Optional[ImageFetcher] = None,
    events: Optional[EventSink] = None,
) -> Tuple[str, Optional[str]]:
    """Return ``(cleaned_html, order_number)``.

    Without a fetcher remote images are left untouched.
    """
    events = events or NullEventSink()
    soup = parse_html(html)
    if fetch is not None:
        inline_images(soup, fetch, events)
    strip_vendor_chrome(soup)
    emphasize_tax_id(soup)
    order_id = find_order_number(soup)
    return str(soup), order_id


def transform_document(
    raw: RawInvoiceDocument,
    fetch: Optional[ImageFetcher] = None,
    events: Optional[EventSink] = None,
) -> TransformedDocument:
    html, order_id = transform_html(raw.html, fetch=fetch, events=events)
    return TransformedDocument(html=html, order_id=order_id or None, source=raw)
