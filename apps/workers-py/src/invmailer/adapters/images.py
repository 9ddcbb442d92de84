"""Remote image download for inlining into invoice HTML."""

from __future__ import annotations

from typing import Optional, Tuple

import requests

from ..domain import constants
from ..domain.errors import FetchError


def fetch_image(
    url: str, timeout: float = constants.DEFAULT_IMAGE_TIMEOUT, ua: Optional[str] = None
) -> Tuple[bytes, Optional[str]]:
    """GET ``url`` and return ``(body, content_type)``; any failure is FetchError."""
    hdrs = {
        "User-Agent": ua or constants.DEFAULT_BROWSER_UA,
        "Accept": "image/avif,image/webp,image/png,image/*;q=0.8,*/*;q=0.5",
    }
    try:
        r = requests.get(url, headers=hdrs, timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(f"{url}: {e}") from e
    if r.status_code != 200:
        raise FetchError(f"{url}: HTTP {r.status_code}")
    return r.content, r.headers.get("Content-Type")


class ImageFetcher:
    """Callable bound to one timeout, as expected by ``transform_html``."""

    def __init__(self, timeout: float = constants.DEFAULT_IMAGE_TIMEOUT):
        self.timeout = timeout

    def __call__(self, url: str) -> Tuple[bytes, Optional[str]]:
        return fetch_image(url, timeout=self.timeout)
