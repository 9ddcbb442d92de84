import datetime as dt
import sys
import warnings
from email.message import EmailMessage
from pathlib import Path

import pytest

warnings.filterwarnings(
    "ignore",
    message=r"builtin type .* has no __module__ attribute",
    category=DeprecationWarning,
)

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "apps" / "workers-py" / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from invmailer.domain.models import MessageMeta  # noqa: E402

NOW = dt.datetime(2025, 3, 20, 12, 0)
SUBJECT = "Deine Rechnung von Apple"

APPLE_HTML = """<html><head><title>Rechnung</title></head><body>
<img alt="logo" src="https://cdn.example.com/logo.png"/>
<img alt="pixel" src="data:image/gif;base64,R0lGODlhAQABAAAAACw="/>
<div class="order">Bestellnummer: MXYZ123AB
Datum: 15.03.2025</div>
<div id="footer_section">
<p>Oeffne die App, um deine Rechnung zu sehen.</p>
<table><tr><td class="action-button-cell"><a href="https://apps.apple.com">Anzeigen</a></td></tr></table>
<div class="custom-1sstyyn">Hilfe und Support</div>
<p>Danke fuer deinen Einkauf.</p>
</div>
<div class="footer-copy"><p>Apple Distribution International Ltd.</p><p>UID-Nr: IE9700053D</p></div>
<div class="inline-link-group"><a href="#">Datenschutz</a> | <a href="#">AGB</a></div>
</body></html>"""


class RecordingEvents:
    def __init__(self):
        self.records = []

    def emit(self, name, **fields):
        self.records.append((name, fields))

    def names(self):
        return [name for name, _ in self.records]


class FakeMailbox:
    """In-memory MailboxSession; counts header and body fetches."""

    def __init__(self, metas=(), bodies=None, count=None):
        self.metas = list(metas)
        self.bodies = dict(bodies or {})
        self.count = len(self.metas) if count is None else count
        self.meta_ranges = []
        self.meta_served = 0
        self.body_requests = []
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exited = True

    def message_count(self):
        return self.count

    def iter_metadata(self, first, last):
        self.meta_ranges.append((first, last))
        for meta in self.metas[first - 1 : last]:
            self.meta_served += 1
            yield meta

    def fetch_body(self, uid):
        self.body_requests.append(uid)
        body = self.bodies.get(uid)
        if isinstance(body, Exception):
            raise body
        return body


def make_meta(uid, subject=SUBJECT, domains=("email.apple.com",), received=NOW, seq=None):
    return MessageMeta(
        uid=uid,
        seq=seq if seq is not None else uid,
        subject=subject,
        sender_domains=tuple(domains),
        received=received,
    )


def make_raw_email(html=None, plain="Rechnung", subject=SUBJECT):
    msg = EmailMessage()
    msg["From"] = "Apple <no_reply@email.apple.com>"
    msg["To"] = "me@example.com"
    msg["Subject"] = subject
    msg.set_content(plain)
    if html is not None:
        msg.add_alternative(html, subtype="html")
    return msg.as_bytes()


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def apple_html():
    return APPLE_HTML


@pytest.fixture
def mailbox_factory():
    return FakeMailbox


@pytest.fixture
def meta_factory():
    return make_meta


@pytest.fixture
def raw_email_factory():
    return make_raw_email
