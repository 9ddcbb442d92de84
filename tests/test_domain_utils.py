import datetime as dt
import re
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "apps" / "workers-py" / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from invmailer.domain import constants  # noqa: E402
from invmailer.domain import files as domain_files  # noqa: E402
from invmailer.domain import relevance as domain_relevance  # noqa: E402
from invmailer.domain.models import (  # noqa: E402
    FilterRule,
    MessageMeta,
    RawInvoiceDocument,
    TransformedDocument,
)

RULE = FilterRule(subject="Deine Rechnung von Apple", sender_domain="apple.com")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Deine Rechnung von Apple", "Deine Rechnung von Apple"),
        ("Invoice #123 (2024)", "Invoice _123 _2024_"),
        ("Rechnungsübersicht für März", "Rechnungsübersicht für März"),
        ("!!!", "_"),
        ("", "invoice"),
        ("   ", "invoice"),
        ("my-file_name", "my-file_name"),
        ("path/to/file", "path_to_file"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert domain_files.sanitize_filename(raw) == expected


def test_sanitize_filename_only_emits_allowed_characters():
    allowed = re.compile(r"^[a-zA-Z0-9äöüÄÖÜß\-_ ]+$")
    for raw in ["Ünïcødé ✓ 🍎", "tab\tnew\nline", "<script>", "a/b\\c:d*e?f"]:
        assert allowed.match(domain_files.sanitize_filename(raw))


def _doc(subject="Deine Rechnung von Apple", order_id=None, received=dt.datetime(2025, 3, 15)):
    meta = MessageMeta(uid=1, seq=1, subject=subject, sender_domains=("apple.com",), received=received)
    return TransformedDocument(
        html="<html></html>", order_id=order_id, source=RawInvoiceDocument(meta=meta, html="")
    )


def test_artifact_name_with_order_number():
    name = domain_files.artifact_name(_doc(order_id="MXYZ/123"), 0, 3)
    assert name == "03_2025_Rechnung_Apple_MXYZ_123.pdf"


def test_artifact_name_fallback_suffixes_only_when_several():
    assert domain_files.artifact_name(_doc(), 0, 1) == "Deine Rechnung von Apple.pdf"
    names = [domain_files.artifact_name(_doc(), i, 2) for i in range(2)]
    assert names == ["Deine Rechnung von Apple_1.pdf", "Deine Rechnung von Apple_2.pdf"]


def test_artifact_name_distinct_order_numbers_never_collide():
    names = {domain_files.artifact_name(_doc(order_id=f"M{i}"), 0, 5) for i in range(5)}
    assert len(names) == 5


def test_artifact_name_without_timestamp_falls_back_to_subject():
    doc = _doc(subject="Rechnung", order_id="M1", received=None)
    assert domain_files.artifact_name(doc, 0, 1) == "Rechnung.pdf"


def test_ensure_dir_and_unique_path(tmp_path):
    target = tmp_path / "nested" / "dir"
    created = domain_files.ensure_dir(str(target))
    assert Path(created).exists()

    first = domain_files.ensure_unique_path(created, "invoice.pdf")
    Path(first).write_bytes(b"%PDF")
    second = domain_files.ensure_unique_path(created, "invoice.pdf")
    assert first.endswith("invoice.pdf")
    assert second.endswith("invoice__2.pdf")
    assert domain_files.ensure_unique_path(created, "noext").endswith("noext.pdf")


def test_sender_domains_from_header():
    header = 'Apple <no_reply@email.apple.com>, "Other" <x@Foo.COM>, undisclosed'
    assert domain_relevance.sender_domains(header) == ("email.apple.com", "Foo.COM")
    assert domain_relevance.sender_domains("") == ()


def _meta(subject="Deine Rechnung von Apple", domains=("email.apple.com",), received=None):
    return MessageMeta(
        uid=7,
        seq=1,
        subject=subject,
        sender_domains=tuple(domains),
        received=received or dt.datetime(2025, 3, 2),
    )


NOW = dt.datetime(2025, 3, 31, 23, 59)


def test_matches_all_conditions():
    assert domain_relevance.matches(_meta(), RULE, NOW)


def test_matches_subject_is_exact_and_case_sensitive():
    assert not domain_relevance.matches(_meta(subject="deine rechnung von apple"), RULE, NOW)
    assert not domain_relevance.matches(_meta(subject="Other Subject"), RULE, NOW)
    assert not domain_relevance.matches(_meta(subject="Deine Rechnung von Apple "), RULE, NOW)


def test_matches_sender_domain_substring_case_insensitive():
    assert domain_relevance.matches(_meta(domains=("Email.APPLE.COM",)), RULE, NOW)
    assert domain_relevance.matches(_meta(domains=("other.com", "apple.com")), RULE, NOW)
    assert not domain_relevance.matches(_meta(domains=("other.com",)), RULE, NOW)
    assert not domain_relevance.matches(_meta(domains=()), RULE, NOW)


def test_matches_current_month_only():
    assert not domain_relevance.matches(_meta(received=dt.datetime(2025, 2, 28, 23, 59)), RULE, NOW)
    assert not domain_relevance.matches(_meta(received=dt.datetime(2024, 3, 15)), RULE, NOW)
    assert domain_relevance.matches(_meta(received=dt.datetime(2025, 3, 1)), RULE, NOW)


def test_matches_missing_date_fails_closed():
    meta = MessageMeta(uid=1, seq=1, subject=RULE.subject, sender_domains=("apple.com",))
    assert not domain_relevance.matches(meta, RULE, NOW)


def test_matches_unbounded_recency_ignores_date():
    rule = FilterRule(
        subject=RULE.subject, sender_domain="apple.com", recency=constants.RECENCY_UNBOUNDED
    )
    assert domain_relevance.matches(_meta(received=dt.datetime(2019, 1, 1)), rule, NOW)


def test_filter_rule_validates():
    with pytest.raises(ValueError):
        FilterRule(subject="s", sender_domain="d", recency="last_week")
    with pytest.raises(ValueError):
        FilterRule(subject="s", sender_domain="d", window=-1)
