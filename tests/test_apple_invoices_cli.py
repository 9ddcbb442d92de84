import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "apps" / "workers-py" / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from invmailer.cli import apple_invoices as cli  # noqa: E402
from invmailer.domain.errors import TransportError  # noqa: E402
from invmailer.domain.models import FilterRule, NamedArtifact  # noqa: E402
from invmailer.usecases import run_pipeline as rp  # noqa: E402

CONFIG = """
imap: {host: imap.example.com}
smtp: {host: smtp.example.com}
user: user@example.com
pass: secret
email: {to: acc@example.com}
filter: {count: 25}
"""


class StubPipeline:
    def __init__(self, artifacts=(), error=None):
        self.artifacts = list(artifacts)
        self.error = error
        self.result = rp.RunResult()
        self.deliver = None

    def run(self, deliver=True):
        self.deliver = deliver
        if self.error:
            self.result.state = rp.RunState.FAILED
            raise self.error
        self.result = rp.RunResult(
            state=rp.RunState.DONE,
            scanned=len(self.artifacts),
            artifacts=self.artifacts,
            delivered=deliver and bool(self.artifacts),
        )
        return self.result


def _config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return str(path)


def _patch(monkeypatch, stub, seen=None):
    def fake_build(cfg, count, renderer):
        if seen is not None:
            seen["rule"] = cfg.filter_rule(count)
        return stub

    monkeypatch.setattr(cli, "build_pipeline", fake_build)


def test_missing_config_exits_with_usage_error(tmp_path):
    assert cli.main(["--config", str(tmp_path / "nope.yaml")]) == cli.EXIT_USAGE


def test_dry_run_saves_pdfs_and_report(tmp_path, monkeypatch):
    stub = StubPipeline([NamedArtifact("03_2025_Rechnung_Apple_M1.pdf", b"%PDF-1")])
    seen = {}
    _patch(monkeypatch, stub, seen)
    out_dir = tmp_path / "out"
    report = tmp_path / "reports" / "run.json"

    code = cli.main(
        [
            "--config", _config(tmp_path),
            "--count", "10",
            "--dry-run",
            "--invoices-dir", str(out_dir),
            "--report", str(report),
        ]
    )

    assert code == cli.EXIT_OK
    assert stub.deliver is False
    assert isinstance(seen["rule"], FilterRule) and seen["rule"].window == 10
    assert (out_dir / "03_2025_Rechnung_Apple_M1.pdf").read_bytes() == b"%PDF-1"
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["state"] == "done"
    assert payload["artifacts"] == [{"filename": "03_2025_Rechnung_Apple_M1.pdf", "size": 6}]


def test_no_invoices_is_success(tmp_path, monkeypatch):
    _patch(monkeypatch, StubPipeline())
    assert cli.main(["--config", _config(tmp_path)]) == cli.EXIT_OK


def test_transport_failure_exits_nonzero_with_report(tmp_path, monkeypatch):
    _patch(monkeypatch, StubPipeline(error=TransportError("AUTHENTICATIONFAILED")))
    report = tmp_path / "run.json"
    code = cli.main(["--config", _config(tmp_path), "--report", str(report)])
    assert code == cli.EXIT_FAILED
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["state"] == "failed"
    assert "AUTHENTICATIONFAILED" in payload["error"]


def test_build_pipeline_wires_config(tmp_path):
    cfg = cli.load_config(_config(tmp_path))
    pipeline = cli.build_pipeline(cfg, None, renderer=object())
    assert pipeline.rule.window == 25
    assert pipeline.outgoing.to == "acc@example.com"
    assert pipeline.outgoing.sender == "user@example.com"
    mailbox = pipeline.open_mailbox()
    assert mailbox.host == "imap.example.com" and mailbox.port == 993
