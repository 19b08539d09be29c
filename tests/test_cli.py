from __future__ import annotations

import json
from pathlib import Path

import pytest

from dpma_direkt.cli import main

from fake_portal import natural_word_request, receipts_zip


@pytest.fixture(autouse=True)
def _isolated_logging(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "dpma.log"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


def _args(tmp_path: Path, *rest: str) -> list[str]:
    return ["--env-file", str(tmp_path / "missing.env"), *rest]


def _request_file(tmp_path: Path, payload: dict) -> Path:
    p = tmp_path / "request.json"
    p.write_text(json.dumps(payload), encoding="utf-8")
    return p


def test_validate_command_reports_field_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    good = _request_file(tmp_path, natural_word_request())
    assert main(_args(tmp_path, "validate", "--request", str(good))) == 0
    assert "Request is valid" in capsys.readouterr().out

    bad = _request_file(tmp_path, natural_word_request(email="nope"))
    assert main(_args(tmp_path, "validate", "--request", str(bad))) == 1
    assert "email:" in capsys.readouterr().out


def test_register_without_confirm_is_a_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    req = _request_file(tmp_path, natural_word_request())
    code = main(_args(tmp_path, "register", "--request", str(req), "--config", str(tmp_path / "none.yaml")))

    assert code == 0
    out = capsys.readouterr().out
    assert "pass --confirm to submit" in out
    assert "5. classification" in out
    assert "portal type 'word'" in out
    assert "lead class 9" in out
    assert "expected fees 290.00 EUR" in out


def test_register_rejects_invalid_request_before_anything_else(tmp_path: Path) -> None:
    req = _request_file(tmp_path, natural_word_request(niceClasses=[]))
    with pytest.raises(SystemExit) as exc:
        main(_args(tmp_path, "register", "--request", str(req), "--config", str(tmp_path / "none.yaml"), "--confirm"))
    assert "niceClasses" in str(exc.value)


def test_unpack_lists_and_extracts_documents(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    archive = tmp_path / "30_2026_012_345.6_documents.zip"
    archive.write_bytes(receipts_zip())
    target = tmp_path / "docs"

    assert main(_args(tmp_path, "unpack", "--archive", str(archive), "--extract-to", str(target))) == 0
    out = capsys.readouterr().out
    assert "Empfangsbescheinigung.pdf\tapplication/pdf" in out
    assert (target / "Anmeldung.xml").read_bytes() == b"<a/>"

    nested = tmp_path / "nested.zip"
    nested.write_bytes(receipts_zip({"a/Bescheid.pdf": b"A", "b/Bescheid.pdf": b"B", "../escape.txt": b"x"}))
    assert main(_args(tmp_path, "unpack", "--archive", str(nested), "--extract-to", str(target / "nested"))) == 0
    assert (target / "nested" / "a" / "Bescheid.pdf").read_bytes() == b"A"
    assert (target / "nested" / "b" / "Bescheid.pdf").read_bytes() == b"B"
    assert (target / "nested" / "escape.txt").read_bytes() == b"x"
    assert not (target / "escape.txt").exists()

    broken = tmp_path / "broken.zip"
    broken.write_bytes(b"nope")
    assert main(_args(tmp_path, "unpack", "--archive", str(broken))) == 1
