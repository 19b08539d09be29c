from __future__ import annotations

import zipfile
from pathlib import Path

from dpma_direkt.portal.diagnostics import DirectoryDiagnostics
from dpma_direkt.util.debug_bundle import create_debug_bundle


def test_create_debug_bundle_includes_responses_and_log(tmp_path: Path) -> None:
    debug_dir = tmp_path / "debug"
    diagnostics = DirectoryDiagnostics(str(debug_dir))
    diagnostics.save("step1_applicant.xml", "<partial-response/>")
    diagnostics.save("versand.json", "{}")

    log_file = tmp_path / "dpma.log"
    log_file.write_text("hello", encoding="utf-8")

    out = create_debug_bundle(debug_dir=str(debug_dir), log_file=str(log_file), out_dir=str(tmp_path / "out"))
    assert out.exists()

    with zipfile.ZipFile(out) as z:
        names = set(z.namelist())
    assert "dpma.log" in names
    responses = sorted(n for n in names if n.startswith("responses/"))
    assert len(responses) == 2
    assert responses[0].endswith("001_step1_applicant.xml")
    assert responses[1].endswith("002_versand.json")


def test_create_debug_bundle_tolerates_missing_inputs(tmp_path: Path) -> None:
    extra = tmp_path / "request.yaml"
    extra.write_text("applicant: {}", encoding="utf-8")

    out = create_debug_bundle(
        debug_dir=str(tmp_path / "nope"),
        log_file=str(tmp_path / "nope.log"),
        out_dir=str(tmp_path / "out"),
        extra_paths=[str(extra), str(tmp_path / "missing.json")],
    )
    with zipfile.ZipFile(out) as z:
        assert z.namelist() == ["extra/request.yaml"]
