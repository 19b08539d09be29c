from __future__ import annotations

from pathlib import Path

import pytest

from dpma_direkt.config import load_config


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_come_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DPMA_BASE_URL", "https://mirror.example.org/")
    monkeypatch.setenv("DPMA_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("DPMA_DEBUG", "yes")
    monkeypatch.setenv("DPMA_SAVE_RECEIPTS", "0")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    # a missing file is not an error; env defaults apply
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.portal.base_url == "https://mirror.example.org"
    assert cfg.portal.timeout_seconds == 15.0
    assert cfg.debug.enabled is True
    assert cfg.receipts.save_archive is False
    assert cfg.logging.level == "DEBUG"


def test_yaml_overrides_env_and_expands_variables(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DPMA_DEBUG", "false")
    monkeypatch.setenv("CATALOG_HOME", "/srv/catalogs")
    cfg_path = _write(
        tmp_path,
        "cfg.yaml",
        """
portal:
  editor_path: "DpmaDirektWebEditoren/"
debug:
  enabled: true
terms:
  catalog_path: "${CATALOG_HOME}/nice.yaml"
""",
    )
    cfg = load_config(cfg_path)
    assert cfg.portal.editor_path == "/DpmaDirektWebEditoren"
    assert cfg.portal.versand_path == "/DpmaDirektWebVersand"
    assert cfg.debug.enabled is True
    assert cfg.terms.catalog_path == "/srv/catalogs/nice.yaml"


def test_invalid_base_url_rejected(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", 'portal:\n  base_url: "direkt.dpma.de"\n')
    with pytest.raises(Exception):
        _ = load_config(cfg_path)


def test_invalid_flow_id_rejected(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, "cfg.yaml", 'portal:\n  flow_id: "W7005!"\n')
    with pytest.raises(Exception):
        _ = load_config(cfg_path)
