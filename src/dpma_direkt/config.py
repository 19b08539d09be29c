from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, model_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_FLOW_ID_RE = re.compile(r"^[a-z0-9]+$")


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only defaults so most users only need `.env`; a YAML file is an optional override.
    """
    return {
        "portal": {
            "base_url": os.getenv("DPMA_BASE_URL", "https://direkt.dpma.de"),
            "timeout_seconds": os.getenv("DPMA_TIMEOUT_SECONDS", "60"),
        },
        "debug": {
            "enabled": _env_bool("DPMA_DEBUG", default=False),
            "dir": os.getenv("DPMA_DEBUG_DIR", "data/debug"),
        },
        "receipts": {
            "dir": os.getenv("DPMA_RECEIPTS_DIR", "data/receipts"),
            "save_archive": _env_bool("DPMA_SAVE_RECEIPTS", default=True),
        },
        "terms": {
            "catalog_path": os.getenv("DPMA_TERM_CATALOG", ""),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/dpma.log"),
        },
    }


class PortalConfig(BaseModel):
    """
    Where the DPMAdirektWeb applications live.

    The path defaults match the production portal; override them only for a mirror or a recorded replay server.
    """

    base_url: str = "https://direkt.dpma.de"
    editor_path: str = "/DpmaDirektWebEditoren"
    versand_path: str = "/DpmaDirektWebVersand"
    flow_id: str = "w7005"
    timeout_seconds: float = Field(default=60.0, gt=0)
    user_agent: str = ""

    @model_validator(mode="after")
    def _normalize(self) -> "PortalConfig":
        base_url = (self.base_url or "").strip().rstrip("/")
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("portal.base_url must be a full URL like 'https://direkt.dpma.de'")

        for name in ("editor_path", "versand_path"):
            value = "/" + (getattr(self, name) or "").strip().strip("/")
            if value == "/":
                raise ValueError(f"portal.{name} must not be empty")
            setattr(self, name, value)

        if not _FLOW_ID_RE.match(self.flow_id or ""):
            raise ValueError("portal.flow_id must look like 'w7005'")

        self.base_url = base_url
        return self


class DebugConfig(BaseModel):
    # Saves every response body under `dir` (one sub-folder per run).
    enabled: bool = False
    dir: str = "data/debug"


class ReceiptsConfig(BaseModel):
    dir: str = "data/receipts"
    save_archive: bool = True


class TermsConfig(BaseModel):
    catalog_path: str = ""


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/dpma.log"


class AppConfig(BaseModel):
    portal: PortalConfig = PortalConfig()
    debug: DebugConfig = DebugConfig()
    receipts: ReceiptsConfig = ReceiptsConfig()
    terms: TermsConfig = TermsConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
