from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Any, List, Optional

import yaml
from dotenv import load_dotenv

from .client import DpmaClient
from .config import load_config
from .fees import calculate_fees
from .logging_config import configure_logging
from .models import RegistrationResult, RegistrationSuccess, TrademarkRegistrationRequest
from .portal.steps import MARK_TYPE_VALUES, STEP_TYPES
from .portal.versand import unpack_archive
from .util.debug_bundle import create_debug_bundle
from .validation import validate_request


logger = logging.getLogger("dpma_direkt")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dpma_direkt")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    validate = sub.add_parser("validate", help="Check a registration request file without contacting the portal")
    validate.add_argument("--request", required=True, help="Path to the request (JSON or YAML)")

    register = sub.add_parser(
        "register",
        help="File a trademark application with the DPMA. Without --confirm, only prints what would be submitted.",
    )
    register.add_argument("--request", required=True, help="Path to the request (JSON or YAML)")
    register.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    register.add_argument("--debug", action="store_true", help="Save every portal response under the debug dir.")
    register.add_argument(
        "--confirm",
        action="store_true",
        help="Actually submit. Filing is binding and triggers official fees.",
    )
    register.add_argument("--out", default="", help="Optional path to write the result JSON to.")

    unpack = sub.add_parser("unpack", help="List the documents inside a downloaded receipt archive")
    unpack.add_argument("--archive", required=True, help="Path to a *_documents.zip file")
    unpack.add_argument("--extract-to", default="", help="Optional directory to write the documents to")

    bundle = sub.add_parser("debug-bundle", help="Zip saved portal responses + log into data/ for troubleshooting")
    bundle.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")

    return p


def _load_request_file(path: str) -> Any:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"Request file not found: {p}")
    # JSON is a subset of YAML
    return yaml.safe_load(p.read_text(encoding="utf-8")) or {}


def _result_to_dict(result: RegistrationResult) -> dict:
    if not isinstance(result, RegistrationSuccess):
        return result.model_dump(mode="json")

    out = result.model_dump(
        mode="json",
        exclude={"archive_bytes": True, "receipt_documents": {"__all__": {"data"}}},
    )
    for doc, raw in zip(out.get("receipt_documents") or [], result.receipt_documents):
        doc["size"] = raw.size
    out["archive_size"] = len(result.archive_bytes or b"")
    return out


def _extract_target(root: Path, entry_name: str) -> Optional[Path]:
    # keep the archive's folders but never write outside `root`
    parts = [p for p in PurePosixPath(entry_name.replace("\\", "/")).parts if p not in ("/", ".", "..")]
    if not parts:
        return None
    return root.joinpath(*parts)


def _print_plan(request: TrademarkRegistrationRequest) -> None:
    print("Dry run (pass --confirm to submit). Planned wizard steps:")
    for step in STEP_TYPES:
        print(f"  {step.index}. {step.name}")
    print(f"Applicant: {request.applicant.display_name} ({request.applicant.type})")
    print(f"Trademark: {request.trademark.type} -> portal type '{MARK_TYPE_VALUES[request.trademark.type]}'")
    classes = ", ".join(
        f"{c.class_number} ({len(c.terms)} term(s){', header' if c.wants_header else ''})" for c in request.nice_classes
    )
    print(f"Nice classes: {classes}; lead class {request.effective_lead_class}")
    print(f"Delivery address: {'applicant' if request.copies_applicant_address else 'separate'}")
    total = sum(f.amount for f in calculate_fees(request))
    print(f"Payment: {request.payment_method.value}, expected fees {total} EUR")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "validate":
        checked = validate_request(_load_request_file(args.request))
        if checked.valid:
            print("✅ Request is valid")
            return 0
        print("❌ Request is invalid:")
        for err in checked.errors:
            print(f"  - {err.field or '(request)'}: {err.message}")
        return 1

    if args.cmd == "register":
        cfg = load_config(args.config)
        if args.debug:
            cfg = cfg.model_copy(update={"debug": cfg.debug.model_copy(update={"enabled": True})})
        configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)

        checked = validate_request(_load_request_file(args.request))
        if not checked.valid or checked.request is None:
            raise SystemExit(f"Invalid request: {checked.summary()}")

        if not args.confirm:
            _print_plan(checked.request)
            return 0

        logger.info("Starting registration against %s", cfg.portal.base_url)
        result = DpmaClient.from_config(cfg).register(checked.request)
        payload = json.dumps(_result_to_dict(result), indent=2, ensure_ascii=False)
        if args.out:
            out_path = Path(args.out)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(payload, encoding="utf-8")
        print(payload)

        if isinstance(result, RegistrationSuccess):
            print(f"✅ Filed: Aktenzeichen {result.aktenzeichen}")
            return 0

        print(f"❌ Registration failed ({result.error_code}): {result.error_message}")
        if cfg.debug.enabled:
            try:
                bundle = create_debug_bundle(debug_dir=cfg.debug.dir, log_file=cfg.logging.file_path)
                logger.error("Wrote debug bundle: %s", bundle)
            except Exception:
                logger.debug("Failed to create debug bundle.", exc_info=True)
        return 1

    if args.cmd == "unpack":
        archive = Path(args.archive)
        if not archive.exists():
            raise SystemExit(f"Archive not found: {archive}")
        docs = unpack_archive(archive.read_bytes())
        if not docs:
            print("No documents found (empty or unreadable archive).")
            return 1
        target = Path(args.extract_to) if args.extract_to else None
        if target:
            target.mkdir(parents=True, exist_ok=True)
        for doc in docs:
            print(f"{doc.filename}\t{doc.content_type}\t{doc.size} bytes")
            if target:
                out_file = _extract_target(target, doc.filename)
                if out_file is None:
                    continue
                out_file.parent.mkdir(parents=True, exist_ok=True)
                out_file.write_bytes(doc.data)
        return 0

    if args.cmd == "debug-bundle":
        cfg = load_config(args.config)
        bundle = create_debug_bundle(debug_dir=cfg.debug.dir, log_file=cfg.logging.file_path)
        print(f"Wrote debug bundle: {bundle}")
        return 0

    raise SystemExit(f"Unknown command: {args.cmd}")
