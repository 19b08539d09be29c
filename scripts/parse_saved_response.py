#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional


def _ensure_src_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise SystemExit(f"File not found: {p}")
    return p.read_text(encoding="utf-8", errors="replace")


def _emit(payload: dict, out: str) -> None:
    out_json = json.dumps(payload, indent=2, ensure_ascii=False)
    if out:
        Path(out).write_text(out_json, encoding="utf-8")
    else:
        print(out_json)


def main(argv: Optional[list[str]] = None) -> int:
    _ensure_src_on_path()

    from dpma_direkt.portal.channel import detect_server_error
    from dpma_direkt.portal.resolver import scan_header_identifier, scan_term_identifier
    from dpma_direkt.portal.selectors import WizardSelectors
    from dpma_direkt.portal.tokens import (
        MarkupDocument,
        NONCE_STRATEGIES,
        VIEW_STATE_BOOTSTRAP,
        VIEW_STATE_REFRESH,
        WINDOW_ID_BOOTSTRAP,
        WINDOW_ID_REFRESH,
        extract_dynamic_fields,
        run_strategies,
    )

    p = argparse.ArgumentParser(
        prog="parse_saved_response",
        description=(
            "Run the token and identifier extractors against a response saved under data/debug/run_*/.\n"
            "This is intended for debugging extraction regressions offline (no network, no filing)."
        ),
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    tokens = sub.add_parser("tokens", help="Show which strategy finds each token in a saved response")
    tokens.add_argument("--file", required=True, help="Path to a saved full page or partial response")
    tokens.add_argument("--bootstrap", action="store_true", help="Use the start-page strategies instead of refresh")
    tokens.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")

    tree = sub.add_parser("classification", help="Find class-header and term checkbox ids in a saved response")
    tree.add_argument("--file", required=True, help="Path to a saved expand or search response")
    tree.add_argument("--class", dest="classes", type=int, action="append", default=[], help="Nice class (repeatable)")
    tree.add_argument("--term", dest="terms", action="append", default=[], help="Term title (repeatable)")
    tree.add_argument("--out", default="", help="Optional output JSON path (otherwise prints to stdout)")

    args = p.parse_args(argv)
    body = _read_text(args.file)

    if args.cmd == "tokens":
        doc = MarkupDocument(body)
        if args.bootstrap:
            vs_strategies, wid_strategies = VIEW_STATE_BOOTSTRAP, WINDOW_ID_BOOTSTRAP
        else:
            vs_strategies, wid_strategies = VIEW_STATE_REFRESH, WINDOW_ID_REFRESH

        found = {}
        for label, strategies in (("view_state", vs_strategies), ("window_id", wid_strategies), ("nonce", NONCE_STRATEGIES)):
            value, source = run_strategies(strategies, doc)
            found[label] = {"value": value, "strategy": source or None}

        payload = {
            "tokens": found,
            "dynamic_fields": extract_dynamic_fields(body),
            "server_error": detect_server_error(body, WizardSelectors()),
        }
        _emit(payload, args.out)
        return 0

    if args.cmd == "classification":
        if not args.classes and not args.terms:
            raise SystemExit("Pass at least one --class or --term.")
        payload = {
            "headers": {str(n): scan_header_identifier(body, n) for n in args.classes},
            "terms": {t: scan_term_identifier(body, t) for t in args.terms},
        }
        _emit(payload, args.out)
        return 0

    raise AssertionError("Unhandled command")


if __name__ == "__main__":
    raise SystemExit(main())
