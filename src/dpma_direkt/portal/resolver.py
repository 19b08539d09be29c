from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from ..errors import ServerErrorPage
from .channel import WizardChannel
from .session import SessionState
from .tokens import parse_markup


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderFallback:
    """A conventional identifier guess for a class header checkbox. Never confirmed against live markup."""

    name: str
    build: Callable[[int], str]


# Unverified: used only when no pattern matches the expanded tree. Set to () to disable guessing.
UNVERIFIED_HEADER_FALLBACKS: tuple[HeaderFallback, ...] = (
    HeaderFallback("node-selectbox", lambda n: f"tmclassEditorGt:tmclassNode_{n}:selectBox_input"),
    HeaderFallback("tree-index", lambda n: f"tmclassEditorGt:tmclassEditorTree:{n - 1}:selectBox_input"),
    HeaderFallback("class-select", lambda n: f"tmclassEditorGt:classSelect_{n}_input"),
)


@dataclass
class TermResolution:
    identifiers: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def header_patterns(class_number: int) -> list[re.Pattern[str]]:
    n = int(class_number)
    return [
        re.compile(rf"(tmclassEditorGt:tmclassNode_{n}:[^:\"'\s]+:selectBox_input)"),
        re.compile(rf"(tmclassEditorGt:[^\"'\s]*tmclassNode_?{n}(?![0-9])[^\"'\s]*selectBox[^\"'\s]*)"),
        re.compile(rf"id=\"([^\"]*tmclassNode_?{n}(?![0-9])[^\"]*_checkbox)\""),
    ]


def scan_header_identifier(markup: str, class_number: int) -> Optional[str]:
    """
    Find the header checkbox identifier of a class in (expanded) tree markup, or None.
    """
    for i, pattern in enumerate(header_patterns(class_number)):
        m = pattern.search(markup or "")
        if not m:
            continue
        found = m.group(1)
        if found.endswith("_checkbox"):
            found = found[: -len("_checkbox")] + ":selectBox_input"
        elif found.endswith("selectBox"):
            found += "_input"
        logger.debug("Class %s header identifier via pattern %d: %s", class_number, i + 1, found)
        return found
    return None


def _norm(s: str) -> str:
    return " ".join((s or "").lower().split())


def scan_term_identifier(markup: str, term: str) -> Optional[str]:
    """
    Find the checkbox identifier of a term in search-result markup.

    Links are matched by title: case-sensitive exact or prefix match first, then case-insensitive substring.
    """
    soup = parse_markup(markup)
    links: list[tuple[str, str]] = []
    for el in soup.find_all(id=re.compile(r"^tmclassEditorGt:.*:termViewLink$")):
        prefix = str(el.get("id"))[: -len(":termViewLink")]
        title = str(el.get("title") or el.get_text(" ", strip=True) or "")
        links.append((prefix, title))

    raw = (term or "").strip()
    wanted = _norm(term)
    if not wanted:
        return None

    for prefix, title in links:
        t = title.strip()
        if t == raw or t.startswith(raw):
            return f"{prefix}:selectBox_input"
    for prefix, title in links:
        if wanted in _norm(title):
            return f"{prefix}:selectBox_input"
    return None


class ClassificationResolver:
    """
    Discovers session-scoped checkbox identifiers in the goods/services tree.

    Each discovered identifier is confirmed with a selection-changed round trip, which is what makes the
    server record the selection. Server error pages during a single lookup are per-item misses; transport
    errors propagate.
    """

    def __init__(
        self,
        channel: WizardChannel,
        *,
        header_fallbacks: Sequence[HeaderFallback] = UNVERIFIED_HEADER_FALLBACKS,
    ) -> None:
        self.channel = channel
        self.header_fallbacks = tuple(header_fallbacks)

    def expand_class(self, session: SessionState, class_number: int) -> str:
        node = f"tmclassEditorGt:tmclassNode_{class_number}:iconExpandedState"
        resp = self.channel.round_trip(
            session,
            source=node,
            execute=node,
            render=self.channel.selectors.tree_root,
            event="action",
            fields={node: node},
            label=f"expand_class_{class_number}",
        )
        return resp.text

    def search(self, session: SessionState, term: str) -> str:
        s = self.channel.selectors
        resp = self.channel.round_trip(
            session,
            source=s.tree_search_button,
            execute=s.tree_root,
            render=s.tree_search_render,
            fields={
                s.tree_search_button: s.tree_search_button,
                s.tree_search_phrase: term,
                s.tree_search_panel_active: "null",
                s.editor_panel_active: "null",
            },
            label="search_term",
        )
        return resp.text

    def confirm_selection(self, session: SessionState, checkbox_id: str) -> None:
        s = self.channel.selectors
        component = checkbox_id[: -len("_input")] if checkbox_id.endswith("_input") else checkbox_id
        self.channel.round_trip(
            session,
            source=component,
            execute=component,
            render=f"{component} {s.selection_render_extras}",
            event="change",
            fields={checkbox_id: "on"},
            label="select_checkbox",
        )

    def resolve_header_identifier(self, session: SessionState, class_number: int) -> Optional[str]:
        try:
            body = self.expand_class(session, class_number)
        except ServerErrorPage as e:
            logger.warning("Expanding class %s failed: %s", class_number, e)
            return None

        found = scan_header_identifier(body, class_number)
        if not found and self.header_fallbacks:
            fb = self.header_fallbacks[0]
            found = fb.build(class_number)
            logger.warning(
                "No header checkbox found for class %s; using unverified fallback '%s': %s",
                class_number,
                fb.name,
                found,
            )
        if not found:
            logger.warning("No header checkbox found for class %s", class_number)
            return None

        try:
            self.confirm_selection(session, found)
        except ServerErrorPage as e:
            logger.warning("Selecting class %s header failed: %s", class_number, e)
            return None
        return found

    def resolve_term_identifiers(self, session: SessionState, terms: Sequence[str]) -> TermResolution:
        result = TermResolution()
        for term in terms:
            try:
                body = self.search(session, term)
            except ServerErrorPage as e:
                result.warnings.append(f"Search for term '{term}' failed: {e}")
                continue

            found = scan_term_identifier(body, term)
            if not found:
                result.warnings.append(f"Term not found in search results: '{term}'")
                continue

            try:
                self.confirm_selection(session, found)
            except ServerErrorPage as e:
                result.warnings.append(f"Selecting term '{term}' failed: {e}")
                continue
            result.identifiers[term] = found

        for w in result.warnings:
            logger.warning(w)
        return result
