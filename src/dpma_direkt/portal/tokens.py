from __future__ import annotations

import logging
import re
import warnings
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence
from urllib.parse import unquote

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from ..errors import MissingViewStateError, MissingWindowIdError
from .selectors import WizardSelectors


logger = logging.getLogger(__name__)

_SELECTORS = WizardSelectors()

_WINDOW_ID_IN_URL_RE = re.compile(re.escape(_SELECTORS.window_id_param) + r"=([^&#:\s]+(?::\d+)?)")
_WINDOW_ID_IN_BODY_RE = re.compile(re.escape(_SELECTORS.window_id_param) + r"[=:]([^&\"'\s<]+)")
_VIEW_STATE_IN_SCRIPT_RE = re.compile(r"jakarta\.faces\.ViewState['\"]\s*(?:value|:)\s*['\"]([^'\"]+)")
_CSP_INIT_RE = re.compile(r"PrimeFaces\.csp\.init\(\s*['\"]([^'\"]+)['\"]\s*\)")
_SCRIPT_NONCE_RE = re.compile(r"<script[^>]+nonce=[\"']([^\"']+)[\"']")
_DYNAMIC_PANEL_RE = re.compile(r"(?:^|:)j_idt\d+[^\s]*" + re.escape(_SELECTORS.dynamic_items_panel_suffix) + r"$")


def parse_markup(text: str) -> BeautifulSoup:
    """Soup of a full page or a `<partial-response>` body, with CDATA markers removed."""
    stripped = (text or "").replace("<![CDATA[", "").replace("]]>", "")
    with warnings.catch_warnings():
        # partial responses are XML envelopes around HTML fragments
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        return BeautifulSoup(stripped, "html.parser")


def _update_fragment_re(token_name: str) -> re.Pattern[str]:
    # <update id="j_id1:jakarta.faces.ViewState:0"><![CDATA[value]]></update>
    return re.compile(
        r"<update\s+id=\"[^\"]*" + re.escape(token_name) + r"[^\"]*\"\s*>\s*(?:<!\[CDATA\[)?(.*?)(?:\]\]>)?\s*</update>",
        re.S,
    )


_VIEW_STATE_UPDATE_RE = _update_fragment_re(_SELECTORS.view_state_field)
_WINDOW_ID_UPDATE_RE = _update_fragment_re(_SELECTORS.window_id_field)


@dataclass(frozen=True)
class Tokens:
    """
    The three-part session token every wizard submission must carry.

    `view_state` and `window_id` are mandatory; `nonce` may be empty when the page does not use CSP nonces.
    """

    view_state: str
    window_id: str
    nonce: str = ""

    def merged(
        self,
        *,
        view_state: Optional[str] = None,
        window_id: Optional[str] = None,
        nonce: Optional[str] = None,
    ) -> "Tokens":
        """Return a copy where only the non-empty values supersede the current ones."""
        return replace(
            self,
            view_state=view_state or self.view_state,
            window_id=window_id or self.window_id,
            nonce=nonce or self.nonce,
        )

    def as_fields(self, selectors: WizardSelectors = _SELECTORS) -> dict[str, str]:
        return {
            selectors.view_state_field: self.view_state,
            selectors.window_id_field: self.window_id,
            selectors.nonce_field: self.nonce,
        }

    def short(self) -> str:
        vs = self.view_state
        vs_short = f"{vs[:12]}..." if len(vs) > 12 else vs
        return f"view_state={vs_short} window_id={self.window_id} nonce={'set' if self.nonce else 'empty'}"


class MarkupDocument:
    """
    A response body plus a lazily parsed soup.

    Partial responses wrap their HTML fragments in CDATA sections; the soup is built from the body with the
    CDATA markers removed so hidden inputs inside updates are found like in a full page.
    """

    def __init__(self, text: str) -> None:
        self.text = text or ""
        self._soup: Optional[BeautifulSoup] = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = parse_markup(self.text)
        return self._soup

    def input_value(self, *, name: Optional[str] = None, id_pattern: Optional[re.Pattern[str]] = None) -> Optional[str]:
        attrs: dict = {}
        if name:
            attrs["name"] = name
        if id_pattern is not None:
            attrs["id"] = id_pattern
        el = self.soup.find("input", attrs=attrs)
        if el is None:
            return None
        value = el.get("value")
        return str(value) if value is not None else None

    def search(self, pattern: re.Pattern[str]) -> Optional[str]:
        m = pattern.search(self.text)
        return m.group(1) if m else None


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    extract: Callable[[MarkupDocument], Optional[str]]


def _form_client_window(doc: MarkupDocument) -> Optional[str]:
    el = doc.soup.find(attrs={"data-client-window": True})
    if el is None:
        return None
    return str(el.get("data-client-window") or "")


VIEW_STATE_BOOTSTRAP: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("hidden-input", lambda d: d.input_value(name=_SELECTORS.view_state_field)),
    ExtractionStrategy("input-id-suffix", lambda d: d.input_value(id_pattern=re.compile(r"ViewState(?::\d+)?$"))),
    ExtractionStrategy("script-literal", lambda d: d.search(_VIEW_STATE_IN_SCRIPT_RE)),
)

WINDOW_ID_BOOTSTRAP: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("hidden-input", lambda d: d.input_value(name=_SELECTORS.window_id_field)),
    ExtractionStrategy("form-attribute", _form_client_window),
)

NONCE_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("csp-init", lambda d: d.search(_CSP_INIT_RE)),
    ExtractionStrategy("hidden-input", lambda d: d.input_value(name=_SELECTORS.nonce_field)),
)

NONCE_BOOTSTRAP: tuple[ExtractionStrategy, ...] = NONCE_STRATEGIES + (
    ExtractionStrategy("script-attribute", lambda d: d.search(_SCRIPT_NONCE_RE)),
)

VIEW_STATE_REFRESH: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("partial-update", lambda d: d.search(_VIEW_STATE_UPDATE_RE)),
    ExtractionStrategy("hidden-input", lambda d: d.input_value(name=_SELECTORS.view_state_field)),
)

WINDOW_ID_REFRESH: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("partial-update", lambda d: d.search(_WINDOW_ID_UPDATE_RE)),
    ExtractionStrategy("hidden-input", lambda d: d.input_value(name=_SELECTORS.window_id_field)),
)


def run_strategies(strategies: Sequence[ExtractionStrategy], doc: MarkupDocument) -> tuple[Optional[str], str]:
    """
    Try strategies in order and return (value, strategy_name) for the first non-blank hit.
    """
    for strategy in strategies:
        value = strategy.extract(doc)
        if value is not None and value.strip():
            return value.strip(), strategy.name
    return None, ""


def extract_bootstrap_tokens(
    html: str,
    *,
    fallback_window_id: Optional[str] = None,
    session_base_id: Optional[str] = None,
) -> Tokens:
    """
    Extract the initial token set from the first full wizard page.

    Raises MissingViewStateError / MissingWindowIdError when a mandatory token cannot be found; a missing
    nonce is tolerated.
    """
    doc = MarkupDocument(html)

    view_state, vs_source = run_strategies(VIEW_STATE_BOOTSTRAP, doc)
    if not view_state:
        raise MissingViewStateError("No jakarta.faces.ViewState found on the wizard start page")

    fallbacks: list[ExtractionStrategy] = []
    if fallback_window_id:
        fb = fallback_window_id if ":" in fallback_window_id else f"{fallback_window_id}:0"
        fallbacks.append(ExtractionStrategy("redirect-fallback", lambda _d: fb))
    if session_base_id:
        fallbacks.append(ExtractionStrategy("session-base", lambda _d: f"{session_base_id}:0"))

    window_id, wid_source = run_strategies(WINDOW_ID_BOOTSTRAP + tuple(fallbacks), doc)
    if not window_id:
        raise MissingWindowIdError("No jakarta.faces.ClientWindow found on the wizard start page")

    nonce, nonce_source = run_strategies(NONCE_BOOTSTRAP, doc)

    tokens = Tokens(view_state=view_state, window_id=window_id, nonce=nonce or "")
    logger.debug(
        "Bootstrap tokens: %s (sources: view_state=%s window_id=%s nonce=%s)",
        tokens.short(),
        vs_source,
        wid_source,
        nonce_source or "none",
    )
    return tokens


def refresh_from_response(body: str, current: Tokens) -> Tokens:
    """
    Derive the token set after a round trip.

    Never fails: fields the response does not define keep their current value.
    """
    doc = MarkupDocument(body)
    view_state, _ = run_strategies(VIEW_STATE_REFRESH, doc)
    window_id, _ = run_strategies(WINDOW_ID_REFRESH, doc)
    nonce, _ = run_strategies(NONCE_STRATEGIES, doc)
    return current.merged(view_state=view_state, window_id=window_id, nonce=nonce)


def extract_window_id(url: str) -> Optional[str]:
    """Window id (`uuid[:counter]`) from a URL's `jfwid` query parameter."""
    m = _WINDOW_ID_IN_URL_RE.search(unquote(url or ""))
    return m.group(1) if m else None


def extract_window_id_from_body(body: str) -> Optional[str]:
    m = _WINDOW_ID_IN_BODY_RE.search(body or "")
    return m.group(1) if m else None


def extract_dynamic_fields(body: str) -> dict[str, str]:
    """
    Recover the generated `<prefix>:itemsPanel_active` hidden fields from a response.

    The final submission must echo them; an empty value is sent as "-1" (no accordion tab open).
    """
    doc = MarkupDocument(body)
    out: dict[str, str] = {}
    for el in doc.soup.find_all("input"):
        key = str(el.get("name") or el.get("id") or "")
        if not _DYNAMIC_PANEL_RE.search(key):
            continue
        if key in out:
            continue
        value = str(el.get("value") or "").strip()
        out[key] = value or "-1"
    return out
