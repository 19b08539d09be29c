from __future__ import annotations

import warnings

import pytest
from bs4 import XMLParsedAsHTMLWarning

from dpma_direkt.errors import MissingViewStateError, MissingWindowIdError
from dpma_direkt.portal.tokens import (
    Tokens,
    extract_bootstrap_tokens,
    extract_dynamic_fields,
    extract_window_id,
    extract_window_id_from_body,
    refresh_from_response,
)

from fake_portal import WINDOW, full_page, partial_response


def test_bootstrap_reads_hidden_inputs_and_csp_nonce() -> None:
    tokens = extract_bootstrap_tokens(full_page(view_state="-123:456", window_id=f"{WINDOW}:0", nonce="abc"))
    assert tokens == Tokens(view_state="-123:456", window_id=f"{WINDOW}:0", nonce="abc")


def test_bootstrap_view_state_by_id_suffix_and_window_from_form_attribute() -> None:
    html = """
    <form id="editor-form" data-client-window="w-1:3">
      <input type="hidden" id="j_id1:jakarta.faces.ViewState:0" value="vs-by-id" />
    </form>
    """
    tokens = extract_bootstrap_tokens(html)
    assert tokens.view_state == "vs-by-id"
    assert tokens.window_id == "w-1:3"
    assert tokens.nonce == ""


def test_bootstrap_view_state_from_script_literal() -> None:
    html = """<script>var cfg = {"jakarta.faces.ViewState": "vs-script"};</script>
    <input type="hidden" name="jakarta.faces.ClientWindow" value="w:0" />"""
    assert extract_bootstrap_tokens(html).view_state == "vs-script"


def test_bootstrap_window_falls_back_to_redirect_value_with_counter() -> None:
    html = '<input type="hidden" name="jakarta.faces.ViewState" value="vs" />'
    assert extract_bootstrap_tokens(html, fallback_window_id="abc").window_id == "abc:0"
    assert extract_bootstrap_tokens(html, fallback_window_id="abc:7").window_id == "abc:7"
    assert extract_bootstrap_tokens(html, session_base_id="base").window_id == "base:0"


def test_bootstrap_nonce_from_script_attribute() -> None:
    html = """<script nonce="from-attr">console.log(1)</script>
    <input type="hidden" name="jakarta.faces.ViewState" value="vs" />
    <input type="hidden" name="jakarta.faces.ClientWindow" value="w:0" />"""
    assert extract_bootstrap_tokens(html).nonce == "from-attr"


def test_bootstrap_missing_view_state_is_fatal() -> None:
    with pytest.raises(MissingViewStateError):
        extract_bootstrap_tokens('<input type="hidden" name="jakarta.faces.ClientWindow" value="w:0" />')


def test_bootstrap_missing_window_id_is_fatal() -> None:
    with pytest.raises(MissingWindowIdError) as exc:
        extract_bootstrap_tokens('<input type="hidden" name="jakarta.faces.ViewState" value="vs" />')
    assert exc.value.code == "MISSING_WINDOW_ID"


def test_refresh_replaces_all_fields_from_partial_response() -> None:
    current = Tokens(view_state="old", window_id="w:0", nonce="n0")
    body = partial_response("new", window_id="w:1", nonce="n1")
    assert refresh_from_response(body, current) == Tokens(view_state="new", window_id="w:1", nonce="n1")


def test_refresh_keeps_fields_the_response_does_not_define() -> None:
    current = Tokens(view_state="old", window_id="w:0", nonce="n0")
    refreshed = refresh_from_response(partial_response("new"), current)
    assert refreshed == Tokens(view_state="new", window_id="w:0", nonce="n0")


def test_refresh_never_fails_on_unrelated_bodies() -> None:
    current = Tokens(view_state="old", window_id="w:0", nonce="n0")
    assert refresh_from_response("", current) == current
    assert refresh_from_response("not markup at all <<<", current) == current
    assert refresh_from_response('{"status": "ok"}', current) == current


def test_refresh_ignores_blank_update_values() -> None:
    current = Tokens(view_state="old", window_id="w:0")
    body = '<partial-response><changes><update id="j_id1:jakarta.faces.ViewState:0"><![CDATA[   ]]></update></changes></partial-response>'
    assert refresh_from_response(body, current).view_state == "old"


def test_refresh_reads_full_html_pages() -> None:
    current = Tokens(view_state="old", window_id="w:0")
    refreshed = refresh_from_response(full_page(view_state="uploaded", window_id="w:4", nonce="n4"), current)
    assert refreshed == Tokens(view_state="uploaded", window_id="w:4", nonce="n4")


def test_refresh_is_idempotent() -> None:
    current = Tokens(view_state="old", window_id="w:0", nonce="n0")
    body = partial_response("vs-9", window_id="w:2")
    once = refresh_from_response(body, current)
    assert refresh_from_response(body, once) == once


def test_refresh_over_a_sequence_keeps_latest_defined_values() -> None:
    tokens = Tokens(view_state="vs-0", window_id="w:0", nonce="n-0")
    bodies = [
        partial_response("vs-1"),
        partial_response(None, window_id="w:1"),
        partial_response("vs-2", nonce="n-2"),
        "",
        partial_response(None),
    ]
    for body in bodies:
        tokens = refresh_from_response(body, tokens)
    assert tokens == Tokens(view_state="vs-2", window_id="w:1", nonce="n-2")


def test_extract_window_id_from_urls_and_bodies() -> None:
    assert extract_window_id(f"/x/w7005/w7005web.xhtml?jftfdi=&jffi=w7005&jfwid={WINDOW}:0") == f"{WINDOW}:0"
    assert extract_window_id("https://direkt.dpma.de/x?jfwid=abc") == "abc"
    assert extract_window_id("https://direkt.dpma.de/x?jfwid=abc%3A2") == "abc:2"
    assert extract_window_id("/no/window/here") is None
    assert extract_window_id_from_body('<a href="/w7005web.xhtml?jfwid=xyz:1">') == "xyz:1"


def test_dynamic_fields_any_attribute_order_and_cdata() -> None:
    body = partial_response(
        "vs",
        form_html=(
            '<input type="hidden" value="2" name="editor-form:j_idt77:itemsPanel_active" />'
            '<input id="j_idt81:0:itemsPanel_active" type="hidden" value="" name="j_idt81:0:itemsPanel_active"/>'
            '<input type="hidden" name="editor-form:somethingElse_active" value="1" />'
        ),
    )
    assert extract_dynamic_fields(body) == {
        "editor-form:j_idt77:itemsPanel_active": "2",
        "j_idt81:0:itemsPanel_active": "-1",
    }


def test_dynamic_fields_empty_when_absent() -> None:
    assert extract_dynamic_fields(partial_response("vs")) == {}


def test_partial_response_parsing_emits_no_xml_warning() -> None:
    body = partial_response("vs-9", window_id=f"{WINDOW}:3", nonce="n-9")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        refreshed = refresh_from_response(body, Tokens(view_state="vs-0", window_id=f"{WINDOW}:0"))
        extract_dynamic_fields(body)
    assert refreshed.view_state == "vs-9"
    assert not [w for w in caught if issubclass(w.category, XMLParsedAsHTMLWarning)]
