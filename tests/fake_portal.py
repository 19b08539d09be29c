from __future__ import annotations

import io
import re
import struct
import zipfile
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qsl, urlsplit

import httpx


EDITOR = "/DpmaDirektWebEditoren"
VERSAND = "/DpmaDirektWebVersand"
WINDOW = "3f2a9c1e-7b4d-4e8f-9a61-0c5d2e8b7a10"


def full_page(view_state: str = "vs-0", window_id: str = f"{WINDOW}:0", nonce: str = "n-0") -> str:
    return f"""<!DOCTYPE html>
<html><head>
<script nonce="{nonce}">PrimeFaces.csp.init('{nonce}');</script>
</head><body>
<form id="editor-form" name="editor-form" method="post" data-client-window="{window_id}">
  <input type="hidden" name="editor-form" value="editor-form" />
  <input type="hidden" name="jakarta.faces.ViewState" id="j_id1:jakarta.faces.ViewState:0" value="{view_state}" autocomplete="off" />
  <input type="hidden" name="jakarta.faces.ClientWindow" id="j_id1:jakarta.faces.ClientWindow:0" value="{window_id}" />
</form>
</body></html>"""


def partial_response(
    view_state: Optional[str],
    *,
    window_id: Optional[str] = None,
    nonce: Optional[str] = None,
    form_html: str = "<div>ok</div>",
    extra_updates: str = "",
) -> str:
    parts = [f'<update id="editor-form"><![CDATA[<form id="editor-form">{form_html}</form>]]></update>']
    if extra_updates:
        parts.append(extra_updates)
    if nonce:
        parts.append(f"<eval><![CDATA[PrimeFaces.csp.init('{nonce}');]]></eval>")
    if view_state is not None:
        parts.append(f'<update id="j_id1:jakarta.faces.ViewState:0"><![CDATA[{view_state}]]></update>')
    if window_id is not None:
        parts.append(f'<update id="j_id1:jakarta.faces.ClientWindow:0"><![CDATA[{window_id}]]></update>')
    return (
        "<?xml version='1.0' encoding='UTF-8'?>\n"
        f'<partial-response id="j_id1"><changes>{"".join(parts)}</changes></partial-response>'
    )


def tree_markup(class_number: int) -> str:
    node = f"tmclassEditorGt:tmclassNode_{class_number}"
    return (
        f'<li id="{node}"><span id="{node}:iconExpandedState" class="ui-tree-toggler"></span>'
        f'<div class="ui-chkbox"><input id="{node}:4:selectBox_input" name="{node}:4:selectBox_input" type="checkbox" /></div>'
        f"<span>Klasse {class_number}</span></li>"
    )


def term_links(terms: dict[str, str]) -> str:
    # terms: title -> id prefix suffix
    out = []
    for title, suffix in terms.items():
        prefix = f"tmclassEditorGt:termView:{suffix}"
        out.append(f'<a id="{prefix}:termViewLink" title="{title}" href="#">{title}</a>')
    return "".join(out)


def receipts_zip(files: Optional[dict[str, bytes]] = None) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as z:
        for name, data in (files or {"Empfangsbescheinigung.pdf": b"%PDF-1.4 receipt", "Anmeldung.xml": b"<a/>"}).items():
            z.writestr(name, data)
    return buf.getvalue()


def corrupt_deflate_zip() -> bytes:
    """A ZIP whose central directory is intact but whose deflate stream is not."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as z:
        z.writestr("Empfangsbescheinigung.pdf", b"%PDF-1.4 " + b"receipt line\n" * 400)
    data = bytearray(buf.getvalue())
    info = zipfile.ZipFile(io.BytesIO(bytes(data))).infolist()[0]
    name_len, extra_len = struct.unpack("<HH", data[info.header_offset + 26 : info.header_offset + 30])
    start = info.header_offset + 30 + name_len + extra_len
    # BFINAL=1, BTYPE=11: reserved block type
    data[start] = 0xFF
    return bytes(data)


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: dict[str, str]
    fields: dict[str, str]
    headers: httpx.Headers
    content: bytes


@dataclass
class FakePortal:
    """
    Minimal in-process stand-in for the DPMAdirektWeb editor + Versand applications.

    Every form round trip hands out a fresh view state; navigation submits also bump the window counter.
    """

    searchable_terms: dict[str, str] = field(default_factory=dict)
    expandable_classes: tuple[int, ...] = (9, 25, 35, 42)
    fail_on_view: Optional[str] = None
    redirect_on_view: Optional[str] = None
    redirect_location: str = f"{EDITOR}/error.xhtml?jfwid={WINDOW}"
    start_redirects: bool = True
    omit_view_state_on_bootstrap: bool = False
    final_redirect: bool = True
    versand_status: str = "VERSAND_SUCCESS"
    versand_body: Optional[str] = None
    archive: bytes = field(default_factory=receipts_zip)
    dynamic_panels: dict[str, str] = field(
        default_factory=lambda: {"editor-form:j_idt412:0:itemsPanel_active": "", "editor-form:j_idt419:itemsPanel_active": "0"}
    )

    requests: list[RecordedRequest] = field(default_factory=list)
    counter: int = 0
    window_counter: int = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ---- helpers for assertions ----

    def form_posts(self) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == "POST" and r.path.endswith("w7005web.xhtml")]

    def navigation_posts(self) -> list[RecordedRequest]:
        return [r for r in self.form_posts() if r.fields.get("jakarta.faces.source") == "cmd-link-next"]

    def posts_from(self, source_prefix: str) -> list[RecordedRequest]:
        return [r for r in self.form_posts() if r.fields.get("jakarta.faces.source", "").startswith(source_prefix)]

    # ---- handler ----

    def _next_view_state(self) -> str:
        self.counter += 1
        return f"vs-{self.counter}"

    def handle(self, request: httpx.Request) -> httpx.Response:
        url = urlsplit(str(request.url))
        path = url.path
        query = dict(parse_qsl(url.query, keep_blank_values=True))
        content = request.read()
        fields: dict[str, str] = {}
        ctype = request.headers.get("content-type", "")
        if ctype.startswith("application/x-www-form-urlencoded"):
            fields = dict(parse_qsl(content.decode("utf-8"), keep_blank_values=True))
        self.requests.append(RecordedRequest(request.method, path, query, fields, request.headers, content))

        if request.method == "GET" and path == f"{EDITOR}/index.xhtml":
            return httpx.Response(200, text="<html><body>DPMAdirektWeb</body></html>")

        if request.method == "GET" and path == f"{EDITOR}/w7005-start.xhtml":
            if self.start_redirects:
                location = f"{EDITOR}/w7005/w7005web.xhtml?jftfdi=&jffi=w7005&jfwid={WINDOW}:0"
                return httpx.Response(302, headers={"Location": location})
            return httpx.Response(200, text="<html><body>no window here</body></html>")

        if request.method == "GET" and path == f"{EDITOR}/w7005/w7005web.xhtml":
            if self.omit_view_state_on_bootstrap:
                return httpx.Response(200, text="<html><body><form id='editor-form'></form></body></html>")
            return httpx.Response(200, text=full_page())

        if request.method == "POST" and path == f"{EDITOR}/w7005/w7005web.xhtml":
            return self._handle_form_post(fields)

        if request.method == "POST" and path == f"{EDITOR}/w7005/w7005-upload.xhtml":
            return httpx.Response(200, text=full_page(view_state=self._next_view_state(), window_id=self._window()))

        if request.method == "GET" and path == f"{VERSAND}/index.html":
            return httpx.Response(200, text="<html><body>Versand</body></html>")

        if request.method == "POST" and path == f"{VERSAND}/versand":
            if self.versand_body is not None:
                return httpx.Response(200, text=self.versand_body)
            payload = {
                "validationResult": {
                    "state": "OK" if self.versand_status == "VERSAND_SUCCESS" else "ERROR",
                    "userMessage": None if self.versand_status == "VERSAND_SUCCESS" else "Signatur ungültig",
                    "validationMessageList": [],
                },
                "drn": "2026011512345678",
                "akz": "30 2026 012 345.6",
                "transactionId": query.get("transactionId", ""),
                "transactionType": "W7005",
                "status": self.versand_status,
                "creationTime": "2026-01-15T10:42:07+01:00",
            }
            return httpx.Response(200, json=payload)

        if request.method == "GET" and path == f"{VERSAND}/versand/anlagen":
            return httpx.Response(200, content=self.archive, headers={"Content-Type": "application/zip"})

        return httpx.Response(404, text="not found")

    def _window(self) -> str:
        return f"{WINDOW}:{self.window_counter}"

    def _handle_form_post(self, fields: dict[str, str]) -> httpx.Response:
        source = fields.get("jakarta.faces.source", "")

        if source == "cmd-link-next":
            view = fields.get("dpmaViewId", "")
            if self.redirect_on_view and view == self.redirect_on_view:
                return httpx.Response(302, headers={"Location": self.redirect_location})
            if self.fail_on_view and view == self.fail_on_view:
                return httpx.Response(
                    200,
                    text='<html><body><a href="/error.xhtml">Fehler</a>'
                    '<span class="ui-message-error ui-widget">Bitte prüfen Sie Ihre Eingaben</span></body></html>',
                )
            self.window_counter += 1
            form_html = "<div>next view</div>"
            if view == "submit":
                inputs = "".join(
                    f'<input type="hidden" value="{v}" name="{k}" id="{k}" />' for k, v in self.dynamic_panels.items()
                )
                form_html = f"<div>Zusammenfassung</div>{inputs}"
            return httpx.Response(
                200,
                text=partial_response(self._next_view_state(), window_id=self._window(), form_html=form_html),
            )

        if source.endswith(":iconExpandedState"):
            m = re.search(r"tmclassNode_(\d+)", source)
            n = int(m.group(1)) if m else 0
            markup = tree_markup(n) if n in self.expandable_classes else "<ul></ul>"
            return httpx.Response(
                200,
                text=partial_response(
                    self._next_view_state(),
                    extra_updates=f'<update id="tmclassEditorGt"><![CDATA[{markup}]]></update>',
                ),
            )

        if source == "tmclassEditorGt:searchWDVZ":
            phrase = fields.get("tmclassEditorGt:tmClassEditorCenterSearchPhrase", "").lower()
            hits = {t: s for t, s in self.searchable_terms.items() if phrase and phrase in t.lower()}
            return httpx.Response(
                200,
                text=partial_response(
                    self._next_view_state(),
                    extra_updates=f'<update id="tmclassEditorGt:nodeTreeAndTermView"><![CDATA[{term_links(hits)}]]></update>',
                ),
            )

        if source == "btnSubmitRegistration":
            if self.final_redirect:
                return httpx.Response(
                    302,
                    headers={"Location": f"{EDITOR}/flowReturn.xhtml?transactionId=TX%2Fabc%3D%3D&jfwid={WINDOW}"},
                )
            return httpx.Response(200, text=partial_response(None))

        # dropdown / selection / upload-dialog round trips
        return httpx.Response(200, text=partial_response(self._next_view_state()))


def natural_word_request(**overrides: object) -> dict:
    req: dict = {
        "applicant": {
            "type": "natural",
            "salutation": "Frau",
            "firstName": "Erika",
            "lastName": "Mustermann",
            "address": {"street": "Heidestraße 17", "zip": "51147", "city": "Köln", "country": "DE"},
        },
        "sanctions": {"hasRussianNationality": False, "hasRussianResidence": False},
        "email": "erika@example.de",
        "trademark": {"type": "word", "text": "Kaffeewolke"},
        "niceClasses": [{"classNumber": 9}, {"classNumber": 42}],
        "paymentMethod": "BANK_TRANSFER",
    }
    req.update(overrides)
    return req
