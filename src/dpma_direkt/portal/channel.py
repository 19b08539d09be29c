from __future__ import annotations

import logging
import re
from typing import Mapping, Optional

import httpx

from ..errors import ServerErrorPage
from .diagnostics import Diagnostics, NullDiagnostics
from .http import PortalHttpClient
from .selectors import WizardSelectors
from .session import SessionState


logger = logging.getLogger(__name__)


def detect_server_error(body: str, selectors: WizardSelectors) -> Optional[str]:
    """
    Return the server's error message (or a generic one) when the body is the portal error page.
    """
    if not any(marker in (body or "") for marker in selectors.error_markers):
        return None
    m = re.search(selectors.error_message_pattern, body)
    if m and m.group(1).strip():
        return m.group(1).strip()
    return "Server returned its error page"


class WizardChannel:
    """
    The one round-trip primitive of the wizard.

    Every exchange (step navigation, dropdown change, tree expand, term search, selection change, upload
    dialog) goes through `round_trip`: it adds the partial-request envelope and the current tokens, posts to
    the form URL of the session's current window, checks for the error page, and refreshes the session.
    """

    def __init__(
        self,
        http: PortalHttpClient,
        *,
        selectors: Optional[WizardSelectors] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self.http = http
        self.selectors = selectors or WizardSelectors()
        self.diagnostics = diagnostics or NullDiagnostics()

    def form_path(self, session: SessionState) -> str:
        return self.http.endpoints.form_path(session.current_window)

    def round_trip(
        self,
        session: SessionState,
        *,
        source: str,
        execute: str,
        render: str,
        fields: Optional[Mapping[str, str]] = None,
        event: Optional[str] = None,
        label: str = "round_trip",
        include_form: bool = True,
        allow_redirect: bool = False,
    ) -> httpx.Response:
        s = self.selectors
        body: dict[str, str] = {
            "jakarta.faces.partial.ajax": "true",
            "jakarta.faces.source": source,
            "jakarta.faces.partial.execute": execute,
            "jakarta.faces.partial.render": render,
        }
        if event:
            body["jakarta.faces.behavior.event"] = event
        body.update(fields or {})
        if include_form:
            body[s.form_id] = s.form_id
        body.update(session.tokens.as_fields(s))
        return self.post(session, body, label=label, allow_redirect=allow_redirect)

    def navigate(
        self,
        session: SessionState,
        *,
        view_id: str,
        fields: Optional[Mapping[str, str]] = None,
        label: str = "step",
    ) -> httpx.Response:
        """Submit the current step with the `next` button, announcing the logical id of the following view."""
        s = self.selectors
        nav: dict[str, str] = {
            s.next_button: s.next_button,
            "dpmaViewId": view_id,
            "dpmaViewCheck": "true",
        }
        nav.update(fields or {})
        return self.round_trip(
            session,
            source=s.next_button,
            execute=s.form_id,
            render=s.form_id,
            fields=nav,
            label=label,
        )

    def post(
        self,
        session: SessionState,
        fields: Mapping[str, str],
        *,
        label: str,
        allow_redirect: bool = False,
    ) -> httpx.Response:
        """
        Post one partial request. A redirect is a failed round trip unless `allow_redirect` is set, and a
        redirect to the error page always is.
        """
        path = self.form_path(session)
        logger.debug("POST %s (%s, %d fields)", label, session.tokens.short(), len(fields))
        resp = self.http.post_form(path, fields, referer=path)
        text = resp.text
        self.diagnostics.save(label, text)

        if 300 <= resp.status_code < 400:
            location = resp.headers.get("location") or ""
            if any(marker in location for marker in self.selectors.error_markers):
                session.last_response_body = text
                message = f"redirected to the error page ({location})"
                raise ServerErrorPage(f"{label}: {message}", server_message=message)
            if not allow_redirect:
                session.last_response_body = text
                message = f"unexpected redirect (HTTP {resp.status_code}) to {location or '(no location)'}"
                raise ServerErrorPage(f"{label}: {message}", server_message=message)

        message = detect_server_error(text, self.selectors)
        if message is not None:
            session.last_response_body = text
            raise ServerErrorPage(f"{label}: {message}", server_message=message)

        session.absorb(text)
        return resp
