from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import quote, urlencode

import httpx

from ..errors import TransportError


logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"


def browser_headers(user_agent: str = DEFAULT_USER_AGENT) -> dict[str, str]:
    return {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
        "Accept-Language": "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7",
        "User-Agent": user_agent,
        "sec-ch-ua": '"Google Chrome";v="143", "Chromium";v="143", "Not A(Brand";v="24"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
    }


AJAX_HEADERS: dict[str, str] = {
    "faces-request": "partial/ajax",
    "X-Requested-With": "XMLHttpRequest",
    "Accept": "application/xml, text/xml, */*; q=0.01",
}


@dataclass(frozen=True)
class PortalEndpoints:
    """URL layout of the editor (wizard) and Versand (dispatch) applications."""

    base_url: str = "https://direkt.dpma.de"
    editor_path: str = "/DpmaDirektWebEditoren"
    versand_path: str = "/DpmaDirektWebVersand"
    flow_id: str = "w7005"

    @property
    def index_path(self) -> str:
        return f"{self.editor_path}/index.xhtml"

    @property
    def start_path(self) -> str:
        return f"{self.editor_path}/{self.flow_id}-start.xhtml"

    def form_path(self, window_id: str) -> str:
        return f"{self.editor_path}/{self.flow_id}/{self.flow_id}web.xhtml?jftfdi=&jffi={self.flow_id}&jfwid={window_id}"

    def upload_path(self, window_id: str) -> str:
        return f"{self.editor_path}/{self.flow_id}/{self.flow_id}-upload.xhtml?jfwid={window_id}"

    @property
    def flow_return_path(self) -> str:
        return f"{self.editor_path}/flowReturn.xhtml"

    def versand_index_path(self, transaction_id: str) -> str:
        return f"{self.versand_path}/index.html?flowId={self.flow_id}&transactionId={quote(transaction_id, safe='')}"

    def versand_submit_path(self, transaction_id: str) -> str:
        return f"{self.versand_path}/versand?flowId={self.flow_id}&transactionId={quote(transaction_id, safe='')}"

    def versand_documents_path(self, transaction_id: str) -> str:
        return f"{self.versand_path}/versand/anlagen?encryptedTransactionId={quote(transaction_id, safe='')}"

    def absolute(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}{path_or_url}"


def encode_form(fields: Mapping[str, str]) -> str:
    """URL-encode fields in insertion order."""
    return urlencode([(k, "" if v is None else str(v)) for k, v in fields.items()])


class PortalHttpClient:
    """
    Cookie-jar-aware HTTP client for one registration attempt.

    Redirects are never followed automatically; callers inspect `Location` themselves. Any status outside
    200-399 and any network failure becomes a TransportError.
    """

    def __init__(
        self,
        *,
        endpoints: Optional[PortalEndpoints] = None,
        timeout_seconds: float = 60.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.endpoints = endpoints or PortalEndpoints()
        self._client = httpx.Client(
            base_url=self.endpoints.base_url,
            headers=browser_headers(user_agent),
            follow_redirects=False,
            timeout=timeout_seconds,
            transport=transport,
        )

    def __enter__(self) -> "PortalHttpClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    def get(self, path: str, *, referer: Optional[str] = None, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        h = dict(headers or {})
        if referer:
            h["Referer"] = self.endpoints.absolute(referer)
        return self._send("GET", path, headers=h)

    def post_form(
        self,
        path: str,
        fields: Mapping[str, str],
        *,
        ajax: bool = True,
        referer: Optional[str] = None,
    ) -> httpx.Response:
        h: dict[str, str] = {"Content-Type": FORM_CONTENT_TYPE}
        if ajax:
            h.update(AJAX_HEADERS)
        h["Origin"] = self.endpoints.base_url
        h["Referer"] = self.endpoints.absolute(referer or path)
        return self._send("POST", path, headers=h, content=encode_form(fields).encode("utf-8"))

    def post_multipart(
        self,
        path: str,
        data: Mapping[str, str],
        files: Mapping[str, tuple[str, bytes, str]],
        *,
        referer: Optional[str] = None,
    ) -> httpx.Response:
        h = {"Origin": self.endpoints.base_url, "Referer": self.endpoints.absolute(referer or path)}
        return self._send("POST", path, headers=h, data=dict(data), files=dict(files))

    def post_empty(self, path: str, *, headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        h = dict(headers or {})
        h.setdefault("Content-Length", "0")
        return self._send("POST", path, headers=h, content=b"")

    def _send(self, method: str, path: str, **kwargs: object) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        logger.debug("%s %s -> %s (%d bytes)", method, path, resp.status_code, len(resp.content))
        if not 200 <= resp.status_code < 400:
            raise TransportError(f"{method} {path} returned HTTP {resp.status_code}", status_code=resp.status_code)
        return resp
