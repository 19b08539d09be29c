from __future__ import annotations

import io
import logging
import mimetypes
import re
import zipfile
import zlib
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from ..errors import FinalizationError
from ..models import DownloadedDocument, VersandResponse
from .diagnostics import Diagnostics, NullDiagnostics
from .http import PortalHttpClient


logger = logging.getLogger(__name__)

VERSAND_SUCCESS = "VERSAND_SUCCESS"

_JSON_ACCEPT = "application/json, text/plain, */*"
_UNSAFE_AKZ_RE = re.compile(r"[^a-zA-Z0-9.-]")


class VersandService:
    """
    Dispatch ("Versand") handshake that turns a wizard transaction reference into the office's file number
    (Aktenzeichen) and the receipt archive.
    """

    def __init__(self, http: PortalHttpClient, *, diagnostics: Optional[Diagnostics] = None) -> None:
        self.http = http
        self.diagnostics = diagnostics or NullDiagnostics()

    def finalize(self, transaction_reference: str) -> VersandResponse:
        ep = self.http.endpoints
        index_path = ep.versand_index_path(transaction_reference)
        self.http.get(index_path, referer=ep.flow_return_path)

        resp = self.http.post_empty(
            ep.versand_submit_path(transaction_reference),
            headers={
                "Accept": _JSON_ACCEPT,
                "Origin": ep.base_url,
                "Referer": ep.absolute(f"{ep.versand_path}/index.html"),
            },
        )
        self.diagnostics.save("versand.json", resp.text)

        try:
            result = VersandResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise FinalizationError(f"Dispatch endpoint returned an unreadable body: {e}") from e

        if result.status != VERSAND_SUCCESS:
            user_message = result.validation_result.user_message if result.validation_result else None
            raise FinalizationError(
                user_message or f"Dispatch failed with status {result.status or 'unknown'}",
                status=result.status,
            )

        logger.info("Dispatch confirmed: akz=%s drn=%s", result.akz, result.drn)
        return result

    def download_artifacts(self, transaction_reference: str) -> bytes:
        ep = self.http.endpoints
        resp = self.http.get(
            ep.versand_documents_path(transaction_reference),
            headers={"Accept": _JSON_ACCEPT},
            referer=f"{ep.versand_path}/index.html",
        )
        data = resp.content
        logger.info("Downloaded receipt archive (%d bytes)", len(data))
        return data


def unpack_archive(data: bytes) -> list[DownloadedDocument]:
    """
    Unpack the receipt archive. Document names are the archive entry names, directories included.

    A corrupt or non-ZIP payload (including a damaged deflate stream) yields no documents instead of an error.
    """
    docs: list[DownloadedDocument] = []
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as z:
            for info in z.infolist():
                if info.is_dir():
                    continue
                content_type = mimetypes.guess_type(info.filename)[0] or "application/octet-stream"
                docs.append(DownloadedDocument(filename=info.filename, content_type=content_type, data=z.read(info)))
    except (zipfile.BadZipFile, zlib.error, OSError, EOFError, RuntimeError, ValueError) as e:
        logger.warning("Could not unpack receipt archive (%d bytes): %s", len(data or b""), e)
        return []
    return docs


def safe_file_stem(aktenzeichen: str) -> str:
    return _UNSAFE_AKZ_RE.sub("_", aktenzeichen or "") or "unknown"


def save_archive(data: bytes, aktenzeichen: str, receipts_dir: Union[str, Path]) -> Path:
    out_dir = Path(receipts_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{safe_file_stem(aktenzeichen)}_documents.zip"
    path.write_bytes(data)
    logger.info("Saved receipt archive to %s", path)
    return path
