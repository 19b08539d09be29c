from __future__ import annotations

import logging
from pathlib import PurePosixPath

from .channel import WizardChannel
from .session import SessionState


logger = logging.getLogger(__name__)

UPLOAD_CONTENT_TYPE = "image/jpeg"


def normalize_upload_name(file_name: str) -> str:
    """The upload widget only accepts JPEG names; anything else is renamed to `<stem>.jpg`."""
    name = PurePosixPath((file_name or "").replace("\\", "/")).name or "trademark.jpg"
    if name.lower().endswith((".jpg", ".jpeg")):
        return name
    stem = name.rsplit(".", 1)[0] if "." in name else name
    return f"{stem or 'trademark'}.jpg"


class UploadSubprotocol:
    """
    Attach the mark image: open the attachment dialog, transfer the file, resynchronize tokens.
    """

    def __init__(self, channel: WizardChannel) -> None:
        self.channel = channel

    def upload(self, session: SessionState, data: bytes, mime_type: str, file_name: str) -> SessionState:
        s = self.channel.selectors
        http = self.channel.http

        self.channel.round_trip(
            session,
            source=s.upload_dialog_button,
            execute="@all",
            render="@all",
            fields={s.upload_dialog_button: s.upload_dialog_button, s.view_item_index: "0"},
            label="upload_dialog",
        )

        name = normalize_upload_name(file_name)
        if mime_type and mime_type.lower() not in ("image/jpeg", "image/jpg"):
            logger.info("Uploading %s (%s) as %s", file_name, mime_type, UPLOAD_CONTENT_TYPE)

        fields = {
            s.upload_component: s.upload_component,
            s.upload_screen_size_field: s.upload_screen_size,
        }
        fields.update(session.tokens.as_fields(s))
        path = http.endpoints.upload_path(session.current_window)
        resp = http.post_multipart(
            path,
            fields,
            {s.upload_file_field: (name, data, UPLOAD_CONTENT_TYPE)},
            referer=self.channel.form_path(session),
        )
        text = resp.text
        self.channel.diagnostics.save("upload", text)

        if 300 <= resp.status_code < 400:
            logger.warning("Upload of %s was redirected to %s; continuing", name, resp.headers.get("location"))
        elif any(marker in text for marker in s.upload_failure_markers):
            logger.warning("Upload response for %s contains a failure marker; continuing", name)
        else:
            logger.info("Uploaded %s (%d bytes)", name, len(data))

        session.absorb(text)
        return session
