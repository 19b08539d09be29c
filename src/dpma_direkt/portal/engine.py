from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence

from ..errors import BootstrapError, StepFailedError
from ..models import TrademarkRegistrationRequest
from ..terms import TermCatalog
from .channel import WizardChannel
from .resolver import UNVERIFIED_HEADER_FALLBACKS, ClassificationResolver, HeaderFallback
from .session import SessionState
from .steps import STEP_TYPES, StepContext, WizardStep
from .tokens import extract_bootstrap_tokens, extract_window_id, extract_window_id_from_body
from .upload import UploadSubprotocol


logger = logging.getLogger(__name__)

_REDIRECT_STATUSES = (301, 302, 303, 307, 308)


class WizardState(Enum):
    STEP_1 = 1
    STEP_2 = 2
    STEP_3 = 3
    STEP_4 = 4
    STEP_5 = 5
    STEP_6 = 6
    STEP_7 = 7
    STEP_8 = 8
    FINALIZED = "finalized"
    FAILED = "failed"


class WizardEngine:
    """
    Sequential state machine over the eight wizard steps.

    One forward transition per step and no retries: the first failing step moves the engine to FAILED and
    raises StepFailedError carrying the step index; the session's step cursor then still points at the last
    accepted step.
    """

    def __init__(
        self,
        channel: WizardChannel,
        *,
        term_catalog: Optional[TermCatalog] = None,
        header_fallbacks: Sequence[HeaderFallback] = UNVERIFIED_HEADER_FALLBACKS,
        step_types: Sequence[type[WizardStep]] = STEP_TYPES,
    ) -> None:
        self.channel = channel
        self.ctx = StepContext(
            channel=channel,
            resolver=ClassificationResolver(channel, header_fallbacks=header_fallbacks),
            uploader=UploadSubprotocol(channel),
            term_catalog=term_catalog,
        )
        self.steps: list[WizardStep] = [cls(self.ctx) for cls in step_types]
        self.state = WizardState.STEP_1
        self.failure: Optional[StepFailedError] = None

    @property
    def warnings(self) -> list[str]:
        return self.ctx.warnings

    def bootstrap(self) -> SessionState:
        """
        Open a fresh wizard session: landing page, flow start (redirect carries the window id), first form page.
        """
        http = self.channel.http
        ep = http.endpoints

        http.get(ep.index_path)
        start = http.get(ep.start_path, referer=ep.index_path)

        window_id: Optional[str] = None
        location = start.headers.get("location") or ""
        if start.status_code in _REDIRECT_STATUSES and location:
            window_id = extract_window_id(location)
            http.get(location, referer=ep.start_path)
        if not window_id:
            window_id = extract_window_id_from_body(start.text)
        if not window_id:
            raise BootstrapError(f"No window id in {ep.start_path} response (HTTP {start.status_code})")

        base_id = window_id.split(":", 1)[0]
        wid_param = self.channel.selectors.window_id_param
        page = http.get(ep.form_path(window_id), referer=f"{ep.start_path}?{wid_param}={window_id}")
        self.channel.diagnostics.save("bootstrap", page.text)

        tokens = extract_bootstrap_tokens(page.text, fallback_window_id=window_id, session_base_id=base_id)
        session = SessionState(window_id=base_id, tokens=tokens, last_response_body=page.text)
        logger.info("Wizard session opened (window %s)", base_id)
        return session

    def run(self, request: TrademarkRegistrationRequest, session: Optional[SessionState] = None) -> SessionState:
        if session is None:
            session = self.bootstrap()

        for step in self.steps:
            self.state = WizardState(step.index)
            logger.info("Step %d/%d: %s", step.index, len(self.steps), step.name)
            try:
                session = step.execute(request, session)
            except Exception as e:
                self.state = WizardState.FAILED
                self.failure = StepFailedError(step.index, e)
                logger.error("Step %d (%s) failed: %s", step.index, step.name, e)
                raise self.failure from e
            session.advance()

        self.state = WizardState.FINALIZED
        return session
