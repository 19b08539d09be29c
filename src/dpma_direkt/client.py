from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

import httpx

from .config import AppConfig, PortalConfig
from .errors import StepFailedError, WizardError
from .fees import calculate_fees, payment_info
from .models import RegistrationFailure, RegistrationResult, RegistrationSuccess, TrademarkRegistrationRequest
from .portal.channel import WizardChannel
from .portal.diagnostics import Diagnostics, DirectoryDiagnostics, NullDiagnostics
from .portal.engine import WizardEngine
from .portal.http import DEFAULT_USER_AGENT, PortalEndpoints, PortalHttpClient
from .portal.resolver import UNVERIFIED_HEADER_FALLBACKS, HeaderFallback
from .portal.versand import VersandService, save_archive, unpack_archive
from .terms import TermCatalog, load_term_catalog
from .util.dates import parse_timestamp
from .validation import validate_request


logger = logging.getLogger(__name__)


class DpmaClient:
    """
    Files a trademark application through DPMAdirektWeb.

    Every `register()` call is an independent attempt with its own HTTP client, cookie jar and session; the
    client object itself can be reused. `register()` never raises: all failures come back as
    RegistrationFailure.
    """

    def __init__(
        self,
        *,
        portal: Optional[PortalConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        term_catalog: Optional[TermCatalog] = None,
        debug_dir: Optional[str] = None,
        receipts_dir: Optional[str] = None,
        header_fallbacks: Sequence[HeaderFallback] = UNVERIFIED_HEADER_FALLBACKS,
    ) -> None:
        self.portal = portal or PortalConfig()
        self.transport = transport
        self.term_catalog = term_catalog
        self.debug_dir = debug_dir
        self.receipts_dir = receipts_dir
        self.header_fallbacks = tuple(header_fallbacks)

    @classmethod
    def from_config(cls, cfg: AppConfig, *, transport: Optional[httpx.BaseTransport] = None) -> "DpmaClient":
        catalog = load_term_catalog(cfg.terms.catalog_path) if cfg.terms.catalog_path else None
        return cls(
            portal=cfg.portal,
            transport=transport,
            term_catalog=catalog,
            debug_dir=cfg.debug.dir if cfg.debug.enabled else None,
            receipts_dir=cfg.receipts.dir if cfg.receipts.save_archive else None,
        )

    def _endpoints(self) -> PortalEndpoints:
        p = self.portal
        return PortalEndpoints(
            base_url=p.base_url,
            editor_path=p.editor_path,
            versand_path=p.versand_path,
            flow_id=p.flow_id,
        )

    def _new_http(self) -> PortalHttpClient:
        return PortalHttpClient(
            endpoints=self._endpoints(),
            timeout_seconds=self.portal.timeout_seconds,
            user_agent=self.portal.user_agent or DEFAULT_USER_AGENT,
            transport=self.transport,
        )

    def _diagnostics(self) -> Diagnostics:
        if self.debug_dir:
            return DirectoryDiagnostics(self.debug_dir)
        return NullDiagnostics()

    def register(self, request: Union[TrademarkRegistrationRequest, Mapping[str, Any]]) -> RegistrationResult:
        checked = validate_request(request)
        if not checked.valid or checked.request is None:
            return RegistrationFailure(error_code="VALIDATION_ERROR", error_message=checked.summary())

        try:
            return self._register(checked.request)
        except StepFailedError as e:
            return RegistrationFailure(
                error_code=e.code,
                error_message=str(e.cause),
                failed_at_step=e.step_index,
                warnings=list(e.warnings),
            )
        except WizardError as e:
            logger.error("Registration failed (%s): %s", e.code, e)
            return RegistrationFailure(
                error_code=e.code,
                error_message=str(e),
                warnings=list(e.warnings),
            )
        except Exception as e:
            logger.exception("Unexpected error during registration")
            return RegistrationFailure(error_code="UNKNOWN_ERROR", error_message=str(e) or e.__class__.__name__)

    def _register(self, request: TrademarkRegistrationRequest) -> RegistrationSuccess:
        diagnostics = self._diagnostics()

        with self._new_http() as http:
            channel = WizardChannel(http, diagnostics=diagnostics)
            engine = WizardEngine(channel, term_catalog=self.term_catalog, header_fallbacks=self.header_fallbacks)
            try:
                session = engine.run(request)
                reference = session.transaction_reference or ""

                versand = VersandService(http, diagnostics=diagnostics)
                confirmation = versand.finalize(reference)
            except WizardError as e:
                e.warnings = list(engine.warnings)
                raise

            warnings = list(engine.warnings)
            archive: Optional[bytes] = None
            try:
                archive = versand.download_artifacts(reference)
            except WizardError as e:
                # already filed; report the missing archive as a warning
                msg = f"Receipt archive download failed: {e}"
                logger.warning(msg)
                warnings.append(msg)

        akz = confirmation.akz
        documents = unpack_archive(archive) if archive else []
        receipt_path: Optional[Path] = None
        if archive and self.receipts_dir:
            try:
                receipt_path = save_archive(archive, akz, self.receipts_dir)
            except OSError as e:
                msg = f"Could not save receipt archive: {e}"
                logger.warning(msg)
                warnings.append(msg)

        fees = calculate_fees(request)
        result = RegistrationSuccess(
            aktenzeichen=akz,
            drn=confirmation.drn,
            transaction_id=confirmation.transaction_id or reference,
            submission_time=confirmation.creation_time,
            submitted_at=parse_timestamp(confirmation.creation_time),
            fees=fees,
            payment=payment_info(request.payment_method, fees, akz),
            receipt_documents=documents,
            archive_bytes=archive,
            receipt_file_path=str(receipt_path) if receipt_path else None,
            warnings=warnings,
        )
        logger.info("Trademark application filed: Aktenzeichen %s (%d document(s))", akz, len(documents))
        return result
