from __future__ import annotations

from typing import Optional


class WizardError(RuntimeError):
    """
    Base class for everything that can go wrong while driving the filing wizard.

    Each subclass carries a stable `code` so callers can branch on the failure kind
    without parsing messages.
    """

    code: str = "WIZARD_ERROR"

    def __init__(self, message: str = "", *, code: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code
        self.warnings: list[str] = []


class TransportError(WizardError):
    """Network failure, timeout, or an HTTP status outside 200-399."""

    code = "TRANSPORT_ERROR"

    def __init__(self, message: str = "", *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BootstrapError(WizardError):
    """The start page did not hand out a window id (neither via redirect nor in the body)."""

    code = "BOOTSTRAP_FAILED"


class MissingViewStateError(WizardError):
    code = "MISSING_VIEW_STATE"


class MissingWindowIdError(WizardError):
    code = "MISSING_WINDOW_ID"


class ServerErrorPage(WizardError):
    """
    The server answered a round trip with its error page (or a 500 status marker embedded in a 200).
    """

    code = "SERVER_ERROR_PAGE"

    def __init__(self, message: str = "", *, server_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.server_message = server_message


class TransactionReferenceMissingError(WizardError):
    """The final submission neither redirected nor embedded a transaction reference."""

    code = "TRANSACTION_REFERENCE_MISSING"


class FinalizationError(WizardError):
    """The dispatch endpoint did not confirm the transaction."""

    code = "VERSAND_FAILED"

    def __init__(self, message: str = "", *, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class StepFailedError(WizardError):
    """
    A wizard step failed. Wraps the underlying error together with the 1-based step index.
    """

    def __init__(self, step_index: int, cause: BaseException) -> None:
        code = getattr(cause, "code", None) or "STEP_FAILED"
        super().__init__(f"Step {step_index} failed: {cause}", code=code)
        self.step_index = step_index
        self.cause = cause
