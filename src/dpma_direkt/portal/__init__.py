from .engine import WizardEngine, WizardState
from .session import SessionState
from .tokens import Tokens, extract_bootstrap_tokens, refresh_from_response

__all__ = [
    "WizardEngine",
    "WizardState",
    "SessionState",
    "Tokens",
    "extract_bootstrap_tokens",
    "refresh_from_response",
]
