from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .tokens import Tokens, refresh_from_response


@dataclass
class SessionState:
    """
    Mutable state of one registration attempt.

    Created once at bootstrap and owned by the engine driving that attempt; never shared across attempts.
    """

    window_id: str
    tokens: Tokens
    step_cursor: int = 0
    last_response_body: str = ""
    transaction_reference: Optional[str] = None

    @property
    def current_window(self) -> str:
        # The window token carries the counter suffix; fall back to the base id before the first refresh.
        return self.tokens.window_id or self.window_id

    def absorb(self, body: str) -> None:
        """Refresh tokens from a response body and remember it as the latest response."""
        self.tokens = refresh_from_response(body, self.tokens)
        self.last_response_body = body

    def advance(self) -> int:
        self.step_cursor += 1
        return self.step_cursor

    def set_transaction_reference(self, reference: str) -> None:
        if self.transaction_reference is not None:
            raise ValueError("transaction reference is already set for this session")
        if not reference:
            raise ValueError("transaction reference must not be empty")
        self.transaction_reference = reference
