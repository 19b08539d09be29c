from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from .models import TrademarkRegistrationRequest


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass
class ValidationResult:
    valid: bool
    errors: list[FieldError] = field(default_factory=list)
    request: Optional[TrademarkRegistrationRequest] = None

    def summary(self) -> str:
        return "; ".join(f"{e.field}: {e.message}" if e.field else e.message for e in self.errors)


def _loc_to_path(loc: tuple[Union[str, int], ...]) -> str:
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        elif item in ("natural", "legal", "word", "figurative", "combined", "3d"):
            # discriminated-union branch tag, not part of the request path
            continue
        else:
            parts.append(("." if parts else "") + str(item))
    return "".join(parts)


def errors_from_exception(exc: ValidationError) -> list[FieldError]:
    out: list[FieldError] = []
    for err in exc.errors():
        msg = str(err.get("msg") or "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append(FieldError(field=_loc_to_path(tuple(err.get("loc") or ())), message=msg))
    return out


def validate_request(payload: Union[Mapping[str, Any], TrademarkRegistrationRequest]) -> ValidationResult:
    """
    Shape-check a registration request before any network traffic.

    Accepts the camelCase JSON form or snake_case field names.
    """
    if isinstance(payload, TrademarkRegistrationRequest):
        return ValidationResult(valid=True, request=payload)
    try:
        request = TrademarkRegistrationRequest.model_validate(payload)
    except ValidationError as e:
        return ValidationResult(valid=False, errors=errors_from_exception(e))
    return ValidationResult(valid=True, request=request)
