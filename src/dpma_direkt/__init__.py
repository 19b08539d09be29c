from .client import DpmaClient
from .models import RegistrationFailure, RegistrationSuccess, TrademarkRegistrationRequest

__all__ = ["DpmaClient", "RegistrationFailure", "RegistrationSuccess", "TrademarkRegistrationRequest"]
