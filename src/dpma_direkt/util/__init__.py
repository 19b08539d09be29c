from .dates import parse_timestamp
from .debug_bundle import create_debug_bundle

__all__ = ["parse_timestamp", "create_debug_bundle"]
