from .logging import configure_logging
from .timestamps import now_unix, unix_to_iso

__all__ = ["configure_logging", "now_unix", "unix_to_iso"]
