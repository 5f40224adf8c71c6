from __future__ import annotations

import logging
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the configured log level to the tokenacl logger hierarchy."""
    if level is None:
        from tokenacl.core.settings import get_settings

        level = get_settings().runtime.log_level
    logging.basicConfig(format=_FORMAT)
    logging.getLogger("tokenacl").setLevel(level.upper())
