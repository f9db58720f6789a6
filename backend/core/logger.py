"""
Logging setup for the API process.

Library modules only call logging.getLogger(__name__); handlers and
levels are configured once here.
"""

import logging

_DEF_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure(level: str = "INFO") -> None:
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_DEF_FORMAT,
    )
    _configured = True
