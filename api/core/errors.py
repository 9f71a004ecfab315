"""
Error and warning reporting helpers.

Callers build the message; this module only decides how it is written out.
Every report carries a short context line and a help line for operators.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


# Configuration failures are explicit and separable from other runtime errors.
class ConfigError(RuntimeError):
    def __init__(self, message: str, *, context: str | None = None, help: str | None = None):
        super().__init__(message)
        self.context = context
        self.help = help


def log_error(err: BaseException | str, context: str | None = None, help: str | None = None) -> None:
    message = str(err)
    logger.error("error=%s", message)
    if context:
        logger.error("context=%s", context)
    if help:
        logger.error("help=%s", help)


def log_warn(text: str, explanation: str | None = None, help: str | None = None) -> None:
    logger.warning("warning=%s", text)
    if explanation:
        logger.warning("explanation=%s", explanation)
    if help:
        logger.warning("help=%s", help)
