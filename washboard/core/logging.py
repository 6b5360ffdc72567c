import logging
import re

from washboard.core.config import settings
from washboard.core.request_context import request_id_ctx_var

_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{128}")
QUIET_LOGGERS = ("passlib", "multipart")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx_var.get()
        return True


class TokenScrubFilter(logging.Filter):
    """Masks anything shaped like a magic link token before it is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = _TOKEN_RE.sub("[token]", message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def setup_logging(level: str | None = None) -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.addFilter(TokenScrubFilter())
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s request_id=%(request_id)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root_logger.setLevel((level or settings.log_level).upper())
    root_logger.addHandler(handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
