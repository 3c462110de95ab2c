"""
Logging configuration with credential redaction.
"""

import logging
import os
from typing import Optional

from dualauth.utils.error_sanitizer import redact_text

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RedactingFilter(logging.Filter):
    """Mask tokens and emails in every record passing through a handler."""

    def __init__(self, redact_emails: bool = True):
        super().__init__()
        self.redact_emails = redact_emails

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        record.msg = redact_text(message, redact_emails=self.redact_emails)
        record.args = None
        return True


def setup_logging(level: Optional[str] = None, redact_emails: bool = True) -> None:
    """Configure root logging for the CLI and library consumers."""
    log_level = (level or os.getenv("DUALAUTH_LOG_LEVEL", "INFO")).upper()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=DEFAULT_FORMAT,
    )

    redacting = RedactingFilter(redact_emails=redact_emails)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redacting)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

