"""
Logging Configuration

Configures stdlib logging from settings and attaches a redacting filter so
secrets that slip into a log record never reach a handler.
"""
import logging
from typing import Optional

from sso_proxy.core.config import Settings, get_settings
from sso_proxy.core.redaction import sanitize_message


class RedactingFilter(logging.Filter):
    """
    Rewrites each record through sanitize_message.

    Tracebacks are rendered here and cached in exc_text, so handlers never
    format the raw exception themselves. stack_info is scrubbed too.
    """

    _formatter = logging.Formatter()

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = None
        if message is not None:
            record.msg = sanitize_message(message)
            record.args = None
        if record.exc_info:
            record.exc_text = self._formatter.formatException(record.exc_info)
            record.exc_info = None
        if record.exc_text:
            record.exc_text = sanitize_message(record.exc_text)
        if record.stack_info:
            record.stack_info = sanitize_message(record.stack_info)
        return True


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure the root logger once from LOG_LEVEL / LOG_FORMAT.

    Safe to call repeatedly; the redacting filter is attached to every root
    handler that does not already have one.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())
