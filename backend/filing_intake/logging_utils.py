import logging
import re

SSN_PATTERN = re.compile(r"\b\d{3}-?\d{2}-?(\d{4})\b")
SENSITIVE_KEY_PATTERN = re.compile(r"(ssn|password|token|api_key)(['\"]?\s*[:=]\s*['\"]?)([^'\",\s}]+)", re.IGNORECASE)


def redact(message: str) -> str:
    """Mask SSNs and sensitive key/value pairs in a log message."""
    message = SSN_PATTERN.sub(r"***-**-\1", message)
    return SENSITIVE_KEY_PATTERN.sub(r"\1\2[REDACTED]", message)


class RedactingFilter(logging.Filter):
    """Logging filter that rewrites records so SSNs and secrets never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
    redacting_filter = RedactingFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redacting_filter)
