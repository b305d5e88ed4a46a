"""Logging Hardening and Redaction.

Keeps AEAD envelope fields, bearer credentials, opaque cart/auth tokens and
CSRF tokens out of application logs.
"""
import logging
import re

SECRET_PATTERNS = [
    (re.compile(r'("iv":\s*")[0-9a-f]{24,32}(")'), r'\1[REDACTED]\2'),
    (re.compile(r'("tag":\s*")[0-9a-f]{32}(")'), r'\1[REDACTED]\2'),
    (re.compile(r'("ciphertext":\s*")[0-9a-f]+(")'), r'\1[REDACTED]\2'),
    (re.compile(r"('iv':\s*')[0-9a-f]{24,32}(')"), r'\1[REDACTED]\2'),
    (re.compile(r"('tag':\s*')[0-9a-f]{32}(')"), r'\1[REDACTED]\2'),
    (re.compile(r"('ciphertext':\s*')[0-9a-f]+(')"), r'\1[REDACTED]\2'),
    (re.compile(r'\biv=[0-9a-f]{24,32}'), 'iv=[REDACTED]'),
    (re.compile(r'\btag=[0-9a-f]{32}'), 'tag=[REDACTED]'),
    (re.compile(r'(Bearer\s+)[A-Za-z0-9._~+/=-]+'), r'\1[REDACTED]'),
    # Opaque cart ids and auth tokens are base64url
    (re.compile(r'\bcart_[A-Za-z0-9_-]{16,}'), 'cart_[REDACTED]'),
    (re.compile(r'(token=)[A-Za-z0-9_%.-]{16,}'), r'\1[REDACTED]'),
    # CSRF: "<ms timestamp>.<64 hex>"
    (re.compile(r'\b\d{13}\.[0-9a-f]{64}\b'), '[REDACTED_CSRF]'),
]


def redact(text: str) -> str:
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Filter that redacts secret-like patterns from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not isinstance(record.msg, str):
            return True

        record.msg = redact(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)

        return True


def setup_logging_redaction() -> None:
    """Apply the SecretRedactionFilter to all existing loggers."""
    redact_filter = SecretRedactionFilter()

    root_logger = logging.getLogger()

    # Avoid stacking duplicates on repeated setup
    for f in root_logger.filters[:]:
        if isinstance(f, SecretRedactionFilter):
            root_logger.removeFilter(f)

    root_logger.addFilter(redact_filter)

    # Filters on the root logger do not run for records from child loggers
    for name in logging.root.manager.loggerDict:
        logger = logging.getLogger(name)
        for f in logger.filters[:]:
            if isinstance(f, SecretRedactionFilter):
                logger.removeFilter(f)
        logger.addFilter(redact_filter)

    logging.info("Logging redaction filters active.")
