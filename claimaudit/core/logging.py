import logging
import logging.config
import re

REVIEW_TEXT_PATTERNS = [
    re.compile(r"(?i)(comment\s*[=:]\s*)([^,\n]+)"),
    re.compile(r"(?i)((?:special|detailed)_findings\s*[=:]\s*)(\{[^}]*\})"),
]


class ReviewTextFilter(logging.Filter):
    """Keep free-text review content out of log output."""

    def _sanitize(self, value: object) -> object:
        if not isinstance(value, str):
            return value

        redacted = value
        for pattern in REVIEW_TEXT_PATTERNS:
            redacted = pattern.sub(r"\1[REDACTED]", redacted)
        return redacted

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._sanitize(record.msg)

        if isinstance(record.args, tuple):
            record.args = tuple(self._sanitize(item) for item in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self._sanitize(value) for key, value in record.args.items()}

        return True


def setup_logging() -> None:
    from claimaudit.core.settings import get_settings

    settings = get_settings()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "review_text": {
                    "()": "claimaudit.core.logging.ReviewTextFilter",
                }
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["review_text"],
                }
            },
            "loggers": {
                "": {
                    "handlers": ["console"],
                    "level": settings.log_level.upper(),
                },
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": "WARNING",
                    "propagate": False,
                },
            },
        }
    )
