import logging
import logging.config


def configure_logging(level: str = "INFO") -> None:
    """Install the console handler for the ``turbofy`` logger hierarchy."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "turbofy": {"handlers": ["console"], "level": level.upper(), "propagate": False},
        },
    })
