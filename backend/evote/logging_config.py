import logging
from logging.handlers import RotatingFileHandler

from evote.core.settings import Settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach handlers to the ``evote`` logger once per process."""
    logger = logging.getLogger("evote")
    logger.setLevel(settings.log_level.upper())

    # Prevent duplicate handlers when several apps are built (tests)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if settings.log_file:
        # Rotating file handler: max 5 MB per file, keep 3 backups
        file_handler = RotatingFileHandler(settings.log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
