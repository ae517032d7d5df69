import logging
from logging.handlers import RotatingFileHandler

from acadigo.config import Settings

_CONFIGURED = False


def setup_logging(settings: Settings) -> None:
    """Configure the ``acadigo`` logger tree once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger("acadigo")
    logger.setLevel(settings.log_level.upper())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(levelname)s [%(name)s]: %(message)s'
    ))
    logger.addHandler(console_handler)

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(settings.log_file, maxBytes=1024 * 1024, backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        logger.addHandler(file_handler)

    _CONFIGURED = True
