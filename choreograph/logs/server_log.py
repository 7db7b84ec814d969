import logging
import sys
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


# Request summaries and server errors; console at import, file once the app starts
def setup_logging():
    logger = logging.getLogger("api_logger")
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)

    return logger


def add_file_handler(logger: logging.Logger, path: Path, formatter: logging.Formatter) -> None:
    """Attach a file handler once; calling twice with the same path is a no-op"""
    path = path.resolve()
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path:
            return

    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logger.level)
    logger.addHandler(file_handler)


api_logger = setup_logging()
