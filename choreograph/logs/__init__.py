import logging
from pathlib import Path

from choreograph.logs.server_log import LOG_FORMAT, add_file_handler, api_logger
from choreograph.logs.debug_log import debug_logger, log_function


def configure_logging(log_dir, debug: bool = False) -> None:
    """Attach file handlers and pick the debug level; called once at startup"""
    log_dir = Path(log_dir)
    debug_logger.set_level(logging.DEBUG if debug else logging.INFO)
    add_file_handler(api_logger, log_dir / "api_requests.log", logging.Formatter(LOG_FORMAT))
    add_file_handler(debug_logger.logger, log_dir / "debug.log", debug_logger.formatter)
