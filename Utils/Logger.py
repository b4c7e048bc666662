import logging
import os
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def get_logger(name: str, level: str = None, log_file: Optional[str] = None) -> logging.Logger:
    """Return a logger writing to the console and, optionally, to a file"""
    log_file = log_file or os.getenv("KAMERAFYR_SERVER_LOG_FILE")

    logger = logging.getLogger(name)
    if level is not None or not logger.handlers:
        level = level or os.getenv("KAMERAFYR_SERVER_LOG_LEVEL", "INFO")
        logger.setLevel(level.upper())

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
