import logging
import os
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_PREFIX = "checkin_"


def log_file_path(log_dir: str, day: Optional[datetime] = None) -> str:
    """logs/checkin_YYYY-MM-DD.log"""
    day = day or datetime.now()
    return os.path.join(log_dir, f"{LOG_FILE_PREFIX}{day.strftime('%Y-%m-%d')}.log")


def setup_logging(log_dir: str, level: int = logging.INFO) -> str:
    """
    Sends application logs to the console and to a dated file under log_dir.

    Args:
        log_dir: directory for log files (created if missing)
        level: root log level

    Returns:
        str: path of the log file in use
    """
    os.makedirs(log_dir, exist_ok=True)
    path = log_file_path(log_dir)

    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "baseFilename", None) == os.path.abspath(path) for h in root.handlers):
        root.addHandler(file_handler)
    else:
        file_handler.close()
    return path
