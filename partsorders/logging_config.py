"""
Logging setup shared by every module of the service.

Console output always (Docker-compatible), plus a file when LOG_FILE is set.
"""
import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "").strip()
LOG_FORMAT = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"


def setup_logging():
    """
    Configure the root logger once per process.

    Reduces verbosity of SQLAlchemy and uvicorn access logs so request
    handling and order events stay readable.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE))

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, handlers=handlers)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name):
    return logging.getLogger(name)
