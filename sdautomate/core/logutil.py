# -*- coding: utf-8 -*-
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER = "sdautomate"
VERBOSE_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
PLAIN_FMT = "%(message)s"


def setup_logging(verbose: bool = False, log_file: str = "", stream=None) -> logging.Logger:
    """
    Configure the package logger once. Console output is the bare message
    unless verbose, in which case records are timestamped and DEBUG shows.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for h in list(logger.handlers):  # reconfigure instead of stacking handlers
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    ch = logging.StreamHandler(stream or sys.stdout)
    ch.setFormatter(logging.Formatter(VERBOSE_FMT if verbose else PLAIN_FMT))
    logger.addHandler(ch)

    if log_file:
        p = Path(log_file)
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(p, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
        fh.setFormatter(logging.Formatter(VERBOSE_FMT))
        logger.addHandler(fh)
    return logger


def get_logger(name: str = "") -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)
