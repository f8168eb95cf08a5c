# grammaton/logger.py

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import colorlog


def setup_grammaton_logger(
    log_level=logging.INFO,
    log_to_file=False,
    log_to_console=True,
    log_file="~/.grammaton/grammaton.log",
    max_bytes=5 * 1024 * 1024,
    backup_count=5,
    use_color=True
):
    logger = logging.getLogger("grammaton")
    logger.setLevel(log_level)

    # Clear existing handlers if rerun
    if logger.hasHandlers():
        logger.handlers.clear()

    if log_to_console:
        # Diagnostics go to stderr; stdout may carry the automaton itself
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(log_level)
        if use_color:
            ch.setFormatter(colorlog.ColoredFormatter(
                fmt="%(log_color)s[%(levelname)s]%(reset)s %(name)s - %(message)s",
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "bold_red",
                },
            ))
        else:
            ch.setFormatter(logging.Formatter("[%(levelname)s] %(name)s - %(message)s"))
        logger.addHandler(ch)

    # file handler (rotating)
    if log_to_file:
        log_file = os.path.expanduser(log_file)
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        fh.setLevel(log_level)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(fh)

    logger.debug("Grammaton logger configured. log_to_file: %s, color: %s", log_to_file, use_color)
    return logger
