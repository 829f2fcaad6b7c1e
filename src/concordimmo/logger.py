"""
Configuration de la journalisation ConcordImmo.

Les modules journalisent via logging.getLogger(__name__) sous l'espace
« concordimmo » ; l'application hôte appelle configure_logging une fois.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOGGER_NAME = "concordimmo"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    *,
    enable_console: bool = True,
) -> logging.Logger:
    """
    Configure le logger du paquet (console et/ou fichier journalier).

    Args:
        level: DEBUG, INFO, WARNING, ERROR, CRITICAL.
        log_dir: Dossier des fichiers de log ; None = pas de fichier.
        enable_console: Écrire sur la sortie standard.

    Returns:
        Le logger « concordimmo ».
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"concordimmo_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def reset_logging() -> None:
    """Retire les handlers du logger du paquet (utile pour les tests)."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
