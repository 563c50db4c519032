# epubkit/src/epubkit/main.py
"""
Point d'entrée principal pour epubkit
Configure le logging puis lance le mode ligne de commande
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from .config import (
    DEFAULT_VERSION,
    LOG_BACKUP_COUNT,
    LOG_DIR,
    LOG_ENCODING,
    LOG_MAX_BYTES,
    SUPPORTED_VERSIONS,
    ensure_directories,
)

USAGE = """Usage: python -m epubkit <file.epub> [--convert OUT] [--version 2.0|3.0]
  file.epub: Fichier EPUB à lire
  --convert OUT: Réécrit le livre dans le fichier OUT
  --version: Version EPUB du fichier écrit (défaut: {default})"""


def setup_logging():
    """Configure le système de logging."""
    ensure_directories()
    logger = logging.getLogger("epubkit")
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    # Handler pour fichier avec rotation
    logfile = os.path.join(LOG_DIR, "epubkit.log")
    handler = RotatingFileHandler(
        logfile, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding=LOG_ENCODING
    )
    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Handler pour console
    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    return logger


def _option_value(args: List[str], option: str) -> Optional[str]:
    if option not in args:
        return None
    index = args.index(option)
    if index + 1 >= len(args):
        raise ValueError(f"Option {option} requires a value")
    return args[index + 1]


def run_cli(args: Optional[List[str]] = None) -> int:
    """Lance le mode ligne de commande."""
    logger = logging.getLogger("epubkit")
    args = list(sys.argv[1:] if args is None else args)

    if not args or args[0].startswith("--"):
        print(USAGE.format(default=DEFAULT_VERSION))
        return 1

    epub_path = args[0]
    try:
        output = _option_value(args, "--convert")
        version = _option_value(args, "--version") or DEFAULT_VERSION
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if version not in SUPPORTED_VERSIONS:
        print(f"Error: unsupported EPUB version {version}")
        return 1
    if not os.path.isfile(epub_path):
        print(f"Error: {epub_path} is not a file")
        return 1

    logger.info("Starting epubkit CLI on %s", epub_path)
    try:
        from .cli import cli_convert_book, cli_read_book, print_book_summary

        book, read_errors = cli_read_book(epub_path)
        print_book_summary(book, read_errors)
        if output:
            write_errors = cli_convert_book(book, output, version)
            print(f"\nÉcrit: {output} (EPUB {version}, {len(write_errors)} erreur(s))")
        return 0
    except Exception as e:
        logger.exception("Error in CLI mode")
        print(f"Error: {e}")
        return 1


def main(args: Optional[List[str]] = None) -> int:
    """Point d'entrée principal."""
    setup_logging()
    return run_cli(args)


if __name__ == "__main__":
    raise SystemExit(main())
