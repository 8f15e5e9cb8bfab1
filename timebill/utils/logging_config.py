"""Process-wide logging setup."""

import logging
import sys

from config import settings


def configure_logging(debug: bool = None) -> None:
    """Configure root logging to stdout, DEBUG when settings.debug is on."""
    if debug is None:
        debug = settings.debug

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
