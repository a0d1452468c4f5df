#!/usr/bin/env python
"""
Django management utility for the back office (agreements, invoices, receipts).
"""

import os
import sys
import logging
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

# ------------------------------------------------------------------------------
# Logging
# ------------------------------------------------------------------------------
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# Paths & .env loading
# ------------------------------------------------------------------------------
# manage.py lives in .../backend; .env sits next to it
BASE_DIR = Path(__file__).resolve().parent

explicit_env = BASE_DIR / ".env"
loaded = False
if explicit_env.exists():
    load_dotenv(dotenv_path=explicit_env, override=True)
    loaded = True
else:
    discovered = find_dotenv(filename=".env", usecwd=True)
    if discovered:
        load_dotenv(discovered, override=True)
        loaded = True


def _maybe_log_env_status():
    debug = os.environ.get("DEBUG", "False").lower() in ("1", "true", "t", "yes", "y")
    if not loaded and debug:
        logger.warning("No .env file found at expected path: %s", explicit_env)


# ------------------------------------------------------------------------------
# Main
# ------------------------------------------------------------------------------
def main():
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")
    _maybe_log_env_status()

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        logger.error("Django import error: %s", exc)
        raise

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
