"""Pytest configuration.

This file is automatically loaded by pytest and sets up:
1. ``src`` on sys.path so tests run without an editable install
2. Loading of .env file
3. Logging configuration with third-party library suppression
"""

import os
import sys
from pathlib import Path

# tests/conftest.py -> tests -> project_root
_project_root = Path(__file__).resolve().parent.parent
_src_root = _project_root / "src"
if str(_src_root) not in sys.path:
    sys.path.insert(0, str(_src_root))

from dotenv import load_dotenv

_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from deep_citation.core.logging_setup import setup_logging

_log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
setup_logging(log_level=_log_level, log_format="text")
