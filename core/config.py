from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Tuple


DATA_DIR = Path(os.getenv("DASHBOARD_DATA_DIR", str(Path(__file__).resolve().parents[1])))
DEFAULT_RANGE = os.getenv("DASHBOARD_DEFAULT_RANGE", "A1:Z1000")

SAMPLE_MODE_THRESHOLD = 100
ZOOM_THRESHOLD = 200
ALL_ROWS_WARNING = 500
DEFAULT_SAMPLE_SIZE = 100
SAMPLE_SIZE_CHOICES: Tuple[int, ...] = (50, 100, 200, 500)

LAYOUT_ROW_CAP = 100
CANVAS_WIDTH = 400
CANVAS_HEIGHT = 300
CANVAS_PADDING = 10

TABLE_PAGE_SIZE = 25

TOKEN_TTL_SECONDS = int(os.getenv("DASHBOARD_TOKEN_TTL", str(7 * 24 * 3600)))
PASSWORD_MIN_LENGTH = 6

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "DASHBOARD_CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8501",
    ).split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("DASHBOARD_LOG_LEVEL", "INFO")

_logging_configured = False


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging once; later calls are no-ops."""
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _logging_configured = True
