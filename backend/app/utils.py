# utils.py
import logging
import os
from pathlib import Path

from .table import WorkbookTable

# data directory (backend/data)
DATA_DIR = Path(__file__).resolve().parent.parent / "data"

TABLE_PATH = os.environ.get("NFC_SYNC_TABLE_PATH", str(DATA_DIR / "field_logs.xlsx"))
SHEET_NAME = os.environ.get("NFC_SYNC_SHEET_NAME", "Logs")
LOG_LEVEL = os.environ.get("NFC_SYNC_LOG_LEVEL", "INFO")
API_URL = os.environ.get("NFC_SYNC_API_URL", "http://127.0.0.1:8000/")


def table_path() -> Path:
    return Path(TABLE_PATH)


def configure_logging(level: str = LOG_LEVEL):
    """Install the root handler once; later calls are no-ops."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def open_table():
    """Open the configured workbook table (created on first write)."""
    return WorkbookTable(table_path(), SHEET_NAME)
