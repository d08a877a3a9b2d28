# backend/app/table.py
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill

logger = logging.getLogger(__name__)

HEADERS = [
    "UID",
    "Timestamp",
    "Latitude",
    "Longitude",
    "Address",
    "City",
    "User Name",
    "User Class",
    "Device Info",
]

HEADER_BOLD = True
HEADER_BACKGROUND = "#4285f4"
HEADER_FOREGROUND = "#ffffff"


class Table(Protocol):
    """Append-only grid store. Rows and columns are 1-based, like a spreadsheet."""

    def append_row(self, cells: Sequence[str]) -> None: ...

    def get_cell_value(self, row: int, col: int) -> str: ...

    def get_column_count(self) -> int: ...

    def set_header_row(
        self,
        cells: Sequence[str],
        bold: bool,
        background: str,
        foreground: str,
        start_column: int = 1,
    ) -> None: ...


# ---------------- In-memory store ----------------
class MemoryTable:
    def __init__(self, rows: Optional[List[List[str]]] = None):
        self.rows: List[List[str]] = [list(r) for r in rows] if rows else []
        # column -> {"bold", "background", "foreground"}
        self.header_styles: Dict[int, dict] = {}

    def append_row(self, cells: Sequence[str]) -> None:
        self.rows.append([str(c) for c in cells])

    def get_cell_value(self, row: int, col: int) -> str:
        if row < 1 or row > len(self.rows):
            return ""
        cells = self.rows[row - 1]
        if col < 1 or col > len(cells):
            return ""
        return cells[col - 1]

    def get_column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def set_header_row(self, cells, bold, background, foreground, start_column=1) -> None:
        if not self.rows:
            self.rows.append([])
        header = self.rows[0]
        end = start_column - 1 + len(cells)
        if len(header) < end:
            header.extend([""] * (end - len(header)))
        for offset, value in enumerate(cells):
            col = start_column + offset
            header[col - 1] = str(value)
            self.header_styles[col] = {"bold": bold, "background": background, "foreground": foreground}


# ---------------- Workbook (.xlsx) store ----------------
def _argb(color: str) -> str:
    return color.lstrip("#").upper()


class WorkbookTable:
    """
    One worksheet of an .xlsx workbook, saved to disk after every write.
    The file and the sheet are created on first use if missing.
    """

    def __init__(self, path, sheet_name: str = "Logs"):
        self.path = Path(path)
        self.sheet_name = sheet_name
        self._lock = threading.RLock()

        if self.path.exists():
            self.workbook = load_workbook(self.path)
            if sheet_name in self.workbook.sheetnames:
                self.sheet = self.workbook[sheet_name]
            else:
                self.sheet = self.workbook.create_sheet(sheet_name)
        else:
            self.workbook = Workbook()
            self.sheet = self.workbook.active
            self.sheet.title = sheet_name

        self._row_count = self._last_used_row()
        logger.info("Opened table %s[%s] with %d rows", self.path, sheet_name, self._row_count)

    def _last_used_row(self) -> int:
        # blank rows stay in the sheet as empty cells, so max_row counts them
        sheet = self.sheet
        if sheet.max_row == 1 and sheet.max_column == 1 and sheet.cell(row=1, column=1).value is None:
            return 0
        return sheet.max_row

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.workbook.save(self.path)

    def append_row(self, cells: Sequence[str]) -> None:
        with self._lock:
            row = self._row_count + 1
            for col, value in enumerate(cells, start=1):
                cell = self.sheet.cell(row=row, column=col, value=str(value))
                # logged text is never a formula
                cell.data_type = "s"
            self._save()
            self._row_count = row

    def get_cell_value(self, row: int, col: int) -> str:
        with self._lock:
            if row < 1 or col < 1 or row > self._row_count:
                return ""
            value = self.sheet.cell(row=row, column=col).value
            return "" if value is None else str(value)

    def get_column_count(self) -> int:
        with self._lock:
            last = 0
            for values in self.sheet.iter_rows(min_row=1, max_row=max(self._row_count, 1), values_only=True):
                for idx, v in enumerate(values, start=1):
                    if v not in (None, ""):
                        last = max(last, idx)
            return last

    def set_header_row(self, cells, bold, background, foreground, start_column=1) -> None:
        font = Font(bold=bold, color=_argb(foreground))
        fill = PatternFill(fill_type="solid", start_color=_argb(background), end_color=_argb(background))
        with self._lock:
            for offset, value in enumerate(cells):
                cell = self.sheet.cell(row=1, column=start_column + offset, value=str(value))
                cell.font = font
                cell.fill = fill
            self._save()
            self._row_count = max(self._row_count, 1)


# ---------------- Maintenance ----------------
def initialize_table(table: Table) -> bool:
    """Write the formatted header row once. Returns False if the table already has a first cell."""
    if table.get_cell_value(1, 1) != "":
        logger.info("Table already has data. Skipping initialization.")
        return False

    table.set_header_row(HEADERS, HEADER_BOLD, HEADER_BACKGROUND, HEADER_FOREGROUND)
    logger.info("Table initialized with %d-column headers", len(HEADERS))
    return True


def reconcile_columns(table: Table) -> List[str]:
    """Append the trailing header names an older table is missing. Returns the names added."""
    current = table.get_column_count()
    logger.info("Current columns: %d", current)

    if current >= len(HEADERS):
        logger.info("Table already has all %d columns", len(HEADERS))
        return []

    missing = HEADERS[current:]
    table.set_header_row(missing, HEADER_BOLD, HEADER_BACKGROUND, HEADER_FOREGROUND, start_column=current + 1)
    logger.info("Added missing columns: %s", ", ".join(missing))
    return missing
