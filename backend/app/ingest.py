# backend/app/ingest.py
import json
import logging
import math
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional, Tuple, Union

from .schemas import ErrorKind, HealthResponse, IngestResponse, LogRecord
from .table import Table

logger = logging.getLogger(__name__)

API_NAME = "NFC Field Logger Sync API"
API_VERSION = "2.0"

# cell order of a stored row
ROW_FIELDS = [
    "uid",
    "timestamp",
    "latitude",
    "longitude",
    "address",
    "city",
    "user_name",
    "user_class",
    "device_info",
]

ERROR_MESSAGES = {
    ErrorKind.EMPTY_BODY: "No data received",
    ErrorKind.MALFORMED_SHAPE: "No logs provided or logs is not an array",
}


@dataclass
class RowError:
    index: int
    message: str
    kind: ErrorKind = ErrorKind.ROW_APPEND_FAILURE


@dataclass
class AppendSummary:
    count: int = 0
    errors: List[RowError] = field(default_factory=list)


# ---------------- Row building ----------------
def _format_number(value: float) -> str:
    """Shortest round-trip text of a float, laid out like a JavaScript number (12.5, -7, 1e+21, 1e-7)."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    dec = Decimal(repr(abs(value))).normalize()
    _, digit_tuple, exponent = dec.as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    # decimal point sits after the first n digits
    n = exponent + k

    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * (-n) + digits
    e = n - 1
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"


def coerce_field(value: Any) -> str:
    """
    Text form of one log field.
    None -> "", 0 and False stay present ("0", "false"), floats render like JavaScript numbers.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def build_row(element: Any) -> List[str]:
    """
    Map one `logs` element to the 9 text cells.
    Scalars and arrays carry none of the named fields and give an all-empty row; a null element raises.
    """
    if element is None:
        raise TypeError("Cannot read fields of null log element")
    record = LogRecord.model_validate(element) if isinstance(element, dict) else LogRecord()
    return [coerce_field(getattr(record, name)) for name in ROW_FIELDS]


# ---------------- Validation ----------------
def check_body(body: Optional[Union[bytes, str]]) -> Optional[ErrorKind]:
    if not body:
        return ErrorKind.EMPTY_BODY
    return None


def extract_logs(data: Any) -> Tuple[Optional[list], Optional[ErrorKind]]:
    """Read `logs` from the parsed body. A null body has no fields to read and raises."""
    if data is None:
        raise TypeError("Cannot read 'logs' of null")
    logs = data.get("logs") if isinstance(data, dict) else None
    if not isinstance(logs, list) or len(logs) == 0:
        return None, ErrorKind.MALFORMED_SHAPE
    return logs, None


def append_rows(table: Table, logs: list) -> AppendSummary:
    """Append every element in order; a failing row is recorded and skipped."""
    summary = AppendSummary()
    for index, element in enumerate(logs):
        try:
            row = build_row(element)
            table.append_row(row)
        except Exception as e:
            logger.warning("Error adding row %d: %s", index + 1, e)
            summary.errors.append(RowError(index=index, message=str(e)))
            continue
        summary.count += 1
        logger.debug("Added row %d: %s", index + 1, row)
    return summary


# ---------------- Operations ----------------
def _error_response(kind: ErrorKind) -> IngestResponse:
    return IngestResponse(status="error", message=ERROR_MESSAGES[kind])


def _unhandled_response(exc: Exception) -> IngestResponse:
    kind = ErrorKind.UNHANDLED_FAILURE
    logger.exception("Error in ingest (%s)", kind.value, extra={"error_kind": kind.value})
    return IngestResponse(
        status="error",
        message=f"{type(exc).__name__}: {exc}",
        stack=traceback.format_exc(),
    )


def handle_ingest(body: Optional[Union[bytes, str]], table: Table) -> IngestResponse:
    """
    Validate a raw request body and append its logs to `table`.
    Always returns a response object; nothing escapes to the transport.
    """
    try:
        logger.info("Received POST request")

        error = check_body(body)
        if error is not None:
            logger.info("No body found")
            return _error_response(error)

        text = body.decode("utf-8") if isinstance(body, bytes) else body
        data = json.loads(text)

        logs, error = extract_logs(data)
        if error is not None:
            logger.info("No logs in data")
            return _error_response(error)

        logger.info("Processing %d logs", len(logs))
        summary = append_rows(table, logs)
        logger.info("Successfully added %d of %d rows", summary.count, len(logs))

        return IngestResponse(
            status="success",
            message="Data saved successfully",
            count=summary.count,
            total=len(logs),
        )
    except Exception as e:
        return _unhandled_response(e)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def handle_health_check() -> HealthResponse:
    try:
        logger.info("Received GET request")
        return HealthResponse(
            status="success",
            message=f"{API_NAME} is running",
            version=API_VERSION,
            timestamp=_now_iso(),
        )
    except Exception as e:
        return HealthResponse(status="error", message=str(e))
