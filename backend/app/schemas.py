from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    EMPTY_BODY = "empty_body"
    MALFORMED_SHAPE = "malformed_shape"
    ROW_APPEND_FAILURE = "row_append_failure"
    UNHANDLED_FAILURE = "unhandled_failure"


class LogRecord(BaseModel):
    """One element of the `logs` array. Values are kept as sent and coerced to text later."""

    model_config = ConfigDict(extra="ignore")

    uid: Any = None
    timestamp: Any = None
    latitude: Any = None
    longitude: Any = None
    address: Any = None
    city: Any = None
    user_name: Any = None
    user_class: Any = None
    device_info: Any = None


class IngestResponse(BaseModel):
    status: str
    message: str
    count: Optional[int] = None
    total: Optional[int] = None
    stack: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    message: str
    version: Optional[str] = None
    timestamp: Optional[str] = None
