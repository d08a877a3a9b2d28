# main.py
import logging
import threading

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool

from backend.app import ingest, utils
from backend.app.schemas import HealthResponse, IngestResponse
from backend.app.table import Table

utils.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=ingest.API_NAME, version=ingest.API_VERSION)

_table = None
# one request's rows stay contiguous and in order
_append_lock = threading.Lock()


def get_table() -> Table:
    global _table
    if _table is None:
        _table = utils.open_table()
    return _table


@app.on_event("startup")
def startup_event():
    # Open the workbook once at startup (get_table will also lazy-open if missing)
    get_table()
    logger.info("Table opened at API startup: %s", utils.table_path())


def _ingest_serialized(body: bytes, table: Table) -> IngestResponse:
    with _append_lock:
        return ingest.handle_ingest(body, table)


@app.post("/", response_model=IngestResponse, response_model_exclude_none=True)
async def ingest_logs(request: Request, table: Table = Depends(get_table)):
    # raw body, so an empty body and invalid JSON stay distinguishable
    body = await request.body()
    return await run_in_threadpool(_ingest_serialized, body, table)


@app.get("/", response_model=HealthResponse, response_model_exclude_none=True)
@app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
def health_check():
    return ingest.handle_health_check()
