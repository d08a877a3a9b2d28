# backend/app/cli.py
import argparse
import sys
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd
import requests

from backend.app import utils
from backend.app.table import initialize_table, reconcile_columns


def read_logs(input_path: Path) -> pd.DataFrame:
    """Read a CSV file or a JSON-lines file of log records."""
    suffix = input_path.suffix.lower()
    if suffix == ".csv":
        # keep cells as written (leading zeros in UIDs, exact coordinates)
        return pd.read_csv(input_path, dtype=str, keep_default_na=False)
    elif suffix in (".json", ".jsonl"):
        return pd.read_json(input_path, lines=True, dtype=False)
    raise ValueError("Input file must be CSV or JSON")


def sanitize_df_for_json(df: pd.DataFrame) -> List[dict]:
    """
    Replace inf / NaN with None and convert numpy scalars to python scalars.
    Returns records safe for json.dumps.
    """
    df2 = df.copy(deep=True)
    df2 = df2.replace([np.inf, -np.inf], np.nan)
    df2 = df2.astype(object).where(pd.notnull(df2), None)
    records = df2.to_dict(orient="records")
    return [
        {k: (v.item() if isinstance(v, np.generic) else v) for k, v in rec.items()}
        for rec in records
    ]


def try_call_api_json(records: List[dict], api_url: str = utils.API_URL, timeout=60):
    """
    POST {"logs": [...]} to the sync API.
    Returns (success_bool, response_json_or_error_str).
    """
    try:
        resp = requests.post(api_url, json={"logs": records}, timeout=timeout)
    except requests.RequestException as e:
        return False, f"Request failed: {e}"
    if resp.status_code != 200:
        return False, f"API error {resp.status_code}: {resp.text}"
    try:
        body = resp.json()
    except ValueError as e:
        return False, f"Failed to parse API JSON: {e}"
    return body.get("status") == "success", body


def push(input_file: str, api_url: str, batch_size: int) -> int:
    records = sanitize_df_for_json(read_logs(Path(input_file)))
    if not records:
        print("No records found in", input_file)
        return 1

    failed = 0
    for start in range(0, len(records), batch_size):
        batch = records[start:start + batch_size]
        ok, result = try_call_api_json(batch, api_url)
        if ok:
            print(f"✅ Batch {start // batch_size + 1}: saved {result['count']}/{result['total']} rows")
            failed += result["total"] - result["count"]
        else:
            message = result.get("message") if isinstance(result, dict) else result
            print(f"❌ Batch {start // batch_size + 1}: {message}")
            failed += len(batch)
    return 0 if failed == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Maintain the field log table and push logs to the sync API"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-table", help="Write the header row if the table is empty")
    sub.add_parser("reconcile-columns", help="Add header columns missing from an older table")

    p_push = sub.add_parser("push", help="Send a CSV or JSON-lines file of logs to the API")
    p_push.add_argument("input_file", type=str, help="Path to input file (CSV or JSON)")
    p_push.add_argument("--url", default=utils.API_URL, help=f"API URL (default: {utils.API_URL})")
    p_push.add_argument("--batch-size", type=int, default=100, help="Logs per request (default: 100)")

    p_serve = sub.add_parser("serve", help="Run the API with uvicorn")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=8000)
    return parser


def run_cli(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    utils.configure_logging()

    if args.command == "init-table":
        table = utils.open_table()
        if initialize_table(table):
            print(f"✅ Headers written to {utils.table_path()}")
        else:
            print("Table already has data. Skipping initialization.")
        return 0

    if args.command == "reconcile-columns":
        added = reconcile_columns(utils.open_table())
        if added:
            print("✅ Added missing columns:", ", ".join(added))
        else:
            print("Table already has all columns")
        return 0

    if args.command == "push":
        if args.batch_size < 1:
            parser.error("--batch-size must be at least 1")
        return push(args.input_file, args.url, args.batch_size)

    import uvicorn

    uvicorn.run("backend.app.main:app", host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(run_cli())
