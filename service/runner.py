from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from config.settings import Settings
from ctp.client import CommercetoolsClient
from export.product_type_export import ProductTypeExport

from service import db
from service.models import ExportRunRequest


logger = logging.getLogger("product_type_export")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _update_run(run_id: str, **fields: Any) -> None:
    db.update_run(run_id, utc_now_iso(), **fields)


def create_run(params: ExportRunRequest) -> Dict[str, Any]:
    run_id = str(uuid.uuid4())
    db.insert_run(run_id, params.dict(), now_iso=utc_now_iso())
    run = db.get_run(run_id)
    if run is None:
        raise RuntimeError(f"Run {run_id} was not stored")
    return run


def start_run_thread(run_id: str) -> None:
    t = threading.Thread(target=_run_job, args=(run_id,), daemon=True)
    t.start()


def _build_exporter(params: ExportRunRequest) -> Tuple[ProductTypeExport, CommercetoolsClient]:
    config = params.export_config()
    settings = Settings.from_env(project_key=params.project_key)
    client = CommercetoolsClient(settings=settings)
    return ProductTypeExport(client=client, config=config), client


def _run_job(run_id: str) -> None:
    run = db.get_run(run_id)
    if run is None:
        logger.warning("Unknown run: %s", run_id)
        return
    params = ExportRunRequest.parse_obj(run["params"])
    _update_run(run_id, status="running", started=True)

    try:
        exporter, client = _build_exporter(params)
    except Exception as exc:
        trace_id = f"err-{run_id[:8]}"
        logger.exception("Run could not start: run_id=%s trace_id=%s", run_id, trace_id)
        error = {"type": type(exc).__name__, "message": str(exc), "trace_id": trace_id}
        _update_run(run_id, status="failed", error=error)
        return

    try:
        summary = exporter.run()
    finally:
        client.close()

    status = "failed" if summary["errors"] else "finished"
    _update_run(run_id, status=status, summary=summary)
