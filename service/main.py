from __future__ import annotations

import hmac
import json
import logging
import os
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config.settings import load_dotenv
from service import db
from service.models import ExportRunRequest, RunCreateResponse, RunStatusResponse
from service.runner import create_run, start_run_thread, utc_now_iso


logger = logging.getLogger("product_type_export")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")


SERVICE_VERSION = "0.1.0"
DEBUG = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")


def _get_api_token() -> str:
    token = os.getenv("API_TOKEN", "").strip()
    if not token:
        raise RuntimeError("API_TOKEN is required")
    return token


def _auth_required(authorization: Optional[str] = Header(None)) -> None:
    token = _get_api_token()
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    provided = authorization.split(" ", 1)[1].strip()
    if not hmac.compare_digest(provided, token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


app = FastAPI(title="Product Type Export", version=SERVICE_VERSION)


@app.on_event("startup")
def _startup() -> None:
    load_dotenv(".env")
    db.init_db()
    db.mark_incomplete_runs_failed(now_iso=utc_now_iso())
    _get_api_token()


@app.exception_handler(RequestValidationError)
def _validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "type": "ValidationError",
                "message": "Invalid request body",
                "details": json.loads(json.dumps(exc.errors(), default=str)),
            }
        },
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "service": "product-type-export", "version": SERVICE_VERSION}


@app.post("/exports", status_code=202, response_model=RunCreateResponse)
def start_export(req: ExportRunRequest, _auth: Any = Depends(_auth_required)) -> RunCreateResponse:
    run = create_run(req)
    run_id = run["run_id"]
    start_run_thread(run_id)
    return RunCreateResponse(
        run_id=run_id,
        status=run["status"],
        created_at=run["created_at"],
        links={"status": f"/exports/{run_id}"},
    )


@app.get("/exports/{run_id}", response_model=RunStatusResponse)
def get_export(run_id: str, _auth: Any = Depends(_auth_required)) -> RunStatusResponse:
    run = db.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    error = run["error"]
    if error and not DEBUG:
        error = {k: error.get(k) for k in ("type", "message", "trace_id")}
    return RunStatusResponse(
        run_id=run["run_id"],
        status=run["status"],
        created_at=run["created_at"],
        updated_at=run["updated_at"],
        summary=run["summary"],
        error=error,
    )
