"""
server.py - HTTP surface for the operator UI, Twilio and the voice assistant.

Endpoints:
    POST  /upload                 Replace all bookings from an uploaded spreadsheet
    GET   /records                All bookings
    POST  /process                Run one scheduling pass now
    POST  /callStatus             Twilio status callback
    GET   /booking                Booking lookup tool (?phone= or X-Identity header)
    POST  /saveVReg               VRN capture tool
    PATCH /records/{booking_id}   Inline edit from the operator table
    GET   /export                 Download all bookings as CSV
    GET   /health                 Health check

Start server:
    uvicorn server:app --reload --port 4000
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Union

from fastapi import Body, FastAPI, File, Header, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import reconciler
import state_store
from eligibility import local_today
from errors import BadRequest, BookingError
from export import EXPORT_FILENAME, records_to_csv
from ingest import parse_spreadsheet
from phones import phone_from_identity
from scheduler import run_scheduling_pass

config.setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="VRN Recovery Caller")


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    return JSONResponse({"error": "; ".join(problems) or "Invalid request"}, status_code=400)


# ── Request schemas ───────────────────────────────────────────────────────────

# Tool payloads come from an LLM, so numbers may arrive unquoted.
ToolValue = Optional[Union[str, int, float]]


class SaveVRegRequest(BaseModel):
    phone: ToolValue = None
    phone_number: ToolValue = None
    vReg: ToolValue = None
    v_reg: ToolValue = None


def _text(value) -> str:
    return "" if value is None else str(value)


# ── Operator routes ───────────────────────────────────────────────────────────

@app.post("/upload")
def upload(file: Optional[UploadFile] = File(None)):
    if file is None:
        raise BadRequest("No file uploaded")

    content = file.file.read()
    today = local_today(datetime.now(timezone.utc))
    records = parse_spreadsheet(file.filename or "", content, today)
    state_store.replace_all(records)
    logger.info("Loaded %d bookings from %s", len(records), file.filename)
    return {"success": True, "count": len(records)}


@app.get("/records")
def get_records():
    return state_store.all_records()


@app.post("/process")
def process():
    """Called by the "Process & Call" button."""
    return run_scheduling_pass().to_response()


@app.patch("/records/{booking_id}")
def patch_record(booking_id: str, updates: Any = Body(...)):
    updated = reconciler.update_record(booking_id, updates)
    return {"ok": True, "updated": updated}


@app.get("/export")
def export():
    csv_text = records_to_csv(state_store.all_records())
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


# ── Twilio status callback ────────────────────────────────────────────────────

@app.post("/callStatus")
async def call_status(request: Request):
    """
    Twilio posts here whenever a call changes state (queued, ringing,
    in-progress, completed, busy, no-answer, ...). Twilio only needs an
    acknowledgement, so unknown numbers still get a 200.
    """
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise BadRequest("Malformed JSON body") from None
        if not isinstance(payload, dict):
            raise BadRequest("Status payload must be an object")
    else:
        payload = await request.form()

    to = _text(payload.get("To")).strip()
    if not to:
        raise BadRequest("Missing To")
    await run_in_threadpool(reconciler.apply_status_update, to, _text(payload.get("CallStatus")))
    return Response(status_code=200)


# ── Voice assistant tools ─────────────────────────────────────────────────────

@app.get("/booking")
def get_booking(phone: Optional[str] = None, x_identity: Optional[str] = Header(None)):
    phone = phone or phone_from_identity(x_identity)
    return reconciler.find_booking(phone)


@app.post("/saveVReg")
def save_vreg(req: Optional[SaveVRegRequest] = Body(None), x_identity: Optional[str] = Header(None)):
    req = req or SaveVRegRequest()
    phone = _text(req.phone or req.phone_number) or phone_from_identity(x_identity)
    vreg = _text(req.vReg or req.v_reg)
    reconciler.save_vreg(phone, vreg)
    return {"ok": True}


@app.get("/health")
def health():
    return {"status": "ok", "server": config.SERVER_BASE_URL}


class FrontendFiles(StaticFiles):
    """Static files that answer unknown paths with index.html, for client-side routes."""

    async def get_response(self, path: str, scope):
        try:
            response = await super().get_response(path, scope)
        except StarletteHTTPException as e:
            if e.status_code != 404:
                raise
            return await super().get_response("index.html", scope)
        if response.status_code == 404:
            return await super().get_response("index.html", scope)
        return response


# The built operator UI, when present, is served from the root.
if os.path.isdir(config.STATIC_DIR):
    app.mount("/", FrontendFiles(directory=config.STATIC_DIR, html=True), name="frontend")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=config.PORT, reload=True)
