# api_server.py - FastAPI backend receiving license plates from the cameras
import re
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from DatabaseManagers.DataClasses import DetectionEvent
from DatabaseManagers.DetectionStore import DetectionStoreError
from SpeedEvaluators.SpeedEvaluator import SpeedEvaluator, Outcome
from Utils.Logger import get_logger

URLENCODED = "application/x-www-form-urlencoded"

# "%" must start a two digit hex escape; ";" is not a separator
_BAD_URLENCODED_RE = re.compile(rb"%(?![0-9A-Fa-f]{2})|;")

WELCOME_MESSAGE = "Welcome to the Kamerafyr server!"

# Outcomes answered with a fixed 400 body; the rest echo the submitted plate
OUTCOME_RESPONSES = {
    Outcome.DUPLICATE_REJECTED: {"error": "similar license plate already exists"},
    Outcome.MALFORMED_TIMESTAMP: {"error": "invalid timestamp format"},
    Outcome.SPEEDING: {"message": "license plate is speeding"},
    Outcome.NOT_SPEEDING: {"message": "license plate is not speeding"},
}


# Pydantic model for the camera form
class LicensePlateForm(BaseModel):
    plate: str = ""
    timestamp: str = ""
    hostname: str = ""

    def to_event(self) -> DetectionEvent:
        return DetectionEvent(plate=self.plate, timestamp=self.timestamp, source=self.hostname)


async def _check_urlencoded(request: Request):
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type != URLENCODED:
        return
    body = await request.body()
    bad = _BAD_URLENCODED_RE.search(body)
    if bad is not None:
        raise ValueError(f"invalid form encoding at offset {bad.start()}")


def _remote_addr(request: Request) -> str:
    if request.client is None:
        return "unknown"
    return f"{request.client.host}:{request.client.port}"


def create_app(evaluator: SpeedEvaluator, logger=None) -> FastAPI:
    """Build the HTTP app around an evaluator and its store"""
    logger = logger or get_logger(__name__)

    app = FastAPI(title="Kamerafyr Server", version="1.0.0")
    app.state.evaluator = evaluator

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"received request method={request.method} path={request.url.path} "
                    f"remote_addr={_remote_addr(request)}")
        return await call_next(request)

    @app.get("/")
    async def root():
        return {"message": WELCOME_MESSAGE}

    @app.get("/health")
    async def health_check():
        try:
            stored = await run_in_threadpool(evaluator.store.count)
        except DetectionStoreError as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(status_code=503, content={"error": "database unavailable"})
        return {
            "status": "healthy",
            "database": "connected",
            "stored_sightings": stored,
        }

    @app.post("/licenseplate")
    async def license_plate(request: Request):
        try:
            await _check_urlencoded(request)
            form = await request.form()
            submitted = LicensePlateForm(
                plate=form.get("plate", ""),
                timestamp=form.get("timestamp", ""),
                hostname=form.get("hostname") or form.get("source") or "",
            )
        except Exception as e:
            logger.error(f"could not parse form method={request.method} path={request.url.path} "
                         f"remote_addr={_remote_addr(request)} error={e}")
            return JSONResponse(status_code=400, content={"error": "could not parse form"})

        candidate = submitted.to_event()
        try:
            result = await run_in_threadpool(evaluator.evaluate, candidate)
        except DetectionStoreError as e:
            logger.error(f"could not process license plate plate={candidate.plate} error={e}")
            return JSONResponse(status_code=500, content={"error": "could not process license plate"})

        if result.outcome in OUTCOME_RESPONSES:
            return JSONResponse(status_code=400, content=OUTCOME_RESPONSES[result.outcome])

        return JSONResponse(status_code=200, content=submitted.model_dump())

    return app
