import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import AUTO_CREATE, init_db
from .errors import (
    BookingNotFound,
    ConflictError,
    InvariantError,
    StoreConflictError,
    StoreError,
    ValidationError,
)
from .publisher import publisher
from .routes import router
from .schemas import ConflictResponse

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("scheduling_service")

app = FastAPI(title="Scheduling Service")
app.include_router(router)


@app.exception_handler(ValidationError)
async def validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(BookingNotFound)
async def not_found(request: Request, exc: BookingNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict(request: Request, exc: ConflictError):
    body = ConflictResponse(detail=str(exc), booking_ids=exc.booking_ids, conflicts=exc.conflicts)
    return JSONResponse(status_code=409, content=body.model_dump(mode="json"))


@app.exception_handler(InvariantError)
async def invariant_error(request: Request, exc: InvariantError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error(request: Request, exc: StoreError):
    if isinstance(exc, StoreConflictError):
        return JSONResponse(status_code=409, content={"detail": str(exc), "booking_ids": [], "conflicts": []})
    logger.error("booking store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Booking store unavailable"})


@app.get("/health")
async def health():
    return {"status": "ok", "service": "scheduling-service", "events_enabled": publisher.enabled}


@app.on_event("startup")
async def startup():
    if AUTO_CREATE:
        await init_db()
    try:
        await publisher.connect()
    except Exception as e:
        logger.warning("RabbitMQ connect failed at startup; continuing: %s", e)


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    except Exception as e:
        logger.warning("RabbitMQ close failed: %s", e)
