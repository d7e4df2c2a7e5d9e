# sahara backend api
# fastapi app for youth wellness: diary with ai insights, chat, speech-to-text, text-to-speech

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sahara.config import settings
from sahara.errors import InternalError, ValidationError, WellnessError
from sahara.services.container import build_services
from sahara.services.db import db
from sahara.routers import chat, diary, resources, stt, tts

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """startup: connect mongodb, build services, start analysis workers. shutdown: reverse."""
    logger.info("Starting Sahara backend...")
    await db.connect()

    services = build_services(settings, db)
    services.audio.ensure_dirs()
    services.audio.cleanup_old_files(settings.TTS_FILE_MAX_AGE_HOURS)
    services.pipeline.queue.start()
    app.state.services = services
    logger.info("Sahara backend ready")

    yield

    logger.info("Shutting down Sahara backend...")
    await services.pipeline.queue.stop()
    await db.close()


app = FastAPI(
    title="Sahara API",
    description="Backend API for the Sahara youth wellness platform: diary insights, supportive chat, speech-to-text and text-to-speech",
    version="1.0.0",
    lifespan=lifespan,
)

# cors - allow frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# error rendering - every failure leaves as {"error": label, "detail": message}

def _error_response(error: WellnessError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.error, "detail": error.message},
    )


@app.exception_handler(WellnessError)
async def wellness_error_handler(request: Request, exc: WellnessError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.message}")
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return _error_response(ValidationError(details or "Invalid request"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return _error_response(InternalError("Something went wrong!"))


# register routers
app.include_router(diary.router)
app.include_router(chat.router)
app.include_router(stt.router)
app.include_router(tts.router)
app.include_router(resources.router)


@app.get("/health")
async def health_check():
    """basic health check endpoint"""
    return {"status": "OK", "service": "sahara-api"}


@app.get("/api/status")
async def api_status():
    return {"message": "Sahara API is running", "version": app.version}
