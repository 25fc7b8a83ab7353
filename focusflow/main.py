# focusflow/main.py
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.endpoints import analyze, events
from .config import get_settings
from .core.logging import setup_logging

settings = get_settings()
setup_logging(settings.log_level, settings.log_format)

logger = logging.getLogger(__name__)

app = FastAPI(title="Focus Flow AI Backend", version="1.0.0")

# The extension calls from chrome-extension:// origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with timing and status code."""
    request_id = str(uuid.uuid4())
    start_time = time.time()

    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"Request failed: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "duration_ms": round(duration_ms, 2),
            },
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": str(e) or "internal_error", "request_id": request_id},
        )

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


# Include routers
app.include_router(analyze.router)
app.include_router(events.router)

@app.get("/")
async def root():
    return {"message": "Focus Flow AI Backend", "version": "1.0.0"}

@app.get("/health")
async def health():
    return {
        "ok": True,
        "service": "focus-flow-ai-backend",
        "model": settings.gemini_model,
        "hasGeminiKey": bool(settings.gemini_api_key),
        "hasGroqKey": bool(settings.groq_api_key),
        "groqModel": settings.groq_model,
        "logFile": str(settings.events_file),
    }
