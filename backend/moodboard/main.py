"""Moodboard backend FastAPI application.

Mounts the moodboard, images, files and health routers under /api, one
request-logging middleware (loguru), Prometheus request metrics and the
exception handlers that give every error the same JSON envelope.

Run (locally):
    uvicorn moodboard.main:app --reload
"""

import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import moodboard, images, files
from .api import health as health_api
from .models import create_db
from .services.errors import ServiceError
from .settings import settings

app = FastAPI(title="Moodboard Backend", version="1.0.0")

# Structured logging (loguru)
logger.add(settings.LOG_FILE, rotation="5 MB", retention="7 days", enqueue=True, serialize=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials="*" not in settings.ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
)

app.include_router(moodboard.router, prefix="/api")
app.include_router(images.router, prefix="/api")
app.include_router(files.router, prefix="/api")
app.include_router(health_api.router, prefix="/api")


@app.on_event("startup")
def _startup():  # pragma: no cover - simple init
    create_db()


@app.get("/health")
async def health():
    return {"status": "ok"}


def _error_body(message: str, errors: dict | None = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


@app.exception_handler(ServiceError)
async def _service_error(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.errors))


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors.setdefault(".".join(loc) or "request", []).append(err.get("msg", "Invalid value"))
    return JSONResponse(status_code=422, content=_error_body("Validation failed", errors))


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)), headers=exc.headers)


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception):
    logger.exception({"type": "unhandled", "path": request.url.path, "error": str(exc)})
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


REQUEST_COUNT = Counter('mb_requests_total', 'Total HTTP requests', ['method', 'path', 'status'])
REQUEST_LATENCY = Histogram('mb_request_latency_seconds', 'Request latency', ['method', 'path'])


UNMATCHED_PATH = "unmatched"


def _route_path(request: Request) -> str:
    # label by route template, never by raw path
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_PATH


@app.middleware("http")
async def _metrics_mw(request, call_next):  # pragma: no cover simple metrics
    start = time.time()
    response = await call_next(request)
    path = _route_path(request)
    REQUEST_COUNT.labels(request.method, path, response.status_code).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(time.time() - start)
    return response


@app.middleware("http")
async def _logging_mw(request, call_next):
    rid = request.headers.get('X-Request-ID') or uuid.uuid4().hex
    start = time.time()
    logger.info({"type": "request", "id": rid, "method": request.method, "path": request.url.path})
    try:
        resp = await call_next(request)
    except Exception as e:
        logger.error({"type": "error", "id": rid, "error": str(e)})
        raise
    dur = (time.time() - start) * 1000
    resp.headers['X-Request-ID'] = rid
    logger.info({"type": "response", "id": rid, "status": resp.status_code, "ms": round(dur, 2)})
    return resp


@app.get('/metrics')
def metrics():  # plaintext Prometheus exposition
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
