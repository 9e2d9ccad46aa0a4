"""Main FastAPI application module.

This module initializes the FastAPI application, installs the error envelope
handlers and registers all route handlers.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes import auth, chat, documents, invitations, roles, schools
from api.routes import session_logs, settings, students
from config import API_HOST, API_PORT, CORS_ALLOWED_ORIGINS
from core.database import init_db
from core.exceptions import LearnAbleError
from core.logging_config import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Error kinds for HTTP errors raised by FastAPI itself (404 route, 405, ...)
_STATUS_ERRORS = {
    400: "BadRequest",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    405: "BadRequest",
    409: "Conflict",
    410: "Expired",
    429: "RateLimited",
}

# Initialize FastAPI application
app = FastAPI(
    title="LearnAble API",
    description="Backend API for school onboarding, AI tutoring and usage analytics.",
    version="1.0.0",
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=CORS_ALLOWED_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


@app.exception_handler(LearnAbleError)
async def learnable_error_handler(request: Request, exc: LearnAbleError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.error, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = _STATUS_ERRORS.get(exc.status_code, "InternalError")
    return _error_response(exc.status_code, error, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return _error_response(400, "BadRequest", details or "Invalid request")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "InternalError", "An unexpected error occurred")


# Register route handlers
app.include_router(auth.router)
app.include_router(schools.router)
app.include_router(invitations.router)
app.include_router(students.router)
app.include_router(roles.router)
app.include_router(chat.router)
app.include_router(documents.router)
app.include_router(session_logs.router)
app.include_router(settings.router)


@app.on_event("startup")
def startup_tasks() -> None:
    """Create missing tables."""
    init_db()


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """Return API information and documentation links."""
    return {
        "name": "LearnAble API",
        "version": "1.0.0",
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok".
    """
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    print(f"Starting LearnAble API at {server_url}")
    print(f"API docs: {server_url}/docs")
    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
