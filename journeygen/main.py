import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import init_db, async_session_maker
from .errors import GenerationError, JourneyError, PersistenceFailure
from .routers import clients, journals, knowledge
from .settings.config import settings
from .users import get_or_create_admin

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="JourneyGen")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Update for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(clients.router)
app.include_router(knowledge.router)
app.include_router(journals.router)


# -----------------------------------------------------
# Every error leaves as {"error": "..."}
# -----------------------------------------------------
def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@app.exception_handler(JourneyError)
async def _journey_error_handler(request: Request, exc: JourneyError):
    if isinstance(exc, (GenerationError, PersistenceFailure)):
        # diagnostics stay server-side
        logger.error(
            "%s on %s %s: %s | detail=%r",
            type(exc).__name__, request.method, request.url.path, exc.message, exc.detail,
        )
        if getattr(exc, "raw", None):
            logger.error("Full generation output: %s", exc.raw)
        return _error(exc.status_code, exc.public_message)
    headers = {"WWW-Authenticate": "Basic"} if exc.status_code == 401 else None
    return _error(exc.status_code, exc.message, headers)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    field = None
    if errors:
        loc = [str(p) for p in errors[0].get("loc", ()) if p not in ("body", "query", "path", "header", "form")]
        field = ".".join(loc) or None
    message = f'Missing or invalid "{field}".' if field else "Invalid request."
    return _error(400, message)


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(SQLAlchemyError)
async def _persistence_handler(request: Request, exc: SQLAlchemyError):
    return await _journey_error_handler(request, PersistenceFailure(str(exc), detail=type(exc).__name__))


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "Server error.")


# ----------------------
# Seed admin owner row
# ----------------------
async def create_admin_user():
    if not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD not set; administrator login is disabled.")
    async with async_session_maker() as session:
        await get_or_create_admin(session, settings.ADMIN_USERNAME)


@app.on_event("startup")
async def on_startup():
    from . import models  # Required for SQLAlchemy model detection
    await init_db()
    try:
        await create_admin_user()
    except SQLAlchemyError:
        logger.exception("Admin seed failed; it will be created on first use")
