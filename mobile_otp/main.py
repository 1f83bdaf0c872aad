from contextlib import asynccontextmanager
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# Environment must be loaded before settings are read
load_dotenv()

from .config import settings
from .database import create_db_and_tables, engine
from .exceptions import http_exception_handler
from .middleware import SecurityMiddleware, RequestContextMiddleware, ErrorHandlingMiddleware
from .routers import auth_router
from .schemas.common import HealthResponse
from .utils import utcnow

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


def _report_master_code() -> None:
    if not settings.OTP_MASTER_CODE_ENABLED:
        return
    if settings.is_production:
        logger.error("OTP_MASTER_CODE_ENABLED is set in production and will be ignored")
    else:
        logger.warning("Master OTP code is enabled; every OTP can be bypassed in this environment")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} (env: {settings.ENV})")
    app.state.db_init_error = None
    try:
        create_db_and_tables()
    except Exception as e:
        # Keep serving; /health reports the failure
        app.state.db_init_error = str(e)
        logger.exception("Database initialization failed")

    provider = auth_router.get_otp_provider()
    logger.info(f"OTP delivery provider: {provider.name}, rate limit backend: {settings.OTP_RATE_LIMIT_BACKEND}")
    _report_master_code()
    yield
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
)

app.add_exception_handler(HTTPException, http_exception_handler)

# Last added runs first
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(SecurityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth_router.router)


def _database_status() -> dict:
    init_error = getattr(app.state, "db_init_error", None)
    if init_error:
        return {"ok": False, "error": init_error}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Health check could not reach the database: {e}")
        return {"ok": False, "error": str(e)}
    return {"ok": True, "error": None}


@app.get("/health", response_model=HealthResponse)
def health_check():
    database = _database_status()
    return {
        "status": "healthy" if database["ok"] else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utcnow().isoformat(),
        "database": database,
        "otp": {
            "provider": settings.OTP_PROVIDER,
            "rate_limit_backend": settings.OTP_RATE_LIMIT_BACKEND,
            "master_code_active": settings.master_code_active,
        },
    }
