"""
Visitor Ledger API entry point.

Records visitor IPs and login attempts and serves aggregate counts.
Run locally with ``python main.py`` or ``uvicorn main:app``.
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from visitor_ledger.core.config import Settings, settings
from visitor_ledger.core.log import configure_logging
from visitor_ledger.models.database import ensure_sqlite_dir
from visitor_ledger.models.enums import LedgerBackend
from visitor_ledger.routers.visitors import router as visitors_router
from visitor_ledger.services.ledger import LedgerError, build_ledger

logger = logging.getLogger("uvicorn.error")

INTERNAL_ERROR = {"error": "Internal server error"}


def create_app(config: Settings = settings) -> FastAPI:
    configure_logging(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.LEDGER_BACKEND == LedgerBackend.SQL:
            ensure_sqlite_dir(config.DATABASE_URL)

        ledger = build_ledger(config)
        await ledger.ensure_schema()
        app.state.ledger = ledger
        logger.info("Visitor ledger ready (backend=%s)", config.LEDGER_BACKEND.value)

        yield

        await ledger.close()
        logger.info("Visitor ledger closed")

    app = FastAPI(
        title=config.APP_NAME,
        version=config.VERSION,
        debug=config.DEBUG,
        docs_url=config.DOCS_URL if config.ENABLE_SWAGGER else None,
        redoc_url=config.REDOC_URL if config.ENABLE_SWAGGER else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.API_REQUEST_LOGGING_ENABLED:

        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(
                "%s %s -> %d (%.1f ms)",
                request.method, request.url.path, response.status_code, elapsed_ms,
            )
            return response

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        logger.error("Visitor ledger %s failed: %s", exc.operation, exc, exc_info=exc)
        return JSONResponse(status_code=500, content=INTERNAL_ERROR)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content=INTERNAL_ERROR)

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def greeting() -> str:
        return config.GREETING

    app.include_router(visitors_router, prefix=config.API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
