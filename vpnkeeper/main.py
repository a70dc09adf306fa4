# vpnkeeper/main.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from vpnkeeper.api.certs import router as certs_router
from vpnkeeper.api.events import router as events_router
from vpnkeeper.api.settings import router as settings_router
from vpnkeeper.api.users import router as users_router
from vpnkeeper.api.whitelist import router as whitelist_router

from vpnkeeper.core.config import Config
from vpnkeeper.core.errors import VpnKeeperError
from vpnkeeper.core.logging import configure_logging
from vpnkeeper.db.session import Database

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None) -> FastAPI:
    config = config or Config()
    configure_logging(config)
    db = Database(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # === STARTUP ===
        await db.create_all()
        logger.info("database ready at %s", config.db_url)
        yield
        # === SHUTDOWN ===
        await db.dispose()

    app = FastAPI(title="vpnkeeper", lifespan=lifespan)
    app.state.config = config
    app.state.db = db

    # Los errores siempre llevan cuerpo vacío: {}
    @app.exception_handler(VpnKeeperError)
    async def _domain_error(request: Request, exc: VpnKeeperError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(level, "%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse({}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        logger.warning("%s %s -> 400: missing or malformed request", request.method, request.url.path)
        return JSONResponse({}, status_code=400)

    @app.exception_handler(SQLAlchemyError)
    async def _storage_error(request: Request, exc: SQLAlchemyError):
        logger.exception("%s %s -> 500: storage failure", request.method, request.url.path)
        return JSONResponse({}, status_code=500)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    app.include_router(users_router, tags=["users"])
    app.include_router(certs_router, tags=["certs"])
    app.include_router(events_router, tags=["events"])
    app.include_router(settings_router, tags=["settings"])
    app.include_router(whitelist_router, tags=["whitelist"])
    return app


app = create_app()


def run() -> None:
    """Entry point of the ``vpnkeeper`` console script."""
    config = app.state.config
    uvicorn.run(app, host=config.bind_address, port=config.port, log_config=None)
