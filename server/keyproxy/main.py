import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi import APIRouter

from .config import Settings, get_settings
# API routers
from .api.keys import router as keys_router
from .api.chat import router as chat_router
from .api.health import router as health_router
from .core.credentials import CredentialStore
from .core.errors import ProxyError
from .core.logging import setup_logging
from .providers.router import ProviderRouter

logger = logging.getLogger(__name__)


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": fields})


def create_app(
    settings: Optional[Settings] = None,
    providers: Optional[ProviderRouter] = None,
    credentials: Optional[CredentialStore] = None,
) -> FastAPI:
    settings = settings or get_settings()
    # Setup logging early
    setup_logging(settings.log_level.upper())
    app = FastAPI(title="KeyProxy", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Keys live only as long as this app instance
    app.state.providers = providers or ProviderRouter(settings)
    app.state.credentials = credentials or CredentialStore(app.state.providers.key_formats())

    api = APIRouter()
    api.include_router(keys_router)
    api.include_router(chat_router)
    api.include_router(health_router)
    app.include_router(api, prefix="/api")

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        # html=True serves index.html at "/"
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        @app.get("/")
        def root():
            return {"service": "keyproxy", "version": "0.1.0"}

    @app.on_event("startup")
    async def _startup() -> None:
        logger.info("KeyProxy listening on http://%s:%s", settings.server_host, settings.server_port)
        if static_dir.is_dir():
            logger.info("Serving browser UI from %s", static_dir.resolve())
        else:
            logger.info("No static directory at %s; put index.html there to serve the UI", static_dir)
        logger.info("API keys are stored in memory (restart to clear)")

    return app


app = create_app()
