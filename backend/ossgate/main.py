import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from ossgate.api.routers import auth as auth_router
from ossgate.api.routers import download as download_router
from ossgate.api.routers import links as links_router
from ossgate.api.routers import storage as storage_router
from ossgate.core.config import get_settings
from ossgate.core.errors import LinkError
from ossgate.db.session import init_models
from ossgate.services.links import LinkService
from ossgate.services.tickets import TicketStore
from ossgate.tasks.runner import CleanupRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()

    store = TicketStore()
    link_service = LinkService(store)
    runner = CleanupRunner()
    runner.set_startup_hook(link_service.restore_from_ledger)
    runner.set_sweep(link_service.cleanup)
    app.state.ticket_store = store
    app.state.link_service = link_service
    app.state.cleanup_runner = runner

    await runner.start()
    yield
    await runner.stop()


async def handle_link_error(request: Request, exc: LinkError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        debug=settings.debug,
        title="OSS Download Gate API",
        lifespan=lifespan,
    )

    origins = settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LinkError, handle_link_error)

    app.include_router(auth_router.router)
    app.include_router(links_router.router)
    app.include_router(storage_router.router)
    app.include_router(download_router.build_router(settings.download_prefix))

    @app.get("/healthz", response_class=PlainTextResponse, tags=["meta"])
    async def health_check() -> str:
        return "ok"

    return app


app = create_app()
