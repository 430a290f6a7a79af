import logging
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gateway.api.routes import router as api_router
from gateway.config import settings
from gateway.errors import GatewayError
from gateway.services.blob_store import FtpBlobStore
from gateway.services.media_fetcher import MediaFetcher
from gateway.services.normalizer import EventNormalizer
from gateway.services.webhook_forwarder import WebhookForwarder
from gateway.session.auth_store import AuthStore
from gateway.session.manager import SessionManager
from gateway.session.transport import load_connection_factory

logger = structlog.get_logger()


def configure_logging() -> None:
    """Render structlog events and stdlib records (uvicorn, aioftp) the same way.

    Stdlib records go through ProcessorFormatter, so their ``extra=`` fields
    end up as keys of the rendered event.
    """
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.LOG_JSON
        else structlog.dev.ConsoleRenderer()
    )
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*shared, structlog.stdlib.ExtraAdder()],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def build_session_manager(forwarder: WebhookForwarder) -> SessionManager | None:
    if not settings.TRANSPORT_FACTORY:
        logger.error("transport_not_configured", hint="set TRANSPORT_FACTORY=module:callable")
        return None
    normalizer = EventNormalizer(FtpBlobStore.from_settings(), MediaFetcher())
    return SessionManager(
        load_connection_factory(settings.TRANSPORT_FACTORY),
        AuthStore(settings.AUTH_DIR),
        normalizer,
        forwarder,
        reconnect_delay=settings.RECONNECT_DELAY_SECONDS,
        max_concurrent_batches=settings.MAX_CONCURRENT_BATCHES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    forwarder = WebhookForwarder()
    await forwarder.startup()
    # Tests install their own session on app.state before startup
    session = getattr(app.state, "session", None) or build_session_manager(forwarder)
    app.state.session = session
    if session is not None:
        session.launch()
    logger.info("gateway_started", port=settings.PORT, webhook=settings.WEBHOOK_URL)
    yield
    if session is not None:
        await session.shutdown()
    await forwarder.shutdown()
    logger.info("gateway_stopped")


app = FastAPI(title="WhatsApp Webhook Gateway", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(api_router)


@app.exception_handler(GatewayError)
async def handle_gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.get("/health")
async def health(request: Request):
    session = getattr(request.app.state, "session", None)
    return {"status": "ok", "session": session.state if session else "unconfigured"}


def run() -> None:
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
