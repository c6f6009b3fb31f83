"""FastAPI application entrypoint. No business logic; only wiring, middleware and the error boundary."""

import logging
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session, sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware

from lexauth import __version__
from lexauth.api.v1 import router as v1_router
from lexauth.core.config import Settings, configure_logging, get_settings
from lexauth.core.database import session_factory_from_settings
from lexauth.core.errors import AuthenticationError, LexAuthError
from lexauth.services.container import init_services
from lexauth.services.email import EmailSender

logger = logging.getLogger(__name__)


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, response status and latency (ms). Bodies are never logged."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s | status=%d latency=%.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


async def _lexauth_error_handler(request: Request, exc: LexAuthError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "code": exc.kind.value,
            "reason": exc.reason,
        },
        headers=headers,
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body", "details": details},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Store and library internals never reach the client.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal Server Error"},
    )


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
    *,
    email_sender: EmailSender | None = None,
) -> FastAPI:
    """
    Build the application. Services are wired once in the lifespan startup
    phase, before any request is served; bad token configuration aborts startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        factory = session_factory or session_factory_from_settings(settings)
        init_services(app.state, settings, factory, email_sender=email_sender)
        logger.info("lexauth %s starting up (env=%s)", __version__, settings.APP_ENV)
        yield
        logger.info("lexauth shutting down")

    app = FastAPI(
        title="lexauth",
        version=__version__,
        docs_url="/docs" if settings.APP_ENV == "dev" else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(_RequestLogMiddleware)

    app.add_exception_handler(LexAuthError, _lexauth_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "lexauth API"}

    return app


# Served with: uvicorn lexauth.main:app
app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)
