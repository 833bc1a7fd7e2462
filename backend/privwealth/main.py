from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from privwealth.config import settings
from privwealth.errors import PrivWealthError
from privwealth.logging_setup import configure_logging
from privwealth.routes.system import router as system_router
from privwealth.routes.session import router as session_router
from privwealth.routes.submission import router as submission_router
from privwealth.routes.wealth import router as wealth_router
from privwealth.routes.leaderboard import router as leaderboard_router
from privwealth.services.runtime import Runtime, build_runtime
import structlog

configure_logging(settings.log_level)
log = structlog.get_logger()


def create_app(runtime: Runtime | None = None) -> FastAPI:
    rt = runtime if runtime is not None else build_runtime(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
        await rt.start()
        yield
        # Shutdown
        await rt.stop()
        log.info("shutdown")

    app = FastAPI(
        title=f"{settings.app_display_name} API",
        version=settings.app_version,
        lifespan=lifespan,
        description="Submit an encrypted wealth value, find the richest participants, reveal only your own value",
    )
    app.state.runtime = rt

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router)
    app.include_router(session_router)
    app.include_router(submission_router)
    app.include_router(wealth_router)
    app.include_router(leaderboard_router)

    @app.exception_handler(PrivWealthError)
    async def privwealth_error(request: Request, exc: PrivWealthError):
        log.info("request.rejected", error=exc.code, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = rid
        structlog.contextvars.bind_contextvars(request_id=rid)
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        structlog.contextvars.clear_contextvars()
        return response

    return app


app = create_app()


def serve():
    import uvicorn
    uvicorn.run("privwealth.main:app", host=settings.api_host, port=settings.api_port)
