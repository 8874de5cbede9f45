from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from drd_portal.core.config import settings
from drd_portal.core.database import init_db, close_db, get_session_local
from drd_portal.core.exceptions import DrdError, error_response
from drd_portal.core.logging_config import logger
from drd_portal.core.middleware import RequestLoggingMiddleware
from drd_portal.api.v1.router import api_router
from drd_portal.services.policy_store import PolicyStore


async def seed_policies():
    """Insert environment-supplied default policies on a fresh installation"""
    defaults = settings.policy_defaults()
    if not defaults.policies:
        return
    session_factory = get_session_local()
    async with session_factory() as session:
        await PolicyStore(session).seed_default_policies(defaults)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    await init_db()
    await seed_policies()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Submission workflow and incentive distribution for DRD research administration",
        version="1.0.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(DrdError)
    async def drd_error_handler(request: Request, exc: DrdError):
        if exc.status_code >= 500:
            logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
        return JSONResponse(status_code=exc.status_code, content=error_response(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.DEBUG else "An error occurred"
            }
        )

    app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "drd_portal.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
