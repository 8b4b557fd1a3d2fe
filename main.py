from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from framework.config import settings
from framework.database.manager import DatabaseManager
from framework.response import ResponseModel
from framework.middleware.logging_md import LoggingMiddleware
from framework.logging.logger import LogConfig, get_logger
from framework.exceptions.handler import BusinessException, global_exception_handler
from apps.ai.initializer import AISystemInitializer
from apps.ai.matching import SmartMatchClient
from apps.identity.api.router import router as identity_router
from apps.subscriptions.api.modules import router as modules_router
from apps.subscriptions.api.router import router as subscriptions_router
from apps.analytics.api.router import router as analytics_router
from apps.ai.api.router import router as ai_router

# Initialize logging configuration
LogConfig.setup_logging(level="DEBUG" if settings.DEBUG else "INFO")
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    manager = DatabaseManager.get_instance()
    await manager.connect_all()

    # AI services live on app.state; routers reach them through dependencies
    match_client = SmartMatchClient()
    initializer = AISystemInitializer({"smart_matching": match_client.start})
    app.state.match_client = match_client
    app.state.ai_initializer = initializer
    result = await initializer.init()
    if not result.success:
        logger.warning(f"AI services degraded: {', '.join(result.failed)}")

    yield

    await match_client.close()
    await manager.disconnect_all()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Register global exception handlers
app.add_exception_handler(BusinessException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(LoggingMiddleware)

# Mount routers (prefix from config for easy override in private projects)
app.include_router(
    identity_router,
    prefix=settings.API_V1_AUTH_PREFIX,
    tags=["Identity & Tenant"]
)

app.include_router(
    modules_router,
    prefix=settings.API_V1_MODULES_PREFIX,
    tags=["Module Access"]
)

app.include_router(
    subscriptions_router,
    prefix=settings.API_V1_SUBSCRIPTIONS_PREFIX,
    tags=["Subscriptions"]
)

app.include_router(
    analytics_router,
    prefix=settings.API_V1_ANALYTICS_PREFIX,
    tags=["Analytics"]
)

app.include_router(
    ai_router,
    prefix=settings.API_V1_AI_PREFIX,
    tags=["AI"]
)

@app.get("/health", tags=["Health"])
async def health():
    """Liveness of the SQL store and the query cache."""
    checks = await DatabaseManager.get_instance().ping_all()
    return ResponseModel.success(data={"status": "ok" if all(checks.values()) else "degraded", **checks})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
