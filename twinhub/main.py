import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from twinhub.api import telemetry, twin_models, twins
from twinhub.config.settings import get_settings
from twinhub.core.clock import utcnow
from twinhub.core.errors import ErrorKind, TwinHubError
from twinhub.core.redis_client import close_redis_client, get_redis_client

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_REFERENCE: 422,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.INTERNAL: 500,
    ErrorKind.CANCELLED: 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_redis_client()
    logger.info("TwinHub started")
    yield
    await close_redis_client()
    logger.info("TwinHub stopped")


app = FastAPI(title="TwinHub", version="1.0.0", lifespan=lifespan)

app.include_router(twin_models.router, prefix="/models", tags=["models"])
app.include_router(twins.router, prefix="/twins", tags=["twins"])
app.include_router(telemetry.router, prefix="/twins", tags=["telemetry"])


@app.get("/health")
async def health_check():
    redis_client = await get_redis_client()
    try:
        redis_ok = bool(await redis_client.ping())
    except RedisError as exc:
        logger.error("Redis ping failed: %s", exc)
        redis_ok = False
    return {
        "status": "healthy" if redis_ok else "degraded",
        "service": "twinhub",
        "timestamp": utcnow().isoformat(),
    }


@app.exception_handler(TwinHubError)
async def twinhub_error_handler(request: Request, exc: TwinHubError):
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content={"error": exc.message, "kind": exc.kind.value},
    )
