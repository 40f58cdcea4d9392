import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from . import metrics
from .deps import store
from .logging_config import configure_logging
from .request_context import request_id_ctx
from .routers import health, lessons
from .settings import settings

configure_logging()
logger = logging.getLogger("gatekeep")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "startup env=%s content_root=%s store=%s",
        settings.ENV,
        settings.CONTENT_ROOT,
        "redis" if store.configured else "disabled",
    )
    yield
    store.close()


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_ctx.set(request_id)
        response = await call_next(request)
        logger.info(
            "method=%s path=%s status=%s",
            request.method,
            request.url.path,
            response.status_code,
        )
        response.headers["x-request-id"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        metrics.record_request(request.method, request.url.path, response.status_code)
        return response


app = FastAPI(title="gatekeep", lifespan=lifespan)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestLogMiddleware)

app.include_router(health.router)
app.include_router(lessons.router)
