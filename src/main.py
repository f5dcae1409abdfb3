from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from src.config import settings
from src.observability import configure_logging
from src.pipeline.dispatcher import dispatch_queue
from src.routers import platforms, webhooks


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging(settings.log_level)
    yield
    dispatch_queue.shutdown(wait_for_pending=True)


app = FastAPI(title="Salla GA4 Bridge", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^http://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid4())
    )
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

app.include_router(webhooks.router)
app.include_router(platforms.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "salla-ga4-bridge"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
