from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .core.config import get_settings
from .deps import close_sessions
from .routers import checkin

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s : %(message)s",
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # release every camera and the shared HTTP client
    await close_sessions()

app = FastAPI(title="checkin-console", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(checkin.router)

@app.get("/health")
async def health():
    return {"status": "ok", "service": "checkin-console"}

Instrumentator().instrument(app).expose(app)
