"""
FastAPI server for the agent canvas.

Provides REST API endpoints for:
- Schema editing (items, connections, AI plans)
- Execution runs, live status and the run log
- Saved projects and the item library

Usage:
    uvicorn api.main:app --host 0.0.0.0 --port 2024 --reload
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.canvas.router import router as canvas_router
from api.canvas.session import build_session
from shared.logger import get_logger

logger = get_logger("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("🚀 Starting canvas API server...")
    if getattr(app.state, "canvas", None) is None:
        app.state.canvas = build_session()
    logger.info("✅ Canvas session ready")

    yield

    tasks = list(app.state.canvas.background_tasks)
    for task in tasks:
        task.cancel()
    logger.info("👋 Canvas API server shutting down...")


app = FastAPI(
    title="Agent Canvas API",
    description="REST API for composing and running agent workflows",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(canvas_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled errors and return a plain 500."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}
