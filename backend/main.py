import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config import settings

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from routers.ws_router import manager as ws_manager
    from services.runtime import get_runtime, shutdown_runtime

    logger.info("👾 Monster Catch companion starting up (backend %s)...", settings.api_base_url)
    if not settings.api_token:
        logger.warning("API_TOKEN is not set — authenticated backend calls will fail")
    get_runtime().start_background()
    yield
    await ws_manager.close_all()
    await shutdown_runtime()
    logger.info("Companion shutting down.")


app = FastAPI(
    title="Monster Catch",
    version="0.1.0",
    description="Round lifecycle, reward reconciliation and hourly tournament companion",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "monster-catch", "version": "0.1.0"}


from routers.game_router import router as game_router
from routers.ws_router import router as ws_router

app.include_router(game_router, prefix="/api")
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
