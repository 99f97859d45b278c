from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging
import time
from modhealth_core.config import Settings
from modhealth_core.db import Base, engine
from modhealth_core.logging_config import configure_logging
from .routes import users, variables, routines, logs

logger = logging.getLogger("modhealth_api")

configure_logging()
settings = Settings()

app = FastAPI(title="Modular Health API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def request_logger(request, call_next):  # type: ignore
    start = time.time()
    path = request.url.path
    if path.startswith("/health") or path.startswith("/api/health"):
        return await call_next(request)
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    logger.info("http %s %s -> %s (%dms)", request.method, path, response.status_code, duration_ms)
    return response


api_router = APIRouter(prefix="/api")
api_router.include_router(users.router)
api_router.include_router(variables.router)
api_router.include_router(routines.router)
api_router.include_router(logs.router)
app.include_router(api_router)


@app.on_event("startup")
async def on_startup():
    Base.metadata.create_all(bind=engine)
    logger.info("api.start version=%s", app.version)


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("api.stop")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/health")
async def api_health():
    return {
        "backend": "ok",
        "planner_max_days": settings.planner_max_days,
        "version": app.version,
    }

__all__ = ["app", "settings"]


if __name__ == "__main__":  # pragma: no cover
    import os
    import uvicorn

    uvicorn.run(
        "modhealth_api.main:app",
        host=os.environ.get("MODHEALTH_HOST", "0.0.0.0"),
        port=int(os.environ.get("MODHEALTH_PORT", "8000")),
        reload=os.environ.get("MODHEALTH_RELOAD", "0").lower() in ("1", "true", "yes"),
    )
