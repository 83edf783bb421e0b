import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from pathlib import Path

from app.core.config import settings
from app.core.logger import logger, log_api_request
from app.web import routes as web_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.AUDIO_DIR.mkdir(parents=True, exist_ok=True)
    logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started")
    yield

app = FastAPI(title="Moying Wenshu", version=settings.VERSION, lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    if not request.url.path.startswith("/static"):
        log_api_request(request.method, request.url.path, response.status_code, (time.perf_counter() - start) * 1000)
    return response

#Mount Static Files
BASE_DIR = Path(__file__).resolve().parent
app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

#Include Routers
app.include_router(web_routes.router)
