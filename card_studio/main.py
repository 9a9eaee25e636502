# card_studio/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
import logging

from card_studio.config.settings import settings
from card_studio.delivery.api.auth_relay import router as auth_router
from card_studio.delivery.api.composition import router as composition_router
from card_studio.domain.errors import CardStudioError
from card_studio.domain.session import SessionRegistry
from card_studio.domain.upload_service import UploadService
from card_studio.infrastructure.render.card_renderer import PillowCardRenderer
from card_studio.infrastructure.render.image_loader import ImageLoader

logger = logging.getLogger("uvicorn.error")

@asynccontextmanager
async def lifespan(app: FastAPI):
    max_workers = max(1, settings.EXPORT_WORKERS)
    app.state.executor = ThreadPoolExecutor(max_workers=max_workers)
    app.state.sessions = SessionRegistry(
        renderer=PillowCardRenderer(),
        images=ImageLoader(),
        executor=app.state.executor,
    )
    app.state.upload_service = UploadService()
    logger.info(f"'{settings.PROJECT_NAME}' started (mode: {settings.ENVIRONMENT}).")
    logger.info(f"Export ThreadPoolExecutor created with {max_workers} workers.")
    yield
    logger.info("Shutting down export ThreadPoolExecutor...")
    app.state.executor.shutdown(wait=True)
    logger.info(f"'{settings.PROJECT_NAME}' stopped.")

app = FastAPI(
    title="Card Studio",
    description="Compose greeting cards from photos, stickers and themes, and export them as PNG",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(CardStudioError)
async def card_studio_error_handler(request: Request, exc: CardStudioError):
    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())

app.include_router(auth_router)
app.include_router(composition_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": "Card Studio Service", "version": "1.0.0", "status": "ok"}

@app.get("/health")
async def health_check():
    return {"ok": True, "status": "ok", "service": settings.PROJECT_NAME}
