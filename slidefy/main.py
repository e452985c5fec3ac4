# slidefy/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from concurrent.futures import ThreadPoolExecutor
import threading
import logging
import os

from slidefy.config.settings import settings
from slidefy.delivery.api.carousel import router
from slidefy.delivery.api.websocket import router as ws_router
from slidefy.delivery.schemas.body import FontName
from slidefy.domain.carousel_service import CarouselService
from slidefy.infrastructure.canvas.font_library import FontLibrary
from slidefy.infrastructure.catalog.template_catalog import TemplateCatalog

logging.getLogger("PIL").setLevel(logging.WARNING)
logger = logging.getLogger("uvicorn.error")

# --- Lazy service bootstrap state ---
_service_lock = threading.Lock()


def _ensure_service(app: FastAPI) -> None:
    with _service_lock:  # Always acquire lock first
        if getattr(app.state, "carousel_service", None) is not None:
            return
        logger.info("Memulai inisialisasi CarouselService (lazy-init)...")
        default_face = FontName(family=settings.DEFAULT_FONT_FAMILY, style=settings.DEFAULT_FONT_STYLE)
        app.state.carousel_service = CarouselService(
            catalog=TemplateCatalog.from_directory(settings.TEMPLATES_DIR),
            fonts=FontLibrary(settings.FONTS_DIR, default_face),
        )
        logger.info("Inisialisasi service selesai.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    max_workers = min(4, os.cpu_count() or 1)  # Conservative limit
    app.state.executor = ThreadPoolExecutor(max_workers=max_workers)
    app.state.bootstrap = _ensure_service
    logger.info(f"Service '{settings.PROJECT_NAME}' dimulai (mode: {settings.ENVIRONMENT}).")
    logger.info(f"Shared ThreadPoolExecutor dibuat dengan {max_workers} workers.")
    yield
    logger.info("Menutup ThreadPoolExecutor...")
    app.state.executor.shutdown(wait=True)
    logger.info("Service berhenti.")

app = FastAPI(
    title="Slidefy Carousel Service",
    description="Instantiates carousel templates into scene documents and renders export slices",
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

# Lazy-load only for API routes
@app.middleware("http")
async def lazy_boot(request: Request, call_next):
    # Inisialisasi service hanya jika path request berada di bawah API_V1_STR
    if request.url.path.startswith(settings.API_V1_STR):
        _ensure_service(request.app)
    return await call_next(request)

app.include_router(router, prefix=settings.API_V1_STR)
app.include_router(ws_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": "Slidefy Carousel Service", "version": "1.0.0", "status": "ok"}

@app.get("/health")
async def health_check():
    service = getattr(app.state, "carousel_service", None)
    return {
        "status": "ok",
        "service": "Slidefy 1.0",
        "service_ready": service is not None,
        "templates": len(service.catalog) if service is not None else 0,
    }
