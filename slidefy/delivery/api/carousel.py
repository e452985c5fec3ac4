# slidefy/delivery/api/carousel.py
from fastapi import APIRouter, Request, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.responses import JSONResponse
from slidefy.delivery.schemas.body import CreateCarouselMessage
from slidefy.domain.carousel_service import CarouselSession, STATUS_FAILED
from slidefy.domain.errors import SlidefyError, TemplateNotFoundError
from slidefy.config.settings import settings
import secrets
import threading
import logging
import traceback
import asyncio

router = APIRouter()
security = HTTPBasic()
logger = logging.getLogger("uvicorn.error")


def check_credentials(username: str, password: str) -> bool:
    ok_user = secrets.compare_digest(username.encode("utf-8"), settings.BASIC_AUTH_USERNAME.encode("utf-8"))
    ok_pass = secrets.compare_digest(password.encode("utf-8"), settings.BASIC_AUTH_PASSWORD.encode("utf-8"))
    return ok_user and ok_pass


def verify_basic_auth(creds: HTTPBasicCredentials = Depends(security)) -> None:
    if not check_credentials(creds.username, creds.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


def get_service(request: Request):
    service = getattr(request.app.state, "carousel_service", None)
    if service is None:
        logger.error("Carousel service not initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not ready. Please try again in a moment.",
        )
    return service


@router.get("/templates", dependencies=[Depends(verify_basic_auth)])
async def list_templates(request: Request):
    service = get_service(request)
    return {"templates": [s.model_dump(by_alias=True) for s in service.catalog.summaries()]}


@router.post("/create-carousel", dependencies=[Depends(verify_basic_auth)])
async def create_carousel(request: Request, message: CreateCarouselMessage, render: bool = False):
    service = get_service(request)
    session = CarouselSession()
    run_id = session.run_id
    logger.info(f"=== ENDPOINT START for {run_id} (threads={threading.active_count()}) ===")

    if not message.images_base64 and not message.image_urls:
        if message.images_metadata:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Images must be sent inline as imagesBase64 or imageUrls.",
            )
        # Template tanpa foto: jawab request-images dengan daftar kosong
        session.images.deliver([])

    try:
        try:
            result = await asyncio.wait_for(
                service.process_carousel(message, session),
                timeout=settings.ENDPOINT_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.error(f"=== ENDPOINT TIMEOUT for {run_id} after {settings.ENDPOINT_TIMEOUT_SECONDS}s ===")
            raise HTTPException(status_code=504, detail="Carousel processing timed out")

        content = result.to_dict()
        content["runId"] = run_id
        # dokumen sudah dikirim sebagai "page"
        content["events"] = [e.model_dump(by_alias=True) for e in session.drain() if e.type != "document"]
        if render and result.status != STATUS_FAILED:
            loop = asyncio.get_running_loop()
            content["slices"] = await loop.run_in_executor(
                request.app.state.executor, service.export_slices, result, run_id
            )

        logger.info(f"=== ENDPOINT SUCCESS for {run_id} ({result.status}) ===")
        status_code = 500 if result.status == STATUS_FAILED else 200
        return JSONResponse(status_code=status_code, content=content)

    except HTTPException:
        raise
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except SlidefyError as e:
        logger.error(f"=== ENDPOINT ERROR for {run_id}: [{e.error_code}] {e.message} ===")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except Exception as e:
        logger.error(f"=== ENDPOINT ERROR for {run_id}: {e} ===\n{traceback.format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Terjadi kesalahan internal pada server.",
        )
