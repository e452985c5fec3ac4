# slidefy/delivery/api/websocket.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from slidefy.delivery.api.carousel import check_credentials
from slidefy.delivery.schemas.body import CreateCarouselMessage, ImagesDataMessage, NotifyEvent
from slidefy.domain import codec
from slidefy.domain.carousel_service import CarouselService, CarouselSession
from slidefy.domain.errors import SlidefyError, TemplateNotFoundError
from slidefy.config.settings import settings
from typing import Optional
import logging
import traceback
import asyncio

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def authorize_header(header: Optional[str]) -> bool:
    """Validates an ``Authorization: Basic ...`` header from the handshake."""
    if not header or not header.lower().startswith("basic "):
        return False
    try:
        decoded = codec.decode(header[6:].strip()).decode("utf-8")
    except (SlidefyError, UnicodeDecodeError):
        return False
    username, sep, password = decoded.partition(":")
    if not sep:
        return False
    return check_credentials(username, password)


async def _pump_events(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    # Satu-satunya penulis ke socket
    while True:
        event = await outbox.get()
        await websocket.send_json(event.model_dump(by_alias=True))


async def _run_carousel(service: CarouselService, message: CreateCarouselMessage, session: CarouselSession) -> None:
    try:
        result = await service.process_carousel(message, session)
        logger.info(f"[{session.run_id}] WebSocket run selesai ({result.status})")
    except TemplateNotFoundError as e:
        logger.warning(f"[{session.run_id}] {e.message}")
    except SlidefyError as e:
        logger.error(f"[{session.run_id}] [{e.error_code}] {e.message}")
        session.notify(e.message, error=True)
    except Exception as e:
        logger.error(f"[{session.run_id}] WebSocket run gagal: {e}\n{traceback.format_exc()}")
        session.notify("Error creating carousel", error=True)


@router.websocket("/ws/carousel")
async def carousel_socket(websocket: WebSocket):
    if not authorize_header(websocket.headers.get("authorization")):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    bootstrap = getattr(websocket.app.state, "bootstrap", None)
    if bootstrap is not None:
        bootstrap(websocket.app)
    service = getattr(websocket.app.state, "carousel_service", None)
    if service is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()
    sender = asyncio.create_task(_pump_events(websocket, outbox))
    session: Optional[CarouselSession] = None
    run: Optional[asyncio.Task] = None

    def reject(text: str) -> None:
        outbox.put_nowait(NotifyEvent(message=text, error=True))

    try:
        while True:
            try:
                raw = await websocket.receive_json()
            except ValueError:
                reject("Invalid message")
                continue
            kind = raw.get("type") if isinstance(raw, dict) else None

            if kind == "create-carousel":
                if run is not None and not run.done():
                    reject("A carousel is already being created")
                    continue
                try:
                    message = CreateCarouselMessage.model_validate(raw)
                except ValidationError as e:
                    logger.warning(f"Pesan create-carousel tidak valid: {e.error_count()} error")
                    reject("Invalid create-carousel message")
                    continue
                session = CarouselSession(events=outbox, images_timeout=settings.IMAGES_RESPONSE_TIMEOUT)
                run = asyncio.create_task(_run_carousel(service, message, session))

            elif kind == "images-data":
                if session is None or session.images.delivered:
                    logger.warning("images-data diterima tanpa permintaan, diabaikan.")
                    continue
                try:
                    images = ImagesDataMessage.model_validate(raw).images
                except ValidationError:
                    reject("Invalid images-data message")
                    continue
                session.images.deliver(images)

            else:
                logger.warning(f"Tipe pesan tidak dikenal: {kind!r}")
                reject(f"Unknown message type: {kind}")

    except WebSocketDisconnect:
        logger.info("WebSocket carousel ditutup oleh klien.")
    finally:
        for task in (run, sender):
            if task is not None and not task.done():
                task.cancel()
