# slidefy/domain/carousel_service.py
import asyncio
import base64
import logging
import os
import time
import traceback
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import psutil

from slidefy.config.settings import Settings, settings as default_settings
from slidefy.delivery.schemas.body import (
    CarouselCompleteEvent,
    CarouselEvent,
    CreateCarouselMessage,
    DocumentEvent,
    FontName,
    NotifyEvent,
    ProgressEvent,
    RequestImagesEvent,
    TemplateData,
)
from slidefy.domain.compositing import CompositingJournal, apply_grayscale, apply_typography_overrides
from slidefy.domain.errors import MaterializationError, TemplateNotFoundError
from slidefy.domain.fonts import FontResolver
from slidefy.domain.materializer import NodeMaterializer
from slidefy.domain.partitioner import create_export_instructions_frame, create_export_slices
from slidefy.infrastructure.canvas.font_library import FontLibrary
from slidefy.infrastructure.canvas.memory_canvas import MemoryCanvas
from slidefy.infrastructure.catalog.template_catalog import TemplateCatalog
from slidefy.infrastructure.cloudinary.upload_file import upload_rendered_slice
from slidefy.infrastructure.render.rasterizer import RenderedSlice, SliceRenderer, encode_image
from slidefy.infrastructure.sources.image_loader import coerce_image_payloads, decode_base64_images, load_urls_async

# --- PENGATURAN LOGGER ---
# Logger khusus modul ini agar log tiap tahap bisa dilacak per Run ID.
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False # Mencegah log ganda ke root logger

STATUS_COMPLETE = "complete"
STATUS_DEGRADED = "degraded"
STATUS_FAILED = "failed"


class ImageChannel:
    """Single-slot channel carrying the one ``images-data`` answer of an instantiation."""

    def __init__(self):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def delivered(self) -> bool:
        return self._future.done()

    def deliver(self, images: Sequence[Union[List[int], str, bytes]]) -> bool:
        if self._future.done():
            logger.warning("Respons gambar diterima lebih dari sekali, diabaikan.")
            return False
        self._future.set_result(list(images))
        return True

    async def receive(self, timeout: Optional[float] = None) -> List[Any]:
        return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)


class CarouselSession:
    """Everything one instantiation owns: its run id, event queue and image channel."""

    def __init__(self, run_id: Optional[str] = None, events: Optional[asyncio.Queue] = None, images_timeout: Optional[float] = None):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.events: asyncio.Queue = events if events is not None else asyncio.Queue()
        self.images_timeout = images_timeout
        self.images = ImageChannel()

    def emit(self, event: CarouselEvent) -> None:
        self.events.put_nowait(event)

    def progress(self, percent: int, log: str) -> None:
        logger.info(f"[{self.run_id}] {percent}% {log}")
        self.emit(ProgressEvent(percent=percent, log=log))

    def notify(self, message: str, error: bool = False) -> None:
        self.emit(NotifyEvent(message=message, error=error))

    def drain(self) -> List[CarouselEvent]:
        events = []
        while not self.events.empty():
            events.append(self.events.get_nowait())
        return events


@dataclass
class CarouselResult:
    status: str
    template: TemplateData
    canvas: MemoryCanvas
    root: Optional[Any] = None
    instructions: Optional[Any] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def attached(self) -> bool:
        return self.root is not None and self.root.parent is self.canvas.page

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "templateId": self.template.id,
            "warnings": list(self.warnings),
            "page": self.canvas.page.to_dict(),
        }


class CarouselService:
    def __init__(self, catalog: TemplateCatalog, fonts: Optional[FontLibrary] = None, config: Optional[Settings] = None):
        self.catalog = catalog
        self.settings = config or default_settings
        self.default_face = FontName(family=self.settings.DEFAULT_FONT_FAMILY, style=self.settings.DEFAULT_FONT_STYLE)
        self.fonts = fonts or FontLibrary(self.settings.FONTS_DIR, self.default_face)

    def new_canvas(self, session: CarouselSession) -> MemoryCanvas:
        return MemoryCanvas(
            self.fonts,
            max_image_dimension=self.settings.MAX_IMAGE_DIMENSION,
            max_image_bytes=self.settings.MAX_IMAGE_BYTES,
            on_notify=session.notify,
        )

    async def acquire_images(self, message: CreateCarouselMessage, session: CarouselSession) -> List[Optional[bytes]]:
        if message.images_base64:
            return decode_base64_images(message.images_base64)
        if message.image_urls:
            return await load_urls_async(message.image_urls, timeout=self.settings.REQUEST_TIMEOUT)

        session.progress(20, "Requesting images...")
        session.emit(RequestImagesEvent(count=len(message.images_metadata)))
        try:
            payloads = await session.images.receive(session.images_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Tidak ada respons gambar dalam {session.images_timeout} detik untuk Run ID: {session.run_id}")
            session.notify("No images received, photo layers were left empty", error=True)
            return []
        return coerce_image_payloads(payloads)

    async def process_carousel(self, message: CreateCarouselMessage, session: CarouselSession) -> CarouselResult:
        run_id = session.run_id
        logger.info(f"=== START PROCESSING Run ID: {run_id} (template: {message.template_id}) ===")
        process = psutil.Process(os.getpid())
        overall_start_time = time.perf_counter()
        canvas = self.new_canvas(session)

        # TAHAP 1: Template
        try:
            template = self.catalog.get(message.template_id)
        except TemplateNotFoundError:
            canvas.notify(f'Template "{message.template_id}" not found', error=True)
            logger.error(f"Template '{message.template_id}' tidak ditemukan untuk Run ID: {run_id}")
            raise
        session.progress(5, f'Template "{template.name}" loaded')

        # TAHAP 2: Gambar pengguna
        images = await self.acquire_images(message, session)
        valid = sum(1 for img in images if img is not None)
        session.progress(45, f"Processing images... ({valid}/{len(images)})")
        logger.info(f"Tahap 2/6: {valid} dari {len(images)} gambar valid untuk Run ID: {run_id}")

        resolver = FontResolver(canvas, self.default_face, self.settings.FONT_ALIASES)
        await resolver.preload(template.font_names())
        session.progress(50, "Fonts loaded")

        # TAHAP 3: Materialisasi
        prefix = template.photo_layer_name_prefix or self.settings.DEFAULT_PHOTO_LAYER_PREFIX
        materializer = NodeMaterializer(canvas, resolver, images, prefix, template.embedded_images)
        try:
            root = await materializer.materialize(template.node_tree)
            if root is None:
                raise MaterializationError(details={"template_id": template.id, "skipped": len(materializer.skipped)})
        except Exception as e:
            logger.error(f"Materialisasi gagal untuk Run ID {run_id}: {e}\n{traceback.format_exc()}")
            canvas.notify("Error creating carousel", error=True)
            return CarouselResult(status=STATUS_FAILED, template=template, canvas=canvas, warnings=["materialization"])
        if materializer.skipped:
            logger.info(f"{len(materializer.skipped)} node dilewati untuk Run ID: {run_id}")
        session.progress(70, "Slides created")
        logger.info(f"Memory after materialization: {process.memory_info().rss / 1024 / 1024:.1f}MB for Run ID: {run_id}")

        result = CarouselResult(status=STATUS_COMPLETE, template=template, canvas=canvas, root=root)

        # TAHAP 4: Compositing, dibatalkan seluruhnya jika gagal
        journal = CompositingJournal()
        try:
            if hasattr(root, "children"):
                if template.photo_grayscale:
                    apply_grayscale(canvas, root, prefix, journal)
                apply_typography_overrides(template.id, root, journal)
            session.progress(80, "Compositing applied")
        except Exception as e:
            logger.error(f"Compositing gagal untuk Run ID {run_id}: {e}\n{traceback.format_exc()}")
            journal.rollback()
            canvas.notify("Compositing failed, the carousel was created without it", error=True)
            result.status = STATUS_DEGRADED
            result.warnings.append("compositing")

        # TAHAP 5: Instruksi & slices
        if result.status == STATUS_COMPLETE:
            if self.settings.EXPORT_INSTRUCTIONS_ENABLED:
                try:
                    result.instructions = await create_export_instructions_frame(canvas, resolver, template.width, template.slides)
                except Exception as e:
                    logger.error(f"Frame instruksi gagal dibuat untuk Run ID {run_id}: {e}")
                    canvas.notify("Export instructions frame not created", error=True)
                    result.warnings.append("instructions")

            try:
                create_export_slices(canvas, root, template.slides, template.slide_width, template.slide_height)
                session.progress(90, "Export slices created")
            except Exception as e:
                logger.error(f"Slices gagal dibuat untuk Run ID {run_id}: {e}\n{traceback.format_exc()}")
                canvas.notify("Export slices not created", error=True)
                result.status = STATUS_DEGRADED
                result.warnings.append("partitioning")

        # TAHAP 6: Canvas
        self._attach(canvas, result)
        session.progress(100, "Carousel created successfully!")
        session.emit(DocumentEvent(root=canvas.page.to_dict()))
        session.emit(CarouselCompleteEvent())
        canvas.notify(f'Carousel "{template.name}" created successfully!')

        overall_duration = time.perf_counter() - overall_start_time
        logger.info(f"=== COMPLETED PROCESSING Run ID: {run_id} ({result.status}) dalam {overall_duration:.2f} detik ===")
        return result

    def _attach(self, canvas: MemoryCanvas, result: CarouselResult) -> None:
        root = result.root
        root.x = 0
        root.y = 0
        if result.instructions is not None:
            result.instructions.x = 0
            result.instructions.y = 0
            root.y = result.instructions.height + self.settings.EXPORT_INSTRUCTIONS_GAP
            canvas.page.append_child(result.instructions)
        canvas.page.append_child(root)
        canvas.page.selection = [el for el in (result.instructions, root) if el is not None]

    # --- export ---

    def render_slices(self, result: CarouselResult) -> List[RenderedSlice]:
        if result.root is None:
            return []
        return SliceRenderer(result.canvas).render_slices(result.root)

    def export_slices(self, result: CarouselResult, run_id: str) -> List[Dict[str, Any]]:
        """Renders the slices and uploads them when Cloudinary is configured, else inlines them."""
        fmt = self.settings.RENDER_FORMAT
        exported = []
        for rendered in self.render_slices(result):
            entry = {"name": rendered.name, "x": rendered.x, "y": rendered.y,
                     "width": rendered.image.width, "height": rendered.image.height}
            if self.settings.cloudinary_enabled:
                entry["url"] = upload_rendered_slice(
                    rendered, run_id, folder=self.settings.CLOUDINARY_FOLDER, fmt=fmt, quality=self.settings.JPEG_QUALITY
                )
            else:
                payload = base64.b64encode(encode_image(rendered.image, fmt, self.settings.JPEG_QUALITY)).decode("ascii")
                mime = "image/jpeg" if fmt.lower() in ("jpg", "jpeg") else "image/png"
                entry["url"] = f"data:{mime};base64,{payload}"
            exported.append(entry)
        return exported
