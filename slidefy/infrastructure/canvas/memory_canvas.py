# slidefy/infrastructure/canvas/memory_canvas.py
import hashlib
import io
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from PIL import Image, UnidentifiedImageError

from slidefy.delivery.schemas.body import FontName
from slidefy.domain.canvas import CanvasHost, ImageHandle
from slidefy.domain.errors import ImageBindingError
from slidefy.infrastructure.canvas.font_library import FontLibrary
from slidefy.infrastructure.canvas.scene import (
    FrameElement,
    GroupElement,
    Page,
    RectangleElement,
    SceneElement,
    SliceElement,
    TextElement,
)

logger = logging.getLogger(__name__)


class MemoryCanvas(CanvasHost):
    """Scene graph kept in memory, one instance per carousel request."""

    def __init__(
        self,
        fonts: FontLibrary,
        max_image_dimension: int = 4096,
        max_image_bytes: int = 20 * 1024 * 1024,
        on_notify: Optional[Callable[[str, bool], None]] = None,
    ):
        self.fonts = fonts
        self.max_image_dimension = max_image_dimension
        self.max_image_bytes = max_image_bytes
        self.on_notify = on_notify
        self.images: Dict[str, bytes] = {}
        self.notifications: List[Tuple[str, bool]] = []
        self._loaded_fonts: Set[str] = set()
        self._page = Page()

    @property
    def page(self) -> Page:
        return self._page

    def create_frame(self) -> FrameElement:
        return FrameElement()

    def create_rectangle(self) -> RectangleElement:
        return RectangleElement()

    def create_text(self) -> TextElement:
        return TextElement(self._loaded_fonts)

    def create_slice(self) -> SliceElement:
        return SliceElement()

    def create_image(self, data: bytes) -> ImageHandle:
        if not data:
            raise ImageBindingError("Empty image payload")
        if len(data) > self.max_image_bytes:
            raise ImageBindingError(
                f"Image payload of {len(data)} bytes exceeds {self.max_image_bytes}",
                details={"size": len(data)},
            )
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                img.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            raise ImageBindingError(f"Image could not be decoded: {type(e).__name__}") from e

        if max(width, height) > self.max_image_dimension:
            raise ImageBindingError(
                f"Image {width}x{height} exceeds {self.max_image_dimension}px",
                details={"width": width, "height": height},
            )
        digest = hashlib.sha1(data).hexdigest()
        self.images.setdefault(digest, data)
        return ImageHandle(hash=digest, width=width, height=height)

    def group(self, members: Sequence[SceneElement]) -> GroupElement:
        if not members:
            raise ValueError("Cannot group zero elements")
        group = GroupElement()
        min_x = min(m.x for m in members)
        min_y = min(m.y for m in members)
        for member in members:
            member.x -= min_x
            member.y -= min_y
            group.append_child(member)
        group.x = min_x
        group.y = min_y
        return group

    async def load_font(self, face: FontName) -> None:
        await self.fonts.load(face)
        self._loaded_fonts.add(face.key)

    def notify(self, message: str, error: bool = False) -> None:
        level = logging.ERROR if error else logging.INFO
        logger.log(level, f"[notify] {message}")
        self.notifications.append((message, error))
        if self.on_notify is not None:
            self.on_notify(message, error)

    def image_bytes(self, image_hash: str) -> Optional[bytes]:
        return self.images.get(image_hash)
