# slidefy/domain/materializer.py
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from slidefy.delivery.schemas.body import (
    BlurEffect,
    ImagePaint,
    NodeType,
    ShadowEffect,
    SolidPaint,
    TemplateNode,
)
from slidefy.domain import codec
from slidefy.domain.canvas import CanvasHost
from slidefy.domain.errors import SlidefyError
from slidefy.domain.fonts import FontResolver

# --- PENGATURAN LOGGER ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [MATERIALIZE] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

SCALE_MODES = ("FILL", "FIT", "CROP", "TILE")
SPACING_UNITS = ("PIXELS", "PERCENT")
# Vector kinds are skipped rather than approximated; SLICE nodes are recreated by the partitioner
SKIPPED_TYPES = {
    NodeType.SLICE.value,
    NodeType.VECTOR.value,
    NodeType.BOOLEAN_OPERATION.value,
    NodeType.STAR.value,
    NodeType.LINE.value,
    NodeType.ELLIPSE.value,
    NodeType.POLYGON.value,
}
PLACEHOLDER_NAME = ".placeholder"
MIN_SIZE = 0.01

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_scale_mode(mode: Optional[str]) -> str:
    if mode in SCALE_MODES:
        return mode
    return "FILL"


def photo_index(name: str, prefix: str) -> Optional[int]:
    """Zero-based index of a photo layer such as ``photo-3``, or None."""
    if not prefix or not name.startswith(prefix):
        return None
    match = _LEADING_INT.match(name[len(prefix):])
    if match is None:
        return None
    return int(match.group(1)) - 1


def normalize_letter_spacing(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return {"unit": "PIXELS", "value": float(value)}
    if isinstance(value, Mapping):
        unit = value.get("unit")
        return {
            "unit": unit if unit in SPACING_UNITS else "PIXELS",
            "value": float(value.get("value") or 0),
        }
    return None


def normalize_line_height(value: Any) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return {"unit": "PIXELS", "value": float(value)}
    if isinstance(value, str):
        return {"unit": "AUTO"} if value.upper() == "AUTO" else None
    if isinstance(value, Mapping):
        unit = value.get("unit")
        if unit == "AUTO" or value.get("value") is None:
            return {"unit": "AUTO"}
        return {
            "unit": unit if unit in SPACING_UNITS else "PIXELS",
            "value": float(value["value"]),
        }
    return None


def _resize_from(element, node: TemplateNode) -> None:
    if node.width is not None and node.height is not None:
        element.resize(max(node.width, MIN_SIZE), max(node.height, MIN_SIZE))


def _rgb(color) -> Dict[str, float]:
    return {"r": color.r, "g": color.g, "b": color.b}


class NodeMaterializer:
    """Turns a template node tree into canvas elements.

    ``materialize`` never raises: an unsupported node or a failing subtree
    contributes nothing and its siblings are still built. Children are built
    strictly in declared order since later elements stack above earlier ones.
    """

    def __init__(
        self,
        host: CanvasHost,
        fonts: FontResolver,
        user_images: Sequence[Optional[bytes]],
        photo_prefix: str,
        embedded_images: Optional[Mapping[str, str]] = None,
    ):
        self.host = host
        self.fonts = fonts
        self.user_images = list(user_images)
        self.photo_prefix = photo_prefix
        self.embedded_images = embedded_images or {}
        self.skipped: List[str] = []
        self._handlers: Dict[str, Callable[[TemplateNode], Awaitable[Any]]] = {
            NodeType.FRAME.value: self._create_frame,
            NodeType.GROUP.value: self._create_group,
            NodeType.RECTANGLE.value: self._create_rectangle,
            NodeType.TEXT.value: self._create_text,
        }

    async def materialize(self, node: TemplateNode) -> Optional[Any]:
        try:
            return await self._build(node)
        except Exception as e:
            logger.warning(f"Node '{node.name}' ({node.type}) gagal dibuat, dilewati: {type(e).__name__}: {e}")
            self.skipped.append(node.id or node.name)
            return None

    async def _build(self, node: TemplateNode) -> Optional[Any]:
        handler = self._handlers.get(node.type)
        if handler is None:
            if node.type not in SKIPPED_TYPES:
                logger.warning(f"Tipe node tidak didukung: {node.type} ('{node.name}')")
            self.skipped.append(node.id or node.name)
            return None

        if node.type == NodeType.GROUP.value:
            return await handler(node)

        element = await handler(node)
        self._apply_common(element, node)
        self._apply_fills(element, node)
        self._apply_strokes(element, node)
        self._apply_effects(element, node)

        if node.type == NodeType.FRAME.value:
            for child in await self._materialize_children(node):
                element.append_child(child)
        return element

    async def _materialize_children(self, node: TemplateNode) -> List[Any]:
        children = []
        for child_data in node.children or []:
            child = await self.materialize(child_data)
            if child is not None:
                children.append(child)
        return children

    # --- per-type handlers ---

    async def _create_frame(self, node: TemplateNode):
        frame = self.host.create_frame()
        frame.name = node.name
        _resize_from(frame, node)
        if node.clips_content is not None:
            frame.clips_content = node.clips_content
        if node.corner_radius is not None:
            frame.corner_radius = node.corner_radius
        return frame

    async def _create_rectangle(self, node: TemplateNode):
        rect = self.host.create_rectangle()
        rect.name = node.name
        _resize_from(rect, node)
        if node.corner_radius is not None:
            rect.corner_radius = node.corner_radius
        return rect

    async def _create_text(self, node: TemplateNode):
        text = self.host.create_text()
        text.name = node.name
        # the face must be loaded before any text property is written
        applied = await self.fonts.resolve(node.font_name)
        text.font_name = applied

        if node.characters:
            text.characters = node.characters
        if node.font_size:
            text.font_size = node.font_size
        if node.text_align_horizontal:
            text.text_align_horizontal = node.text_align_horizontal
        if node.text_align_vertical:
            text.text_align_vertical = node.text_align_vertical
        letter_spacing = normalize_letter_spacing(node.letter_spacing)
        if letter_spacing is not None:
            text.letter_spacing = letter_spacing
        line_height = normalize_line_height(node.line_height)
        if line_height is not None:
            text.line_height = line_height
        if node.text_case:
            text.text_case = node.text_case
        _resize_from(text, node)
        text.leading_trim = "CAP_HEIGHT"
        return text

    async def _create_group(self, node: TemplateNode):
        # groups are composed from members that already exist
        members = await self._materialize_children(node)
        if not members:
            placeholder = self.host.create_rectangle()
            placeholder.name = PLACEHOLDER_NAME
            placeholder.resize(1, 1)
            placeholder.visible = False
            members = [placeholder]
        try:
            group = self.host.group(members)
        except Exception:
            for member in members:
                member.remove()
            raise
        group.name = node.name
        self._apply_common(group, node)
        self._apply_effects(group, node)
        return group

    # --- attributes ---

    def _apply_common(self, element, node: TemplateNode) -> None:
        # template coordinates are relative to the parent
        element.x = node.x
        element.y = node.y
        element.visible = node.visible
        element.locked = node.locked
        element.opacity = node.opacity
        if node.rotation:
            element.rotation = node.rotation
        if node.blend_mode:
            element.blend_mode = node.blend_mode

    def _apply_fills(self, element, node: TemplateNode) -> None:
        if not node.fills or not hasattr(element, "fills"):
            return
        fills = []
        for paint in node.fills:
            if isinstance(paint, SolidPaint):
                fills.append({
                    "type": "SOLID",
                    "color": _rgb(paint.color),
                    "opacity": paint.opacity if paint.opacity is not None else 1,
                    "visible": paint.visible,
                })
            elif isinstance(paint, ImagePaint):
                image_fill = self._resolve_image_fill(node, paint)
                if image_fill is not None:
                    fills.append(image_fill)
        if fills:
            element.fills = fills

    def _resolve_image_fill(self, node: TemplateNode, paint: ImagePaint) -> Optional[Dict[str, Any]]:
        if self.photo_prefix and node.name.startswith(self.photo_prefix):
            index = photo_index(node.name, self.photo_prefix)
            if index is None or not 0 <= index < len(self.user_images):
                logger.info(f"Tidak ada foto pengguna untuk layer '{node.name}', fill dilewati.")
                return None
            data = self.user_images[index]
            if data is None:
                return None
            return self._bind_image(data, "FILL", node, f"foto pengguna #{index + 1}")

        encoded = self.embedded_images.get(node.id) if node.id else None
        if encoded:
            try:
                data = codec.decode(codec.strip_data_url(encoded))
            except SlidefyError as e:
                logger.warning(f"Gagal decode gambar dekoratif '{node.name}': {e.message}")
                return None
            return self._bind_image(data, normalize_scale_mode(paint.scale_mode), node, "gambar dekoratif")
        return None

    def _bind_image(self, data: bytes, scale_mode: str, node: TemplateNode, label: str) -> Optional[Dict[str, Any]]:
        try:
            image = self.host.create_image(data)
        except SlidefyError as e:
            logger.warning(f"Gagal memuat {label} untuk '{node.name}': {e.message}")
            return None
        return {"type": "IMAGE", "scaleMode": scale_mode, "imageHash": image.hash}

    def _apply_strokes(self, element, node: TemplateNode) -> None:
        if not hasattr(element, "strokes"):
            return
        if node.strokes:
            strokes = [
                {
                    "type": "SOLID",
                    "color": _rgb(paint.color),
                    "opacity": paint.opacity if paint.opacity is not None else 1,
                }
                for paint in node.strokes
                if isinstance(paint, SolidPaint)
            ]
            if strokes:
                element.strokes = strokes
        if node.stroke_weight is not None:
            element.stroke_weight = node.stroke_weight

    def _apply_effects(self, element, node: TemplateNode) -> None:
        if not node.effects:
            return
        effects = []
        for effect in node.effects:
            if isinstance(effect, ShadowEffect):
                effects.append({
                    "type": effect.type,
                    "color": {"r": effect.color.r, "g": effect.color.g, "b": effect.color.b, "a": effect.color.a},
                    "offset": {"x": effect.offset.x, "y": effect.offset.y},
                    "radius": effect.radius,
                    "spread": effect.spread if effect.spread is not None else 0,
                    "visible": effect.visible is not False,
                    "blendMode": effect.blend_mode or "NORMAL",
                })
            elif isinstance(effect, BlurEffect):
                effects.append({
                    "type": effect.type,
                    "radius": effect.radius,
                    "visible": effect.visible is not False,
                })
        if effects:
            element.effects = effects
