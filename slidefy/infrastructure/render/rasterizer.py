# slidefy/infrastructure/render/rasterizer.py
import io
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw

from slidefy.infrastructure.canvas.memory_canvas import MemoryCanvas
from slidefy.infrastructure.canvas.scene import ContainerElement, SceneElement

logger = logging.getLogger(__name__)

AUTO_LINE_HEIGHT = 1.2


@dataclass
class RenderedSlice:
    name: str
    x: int
    y: int
    image: Image.Image


def _rgba(color: Dict[str, float], opacity: float = 1.0) -> Tuple[int, int, int, int]:
    alpha = color.get("a", 1.0) * opacity
    return (
        int(round(color["r"] * 255)),
        int(round(color["g"] * 255)),
        int(round(color["b"] * 255)),
        int(round(max(0.0, min(1.0, alpha)) * 255)),
    )


# --- image fills ---

def crop_to_fill(image_pil: Image.Image, target_w: int, target_h: int) -> Image.Image:
    source_w, source_h = image_pil.size
    target_ratio = target_w / target_h
    source_ratio = source_w / source_h

    if source_ratio > target_ratio:
        scale_factor = target_h / source_h
        scaled_w = max(target_w, int(source_w * scale_factor))
        scaled_h = target_h
        resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
        crop_x = (scaled_w - target_w) // 2
        return resized_image.crop((crop_x, 0, crop_x + target_w, scaled_h))
    else:
        scale_factor = target_w / source_w
        scaled_w = target_w
        scaled_h = max(target_h, int(source_h * scale_factor))
        resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
        crop_y = (scaled_h - target_h) // 2
        return resized_image.crop((0, crop_y, scaled_w, crop_y + target_h))


def fit_inside(image_pil: Image.Image, target_w: int, target_h: int) -> Image.Image:
    source_w, source_h = image_pil.size
    scale_factor = min(target_w / source_w, target_h / source_h)
    scaled = image_pil.resize(
        (max(1, int(source_w * scale_factor)), max(1, int(source_h * scale_factor))),
        Image.Resampling.LANCZOS,
    )
    canvas = Image.new("RGBA", (target_w, target_h), (0, 0, 0, 0))
    canvas.paste(scaled, ((target_w - scaled.width) // 2, (target_h - scaled.height) // 2))
    return canvas


def tile(image_pil: Image.Image, target_w: int, target_h: int) -> Image.Image:
    canvas = Image.new("RGBA", (target_w, target_h), (0, 0, 0, 0))
    for top in range(0, target_h, image_pil.height):
        for left in range(0, target_w, image_pil.width):
            canvas.paste(image_pil, (left, top))
    return canvas


SCALERS = {"FILL": crop_to_fill, "CROP": crop_to_fill, "FIT": fit_inside, "TILE": tile}


# --- compositing helpers ---

def _paste(target: Image.Image, layer: Image.Image, x: int, y: int) -> None:
    """alpha_composite that tolerates layers hanging over any edge."""
    left, top = max(x, 0), max(y, 0)
    right, bottom = min(x + layer.width, target.width), min(y + layer.height, target.height)
    if right <= left or bottom <= top:
        return
    visible = layer.crop((left - x, top - y, right - x, bottom - y))
    target.alpha_composite(visible, dest=(left, top))


def _lum(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.3 + rgb[..., 1] * 0.59 + rgb[..., 2] * 0.11


def _set_lum(rgb: np.ndarray, lum: np.ndarray) -> np.ndarray:
    out = rgb + (lum - _lum(rgb))[..., None]
    l = _lum(out)[..., None]
    n = out.min(axis=-1, keepdims=True)
    x = out.max(axis=-1, keepdims=True)
    with np.errstate(divide="ignore", invalid="ignore"):
        low = np.where(n < 0, l + (out - l) * l / (l - n), out)
        out = np.where(x > 1, l + (low - l) * (1 - l) / (x - l), low)
    return np.clip(np.nan_to_num(out), 0, 1)


def _blend_color(target: Image.Image, layer: Image.Image, x: int, y: int) -> None:
    """COLOR blend: hue and saturation from the layer, luminosity from what lies beneath."""
    left, top = max(x, 0), max(y, 0)
    right, bottom = min(x + layer.width, target.width), min(y + layer.height, target.height)
    if right <= left or bottom <= top:
        return
    src = np.asarray(layer.crop((left - x, top - y, right - x, bottom - y)), dtype=np.float32) / 255.0
    dst = np.asarray(target.crop((left, top, right, bottom)), dtype=np.float32) / 255.0

    src_a = src[..., 3:4]
    blended = _set_lum(src[..., :3], _lum(dst[..., :3]))
    rgb = dst[..., :3] * (1 - src_a) + blended * src_a
    alpha = dst[..., 3:4] + src_a * (1 - dst[..., 3:4])
    out = np.concatenate([rgb, alpha], axis=-1)
    target.paste(Image.fromarray((out * 255).round().astype(np.uint8), "RGBA"), (left, top))


def _rotated_box(left: float, top: float, width: float, height: float, degrees: float) -> Tuple[float, float, float, float]:
    """Bounds of a box after rotating it counter-clockwise around the origin (y down)."""
    theta = math.radians(degrees)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    xs, ys = [], []
    for px, py in ((left, top), (left + width, top), (left, top + height), (left + width, top + height)):
        xs.append(px * cos_t + py * sin_t)
        ys.append(-px * sin_t + py * cos_t)
    return min(xs), min(ys), max(xs), max(ys)


class SliceRenderer:
    """Rasterizes a carousel root from a MemoryCanvas and cuts it into slices."""

    def __init__(self, canvas: MemoryCanvas):
        self.canvas = canvas
        self._images: Dict[str, Image.Image] = {}

    def render(self, root: SceneElement) -> Image.Image:
        surface = Image.new("RGBA", (max(1, math.ceil(root.width)), max(1, math.ceil(root.height))), (0, 0, 0, 0))
        self._composite(surface, root, -root.x, -root.y)
        return surface

    def render_slices(self, root: ContainerElement) -> List[RenderedSlice]:
        full = self.render(root)
        slices = []
        for region in root.children:
            if region.type != "SLICE":
                continue
            box = (int(region.x), int(region.y), int(region.x + region.width), int(region.y + region.height))
            slices.append(RenderedSlice(name=region.name, x=box[0], y=box[1], image=full.crop(box)))
        logger.info(f"{len(slices)} slice dirender dari '{root.name}'.")
        return slices

    # --- tree walk ---

    def _composite(self, target: Image.Image, el: SceneElement, ox: float, oy: float) -> None:
        if not el.visible or el.type == "SLICE":
            return
        layer, dx, dy = self._render_layer(el)
        if layer is None:
            return
        if el.opacity < 1:
            alpha = layer.getchannel("A").point(lambda a: int(a * max(el.opacity, 0)))
            layer.putalpha(alpha)
        layer, dx, dy = self._apply_effects(layer, dx, dy, el.effects)
        if el.rotation:
            left, top, _, _ = _rotated_box(dx, dy, layer.width, layer.height, el.rotation)
            layer = layer.rotate(el.rotation, resample=Image.Resampling.BICUBIC, expand=True)
            dx, dy = left, top

        x = int(round(ox + el.x + dx))
        y = int(round(oy + el.y + dy))
        if el.blend_mode == "COLOR":
            _blend_color(target, layer, x, y)
        else:
            _paste(target, layer, x, y)

    def _render_layer(self, el: SceneElement) -> Tuple[Optional[Image.Image], float, float]:
        """Renders ``el`` and its subtree; returns the layer and its offset from the element origin."""
        left, top, right, bottom = self._own_box(el)
        width, height = math.ceil(right - left), math.ceil(bottom - top)
        if width < 1 or height < 1:
            return None, 0, 0
        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))

        if el.type in ("FRAME", "RECTANGLE"):
            self._paint_shape(layer, el, -left, -top)
        elif el.type == "TEXT":
            self._paint_text(layer, el)
        if isinstance(el, ContainerElement):
            for child in el.children:
                self._composite(layer, child, -left, -top)
        return layer, left, top

    def _extent(self, el: SceneElement) -> Tuple[float, float, float, float]:
        if el.type == "GROUP":
            left, top, right, bottom = math.inf, math.inf, -math.inf, -math.inf
        else:
            left, top, right, bottom = 0.0, 0.0, el.width, el.height
        for child in getattr(el, "children", []):
            if not child.visible or child.type == "SLICE":
                continue
            c_left, c_top, c_right, c_bottom = self._own_box(child)
            if child.rotation:
                c_left, c_top, c_right, c_bottom = _rotated_box(c_left, c_top, c_right - c_left, c_bottom - c_top, child.rotation)
            left = min(left, child.x + c_left)
            top = min(top, child.y + c_top)
            right = max(right, child.x + c_right)
            bottom = max(bottom, child.y + c_bottom)
        if left == math.inf:
            return 0.0, 0.0, 0.0, 0.0
        return left, top, right, bottom

    def _own_box(self, el: SceneElement) -> Tuple[float, float, float, float]:
        if isinstance(el, ContainerElement):
            if getattr(el, "clips_content", False):
                return 0.0, 0.0, el.width, el.height
            return self._extent(el)
        if el.type == "TEXT":
            return (0.0, 0.0, *self._text_size(el))
        return 0.0, 0.0, el.width, el.height

    # --- paints ---

    def _image(self, image_hash: str) -> Optional[Image.Image]:
        if image_hash not in self._images:
            data = self.canvas.image_bytes(image_hash)
            if data is None:
                return None
            self._images[image_hash] = Image.open(io.BytesIO(data)).convert("RGBA")
        return self._images[image_hash]

    def _paint_shape(self, layer: Image.Image, el: SceneElement, ox: float, oy: float) -> None:
        width, height = int(round(el.width)), int(round(el.height))
        if width < 1 or height < 1:
            return
        box = (int(round(ox)), int(round(oy)))
        radius = int(round(getattr(el, "corner_radius", 0) or 0))
        mask = Image.new("L", (width, height), 0)
        ImageDraw.Draw(mask).rounded_rectangle((0, 0, width - 1, height - 1), radius=radius, fill=255)

        for paint in el.fills:
            if paint.get("visible") is False:
                continue
            if paint["type"] == "SOLID":
                fill = Image.new("RGBA", (width, height), _rgba(paint["color"], paint.get("opacity", 1)))
            elif paint["type"] == "IMAGE":
                source = self._image(paint.get("imageHash", ""))
                if source is None:
                    continue
                fill = SCALERS.get(paint.get("scaleMode"), crop_to_fill)(source, width, height).convert("RGBA")
            else:
                continue
            # pasting through the mask keeps the paint alpha inside the rounded box
            shaped = Image.new("RGBA", (width, height), (0, 0, 0, 0))
            shaped.paste(fill, (0, 0), mask=mask)
            _paste(layer, shaped, *box)

        if el.strokes and el.stroke_weight > 0:
            outline = Image.new("RGBA", (width, height), (0, 0, 0, 0))
            draw = ImageDraw.Draw(outline)
            for paint in el.strokes:
                draw.rounded_rectangle(
                    (0, 0, width - 1, height - 1),
                    radius=radius,
                    outline=_rgba(paint["color"], paint.get("opacity", 1)),
                    width=max(1, int(round(el.stroke_weight))),
                )
            _paste(layer, outline, *box)

    # --- text ---

    def _font(self, el):
        return self.canvas.fonts.truetype(el.font_name, el.font_size)

    @staticmethod
    def _cased(el) -> str:
        text = el.characters
        if el.text_case == "UPPER":
            return text.upper()
        if el.text_case == "LOWER":
            return text.lower()
        if el.text_case == "TITLE":
            return text.title()
        return text

    @staticmethod
    def _line_height(el) -> float:
        lh = el.line_height
        if lh.get("unit") == "PIXELS":
            return lh["value"]
        if lh.get("unit") == "PERCENT":
            return el.font_size * lh["value"] / 100
        return el.font_size * AUTO_LINE_HEIGHT

    @staticmethod
    def _spacing(el) -> float:
        ls = el.letter_spacing
        if ls.get("unit") == "PERCENT":
            return el.font_size * ls.get("value", 0) / 100
        return ls.get("value", 0)

    def _measure(self, font, line: str, spacing: float) -> float:
        if not line:
            return 0.0
        return font.getlength(line) + spacing * (len(line) - 1)

    def _wrap(self, el, font, spacing: float) -> List[str]:
        lines = []
        for paragraph in self._cased(el).split("\n"):
            if el.width <= 0:
                lines.append(paragraph)
                continue
            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if current and self._measure(font, candidate, spacing) > el.width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            lines.append(current)
        return lines

    def _text_size(self, el) -> Tuple[float, float]:
        if el.width > 0 and el.height > 0:
            return el.width, el.height
        font = self._font(el)
        spacing = self._spacing(el)
        lines = self._wrap(el, font, spacing)
        width = max((self._measure(font, line, spacing) for line in lines), default=0.0)
        return max(el.width, width), max(el.height, self._line_height(el) * len(lines))

    def _paint_text(self, layer: Image.Image, el) -> None:
        if not el.characters:
            return
        font = self._font(el)
        spacing = self._spacing(el)
        lines = self._wrap(el, font, spacing)
        line_height = self._line_height(el)

        solid = next((p for p in el.fills if p["type"] == "SOLID" and p.get("visible") is not False), None)
        fill = _rgba(solid["color"], solid.get("opacity", 1)) if solid else (0, 0, 0, 0)
        stroke = el.strokes[0] if el.strokes else None
        stroke_kwargs = {}
        if stroke is not None:
            stroke_kwargs = {"stroke_width": max(1, int(round(el.stroke_weight))), "stroke_fill": _rgba(stroke["color"], stroke.get("opacity", 1))}
        if solid is None and stroke is None:
            return

        block_height = line_height * len(lines)
        if el.text_align_vertical == "CENTER":
            y = (layer.height - block_height) / 2
        elif el.text_align_vertical == "BOTTOM":
            y = layer.height - block_height
        else:
            y = 0.0

        draw = ImageDraw.Draw(layer)
        for line in lines:
            line_width = self._measure(font, line, spacing)
            if el.text_align_horizontal == "CENTER":
                x = (layer.width - line_width) / 2
            elif el.text_align_horizontal == "RIGHT":
                x = layer.width - line_width
            else:
                x = 0.0
            if spacing:
                for ch in line:
                    draw.text((x, y), ch, font=font, fill=fill, **stroke_kwargs)
                    x += font.getlength(ch) + spacing
            else:
                draw.text((x, y), line, font=font, fill=fill, **stroke_kwargs)
            y += line_height

    # --- effects ---

    def _apply_effects(self, layer: Image.Image, dx: float, dy: float, effects) -> Tuple[Image.Image, float, float]:
        for effect in effects or []:
            if effect.get("visible") is False:
                continue
            kind = effect.get("type")
            if kind == "LAYER_BLUR":
                layer, dx, dy = self._blur(layer, dx, dy, effect.get("radius", 0))
            elif kind == "DROP_SHADOW":
                layer, dx, dy = self._drop_shadow(layer, dx, dy, effect)
            else:
                logger.debug(f"Efek {kind} tidak dirender.")
        return layer, dx, dy

    @staticmethod
    def _pad(layer: Image.Image, pad: int) -> Image.Image:
        padded = Image.new("RGBA", (layer.width + 2 * pad, layer.height + 2 * pad), (0, 0, 0, 0))
        padded.paste(layer, (pad, pad))
        return padded

    def _blur(self, layer: Image.Image, dx: float, dy: float, radius: float) -> Tuple[Image.Image, float, float]:
        if radius <= 0:
            return layer, dx, dy
        pad = int(math.ceil(radius))
        arr = np.array(self._pad(layer, pad))
        blurred = cv2.GaussianBlur(arr, (0, 0), sigmaX=radius / 2)
        return Image.fromarray(blurred, "RGBA"), dx - pad, dy - pad

    def _drop_shadow(self, layer: Image.Image, dx: float, dy: float, effect) -> Tuple[Image.Image, float, float]:
        radius = effect.get("radius", 0) or 0
        spread = effect.get("spread", 0) or 0
        offset = effect.get("offset", {})
        off_x, off_y = int(round(offset.get("x", 0))), int(round(offset.get("y", 0)))
        pad = int(math.ceil(radius + abs(spread))) + max(abs(off_x), abs(off_y))

        base = self._pad(layer, pad)
        alpha = np.array(base.getchannel("A"))
        if spread > 0:
            kernel = np.ones((2 * int(spread) + 1, 2 * int(spread) + 1), np.uint8)
            alpha = cv2.dilate(alpha, kernel)
        if radius > 0:
            alpha = cv2.GaussianBlur(alpha, (0, 0), sigmaX=radius / 2)
        r, g, b, a = _rgba(effect.get("color", {"r": 0, "g": 0, "b": 0, "a": 0.25}))
        shadow_alpha = (alpha.astype(np.float32) * (a / 255.0)).astype(np.uint8)
        shadow = Image.new("RGBA", base.size, (r, g, b, 0))
        shadow.putalpha(Image.fromarray(shadow_alpha, "L"))

        out = Image.new("RGBA", base.size, (0, 0, 0, 0))
        _paste(out, shadow, off_x, off_y)
        out.alpha_composite(base)
        return out, dx - pad, dy - pad


def encode_image(image: Image.Image, fmt: str = "png", quality: int = 88) -> bytes:
    fmt = (fmt or "png").lower()
    buf = io.BytesIO()
    if fmt in ("jpg", "jpeg"):
        image.convert("RGB").save(buf, format="JPEG", quality=quality, optimize=True)
    else:
        image.save(buf, format="PNG", optimize=True)
    return buf.getvalue()
