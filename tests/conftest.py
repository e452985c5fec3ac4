"""
Shared fixtures: Pillow-generated images, a small seven-slide template and an in-memory canvas
"""

import base64
import io
from typing import Any, Dict, Tuple

import pytest
from PIL import Image

from slidefy.config.settings import Settings
from slidefy.delivery.schemas.body import FontName, TemplateData
from slidefy.domain.carousel_service import CarouselService
from slidefy.domain.fonts import FontResolver
from slidefy.infrastructure.canvas.font_library import FontLibrary
from slidefy.infrastructure.canvas.memory_canvas import MemoryCanvas
from slidefy.infrastructure.catalog.template_catalog import TemplateCatalog

SLIDE_WIDTH = 60
SLIDE_HEIGHT = 75
SLIDES = 7
DEFAULT_FACE = FontName(family="Inter", style="Regular")

BLUE = (0, 0, 255)
GREEN = (0, 200, 0)
YELLOW = (255, 220, 0)


def make_png(color: Tuple[int, int, int] = BLUE, size: Tuple[int, int] = (40, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def image_paint(scale_mode: str = "FILL") -> Dict[str, Any]:
    return {"type": "IMAGE", "scaleMode": scale_mode, "imageRef": "ref"}


def solid_paint(r: float, g: float, b: float) -> Dict[str, Any]:
    return {"type": "SOLID", "color": {"r": r, "g": g, "b": b}}


def carousel_template_dict(template_id: str = "t7", grayscale: bool = False) -> Dict[str, Any]:
    width = SLIDE_WIDTH * SLIDES
    return {
        "id": template_id,
        "name": "Seven Slides",
        "version": 1,
        "width": width,
        "height": SLIDE_HEIGHT,
        "slideWidth": SLIDE_WIDTH,
        "slideHeight": SLIDE_HEIGHT,
        "slides": SLIDES,
        "photoLayerNamePrefix": "photo-",
        "photoGrayscale": grayscale,
        "embeddedImages": {"1:8": f"data:image/png;base64,{to_base64(make_png(YELLOW, (20, 20)))}"},
        "nodeTree": {
            "id": "1:1",
            "type": "FRAME",
            "name": "Carousel",
            "width": width,
            "height": SLIDE_HEIGHT,
            "fills": [solid_paint(1, 1, 1)],
            "children": [
                {"id": "1:2", "type": "RECTANGLE", "name": "background", "width": width, "height": SLIDE_HEIGHT,
                 "fills": [solid_paint(0.9, 0.2, 0.2)]},
                {"id": "1:3", "type": "RECTANGLE", "name": "photo-1", "x": 5, "y": 5, "width": 50, "height": 40,
                 "fills": [image_paint()]},
                {"id": "1:4", "type": "GROUP", "name": "Gallery", "x": 65, "y": 5, "children": [
                    {"id": "1:5", "type": "RECTANGLE", "name": "photo-2", "width": 50, "height": 40,
                     "fills": [image_paint()]},
                    {"id": "1:6", "type": "TEXT", "name": "Caption", "y": 45, "width": 50, "height": 12,
                     "characters": "Hello", "fontSize": 10, "fontName": {"family": "Inter", "style": "Bold"},
                     "fills": [solid_paint(0, 0, 0)]},
                ]},
                {"id": "1:7", "type": "VECTOR", "name": "Arrow"},
                {"id": "1:8", "type": "RECTANGLE", "name": "logo", "x": 380, "y": 5, "width": 30, "height": 30,
                 "fills": [image_paint("FIT")]},
            ],
        },
    }


@pytest.fixture
def png_blue() -> bytes:
    return make_png(BLUE)


@pytest.fixture
def png_green() -> bytes:
    return make_png(GREEN)


@pytest.fixture
def template_dict() -> Dict[str, Any]:
    return carousel_template_dict()


@pytest.fixture
def template(template_dict) -> TemplateData:
    return TemplateData.model_validate(template_dict)


@pytest.fixture
def font_library() -> FontLibrary:
    return FontLibrary(None, DEFAULT_FACE)


@pytest.fixture
def canvas(font_library) -> MemoryCanvas:
    return MemoryCanvas(font_library, max_image_dimension=1024, max_image_bytes=1024 * 1024)


@pytest.fixture
def resolver(canvas) -> FontResolver:
    return FontResolver(canvas, DEFAULT_FACE)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        TEMPLATES_DIR="",
        FONTS_DIR="",
        DEFAULT_FONT_FAMILY="Inter",
        DEFAULT_FONT_STYLE="Regular",
        FONT_ALIASES={},
        EXPORT_INSTRUCTIONS_ENABLED=True,
        EXPORT_INSTRUCTIONS_GAP=24,
        RENDER_FORMAT="png",
        CLOUDINARY_URL=None,
        CLOUDINARY_CLOUD_NAME=None,
        CLOUDINARY_API_KEY=None,
        CLOUDINARY_API_SECRET=None,
    )


@pytest.fixture
def catalog() -> TemplateCatalog:
    return TemplateCatalog([
        TemplateData.model_validate(carousel_template_dict("t7")),
        TemplateData.model_validate(carousel_template_dict("t7-gray", grayscale=True)),
    ])


@pytest.fixture
def service(catalog, font_library, test_settings) -> CarouselService:
    return CarouselService(catalog, fonts=font_library, config=test_settings)
