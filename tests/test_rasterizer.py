"""
Slice rasterization tests
"""

import io

import pytest
from PIL import Image

from slidefy.domain.compositing import apply_grayscale
from slidefy.domain.partitioner import create_export_slices
from slidefy.infrastructure.render.rasterizer import (
    SliceRenderer,
    crop_to_fill,
    encode_image,
    fit_inside,
    tile,
)

from tests.conftest import make_png


def close(pixel, expected, tolerance=3):
    return all(abs(a - b) <= tolerance for a, b in zip(pixel, expected))


def filled_rect(canvas, data, x, y, w, h, name="photo-1", scale_mode="FILL"):
    rect = canvas.create_rectangle()
    rect.name = name
    rect.x, rect.y = x, y
    rect.resize(w, h)
    rect.fills = [{"type": "IMAGE", "scaleMode": scale_mode, "imageHash": canvas.create_image(data).hash}]
    return rect


@pytest.fixture
def root(canvas):
    frame = canvas.create_frame()
    frame.name = "Carousel"
    frame.resize(120, 50)
    frame.fills = [{"type": "SOLID", "color": {"r": 1, "g": 0, "b": 0}, "opacity": 1}]
    return frame


class TestScalers:

    def test_crop_to_fill_covers_target(self):
        out = crop_to_fill(Image.new("RGB", (200, 100)), 50, 50)
        assert out.size == (50, 50)

    def test_fit_inside_letterboxes(self):
        out = fit_inside(Image.new("RGBA", (200, 100), (0, 0, 255, 255)), 50, 50)
        assert out.size == (50, 50)
        assert out.getpixel((25, 2))[3] == 0
        assert close(out.getpixel((25, 25)), (0, 0, 255, 255))

    def test_tile_repeats(self):
        out = tile(Image.new("RGBA", (10, 10), (0, 255, 0, 255)), 25, 25)
        assert close(out.getpixel((24, 24)), (0, 255, 0, 255))


class TestSliceRenderer:

    def test_render_solid_frame_and_photo(self, canvas, root):
        root.append_child(filled_rect(canvas, make_png((0, 0, 255)), 10, 10, 30, 30))

        image = SliceRenderer(canvas).render(root)

        assert image.size == (120, 50)
        assert close(image.getpixel((2, 2)), (255, 0, 0, 255))
        assert close(image.getpixel((25, 25)), (0, 0, 255, 255))

    def test_render_slices(self, canvas, root):
        root.append_child(filled_rect(canvas, make_png((0, 0, 255)), 70, 0, 50, 50))
        create_export_slices(canvas, root, 2, 60, 50)

        slices = SliceRenderer(canvas).render_slices(root)

        assert [s.name for s in slices] == ["slice-1", "slice-2"]
        assert [s.image.size for s in slices] == [(60, 50), (60, 50)]
        assert [s.x for s in slices] == [0, 60]
        assert close(slices[0].image.getpixel((30, 25)), (255, 0, 0, 255))
        assert close(slices[1].image.getpixel((30, 25)), (0, 0, 255, 255))

    def test_hidden_and_transparent_layers(self, canvas, root):
        hidden = filled_rect(canvas, make_png((0, 0, 255)), 0, 0, 60, 50)
        hidden.visible = False
        faded = filled_rect(canvas, make_png((0, 0, 255)), 60, 0, 60, 50)
        faded.opacity = 0
        root.append_child(hidden)
        root.append_child(faded)

        image = SliceRenderer(canvas).render(root)

        assert close(image.getpixel((30, 25)), (255, 0, 0, 255))
        assert close(image.getpixel((90, 25)), (255, 0, 0, 255))

    def test_frame_clips_children(self, canvas, root):
        inner = canvas.create_frame()
        inner.resize(20, 20)
        inner.fills = []
        inner.append_child(filled_rect(canvas, make_png((0, 0, 255)), 10, 10, 30, 30))
        root.append_child(inner)

        image = SliceRenderer(canvas).render(root)

        assert close(image.getpixel((15, 15)), (0, 0, 255, 255))
        assert close(image.getpixel((25, 25)), (255, 0, 0, 255))

    def test_grayscale_overlay_removes_color(self, canvas, root):
        root.append_child(filled_rect(canvas, make_png((0, 0, 255)), 10, 10, 30, 30))
        apply_grayscale(canvas, root, "photo-")

        r, g, b, a = SliceRenderer(canvas).render(root).getpixel((25, 25))

        assert a == 255
        assert max(r, g, b) - min(r, g, b) <= 2

    @pytest.mark.asyncio
    async def test_text_is_drawn(self, canvas, root, resolver):
        text = canvas.create_text()
        text.font_name = await resolver.resolve()
        text.characters = "HELLO"
        text.font_size = 24
        text.fills = [{"type": "SOLID", "color": {"r": 0, "g": 0, "b": 0}, "opacity": 1}]
        text.resize(110, 40)
        text.x, text.y = 5, 5
        root.append_child(text)

        image = SliceRenderer(canvas).render(root)

        dark = [p for p in image.getdata() if p[0] < 100]
        assert dark


class TestEncode:

    def test_png_and_jpeg(self):
        image = Image.new("RGBA", (8, 8), (10, 20, 30, 255))

        png = encode_image(image, "png")
        jpeg = encode_image(image, "jpg", quality=80)

        assert Image.open(io.BytesIO(png)).format == "PNG"
        assert Image.open(io.BytesIO(jpeg)).format == "JPEG"
