# slidefy/domain/partitioner.py
import logging
from typing import Any, List

from slidefy.domain.canvas import CanvasHost
from slidefy.domain.errors import PartitioningError
from slidefy.domain.fonts import FontResolver

logger = logging.getLogger(__name__)

SLICE_NAME = "slice-{index}"

EXPORT_INSTRUCTIONS_TITLE = "Export instructions"
EXPORT_INSTRUCTIONS_TEXT = (
    "How to export the slides:\n\n"
    "1. Select the Slice layers (slice-1 to slice-{slides}) in the layers panel\n"
    "2. In the right panel, click Export\n"
    "3. Choose the format (PNG or JPG) and the scale (1x, 2x, etc.)\n"
    "4. Click Export to download the images"
)
INSTRUCTIONS_PADDING = 16
INSTRUCTIONS_TEXT_HEIGHT = 400


def create_export_slices(host: CanvasHost, root, slides: int, slide_width: float, slide_height: float) -> List[Any]:
    """Tiles ``slides`` export regions left to right from the root's origin."""
    if slides < 0 or slide_width <= 0 or slide_height <= 0:
        raise PartitioningError(
            f"Invalid slide geometry: {slides} x {slide_width}x{slide_height}",
            details={"slides": slides, "slide_width": slide_width, "slide_height": slide_height},
        )
    total_width = slides * slide_width
    if total_width > getattr(root, "width", total_width):
        logger.warning(f"Slices ({total_width}px) melebihi lebar template ({root.width}px).")

    created = []
    try:
        for i in range(slides):
            region = host.create_slice()
            region.name = SLICE_NAME.format(index=i + 1)
            region.x = i * slide_width
            region.y = 0
            region.resize(slide_width, slide_height)
            root.append_child(region)
            created.append(region)
    except (AttributeError, ValueError) as e:
        for region in created:
            region.remove()
        raise PartitioningError(f"Export slices could not be attached: {e}") from e
    return created


async def create_export_instructions_frame(host: CanvasHost, fonts: FontResolver, width: float, slides: int):
    frame = host.create_frame()
    frame.name = EXPORT_INSTRUCTIONS_TITLE
    frame.fills = [{"type": "SOLID", "color": {"r": 0.97, "g": 0.97, "b": 0.98}, "opacity": 1}]
    frame.resize(width, 1)

    text = host.create_text()
    text.name = "instructions"
    text.font_name = await fonts.resolve()
    text.characters = EXPORT_INSTRUCTIONS_TEXT.format(slides=slides)
    text.font_size = 14
    text.x = INSTRUCTIONS_PADDING
    text.y = INSTRUCTIONS_PADDING
    text.resize(max(width - 2 * INSTRUCTIONS_PADDING, 1), INSTRUCTIONS_TEXT_HEIGHT)
    text.fills = [{"type": "SOLID", "color": {"r": 0.2, "g": 0.2, "b": 0.25}, "opacity": 1}]

    frame.append_child(text)
    frame.clips_content = False
    frame.resize(width, text.height + 2 * INSTRUCTIONS_PADDING)
    return frame
