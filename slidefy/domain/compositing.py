# slidefy/domain/compositing.py
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from slidefy.domain.canvas import CanvasHost
from slidefy.domain.errors import CompositingError

logger = logging.getLogger(__name__)

GRAYSCALE_OVERLAY_NAME = "grayscale-overlay"
GRAYSCALE_OVERLAY_COLOR = {"r": 0.5, "g": 0.5, "b": 0.5}


class CompositingJournal:
    """Undo log of one compositing pass, replayed newest first on rollback."""

    def __init__(self):
        self._undo: List[Callable[[], None]] = []

    def __len__(self) -> int:
        return len(self._undo)

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()


def _record(journal: Optional[CompositingJournal], undo: Callable[[], None]) -> None:
    if journal is not None:
        journal.record(undo)


# --- Grayscale ---

def find_photo_layers(root, prefix: str) -> List[Any]:
    if not prefix:
        return []
    return [
        el for el in root.find_all(lambda n: n.name.startswith(prefix))
        if el.name != GRAYSCALE_OVERLAY_NAME and not _is_grayscale_wrapper(el) and not _is_grayscale_wrapper(el.parent)
    ]


def _is_grayscale_wrapper(element) -> bool:
    children = getattr(element, "children", None) or []
    return len(children) == 2 and children[1].name == GRAYSCALE_OVERLAY_NAME


def wrap_in_grayscale(host: CanvasHost, photo, journal: Optional[CompositingJournal] = None) -> Any:
    """Puts ``photo`` inside a wrapper frame with a COLOR-blended gray overlay.

    The wrapper takes the photo's slot in its parent and carries its position,
    size, visibility, lock and rotation; the photo sits at the wrapper origin.
    """
    parent = photo.parent
    if parent is None:
        raise CompositingError(f"Photo layer '{photo.name}' has no parent", details={"name": photo.name})
    index = parent.children.index(photo)
    saved = (photo.x, photo.y, photo.rotation, photo.visible, photo.locked)

    wrapper = host.create_frame()
    wrapper.name = f"{photo.name} (grayscale)"
    wrapper.fills = []
    wrapper.clips_content = False
    wrapper.resize(max(photo.width, 0.01), max(photo.height, 0.01))
    wrapper.x = photo.x
    wrapper.y = photo.y
    wrapper.visible = photo.visible
    wrapper.locked = photo.locked
    wrapper.rotation = photo.rotation

    def unwrap():
        # photo returns before the wrapper leaves so a group parent never empties
        if photo.parent is not parent:
            slot = parent.children.index(wrapper) if wrapper.parent is parent else index
            parent.insert_child(slot, photo)
        photo.x, photo.y, photo.rotation, photo.visible, photo.locked = saved
        wrapper.remove()

    # the wrapper goes in before the photo leaves, a group parent must never be empty
    parent.insert_child(index, wrapper)
    _record(journal, unwrap)
    wrapper.append_child(photo)
    photo.x = 0
    photo.y = 0
    photo.rotation = 0
    photo.visible = True
    photo.locked = False

    overlay = host.create_rectangle()
    overlay.name = GRAYSCALE_OVERLAY_NAME
    overlay.resize(wrapper.width, wrapper.height)
    overlay.x = 0
    overlay.y = 0
    overlay.fills = [{"type": "SOLID", "color": dict(GRAYSCALE_OVERLAY_COLOR), "opacity": 1}]
    overlay.blend_mode = "COLOR"
    wrapper.append_child(overlay)
    return wrapper


def apply_grayscale(host: CanvasHost, root, prefix: str, journal: Optional[CompositingJournal] = None) -> List[Any]:
    wrappers = []
    for photo in find_photo_layers(root, prefix):
        wrappers.append(wrap_in_grayscale(host, photo, journal))
    logger.info(f"Grayscale diterapkan pada {len(wrappers)} layer foto.")
    return wrappers


# --- Per-template typography ---

@dataclass(frozen=True)
class Placement:
    x: float
    y: float
    rotation: Optional[float] = None


@dataclass(frozen=True)
class TextRun:
    """TEXT children of a named container, matched by content and placed in reading order."""
    container_type: str
    container_name: str
    characters: str
    placements: Tuple[Placement, ...]
    container_position: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class TypographyOverride:
    # trimmed characters of TEXT children of ``content_frame`` -> placement
    content_frame: Optional[str] = None
    content_positions: Dict[str, Placement] = field(default_factory=dict)
    # contents whose stroke is their only paint
    stroke_only: Tuple[str, ...] = ()
    # TEXT name -> placement, searched anywhere under the root
    named_positions: Dict[str, Placement] = field(default_factory=dict)
    runs: Tuple[TextRun, ...] = ()


TYPOGRAPHY_OVERRIDES: Dict[str, TypographyOverride] = {
    "culto-jovem": TypographyOverride(
        content_frame="Main",
        content_positions={
            "Culto": Placement(70, 68),
            "Jo": Placement(20, 198),
            "VEM": Placement(189, 533),
        },
        stroke_only=("VEM",),
        named_positions={"Date": Placement(812, 296)},
        runs=(
            TextRun(
                container_type="GROUP",
                container_name="Container",
                characters="JUVENTUDE",
                placements=tuple(
                    Placement(x, y, rotation=-90.0)
                    for x, y in [(0, 0), (336, 176), (672, 352), (1008, 528), (1344, 704), (1680, 880), (2016, 1057)]
                ),
                container_position=(2176, -114),
            ),
        ),
    ),
}


def _reading_order(element) -> Tuple[float, float]:
    return (element.y, element.x)


def apply_typography_overrides(template_id: str, root, journal: Optional[CompositingJournal] = None) -> int:
    """Moves text runs of hand-tuned templates; returns how many elements moved."""
    override = TYPOGRAPHY_OVERRIDES.get(template_id)
    if override is None or not hasattr(root, "find_one"):
        return 0
    moved = 0

    if override.content_frame:
        frame = root.find_one(lambda n: n.type == "FRAME" and n.name == override.content_frame)
        if frame is not None:
            for child in frame.children:
                if child.type != "TEXT":
                    continue
                chars = child.characters.strip()
                placement = override.content_positions.get(chars)
                if placement is not None:
                    _place(child, placement, journal)
                    moved += 1
                if chars in override.stroke_only and child.strokes:
                    _record(journal, _restore(child, fills=child.fills))
                    child.fills = []

    for name, placement in override.named_positions.items():
        node = root.find_one(lambda n: n.type == "TEXT" and n.name == name)
        if node is not None:
            _place(node, placement, journal)
            moved += 1

    for run in override.runs:
        container = root.find_one(lambda n: n.type == run.container_type and n.name == run.container_name)
        if container is None:
            continue
        texts = [c for c in container.children if c.type == "TEXT" and c.characters == run.characters]
        texts.sort(key=_reading_order)
        for text, placement in zip(texts, run.placements):
            _place(text, placement, journal)
            moved += 1
        _record(journal, _restore(container, x=container.x, y=container.y, width=container.width, height=container.height))
        if hasattr(container, "fit"):
            container.fit()
        if run.container_position is not None:
            container.x, container.y = run.container_position

    logger.info(f"Override tipografi '{template_id}': {moved} elemen dipindahkan.")
    return moved


def _restore(element, **attrs) -> Callable[[], None]:
    def undo():
        for name, value in attrs.items():
            setattr(element, name, value)
    return undo


def _place(element, placement: Placement, journal: Optional[CompositingJournal] = None) -> None:
    _record(journal, _restore(element, x=element.x, y=element.y, rotation=element.rotation))
    element.x = placement.x
    element.y = placement.y
    if placement.rotation is not None:
        element.rotation = placement.rotation
