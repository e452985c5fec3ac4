# slidefy/infrastructure/canvas/scene.py
import copy
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from slidefy.delivery.schemas.body import FontName
from slidefy.domain.errors import FontUnavailableError

WHITE = {"r": 1.0, "g": 1.0, "b": 1.0}
BLACK = {"r": 0.0, "g": 0.0, "b": 0.0}
LIGHT_GRAY = {"r": 0.851, "g": 0.851, "b": 0.851}


def solid(color: Dict[str, float], opacity: float = 1.0) -> Dict[str, Any]:
    return {"type": "SOLID", "color": dict(color), "opacity": opacity}


class SceneElement:
    type = "ELEMENT"

    def __init__(self):
        self.id = uuid.uuid4().hex[:12]
        self.name = ""
        self.x = 0.0
        self.y = 0.0
        self.width = 100.0
        self.height = 100.0
        self.visible = True
        self.locked = False
        self.opacity = 1.0
        self.rotation = 0.0
        self.blend_mode = "PASS_THROUGH"
        self.effects: List[Dict[str, Any]] = []
        self.parent: Optional["ContainerElement"] = None

    def resize(self, width: float, height: float) -> None:
        if width < 0.01 or height < 0.01:
            raise ValueError(f"Cannot resize {self.type} '{self.name}' to {width}x{height}")
        self.width = float(width)
        self.height = float(height)

    def remove(self) -> None:
        if self.parent is not None:
            self.parent._detach(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "visible": self.visible,
            "locked": self.locked,
            "opacity": self.opacity,
            "rotation": self.rotation,
            "blendMode": self.blend_mode,
            "effects": copy.deepcopy(self.effects),
        }

    def __repr__(self) -> str:
        return f"<{self.type} {self.name!r} x={self.x} y={self.y} {self.width}x{self.height}>"


class GeometryMixin:
    """Fill and stroke state shared by shapes, frames and text."""

    def _init_geometry(self, fills: List[Dict[str, Any]]):
        self.fills: List[Dict[str, Any]] = fills
        self.strokes: List[Dict[str, Any]] = []
        self.stroke_weight = 1.0

    def _geometry_dict(self) -> Dict[str, Any]:
        return {
            "fills": copy.deepcopy(self.fills),
            "strokes": copy.deepcopy(self.strokes),
            "strokeWeight": self.stroke_weight,
        }


class ContainerElement(SceneElement):
    def __init__(self):
        super().__init__()
        self.children: List[SceneElement] = []

    def append_child(self, child: SceneElement) -> None:
        self.insert_child(len(self.children), child)

    def insert_child(self, index: int, child: SceneElement) -> None:
        if child is self or child in self.ancestors():
            raise ValueError("Cannot insert an element into its own subtree")
        if child.parent is not None:
            old_parent = child.parent
            if old_parent is self and self.children.index(child) < index:
                index -= 1
            old_parent._detach(child)
        self.children.insert(index, child)
        child.parent = self
        self._children_changed()

    def _detach(self, child: SceneElement) -> None:
        self.children.remove(child)
        child.parent = None
        self._children_changed()

    def _children_changed(self) -> None:
        pass

    def ancestors(self) -> Iterator["ContainerElement"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def walk(self) -> Iterator[SceneElement]:
        for child in self.children:
            yield child
            if isinstance(child, ContainerElement):
                yield from child.walk()

    def find_one(self, predicate: Callable[[SceneElement], bool]) -> Optional[SceneElement]:
        return next((n for n in self.walk() if predicate(n)), None)

    def find_all(self, predicate: Callable[[SceneElement], bool]) -> List[SceneElement]:
        return [n for n in self.walk() if predicate(n)]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["children"] = [c.to_dict() for c in self.children]
        return data


class FrameElement(GeometryMixin, ContainerElement):
    type = "FRAME"

    def __init__(self):
        super().__init__()
        self._init_geometry([solid(WHITE)])
        self.corner_radius = 0.0
        self.clips_content = True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(self._geometry_dict())
        data["cornerRadius"] = self.corner_radius
        data["clipsContent"] = self.clips_content
        return data


class GroupElement(ContainerElement):
    """Bounds are the union of the members; member coordinates are local to the group."""
    type = "GROUP"

    def fit(self) -> None:
        if not self.children:
            return
        self.width = max(c.x + c.width for c in self.children) - min(min(c.x for c in self.children), 0)
        self.height = max(c.y + c.height for c in self.children) - min(min(c.y for c in self.children), 0)

    def _children_changed(self) -> None:
        # groups never outlive their last member
        if not self.children:
            self.remove()
            return
        self.fit()

    def resize(self, width: float, height: float) -> None:
        raise ValueError("Groups take their size from their members")


class RectangleElement(GeometryMixin, SceneElement):
    type = "RECTANGLE"

    def __init__(self):
        super().__init__()
        self._init_geometry([solid(LIGHT_GRAY)])
        self.corner_radius = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(self._geometry_dict())
        data["cornerRadius"] = self.corner_radius
        return data


class SliceElement(SceneElement):
    type = "SLICE"


class TextElement(GeometryMixin, SceneElement):
    """Text properties can only be written once the current face is loaded."""
    type = "TEXT"

    DEFAULT_FACE = FontName(family="Inter", style="Regular")

    def __init__(self, loaded_fonts: Set[str]):
        super().__init__()
        self._init_geometry([solid(BLACK)])
        self._loaded_fonts = loaded_fonts
        self._font_name = self.DEFAULT_FACE
        self._characters = ""
        self._font_size = 12.0
        self._letter_spacing: Dict[str, Any] = {"unit": "PERCENT", "value": 0}
        self._line_height: Dict[str, Any] = {"unit": "AUTO"}
        self._text_case = "ORIGINAL"
        self.text_align_horizontal = "LEFT"
        self.text_align_vertical = "TOP"
        self.leading_trim = "NONE"
        self.width = 0.0
        self.height = 0.0

    def _require_loaded(self, face: FontName) -> None:
        if face.key not in self._loaded_fonts:
            raise FontUnavailableError(face.family, face.style)

    @property
    def font_name(self) -> FontName:
        return self._font_name

    @font_name.setter
    def font_name(self, face: FontName) -> None:
        self._require_loaded(face)
        self._font_name = face

    @property
    def characters(self) -> str:
        return self._characters

    @characters.setter
    def characters(self, value: str) -> None:
        self._require_loaded(self._font_name)
        self._characters = value

    @property
    def font_size(self) -> float:
        return self._font_size

    @font_size.setter
    def font_size(self, value: float) -> None:
        self._require_loaded(self._font_name)
        if value < 1:
            raise ValueError(f"Font size must be >= 1, got {value}")
        self._font_size = float(value)

    @property
    def letter_spacing(self) -> Dict[str, Any]:
        return self._letter_spacing

    @letter_spacing.setter
    def letter_spacing(self, value: Dict[str, Any]) -> None:
        self._require_loaded(self._font_name)
        self._letter_spacing = dict(value)

    @property
    def line_height(self) -> Dict[str, Any]:
        return self._line_height

    @line_height.setter
    def line_height(self, value: Dict[str, Any]) -> None:
        self._require_loaded(self._font_name)
        self._line_height = dict(value)

    @property
    def text_case(self) -> str:
        return self._text_case

    @text_case.setter
    def text_case(self, value: str) -> None:
        self._require_loaded(self._font_name)
        self._text_case = value

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(self._geometry_dict())
        data.update({
            "characters": self._characters,
            "fontName": {"family": self._font_name.family, "style": self._font_name.style},
            "fontSize": self._font_size,
            "letterSpacing": dict(self._letter_spacing),
            "lineHeight": dict(self._line_height),
            "textCase": self._text_case,
            "textAlignHorizontal": self.text_align_horizontal,
            "textAlignVertical": self.text_align_vertical,
            "leadingTrim": self.leading_trim,
        })
        return data


class Page(ContainerElement):
    type = "PAGE"

    def __init__(self, name: str = "Page 1"):
        super().__init__()
        self.name = name
        self.selection: List[SceneElement] = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "children": [c.to_dict() for c in self.children],
            "selection": [c.id for c in self.selection],
        }
