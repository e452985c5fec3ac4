# slidefy/delivery/schemas/body.py
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel


class TemplateModel(BaseModel):
    # Templates are exported as camelCase JSON and never mutated after load
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")


class NodeType(str, Enum):
    FRAME = "FRAME"
    GROUP = "GROUP"
    RECTANGLE = "RECTANGLE"
    TEXT = "TEXT"
    SLICE = "SLICE"
    VECTOR = "VECTOR"
    BOOLEAN_OPERATION = "BOOLEAN_OPERATION"
    STAR = "STAR"
    LINE = "LINE"
    ELLIPSE = "ELLIPSE"
    POLYGON = "POLYGON"


class Color(TemplateModel):
    r: float
    g: float
    b: float
    a: float = 1.0


class Vector(TemplateModel):
    x: float = 0
    y: float = 0


class FontName(TemplateModel):
    family: str
    style: str = "Regular"

    @property
    def key(self) -> str:
        return f"{self.family} {self.style}".strip()


# --- Paints ---

class SolidPaint(TemplateModel):
    type: Literal["SOLID"] = "SOLID"
    color: Color
    opacity: Optional[float] = None
    visible: bool = True


class ImagePaint(TemplateModel):
    type: Literal["IMAGE"] = "IMAGE"
    scale_mode: str = "FILL"
    image_ref: Optional[str] = None
    image_hash: Optional[str] = None
    opacity: Optional[float] = None
    visible: bool = True


class UnknownPaint(TemplateModel):
    type: str


def _paint_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in ("SOLID", "IMAGE") else "OTHER"


Paint = Annotated[
    Union[
        Annotated[SolidPaint, Tag("SOLID")],
        Annotated[ImagePaint, Tag("IMAGE")],
        Annotated[UnknownPaint, Tag("OTHER")],
    ],
    Discriminator(_paint_tag),
]


# --- Effects ---

class ShadowEffect(TemplateModel):
    type: Literal["DROP_SHADOW", "INNER_SHADOW"]
    color: Color = Color(r=0, g=0, b=0, a=0.25)
    offset: Vector = Vector()
    radius: float = 0
    spread: Optional[float] = None
    visible: Optional[bool] = None
    blend_mode: Optional[str] = None


class BlurEffect(TemplateModel):
    type: Literal["LAYER_BLUR", "BACKGROUND_BLUR"]
    radius: float = 0
    visible: Optional[bool] = None


class UnknownEffect(TemplateModel):
    type: str


def _effect_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if kind in ("DROP_SHADOW", "INNER_SHADOW"):
        return "SHADOW"
    if kind in ("LAYER_BLUR", "BACKGROUND_BLUR"):
        return "BLUR"
    return "OTHER"


Effect = Annotated[
    Union[
        Annotated[ShadowEffect, Tag("SHADOW")],
        Annotated[BlurEffect, Tag("BLUR")],
        Annotated[UnknownEffect, Tag("OTHER")],
    ],
    Discriminator(_effect_tag),
]


# --- Template ---

class TemplateNode(TemplateModel):
    id: str = ""
    type: str
    name: str = "Layer"
    x: float = 0
    y: float = 0
    width: Optional[float] = None
    height: Optional[float] = None
    visible: bool = True
    locked: bool = False
    opacity: float = 1.0
    rotation: Optional[float] = None
    blend_mode: Optional[str] = None
    constraints: Optional[Dict[str, str]] = None
    fills: Optional[List[Paint]] = None
    strokes: Optional[List[Paint]] = None
    stroke_weight: Optional[float] = None
    corner_radius: Optional[float] = None
    clips_content: Optional[bool] = None
    effects: Optional[List[Effect]] = None
    children: Optional[List["TemplateNode"]] = None

    # TEXT only
    characters: Optional[str] = None
    font_size: Optional[float] = None
    font_name: Optional[FontName] = None
    text_align_horizontal: Optional[str] = None
    text_align_vertical: Optional[str] = None
    letter_spacing: Optional[Union[float, Dict[str, Any]]] = None
    line_height: Optional[Union[float, str, Dict[str, Any]]] = None
    text_case: Optional[str] = None

    def walk(self):
        yield self
        for child in self.children or []:
            yield from child.walk()


TemplateNode.model_rebuild()


class TemplateData(TemplateModel):
    id: str
    name: str
    version: int = 1
    width: float
    height: float
    slide_width: float
    slide_height: float
    slides: int
    photo_layer_name_prefix: str = "photo-"
    photo_grayscale: bool = False
    embedded_images: Optional[Dict[str, str]] = None
    node_tree: TemplateNode

    def font_names(self) -> List[FontName]:
        seen: Dict[str, FontName] = {}
        for node in self.node_tree.walk():
            if node.type == NodeType.TEXT.value and node.font_name is not None:
                seen.setdefault(node.font_name.key, node.font_name)
        return list(seen.values())


class TemplateSummary(TemplateModel):
    id: str
    name: str
    slides: int
    thumbnail: str = ""


# --- UI messages ---

class MessageModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageMetadata(MessageModel):
    name: str
    size: int = 0


class CreateCarouselMessage(MessageModel):
    type: Literal["create-carousel"] = "create-carousel"
    template_id: str
    images_metadata: List[ImageMetadata] = Field(default_factory=list)
    images_base64: Optional[List[str]] = None
    # http(s) sources fetched server side
    image_urls: Optional[List[str]] = None


class ImagesDataMessage(MessageModel):
    type: Literal["images-data"] = "images-data"
    # byte arrays as sent by the plugin UI, or base64 strings
    images: List[Union[List[int], str]] = Field(default_factory=list)


# --- Events to the UI ---

class ProgressEvent(MessageModel):
    type: Literal["progress"] = "progress"
    percent: int = Field(ge=0, le=100)
    log: str


class RequestImagesEvent(MessageModel):
    type: Literal["request-images"] = "request-images"
    count: int


class NotifyEvent(MessageModel):
    type: Literal["notify"] = "notify"
    message: str
    error: bool = False


class DocumentEvent(MessageModel):
    type: Literal["document"] = "document"
    root: Dict[str, Any]


class CarouselCompleteEvent(MessageModel):
    type: Literal["carousel-complete"] = "carousel-complete"


CarouselEvent = Union[ProgressEvent, RequestImagesEvent, NotifyEvent, DocumentEvent, CarouselCompleteEvent]
