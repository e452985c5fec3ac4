# slidefy/domain/canvas.py
"""Capabilities the carousel engine needs from a design surface.

Element creation and property writes are synchronous; only font loading
suspends. Created elements are detached until they are appended to a parent
or to the page.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from slidefy.delivery.schemas.body import FontName


@dataclass(frozen=True)
class ImageHandle:
    hash: str
    width: int
    height: int


class CanvasHost(ABC):

    @property
    @abstractmethod
    def page(self) -> Any: ...

    @abstractmethod
    def create_frame(self) -> Any: ...

    @abstractmethod
    def create_rectangle(self) -> Any: ...

    @abstractmethod
    def create_text(self) -> Any: ...

    @abstractmethod
    def create_slice(self) -> Any: ...

    @abstractmethod
    def create_image(self, data: bytes) -> ImageHandle:
        """Registers image bytes; raises ImageBindingError when they cannot be used."""

    @abstractmethod
    def group(self, members: Sequence[Any]) -> Any:
        """Composes a group from elements that already exist."""

    @abstractmethod
    async def load_font(self, face: FontName) -> None:
        """Raises FontUnavailableError when the face cannot be loaded."""

    @abstractmethod
    def notify(self, message: str, error: bool = False) -> None: ...
