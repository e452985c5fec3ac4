# slidefy/infrastructure/canvas/font_library.py
import io
import logging
import os
import re
from typing import Dict, Optional

import aiofiles
from PIL import ImageFont

from slidefy.delivery.schemas.body import FontName
from slidefy.domain.errors import FontUnavailableError

logger = logging.getLogger(__name__)

FONT_EXTENSIONS = (".ttf", ".otf")


def face_key(family: str, style: str) -> str:
    return f"{family} {style}".strip().casefold()


def _split_camel(value: str) -> str:
    return re.sub(r"(?<=[a-z])(?=[A-Z])", " ", value)


class FontLibrary:
    """Font faces available to the in-memory canvas.

    Faces come from font files in ``fonts_dir``, registered under the names in
    their name table and under the ``Family-Style`` file name convention. The
    default face is always loadable; without a file it renders with Pillow's
    built-in font.
    """

    def __init__(self, fonts_dir: Optional[str], default_face: FontName):
        self.default_face = default_face
        self._paths: Dict[str, str] = {}
        self._data: Dict[str, bytes] = {}
        if fonts_dir and os.path.isdir(fonts_dir):
            self._scan(fonts_dir)
        elif fonts_dir:
            logger.warning(f"Direktori font tidak ditemukan: {fonts_dir}, hanya font default yang tersedia.")

    def _scan(self, fonts_dir: str) -> None:
        for entry in sorted(os.listdir(fonts_dir)):
            if not entry.lower().endswith(FONT_EXTENSIONS):
                continue
            path = os.path.join(fonts_dir, entry)
            stem = os.path.splitext(entry)[0]
            family, _, style = stem.rpartition("-")
            if family:
                self._paths.setdefault(face_key(_split_camel(family), style), path)
            try:
                name_family, name_style = ImageFont.truetype(path, size=12).getname()
                if name_family:
                    self._paths.setdefault(face_key(name_family, name_style or ""), path)
            except OSError as e:
                logger.warning(f"Gagal membaca font '{entry}': {e}")
        logger.info(f"{len(self._paths)} font face terdaftar dari {fonts_dir}.")

    def is_default(self, face: FontName) -> bool:
        return face_key(face.family, face.style) == face_key(self.default_face.family, self.default_face.style)

    async def load(self, face: FontName) -> None:
        key = face_key(face.family, face.style)
        if key in self._data:
            return
        path = self._paths.get(key)
        if path is None:
            if self.is_default(face):
                return
            raise FontUnavailableError(face.family, face.style)
        async with aiofiles.open(path, "rb") as f:
            self._data[key] = await f.read()

    def truetype(self, face: FontName, size: float) -> ImageFont.FreeTypeFont:
        size = max(1, int(round(size)))
        for candidate in (face, self.default_face):
            data = self._data.get(face_key(candidate.family, candidate.style))
            if data is not None:
                return ImageFont.truetype(io.BytesIO(data), size=size)
        return ImageFont.load_default(size=size)
