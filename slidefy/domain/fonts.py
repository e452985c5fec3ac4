# slidefy/domain/fonts.py
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from slidefy.delivery.schemas.body import FontName
from slidefy.domain.canvas import CanvasHost
from slidefy.domain.errors import FontUnavailableError, SlidefyError

logger = logging.getLogger(__name__)


def _style_variants(style: str) -> List[str]:
    variants = []
    compact = style.replace(" ", "")
    if compact != style:
        variants.append(compact)
    spaced = "".join(f" {ch}" if ch.isupper() and i > 0 and style[i - 1] != " " else ch for i, ch in enumerate(style))
    if spaced != style:
        variants.append(spaced)
    return variants


class FontResolver:
    """Loads the faces a template asks for, substituting when the host lacks them.

    One resolver serves one instantiation. ``resolve`` returns the face that
    was actually loaded; text elements must be given that face, never the
    requested one.
    """

    def __init__(self, host: CanvasHost, default_face: FontName, aliases: Optional[Mapping[str, str]] = None):
        self.host = host
        self.default_face = default_face
        self.aliases = dict(aliases or {})
        self._applied: Dict[str, FontName] = {}
        self._failed: set = set()

    def candidates(self, requested: FontName) -> List[FontName]:
        faces = [requested]
        alias = self.aliases.get(requested.key)
        if alias:
            family, _, style = alias.rpartition(" ")
            faces.append(FontName(family=family or style, style=style if family else "Regular"))
        for style in _style_variants(requested.style):
            faces.append(FontName(family=requested.family, style=style))
        faces.append(FontName(family=requested.family, style="Regular"))
        faces.append(FontName(family=requested.family, style=""))
        faces.append(self.default_face)

        unique: Dict[str, FontName] = {}
        for face in faces:
            unique.setdefault(face.key, face)
        return list(unique.values())

    async def resolve(self, requested: Optional[FontName] = None) -> FontName:
        requested = requested or self.default_face
        cached = self._applied.get(requested.key)
        if cached is not None:
            return cached

        for face in self.candidates(requested):
            if face.key in self._failed:
                continue
            try:
                await self.host.load_font(face)
            except (SlidefyError, OSError) as e:
                self._failed.add(face.key)
                logger.debug(f"Font {face.key!r} tidak tersedia: {e}")
                continue
            if face.key != requested.key:
                logger.warning(f"Font tidak ditemukan: {requested.key}, menggunakan {face.key}")
            self._applied[requested.key] = face
            return face

        raise FontUnavailableError(requested.family, requested.style)

    async def preload(self, faces: Iterable[FontName]) -> Dict[str, FontName]:
        applied = {}
        for face in faces:
            try:
                applied[face.key] = await self.resolve(face)
            except FontUnavailableError as e:
                logger.warning(f"Preload font gagal: {e.message}")
        return applied
