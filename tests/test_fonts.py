"""
Font resolution tests
"""

from typing import List, Set

import pytest

from slidefy.delivery.schemas.body import FontName
from slidefy.domain.errors import FontUnavailableError
from slidefy.domain.fonts import FontResolver

from tests.conftest import DEFAULT_FACE


class RecordingHost:
    """Only the load_font part of a canvas, serving a fixed set of faces."""

    def __init__(self, available: Set[str]):
        self.available = available
        self.attempts: List[str] = []

    async def load_font(self, face: FontName) -> None:
        self.attempts.append(face.key)
        if face.key not in self.available:
            raise FontUnavailableError(face.family, face.style)


class TestCandidates:

    def test_fallback_order(self):
        resolver = FontResolver(RecordingHost(set()), DEFAULT_FACE)

        keys = [f.key for f in resolver.candidates(FontName(family="Poppins", style="Semi Bold"))]

        assert keys == ["Poppins Semi Bold", "Poppins SemiBold", "Poppins Regular", "Poppins", "Inter Regular"]

    def test_alias_comes_second(self):
        resolver = FontResolver(RecordingHost(set()), DEFAULT_FACE, aliases={"Anton Regular": "Bebas Neue Regular"})

        keys = [f.key for f in resolver.candidates(FontName(family="Anton", style="Regular"))]

        assert keys[:2] == ["Anton Regular", "Bebas Neue Regular"]


class TestResolve:

    @pytest.mark.asyncio
    async def test_requested_face_when_available(self):
        host = RecordingHost({"Poppins Bold", "Inter Regular"})
        resolver = FontResolver(host, DEFAULT_FACE)

        applied = await resolver.resolve(FontName(family="Poppins", style="Bold"))

        assert applied.key == "Poppins Bold"

    @pytest.mark.asyncio
    async def test_style_variant_substitution(self):
        host = RecordingHost({"Poppins SemiBold", "Inter Regular"})
        resolver = FontResolver(host, DEFAULT_FACE)

        applied = await resolver.resolve(FontName(family="Poppins", style="Semi Bold"))

        assert applied.key == "Poppins SemiBold"

    @pytest.mark.asyncio
    async def test_default_face_last(self):
        host = RecordingHost({"Inter Regular"})
        resolver = FontResolver(host, DEFAULT_FACE)

        applied = await resolver.resolve(FontName(family="Unknown", style="Black"))

        assert applied == DEFAULT_FACE

    @pytest.mark.asyncio
    async def test_no_face_requested_uses_default(self):
        resolver = FontResolver(RecordingHost({"Inter Regular"}), DEFAULT_FACE)
        assert await resolver.resolve() == DEFAULT_FACE

    @pytest.mark.asyncio
    async def test_results_and_failures_are_cached(self):
        # Given
        host = RecordingHost({"Inter Regular"})
        resolver = FontResolver(host, DEFAULT_FACE)

        # When - two different requests that share failing candidates
        await resolver.resolve(FontName(family="Lato", style="Bold"))
        await resolver.resolve(FontName(family="Lato", style="Bold"))
        await resolver.resolve(FontName(family="Lato", style="Italic"))

        # Then - failing faces are attempted once
        assert host.attempts.count("Lato Bold") == 1
        assert host.attempts.count("Lato Regular") == 1

    @pytest.mark.asyncio
    async def test_nothing_loadable_raises(self):
        resolver = FontResolver(RecordingHost(set()), DEFAULT_FACE)

        with pytest.raises(FontUnavailableError):
            await resolver.resolve(FontName(family="Lato", style="Bold"))

    @pytest.mark.asyncio
    async def test_preload_skips_unresolvable_faces(self):
        resolver = FontResolver(RecordingHost({"Lato Regular"}), DEFAULT_FACE)

        applied = await resolver.preload([FontName(family="Lato", style="Bold"), FontName(family="Oswald", style="Bold")])

        assert applied == {"Lato Bold": FontName(family="Lato", style="Regular")}


class TestFontLibrary:

    @pytest.mark.asyncio
    async def test_default_face_loads_without_files(self, font_library):
        await font_library.load(DEFAULT_FACE)
        assert font_library.truetype(DEFAULT_FACE, 12) is not None

    @pytest.mark.asyncio
    async def test_unknown_face_raises(self, font_library):
        with pytest.raises(FontUnavailableError):
            await font_library.load(FontName(family="Lato", style="Bold"))

    def test_truetype_falls_back_to_builtin_font(self, font_library):
        font = font_library.truetype(DEFAULT_FACE, 14)
        assert font.getlength("abc") > 0
