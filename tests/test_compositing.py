"""
Grayscale wrapping and per-template typography tests
"""

import pytest

from slidefy.domain.compositing import (
    GRAYSCALE_OVERLAY_NAME,
    CompositingJournal,
    apply_grayscale,
    apply_typography_overrides,
    find_photo_layers,
    wrap_in_grayscale,
)
from slidefy.domain.errors import CompositingError

from tests.conftest import DEFAULT_FACE


def photo(canvas, name="photo-1", x=10, y=20, w=50, h=40):
    rect = canvas.create_rectangle()
    rect.name = name
    rect.x, rect.y = x, y
    rect.resize(w, h)
    return rect


class TestGrayscale:

    def test_wrapper_takes_the_photo_slot(self, canvas):
        # Given
        root = canvas.create_frame()
        before, target, after = canvas.create_rectangle(), photo(canvas), canvas.create_rectangle()
        target.rotation = 30
        target.locked = True
        target.visible = False
        for el in (before, target, after):
            root.append_child(el)

        # When
        wrapper = wrap_in_grayscale(canvas, target)

        # Then
        assert root.children == [before, wrapper, after]
        assert wrapper.name == "photo-1 (grayscale)"
        assert (wrapper.x, wrapper.y, wrapper.width, wrapper.height) == (10, 20, 50, 40)
        assert wrapper.rotation == 30 and wrapper.locked is True and wrapper.visible is False
        assert wrapper.fills == [] and wrapper.clips_content is False

        assert wrapper.children[0] is target
        assert (target.x, target.y, target.rotation, target.locked, target.visible) == (0, 0, 0, False, True)

        overlay = wrapper.children[1]
        assert overlay.name == GRAYSCALE_OVERLAY_NAME
        assert overlay.blend_mode == "COLOR"
        assert overlay.fills[0]["color"] == {"r": 0.5, "g": 0.5, "b": 0.5}
        assert (overlay.width, overlay.height) == (50, 40)

    def test_photo_inside_group(self, canvas):
        root = canvas.create_frame()
        group = canvas.group([photo(canvas, "photo-2", 0, 0)])
        root.append_child(group)

        wrapper = wrap_in_grayscale(canvas, group.children[0])

        assert group.parent is root
        assert group.children == [wrapper]

    def test_detached_photo_raises(self, canvas):
        with pytest.raises(CompositingError):
            wrap_in_grayscale(canvas, photo(canvas))

    def test_apply_grayscale_is_not_repeated(self, canvas):
        root = canvas.create_frame()
        root.append_child(photo(canvas, "photo-1"))
        root.append_child(photo(canvas, "photo-2"))
        root.append_child(photo(canvas, "cover"))

        assert len(apply_grayscale(canvas, root, "photo-")) == 2
        assert find_photo_layers(root, "photo-") == []

    def test_empty_prefix_matches_nothing(self, canvas):
        root = canvas.create_frame()
        root.append_child(photo(canvas))
        assert apply_grayscale(canvas, root, "") == []


async def text(canvas, name, characters, x=0, y=0, strokes=False):
    await canvas.load_font(DEFAULT_FACE)
    el = canvas.create_text()
    el.name = name
    el.font_name = DEFAULT_FACE
    el.characters = characters
    el.x, el.y = x, y
    if strokes:
        el.strokes = [{"type": "SOLID", "color": {"r": 1, "g": 1, "b": 1}, "opacity": 1}]
    return el


class TestTypographyOverrides:

    @pytest.mark.asyncio
    async def test_culto_jovem_layout(self, canvas):
        # Given
        root = canvas.create_frame()
        main = canvas.create_frame()
        main.name = "Main"
        culto, jo, vem = await text(canvas, "t1", " Culto "), await text(canvas, "t2", "Jo"), await text(canvas, "t3", "VEM", strokes=True)
        for el in (culto, jo, vem):
            main.append_child(el)
        date = await text(canvas, "Date", "12/05")
        runs = [await text(canvas, f"j{i}", "JUVENTUDE", x=i * 10, y=i * 5) for i in range(7)]
        container = canvas.group(list(reversed(runs)))
        container.name = "Container"
        for el in (main, date, container):
            root.append_child(el)

        # When
        moved = apply_typography_overrides("culto-jovem", root)

        # Then
        assert moved == 3 + 1 + 7
        assert (culto.x, culto.y) == (70, 68)
        assert (jo.x, jo.y) == (20, 198)
        assert (vem.x, vem.y) == (189, 533)
        assert vem.fills == [] and vem.strokes
        assert (date.x, date.y) == (812, 296)
        assert [(r.x, r.y) for r in runs] == [(0, 0), (336, 176), (672, 352), (1008, 528), (1344, 704), (1680, 880), (2016, 1057)]
        assert all(r.rotation == -90.0 for r in runs)
        assert (container.x, container.y) == (2176, -114)

    @pytest.mark.asyncio
    async def test_other_templates_are_untouched(self, canvas):
        root = canvas.create_frame()
        date = await text(canvas, "Date", "12/05", x=5, y=5)
        root.append_child(date)

        assert apply_typography_overrides("t7", root) == 0
        assert (date.x, date.y) == (5, 5)


class TestRollback:

    def test_grayscale_is_undone(self, canvas):
        # Given
        root = canvas.create_frame()
        loose = photo(canvas, "photo-1", x=3, y=4)
        loose.rotation = 15
        loose.visible = False
        grouped = photo(canvas, "photo-2", 0, 0)
        group = canvas.group([grouped, canvas.create_rectangle()])
        for el in (loose, group):
            root.append_child(el)
        journal = CompositingJournal()
        apply_grayscale(canvas, root, "photo-", journal)

        # When
        journal.rollback()

        # Then
        assert root.children == [loose, group]
        assert group.children[0] is grouped
        assert (loose.x, loose.y, loose.rotation, loose.visible) == (3, 4, 15, False)
        assert root.find_all(lambda n: n.name == GRAYSCALE_OVERLAY_NAME) == []
        assert len(journal) == 0

    @pytest.mark.asyncio
    async def test_typography_is_undone(self, canvas):
        root = canvas.create_frame()
        main = canvas.create_frame()
        main.name = "Main"
        vem = await text(canvas, "t3", "VEM", x=1, y=2, strokes=True)
        main.append_child(vem)
        runs = [await text(canvas, f"j{i}", "JUVENTUDE", x=i * 10, y=i * 5) for i in range(2)]
        container = canvas.group(runs)
        container.name = "Container"
        for el in (main, container):
            root.append_child(el)
        before = (container.x, container.y, container.width, container.height)
        fills = vem.fills
        journal = CompositingJournal()

        apply_typography_overrides("culto-jovem", root, journal)
        journal.rollback()

        assert (vem.x, vem.y) == (1, 2) and vem.fills == fills
        assert [(r.x, r.y, r.rotation) for r in runs] == [(0, 0, 0), (10, 5, 0)]
        assert (container.x, container.y, container.width, container.height) == before
