"""Rasterizer — export orchestration around an injected renderer.

Invariants:
    - Only one export at a time; a concurrent request is rejected
    - Renderer failures surface as ExportFailed
    - Filename derives from the recipient, falling back to a default
    - Dimensions are the displayed card size times the scale
    - A scale too small for a one-pixel image is rejected before rendering
"""

import asyncio

import pytest

from card_studio.domain.composition_store import CompositionStore
from card_studio.domain.errors import ExportFailed, ExportInProgress
from card_studio.domain.rasterizer import Rasterizer, export_filename


class _FakeRenderer:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def render(self, surface, scale):
        self.calls.append((surface, scale))
        if self.error:
            raise self.error
        return b"\x89PNG fake"


class _FakeImages:
    def __init__(self, gate=None):
        self.requested = []
        self.gate = gate

    async def load_many(self, sources):
        self.requested.append(dict(sources))
        if self.gate is not None:
            await self.gate.wait()
        return {k: b"img" for k in sources}


# --- filenames -------------------------------------------------------------------


def test_filename_uses_recipient():
    assert export_filename("Ana Maria") == "Ana Maria.png"


def test_filename_strips_path_characters():
    assert export_filename("../etc/pass:wd") == "etcpasswd.png"


@pytest.mark.parametrize("recipient", ["", "   ", "///", None])
def test_filename_falls_back_to_default(recipient):
    assert export_filename(recipient) == "birthday-card.png"


# --- export --------------------------------------------------------------------


@pytest.mark.asyncio
async def test_export_uses_card_size_scale_by_default():
    store = CompositionStore()
    store.set_recipient("Sam")
    renderer = _FakeRenderer()
    result = await Rasterizer(renderer, _FakeImages()).export(store.snapshot())
    assert renderer.calls[0][1] == 2
    assert result.filename == "Sam.png"
    assert (result.width, result.height) == (1040, 693)
    assert result.media_type == "image/png"


@pytest.mark.asyncio
async def test_export_loads_only_filled_slots():
    store = CompositionStore()
    store.set_slot_image(1, "https://img.test/b.jpg", "b.jpg")
    images = _FakeImages()
    renderer = _FakeRenderer()
    await Rasterizer(renderer, images).export(store.snapshot(), 1)
    assert images.requested == [{store.slot_id_at(1): "https://img.test/b.jpg"}]
    surface = renderer.calls[0][0]
    assert surface.images == {store.slot_id_at(1): b"img"}
    assert len(surface.frames.slots) == 2


@pytest.mark.asyncio
async def test_concurrent_export_is_rejected():
    gate = asyncio.Event()
    rasterizer = Rasterizer(_FakeRenderer(), _FakeImages(gate))
    snapshot = CompositionStore().snapshot()

    first = asyncio.create_task(rasterizer.export(snapshot, 1))
    await asyncio.sleep(0)
    assert rasterizer.in_progress
    with pytest.raises(ExportInProgress):
        await rasterizer.export(snapshot, 1)

    gate.set()
    await first
    assert not rasterizer.in_progress


@pytest.mark.asyncio
async def test_renderer_error_becomes_export_failed():
    rasterizer = Rasterizer(_FakeRenderer(error=RuntimeError("tainted canvas")), _FakeImages())
    with pytest.raises(ExportFailed, match="tainted canvas"):
        await rasterizer.export(CompositionStore().snapshot(), 1)
    assert not rasterizer.in_progress


@pytest.mark.asyncio
async def test_non_positive_scale_rejected():
    with pytest.raises(ExportFailed):
        await Rasterizer(_FakeRenderer(), _FakeImages()).export(CompositionStore().snapshot(), 0)


@pytest.mark.asyncio
async def test_scale_too_small_for_one_pixel_rejected_before_rendering():
    renderer, images = _FakeRenderer(), _FakeImages()
    with pytest.raises(ExportFailed, match="Export scale is too small."):
        await Rasterizer(renderer, images).export(CompositionStore().snapshot(), 0.0005)
    assert renderer.calls == []
    assert images.requested == []
