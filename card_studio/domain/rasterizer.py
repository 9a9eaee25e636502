# card_studio/domain/rasterizer.py
import asyncio
import logging
import os
import re
import time
from concurrent.futures import Executor
from typing import Dict, Optional, Protocol, Tuple

import psutil
from pydantic import BaseModel

from card_studio.config.settings import settings
from card_studio.domain import catalog
from card_studio.domain.errors import ExportFailed, ExportInProgress
from card_studio.domain.layout_engine import CardFrames, derive_layout, place_layout
from card_studio.domain.models import CardSize, CompositionSnapshot, Layout, Theme

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [EXPORT] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


class CardSurface(BaseModel):
    """Everything needed to draw the card, as currently laid out."""

    composition: CompositionSnapshot
    theme: Theme
    layout: Layout
    card_size: CardSize
    frames: CardFrames
    images: Dict[str, bytes]     # slot id -> encoded image

    @property
    def width(self) -> float:
        return self.frames.width

    @property
    def height(self) -> float:
        return self.frames.height


class ExportResult(BaseModel):
    filename: str
    content: bytes
    width: int
    height: int
    media_type: str = "image/png"


class SurfaceRenderer(Protocol):
    def render(self, surface: CardSurface, scale: float) -> bytes: ...


class ImageSource(Protocol):
    async def load_many(self, sources: Dict[str, str]) -> Dict[str, bytes]: ...


def export_dimensions(width: float, height: float, scale: float) -> Tuple[int, int]:
    return round(width * scale), round(height * scale)


def export_filename(recipient: str, default: Optional[str] = None) -> str:
    name = _UNSAFE_FILENAME_CHARS.sub("", recipient or "").strip().strip(".")
    return f"{name or default or settings.DEFAULT_EXPORT_NAME}.png"


def build_surface(composition: CompositionSnapshot, images: Dict[str, bytes]) -> CardSurface:
    card_size = catalog.get_card_size(composition.card_size_id)
    layout = derive_layout(len(composition.slots), composition.layout_id)
    frames = place_layout(layout, card_size.preview_width, card_size.preview_height)
    return CardSurface(
        composition=composition,
        theme=catalog.get_theme(composition.theme_id),
        layout=catalog.get_layout(composition.layout_id),
        card_size=card_size,
        frames=frames,
        images=images,
    )


class Rasterizer:
    """Turns a composition snapshot into PNG bytes, one export at a time."""

    def __init__(self, renderer: SurfaceRenderer, images: ImageSource, executor: Optional[Executor] = None):
        self.renderer = renderer
        self.images = images
        self.executor = executor
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def export(self, composition: CompositionSnapshot, scale: Optional[float] = None) -> ExportResult:
        if self._in_progress:
            raise ExportInProgress("An export is already in progress.")
        self._in_progress = True
        try:
            return await self._export(composition, scale)
        finally:
            self._in_progress = False

    async def _export(self, composition: CompositionSnapshot, scale: Optional[float]) -> ExportResult:
        card_size = catalog.get_card_size(composition.card_size_id)
        if scale is None:
            scale = card_size.export_scale
        if scale <= 0:
            raise ExportFailed("Export scale must be positive.")
        if min(export_dimensions(card_size.preview_width, card_size.preview_height, scale)) < 1:
            raise ExportFailed("Export scale is too small.")

        start_time = time.perf_counter()
        logger.info(f"Export started at scale {scale} ({len(composition.slots)} slots, {len(composition.stickers)} stickers).")

        sources = {s.id: s.source_reference for s in composition.slots if not s.is_empty}
        images = await self.images.load_many(sources)
        surface = build_surface(composition, images)

        loop = asyncio.get_running_loop()
        try:
            content = await loop.run_in_executor(self.executor, self.renderer.render, surface, scale)
        except ExportFailed:
            raise
        except Exception as e:
            logger.error(f"Rendering failed: {e}", exc_info=True)
            raise ExportFailed(str(e) or "Download failed. Try again.") from e

        width, height = export_dimensions(surface.width, surface.height, scale)
        elapsed = time.perf_counter() - start_time
        try:
            memory_mb = psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
            logger.info(f"Export finished: {width}x{height}, {len(content)} bytes in {elapsed:.2f}s (memory {memory_mb:.1f}MB).")
        except psutil.Error as mem_error:
            logger.warning(f"Could not get memory info: {mem_error}")

        return ExportResult(
            filename=export_filename(composition.recipient),
            content=content,
            width=width,
            height=height,
        )
