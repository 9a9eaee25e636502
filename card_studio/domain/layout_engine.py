# card_studio/domain/layout_engine.py
"""Photo grid geometry derived from (slot count, layout variant).

Nothing here is stored: the layout is recomputed from the current slot count
and layout selection whenever it is needed. ``derive_layout`` gives the
abstract grid; ``place_layout`` turns it into pixel frames for a card of a
given size.
"""
import math
from typing import List, Optional

from pydantic import BaseModel

from card_studio.domain.coordinate_mapper import Rect
from card_studio.domain.models import LayoutVariant

# Card box model, in preview pixels.
CARD_PADDING = 20
CARD_COLUMNS = 5
PHOTO_COLUMNS = 3
CARD_GAP = 16
PHOTO_GAP = 16
SECONDARY_GAP = 12
HERO_SHARE = 2 / 3


class GridSize(BaseModel):
    columns: int
    rows: int


class SlotPlacement(BaseModel):
    index: int
    region: str          # "grid", "hero" or "secondary"
    row: int
    column: int


class CardLayout(BaseModel):
    variant: LayoutVariant
    slot_count: int
    grid: Optional[GridSize] = None        # duo
    has_hero: bool = False                 # focus
    secondary: Optional[GridSize] = None   # focus with more than one slot
    placements: List[SlotPlacement]


class CardFrames(BaseModel):
    width: float
    height: float
    photo_region: Rect
    panel: Rect
    slots: List[Rect]


def grid_size(count: int) -> GridSize:
    count = max(1, count)
    columns = 1 if count <= 1 else 2 if count <= 4 else 3
    return GridSize(columns=columns, rows=math.ceil(count / columns))


def _grid_placements(start: int, count: int, grid: GridSize, region: str) -> List[SlotPlacement]:
    return [
        SlotPlacement(index=start + i, region=region, row=i // grid.columns, column=i % grid.columns)
        for i in range(count)
    ]


def derive_layout(slot_count: int, variant: LayoutVariant) -> CardLayout:
    if slot_count < 0:
        raise ValueError("slot_count must not be negative.")

    if variant == "duo":
        grid = grid_size(slot_count)
        return CardLayout(
            variant=variant,
            slot_count=slot_count,
            grid=grid,
            placements=_grid_placements(0, slot_count, grid, "grid"),
        )

    if variant == "focus":
        placements = []
        secondary = None
        if slot_count >= 1:
            placements.append(SlotPlacement(index=0, region="hero", row=0, column=0))
        if slot_count > 1:
            secondary = grid_size(slot_count - 1)
            placements += _grid_placements(1, slot_count - 1, secondary, "secondary")
        return CardLayout(
            variant=variant,
            slot_count=slot_count,
            has_hero=True,
            secondary=secondary,
            placements=placements,
        )

    raise ValueError(f"Unknown layout variant '{variant}'.")


def _cell(region: Rect, grid: GridSize, row: int, column: int, gap: float) -> Rect:
    cell_w = (region.width - gap * (grid.columns - 1)) / grid.columns
    cell_h = (region.height - gap * (grid.rows - 1)) / grid.rows
    return Rect(
        left=region.left + column * (cell_w + gap),
        top=region.top + row * (cell_h + gap),
        width=cell_w,
        height=cell_h,
    )


def place_layout(layout: CardLayout, width: float, height: float) -> CardFrames:
    inner_w = width - 2 * CARD_PADDING
    inner_h = height - 2 * CARD_PADDING
    column_w = (inner_w - CARD_GAP * (CARD_COLUMNS - 1)) / CARD_COLUMNS

    photo_region = Rect(
        left=CARD_PADDING,
        top=CARD_PADDING,
        width=PHOTO_COLUMNS * column_w + (PHOTO_COLUMNS - 1) * CARD_GAP,
        height=inner_h,
    )
    panel_left = photo_region.right + CARD_GAP
    panel = Rect(left=panel_left, top=CARD_PADDING, width=width - CARD_PADDING - panel_left, height=inner_h)

    frames: List[Rect] = []
    if layout.variant == "duo":
        for p in layout.placements:
            frames.append(_cell(photo_region, layout.grid, p.row, p.column, PHOTO_GAP))
    else:
        if layout.secondary is None:
            hero = photo_region
            secondary_region = None
        else:
            hero_h = (photo_region.height - PHOTO_GAP) * HERO_SHARE
            hero = Rect(left=photo_region.left, top=photo_region.top, width=photo_region.width, height=hero_h)
            secondary_region = Rect(
                left=photo_region.left,
                top=hero.bottom + PHOTO_GAP,
                width=photo_region.width,
                height=photo_region.bottom - hero.bottom - PHOTO_GAP,
            )
        for p in layout.placements:
            if p.region == "hero":
                frames.append(hero)
            else:
                frames.append(_cell(secondary_region, layout.secondary, p.row, p.column, SECONDARY_GAP))

    return CardFrames(width=width, height=height, photo_region=photo_region, panel=panel, slots=frames)
