# card_studio/domain/coordinate_mapper.py
"""Pointer coordinates <-> percentage coordinates of a container.

Positions are stored as percentages of a container's width/height so the same
pair lines up in a 520px preview and in a 3x export alike. Geometry is always
passed in explicitly; nothing here reads a live rendering surface.
"""
import math
from typing import Optional, Tuple

from pydantic import BaseModel

from card_studio.domain.models import Position, clamp


class Rect(BaseModel):
    left: float = 0.0
    top: float = 0.0
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def is_degenerate(self) -> bool:
        return not (
            math.isfinite(self.width) and math.isfinite(self.height)
            and self.width > 0 and self.height > 0
        )

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def scaled(self, factor: float) -> "Rect":
        return Rect(
            left=self.left * factor,
            top=self.top * factor,
            width=self.width * factor,
            height=self.height * factor,
        )


def to_normalized(pointer_x: float, pointer_y: float, rect: Rect) -> Optional[Position]:
    """Map a pointer to a clamped [0,100] position inside ``rect``.

    Returns None for a zero-sized container or a non-finite pointer; the caller
    treats that as "leave the position alone".
    """
    if rect.is_degenerate or not (math.isfinite(pointer_x) and math.isfinite(pointer_y)):
        return None
    x = (pointer_x - rect.left) / rect.width * 100
    y = (pointer_y - rect.top) / rect.height * 100
    return Position(x=clamp(x, 0, 100), y=clamp(y, 0, 100))


def to_pixels(position: Position, rect: Rect) -> Tuple[float, float]:
    """Inverse of ``to_normalized`` for points inside ``rect``."""
    return (
        rect.left + position.x / 100 * rect.width,
        rect.top + position.y / 100 * rect.height,
    )
