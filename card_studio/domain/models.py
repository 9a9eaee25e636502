# card_studio/domain/models.py
import math
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

MIN_STICKER_SIZE = 12
MAX_STICKER_SIZE = 36

StickerTone = Literal["accent", "ink"]
LayoutVariant = Literal["duo", "focus"]


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class Position(BaseModel):
    x: float = 50.0
    y: float = 50.0

    @classmethod
    def clamped(cls, x: float, y: float) -> "Position":
        # NaN would slip through min/max untouched
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError("Position coordinates must be finite numbers.")
        return cls(x=clamp(x, 0, 100), y=clamp(y, 0, 100))


class PhotoSlot(BaseModel):
    id: str
    source_reference: Optional[str] = None
    original_name: Optional[str] = None
    byte_size: Optional[int] = None
    mime_type: Optional[str] = None
    position: Position = Field(default_factory=Position)
    uploading: bool = False

    @property
    def is_empty(self) -> bool:
        return self.source_reference is None


class TextSticker(BaseModel):
    id: str
    text: str = ""
    position: Position = Field(default_factory=lambda: Position(x=70, y=20))
    size: int = 18
    tone: StickerTone = "accent"


class StickerUpdate(BaseModel):
    text: Optional[str] = None
    position: Optional[Position] = None
    size: Optional[int] = None
    tone: Optional[StickerTone] = None


class Theme(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    gradient: List[Tuple[str, float]]  # (colour, offset 0..1)
    angle: float = 135.0         # CSS linear-gradient angle in degrees
    accent: str
    shadow: str


class Layout(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: LayoutVariant
    name: str
    description: str


class CardSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    preview_width: int
    export_scale: float

    @property
    def preview_height(self) -> float:
        # preview keeps a 3:2 aspect ratio
        return self.preview_width * 2 / 3


class CompositionSnapshot(BaseModel):
    recipient: str = ""
    sender: str = ""
    message: str = ""
    theme_id: str
    layout_id: LayoutVariant
    card_size_id: str
    slots: List[PhotoSlot]
    stickers: List[TextSticker]
    error: Optional[str] = None
    exporting: bool = False


def format_bytes(size: Optional[int]) -> str:
    if size is None:
        return "-"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{round(size / 1024)} KB"
    return f"{size / (1024 * 1024):.1f} MB"
