from pydantic import BaseModel, Field
from typing import Optional

from card_studio.domain.coordinate_mapper import Rect
from card_studio.domain.session import DragTarget, PointerPhase

class CardDetailsUpdate(BaseModel):
    recipient: Optional[str] = None
    sender: Optional[str] = None
    message: Optional[str] = None
    theme_id: Optional[str] = None
    layout_id: Optional[str] = None
    card_size_id: Optional[str] = None

class StickerCreate(BaseModel):
    text: Optional[str] = None

class PointerBody(BaseModel):
    target: DragTarget
    target_id: str
    type: PointerPhase
    pointer_id: int = 1
    x: float
    y: float

    # Bounding box of the element positions are relative to (the photo frame
    # or the whole card), read by the client at event time.
    container: Optional[Rect] = None
    # Hit area for pointer-down; defaults to the container.
    element: Optional[Rect] = None

class ExportRequest(BaseModel):
    scale: Optional[float] = Field(default=None, gt=0, le=8)
