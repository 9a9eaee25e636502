# card_studio/domain/drag_controller.py
"""Per-element pointer drag state machine.

idle --down(inside element)--> dragging --move--> dragging --up|cancel--> idle

Each draggable element (a photo frame, a sticker) owns one controller, so
drags of different elements by different pointers never share state. While
dragging, the controller only listens to the pointer that started the drag
(pointer capture).
"""
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from card_studio.domain.coordinate_mapper import Rect, to_normalized
from card_studio.domain.models import Position


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class PointerEvent(BaseModel):
    pointer_id: int
    x: float
    y: float


PositionWriter = Callable[[Position], None]


class DragController:
    def __init__(
        self,
        write: PositionWriter,
        can_start: Callable[[], bool] = lambda: True,
        coalesce: bool = False,
    ):
        self._write = write
        self._can_start = can_start
        self.coalesce = coalesce
        self.state = DragState.IDLE
        self.captured_pointer: Optional[int] = None
        self._pending: Optional[Position] = None

    @property
    def dragging(self) -> bool:
        return self.state is DragState.DRAGGING

    def pointer_down(self, event: PointerEvent, container: Rect, element: Optional[Rect] = None) -> bool:
        """Start a drag. Returns True when the controller captured the pointer."""
        if self.dragging or not self._can_start():
            return False
        hit_area = element or container
        if not hit_area.contains(event.x, event.y):
            return False
        self.state = DragState.DRAGGING
        self.captured_pointer = event.pointer_id
        # a tap without movement still moves the element to the tap point
        self._apply(to_normalized(event.x, event.y, container), immediate=True)
        return True

    def pointer_move(self, event: PointerEvent, container: Rect) -> None:
        if not self._owns(event):
            return
        self._apply(to_normalized(event.x, event.y, container), immediate=not self.coalesce)

    def pointer_up(self, event: PointerEvent) -> None:
        if not self._owns(event):
            return
        self.on_animation_frame()
        self.state = DragState.IDLE
        self.captured_pointer = None

    pointer_cancel = pointer_up

    def on_animation_frame(self) -> None:
        """Flush the latest coalesced position, if any."""
        if self._pending is not None:
            pending, self._pending = self._pending, None
            self._write(pending)

    def _owns(self, event: PointerEvent) -> bool:
        return self.dragging and event.pointer_id == self.captured_pointer

    def _apply(self, position: Optional[Position], immediate: bool) -> None:
        if position is None:
            return
        if immediate:
            self._pending = None
            self._write(position)
        else:
            self._pending = position


DragKey = Tuple[str, str]


class DragRegistry:
    """Owns one controller per draggable element, keyed by (kind, id)."""

    def __init__(self):
        self._controllers: Dict[DragKey, DragController] = {}

    def get_or_create(self, key: DragKey, factory: Callable[[], DragController]) -> DragController:
        controller = self._controllers.get(key)
        if controller is None:
            controller = factory()
            self._controllers[key] = controller
        return controller

    def get(self, key: DragKey) -> Optional[DragController]:
        return self._controllers.get(key)

    def discard(self, key: DragKey) -> None:
        self._controllers.pop(key, None)

    def retain(self, live_keys) -> None:
        """Drop controllers whose element no longer exists (abandons their drag)."""
        live = set(live_keys)
        for key in [k for k in self._controllers if k not in live]:
            del self._controllers[key]

    def __len__(self) -> int:
        return len(self._controllers)
