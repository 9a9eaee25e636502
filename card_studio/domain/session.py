# card_studio/domain/session.py
import logging
import time
import uuid
from concurrent.futures import Executor
from typing import Callable, Dict, Literal, Optional

from card_studio.config.settings import settings
from card_studio.domain.composition_store import CompositionStore
from card_studio.domain.coordinate_mapper import Rect
from card_studio.domain.drag_controller import DragController, DragRegistry, PointerEvent
from card_studio.domain.errors import ExportFailed, ExportInProgress
from card_studio.domain.models import CompositionSnapshot, StickerUpdate
from card_studio.domain.rasterizer import ExportResult, ImageSource, Rasterizer, SurfaceRenderer

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [SESSION] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

DragTarget = Literal["slot", "sticker"]
PointerPhase = Literal["down", "move", "up", "cancel"]


class CompositionSession:
    """One user's card: the store plus the drag controllers and export gate around it."""

    def __init__(self, session_id: str, store: CompositionStore, rasterizer: Rasterizer):
        self.id = session_id
        self.store = store
        self.rasterizer = rasterizer
        self.drags = DragRegistry()

    # --- drags ---

    def _slot_controller(self, slot_id: str) -> DragController:
        store = self.store

        def can_start() -> bool:
            slot = store.find_slot(slot_id)
            return slot is not None and not slot.is_empty

        return DragController(
            write=lambda position: store.set_slot_position_by_id(slot_id, position),
            can_start=can_start,
        )

    def _sticker_controller(self, sticker_id: str) -> DragController:
        store = self.store
        return DragController(
            write=lambda position: store.update_sticker(sticker_id, StickerUpdate(position=position)),
            can_start=lambda: store.find_sticker(sticker_id) is not None,
        )

    def _target_exists(self, target: DragTarget, target_id: str) -> bool:
        if target == "slot":
            return self.store.find_slot(target_id) is not None
        return self.store.find_sticker(target_id) is not None

    def prune_drags(self) -> None:
        snapshot = self.store.snapshot()
        live = [("slot", s.id) for s in snapshot.slots] + [("sticker", s.id) for s in snapshot.stickers]
        self.drags.retain(live)

    def handle_pointer(
        self,
        target: DragTarget,
        target_id: str,
        phase: PointerPhase,
        event: PointerEvent,
        container: Optional[Rect] = None,
        element: Optional[Rect] = None,
    ) -> CompositionSnapshot:
        key = (target, target_id)
        if not self._target_exists(target, target_id):
            self.drags.discard(key)
            return self.store.snapshot()

        if phase == "down":
            factory = (lambda: self._slot_controller(target_id)) if target == "slot" else (lambda: self._sticker_controller(target_id))
            controller = self.drags.get_or_create(key, factory)
            if container is not None:
                controller.pointer_down(event, container, element)
            return self.store.snapshot()

        controller = self.drags.get(key)
        if controller is None:
            return self.store.snapshot()
        if phase == "move":
            if container is not None:
                controller.pointer_move(event, container)
        elif phase == "up":
            controller.pointer_up(event)
        else:
            controller.pointer_cancel(event)
        return self.store.snapshot()

    # --- export ---

    async def export(self, scale: Optional[float] = None) -> ExportResult:
        if self.rasterizer.in_progress:
            raise ExportInProgress("An export is already in progress.")
        self.store.exporting = True
        try:
            return await self.rasterizer.export(self.store.snapshot(), scale)
        except ExportFailed as e:
            logger.warning(f"Export for session {self.id} failed: {e.message}")
            self.store.report_error(e.message)
            raise
        finally:
            self.store.exporting = False


class SessionRegistry:
    """In-memory sessions; nothing outlives the process.

    Every lookup refreshes a session's last-access time. Sessions idle for
    longer than ``ttl_seconds`` are dropped on the next create or lookup,
    unless an export is still running for them.
    """

    def __init__(
        self,
        renderer: SurfaceRenderer,
        images: ImageSource,
        executor: Optional[Executor] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.renderer = renderer
        self.images = images
        self.executor = executor
        self.ttl_seconds = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._sessions: Dict[str, CompositionSession] = {}
        self._last_access: Dict[str, float] = {}

    def evict_idle(self) -> int:
        now = self.clock()
        idle = [
            session_id
            for session_id, seen in self._last_access.items()
            if now - seen > self.ttl_seconds and not self._sessions[session_id].store.exporting
        ]
        for session_id in idle:
            del self._sessions[session_id]
            del self._last_access[session_id]
        if idle:
            logger.info(f"Evicted {len(idle)} idle session(s) ({len(self._sessions)} active).")
        return len(idle)

    def create(self) -> CompositionSession:
        self.evict_idle()
        session_id = uuid.uuid4().hex
        session = CompositionSession(
            session_id,
            CompositionStore(),
            Rasterizer(self.renderer, self.images, self.executor),
        )
        self._sessions[session_id] = session
        self._last_access[session_id] = self.clock()
        logger.info(f"Session {session_id} created ({len(self._sessions)} active).")
        return session

    def get(self, session_id: str) -> CompositionSession:
        self.evict_idle()
        session = self._sessions[session_id]
        self._last_access[session_id] = self.clock()
        return session

    def delete(self, session_id: str) -> None:
        del self._sessions[session_id]
        self._last_access.pop(session_id, None)
        logger.info(f"Session {session_id} discarded ({len(self._sessions)} active).")

    def __len__(self) -> int:
        return len(self._sessions)
