# card_studio/domain/composition_store.py
"""Canonical state of one card being composed.

Slots are kept as independent cells, each with a stable generated id. Public
operations address slots by their display index; asynchronous writers
(uploads, drags) resolve against the id they captured and their write is
dropped when that id has disappeared in the meantime.
"""
import itertools
import logging
import uuid
from typing import Dict, List, Optional

from card_studio.config.settings import settings
from card_studio.domain import catalog
from card_studio.domain.models import (
    MAX_STICKER_SIZE,
    MIN_STICKER_SIZE,
    CompositionSnapshot,
    PhotoSlot,
    Position,
    StickerUpdate,
    TextSticker,
    clamp,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

DEFAULT_STICKER_TEXT = "Your text"


def _new_slot() -> PhotoSlot:
    return PhotoSlot(id=f"slot-{uuid.uuid4().hex[:12]}")


class CompositionStore:
    def __init__(self, min_slots: Optional[int] = None, max_stickers: Optional[int] = None):
        self.min_slots = settings.MIN_PHOTO_SLOTS if min_slots is None else min_slots
        self.max_stickers = settings.MAX_STICKERS if max_stickers is None else max_stickers
        if self.min_slots < 1:
            raise ValueError("min_slots must be at least 1.")

        self.recipient = ""
        self.sender = ""
        self.message = catalog.DEFAULT_MESSAGE
        self.theme_id = catalog.THEMES[0].id
        self.layout_id = catalog.LAYOUTS[0].id
        self.card_size_id = catalog.CARD_SIZES[0].id
        self.error: Optional[str] = None
        self.exporting = False

        self._slots: List[PhotoSlot] = [_new_slot() for _ in range(self.min_slots)]
        self._stickers: List[TextSticker] = []
        self._sticker_seq = itertools.count(1)
        self._uploads_in_flight: Dict[str, int] = {}

    # --- snapshot ---

    def snapshot(self) -> CompositionSnapshot:
        return CompositionSnapshot(
            recipient=self.recipient,
            sender=self.sender,
            message=self.message,
            theme_id=self.theme_id,
            layout_id=self.layout_id,
            card_size_id=self.card_size_id,
            slots=[s.model_copy(deep=True) for s in self._slots],
            stickers=[s.model_copy(deep=True) for s in self._stickers],
            error=self.error,
            exporting=self.exporting,
        )

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    @property
    def sticker_count(self) -> int:
        return len(self._stickers)

    # --- slots, index addressed ---

    def _slot_at(self, index: int) -> PhotoSlot:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"Slot index {index} out of range (0..{len(self._slots) - 1}).")
        return self._slots[index]

    def slot_id_at(self, index: int) -> str:
        return self._slot_at(index).id

    def add_slot(self) -> CompositionSnapshot:
        self._slots.append(_new_slot())
        return self.snapshot()

    def remove_slot(self, index: int) -> CompositionSnapshot:
        removed = self._slot_at(index)
        if len(self._slots) > self.min_slots:
            del self._slots[index]
        else:
            # Floor reached: the slot becomes a fresh empty one so that writers
            # still holding the old id are ignored.
            self._slots[index] = _new_slot()
        logger.info(f"Slot {removed.id} at index {index} removed ({len(self._slots)} slots left).")
        return self.snapshot()

    def swap_first_two(self) -> CompositionSnapshot:
        if len(self._slots) >= 2:
            self._slots[0], self._slots[1] = self._slots[1], self._slots[0]
        return self.snapshot()

    def set_slot_image(
        self,
        index: int,
        source_reference: str,
        original_name: Optional[str] = None,
        byte_size: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> CompositionSnapshot:
        self._fill(self._slot_at(index), source_reference, original_name, byte_size, mime_type)
        return self.snapshot()

    def set_slot_position(self, index: int, position: Position) -> CompositionSnapshot:
        self._move(self._slot_at(index), position)
        return self.snapshot()

    # --- slots, id addressed ---

    def find_slot(self, slot_id: str) -> Optional[PhotoSlot]:
        return next((s for s in self._slots if s.id == slot_id), None)

    def set_slot_image_by_id(
        self,
        slot_id: str,
        source_reference: str,
        original_name: Optional[str] = None,
        byte_size: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> CompositionSnapshot:
        slot = self.find_slot(slot_id)
        if slot is None:
            logger.warning(f"Dropping image for vanished slot {slot_id}.")
        else:
            self._fill(slot, source_reference, original_name, byte_size, mime_type)
        return self.snapshot()

    def set_slot_position_by_id(self, slot_id: str, position: Position) -> CompositionSnapshot:
        slot = self.find_slot(slot_id)
        if slot is not None:
            self._move(slot, position)
        return self.snapshot()

    def set_uploading(self, slot_id: str, uploading: bool) -> CompositionSnapshot:
        """Mark one upload for the slot as started (True) or resolved (False).

        Uploads are counted, so the flag stays on until the last one resolves.
        """
        pending = self._uploads_in_flight.get(slot_id, 0) + (1 if uploading else -1)
        if pending > 0:
            self._uploads_in_flight[slot_id] = pending
        else:
            self._uploads_in_flight.pop(slot_id, None)
        slot = self.find_slot(slot_id)
        if slot is not None:
            slot.uploading = pending > 0
        return self.snapshot()

    @staticmethod
    def _fill(slot: PhotoSlot, source_reference, original_name, byte_size, mime_type) -> None:
        slot.source_reference = source_reference
        slot.original_name = original_name
        slot.byte_size = byte_size
        slot.mime_type = mime_type
        slot.position = Position(x=50, y=50)

    @staticmethod
    def _move(slot: PhotoSlot, position: Position) -> None:
        if slot.is_empty:
            return
        slot.position = Position.clamped(position.x, position.y)

    # --- stickers ---

    def find_sticker(self, sticker_id: str) -> Optional[TextSticker]:
        return next((s for s in self._stickers if s.id == sticker_id), None)

    def add_sticker(self, text: str = DEFAULT_STICKER_TEXT) -> CompositionSnapshot:
        if len(self._stickers) >= self.max_stickers:
            return self.snapshot()
        sticker_id = f"sticker-{next(self._sticker_seq)}-{uuid.uuid4().hex[:8]}"
        self._stickers.append(TextSticker(id=sticker_id, text=text))
        return self.snapshot()

    def remove_sticker(self, sticker_id: str) -> CompositionSnapshot:
        self._stickers = [s for s in self._stickers if s.id != sticker_id]
        return self.snapshot()

    def update_sticker(self, sticker_id: str, update: StickerUpdate) -> CompositionSnapshot:
        sticker = self.find_sticker(sticker_id)
        if sticker is None:
            return self.snapshot()
        if update.text is not None:
            sticker.text = update.text
        if update.position is not None:
            sticker.position = Position.clamped(update.position.x, update.position.y)
        if update.size is not None:
            sticker.size = int(clamp(update.size, MIN_STICKER_SIZE, MAX_STICKER_SIZE))
        if update.tone is not None:
            sticker.tone = update.tone
        return self.snapshot()

    # --- card details ---

    def set_recipient(self, recipient: str) -> CompositionSnapshot:
        self.recipient = recipient
        return self.snapshot()

    def set_sender(self, sender: str) -> CompositionSnapshot:
        self.sender = sender
        return self.snapshot()

    def set_message(self, message: str) -> CompositionSnapshot:
        self.message = message
        return self.snapshot()

    def select_theme(self, theme_id: str) -> CompositionSnapshot:
        self.theme_id = catalog.require_theme(theme_id)
        return self.snapshot()

    def select_layout(self, layout_id: str) -> CompositionSnapshot:
        self.layout_id = catalog.require_layout(layout_id)
        return self.snapshot()

    def select_card_size(self, card_size_id: str) -> CompositionSnapshot:
        self.card_size_id = catalog.require_card_size(card_size_id)
        return self.snapshot()

    # --- user-visible error slot ---

    def report_error(self, message: str) -> CompositionSnapshot:
        self.error = message
        return self.snapshot()

    def clear_error(self) -> CompositionSnapshot:
        self.error = None
        return self.snapshot()
