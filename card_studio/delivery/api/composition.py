# card_studio/delivery/api/composition.py
from contextlib import contextmanager
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status
import logging

from card_studio.delivery.schemas.body import CardDetailsUpdate, ExportRequest, PointerBody, StickerCreate
from card_studio.domain import catalog
from card_studio.domain.drag_controller import PointerEvent
from card_studio.domain.layout_engine import derive_layout, place_layout
from card_studio.domain.models import Position, StickerUpdate, format_bytes
from card_studio.domain.session import CompositionSession

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def get_session(session_id: str, request: Request) -> CompositionSession:
    try:
        return request.app.state.sessions.get(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.")


@contextmanager
def store_errors():
    """Bad indexes and catalog ids from the client become 422s."""
    try:
        yield
    except (IndexError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))


def session_view(session: CompositionSession) -> dict:
    composition = session.store.snapshot().model_dump()
    for slot in composition["slots"]:
        slot["size_label"] = format_bytes(slot["byte_size"])
    return {"id": session.id, "composition": composition}


@router.get("/catalog")
async def get_catalog():
    return {
        "themes": [t.model_dump() for t in catalog.THEMES],
        "layouts": [l.model_dump() for l in catalog.LAYOUTS],
        "card_sizes": [c.model_dump() for c in catalog.CARD_SIZES],
    }


# --- sessions ---

@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(request: Request):
    session = request.app.state.sessions.create()
    return session_view(session)


@router.get("/sessions/{session_id}")
async def read_session(session: CompositionSession = Depends(get_session)):
    return session_view(session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(request: Request, session: CompositionSession = Depends(get_session)):
    request.app.state.sessions.delete(session.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/sessions/{session_id}/card")
async def update_card(body: CardDetailsUpdate, session: CompositionSession = Depends(get_session)):
    store = session.store
    with store_errors():
        if body.recipient is not None:
            store.set_recipient(body.recipient)
        if body.sender is not None:
            store.set_sender(body.sender)
        if body.message is not None:
            store.set_message(body.message)
        if body.theme_id is not None:
            store.select_theme(body.theme_id)
        if body.layout_id is not None:
            store.select_layout(body.layout_id)
        if body.card_size_id is not None:
            store.select_card_size(body.card_size_id)
    return session_view(session)


# --- photo slots ---

@router.post("/sessions/{session_id}/slots")
async def add_slot(session: CompositionSession = Depends(get_session)):
    session.store.add_slot()
    return session_view(session)


@router.post("/sessions/{session_id}/slots/swap")
async def swap_slots(session: CompositionSession = Depends(get_session)):
    session.store.swap_first_two()
    return session_view(session)


@router.delete("/sessions/{session_id}/slots/{index}")
async def remove_slot(index: int, session: CompositionSession = Depends(get_session)):
    with store_errors():
        session.store.remove_slot(index)
    session.prune_drags()
    return session_view(session)


@router.put("/sessions/{session_id}/slots/{index}/position")
async def set_slot_position(index: int, position: Position, session: CompositionSession = Depends(get_session)):
    with store_errors():
        session.store.set_slot_position(index, position)
    return session_view(session)


@router.post("/sessions/{session_id}/slots/{index}/upload")
async def upload_slot_image(
    request: Request,
    index: int,
    file: UploadFile = File(...),
    session: CompositionSession = Depends(get_session),
):
    content = await file.read()
    with store_errors():
        await request.app.state.upload_service.upload_to_slot(
            session.store,
            index,
            content,
            file.filename or "photo",
            file.content_type,
        )
    return session_view(session)


# --- stickers ---

@router.post("/sessions/{session_id}/stickers")
async def add_sticker(body: Optional[StickerCreate] = None, session: CompositionSession = Depends(get_session)):
    if body is not None and body.text is not None:
        session.store.add_sticker(body.text)
    else:
        session.store.add_sticker()
    return session_view(session)


@router.patch("/sessions/{session_id}/stickers/{sticker_id}")
async def update_sticker(sticker_id: str, update: StickerUpdate, session: CompositionSession = Depends(get_session)):
    with store_errors():
        session.store.update_sticker(sticker_id, update)
    return session_view(session)


@router.delete("/sessions/{session_id}/stickers/{sticker_id}")
async def remove_sticker(sticker_id: str, session: CompositionSession = Depends(get_session)):
    session.store.remove_sticker(sticker_id)
    session.prune_drags()
    return session_view(session)


# --- pointer, layout, export ---

@router.post("/sessions/{session_id}/pointer")
async def pointer_event(body: PointerBody, session: CompositionSession = Depends(get_session)):
    event = PointerEvent(pointer_id=body.pointer_id, x=body.x, y=body.y)
    session.handle_pointer(body.target, body.target_id, body.type, event, body.container, body.element)
    return session_view(session)


@router.get("/sessions/{session_id}/layout")
async def read_layout(
    width: Optional[float] = Query(default=None, gt=0),
    session: CompositionSession = Depends(get_session),
):
    snapshot = session.store.snapshot()
    if width is None:
        width = catalog.get_card_size(snapshot.card_size_id).preview_width
    layout = derive_layout(len(snapshot.slots), snapshot.layout_id)
    frames = place_layout(layout, width, width * 2 / 3)
    return {"layout": layout.model_dump(), "frames": frames.model_dump()}


@router.post("/sessions/{session_id}/export")
async def export_card(body: Optional[ExportRequest] = None, session: CompositionSession = Depends(get_session)):
    scale = body.scale if body is not None else None
    result = await session.export(scale)
    logger.info(f"Session {session.id} exported {result.filename} ({result.width}x{result.height}).")
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.filename)}",
            "X-Image-Width": str(result.width),
            "X-Image-Height": str(result.height),
        },
    )
