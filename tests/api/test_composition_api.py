"""Composition API — sessions, slots, stickers, pointer events, export.

Invariants:
    - Every mutation answers with the full session view
    - Bad indexes / catalog ids are 422, unknown sessions 404
    - Upload failures land in the composition's error slot, not as HTTP errors
    - Export answers with a PNG attachment named after the recipient
"""

import io

import pytest
from PIL import Image

from card_studio.domain.errors import ExportFailed
from card_studio.main import app


async def _new_session(client):
    resp = await client.post("/api/v1/sessions")
    assert resp.status_code == 201
    return resp.json()


def _store(session_id):
    return app.state.sessions.get(session_id).store


# --- sessions & catalog ------------------------------------------------------------


@pytest.mark.asyncio
async def test_catalog_lists_entries(client):
    body = (await client.get("/api/v1/catalog")).json()
    assert [t["id"] for t in body["themes"]] == ["sunrise", "sorbet", "night"]
    assert [l["id"] for l in body["layouts"]] == ["duo", "focus"]
    assert [c["preview_width"] for c in body["card_sizes"]] == [520, 620, 720]


@pytest.mark.asyncio
async def test_new_session_starts_with_two_empty_slots(client):
    body = await _new_session(client)
    composition = body["composition"]
    assert len(composition["slots"]) == 2
    assert composition["slots"][0]["size_label"] == "-"
    assert composition["stickers"] == []


@pytest.mark.asyncio
async def test_unknown_session_is_404(client):
    resp = await client.get("/api/v1/sessions/nope")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_session(client):
    sid = (await _new_session(client))["id"]
    assert (await client.delete(f"/api/v1/sessions/{sid}")).status_code == 204
    assert (await client.get(f"/api/v1/sessions/{sid}")).status_code == 404


@pytest.mark.asyncio
async def test_idle_session_expires_to_404(client):
    now = [5000.0]
    app.state.sessions.clock = lambda: now[0]
    app.state.sessions.ttl_seconds = 60
    sid = (await _new_session(client))["id"]
    assert (await client.get(f"/api/v1/sessions/{sid}")).status_code == 200

    now[0] += 61
    assert (await client.get(f"/api/v1/sessions/{sid}")).status_code == 404
    assert len(app.state.sessions) == 0


@pytest.mark.asyncio
async def test_update_card_details(client):
    sid = (await _new_session(client))["id"]
    resp = await client.patch(f"/api/v1/sessions/{sid}/card", json={
        "recipient": "Mia", "sender": "Leo", "theme_id": "sorbet", "layout_id": "focus",
    })
    composition = resp.json()["composition"]
    assert (composition["recipient"], composition["sender"]) == ("Mia", "Leo")
    assert (composition["theme_id"], composition["layout_id"]) == ("sorbet", "focus")


@pytest.mark.asyncio
async def test_unknown_theme_is_422(client):
    sid = (await _new_session(client))["id"]
    resp = await client.patch(f"/api/v1/sessions/{sid}/card", json={"theme_id": "neon"})
    assert resp.status_code == 422


# --- slots -------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_add_and_remove_slots(client):
    sid = (await _new_session(client))["id"]
    await client.post(f"/api/v1/sessions/{sid}/slots")
    body = (await client.delete(f"/api/v1/sessions/{sid}/slots/2")).json()
    assert len(body["composition"]["slots"]) == 2
    body = (await client.delete(f"/api/v1/sessions/{sid}/slots/0")).json()
    assert len(body["composition"]["slots"]) == 2


@pytest.mark.asyncio
async def test_remove_out_of_range_slot_is_422(client):
    sid = (await _new_session(client))["id"]
    assert (await client.delete(f"/api/v1/sessions/{sid}/slots/9")).status_code == 422


@pytest.mark.asyncio
async def test_upload_fills_slot(client, uploader):
    sid = (await _new_session(client))["id"]
    resp = await client.post(
        f"/api/v1/sessions/{sid}/slots/1/upload",
        files={"file": ("beach.jpg", b"x" * 2048, "image/jpeg")},
    )
    slot = resp.json()["composition"]["slots"][1]
    assert slot["source_reference"] == "https://ik.test/birthday-cards/beach.jpg"
    assert slot["original_name"] == "beach.jpg"
    assert slot["size_label"] == "2 KB"
    assert slot["uploading"] is False
    assert uploader.calls == ["beach.jpg"]


@pytest.mark.asyncio
async def test_failed_upload_reports_service_message(client, uploader):
    uploader.message = "File size exceeds limit."
    sid = (await _new_session(client))["id"]
    resp = await client.post(
        f"/api/v1/sessions/{sid}/slots/0/upload",
        files={"file": ("big.jpg", b"x", "image/jpeg")},
    )
    assert resp.status_code == 200
    composition = resp.json()["composition"]
    assert composition["error"] == "File size exceeds limit."
    assert composition["slots"][0]["source_reference"] is None
    assert composition["slots"][0]["uploading"] is False


@pytest.mark.asyncio
async def test_swap_and_position(client):
    sid = (await _new_session(client))["id"]
    await client.post(f"/api/v1/sessions/{sid}/slots/0/upload", files={"file": ("a.jpg", b"x", "image/jpeg")})
    body = (await client.put(f"/api/v1/sessions/{sid}/slots/0/position", json={"x": 120, "y": 30})).json()
    assert body["composition"]["slots"][0]["position"] == {"x": 100, "y": 30}
    body = (await client.post(f"/api/v1/sessions/{sid}/slots/swap")).json()
    assert body["composition"]["slots"][1]["original_name"] == "a.jpg"


# --- stickers & pointer ------------------------------------------------------------


@pytest.mark.asyncio
async def test_sticker_lifecycle(client):
    sid = (await _new_session(client))["id"]
    for _ in range(4):
        body = (await client.post(f"/api/v1/sessions/{sid}/stickers", json={"text": "Hi"})).json()
    stickers = body["composition"]["stickers"]
    assert len(stickers) == 3

    sticker_id = stickers[0]["id"]
    body = (await client.patch(
        f"/api/v1/sessions/{sid}/stickers/{sticker_id}", json={"tone": "ink", "size": 30},
    )).json()
    assert body["composition"]["stickers"][0]["tone"] == "ink"

    body = (await client.delete(f"/api/v1/sessions/{sid}/stickers/{sticker_id}")).json()
    assert [s["id"] for s in body["composition"]["stickers"]] == [s["id"] for s in stickers[1:]]


@pytest.mark.asyncio
async def test_add_sticker_without_body_uses_default_text(client):
    sid = (await _new_session(client))["id"]
    body = (await client.post(f"/api/v1/sessions/{sid}/stickers")).json()
    assert body["composition"]["stickers"][0]["text"] == "Your text"


@pytest.mark.asyncio
async def test_pointer_drag_moves_sticker(client):
    sid = (await _new_session(client))["id"]
    sticker_id = (await client.post(f"/api/v1/sessions/{sid}/stickers")).json()["composition"]["stickers"][0]["id"]
    card = {"left": 10, "top": 10, "width": 400, "height": 200}
    base = {"target": "sticker", "target_id": sticker_id, "pointer_id": 4, "container": card}

    await client.post(f"/api/v1/sessions/{sid}/pointer", json={**base, "type": "down", "x": 300, "y": 60})
    await client.post(f"/api/v1/sessions/{sid}/pointer", json={**base, "type": "move", "x": 110, "y": 110})
    body = (await client.post(f"/api/v1/sessions/{sid}/pointer", json={**base, "type": "up", "x": 110, "y": 110})).json()
    assert body["composition"]["stickers"][0]["position"] == {"x": 25, "y": 50}


@pytest.mark.asyncio
async def test_pointer_with_degenerate_container_keeps_position(client):
    sid = (await _new_session(client))["id"]
    sticker_id = (await client.post(f"/api/v1/sessions/{sid}/stickers")).json()["composition"]["stickers"][0]["id"]
    body = (await client.post(f"/api/v1/sessions/{sid}/pointer", json={
        "target": "sticker", "target_id": sticker_id, "type": "down", "x": 0, "y": 0,
        "container": {"left": 0, "top": 0, "width": 0, "height": 0},
        "element": {"left": 0, "top": 0, "width": 10, "height": 10},
    })).json()
    assert body["composition"]["stickers"][0]["position"] == {"x": 70, "y": 20}


# --- layout & export ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_layout_follows_slot_count_and_variant(client):
    sid = (await _new_session(client))["id"]
    for _ in range(3):
        await client.post(f"/api/v1/sessions/{sid}/slots")
    body = (await client.get(f"/api/v1/sessions/{sid}/layout")).json()
    assert body["layout"]["grid"] == {"columns": 3, "rows": 2}
    assert len(body["frames"]["slots"]) == 5
    assert body["frames"]["width"] == 520

    await client.patch(f"/api/v1/sessions/{sid}/card", json={"layout_id": "focus"})
    body = (await client.get(f"/api/v1/sessions/{sid}/layout", params={"width": 720})).json()
    assert body["layout"]["secondary"] == {"columns": 2, "rows": 2}
    assert body["frames"]["width"] == 720


@pytest.mark.asyncio
async def test_export_returns_png_attachment(client, tmp_path):
    photo = tmp_path / "a.png"
    Image.new("RGB", (64, 64), (10, 120, 200)).save(photo)
    sid = (await _new_session(client))["id"]
    await client.patch(f"/api/v1/sessions/{sid}/card", json={"recipient": "Zoë"})
    _store(sid).set_slot_image(0, str(photo), "a.png")

    resp = await client.post(f"/api/v1/sessions/{sid}/export", json={"scale": 2})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert "Zo%C3%AB.png" in resp.headers["content-disposition"]
    img = Image.open(io.BytesIO(resp.content))
    assert img.size == (1040, 693)
    assert resp.headers["x-image-width"] == "1040"


@pytest.mark.asyncio
async def test_export_default_scale_comes_from_card_size(client):
    sid = (await _new_session(client))["id"]
    await client.patch(f"/api/v1/sessions/{sid}/card", json={"card_size_id": "large"})
    resp = await client.post(f"/api/v1/sessions/{sid}/export")
    assert resp.status_code == 200
    assert 'birthday-card.png' in resp.headers["content-disposition"]
    assert Image.open(io.BytesIO(resp.content)).size == (1550, 1033)


@pytest.mark.asyncio
async def test_tainted_export_is_502_with_message(client):
    class _Tainted:
        async def load_many(self, sources):
            raise ExportFailed("A photo could not be read for export. Its host may not allow cross-origin access.")

    sid = (await _new_session(client))["id"]
    app.state.sessions.get(sid).rasterizer.images = _Tainted()
    _store(sid).set_slot_image(0, "https://elsewhere.test/a.jpg", "a.jpg")

    resp = await client.post(f"/api/v1/sessions/{sid}/export")
    assert resp.status_code == 502
    assert "cross-origin" in resp.json()["message"]
    session = (await client.get(f"/api/v1/sessions/{sid}")).json()
    assert "cross-origin" in session["composition"]["error"]
    assert session["composition"]["exporting"] is False
