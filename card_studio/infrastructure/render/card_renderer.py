# card_studio/infrastructure/render/card_renderer.py
"""Pillow implementation of the card rasterization capability.

Draws the card the same way the preview lays it out: themed gradient, photo
frames from the layout engine, the message panel and the text stickers.
Everything is positioned in preview pixels and multiplied by ``scale``.
"""
import io
import logging
from typing import Dict, Optional

from PIL import Image, ImageDraw, ImageFilter, ImageOps, UnidentifiedImageError

from card_studio.domain.coordinate_mapper import Rect, to_pixels
from card_studio.domain.errors import ExportFailed
from card_studio.domain.models import PhotoSlot, TextSticker
from card_studio.domain.rasterizer import CardSurface, export_dimensions
from card_studio.infrastructure.render import image_process

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [RENDER] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

CARD_RADIUS = 28
FRAME_RADIUS = 24
MESSAGE_RADIUS = 16
INK = (27, 27, 27, 255)
MUTED_INK = (0, 0, 0, 153)
STICKER_INK = (20, 20, 20, 217)
FROSTED = (255, 255, 255, 102)
FROSTED_EDGE = (255, 255, 255, 153)
PLACEHOLDER_INK = (0, 0, 0, 128)


class PillowCardRenderer:
    def render(self, surface: CardSurface, scale: float) -> bytes:
        size = export_dimensions(surface.width, surface.height, scale)
        theme = surface.theme
        card = image_process.linear_gradient(size, theme.gradient, theme.angle)
        self._draw_glow(card, scale)

        layout = surface.layout.id
        for index, (slot, frame) in enumerate(zip(surface.composition.slots, surface.frames.slots)):
            if layout == "focus":
                label = "Hero Photo" if index == 0 else f"Photo {index + 1}"
            else:
                label = f"Photo {index + 1}"
            self._draw_slot(card, slot, frame.scaled(scale), surface.images, label, scale)

        self._draw_panel(card, surface, scale)

        accent = image_process.parse_color(theme.accent)
        card_rect = Rect(width=size[0], height=size[1])
        for sticker in surface.composition.stickers:
            self._draw_sticker(card, sticker, card_rect, accent if sticker.tone == "accent" else STICKER_INK, scale)

        card = image_process.apply_mask(card, image_process.rounded_mask(size, round(CARD_RADIUS * scale)))
        return image_process.encode_png(card)

    # --- pieces ---

    @staticmethod
    def _draw_glow(card: Image.Image, scale: float) -> None:
        width, height = card.size
        d = 144 * scale
        layer = Image.new("RGBA", card.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        draw.ellipse((width - d + 40 * scale, -40 * scale, width + 40 * scale, d - 40 * scale), fill=(255, 255, 255, 77))
        d = 128 * scale
        draw.ellipse((40 * scale, height - d + 48 * scale, 40 * scale + d, height + 48 * scale), fill=(255, 255, 255, 77))
        card.alpha_composite(layer.filter(ImageFilter.GaussianBlur(20 * scale)))

    @staticmethod
    def _decode(content: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(content))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"Could not decode slot photo ({len(content)} bytes): {e}")
            raise ExportFailed("A photo could not be decoded for export.") from e
        return ImageOps.exif_transpose(img).convert("RGBA")

    def _draw_slot(self, card: Image.Image, slot: PhotoSlot, box: Rect, images: Dict[str, bytes], label: str, scale: float) -> None:
        x0, y0 = round(box.left), round(box.top)
        w, h = max(1, round(box.width)), max(1, round(box.height))
        content: Optional[bytes] = None if slot.is_empty else images.get(slot.id)

        if content is None:
            tile = Image.new("RGBA", (w, h), FROSTED)
            draw = ImageDraw.Draw(tile)
            font = image_process.load_font(11 * scale)
            draw.text((w / 2, h / 2), label.upper(), font=font, fill=PLACEHOLDER_INK, anchor="mm")
        else:
            photo = self._decode(content)
            tile = image_process.crop_to_fill(photo, w, h, slot.position.x, slot.position.y)
            photo.close()

        radius = round(FRAME_RADIUS * scale)
        tile = image_process.apply_mask(tile, image_process.rounded_mask((w, h), radius))
        edge = ImageDraw.Draw(tile)
        edge.rounded_rectangle((0, 0, w - 1, h - 1), radius=radius, outline=FROSTED_EDGE, width=max(1, round(scale)))
        card.alpha_composite(tile, (x0, y0))

    def _draw_panel(self, card: Image.Image, surface: CardSurface, scale: float) -> None:
        composition = surface.composition
        accent = image_process.parse_color(surface.theme.accent)
        panel = surface.frames.panel.scaled(scale)
        layer = Image.new("RGBA", card.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)

        if surface.layout.id == "duo":
            eyebrow = "BIRTHDAY"
            headline = ["Happy Birthday", composition.recipient or "Your Friend"]
        else:
            eyebrow = "CELEBRATE"
            headline = [composition.recipient or "Birthday Star"]

        small = image_process.load_font(12 * scale)
        large = image_process.load_font(24 * scale)
        x, y = panel.left, panel.top
        draw.text((x, y), eyebrow, font=small, fill=accent)
        y += 12 * scale * 1.5 + 12 * scale

        for line in headline:
            for wrapped in image_process.wrap_text(draw, line, large, panel.width):
                draw.text((x, y), wrapped, font=large, fill=INK)
                y += 24 * scale * 1.25
        y += 16 * scale

        padding = 12 * scale
        lines = image_process.wrap_text(
            draw, composition.message or "Type your birthday message here.", small, panel.width - 2 * padding
        )
        line_h = 12 * scale * 1.6
        box_h = len(lines) * line_h + 2 * padding
        draw.rounded_rectangle(
            (x, y, panel.right, y + box_h),
            radius=round(MESSAGE_RADIUS * scale),
            outline=accent,
            width=max(1, round(scale)),
        )
        for i, line in enumerate(lines):
            draw.text((x + padding, y + padding + i * line_h), line, font=small, fill=INK)

        footer = f"FROM {(composition.sender or 'You').upper()}"
        draw.text((x, panel.bottom), footer, font=small, fill=MUTED_INK, anchor="ld")
        card.alpha_composite(layer)

    @staticmethod
    def _draw_sticker(card: Image.Image, sticker: TextSticker, card_rect: Rect, color, scale: float) -> None:
        if not sticker.text:
            return
        cx, cy = to_pixels(sticker.position, card_rect)
        font = image_process.load_font(sticker.size * scale)
        layer = Image.new("RGBA", card.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        left, top, right, bottom = draw.textbbox((cx, cy), sticker.text, font=font, anchor="mm")
        pad_x, pad_y = 12 * scale, 4 * scale
        pill = (left - pad_x, top - pad_y, right + pad_x, bottom + pad_y)
        draw.rounded_rectangle(pill, radius=round((pill[3] - pill[1]) / 2), fill=FROSTED, outline=FROSTED_EDGE, width=max(1, round(scale)))
        draw.text((cx, cy), sticker.text, font=font, fill=color, anchor="mm")
        card.alpha_composite(layer)
