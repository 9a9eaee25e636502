# card_studio/infrastructure/render/image_process.py
import math
from io import BytesIO
from typing import List, Sequence, Tuple

import numpy as np
from PIL import Image, ImageChops, ImageColor, ImageDraw, ImageFont


def parse_color(value: str, alpha: int = 255) -> Tuple[int, int, int, int]:
    rgb = ImageColor.getrgb(value)
    if len(rgb) == 4:
        return rgb
    return (*rgb, alpha)


def linear_gradient(size: Tuple[int, int], stops: Sequence[Tuple[str, float]], angle: float) -> Image.Image:
    """CSS ``linear-gradient(<angle>deg, ...)`` painted into an RGBA image."""
    width, height = size
    theta = math.radians(angle)
    dx, dy = math.sin(theta), -math.cos(theta)
    # length of the gradient line as CSS defines it
    length = abs(width * dx) + abs(height * dy) or 1.0

    xs = np.arange(width, dtype=np.float32) - (width - 1) / 2
    ys = np.arange(height, dtype=np.float32) - (height - 1) / 2
    t = (xs[None, :] * dx + ys[:, None] * dy) / length + 0.5
    t = np.clip(t, 0.0, 1.0)

    offsets = [offset for _, offset in stops]
    colors = np.array([parse_color(color) for color, _ in stops], dtype=np.float32)
    channels = [np.interp(t, offsets, colors[:, c]) for c in range(4)]
    pixels = np.stack(channels, axis=-1).round().astype(np.uint8)
    return Image.fromarray(pixels, "RGBA")


def rounded_mask(size: Tuple[int, int], radius: int) -> Image.Image:
    mask = Image.new("L", size, 0)
    draw = ImageDraw.Draw(mask)
    draw.rounded_rectangle((0, 0, size[0] - 1, size[1] - 1), radius=radius, fill=255)
    return mask


def apply_mask(img: Image.Image, mask: Image.Image) -> Image.Image:
    """Multiply the image's alpha by ``mask`` (keeps existing transparency)."""
    img = img.convert("RGBA")
    img.putalpha(ImageChops.multiply(img.getchannel("A"), mask))
    return img


def crop_to_fill(image_pil: Image.Image, target_w: int, target_h: int, focus_x: float = 50, focus_y: float = 50) -> Image.Image:
    """Scale to cover the target box, then crop around the focal point.

    ``focus_x``/``focus_y`` are percentages with object-position semantics:
    0 keeps the left/top edge, 100 the right/bottom edge.
    """
    source_w, source_h = image_pil.size
    target_ratio = target_w / target_h
    source_ratio = source_w / source_h

    if source_ratio > target_ratio:
        scale_factor = target_h / source_h
        scaled_w = max(target_w, round(source_w * scale_factor))
        scaled_h = target_h
    else:
        scale_factor = target_w / source_w
        scaled_w = target_w
        scaled_h = max(target_h, round(source_h * scale_factor))

    resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
    crop_x = round((scaled_w - target_w) * focus_x / 100)
    crop_y = round((scaled_h - target_h) * focus_y / 100)
    return resized_image.crop((crop_x, crop_y, crop_x + target_w, crop_y + target_h))


def load_font(size: float) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=max(1, round(size)))


def wrap_text(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> List[str]:
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}".strip()
            if current and draw.textlength(candidate, font=font) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def encode_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    # PNG supports alpha; keep mode as-is
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()
