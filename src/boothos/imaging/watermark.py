"""Branding badge and themed live-capture overlays."""

from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from boothos.imaging.compositor import CompositionError

WATERMARK_TEXT = "Powered by BoothOS"
WATERMARK_FONT_SIZE = 24
WATERMARK_PADDING = 20
WATERMARK_MARGIN = 20
OVERLAY_BADGE_TEXT = "BoothOS Live"

RGBA = tuple[int, int, int, int]


@dataclass(frozen=True)
class OverlayTheme:
    """Colour palette for a live overlay."""

    accent: RGBA
    glow: RGBA
    text: RGBA
    badge: RGBA


THEMES: dict[str, OverlayTheme] = {
    "default": OverlayTheme(
        accent=(155, 92, 255, 255),
        glow=(155, 92, 255, 89),
        text=(255, 255, 255, 255),
        badge=(255, 255, 255, 36),
    ),
    "wedding": OverlayTheme(
        accent=(246, 193, 213, 255),
        glow=(246, 193, 213, 102),
        text=(255, 255, 255, 255),
        badge=(255, 255, 255, 46),
    ),
    "birthday": OverlayTheme(
        accent=(103, 232, 249, 255),
        glow=(103, 232, 249, 102),
        text=(11, 16, 34, 255),
        badge=(11, 16, 34, 36),
    ),
    "military": OverlayTheme(
        accent=(125, 211, 252, 255),
        glow=(12, 148, 196, 89),
        text=(226, 232, 240, 255),
        badge=(255, 255, 255, 31),
    ),
    "christmas": OverlayTheme(
        accent=(248, 113, 113, 255),
        glow=(248, 113, 113, 92),
        text=(255, 255, 255, 255),
        badge=(255, 255, 255, 31),
    ),
    "valentines": OverlayTheme(
        accent=(251, 113, 133, 255),
        glow=(251, 113, 133, 92),
        text=(255, 255, 255, 255),
        badge=(255, 255, 255, 31),
    ),
}


def watermark_badge_size() -> tuple[int, int]:
    """Badge size derived from the fixed text and font size."""
    text_width = len(WATERMARK_TEXT) * WATERMARK_FONT_SIZE * 0.6
    width = round(text_width + WATERMARK_PADDING * 2)
    height = round(WATERMARK_FONT_SIZE + WATERMARK_PADDING * 1.5)
    return width, height


def watermark_origin(image_size: tuple[int, int]) -> tuple[int, int]:
    """Bottom-right anchor, pinned to (0, 0) when the image is too small."""
    badge_width, badge_height = watermark_badge_size()
    left = image_size[0] - badge_width - WATERMARK_MARGIN
    top = image_size[1] - badge_height - WATERMARK_MARGIN
    return max(0, left), max(0, top)


def apply_watermark(data: bytes) -> bytes:
    """Stamp the branding badge onto an image and return PNG bytes."""
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except OSError as exc:
        raise CompositionError(f"Could not decode image: {exc}") from exc

    base = image.convert("RGBA")
    badge_width, badge_height = watermark_badge_size()
    badge = Image.new("RGBA", (badge_width, badge_height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(badge)
    draw.rounded_rectangle(
        (0, 0, badge_width - 1, badge_height - 1), radius=6, fill=(0, 0, 0, 204)
    )
    draw.text(
        (WATERMARK_PADDING, badge_height / 2),
        WATERMARK_TEXT,
        font=_font(WATERMARK_FONT_SIZE),
        fill=(255, 255, 255, 255),
        anchor="lm",
    )

    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    layer.paste(badge, watermark_origin(base.size))
    stamped = Image.alpha_composite(base, layer)
    buffer = BytesIO()
    stamped.save(buffer, format="PNG")
    return buffer.getvalue()


def resolve_theme(theme: str | None) -> OverlayTheme:
    """Return the palette for a theme key, defaulting when unknown."""
    return THEMES.get((theme or "").strip().lower(), THEMES["default"])


def render_overlay(width: int, height: int, theme: str | None) -> bytes:
    """Render a transparent decorative frame as PNG bytes."""
    width = max(1, int(width))
    height = max(1, int(height))
    colors = resolve_theme(theme)
    overlay = _scrim(width, height)

    frame = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(frame)
    _border(draw, width, height, 36, 38, _with_alpha(colors.accent, 0.55), 16)
    _border(draw, width, height, 54, 30, (255, 255, 255, 67), 10)

    badge_left = width / 2 - 220
    badge_top = height - 120
    if badge_left >= 0 and badge_top >= 0:
        draw.rounded_rectangle(
            (badge_left, badge_top, badge_left + 440, badge_top + 90),
            radius=18,
            fill=colors.badge,
            outline=_with_alpha(colors.accent, 0.9),
            width=3,
        )
        draw.text(
            (width / 2, badge_top + 45),
            OVERLAY_BADGE_TEXT,
            font=_font(30),
            fill=colors.text,
            anchor="mm",
        )

    center = (width - 120, 120)
    for radius, opacity in ((64, 0.22), (32, 0.35)):
        draw.ellipse(
            (
                center[0] - radius,
                center[1] - radius,
                center[0] + radius,
                center[1] + radius,
            ),
            fill=_with_alpha(colors.accent, opacity),
        )

    overlay = Image.alpha_composite(overlay, frame)
    buffer = BytesIO()
    overlay.save(buffer, format="PNG")
    return buffer.getvalue()


def _scrim(width: int, height: int) -> Image.Image:
    """Vertical darkening gradient: 5% at the top, 18% at 60%, 28% at the bottom."""
    column = Image.new("L", (1, height))
    for y in range(height):
        position = y / max(1, height - 1)
        if position <= 0.6:
            opacity = 0.05 + (0.18 - 0.05) * (position / 0.6)
        else:
            opacity = 0.18 + (0.28 - 0.18) * ((position - 0.6) / 0.4)
        column.putpixel((0, y), round(255 * opacity))
    scrim = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    scrim.putalpha(column.resize((width, height)))
    return scrim


def _border(  # noqa: PLR0913
    draw: ImageDraw.ImageDraw,
    width: int,
    height: int,
    inset: int,
    radius: int,
    color: RGBA,
    stroke: int,
) -> None:
    if width - 2 * inset <= stroke * 2 or height - 2 * inset <= stroke * 2:
        return
    draw.rounded_rectangle(
        (inset, inset, width - inset, height - inset),
        radius=radius,
        outline=color,
        width=stroke,
    )


def _with_alpha(color: RGBA, opacity: float) -> RGBA:
    return color[0], color[1], color[2], round(color[3] * opacity)


def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=size)
