"""Cover-fit backgrounds and place foreground cutouts on a canvas."""

from io import BytesIO

from PIL import Image, ImageEnhance, ImageOps, ImageStat, UnidentifiedImageError

from boothos.domain.imaging import DEFAULT_CANVAS_SIZE, Transform

FALLBACK_FOREGROUND_SIZE = (800, 1200)
MATCH_BRIGHTNESS_RANGE = (0.7, 1.3)
MATCH_SATURATION = 1.05


class CompositionError(Exception):
    """Raised when an input buffer cannot be decoded or composed."""


def compose(
    foreground: bytes,
    background: bytes,
    transform: Transform | None = None,
    canvas_size: tuple[int, int] = DEFAULT_CANVAS_SIZE,
) -> bytes:
    """Compose a foreground over a cover-fitted background and return PNG bytes."""
    canvas_width, canvas_height = canvas_size
    if canvas_width <= 0 or canvas_height <= 0:
        raise CompositionError(f"Invalid canvas size {canvas_size}")
    placement = transform or Transform()

    canvas = ImageOps.fit(
        _open(background, "background").convert("RGBA"),
        (canvas_width, canvas_height),
        method=Image.Resampling.LANCZOS,
    )
    cutout = _open(foreground, "foreground").convert("RGBA")

    box = scaled_box(intrinsic_size(cutout), placement.clamped_scale())
    fitted = cutout.resize(fit_inside(cutout.size, box), Image.Resampling.LANCZOS)
    left, top = placement_origin(canvas.size, box, placement)
    canvas.paste(fitted, (left, top), fitted)
    return _encode_png(canvas)


def resize(data: bytes, max_width: int, max_height: int) -> bytes:
    """Fit an image inside the given bounds without upscaling."""
    image = _open(data, "image")
    image_format = image.format or "PNG"
    image.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    if image_format == "JPEG" and image.mode not in {"RGB", "L"}:
        image = image.convert("RGB")
    buffer = BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


def match_background(foreground: bytes, background: bytes) -> bytes:
    """Pull a cutout's brightness toward its backdrop and lift saturation slightly.

    Brightness scales by the ratio of the backdrop mean to the mean of the
    cutout's visible pixels, clamped to ``MATCH_BRIGHTNESS_RANGE``. Alpha is kept.
    """
    cutout = _open(foreground, "foreground").convert("RGBA")
    backdrop = _open(background, "background").convert("RGB")
    alpha = cutout.getchannel("A")
    rgb = cutout.convert("RGB")

    factor = 1.0
    cutout_mean = _mean_level(rgb, alpha if alpha.getbbox() else None)
    if cutout_mean > 0:
        low, high = MATCH_BRIGHTNESS_RANGE
        factor = min(max(_mean_level(backdrop) / cutout_mean, low), high)

    adjusted = ImageEnhance.Brightness(rgb).enhance(factor)
    adjusted = ImageEnhance.Color(adjusted).enhance(MATCH_SATURATION)
    adjusted.putalpha(alpha)
    return _encode_png(adjusted)


def intrinsic_size(image: Image.Image) -> tuple[int, int]:
    """Return an image's size, falling back to a portrait default."""
    width, height = image.size
    if width <= 0 or height <= 0:
        return FALLBACK_FOREGROUND_SIZE
    return width, height


def scaled_box(size: tuple[int, int], scale: float) -> tuple[int, int]:
    """Scale a size, keeping both sides at least one pixel."""
    width, height = size
    return max(1, round(width * scale)), max(1, round(height * scale))


def fit_inside(size: tuple[int, int], box: tuple[int, int]) -> tuple[int, int]:
    """Largest size with the same aspect ratio that fits inside ``box``."""
    width, height = size
    ratio = min(box[0] / width, box[1] / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def placement_origin(
    canvas_size: tuple[int, int], box: tuple[int, int], transform: Transform
) -> tuple[int, int]:
    """Center ``box`` on the canvas, apply offsets, clamp to non-negative."""
    offset_x, offset_y = transform.offsets()
    left = round((canvas_size[0] - box[0]) / 2 + offset_x)
    top = round((canvas_size[1] - box[1]) / 2 + offset_y)
    return max(0, left), max(0, top)


def _open(data: bytes, label: str) -> Image.Image:
    if not data:
        raise CompositionError(f"Empty {label} buffer")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise CompositionError(f"Could not decode {label}: {exc}") from exc
    return image


def _mean_level(image: Image.Image, mask: Image.Image | None = None) -> float:
    return sum(ImageStat.Stat(image, mask).mean[:3]) / 3


def _encode_png(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
