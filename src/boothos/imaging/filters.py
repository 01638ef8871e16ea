"""Named tone/colour filters applied to delivered photos."""

from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageEnhance, ImageOps

from boothos.imaging.compositor import CompositionError

FILTER_IDS = (
    "none",
    "bw",
    "warm",
    "cool",
    "matte",
    "soft",
    "vintage",
    "glam",
    "neon",
    "dramatic",
    "cinematic",
    "noir",
)


@dataclass(frozen=True)
class FilterRecipe:
    """Fixed parameters for one named filter."""

    saturation: float = 1.0
    brightness: float = 1.0
    contrast: float = 1.0
    grayscale: bool = False
    tint: tuple[int, int, int] | None = None
    tint_strength: float = 0.0
    gamma: float = 1.0
    matrix: tuple[float, ...] | None = None


# Grayscale runs first, then matrix, modulation, tint, gamma.
RECIPES: dict[str, FilterRecipe] = {
    "bw": FilterRecipe(grayscale=True),
    "warm": FilterRecipe(
        saturation=1.1, brightness=1.03, tint=(248, 225, 193), tint_strength=0.18
    ),
    "cool": FilterRecipe(
        saturation=0.95,
        matrix=(
            0.95, 0.05, 0.0, 0.0,
            0.0, 0.98, 0.02, 0.0,
            0.02, 0.05, 0.93, 0.0,
        ),
    ),
    "matte": FilterRecipe(saturation=0.9, brightness=0.97, contrast=0.92),
    "soft": FilterRecipe(brightness=1.04, saturation=1.02, contrast=0.95),
    "vintage": FilterRecipe(
        saturation=0.9,
        brightness=1.02,
        tint=(240, 223, 194),
        tint_strength=0.22,
        gamma=1.03,
    ),
    "glam": FilterRecipe(saturation=1.12, brightness=1.05, contrast=1.1),
    "neon": FilterRecipe(saturation=1.35, brightness=1.02, contrast=1.08),
    "dramatic": FilterRecipe(saturation=1.15, contrast=1.15),
    "cinematic": FilterRecipe(saturation=1.1, contrast=1.12, brightness=0.98),
    "noir": FilterRecipe(grayscale=True, contrast=1.25, brightness=0.92),
}


def apply_filter(data: bytes, filter_id: str | None) -> bytes:
    """Apply a named filter; unknown or empty identifiers pass through."""
    recipe = RECIPES.get((filter_id or "none").strip().lower())
    if recipe is None:
        return data
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except OSError as exc:
        raise CompositionError(f"Could not decode image: {exc}") from exc

    rgba = image.convert("RGBA")
    alpha = rgba.getchannel("A")
    rgb = _apply_recipe(rgba.convert("RGB"), recipe)
    rgb.putalpha(alpha)

    buffer = BytesIO()
    rgb.save(buffer, format="PNG")
    return buffer.getvalue()


def _apply_recipe(image: Image.Image, recipe: FilterRecipe) -> Image.Image:
    if recipe.grayscale:
        image = ImageOps.grayscale(image).convert("RGB")
    if recipe.matrix is not None:
        image = image.convert("RGB", recipe.matrix)
    steps = (
        (ImageEnhance.Color, recipe.saturation),
        (ImageEnhance.Brightness, recipe.brightness),
        (ImageEnhance.Contrast, recipe.contrast),
    )
    for enhancer, factor in steps:
        if factor != 1.0:
            image = enhancer(image).enhance(factor)
    if recipe.tint is not None and recipe.tint_strength > 0:
        layer = Image.new("RGB", image.size, recipe.tint)
        image = Image.blend(image, layer, recipe.tint_strength)
    if recipe.gamma != 1.0:
        inverse = 1.0 / recipe.gamma
        table = [round(255 * ((value / 255) ** inverse)) for value in range(256)]
        image = image.point(table * 3)
    return image
