"""Tests for the filter engine."""

import pytest

from boothos.imaging.filters import FILTER_IDS, RECIPES, apply_filter
from tests.conftest import make_image, open_image

SOURCE = make_image((16, 16), (200, 120, 40, 255))


def test_unknown_and_none_filters_return_same_bytes() -> None:
    assert apply_filter(SOURCE, None) is SOURCE
    assert apply_filter(SOURCE, "none") is SOURCE
    assert apply_filter(SOURCE, "does-not-exist") is SOURCE


def test_every_named_filter_has_a_recipe() -> None:
    assert set(FILTER_IDS) - {"none"} == set(RECIPES)


@pytest.mark.parametrize("filter_id", ["bw", "noir"])
def test_monochrome_filters_desaturate(filter_id: str) -> None:
    red, green, blue, _ = open_image(apply_filter(SOURCE, filter_id)).getpixel((8, 8))

    assert red == green == blue


def test_neon_boosts_saturation() -> None:
    def spread(pixel: tuple[int, ...]) -> int:
        return max(pixel[:3]) - min(pixel[:3])

    boosted = open_image(apply_filter(SOURCE, "neon")).getpixel((8, 8))

    assert spread(boosted) > spread((200, 120, 40))


def test_filters_preserve_alpha() -> None:
    translucent = make_image((8, 8), (90, 160, 200, 100))

    for filter_id in RECIPES:
        result = open_image(apply_filter(translucent, filter_id))
        assert result.mode == "RGBA"
        assert result.getpixel((4, 4))[3] == 100
