import itertools

import pytest

from regionscan.processing.region_mapper import map_region, round_half_away
from regionscan.processing.types import NormalizedRegion, PixelRegion
from regionscan.utils.errors import InvalidInputError, InvalidRegionError


def test_maps_document_region_to_pixels():
    region = NormalizedRegion(x=0.1, y=0.3, width=0.8, height=0.2)

    assert map_region(region, 1000, 2000) == PixelRegion(x=100, y=600, width=800, height=400)


def test_round_half_away_from_zero():
    assert round_half_away(2.5) == 3
    assert round_half_away(3.5) == 4
    assert round_half_away(-2.5) == -3
    assert round_half_away(2.49) == 2


def test_clamps_region_overflowing_the_image():
    region = NormalizedRegion(x=0.5, y=0.75, width=0.8, height=0.5)

    assert map_region(region, 100, 200) == PixelRegion(x=50, y=150, width=50, height=50)


def test_negative_start_clamps_to_zero():
    region = NormalizedRegion(x=-0.2, y=-0.1, width=0.5, height=0.5)

    assert map_region(region, 100, 100) == PixelRegion(x=0, y=0, width=50, height=50)


@pytest.mark.parametrize("width,height", [(1, 1), (7, 3), (640, 480), (1000, 2000)])
def test_pixel_region_always_inside_image(width, height):
    steps = [0.0, 0.01, 0.25, 0.5, 0.99]
    sizes = [0.01, 0.3, 0.5, 1.0]
    for x, y, w, h in itertools.product(steps, steps, sizes, sizes):
        try:
            px = map_region(NormalizedRegion(x=x, y=y, width=w, height=h), width, height)
        except InvalidRegionError:
            continue
        assert 0 <= px.x < width
        assert 0 <= px.y < height
        assert px.width > 0 and px.height > 0
        assert px.x + px.width <= width
        assert px.y + px.height <= height


@pytest.mark.parametrize("width,height", [(1, 1), (100, 100), (1000, 2000), (4032, 3024)])
def test_region_starting_at_right_edge_is_invalid(width, height):
    with pytest.raises(InvalidRegionError):
        map_region(NormalizedRegion(x=1.0, y=0.0, width=0.5, height=0.5), width, height)


def test_region_rounding_to_zero_is_invalid():
    with pytest.raises(InvalidRegionError):
        map_region(NormalizedRegion(x=0.1, y=0.1, width=0.001, height=0.5), 100, 100)


def test_invalid_region_is_an_input_error():
    with pytest.raises(InvalidInputError):
        map_region(NormalizedRegion(x=0.0, y=0.0, width=float("nan"), height=0.5), 100, 100)


def test_image_without_area_is_rejected():
    with pytest.raises(InvalidRegionError):
        map_region(NormalizedRegion(x=0.0, y=0.0, width=1.0, height=1.0), 0, 100)
