import pytest
from PIL import Image

from compositor import (
    LogoAdjustments,
    PlacementArea,
    area_from_constraint,
    composite_logo,
    decode_image,
    fallback_area,
    fit_logo_size,
    position_in_area,
    transform_logo,
)
from conftest import png_bytes


def product(size=(400, 400)):
    return Image.new("RGBA", size, (255, 255, 255, 255))


def logo(size=(100, 50), color=(255, 0, 0, 255)):
    return Image.new("RGBA", size, color)


def test_adjustments_from_dict_accepts_both_flip_spellings():
    adj = LogoAdjustments.from_dict({"flipH": True, "flip_v": True, "scale": 0, "opacity": 3, "x": -1})
    assert adj.flip_h and adj.flip_v
    assert adj.scale == 0.1
    assert adj.opacity == 1.0
    assert adj.x == 0.0
    assert LogoAdjustments.from_dict(None) == LogoAdjustments()


def test_adjustments_clamp_scale_to_upper_bound():
    assert LogoAdjustments.from_dict({"scale": 5000}).scale == 2.0


@pytest.mark.parametrize("adjustments", [
    {"scale": "big"},
    {"rotation": None},
    {"x": "nan"},
    {"opacity": "inf"},
])
def test_adjustments_reject_non_numeric_values(adjustments):
    with pytest.raises(ValueError, match="Invalid adjustment"):
        LogoAdjustments.from_dict(adjustments)


def test_fallback_areas():
    assert fallback_area("horizontal", 1000, 1000) == PlacementArea(300, 350, 400, 300, source="fallback")
    assert fallback_area("corner", 1000, 1000).x == 750
    assert fallback_area("unknown", 100, 100) == fallback_area("center", 100, 100)


def test_area_from_detected_bounds_is_clipped():
    area = area_from_constraint(
        {"detected_area_x": 350, "detected_area_y": 10, "detected_area_width": 200,
         "detected_area_height": 50, "max_logo_width": 30},
        400, 400,
    )
    assert (area.x, area.y, area.width, area.height) == (350, 10, 50, 50)
    assert area.max_logo_width == 30


def test_area_from_default_position():
    area = area_from_constraint({"default_x_position": 100, "default_y_position": None}, 1000, 1000)
    assert (area.x, area.y, area.width, area.height) == (100, 400, 150, 150)


def test_area_from_empty_constraint():
    assert area_from_constraint({"detected_area_width": 0}, 400, 400) is None


def test_fit_logo_keeps_aspect_and_caps():
    area = PlacementArea(0, 0, 300, 300)
    # Canvas cap is 40% of 400 = 160
    assert fit_logo_size(100, 50, area, 400, 400) == (160, 80)
    area.max_logo_height = 40
    assert fit_logo_size(100, 50, area, 400, 400) == (80, 40)


def test_transform_rotation_expands_and_opacity_fades():
    out = transform_logo(logo(), (100, 50), LogoAdjustments(rotation=90, opacity=0.5))
    assert out.size == (50, 100)
    assert out.getpixel((25, 50))[3] == 127 or out.getpixel((25, 50))[3] == 128


def test_position_is_clamped_into_area():
    area = PlacementArea(100, 100, 200, 100)
    (x, y), violations = position_in_area((50, 50), area, LogoAdjustments(x=1.0, y=0.0))
    assert (x, y) == (250, 100)
    assert violations == ["Logo position adjusted to stay within the placement area"]

    _, violations = position_in_area((250, 50), area, LogoAdjustments())
    assert "Logo is larger than the placement area" in violations


def test_composite_centres_logo():
    area = PlacementArea(100, 100, 200, 100)
    result = composite_logo(product(), logo(), "horizontal", area)
    assert result.size == (160, 80)
    assert result.position == (120, 110)
    assert result.image.getpixel((200, 150))[:3] == (255, 0, 0)
    assert result.image.getpixel((10, 10))[:3] == (255, 255, 255)
    assert result.violations == []


def test_all_over_tiles_the_area():
    area = PlacementArea(40, 40, 320, 320)
    result = composite_logo(product(), logo((20, 20)), "all_over", area)
    assert result.tiles > 4
    assert result.image.getpixel((45, 45))[:3] == (255, 0, 0)
    assert result.image.getpixel((5, 5))[:3] == (255, 255, 255)


def test_decode_image_rejects_garbage():
    assert decode_image(png_bytes()).mode == "RGBA"
    with pytest.raises(ValueError):
        decode_image(b"not an image")
