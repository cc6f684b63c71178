import io

import numpy as np
from PIL import Image

from constraint_detection import (
    Bounds,
    ConstraintDimensions,
    calculate_optimal_placement,
    count_regions,
    create_green_mask,
    detect_green_areas,
    load_rgba,
    median_filter,
    validate_constraint,
)

GREEN = (0, 200, 0, 255)


def canvas(width=200, height=100):
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[...] = (255, 255, 255, 255)
    return img


def paint(img, x, y, w, h, color=GREEN):
    img[y:y + h, x:x + w] = color
    return img


def test_mask_ignores_transparent_and_non_green():
    img = canvas(10, 10)
    paint(img, 0, 0, 5, 5)
    paint(img, 5, 5, 5, 5, (0, 200, 0, 0))
    paint(img, 0, 5, 5, 5, (200, 200, 0, 255))
    mask = create_green_mask(img)
    assert mask[:5, :5].all()
    assert not mask[5:, :].any()


def test_median_filter_removes_speckles():
    mask = np.zeros((20, 20), dtype=bool)
    mask[5, 5] = True
    mask[10:15, 10:15] = True
    filtered = median_filter(mask)
    assert not filtered[5, 5]
    assert filtered[12, 12]


def test_count_regions():
    mask = np.zeros((10, 10), dtype=bool)
    mask[0:3, 0:3] = True
    mask[5:8, 5:8] = True
    mask[3, 1] = True
    assert count_regions(mask) == 2
    # Diagonal contact does not join regions
    diagonal = np.eye(4, dtype=bool)
    assert count_regions(diagonal) == 4


def test_detect_single_rectangle():
    area = detect_green_areas(paint(canvas(), 50, 30, 100, 40))
    assert area.bounds == Bounds(50, 30, 100, 40)
    assert abs(area.pixels - 4000) <= 4
    assert area.regions == 1
    assert area.aspect_ratio == 2.5
    assert area.quality >= 0.9
    assert abs(area.percentage - 20.0) < 0.1


def test_detect_two_regions():
    img = paint(paint(canvas(), 10, 10, 30, 30), 120, 50, 40, 30)
    area = detect_green_areas(img)
    assert area.regions == 2
    assert area.bounds == Bounds(10, 10, 150, 70)


def test_detect_nothing():
    area = detect_green_areas(canvas())
    assert area.pixels == 0
    result = validate_constraint(area, ConstraintDimensions(), 200, 100)
    assert not result.is_valid
    assert result.score == 0.0
    assert result.warnings == ["No green areas detected in the image"]


def test_load_rgba_from_png():
    buf = io.BytesIO()
    Image.fromarray(paint(canvas(), 50, 30, 100, 40)).save(buf, format="PNG")
    rgba = load_rgba(buf.getvalue())
    assert rgba.shape == (100, 200, 4)


def test_validate_horizontal_area():
    area = detect_green_areas(paint(canvas(), 50, 30, 100, 40))
    result = validate_constraint(area, ConstraintDimensions(), 200, 100, "horizontal")
    # Only the 40px height is below the 50px minimum
    assert result.score == 0.8
    assert result.is_valid
    assert len(result.warnings) == 1
    assert result.usable_area == Bounds(50, 30, 100, 40)


def test_validate_wrong_orientation_and_edges():
    area = detect_green_areas(paint(canvas(), 0, 30, 100, 40))
    result = validate_constraint(area, ConstraintDimensions(min_height=10), 200, 100, "vertical")
    assert any("taller" in w for w in result.warnings)
    assert any("left edge" in w for w in result.warnings)
    assert result.score == 0.85


def test_usable_area_is_capped_by_max_dims():
    area = detect_green_areas(paint(canvas(), 50, 30, 100, 40))
    result = validate_constraint(area, ConstraintDimensions(10, 10, 60, 20), 200, 100)
    assert result.usable_area == Bounds(50, 30, 60, 20)


def test_optimal_placement_fits_inside_bounds():
    area = detect_green_areas(paint(canvas(), 50, 30, 100, 40))
    placement = calculate_optimal_placement(area, 200, 100, ConstraintDimensions())
    assert placement["width"] == 80
    assert placement["height"] == 40
    assert placement["scale"] == 0.4
    assert 50 <= placement["x"] <= 70
    assert placement["y"] == 30


def test_optimal_placement_without_area():
    area = detect_green_areas(canvas())
    assert calculate_optimal_placement(area, 10, 10, ConstraintDimensions())["scale"] == 0.0
