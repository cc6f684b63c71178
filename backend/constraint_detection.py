"""Green placement-area detection and constraint validation.

Admins paint the printable area of a product photo in green. The mask
built here gives the bounds, centroid and quality used to validate a
placement constraint and to position logos inside it.
"""

import io
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image


@dataclass
class GreenDetectionConfig:
    hue_range: Tuple[float, float] = (80, 140)
    saturation_threshold: float = 30
    value_threshold: float = 20
    green_min: int = 100
    red_max_ratio: float = 1.5
    blue_max_ratio: float = 1.5
    noise_reduction: bool = True
    morphology: bool = True


@dataclass
class Bounds:
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass
class DetectedArea:
    pixels: int = 0
    percentage: float = 0.0
    bounds: Bounds = field(default_factory=Bounds)
    centroid: Tuple[int, int] = (0, 0)
    aspect_ratio: float = 1.0
    regions: int = 0
    quality: float = 0.0

    def to_dict(self):
        return {
            "pixels": self.pixels,
            "percentage": self.percentage,
            "bounds": asdict(self.bounds),
            "centroid": {"x": self.centroid[0], "y": self.centroid[1]},
            "aspectRatio": self.aspect_ratio,
            "regions": self.regions,
            "quality": self.quality,
        }


@dataclass
class ConstraintDimensions:
    min_width: int = 50
    min_height: int = 50
    max_width: int = 400
    max_height: int = 400


@dataclass
class ValidationResult:
    is_valid: bool
    warnings: List[str]
    recommendations: List[str]
    score: float
    usable_area: Bounds

    def to_dict(self):
        return {
            "isValid": self.is_valid,
            "warnings": self.warnings,
            "recommendations": self.recommendations,
            "score": self.score,
            "usableArea": asdict(self.usable_area),
        }


def load_rgba(data: bytes) -> np.ndarray:
    """Decode image bytes into an (H, W, 4) uint8 array."""
    img = Image.open(io.BytesIO(data)).convert("RGBA")
    return np.array(img)


def _hsv(rgb: np.ndarray):
    """Vectorized RGB -> (hue degrees, saturation %, value %)."""
    rgb = rgb.astype(np.float32) / 255.0
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    diff = mx - mn
    safe = np.where(diff == 0, 1, diff)

    hue = np.zeros_like(mx)
    is_r = (mx == r) & (diff != 0)
    is_g = (mx == g) & (diff != 0) & ~is_r
    is_b = (diff != 0) & ~is_r & ~is_g
    hue = np.where(is_r, ((g - b) / safe) % 6, hue)
    hue = np.where(is_g, (b - r) / safe + 2, hue)
    hue = np.where(is_b, (r - g) / safe + 4, hue)
    hue = hue * 60

    sat = np.where(mx == 0, 0, diff / np.where(mx == 0, 1, mx))
    return hue, sat * 100, mx * 100


def create_green_mask(rgba: np.ndarray, config: Optional[GreenDetectionConfig] = None) -> np.ndarray:
    """Boolean mask of green pixels. Pixels with alpha < 128 are never green."""
    config = config or GreenDetectionConfig()
    r = rgba[..., 0].astype(np.float32)
    g = rgba[..., 1].astype(np.float32)
    b = rgba[..., 2].astype(np.float32)
    opaque = rgba[..., 3] >= 128 if rgba.shape[-1] == 4 else np.ones(r.shape, dtype=bool)

    rgb_green = (g >= config.green_min) & (g > r * config.red_max_ratio) & (g > b * config.blue_max_ratio)

    hue, sat, val = _hsv(rgba[..., :3])
    hsv_green = (
        (hue >= config.hue_range[0]) & (hue <= config.hue_range[1])
        & (sat >= config.saturation_threshold) & (val >= config.value_threshold)
    )
    return opaque & (rgb_green | hsv_green)


def _neighbourhood(mask: np.ndarray) -> np.ndarray:
    """Stack the 3x3 neighbourhood of every interior pixel: shape (9, H-2, W-2)."""
    h, w = mask.shape
    return np.stack([
        mask[dy:h - 2 + dy, dx:w - 2 + dx]
        for dy in range(3) for dx in range(3)
    ])


def median_filter(mask: np.ndarray) -> np.ndarray:
    if mask.shape[0] < 3 or mask.shape[1] < 3:
        return mask.copy()
    out = np.zeros_like(mask)
    # Median of 9 booleans is True when at least 5 are set
    out[1:-1, 1:-1] = _neighbourhood(mask).sum(axis=0) >= 5
    return out


def dilate(mask: np.ndarray) -> np.ndarray:
    if mask.shape[0] < 3 or mask.shape[1] < 3:
        return mask.copy()
    out = np.zeros_like(mask)
    out[1:-1, 1:-1] = _neighbourhood(mask).any(axis=0)
    return out


def erode(mask: np.ndarray) -> np.ndarray:
    if mask.shape[0] < 3 or mask.shape[1] < 3:
        return mask.copy()
    out = np.zeros_like(mask)
    out[1:-1, 1:-1] = _neighbourhood(mask).all(axis=0)
    return out


def count_regions(mask: np.ndarray) -> int:
    """Count 4-connected regions using row runs and union-find."""
    parent: List[int] = []

    def find(i):
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    prev_runs: List[Tuple[int, int, int]] = []
    for row in mask:
        padded = np.concatenate(([0], row.astype(np.int8), [0]))
        edges = np.flatnonzero(np.diff(padded))
        runs = []
        for start, end in zip(edges[::2], edges[1::2]):
            label = len(parent)
            parent.append(label)
            for p_start, p_end, p_label in prev_runs:
                # Runs touch vertically when their column ranges overlap
                if p_start < end and start < p_end:
                    a, b = find(label), find(p_label)
                    if a != b:
                        parent[a] = b
            runs.append((start, end, label))
        prev_runs = runs

    return len({find(i) for i in range(len(parent))})


def analyze_mask(mask: np.ndarray) -> DetectedArea:
    total = int(mask.sum())
    if total == 0:
        return DetectedArea()

    height, width = mask.shape
    ys, xs = np.nonzero(mask)
    min_x, max_x = int(xs.min()), int(xs.max())
    min_y, max_y = int(ys.min()), int(ys.max())
    box_w = max_x - min_x + 1
    box_h = max_y - min_y + 1

    regions = count_regions(mask)
    compactness = total / (box_w * box_h)
    quality = min(1.0, max(0.0, compactness * 0.6 + (1 / regions) * 0.4))

    return DetectedArea(
        pixels=total,
        percentage=round(total / (width * height) * 100, 2),
        bounds=Bounds(min_x, min_y, box_w, box_h),
        centroid=(int(round(xs.mean())), int(round(ys.mean()))),
        aspect_ratio=round(box_w / box_h, 2),
        regions=regions,
        quality=round(quality, 2),
    )


def detect_green_areas(rgba: np.ndarray, config: Optional[GreenDetectionConfig] = None) -> DetectedArea:
    config = config or GreenDetectionConfig()
    mask = create_green_mask(rgba, config)
    if config.noise_reduction:
        mask = median_filter(mask)
    if config.morphology:
        mask = erode(dilate(mask))
    return analyze_mask(mask)


ASPECT_RULES = {
    "horizontal": (1.2, None, "Horizontal placement area should be wider than it is tall",
                   "Make the green area wider for horizontal logo placement"),
    "vertical": (None, 0.83, "Vertical placement area should be taller than it is wide",
                 "Make the green area taller or narrower for vertical logo placement"),
    "all_over": (0.5, 2.0, "All-over placement area has an extreme aspect ratio",
                 "Use a more balanced green area for all-over patterns"),
}


def validate_constraint(
    area: DetectedArea,
    dims: ConstraintDimensions,
    image_width: int,
    image_height: int,
    placement_type: str = "horizontal",
) -> ValidationResult:
    if area.pixels == 0:
        return ValidationResult(
            is_valid=False,
            warnings=["No green areas detected in the image"],
            recommendations=["Ensure the constraint image has clearly marked green areas"],
            score=0.0,
            usable_area=Bounds(),
        )

    warnings: List[str] = []
    recommendations: List[str] = []
    score = 1.0
    b = area.bounds

    if b.width < dims.min_width:
        warnings.append(f"Detected area width ({b.width}px) is smaller than minimum required ({dims.min_width}px)")
        score -= 0.2
    if b.height < dims.min_height:
        warnings.append(f"Detected area height ({b.height}px) is smaller than minimum required ({dims.min_height}px)")
        score -= 0.2

    if area.percentage < 5:
        warnings.append("Detected green area is very small (< 5% of image)")
        recommendations.append("Consider increasing the size of the green marking area")
        score -= 0.15
    elif area.percentage > 50:
        warnings.append("Detected green area is very large (> 50% of image)")
        recommendations.append("Consider reducing the green area to be more specific")
        score -= 0.1

    rule = ASPECT_RULES.get(placement_type)
    if rule:
        low, high, warning, recommendation = rule
        if (low is not None and area.aspect_ratio < low) or (high is not None and area.aspect_ratio > high):
            warnings.append(warning)
            recommendations.append(recommendation)
            score -= 0.1

    if placement_type != "all_over":
        edges = {
            "top": (b.y, image_height),
            "left": (b.x, image_width),
            "bottom": (image_height - (b.y + b.height), image_height),
            "right": (image_width - (b.x + b.width), image_width),
        }
        for edge, (distance, dimension) in edges.items():
            if distance < dimension * 0.02:
                warnings.append(f"Green area is very close to {edge} edge ({distance}px)")
                recommendations.append(f"Move green area further away from {edge} edge")
                score -= 0.05

    if area.quality < 0.3:
        warnings.append("Low detection quality - the green area may be fragmented or unclear")
        recommendations.append("Use a more solid, well-defined green area")
        score -= 0.15

    if area.regions > 3:
        warnings.append(f"Multiple separate green areas detected ({area.regions} areas)")
        recommendations.append("Use a single, continuous green area for better results")
        score -= 0.1

    score = round(min(1.0, max(0.0, score)), 2)
    usable = Bounds(b.x, b.y, min(b.width, dims.max_width), min(b.height, dims.max_height))
    return ValidationResult(
        is_valid=score >= 0.5,
        warnings=warnings,
        recommendations=recommendations,
        score=score,
        usable_area=usable,
    )


def calculate_optimal_placement(area: DetectedArea, logo_width: int, logo_height: int,
                                dims: ConstraintDimensions) -> dict:
    """Scale a logo into the detected bounds and centre it on the centroid."""
    b = area.bounds
    if area.pixels == 0 or logo_width <= 0 or logo_height <= 0:
        return {"x": 0, "y": 0, "width": 0, "height": 0, "scale": 0.0}

    max_w = min(b.width, dims.max_width)
    max_h = min(b.height, dims.max_height)
    scale = min(max_w / logo_width, max_h / logo_height, 1.0)
    width = max(1, int(logo_width * scale))
    height = max(1, int(logo_height * scale))

    x = area.centroid[0] - width // 2
    y = area.centroid[1] - height // 2
    x = min(max(x, b.x), b.x + b.width - width)
    y = min(max(y, b.y), b.y + b.height - height)
    return {"x": x, "y": y, "width": width, "height": height, "scale": round(scale, 4)}
