"""Logo compositing onto product images with Pillow.

Placement areas are in product-image pixels. Logos are scaled to fit the
area (never more than MAX_LOGO_CANVAS_RATIO of the canvas), transformed by
the user's adjustments and pasted with their alpha channel.
"""

import io
import logging
import math
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Tuple

from PIL import Image, ImageEnhance

from config import (
    DEFAULT_ADJUSTMENTS,
    FALLBACK_PLACEMENT_AREAS,
    MAX_LOGO_CANVAS_RATIO,
    MAX_LOGO_SCALE,
    MIN_LOGO_SCALE,
)

logger = logging.getLogger(__name__)

# Box used when a constraint only stores a default logo position
DEFAULT_POSITION_BOX = 150


def _number(values: dict, key: str) -> float:
    try:
        number = float(values[key])
    except (TypeError, ValueError):
        raise ValueError(f"Invalid adjustment {key}: {values[key]!r}")
    if not math.isfinite(number):
        raise ValueError(f"Invalid adjustment {key}: {values[key]!r}")
    return number


@dataclass
class LogoAdjustments:
    scale: float = 1.0
    rotation: float = 0.0
    x: float = 0.5  # normalized position of the logo centre inside the area
    y: float = 0.5
    flip_h: bool = False
    flip_v: bool = False
    opacity: float = 1.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "LogoAdjustments":
        """Build from client adjustments. Raises ValueError on non-numeric values."""
        data = data or {}
        merged = {**DEFAULT_ADJUSTMENTS, **data}
        return cls(
            scale=min(MAX_LOGO_SCALE, max(MIN_LOGO_SCALE, _number(merged, "scale"))),
            rotation=_number(merged, "rotation"),
            x=min(1.0, max(0.0, _number(merged, "x"))),
            y=min(1.0, max(0.0, _number(merged, "y"))),
            flip_h=bool(data.get("flipH", data.get("flip_h", False))),
            flip_v=bool(data.get("flipV", data.get("flip_v", False))),
            opacity=min(1.0, max(0.0, _number(merged, "opacity"))),
        )

    def to_dict(self):
        return {
            "scale": self.scale,
            "rotation": self.rotation,
            "x": self.x,
            "y": self.y,
            "flipH": self.flip_h,
            "flipV": self.flip_v,
            "opacity": self.opacity,
        }


@dataclass
class PlacementArea:
    x: int
    y: int
    width: int
    height: int
    max_logo_width: Optional[int] = None
    max_logo_height: Optional[int] = None
    source: str = "constraint"

    def to_dict(self):
        return asdict(self)


@dataclass
class CompositeResult:
    image: Image.Image
    position: Tuple[int, int]
    size: Tuple[int, int]
    tiles: int = 1
    violations: List[str] = field(default_factory=list)


def decode_image(data: bytes) -> Image.Image:
    """Open image bytes as RGBA. Raises ValueError for unreadable data."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Invalid image data: {e}")
    return img.convert("RGBA")


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def fallback_area(placement_type: str, canvas_w: int, canvas_h: int) -> PlacementArea:
    fx, fy, fw, fh = FALLBACK_PLACEMENT_AREAS.get(placement_type, FALLBACK_PLACEMENT_AREAS["center"])
    return PlacementArea(
        x=int(canvas_w * fx),
        y=int(canvas_h * fy),
        width=max(1, int(canvas_w * fw)),
        height=max(1, int(canvas_h * fh)),
        source="fallback",
    )


def area_from_constraint(constraint: dict, canvas_w: int, canvas_h: int) -> Optional[PlacementArea]:
    """Placement area from a stored constraint, clipped to the canvas.

    Detected green bounds win. A constraint with only default positions gets
    a fixed box at that position. Returns None when neither is usable.
    """
    width = constraint.get("detected_area_width") or 0
    height = constraint.get("detected_area_height") or 0
    if width > 0 and height > 0:
        x = constraint.get("detected_area_x") or 0
        y = constraint.get("detected_area_y") or 0
    elif constraint.get("default_x_position") is not None or constraint.get("default_y_position") is not None:
        x = constraint.get("default_x_position") or 300
        y = constraint.get("default_y_position") or 400
        width = height = DEFAULT_POSITION_BOX
    else:
        return None

    x = min(max(0, int(x)), max(0, canvas_w - 1))
    y = min(max(0, int(y)), max(0, canvas_h - 1))
    width = max(1, min(int(width), canvas_w - x))
    height = max(1, min(int(height), canvas_h - y))
    return PlacementArea(
        x=x, y=y, width=width, height=height,
        max_logo_width=constraint.get("max_logo_width"),
        max_logo_height=constraint.get("max_logo_height"),
    )


def fit_logo_size(logo_w: int, logo_h: int, area: PlacementArea,
                  canvas_w: int, canvas_h: int) -> Tuple[int, int]:
    """Largest size preserving aspect that fits the area and the canvas cap."""
    max_w = min(area.width, canvas_w * MAX_LOGO_CANVAS_RATIO)
    max_h = min(area.height, canvas_h * MAX_LOGO_CANVAS_RATIO)
    if area.max_logo_width:
        max_w = min(max_w, area.max_logo_width)
    if area.max_logo_height:
        max_h = min(max_h, area.max_logo_height)

    aspect = logo_w / logo_h if logo_h else 1.0
    width, height = max_w, max_h
    if width / height > aspect:
        width = height * aspect
    else:
        height = width / aspect
    return max(1, int(width)), max(1, int(height))


def transform_logo(logo: Image.Image, size: Tuple[int, int], adj: LogoAdjustments) -> Image.Image:
    """Resize, flip, rotate and fade a logo."""
    width = max(1, int(size[0] * adj.scale))
    height = max(1, int(size[1] * adj.scale))
    out = logo.resize((width, height), Image.LANCZOS)

    if adj.flip_h:
        out = out.transpose(Image.FLIP_LEFT_RIGHT)
    if adj.flip_v:
        out = out.transpose(Image.FLIP_TOP_BOTTOM)
    if adj.rotation % 360:
        # PIL rotates counter-clockwise; adjustments are clockwise degrees
        out = out.rotate(-adj.rotation, resample=Image.BICUBIC, expand=True)
    if adj.opacity < 1.0:
        alpha = out.getchannel("A")
        alpha = ImageEnhance.Brightness(alpha).enhance(adj.opacity)
        out.putalpha(alpha)
    return out


def position_in_area(logo_size: Tuple[int, int], area: PlacementArea,
                     adj: LogoAdjustments) -> Tuple[Tuple[int, int], List[str]]:
    """Top-left paste position for a logo centred at the adjusted point, kept inside the area."""
    w, h = logo_size
    violations = []
    cx = area.x + adj.x * area.width
    cy = area.y + adj.y * area.height
    x = int(round(cx - w / 2))
    y = int(round(cy - h / 2))

    if w > area.width or h > area.height:
        violations.append("Logo is larger than the placement area")
    clamped_x = min(max(x, area.x), area.x + max(0, area.width - w))
    clamped_y = min(max(y, area.y), area.y + max(0, area.height - h))
    if (clamped_x, clamped_y) != (x, y):
        violations.append("Logo position adjusted to stay within the placement area")
    return (clamped_x, clamped_y), violations


def tile_logo(canvas: Image.Image, logo: Image.Image, area: PlacementArea, spacing: float = 0.5) -> int:
    """Repeat a logo across the area in a grid. Returns the number of tiles pasted."""
    step_x = max(1, int(logo.width * (1 + spacing)))
    step_y = max(1, int(logo.height * (1 + spacing)))
    layer = Image.new("RGBA", (area.width, area.height), (0, 0, 0, 0))
    count = 0
    for row, ty in enumerate(range(0, area.height, step_y)):
        offset = step_x // 2 if row % 2 else 0
        for tx in range(-offset, area.width, step_x):
            layer.paste(logo, (tx, ty), logo)
            count += 1
    canvas.alpha_composite(layer, (area.x, area.y))
    return count


def composite_logo(product: Image.Image, logo: Image.Image, placement_type: str,
                   area: PlacementArea, adjustments: Optional[LogoAdjustments] = None) -> CompositeResult:
    """Paste the logo into the product image according to the placement type."""
    adj = adjustments or LogoAdjustments()
    canvas = product.convert("RGBA").copy()
    canvas_w, canvas_h = canvas.size

    if placement_type == "all_over":
        # Tiles are a quarter of the area so the pattern repeats visibly
        tile_area = PlacementArea(area.x, area.y, max(1, area.width // 4), max(1, area.height // 4),
                                  area.max_logo_width, area.max_logo_height)
        size = fit_logo_size(logo.width, logo.height, tile_area, canvas_w, canvas_h)
        tile = transform_logo(logo.convert("RGBA"), size, adj)
        tiles = tile_logo(canvas, tile, area)
        return CompositeResult(image=canvas, position=(area.x, area.y), size=tile.size, tiles=tiles)

    size = fit_logo_size(logo.width, logo.height, area, canvas_w, canvas_h)
    placed = transform_logo(logo.convert("RGBA"), size, adj)
    (x, y), violations = position_in_area(placed.size, area, adj)
    canvas.alpha_composite(placed, (max(0, x), max(0, y)))
    logger.info("Composited logo %sx%s at (%s, %s) for %s placement",
                placed.width, placed.height, x, y, placement_type)
    return CompositeResult(image=canvas, position=(x, y), size=placed.size, violations=violations)
