"""SKU generation and validation."""

import random
import re
import time
from datetime import date
from typing import List, Optional, Tuple

from config import SKU_DEFAULT_PREFIX, SKU_MAX_LENGTH, SKU_MIN_LENGTH, SKU_PREFIXES

_SKU_CHARS = re.compile(r"^[A-Za-z0-9-]+$")


def category_prefix(category: str) -> str:
    return SKU_PREFIXES.get((category or "").lower(), SKU_DEFAULT_PREFIX)


def generate_sku(
    name: str,
    category: str,
    custom_prefix: Optional[str] = None,
    include_year: bool = True,
    include_random: bool = True,
    length: int = 8,
    rng: Optional[random.Random] = None,
) -> str:
    """Build e.g. DRK-MUG-26-042 from a product name and category."""
    rng = rng or random
    parts = [custom_prefix.upper() if custom_prefix else category_prefix(category)]

    first_word = (name or "").split(" ")[0]
    name_part = re.sub(r"[^a-zA-Z0-9]", "", first_word).upper()[:3]
    if name_part:
        parts.append(name_part)

    if include_year:
        parts.append(str(date.today().year)[-2:])
    if include_random:
        parts.append(f"{rng.randrange(1000):03d}")

    sku = "-".join(parts)
    if len(sku) < length:
        pad = length - len(sku)
        sku += f"{rng.randrange(10 ** pad):0{pad}d}"
    return sku.upper()


def validate_sku(sku: str) -> Tuple[bool, List[str]]:
    errors = []
    if len(sku) < SKU_MIN_LENGTH:
        errors.append(f"SKU must be at least {SKU_MIN_LENGTH} characters long")
    if len(sku) > SKU_MAX_LENGTH:
        errors.append(f"SKU must not exceed {SKU_MAX_LENGTH} characters")
    if not _SKU_CHARS.match(sku):
        errors.append("SKU can only contain letters, numbers, and hyphens")
    if sku.startswith("-") or sku.endswith("-"):
        errors.append("SKU cannot start or end with a hyphen")
    if "--" in sku:
        errors.append("SKU cannot contain consecutive hyphens")
    return not errors, errors


def generate_sku_suggestions(name: str, category: str, rng: Optional[random.Random] = None) -> List[str]:
    suggestions = [
        generate_sku(name, category, rng=rng),
        generate_sku(name, category, include_year=False, rng=rng),
        generate_sku(name, category, include_random=False, rng=rng),
        generate_sku(name, category, custom_prefix=category.upper()[:2], rng=rng),
        generate_sku(name, category, include_random=False, rng=rng) + str(int(time.time() * 1000))[-6:],
    ]
    # Unique, order preserved
    return list(dict.fromkeys(suggestions))


def fallback_sku(category: str, index: Optional[int] = None) -> str:
    """Timestamp SKU used when a product is created without one."""
    sku = f"{(category or 'PRD').upper()[:3]}-{str(int(time.time() * 1000))[-6:]}"
    if index is not None:
        sku += f"-{index}"
    return sku


def duplicate_sku(sku: str) -> str:
    return f"{sku}-COPY-{int(time.time() * 1000)}"
