import random
import re
from datetime import date

import pytest

from sku import duplicate_sku, fallback_sku, generate_sku, generate_sku_suggestions, validate_sku


def test_generate_sku_layout():
    sku = generate_sku("Ceramic Mug", "drinkware", rng=random.Random(1))
    year = str(date.today().year)[-2:]
    assert re.fullmatch(rf"DRK-CER-{year}-\d{{3}}", sku)


def test_generate_sku_unknown_category_and_padding():
    sku = generate_sku("!", "gadgets", include_year=False, include_random=False, rng=random.Random(1))
    assert sku.startswith("PRD")
    assert len(sku) == 8


def test_custom_prefix():
    assert generate_sku("Pen", "office", custom_prefix="acme", include_year=False,
                        include_random=False).startswith("ACME-PEN")


def test_suggestions_are_unique_and_valid():
    suggestions = generate_sku_suggestions("Steel Bottle", "drinkware", rng=random.Random(7))
    assert len(suggestions) == len(set(suggestions))
    for sku in suggestions:
        assert validate_sku(sku)[0], sku


@pytest.mark.parametrize("sku,message", [
    ("AB", "at least 3"),
    ("A" * 51, "must not exceed 50"),
    ("ABC_1", "letters, numbers, and hyphens"),
    ("-ABC", "start or end with a hyphen"),
    ("AB--C", "consecutive hyphens"),
])
def test_invalid_skus(sku, message):
    valid, errors = validate_sku(sku)
    assert not valid
    assert any(message in e for e in errors)


def test_valid_sku():
    assert validate_sku("DRK-MUG-26-042") == (True, [])


def test_fallback_and_duplicate():
    assert re.fullmatch(r"DRI-\d{6}-3", fallback_sku("drinkware", 3))
    assert duplicate_sku("MUG-1").startswith("MUG-1-COPY-")
