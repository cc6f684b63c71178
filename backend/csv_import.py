"""
CSV parsing and validation for product bulk import.

The header is row 1; data rows are numbered from 2. Rows with errors are
rejected as a whole file, warnings are informational only.
"""

import csv
import io
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional
from urllib.parse import urlparse

from config import CATEGORIES, PRODUCT_STATUSES

CSV_HEADERS = [
    "name",
    "description",
    "sku",
    "category",
    "price",
    "status",
    "tags",
    "thumbnail_url",
    "primary_image_url",
    "additional_images",
]
REQUIRED_HEADERS = ["name", "description", "category"]

SAMPLE_ROWS = [
    [
        "Premium Coffee Mug",
        "High-quality ceramic coffee mug with heat retention technology",
        "MUG-001",
        "drinkware",
        "19.99",
        "active",
        "coffee;ceramic;gift",
        "https://example.com/mug-thumb.jpg",
        "https://example.com/mug-main.jpg",
        "https://example.com/mug-1.jpg;https://example.com/mug-2.jpg",
    ],
    [
        "Executive Pen Set",
        "Luxury pen set with engraving options for corporate gifting",
        "PEN-002",
        "office",
        "45.99",
        "active",
        "pen;executive;engraving",
        "https://example.com/pen-thumb.jpg",
        "https://example.com/pen-main.jpg",
        "",
    ],
    [
        "Eco-Friendly Tote Bag",
        "Sustainable canvas tote bag made from recycled materials",
        "",
        "bags",
        "12.50",
        "draft",
        "eco-friendly;tote;canvas;sustainable",
        "",
        "",
        "",
    ],
]


@dataclass
class RowIssue:
    row: int
    field: str
    message: str
    value: Optional[str] = None


@dataclass
class ParseResult:
    success: bool
    rows: Optional[List[Dict[str, str]]] = None
    errors: List[RowIssue] = field(default_factory=list)
    warnings: List[RowIssue] = field(default_factory=list)

    def to_dict(self):
        return {
            "success": self.success,
            "data": self.rows,
            "errors": [asdict(e) for e in self.errors],
            "warnings": [asdict(w) for w in self.warnings],
        }


def generate_csv_template() -> str:
    lines = [",".join(CSV_HEADERS)] + [",".join(row) for row in SAMPLE_ROWS]
    return "\n".join(lines)


def is_valid_url(url: str) -> bool:
    if url.startswith("/"):
        return True
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def split_list(value: Optional[str]) -> List[str]:
    """Split a semicolon-separated cell into trimmed, non-empty items."""
    if not value:
        return []
    return [v.strip() for v in value.split(";") if v.strip()]


def validate_headers(headers: List[str]) -> List[RowIssue]:
    errors = []
    for required in REQUIRED_HEADERS:
        if required not in headers:
            errors.append(RowIssue(1, "headers", f"Missing required column: {required}"))
    for header in headers:
        if header and header not in CSV_HEADERS:
            errors.append(RowIssue(
                1, "headers",
                f"Unknown column: {header}. Valid columns are: {', '.join(CSV_HEADERS)}",
            ))
    return errors


def validate_row(row: Dict[str, str], row_number: int):
    errors: List[RowIssue] = []
    warnings: List[RowIssue] = []

    if not (row.get("name") or "").strip():
        errors.append(RowIssue(row_number, "name", "Product name is required"))
    if not (row.get("description") or "").strip():
        errors.append(RowIssue(row_number, "description", "Product description is required"))

    category = (row.get("category") or "").strip()
    if not category:
        errors.append(RowIssue(row_number, "category", "Product category is required"))
    elif category.lower() not in CATEGORIES:
        errors.append(RowIssue(
            row_number, "category",
            f"Invalid category: {category}. Valid categories are: {', '.join(CATEGORIES)}",
            category,
        ))

    status = (row.get("status") or "").strip()
    if status and status.lower() not in PRODUCT_STATUSES:
        errors.append(RowIssue(
            row_number, "status",
            f"Invalid status: {status}. Valid statuses are: {', '.join(PRODUCT_STATUSES)}",
            status,
        ))

    price = (row.get("price") or "").strip()
    if price:
        try:
            valid_price = float(price) >= 0
        except ValueError:
            valid_price = False
        if not valid_price:
            errors.append(RowIssue(row_number, "price", "Price must be a positive number", price))

    for url_field in ("thumbnail_url", "primary_image_url"):
        url = (row.get(url_field) or "").strip()
        if url and not is_valid_url(url):
            warnings.append(RowIssue(row_number, url_field, f"Invalid URL format for {url_field}", url))

    for url in split_list(row.get("additional_images")):
        if not is_valid_url(url):
            warnings.append(RowIssue(
                row_number, "additional_images", f"Invalid URL in additional images: {url}", url
            ))

    if not (row.get("sku") or "").strip():
        warnings.append(RowIssue(row_number, "sku", "SKU not provided, will be auto-generated"))

    return errors, warnings


def parse_csv(text: str) -> ParseResult:
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return ParseResult(
            success=False,
            errors=[RowIssue(0, "file", "CSV file must contain headers and at least one data row")],
        )

    reader = csv.reader(lines, skipinitialspace=True)
    try:
        headers = [h.strip().lower() for h in next(reader)]
        header_errors = validate_headers(headers)
        if header_errors:
            return ParseResult(success=False, errors=header_errors)

        rows: List[Dict[str, str]] = []
        errors: List[RowIssue] = []
        warnings: List[RowIssue] = []
        for line_index, values in enumerate(reader, start=1):
            row = {
                header: (values[i].strip() if i < len(values) else "")
                for i, header in enumerate(headers)
                if header
            }
            row_errors, row_warnings = validate_row(row, line_index + 1)
            errors.extend(row_errors)
            warnings.extend(row_warnings)
            if not row_errors:
                rows.append(row)
    except csv.Error as e:
        return ParseResult(success=False, errors=[RowIssue(0, "file", f"Failed to parse CSV: {e}")])

    return ParseResult(
        success=not errors,
        rows=rows if not errors else None,
        errors=errors,
        warnings=warnings,
    )
