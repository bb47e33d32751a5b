"""
Supplier feed parser.

Turns raw dataset records from the scraping actor into SourceItems.
Records without a SKU or title are skipped, as is any row that fails
validation. The first record wins when a SKU repeats.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from pydantic import ValidationError
import structlog

from models.catalog import SourceItem
from utils.text_utils import normalize_text, slugify

logger = structlog.get_logger(__name__)


@dataclass
class FeedParseResult:
    """Result of parsing one feed snapshot."""
    items: list[SourceItem] = field(default_factory=list)
    rows_processed: int = 0
    rows_skipped: int = 0
    duplicate_skus: list[str] = field(default_factory=list)


def _first_variant(raw: dict) -> dict:
    variants = raw.get("variants") or []
    if variants and isinstance(variants[0], dict):
        return variants[0]
    return {}


def _pick(raw: dict, *keys: str) -> Any:
    """First non-empty value among keys, then among the first variant's keys."""
    variant = _first_variant(raw)
    for source in (raw, variant):
        for key in keys:
            value = source.get(key)
            if value not in (None, ""):
                return value
    return None


def _to_int(value: Any) -> int:
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _to_price(value: Any) -> Decimal:
    if value in (None, ""):
        return Decimal("0")
    try:
        price = Decimal(str(value).replace("£", "").replace(",", "").strip())
    except InvalidOperation:
        return Decimal("0")
    if not price.is_finite() or price < 0:
        return Decimal("0")
    return price


def _images(raw: dict) -> list[str]:
    images = []
    for image in raw.get("images") or []:
        src = image.get("src") if isinstance(image, dict) else image
        if src:
            images.append(str(src))
    return images


def handle_from_url(url: Optional[str], prefix: str) -> str:
    """
    Extract the product handle from a supplier URL.

    "https://shop.example/products/red-mug?variant=1" → "red-mug"
    """
    if not url:
        return ""
    path = url.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    if prefix and path.startswith(prefix.rstrip("/")):
        path = path[len(prefix.rstrip("/")):]
    return path.rsplit("/", 1)[-1].strip().lower()


def parse_feed_item(raw: dict, url_prefix: str = "") -> Optional[SourceItem]:
    """
    Convert one raw feed record.

    Args:
        raw: Dataset record
        url_prefix: Supplier product URL prefix

    Returns:
        SourceItem, or None when SKU or title is missing
    """
    sku = _pick(raw, "sku")
    title = _pick(raw, "title", "name")
    if not sku or not title:
        return None

    sku = str(sku).strip()
    title = str(title).strip()
    if not sku or not title:
        return None

    handle = handle_from_url(_pick(raw, "url", "canonicalUrl"), url_prefix)
    if not handle:
        handle = str(raw.get("handle") or "").strip().lower() or slugify(title)

    return SourceItem(
        sku=sku,
        title=title,
        normalized_title=normalize_text(title),
        handle=handle,
        inventory_level=_to_int(_pick(raw, "inventory", "inventory_quantity", "stock")),
        price=_to_price(_pick(raw, "price")),
        description=str(_pick(raw, "description", "body_html") or ""),
        images=_images(raw),
    )


def parse_feed(records: list[dict], url_prefix: str = "") -> FeedParseResult:
    """
    Parse a full feed snapshot.

    Args:
        records: Raw dataset records
        url_prefix: Supplier product URL prefix

    Returns:
        FeedParseResult with unique-SKU items in feed order
    """
    result = FeedParseResult(rows_processed=len(records))
    seen: set[str] = set()

    for raw in records:
        try:
            item = parse_feed_item(raw, url_prefix) if isinstance(raw, dict) else None
        except (ValidationError, ArithmeticError) as e:
            logger.warning("feed_row_invalid", sku=raw.get("sku"), error=str(e))
            item = None

        if item is None:
            result.rows_skipped += 1
            continue

        key = item.sku.lower()
        if key in seen:
            result.duplicate_skus.append(item.sku)
            continue

        seen.add(key)
        result.items.append(item)

    logger.info(
        "feed_parsed",
        rows=result.rows_processed,
        items=len(result.items),
        skipped=result.rows_skipped,
        duplicates=len(result.duplicate_skus)
    )

    return result
