"""
Shopify Admin REST integration for the destination catalog.

Every call goes through one session and honours the store's rate limit:
429 responses are retried with tenacity, waiting for Retry-After when the
store sends it.
"""

import time
from typing import Any, Optional, Sequence
import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import Settings, get_settings
from exceptions import DestinationFetchError, DestinationWriteError
from models.catalog import DestinationRecord, DestinationVariant, RecordStatus

logger = structlog.get_logger(__name__)

PAGE_SIZE = 250
INVENTORY_BATCH_SIZE = 50
INVENTORY_BATCH_DELAY = 0.6
MAX_RETRIES = 5

DEFAULT_FIELDS = ("id", "handle", "title", "tags", "status", "created_at", "variants")


class RateLimitedError(Exception):
    """Store answered 429."""

    def __init__(self, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(f"rate limited (retry after {retry_after}s)")


_backoff = wait_exponential(multiplier=1, min=1, max=30)


def _wait_retry_after(retry_state) -> float:
    """Use the store's Retry-After header, else exponential backoff."""
    exc = retry_state.outcome.exception()
    retry_after = getattr(exc, "retry_after", None)
    if retry_after:
        return retry_after
    return _backoff(retry_state)


def _as_id(value: Any) -> Any:
    """Shopify expects numeric ids in request bodies."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def to_destination_record(product: dict) -> DestinationRecord:
    """
    Convert a Shopify product payload to a DestinationRecord.

    Only the first variant is kept; the integration creates single-variant
    products.
    """
    variants = product.get("variants") or [{}]
    variant = variants[0] or {}
    tags = {t.strip() for t in (product.get("tags") or "").split(",") if t.strip()}
    status = RecordStatus.ACTIVE if product.get("status") == "active" else RecordStatus.DRAFT

    return DestinationRecord(
        id=str(product["id"]),
        handle=product.get("handle") or "",
        title=product.get("title") or "",
        tags=tags,
        status=status,
        created_at=product.get("created_at"),
        variant=DestinationVariant(
            id=str(variant["id"]) if variant.get("id") else None,
            sku=variant.get("sku") or None,
            inventory_item_id=(
                str(variant["inventory_item_id"]) if variant.get("inventory_item_id") else None
            ),
            price=variant.get("price"),
            inventory_managed=variant.get("inventory_management") == "shopify",
        ),
    )


class ShopifyClient:
    """Destination catalog backed by the Shopify Admin REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self.session.headers.update({
            "X-Shopify-Access-Token": self.settings.shopify_access_token or "",
            "Content-Type": "application/json",
        })

    # ===================
    # TRANSPORT
    # ===================

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.settings.shopify_base_url}{path}"

    @retry(
        retry=retry_if_exception_type(RateLimitedError),
        wait=_wait_retry_after,
        stop=stop_after_attempt(MAX_RETRIES),
        reraise=True,
    )
    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self.session.request(
            method,
            self._url(path),
            timeout=self.settings.fetch_timeout_seconds,
            **kwargs,
        )
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning("shopify_rate_limited", path=path, retry_after=retry_after)
            raise RateLimitedError(float(retry_after) if retry_after else None)
        return response

    def _write(self, operation: str, method: str, path: str, **kwargs) -> requests.Response:
        """Send a mutation, raising DestinationWriteError on any failure."""
        if not self.settings.shopify_configured:
            raise DestinationWriteError(operation, "Shopify credentials not set")
        try:
            response = self._send(method, path, **kwargs)
        except RateLimitedError as e:
            raise DestinationWriteError(operation, str(e), status=429)
        except requests.exceptions.RequestException as e:
            raise DestinationWriteError(operation, str(e))

        if not response.ok:
            raise DestinationWriteError(
                operation,
                response.text[:200] or response.reason,
                status=response.status_code,
            )
        return response

    # ===================
    # READ OPERATIONS
    # ===================

    def fetch_all(self, fields: Optional[Sequence[str]] = None) -> list[DestinationRecord]:
        """
        Fetch every product, following the Link header cursor.

        Raises:
            DestinationFetchError: If credentials are missing or a page fails
        """
        if not self.settings.shopify_configured:
            raise DestinationFetchError("Shopify credentials not set")

        records: list[DestinationRecord] = []
        url: Optional[str] = "/products.json"
        params: Optional[dict] = {
            "limit": PAGE_SIZE,
            "fields": ",".join(fields or DEFAULT_FIELDS),
        }

        logger.info("fetching_store_products")

        while url:
            try:
                response = self._send("GET", url, params=params)
                response.raise_for_status()
                products = response.json().get("products", [])
            except (RateLimitedError, requests.exceptions.RequestException, ValueError) as e:
                logger.error("store_products_fetch_failed", fetched=len(records), error=str(e))
                raise DestinationFetchError(str(e), details={"fetched": len(records)})

            records.extend(to_destination_record(p) for p in products)

            # The next-page URL already carries the cursor and limit
            url = response.links.get("next", {}).get("url")
            params = None

        logger.info("store_products_fetched", count=len(records))
        return records

    def fetch_inventory_levels(self, item_ids: Sequence[str]) -> dict[str, int]:
        """
        Fetch available quantities at the configured location.

        Batches that still fail after retries are logged and skipped; the
        missing items are absent from the returned map.
        """
        levels: dict[str, int] = {}
        location_id = self.settings.shopify_location_id
        ids = [str(i) for i in item_ids if i]

        logger.info("fetching_inventory_levels", items=len(ids), location_id=location_id)

        for start in range(0, len(ids), INVENTORY_BATCH_SIZE):
            batch = ids[start:start + INVENTORY_BATCH_SIZE]
            try:
                response = self._send(
                    "GET",
                    "/inventory_levels.json",
                    params={
                        "inventory_item_ids": ",".join(batch),
                        "location_ids": location_id,
                    },
                )
                response.raise_for_status()
                for level in response.json().get("inventory_levels", []):
                    levels[str(level["inventory_item_id"])] = int(level.get("available") or 0)
            except (RateLimitedError, requests.exceptions.RequestException, ValueError) as e:
                logger.error(
                    "inventory_batch_failed",
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(e)
                )
            time.sleep(INVENTORY_BATCH_DELAY)

        logger.info("inventory_levels_fetched", found=len(levels), requested=len(ids))
        return levels

    # ===================
    # WRITE OPERATIONS
    # ===================

    def set_inventory(self, item_id: str, quantity: int) -> None:
        """Connect the item to the location (if needed) and set its level."""
        location_id = _as_id(self.settings.shopify_location_id)
        try:
            self._write(
                "inventory-connect",
                "POST",
                "/inventory_levels/connect.json",
                json={"location_id": location_id, "inventory_item_id": _as_id(item_id)},
            )
        except DestinationWriteError as e:
            # 422 means the item is already stocked at this location
            if e.status != 422:
                logger.warning("inventory_connect_failed", item_id=item_id, error=e.message)

        self._write(
            "inventory-set",
            "POST",
            "/inventory_levels/set.json",
            json={
                "location_id": location_id,
                "inventory_item_id": _as_id(item_id),
                "available": quantity,
            },
        )

    def enable_inventory_tracking(self, variant_id: str) -> None:
        self._write(
            "enable-tracking",
            "PUT",
            f"/variants/{variant_id}.json",
            json={"variant": {"id": _as_id(variant_id), "inventory_management": "shopify"}},
        )

    def create_record(self, payload: dict) -> DestinationRecord:
        response = self._write("create", "POST", "/products.json", json={"product": payload})
        try:
            return to_destination_record(response.json()["product"])
        except (ValueError, KeyError) as e:
            raise DestinationWriteError("create", f"unexpected response: {e}")

    def update_status(self, record_id: str, status: RecordStatus) -> None:
        self._write(
            "update-status",
            "PUT",
            f"/products/{record_id}.json",
            json={"product": {"id": _as_id(record_id), "status": RecordStatus(status).value}},
        )

    def update_sku(self, variant_id: str, sku: str) -> None:
        self._write(
            "update-sku",
            "PUT",
            f"/variants/{variant_id}.json",
            json={"variant": {"id": _as_id(variant_id), "sku": sku}},
        )

    def delete(self, record_id: str) -> None:
        self._write("delete", "DELETE", f"/products/{record_id}.json")
